"""WhatsApp channel implementation using the Node.js bridge.

The bridge speaks JSON frames over a WebSocket. Inbound frames are turned into
bus events (messages, history backfill, contact lists); outbound requests
carry a request_id and are resolved by the bridge's `sent` / `downloaded` /
`error` replies.
Deduplication by message id: the bridge can deliver the same event twice.
"""

import asyncio
import base64
import json
import time
import uuid
from typing import Any

import websockets
from loguru import logger
from websockets.exceptions import WebSocketException

from blady.bus.events import ContactsUpdate, HistoryBatch, HistoryEntry, InboundMessage
from blady.bus.queue import MessageBus
from blady.channels.base import BaseChannel
from blady.config.schema import WhatsAppConfig
from blady.errors import TransportError

# JID suffix for WhatsApp groups
WHATSAPP_GROUP_SUFFIX = "@g.us"

RECONNECT_SECONDS = 5
# Ignore a message id already seen in the last N seconds
_DEDUP_SECONDS = 120

BUTTONS_HEADER = "[Response options - answer with the buttonID]:"
LIST_HEADER = "[List options - answer with the rowID]:"


def render_content(content: Any) -> tuple[str, str, list[tuple[str, str]], str | None]:
    """
    Flatten a bridge `content` object into (kind, text, options, media_id).

    Buttons and list rows are appended to the text so the model sees them:
        - "Yes" -> buttonID: btn_yes
    """
    if isinstance(content, str):
        return "text", content, [], None
    if not isinstance(content, dict):
        return "other", "", [], None

    kind = content.get("kind") or "text"
    text = str(content.get("text") or "")

    if kind == "buttons":
        options = [
            (str(b.get("text") or b.get("displayText") or ""), str(b.get("id") or b.get("buttonId") or ""))
            for b in content.get("buttons") or []
        ]
        if options:
            text += "\n\n" + BUTTONS_HEADER
            text += "".join(f'\n- "{display}" -> buttonID: {bid}' for display, bid in options)
        return kind, text, options, None

    if kind == "list":
        text = str(content.get("description") or text)
        options = [
            (str(row.get("title") or ""), str(row.get("id") or row.get("rowId") or ""))
            for section in content.get("sections") or []
            for row in section.get("rows") or []
        ]
        if options:
            text += "\n\n" + LIST_HEADER
            text += "".join(f'\n- "{title}" -> rowID: {rid}' for title, rid in options)
        return kind, text, options, None

    if kind == "media":
        media_id = content.get("mediaId") or content.get("media_id")
        caption = str(content.get("caption") or "")
        mimetype = content.get("mimetype") or "media"
        text = f"[{mimetype} id={media_id}]" + (f" {caption}" if caption else "")
        return kind, text, [], media_id

    if kind in ("text", "extended_text"):
        return kind, text, [], None
    return "other", text, [], None


class WhatsAppChannel(BaseChannel):
    """
    WhatsApp channel that connects to a Node.js bridge.
    The bridge uses @whiskeysockets/baileys; communication is via WebSocket.
    """

    name = "whatsapp"

    def __init__(self, config: WhatsAppConfig, bus: MessageBus):
        super().__init__(config, bus)
        self.config: WhatsAppConfig = config
        self._ws = None
        self._connected = False
        self._own_id = ""
        self._pending: dict[str, asyncio.Future] = {}
        self._seen_ids: dict[str, float] = {}

    @property
    def own_id(self) -> str:
        return self._own_id

    @property
    def connected(self) -> bool:
        return self._connected

    async def start(self) -> None:
        """Connect to the bridge and read frames until stopped; reconnects after errors."""
        bridge_url = self.config.bridge_url
        logger.info(f"Connecting to WhatsApp bridge at {bridge_url}...")
        self._running = True

        while self._running:
            try:
                async with websockets.connect(bridge_url) as ws:
                    self._ws = ws
                    self._connected = True
                    logger.info("Connected to WhatsApp bridge")
                    await ws.send(json.dumps({"type": "contacts"}))

                    async for frame in ws:
                        try:
                            await self.handle_frame(frame)
                        except Exception as e:
                            logger.error(f"Error handling bridge frame: {e}")

            except asyncio.CancelledError:
                break
            except Exception as e:
                logger.warning(f"WhatsApp bridge connection error: {e}")
            finally:
                self._connected = False
                self._ws = None
                self._fail_pending("bridge disconnected")

            if self._running:
                logger.info(f"Reconnecting in {RECONNECT_SECONDS} seconds...")
                await asyncio.sleep(RECONNECT_SECONDS)

    async def stop(self) -> None:
        """Stop the WhatsApp channel."""
        self._running = False
        self._connected = False
        if self._ws:
            await self._ws.close()
            self._ws = None
        self._fail_pending("channel stopped")

    # ========== Outbound ==========

    async def _request(self, payload: dict[str, Any]) -> dict[str, Any]:
        """Send a frame carrying a fresh request_id and wait for the bridge's reply."""
        if not self._ws or not self._connected:
            raise TransportError(f"bridge not connected ({payload.get('type')} skipped)")
        request_id = uuid.uuid4().hex
        payload["request_id"] = request_id
        future: asyncio.Future = asyncio.get_running_loop().create_future()
        self._pending[request_id] = future
        try:
            await self._ws.send(json.dumps(payload))
            return await asyncio.wait_for(future, timeout=self.config.send_timeout_seconds)
        except asyncio.TimeoutError as e:
            raise TransportError(f"no reply from bridge within {self.config.send_timeout_seconds}s") from e
        except WebSocketException as e:
            raise TransportError(f"bridge send failed: {e}") from e
        finally:
            self._pending.pop(request_id, None)

    async def send_message(self, target: str, content: str) -> str:
        logger.info(f"WhatsApp send: to={target[:30]} len={len(content)}")
        reply = await self._request({"type": "send", "to": target, "text": content})
        return str(reply.get("id") or "")

    async def send_button_response(self, chat_id: str, display_text: str, button_id: str, quoted_id: str = "", participant: str = "") -> str:
        logger.info(f"WhatsApp button response: chat={chat_id[:30]} button={button_id!r}")
        reply = await self._request({
            "type": "button_response",
            "to": chat_id,
            "displayText": display_text,
            "buttonId": button_id,
            "quotedId": quoted_id,
            "participant": participant,
        })
        return str(reply.get("id") or "")

    async def send_media(self, target: str, media_id: str) -> str:
        logger.info(f"WhatsApp send media: to={target[:30]} media={media_id}")
        reply = await self._request({"type": "send_media", "to": target, "mediaId": media_id})
        return str(reply.get("id") or "")

    async def download(self, reference: str) -> bytes:
        reply = await self._request({"type": "download", "mediaId": reference})
        try:
            return base64.b64decode(reply.get("data") or "")
        except ValueError as e:
            raise TransportError(f"invalid media payload for {reference}: {e}") from e

    def _fail_pending(self, reason: str) -> None:
        for future in self._pending.values():
            if not future.done():
                future.set_exception(TransportError(reason))
        self._pending.clear()

    # ========== Inbound ==========

    def _is_duplicate(self, msg_id: str) -> bool:
        if not msg_id:
            return False
        now = time.time()
        for k in [k for k, t in self._seen_ids.items() if now - t > _DEDUP_SECONDS]:
            del self._seen_ids[k]
        if msg_id in self._seen_ids:
            return True
        self._seen_ids[msg_id] = now
        return False

    async def handle_frame(self, raw: str | bytes) -> None:
        """Handle one frame from the bridge."""
        try:
            data = json.loads(raw)
        except json.JSONDecodeError:
            logger.warning(f"Invalid JSON from bridge: {str(raw)[:100]}")
            return
        if not isinstance(data, dict):
            return

        msg_type = data.get("type")

        if msg_type in ("sent", "downloaded"):
            future = self._pending.get(data.get("request_id") or "")
            if future is not None and not future.done():
                future.set_result(data)
            return

        if msg_type == "error":
            error = data.get("error") or "unknown bridge error"
            future = self._pending.get(data.get("request_id") or "")
            if future is not None and not future.done():
                future.set_exception(TransportError(str(error)))
            else:
                logger.error(f"WhatsApp bridge error: {error}")
            return

        if msg_type == "message":
            event = self.parse_message(data)
            if event is None:
                return
            if self._is_duplicate(event.message_id):
                logger.debug(f"Ignoring duplicate message id={event.message_id!r}")
                return
            await self.bus.publish_inbound(event)
            return

        if msg_type == "history":
            entries = [e for e in (self.parse_history_entry(m) for m in data.get("messages") or []) if e]
            logger.info(f"WhatsApp history sync: {len(entries)} messages")
            await self.bus.publish_inbound(HistoryBatch(channel=self.name, entries=entries))
            return

        if msg_type == "contacts":
            contacts = [c for c in data.get("contacts") or [] if isinstance(c, dict)]
            await self.bus.publish_inbound(ContactsUpdate(channel=self.name, contacts=contacts))
            return

        if msg_type == "status":
            status = data.get("status")
            logger.info(f"WhatsApp status: {status}")
            if data.get("me"):
                self._own_id = str(data["me"])
            if status == "connected":
                self._connected = True
            elif status == "disconnected":
                self._connected = False
            return

        if msg_type == "qr":
            logger.info("Scan QR code in the bridge terminal to connect WhatsApp")

    def parse_message(self, data: dict[str, Any]) -> InboundMessage | None:
        """Build an InboundMessage from a `message` frame. Frames without text are dropped."""
        kind, text, options, media_id = render_content(data.get("content"))
        if not text:
            logger.debug(f"No text in message {data.get('id')!r} (kind={kind})")
            return None
        sender = str(data.get("sender") or "")
        chat = str(data.get("chat") or sender)
        msg_id = str(data.get("id") or "") or f"local-{uuid.uuid4().hex[:12]}"
        return InboundMessage(
            channel=self.name,
            message_id=msg_id,
            sender_id=sender,
            chat_id=chat,
            content=text,
            timestamp=int(data.get("timestamp") or time.time()),
            from_me=bool(data.get("fromMe")),
            is_group=bool(data.get("isGroup")) or chat.endswith(WHATSAPP_GROUP_SUFFIX),
            kind=kind,
            options=options,
            media_id=media_id,
            metadata={"push_name": data.get("pushName")} if data.get("pushName") else {},
            trace_id=msg_id,
        )

    def parse_history_entry(self, item: Any) -> HistoryEntry | None:
        """History sync keeps text only; our own messages are stored with sender "Me"."""
        if not isinstance(item, dict):
            return None
        kind, text, _, _ = render_content(item.get("content"))
        msg_id = str(item.get("id") or "")
        chat = str(item.get("chat") or "")
        if not text or not msg_id or not chat or kind not in ("text", "extended_text"):
            return None
        from_me = bool(item.get("fromMe"))
        sender = "Me" if from_me else str(item.get("participant") or item.get("sender") or chat)
        return HistoryEntry(
            message_id=msg_id,
            chat_id=chat,
            sender_id=sender,
            content=text,
            timestamp=int(item.get("timestamp") or 0),
            from_me=from_me,
        )
