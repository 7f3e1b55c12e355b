"""Tests for WhatsApp channel: bridge frames in, request/reply frames out."""

import asyncio
import base64
import json
from unittest.mock import AsyncMock, MagicMock

import pytest

from blady.bus.events import ContactsUpdate, HistoryBatch, InboundMessage
from blady.channels.whatsapp import BUTTONS_HEADER, LIST_HEADER, WhatsAppChannel, render_content
from blady.config.schema import WhatsAppConfig
from blady.errors import TransportError

ME = "34999000000@s.whatsapp.net"
CONTACT = "34600111222@s.whatsapp.net"


@pytest.fixture
def wa_config():
    return WhatsAppConfig(enabled=True, bridge_url="ws://localhost:3001", allow_from=[], send_timeout_seconds=0.2)


@pytest.fixture
def channel(wa_config):
    bus = MagicMock()
    bus.publish_inbound = AsyncMock()
    return WhatsAppChannel(wa_config, bus)


class FakeBridge:
    """Stands in for the websocket: records frames and answers each request."""

    def __init__(self, channel, reply=None):
        self.channel = channel
        self.reply = reply
        self.frames = []

    async def send(self, raw):
        payload = json.loads(raw)
        self.frames.append(payload)
        if self.reply is not None:
            answer = dict(self.reply(payload), request_id=payload["request_id"])
            asyncio.get_running_loop().create_task(self.channel.handle_frame(json.dumps(answer)))

    async def close(self):
        pass


def connect(channel, reply=None):
    bridge = FakeBridge(channel, reply)
    channel._ws = bridge
    channel._connected = True
    return bridge


def published(channel):
    return [c.args[0] for c in channel.bus.publish_inbound.call_args_list]


# ---------------------------------------------------------------------------
# Inbound messages
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_text_message_is_published(channel):
    raw = json.dumps({
        "type": "message",
        "id": "wamid-1",
        "timestamp": 1700000000,
        "sender": CONTACT,
        "chat": CONTACT,
        "content": "hola",
        "pushName": "Rosa",
    })
    await channel.handle_frame(raw)
    [msg] = published(channel)
    assert isinstance(msg, InboundMessage)
    assert msg.message_id == "wamid-1"
    assert msg.chat_id == CONTACT
    assert msg.content == "hola"
    assert msg.timestamp == 1700000000
    assert not msg.from_me and not msg.is_group
    assert msg.metadata == {"push_name": "Rosa"}


@pytest.mark.asyncio
async def test_group_message_is_flagged(channel):
    """Groups are flagged either by isGroup or by the @g.us suffix."""
    await channel.handle_frame(json.dumps({
        "type": "message", "id": "g1", "sender": CONTACT, "chat": "120363xxx@g.us", "content": "oi",
    }))
    await channel.handle_frame(json.dumps({
        "type": "message", "id": "g2", "sender": CONTACT, "chat": "120363yyy", "content": "oi", "isGroup": True,
    }))
    assert [m.is_group for m in published(channel)] == [True, True]


@pytest.mark.asyncio
async def test_duplicate_message_id_is_ignored(channel):
    raw = json.dumps({"type": "message", "id": "dup-1", "sender": CONTACT, "chat": CONTACT, "content": "hi"})
    await channel.handle_frame(raw)
    await channel.handle_frame(raw)
    assert channel.bus.publish_inbound.await_count == 1


@pytest.mark.asyncio
async def test_message_without_text_is_dropped(channel):
    await channel.handle_frame(json.dumps({"type": "message", "id": "e1", "sender": CONTACT, "content": {"kind": "text"}}))
    await channel.handle_frame("not json")
    channel.bus.publish_inbound.assert_not_called()


@pytest.mark.asyncio
async def test_self_chat_message(channel):
    await channel.handle_frame(json.dumps({
        "type": "message", "id": "s1", "sender": "34999000000:12@s.whatsapp.net", "chat": ME,
        "fromMe": True, "content": "remind me",
    }))
    [msg] = published(channel)
    assert msg.is_self_chat


@pytest.mark.asyncio
async def test_buttons_message_keeps_options(channel):
    await channel.handle_frame(json.dumps({
        "type": "message", "id": "b1", "sender": CONTACT, "chat": CONTACT,
        "content": {"kind": "buttons", "text": "Confirm?", "buttons": [{"id": "yes", "text": "Yes"}, {"id": "no", "text": "No"}]},
    }))
    [msg] = published(channel)
    assert msg.kind == "buttons"
    assert msg.is_interactive
    assert msg.options == [("Yes", "yes"), ("No", "no")]
    assert msg.content == f'Confirm?\n\n{BUTTONS_HEADER}\n- "Yes" -> buttonID: yes\n- "No" -> buttonID: no'


def test_render_list_and_media():
    kind, text, options, media_id = render_content({
        "kind": "list",
        "description": "Pick a slot",
        "sections": [{"rows": [{"id": "r1", "title": "20:00"}]}, {"rows": [{"id": "r2", "title": "21:00"}]}],
    })
    assert kind == "list"
    assert options == [("20:00", "r1"), ("21:00", "r2")]
    assert text.startswith(f"Pick a slot\n\n{LIST_HEADER}")
    assert media_id is None

    kind, text, options, media_id = render_content({
        "kind": "media", "mediaId": "m-9", "mimetype": "image/jpeg", "caption": "menu",
    })
    assert (kind, text, options, media_id) == ("media", "[image/jpeg id=m-9] menu", [], "m-9")


# ---------------------------------------------------------------------------
# History, contacts, status
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_history_frame_keeps_text_entries(channel):
    await channel.handle_frame(json.dumps({
        "type": "history",
        "messages": [
            {"id": "h1", "chat": CONTACT, "sender": CONTACT, "timestamp": 10, "content": "old"},
            {"id": "h2", "chat": CONTACT, "fromMe": True, "timestamp": 11, "content": {"kind": "extended_text", "text": "reply"}},
            {"id": "h3", "chat": CONTACT, "timestamp": 12, "content": {"kind": "media", "mediaId": "x"}},
            {"chat": CONTACT, "content": "no id"},
        ],
    }))
    [batch] = published(channel)
    assert isinstance(batch, HistoryBatch)
    assert [(e.message_id, e.sender_id, e.from_me) for e in batch.entries] == [
        ("h1", CONTACT, False),
        ("h2", "Me", True),
    ]


@pytest.mark.asyncio
async def test_contacts_frame(channel):
    await channel.handle_frame(json.dumps({
        "type": "contacts", "contacts": [{"id": CONTACT, "name": "Rosa"}, "garbage"],
    }))
    [update] = published(channel)
    assert isinstance(update, ContactsUpdate)
    assert update.contacts == [{"id": CONTACT, "name": "Rosa"}]


@pytest.mark.asyncio
async def test_status_frame_sets_own_id(channel):
    assert channel.own_id == ""
    await channel.handle_frame(json.dumps({"type": "status", "status": "connected", "me": ME}))
    assert channel.own_id == ME
    assert channel.connected
    await channel.handle_frame(json.dumps({"type": "status", "status": "disconnected"}))
    assert not channel.connected


# ---------------------------------------------------------------------------
# Outbound requests
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_send_message_returns_bridge_id(channel):
    bridge = connect(channel, reply=lambda p: {"type": "sent", "id": "wamid-out"})
    message_id = await channel.send_message(CONTACT, "hello")
    assert message_id == "wamid-out"
    assert bridge.frames[0]["type"] == "send"
    assert bridge.frames[0]["to"] == CONTACT
    assert bridge.frames[0]["text"] == "hello"
    assert channel._pending == {}


@pytest.mark.asyncio
async def test_button_response_frame(channel):
    bridge = connect(channel, reply=lambda p: {"type": "sent", "id": "wamid-btn"})
    await channel.send_button_response(CONTACT, "Yes", "yes", quoted_id="b1", participant=CONTACT)
    frame = bridge.frames[0]
    assert frame["type"] == "button_response"
    assert (frame["displayText"], frame["buttonId"], frame["quotedId"], frame["participant"]) == ("Yes", "yes", "b1", CONTACT)


@pytest.mark.asyncio
async def test_download_decodes_payload(channel):
    data = base64.b64encode(b"\x89PNG").decode()
    connect(channel, reply=lambda p: {"type": "downloaded", "data": data})
    assert await channel.download("m-1") == b"\x89PNG"


@pytest.mark.asyncio
async def test_bridge_error_reply_raises(channel):
    connect(channel, reply=lambda p: {"type": "error", "error": "not on whatsapp"})
    with pytest.raises(TransportError, match="not on whatsapp"):
        await channel.send_message("123@s.whatsapp.net", "hi")


@pytest.mark.asyncio
async def test_send_without_connection_raises(channel):
    with pytest.raises(TransportError):
        await channel.send_message(CONTACT, "hi")


@pytest.mark.asyncio
async def test_send_times_out_without_reply(channel):
    connect(channel)
    with pytest.raises(TransportError, match="no reply"):
        await channel.send_message(CONTACT, "hi")
    assert channel._pending == {}


@pytest.mark.asyncio
async def test_stop_fails_pending_requests(channel):
    connect(channel)
    sending = asyncio.create_task(channel.send_message(CONTACT, "hi"))
    await asyncio.sleep(0.01)
    await channel.stop()
    with pytest.raises(TransportError, match="channel stopped"):
        await sending


# ---------------------------------------------------------------------------
# Allow list
# ---------------------------------------------------------------------------


def test_is_allowed_compares_digits():
    config = WhatsAppConfig(allow_from=["+34 600 111 222"])
    channel = WhatsAppChannel(config, MagicMock())
    assert channel.is_allowed(CONTACT)
    assert channel.is_allowed("34600111222:3@s.whatsapp.net")
    assert not channel.is_allowed("34600999999@s.whatsapp.net")


def test_empty_allow_list_allows_everyone(channel):
    assert channel.is_allowed("anyone@s.whatsapp.net")
