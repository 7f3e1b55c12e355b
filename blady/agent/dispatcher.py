"""Event dispatcher: routes channel events to the agent loop.

- operator's note-to-self chat → command workflow (one per chat, newer cancels older)
- contact chat with an active task → debounce, task lock, process_task
- contact chat with enabled behaviors → process_behaviors
- history backfill / contact lists → history store / contact directory
"""

import asyncio
import time
import uuid

from loguru import logger

from blady.agent.actions.base import BOT_PREFIX, SendText
from blady.agent.actions.media import MASTER
from blady.agent.buttons import ButtonsContext, ButtonsRegistry
from blady.agent.contacts import ContactDirectory
from blady.agent.conversations import CancelToken, ConversationScheduler
from blady.agent.locks import KeyedLock, task_lock_key
from blady.agent.loop import AgentLoop
from blady.agent.watcher import LET_IT_BE, SafetyGate
from blady.agent.workers import WorkerPool
from blady.behaviors.store import BehaviorStore
from blady.bus.events import BusEvent, ContactsUpdate, HistoryBatch, InboundMessage
from blady.bus.queue import MessageBus
from blady.channels.base import BaseChannel
from blady.errors import BladyError, StoreIOError, TransportError
from blady.history.store import HistoryStore
from blady.tasks.store import TaskStore
from blady.tasks.types import ENGAGED_STATUSES, STATUS_PENDING, Task
from blady.utils.logging_config import reset_trace_id, set_trace_id

# Anything the bot writes into the operator's chat starts with this
OPERATOR_TAG = "[Blady]"

WATCHER_SENT = "[Blady][Watcher] : Message sent."
WATCHER_NOTHING = "[Blady][Watcher] : No blocked message to release."


class EventDispatcher:
    """
    Consumes bus events and turns them into agent work.

    The agent loop is attached after construction (`dispatcher.agent = ...`)
    because the action registry it runs needs this dispatcher's send
    callbacks.
    """

    def __init__(
        self,
        channel: BaseChannel,
        bus: MessageBus,
        tasks: TaskStore,
        behaviors: BehaviorStore,
        history: HistoryStore,
        directory: ContactDirectory,
        buttons: ButtonsRegistry,
        gate: SafetyGate | None = None,
        agent: AgentLoop | None = None,
        locks: KeyedLock | None = None,
        pool: WorkerPool | None = None,
        scheduler: ConversationScheduler | None = None,
        debounce_seconds: float = 5.0,
        context_messages: int = 9,
    ):
        self.channel = channel
        self.bus = bus
        self.tasks = tasks
        self.behaviors = behaviors
        self.history = history
        self.directory = directory
        self.buttons = buttons
        self.gate = gate
        self.agent = agent
        self.locks = locks or KeyedLock()
        self.pool = pool or WorkerPool("dispatcher")
        self.scheduler = scheduler or ConversationScheduler(self.pool)
        self.debounce_seconds = debounce_seconds
        self.context_messages = context_messages
        self._operator_chat = ""  # Last self-chat seen; used until the bridge reports our own id
        self._running = False

    # ========== Bus loop ==========

    async def run(self) -> None:
        """Consume inbound events until stop() is called."""
        self._running = True
        logger.info("Event dispatcher started")
        while self._running:
            try:
                event = await asyncio.wait_for(self.bus.consume_inbound(), timeout=1.0)
            except asyncio.TimeoutError:
                continue
            try:
                await self.handle(event)
            except Exception:
                logger.exception(f"Error handling {type(event).__name__}")

    def stop(self) -> None:
        self._running = False

    async def handle(self, event: BusEvent) -> None:
        if isinstance(event, InboundMessage):
            await self.handle_message(event)
        elif isinstance(event, HistoryBatch):
            self.handle_history(event)
        elif isinstance(event, ContactsUpdate):
            self.directory.update_from_raw(event.contacts)
        else:
            logger.warning(f"Unknown bus event: {event!r}")

    def handle_history(self, batch: HistoryBatch) -> None:
        saved = 0
        for entry in batch.entries:
            try:
                saved += self.history.save_message(
                    entry.message_id, entry.chat_id, entry.sender_id, entry.content, entry.timestamp, entry.from_me,
                )
            except StoreIOError as e:
                logger.error(f"History sync: {e}")
        logger.info(f"History sync: stored {saved} of {len(batch.entries)} messages")

    # ========== Routing ==========

    async def handle_message(self, msg: InboundMessage) -> None:
        token = set_trace_id(msg.trace_id or msg.message_id)
        try:
            await self._route(msg)
        finally:
            reset_trace_id(token)

    async def _route(self, msg: InboundMessage) -> None:
        try:
            self.history.save_message(msg.message_id, msg.chat_id, msg.sender_id, msg.content, msg.timestamp, msg.from_me)
        except StoreIOError as e:
            logger.error(f"Failed to save message to history: {e}")

        if msg.is_interactive:
            self.buttons.remember(ButtonsContext(
                message_id=msg.message_id,
                chat_id=msg.chat_id,
                sender_id=msg.sender_id,
                options=list(msg.options),
            ))

        if msg.is_self_chat:
            await self._handle_operator(msg)
            return
        if msg.from_me:
            logger.debug(f"Ignoring my own message in {msg.chat_id}")
            return
        if msg.is_group:
            logger.debug(f"Ignoring group message in {msg.chat_id}")
            return
        if not self.channel.is_allowed(msg.sender_id):
            logger.debug(f"Sender {msg.sender_id} not in allow_from; message stored only")
            return

        task = self.tasks.find_by_contact_or_chat(msg.chat_id)
        if task is not None:
            logger.info(f"Active task {task.id} found for chat {msg.chat_id}; routing to task mode")
            if task.chat_id != msg.chat_id:
                self.tasks.set_chat_id(task.id, msg.chat_id)
            self.pool.spawn(self._task_pass(task.id, msg.chat_id), name=f"task:{task.id}:debounce")
            return

        behaviors = self.behaviors.active_for(msg.chat_id)
        if behaviors:
            logger.info(f"{len(behaviors)} behaviors enabled for {msg.chat_id}; routing to behavior mode")
            self.pool.spawn(self._behavior_pass(msg), name=f"behaviors:{msg.chat_id}")

    async def _handle_operator(self, msg: InboundMessage) -> None:
        self._operator_chat = msg.chat_id
        text = msg.content
        if text.startswith(OPERATOR_TAG):
            logger.debug("Ignoring bot message in operator chat")
            return

        if text.strip() == LET_IT_BE:
            released = self.gate is not None and await self.gate.let_it_be()
            await self._send_and_record(msg.chat_id, WATCHER_SENT if released else WATCHER_NOTHING)
            return

        async def work(cancel: CancelToken) -> None:
            context = self.history.get_recent_messages(msg.chat_id, self.context_messages)
            try:
                await self._agent().process(text, context, chat_id=msg.chat_id, cancel=cancel)
            except BladyError as e:
                logger.error(f"Command workflow failed: {e}")
                await self._notify_operator(f"{BOT_PREFIX}Error: {e}")

        self.scheduler.start(msg.chat_id, work)

    # ========== Task mode ==========

    async def _task_pass(self, task_id: int, chat_id: str) -> None:
        """
        One debounced pass over a task chat. Several messages arriving inside
        the window are handled by the first pass to wake up; later passes find
        nothing newer than the watermark and exit.
        """
        await asyncio.sleep(self.debounce_seconds)
        async with self.locks.hold(task_lock_key(task_id)):
            try:
                task = self.tasks.load(task_id)
            except BladyError as e:
                logger.error(f"Failed to reload task {task_id}: {e}")
                return
            if task.status not in ENGAGED_STATUSES:
                logger.info(f"Task {task_id} is {task.status}; skipping contact messages")
                return

            lines, watermark = self.history.get_messages_since(chat_id, task.last_processed_timestamp)
            if not lines:
                return

            logger.info(f"Task {task_id}: processing {len(lines)} new messages")
            if task.status == STATUS_PENDING:
                self.tasks.set_running(task_id)
                task = self.tasks.load(task_id)
            try:
                await self._agent().process_task(task, "\n".join(lines), [], self._sender_for(chat_id))
            except Exception:
                logger.exception(f"Task {task_id} processing failed")
            finally:
                try:
                    self.tasks.set_processed_timestamp(task_id, watermark)
                except BladyError as e:
                    logger.error(f"Failed to update task {task_id} watermark: {e}")

    def start_task(self, task: Task) -> None:
        """Kick off a confirmed (or resumed) task in the background."""
        if not task.schedule_due():
            logger.info(f"Task {task.id} scheduled for {task.schedule_datetime}; the ticker will start it")
            return
        self.pool.spawn(self._start_task(task.id), name=f"task:{task.id}:start")

    resume_task = start_task

    async def _start_task(self, task_id: int) -> None:
        async with self.locks.hold(task_lock_key(task_id)):
            try:
                task = self.tasks.load(task_id)
            except BladyError as e:
                logger.error(f"Failed to load task {task_id} for start: {e}")
                return
            if task.status not in ENGAGED_STATUSES:
                logger.info(f"Task {task_id} is {task.status}; not starting")
                return
            self.tasks.set_chat_id(task_id, task.contact)
            task.chat_id = task.contact
            context = self.history.get_recent_messages(task.contact, self.context_messages)
            logger.info(f"Starting task {task_id} with {task.contact}")
            try:
                await self._agent().process_task(task, "", context, self._sender_for(task.contact))
            except Exception:
                logger.exception(f"Task {task_id} start failed")

    # ========== Behavior mode ==========

    async def _behavior_pass(self, msg: InboundMessage) -> None:
        behaviors = self.behaviors.active_for(msg.chat_id)
        if not behaviors:
            return
        context = self.history.get_recent_messages(msg.chat_id, self.context_messages)
        try:
            await self._agent().process_behaviors(msg.chat_id, behaviors, msg.content, context, self._sender_for(msg.chat_id))
        except Exception:
            logger.exception(f"Behavior processing failed for {msg.chat_id}")

    # ========== Outbound ==========

    def _agent(self) -> AgentLoop:
        if self.agent is None:
            raise RuntimeError("EventDispatcher.agent is not attached")
        return self.agent

    @property
    def operator_chat(self) -> str:
        return self.channel.own_id or self._operator_chat

    def _record(self, message_id: str, chat_id: str, text: str) -> None:
        try:
            self.history.save_message(
                message_id or f"local-{uuid.uuid4().hex[:12]}", chat_id, "Me", text, int(time.time()), True,
            )
        except StoreIOError as e:
            logger.warning(f"Failed to save bot message to history: {e}")

    async def _send_and_record(self, chat_id: str, text: str) -> None:
        message_id = await self.channel.send_message(chat_id, text)
        self._record(message_id, chat_id, text)

    def _sender_for(self, chat_id: str) -> SendText:
        async def send(text: str) -> None:
            await self._send_and_record(chat_id, text)
        return send

    async def send_to_operator(self, text: str) -> None:
        target = self.operator_chat
        if not target:
            raise TransportError("operator chat unknown (bridge has not reported our own id yet)")
        await self._send_and_record(target, text)

    async def _notify_operator(self, text: str) -> None:
        try:
            await self.send_to_operator(text)
        except TransportError as e:
            logger.error(f"Could not notify operator: {e}")

    async def send_media(self, target: str, media_id: str) -> None:
        if target == MASTER:
            target = self.operator_chat
        if not target:
            raise TransportError("no target for media")
        await self.channel.send_media(target, media_id)

    async def send_button(self, chat_id: str, display_text: str, button_id: str) -> None:
        """Answer the chat's interactive message; without one (or without an id) send the text."""
        ctx = self.buttons.get(chat_id)
        if ctx is None or not button_id:
            await self._send_and_record(chat_id, display_text)
            return
        message_id = await self.channel.send_button_response(
            ctx.chat_id, display_text, button_id, quoted_id=ctx.message_id, participant=ctx.sender_id,
        )
        self._record(message_id, chat_id, display_text)

    async def shutdown(self) -> None:
        self.stop()
        await self.pool.shutdown()
