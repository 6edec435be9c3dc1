"""Group-chat batching of inbound messages, usable as an inbound hook.

Private chats pass straight through. Group messages are buffered per chat
and flushed as one combined message when the batch reaches BATCH_SIZE
messages, after IDLE_TIMEOUT seconds without a new message, or MAX_WAIT
seconds after the first buffered message, whichever comes first.

On flush the last message's update is processed, with the media of every
buffered message and (for more than one message) a body_override listing
each message as "[HH:MM] Sender Name: text".
"""

import asyncio
import dataclasses
import logging
from dataclasses import dataclass, field
from datetime import datetime

from telegram import Message
from telegram.constants import ChatType

from .inbound_hook import InboundHookArgs, InboundOptions

logger = logging.getLogger(__name__)

BATCH_SIZE = 3
IDLE_TIMEOUT = 5.0  # seconds
MAX_WAIT = 15.0  # seconds

_GROUP_CHAT_TYPES = (ChatType.GROUP, ChatType.SUPERGROUP)


@dataclass
class _BufferedMessage:
    args: InboundHookArgs
    sender_name: str
    text: str
    timestamp: datetime


@dataclass
class _Batch:
    messages: list[_BufferedMessage] = field(default_factory=list)
    idle_timer: asyncio.Task[None] | None = None
    max_timer: asyncio.Task[None] | None = None


def _sender_name(message: Message) -> str:
    user = message.from_user
    if user is None:
        return ""
    return " ".join(part for part in (user.first_name, user.last_name) if part)


def _local_time(message: Message) -> datetime:
    if message.date is None:
        return datetime.now()
    return message.date.astimezone()


def _format_batch(messages: list[_BufferedMessage]) -> str:
    """Render buffered messages as one line each with time and sender."""
    return "\n".join(
        f"[{m.timestamp:%H:%M}] {m.sender_name}: {m.text}" for m in messages
    )


class InboundBatcher:
    """Buffers group messages per chat and flushes them in batches."""

    def __init__(
        self,
        batch_size: int = BATCH_SIZE,
        idle_timeout: float = IDLE_TIMEOUT,
        max_wait: float = MAX_WAIT,
    ) -> None:
        self.batch_size = batch_size
        self.idle_timeout = idle_timeout
        self.max_wait = max_wait
        self._batches: dict[int, _Batch] = {}

    def pending_count(self, chat_id: int) -> int:
        batch = self._batches.get(chat_id)
        return len(batch.messages) if batch else 0

    async def on_inbound_message(self, args: InboundHookArgs) -> None:
        message = args.update.message
        if message is None or message.chat.type not in _GROUP_CHAT_TYPES:
            await args.process_message(
                args.update, args.all_media, args.store_allow_from, args.options
            )
            return

        key = message.chat.id
        batch = self._batches.setdefault(key, _Batch())
        batch.messages.append(
            _BufferedMessage(
                args=args,
                sender_name=_sender_name(message),
                text=message.text or message.caption or "",
                timestamp=_local_time(message),
            )
        )

        if batch.idle_timer is not None:
            batch.idle_timer.cancel()
            batch.idle_timer = None

        if len(batch.messages) >= self.batch_size:
            await self.flush(key)
            return

        batch.idle_timer = asyncio.create_task(self._flush_after(key, self.idle_timeout))
        if batch.max_timer is None:
            batch.max_timer = asyncio.create_task(self._flush_after(key, self.max_wait))

    async def _flush_after(self, key: int, delay: float) -> None:
        await asyncio.sleep(delay)
        try:
            await self.flush(key)
        except Exception as e:
            logger.error("Failed to flush batch for chat %d: %s", key, e)

    async def flush(self, key: int) -> None:
        """Process the buffered batch for a chat, if any."""
        batch = self._batches.pop(key, None)
        if batch is None or not batch.messages:
            return

        current = asyncio.current_task()
        for timer in (batch.idle_timer, batch.max_timer):
            if timer is not None and timer is not current:
                timer.cancel()

        messages = batch.messages
        last = messages[-1].args
        combined_media = [media for m in messages for media in m.args.all_media]

        options = last.options
        if len(messages) > 1:
            options = dataclasses.replace(
                options or InboundOptions(), body_override=_format_batch(messages)
            )

        logger.info("Flushing %d buffered message(s) for chat %d", len(messages), key)
        await last.process_message(
            last.update, combined_media, last.store_allow_from, options
        )

    async def flush_all(self) -> None:
        """Flush every pending batch (e.g. on shutdown)."""
        for key in list(self._batches):
            await self.flush(key)
