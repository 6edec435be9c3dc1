"""Example inbound hook: batch group-chat messages.

Copy this file to ~/.replysplit/telegram_hook.py, or point
REPLYSPLIT_TELEGRAM_HOOK at it.

  - Private chat messages pass through immediately
  - Group messages are buffered and flushed after 3 messages or 5s idle
    (at most 15s after the first one)
"""

from replysplit.handlers.inbound_hook import InboundHookArgs
from replysplit.handlers.message_batcher import InboundBatcher

_batcher = InboundBatcher(batch_size=3, idle_timeout=5.0, max_wait=15.0)


async def on_inbound_message(args: InboundHookArgs) -> None:
    args.log(f"inbound update {args.update.update_id}")
    await _batcher.on_inbound_message(args)
