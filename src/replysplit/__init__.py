"""replysplit: split long bot replies into paragraph-bounded chat messages."""

from .config import SplitOptions
from .message_splitter import split_message
from .payloads import ReplyPayload, apply_message_splitting

__all__ = ["ReplyPayload", "SplitOptions", "apply_message_splitting", "split_message"]
