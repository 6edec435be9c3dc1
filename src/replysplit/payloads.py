"""Reply payloads and splitting of long replies into follow-up payloads.

Provides:
  - ReplyPayload: one outbound reply (text plus optional media / reply info).
  - apply_message_splitting(): expands text-heavy payloads into one payload
    per message produced by split_message().
  - split_replies(): same, using the configured split setting.

Only the first payload of an expanded reply keeps its media and reply
association; continuation payloads are sent as plain follow-ups.
"""

import dataclasses
import logging
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from .config import SplitOptions, config
from .message_splitter import split_message

logger = logging.getLogger(__name__)

# Fields reset to their defaults on every payload after the first
CONTINUATION_STRIPPED_FIELDS = (
    "media_url",
    "media_urls",
    "reply_to_id",
    "reply_to_tag",
    "reply_to_current",
    "audio_as_voice",
)

SplitConfig = SplitOptions | Mapping[str, Any] | bool | None


@dataclass
class ReplyPayload:
    """Outbound reply produced by the agent for one channel."""

    text: str | None = None
    media_url: str | None = None
    media_urls: list[str] | None = None
    reply_to_id: str | None = None
    reply_to_tag: bool = False  # Reply target came from an inline [[reply]] tag
    reply_to_current: bool = False  # Reply to the inbound message being handled
    audio_as_voice: bool = False
    channel_data: dict[str, Any] | None = None  # Channel-specific structured data

    def media_list(self) -> list[str]:
        """All media URLs attached to this payload."""
        if self.media_urls:
            return list(self.media_urls)
        if self.media_url:
            return [self.media_url]
        return []


_STRIPPED_DEFAULTS = {
    f.name: f.default
    for f in dataclasses.fields(ReplyPayload)
    if f.name in CONTINUATION_STRIPPED_FIELDS
}


def _resolve_split_options(split_config: SplitConfig) -> SplitOptions:
    if isinstance(split_config, SplitOptions):
        return split_config
    if isinstance(split_config, Mapping):
        return SplitOptions.from_mapping(split_config)
    return SplitOptions()


def apply_message_splitting(
    replies: list[ReplyPayload],
    split_config: SplitConfig,
) -> list[ReplyPayload]:
    """Split long text replies according to split_config.

    None or False disables splitting and returns replies as is; any mapping,
    even an empty one, enables it with the remaining limits at their
    defaults. Payloads carrying channel_data (even an empty dict), payloads
    without text and payloads that fit in one message are kept as the
    original objects.
    """
    if split_config is None or split_config is False:
        return replies

    options = _resolve_split_options(split_config)
    split_result: list[ReplyPayload] = []

    for reply in replies:
        if not isinstance(reply.text, str) or reply.channel_data is not None:
            split_result.append(reply)
            continue

        parts = split_message(reply.text, options)
        if len(parts) <= 1:
            split_result.append(reply)
            continue

        logger.debug(
            "Split reply into %d messages (max_lines=%d, max_paragraphs=%d)",
            len(parts),
            options.max_lines,
            options.max_paragraphs,
        )
        split_result.append(dataclasses.replace(reply, text=parts[0]))
        for part in parts[1:]:
            split_result.append(
                dataclasses.replace(reply, text=part, **_STRIPPED_DEFAULTS)
            )

    return split_result


def split_replies(replies: list[ReplyPayload]) -> list[ReplyPayload]:
    """Apply the configured split setting to replies."""
    return apply_message_splitting(replies, config.split_long_messages)
