"""Telegram delivery of reply payloads.

Provides utility functions for sending split reply payloads with HTML
formatting (via chatgpt-md-converter) and fallback to plain text on failure.

RetryAfter is always re-raised: flood control belongs to the caller's queue.
"""

import logging
from typing import Any

from telegram import Bot, InputMediaPhoto, LinkPreviewOptions, Message, ReplyParameters
from telegram.error import RetryAfter

from ..html_converter import html_to_plain, render_chunks, split_plain_text
from ..payloads import ReplyPayload, SplitConfig, apply_message_splitting, split_replies

logger = logging.getLogger(__name__)

PARSE_MODE = "HTML"

# Disable link previews in all messages to reduce visual noise
NO_LINK_PREVIEW = LinkPreviewOptions(is_disabled=True)


async def _send_plain_chunks(
    bot: Bot,
    chat_id: int,
    text: str,
    **kwargs: Any,
) -> Message | None:
    """Send plain text in chunks, return the first message."""
    first: Message | None = None
    for chunk in split_plain_text(text):
        sent = await bot.send_message(chat_id=chat_id, text=chunk, **kwargs)
        if first is None:
            first = sent
    return first


async def send_with_fallback(
    bot: Bot,
    chat_id: int,
    text: str,
    **kwargs: Any,
) -> Message | None:
    """Send formatted message with fallback to plain text.

    The rendered HTML is split to fit Telegram's message length limit and
    every HTML chunk that Telegram rejects is resent as plain text.
    Returns the first sent Message (or None on total failure).
    """
    kwargs.setdefault("link_preview_options", NO_LINK_PREVIEW)
    first: Message | None = None
    for chunk in render_chunks(text):
        try:
            sent = await bot.send_message(
                chat_id=chat_id,
                text=chunk,
                parse_mode=PARSE_MODE,
                **kwargs,
            )
        except RetryAfter:
            raise
        except Exception as e:
            logger.debug("Formatted send failed, falling back to plain text: %s", e)
            try:
                sent = await _send_plain_chunks(
                    bot, chat_id, html_to_plain(chunk), **kwargs
                )
            except RetryAfter:
                raise
            except Exception as fallback_error:
                logger.error(
                    "Failed to send message to %d: %s", chat_id, fallback_error
                )
                continue
        if first is None:
            first = sent
    return first


async def send_media(
    bot: Bot,
    chat_id: int,
    urls: list[str],
    *,
    as_voice: bool = False,
    caption: str | None = None,
    **kwargs: Any,
) -> Message | None:
    """Send media URLs. Several photos go out as one media group.

    caption goes on the first item only. A failure after the first item
    was sent still returns that first message.
    """
    if not urls:
        return None
    caption_kwargs: dict[str, Any] = {"caption": caption} if caption else {}
    first: Message | None = None
    try:
        if as_voice:
            for url in urls:
                extra = caption_kwargs if first is None else {}
                sent = await bot.send_voice(
                    chat_id=chat_id, voice=url, **extra, **kwargs
                )
                if first is None:
                    first = sent
            return first
        if len(urls) == 1:
            return await bot.send_photo(
                chat_id=chat_id, photo=urls[0], **caption_kwargs, **kwargs
            )
        sent_group = await bot.send_media_group(
            chat_id=chat_id,
            media=[
                InputMediaPhoto(media=url, caption=caption if i == 0 else None)
                for i, url in enumerate(urls)
            ],
            **kwargs,
        )
        return sent_group[0] if sent_group else None
    except RetryAfter:
        raise
    except Exception as e:
        logger.error("Failed to send media to %d: %s", chat_id, e)
        return first


def _reply_parameters(
    payload: ReplyPayload,
    current_message_id: int | None,
) -> ReplyParameters | None:
    """Resolve the payload's reply association to Telegram reply parameters."""
    target: int | None = None
    if payload.reply_to_id:
        try:
            target = int(payload.reply_to_id)
        except ValueError:
            logger.warning("Ignoring non-numeric reply_to_id %r", payload.reply_to_id)
    elif payload.reply_to_current:
        target = current_message_id
    if target is None:
        return None
    return ReplyParameters(message_id=target, allow_sending_without_reply=True)


def _send_kwargs(thread_id: int | None) -> dict[str, Any]:
    """Build message_thread_id kwargs for bot.send_*()."""
    if thread_id is not None:
        return {"message_thread_id": thread_id}
    return {}


async def send_payload(
    bot: Bot,
    chat_id: int,
    payload: ReplyPayload,
    *,
    thread_id: int | None = None,
    current_message_id: int | None = None,
) -> Message | None:
    """Send one payload: media first, then text.

    Only the first Telegram message of the payload carries the reply
    association. Returns that first message.
    """
    reply_parameters = _reply_parameters(payload, current_message_id)
    first: Message | None = None

    media = payload.media_list()
    if media:
        kwargs = _send_kwargs(thread_id)
        if reply_parameters is not None:
            kwargs["reply_parameters"] = reply_parameters
        first = await send_media(
            bot, chat_id, media, as_voice=payload.audio_as_voice, **kwargs
        )

    if payload.text:
        kwargs = _send_kwargs(thread_id)
        if reply_parameters is not None and first is None:
            kwargs["reply_parameters"] = reply_parameters
        sent = await send_with_fallback(bot, chat_id, payload.text, **kwargs)
        if first is None:
            first = sent

    return first


async def send_payloads(
    bot: Bot,
    chat_id: int,
    payloads: list[ReplyPayload],
    *,
    split_config: SplitConfig = None,
    thread_id: int | None = None,
    current_message_id: int | None = None,
) -> list[Message]:
    """Split payloads (explicit split_config, else the configured one) and send them in order."""
    if split_config is None:
        expanded = split_replies(payloads)
    else:
        expanded = apply_message_splitting(payloads, split_config)

    if len(expanded) != len(payloads):
        logger.info(
            "Split %d payload(s) into %d for chat %d",
            len(payloads),
            len(expanded),
            chat_id,
        )

    sent_messages: list[Message] = []
    for payload in expanded:
        sent = await send_payload(
            bot,
            chat_id,
            payload,
            thread_id=thread_id,
            current_message_id=current_message_id,
        )
        if sent is not None:
            sent_messages.append(sent)
    return sent_messages
