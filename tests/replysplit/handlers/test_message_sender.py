"""Tests for message_sender delivery and fallback behavior."""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock

import pytest
from telegram import InputMediaPhoto, ReplyParameters
from telegram.error import BadRequest, RetryAfter

from replysplit.config import SplitOptions
from replysplit.handlers import message_sender
from replysplit.handlers.message_sender import (
    NO_LINK_PREVIEW,
    PARSE_MODE,
    send_media,
    send_payload,
    send_payloads,
    send_with_fallback,
)
from replysplit.html_converter import TELEGRAM_MAX_MESSAGE_LENGTH
from replysplit.payloads import ReplyPayload


@pytest.fixture
def mock_bot():
    bot = AsyncMock()
    counter = iter(range(1, 1000))

    def _message(*_args, **_kwargs):
        sent = MagicMock()
        sent.message_id = next(counter)
        return sent

    bot.send_message.side_effect = _message
    bot.send_photo.side_effect = _message
    bot.send_voice.side_effect = _message
    bot.send_media_group.side_effect = lambda **kwargs: [
        _message() for _ in kwargs["media"]
    ]
    return bot


class TestSendWithFallback:
    @pytest.mark.asyncio
    async def test_sends_html(self, mock_bot: AsyncMock):
        result = await send_with_fallback(mock_bot, 123, "**bold**")

        assert result is not None
        mock_bot.send_message.assert_awaited_once()
        kwargs = mock_bot.send_message.call_args.kwargs
        assert kwargs["chat_id"] == 123
        assert kwargs["parse_mode"] == PARSE_MODE
        assert "<b>bold</b>" in kwargs["text"]
        assert kwargs["link_preview_options"] is NO_LINK_PREVIEW

    @pytest.mark.asyncio
    async def test_falls_back_to_plain_text(self, mock_bot: AsyncMock):
        plain = MagicMock()
        mock_bot.send_message.side_effect = [BadRequest("can't parse entities"), plain]

        result = await send_with_fallback(mock_bot, 123, "**bold**")

        assert result is plain
        assert mock_bot.send_message.await_count == 2
        kwargs = mock_bot.send_message.await_args_list[1].kwargs
        assert kwargs["text"] == "bold"
        assert kwargs.get("parse_mode") is None

    @pytest.mark.asyncio
    async def test_total_failure_returns_none(self, mock_bot: AsyncMock):
        mock_bot.send_message.side_effect = RuntimeError("down")

        assert await send_with_fallback(mock_bot, 123, "text") is None
        assert mock_bot.send_message.await_count == 2

    @pytest.mark.asyncio
    async def test_retry_after_propagates(self, mock_bot: AsyncMock):
        mock_bot.send_message.side_effect = RetryAfter(30)

        with pytest.raises(RetryAfter):
            await send_with_fallback(mock_bot, 123, "text")
        mock_bot.send_message.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_long_code_block_sent_in_html_chunks(self, mock_bot: AsyncMock):
        text = "```\n" + "\n".join(f"value_{i} = {i}" for i in range(600)) + "\n```"
        sent = MagicMock()

        def _limited(**kwargs):
            if len(kwargs["text"]) > TELEGRAM_MAX_MESSAGE_LENGTH:
                raise BadRequest("Message is too long")
            return sent

        mock_bot.send_message.side_effect = _limited

        result = await send_with_fallback(mock_bot, 1, text)

        assert result is sent
        calls = mock_bot.send_message.await_args_list
        assert len(calls) > 1
        assert all(c.kwargs["parse_mode"] == PARSE_MODE for c in calls)
        sent_text = "".join(c.kwargs["text"] for c in calls)
        assert "value_0 = 0" in sent_text
        assert "value_599 = 599" in sent_text

    @pytest.mark.asyncio
    async def test_long_plain_fallback_chunked(self, mock_bot: AsyncMock):
        text = "\n\n".join(f"paragraph {i} " + "word " * 40 for i in range(60))
        sent = MagicMock()

        def _html_rejected(**kwargs):
            if "parse_mode" in kwargs:
                raise BadRequest("can't parse entities")
            if len(kwargs["text"]) > TELEGRAM_MAX_MESSAGE_LENGTH:
                raise BadRequest("Message is too long")
            return sent

        mock_bot.send_message.side_effect = _html_rejected

        result = await send_with_fallback(mock_bot, 1, text)

        assert result is sent
        plain_calls = [
            c for c in mock_bot.send_message.await_args_list
            if "parse_mode" not in c.kwargs
        ]
        assert len(plain_calls) > 1
        sent_text = "\n".join(c.kwargs["text"] for c in plain_calls)
        assert "paragraph 0 " in sent_text
        assert "paragraph 59 " in sent_text


class TestSendMedia:
    @pytest.mark.asyncio
    async def test_no_urls(self, mock_bot: AsyncMock):
        assert await send_media(mock_bot, 1, []) is None
        mock_bot.send_photo.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_single_photo(self, mock_bot: AsyncMock):
        await send_media(mock_bot, 1, ["http://x/a.png"])
        mock_bot.send_photo.assert_awaited_once_with(chat_id=1, photo="http://x/a.png")

    @pytest.mark.asyncio
    async def test_media_group(self, mock_bot: AsyncMock):
        result = await send_media(mock_bot, 1, ["a.png", "b.png"])

        assert result is not None
        media = mock_bot.send_media_group.call_args.kwargs["media"]
        assert [type(m) for m in media] == [InputMediaPhoto, InputMediaPhoto]

    @pytest.mark.asyncio
    async def test_voice(self, mock_bot: AsyncMock):
        await send_media(mock_bot, 1, ["a.ogg"], as_voice=True)
        mock_bot.send_voice.assert_awaited_once_with(chat_id=1, voice="a.ogg")
        mock_bot.send_photo.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_failure_logged_not_raised(self, mock_bot: AsyncMock):
        mock_bot.send_photo.side_effect = BadRequest("wrong file")
        assert await send_media(mock_bot, 1, ["a.png"]) is None

    @pytest.mark.asyncio
    async def test_later_voice_failure_keeps_first(self, mock_bot: AsyncMock):
        first = MagicMock()
        mock_bot.send_voice.side_effect = [first, BadRequest("wrong file")]

        result = await send_media(mock_bot, 1, ["a.ogg", "b.ogg"], as_voice=True)

        assert result is first
        assert mock_bot.send_voice.await_count == 2

    @pytest.mark.asyncio
    async def test_caption_on_single_photo(self, mock_bot: AsyncMock):
        await send_media(mock_bot, 1, ["a.png"], caption="look")
        mock_bot.send_photo.assert_awaited_once_with(
            chat_id=1, photo="a.png", caption="look"
        )

    @pytest.mark.asyncio
    async def test_caption_on_first_group_item_only(self, mock_bot: AsyncMock):
        await send_media(mock_bot, 1, ["a.png", "b.png"], caption="look")

        media = mock_bot.send_media_group.call_args.kwargs["media"]
        assert [m.caption for m in media] == ["look", None]

    @pytest.mark.asyncio
    async def test_caption_on_first_voice_only(self, mock_bot: AsyncMock):
        await send_media(mock_bot, 1, ["a.ogg", "b.ogg"], as_voice=True, caption="hi")

        calls = mock_bot.send_voice.await_args_list
        assert calls[0].kwargs["caption"] == "hi"
        assert "caption" not in calls[1].kwargs


class TestSendPayload:
    @pytest.mark.asyncio
    async def test_reply_to_id_on_text(self, mock_bot: AsyncMock):
        payload = ReplyPayload(text="hi", reply_to_id="77")

        await send_payload(mock_bot, 5, payload, thread_id=9)

        kwargs = mock_bot.send_message.call_args.kwargs
        assert kwargs["message_thread_id"] == 9
        reply = kwargs["reply_parameters"]
        assert isinstance(reply, ReplyParameters)
        assert reply.message_id == 77
        assert reply.allow_sending_without_reply is True

    @pytest.mark.asyncio
    async def test_reply_to_current(self, mock_bot: AsyncMock):
        payload = ReplyPayload(text="hi", reply_to_current=True)

        await send_payload(mock_bot, 5, payload, current_message_id=42)

        reply = mock_bot.send_message.call_args.kwargs["reply_parameters"]
        assert reply.message_id == 42

    @pytest.mark.asyncio
    async def test_non_numeric_reply_id_ignored(self, mock_bot: AsyncMock):
        await send_payload(mock_bot, 5, ReplyPayload(text="hi", reply_to_id="abc"))
        assert "reply_parameters" not in mock_bot.send_message.call_args.kwargs

    @pytest.mark.asyncio
    async def test_media_first_carries_reply(self, mock_bot: AsyncMock):
        payload = ReplyPayload(text="caption", media_url="a.png", reply_to_id="3")

        first = await send_payload(mock_bot, 5, payload)

        assert first is not None
        assert first.message_id == 1
        assert mock_bot.send_photo.call_args.kwargs["reply_parameters"].message_id == 3
        assert "reply_parameters" not in mock_bot.send_message.call_args.kwargs

    @pytest.mark.asyncio
    async def test_no_text_no_media(self, mock_bot: AsyncMock):
        assert await send_payload(mock_bot, 5, ReplyPayload()) is None
        mock_bot.send_message.assert_not_awaited()


class TestSendPayloads:
    @pytest.mark.asyncio
    async def test_split_payloads_sent_in_order(self, mock_bot: AsyncMock):
        payload = ReplyPayload(
            text="part1\n\npart2\n\npart3", media_url="a.png", reply_to_id="10"
        )

        sent = await send_payloads(
            mock_bot, 5, [payload], split_config={"maxParagraphs": 1}
        )

        assert len(sent) == 3
        texts = [c.kwargs["text"] for c in mock_bot.send_message.await_args_list]
        assert [t.strip() for t in texts] == ["part1", "part2", "part3"]
        mock_bot.send_photo.assert_awaited_once()
        for call in mock_bot.send_message.await_args_list:
            assert "reply_parameters" not in call.kwargs

    @pytest.mark.asyncio
    async def test_code_block_sent_as_one_message(self, mock_bot: AsyncMock):
        text = "Intro.\n\n```python\nx = 1\n\ny = 2\n```\n\nOutro."

        await send_payloads(
            mock_bot, 5, [ReplyPayload(text=text)], split_config=SplitOptions(max_paragraphs=1)
        )

        assert mock_bot.send_message.await_count == 3
        code_html = mock_bot.send_message.await_args_list[1].kwargs["text"]
        assert "<pre" in code_html
        assert "x = 1" in code_html
        assert "y = 2" in code_html

    @pytest.mark.asyncio
    async def test_uses_configured_split_setting(self, mock_bot: AsyncMock, monkeypatch):
        from replysplit import payloads

        monkeypatch.setattr(
            payloads.config, "split_long_messages", SplitOptions(max_paragraphs=1)
        )

        await send_payloads(mock_bot, 5, [ReplyPayload(text="a\n\nb")])

        assert mock_bot.send_message.await_count == 2

    @pytest.mark.asyncio
    async def test_failed_payload_skipped(self, mock_bot: AsyncMock, monkeypatch):
        monkeypatch.setattr(
            message_sender,
            "send_with_fallback",
            AsyncMock(side_effect=[None, MagicMock()]),
        )

        sent = await send_payloads(
            mock_bot, 5, [ReplyPayload(text="a\n\nb")], split_config={"maxParagraphs": 1}
        )

        assert len(sent) == 1

    @pytest.mark.asyncio
    async def test_oversized_code_block_delivered(self, mock_bot: AsyncMock):
        text = "```\n" + "\n".join(f"row {i:04d} " + "x" * 20 for i in range(250)) + "\n```"
        sent = MagicMock()

        def _limited(**kwargs):
            if len(kwargs["text"]) > TELEGRAM_MAX_MESSAGE_LENGTH:
                raise BadRequest("Message is too long")
            return sent

        mock_bot.send_message.side_effect = _limited

        result = await send_payloads(
            mock_bot, 1, [ReplyPayload(text=text)], split_config=True
        )

        assert result == [sent]
        assert mock_bot.send_message.await_count > 1
