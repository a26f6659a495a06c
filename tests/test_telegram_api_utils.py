from unittest.mock import AsyncMock

import pytest
from aiogram.exceptions import TelegramForbiddenError, TelegramRetryAfter

from carmcards.telegram.api_utils import safe_api_call, safe_reply, safe_reply_photo


class DummyForbidden(TelegramForbiddenError):
    def __init__(self) -> None:
        Exception.__init__(self, "forbidden")


class DummyRetryAfter(TelegramRetryAfter):
    def __init__(self, retry_after: float) -> None:
        Exception.__init__(self, f"retry after {retry_after}")
        self.retry_after = retry_after


@pytest.mark.asyncio()
async def test_safe_api_call_returns_result():
    async def ok() -> int:
        return 42

    result = await safe_api_call("test", ok)
    assert result == 42


@pytest.mark.asyncio()
async def test_safe_api_call_handles_forbidden():
    async def forbidden() -> None:
        raise DummyForbidden()

    result = await safe_api_call("forbidden", forbidden)
    assert result is None


@pytest.mark.asyncio()
async def test_safe_api_call_retries_on_retry_after(monkeypatch):
    mock_call = AsyncMock(side_effect=[DummyRetryAfter(0.0), 7])

    async def fake_sleep(delay: float) -> None:
        assert delay >= 0.0

    monkeypatch.setattr("carmcards.telegram.api_utils.asyncio.sleep", fake_sleep)

    result = await safe_api_call("retry", mock_call, retries=2)
    assert result == 7
    assert mock_call.await_count == 2


@pytest.mark.asyncio()
async def test_safe_api_call_gives_up_after_retries(monkeypatch):
    mock_call = AsyncMock(side_effect=[DummyRetryAfter(0.0), DummyRetryAfter(0.0)])

    async def fake_sleep(delay: float) -> None:
        return None

    monkeypatch.setattr("carmcards.telegram.api_utils.asyncio.sleep", fake_sleep)

    result = await safe_api_call("retry", mock_call, retries=2)
    assert result is None
    assert mock_call.await_count == 2


@pytest.mark.asyncio()
async def test_safe_reply_photo_falls_back_to_text():
    message = AsyncMock()
    message.answer_photo.side_effect = DummyForbidden()

    assert await safe_reply_photo(message, "https://example.com/1.png", "Card #1")
    message.answer.assert_awaited_once_with("Card #1")


@pytest.mark.asyncio()
async def test_safe_reply_without_message():
    assert not await safe_reply(None, "hello")
