"""Tests for the Gemini assistant (the model is always mocked)."""

from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import pytest

from tijarati.services.assistant import (
    AssistantError,
    GeminiAssistant,
    MissingApiKeyError,
)
from tijarati.services.assistant import gemini_service
from tijarati.validation import ValidationError


@pytest.fixture
def fake_genai(monkeypatch):
    genai = MagicMock()
    model = genai.GenerativeModel.return_value
    model.generate_content_async = AsyncMock(
        return_value=SimpleNamespace(text="You sold ٣ loaves")
    )
    monkeypatch.setattr(gemini_service, "genai", genai)
    return genai


@pytest.fixture
def assistant(secrets):
    return GeminiAssistant(secrets)


class TestKeyManagement:

    async def test_status_without_key(self, assistant):
        status = await assistant.status()
        assert status["enabled"] is False
        assert status["reason"] == "missing_api_key"
        assert status["model"] == "gemini-2.5-flash"

    async def test_configured_key(self, monkeypatch, secrets):
        monkeypatch.setenv("TIJARATI_GEMINI_API_KEY", "env-key")
        assistant = GeminiAssistant(secrets)
        assert await assistant.effective_key() == "env-key"
        assert (await assistant.status())["enabled"] is True

    async def test_runtime_key_wins(self, monkeypatch, secrets):
        monkeypatch.setenv("TIJARATI_GEMINI_API_KEY", "env-key")
        assistant = GeminiAssistant(secrets)
        assert await assistant.set_key(" runtime-key ") is False
        assert await assistant.effective_key() == "runtime-key"

    async def test_blank_key_clears(self, assistant):
        await assistant.set_key("k")
        assert await assistant.set_key("   ") is True
        assert await assistant.effective_key() is None

    async def test_clear_key(self, assistant):
        await assistant.set_key("k")
        await assistant.clear_key()
        assert (await assistant.status())["enabled"] is False


class TestAsk:
    """Tests for question answering."""

    async def test_missing_key_is_checked_first(self, assistant, fake_genai):
        with pytest.raises(MissingApiKeyError, match="missing_api_key"):
            await assistant.ask("")
        fake_genai.configure.assert_not_called()

    async def test_blank_message(self, assistant, fake_genai):
        await assistant.set_key("k")
        with pytest.raises(ValidationError, match="Missing message"):
            await assistant.ask("   ")

    async def test_reply_digits_are_latin(self, assistant, fake_genai):
        await assistant.set_key("k")
        reply = await assistant.ask("How many loaves?", "darija", {"totalSales": 30})
        assert reply == "You sold 3 loaves"
        fake_genai.configure.assert_called_once_with(api_key="k")

    async def test_prompt_carries_language_and_summary(self, assistant, fake_genai):
        await assistant.set_key("k")
        await assistant.ask("Who owes me?", "french", {"pendingDebts": 50})
        prompt = fake_genai.GenerativeModel.return_value.generate_content_async.call_args.args[0]
        assert "French" in prompt
        assert '"pendingDebts": 50' in prompt
        assert prompt.endswith("USER QUESTION: Who owes me?")

    async def test_unknown_language_falls_back_to_english(self, assistant):
        assert "Use the user's language: English." in assistant.build_prompt("hi", "klingon", {})

    async def test_model_is_reused_for_same_key(self, assistant, fake_genai):
        await assistant.set_key("k")
        await assistant.ask("one")
        await assistant.ask("two")
        assert fake_genai.GenerativeModel.call_count == 1

    async def test_model_failure(self, assistant, fake_genai):
        fake_genai.GenerativeModel.return_value.generate_content_async.side_effect = RuntimeError("quota")
        await assistant.set_key("k")
        with pytest.raises(AssistantError, match="Gemini request failed: quota"):
            await assistant.ask("hi")

    async def test_empty_reply(self, assistant, fake_genai):
        fake_genai.GenerativeModel.return_value.generate_content_async.return_value = SimpleNamespace(text="  ")
        await assistant.set_key("k")
        with pytest.raises(AssistantError, match="No reply from model"):
            await assistant.ask("hi")


class TestAssistantRequests:
    """AI_* requests through the dispatcher."""

    async def test_status_request(self, call):
        result = await call("AI_STATUS")
        assert result["success"] is True
        assert result["enabled"] is False

    async def test_set_and_clear_requests(self, call):
        assert await call("AI_SET_GEMINI_KEY", {"key": "k"}) == {"success": True}
        assert (await call("AI_STATUS"))["enabled"] is True
        assert await call("AI_SET_GEMINI_KEY", {"key": ""}) == {"success": True, "cleared": True}
        assert await call("AI_CLEAR_GEMINI_KEY") == {"success": True}

    async def test_ask_without_key(self, call):
        assert await call("AI_GEMINI", {"message": "hi"}) == {
            "success": False,
            "error": "missing_api_key",
        }

    async def test_ask_uses_ledger_summary(self, call, fake_genai):
        await call("SAVE_TRANSACTION", {"id": "t1", "type": "sale", "item": "bread", "amount": 30})
        await call("AI_SET_GEMINI_KEY", {"key": "k"})

        result = await call("AI_GEMINI", {"message": "How am I doing?", "lang": "english"})

        assert result == {"success": True, "reply": "You sold 3 loaves"}
        prompt = fake_genai.GenerativeModel.return_value.generate_content_async.call_args.args[0]
        assert '"totalSales": 30.0' in prompt
