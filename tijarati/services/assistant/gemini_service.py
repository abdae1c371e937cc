"""
Gemini Assistant

A thin question-answering wrapper over Google Gemini.

RESPONSIBILITIES:
- Report whether an API key is available
- Keep a runtime API key in the secret store
- Answer a question given a ledger summary

BOUNDARIES:
- NEVER reads or writes ledger records itself (the caller supplies the summary)
- NEVER logs the API key or the question text
"""

import json
from typing import Any, Optional

import google.generativeai as genai
import structlog

from tijarati.config import get_settings
from tijarati.errors import TijaratiError
from tijarati.services.security.secrets import SecretStore
from tijarati.validation import ValidationError, to_latin_digits


logger = structlog.get_logger(__name__)


LANGUAGES = {
    "darija": "Moroccan Darija (Arabic script when possible)",
    "arabic": "Arabic",
    "french": "French",
    "english": "English",
}

SYSTEM_PROMPT = """You are Tijarati's assistant: friendly, practical and proactive.

You receive:
1) DATA SUMMARY (JSON) from the user's bookkeeping app
2) USER QUESTION

Guidelines:
- Use the data summary when relevant, but you may also answer general questions.
- If information is missing, ask 1-3 precise follow-up questions.
- For business or investing questions, give balanced advice and 3-6 concrete next steps.
- Investment guidance is general education, not professional financial advice. Do not guarantee outcomes.
- Keep it concise (up to about 10 short sentences or 4-8 bullets).
- Use the user's language: {language}.
- IMPORTANT: Use Western/Latin digits (0-9) for ALL numbers."""


class AssistantError(TijaratiError):
    """The assistant could not produce a reply."""
    pass


class MissingApiKeyError(AssistantError):

    def __init__(self):
        super().__init__("missing_api_key")


class GeminiAssistant:
    """
    Gemini-backed assistant.

    The runtime key in the secret store wins over the configured key.
    """

    def __init__(self, secrets: SecretStore):
        self._settings = get_settings().gemini
        self._key_name = get_settings().security.gemini_key_name
        self._secrets = secrets
        self._model = None
        self._model_key: Optional[str] = None

    @property
    def model_name(self) -> str:
        return self._settings.model_name

    async def effective_key(self) -> Optional[str]:
        runtime = (await self._secrets.get(self._key_name) or "").strip()
        return runtime or self._settings.api_key

    async def status(self) -> dict:
        key = await self.effective_key()
        return {
            "enabled": bool(key),
            "model": self.model_name,
            "reason": "ok" if key else "missing_api_key",
        }

    async def set_key(self, key: str) -> bool:
        """
        Store a runtime API key. A blank key clears it.

        Returns:
            True if the key was cleared
        """
        key = str(key or "").strip()
        if not key:
            await self.clear_key()
            return True
        await self._secrets.set(self._key_name, key)
        self._model = None
        return False

    async def clear_key(self) -> None:
        await self._secrets.delete(self._key_name)
        self._model = None

    def _get_model(self, key: str):
        """Configure Google Generative AI for `key` (cached per key)."""
        if self._model is None or self._model_key != key:
            genai.configure(api_key=key)
            self._model = genai.GenerativeModel(
                model_name=self._settings.model_name,
                generation_config={
                    "temperature": self._settings.temperature,
                    "max_output_tokens": self._settings.max_tokens,
                },
            )
            self._model_key = key
        return self._model

    def build_prompt(self, message: str, lang: str, summary: dict[str, Any]) -> str:
        system = SYSTEM_PROMPT.format(language=LANGUAGES.get(lang, "English"))
        return (
            f"{system}\n\n"
            f"DATA SUMMARY (JSON): {json.dumps(summary, ensure_ascii=False, default=str)}\n\n"
            f"USER QUESTION: {message}"
        )

    async def ask(
        self,
        message: str,
        lang: str = "english",
        summary: Optional[dict[str, Any]] = None,
    ) -> str:
        """
        Answer a question about the user's business.

        Args:
            message: The user's question
            lang: darija, arabic, french or english
            summary: Ledger figures used as context

        Returns:
            Reply text with all digits as 0-9

        Raises:
            MissingApiKeyError: no key configured
            ValidationError: blank message
            AssistantError: the model call failed or returned nothing
        """
        key = await self.effective_key()
        if not key:
            raise MissingApiKeyError()

        message = str(message or "").strip()
        if not message:
            raise ValidationError("Missing message")

        prompt = self.build_prompt(message, lang, summary or {})
        try:
            response = await self._get_model(key).generate_content_async(prompt)
            text = (response.text or "").strip()
        except Exception as e:
            logger.warning("assistant_request_failed", model=self.model_name, error=str(e))
            raise AssistantError(f"Gemini request failed: {e}")

        if not text:
            raise AssistantError("No reply from model")
        return to_latin_digits(text)
