"""Gemini-backed business assistant."""

from tijarati.services.assistant.gemini_service import (
    LANGUAGES,
    AssistantError,
    GeminiAssistant,
    MissingApiKeyError,
)

__all__ = [
    "AssistantError",
    "GeminiAssistant",
    "LANGUAGES",
    "MissingApiKeyError",
]
