"""Language-understanding (NLU) abstraction layer.

Provides an interface for providers that extract raw inventory commands from a
transcript fragment, with a deterministic rule-based default for CI/dev.
"""

import logging
import os
from typing import Any, Protocol

from voicestock.commands.session_context import ContextEntry, RecentCommand

logger = logging.getLogger(__name__)


class LanguageUnderstandingProvider(Protocol):
    """Protocol for language-understanding providers."""

    async def extract(
        self,
        fragment: str,
        conversation_history: list[ContextEntry],
        recent_commands: list[RecentCommand],
    ) -> Any:
        """Extract raw candidate commands from one fragment.

        Args:
            fragment: Final transcript text
            conversation_history: Recent turns, oldest first
            recent_commands: Recently completed commands, oldest first

        Returns:
            JSON text, a list of command objects, or a single command object.
            Results are untrusted and normalized by the caller.
        """
        ...


def get_nlu_provider() -> LanguageUnderstandingProvider:
    """Get the configured language-understanding provider.

    Returns the appropriate provider based on environment configuration:
    - If VOICESTOCK_NLU_PROVIDER=rules or unset: returns RuleBasedNLUProvider
    - If VOICESTOCK_NLU_PROVIDER=openai: returns OpenAINLUProvider (if configured)

    Environment variables:
        VOICESTOCK_NLU_PROVIDER: Provider type (default: "rules", options: "rules", "openai")
        OPENAI_API_KEY: Required for openai provider
    """
    from voicestock.nlu.rules_provider import RuleBasedNLUProvider

    provider_type = os.environ.get("VOICESTOCK_NLU_PROVIDER", "rules").lower()

    if provider_type == "rules":
        return RuleBasedNLUProvider()
    elif provider_type == "openai":
        from voicestock.nlu.openai_provider import OpenAINLUProvider

        try:
            return OpenAINLUProvider()
        except ValueError as e:
            logger.error("Failed to initialize OpenAI NLU provider: %s", e)
            logger.warning("Falling back to rule-based NLU provider")
            return RuleBasedNLUProvider()
    else:
        logger.warning("Unknown NLU provider '%s', falling back to rules", provider_type)
        return RuleBasedNLUProvider()
