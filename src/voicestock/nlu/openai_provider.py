"""OpenAI chat-completions NLU provider.

This provider asks an OpenAI chat model to extract inventory commands as JSON.
It requires an API key to be configured. Its output is untrusted: the
interpreter normalizes it and recomputes completeness.
"""

import json
import logging
import os

import openai

from voicestock.commands.session_context import ContextEntry, RecentCommand

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = """You are a natural language processor for an inventory management system. \
Extract one or more inventory commands from the user's input. Each command has:

action: 'add', 'remove', 'set', or 'undo' (empty string if not found)
item: the item name, including attributes like size (empty string if not found)
quantity: a positive number if specified, null if not found
unit: standard unit e.g. 'gallons', 'pounds', 'bags', 'boxes' (empty string if not found)
confidence: 0 to 1

If the user says 'more' or 'another X', infer the item and unit from the last command \
in the history. For 'undo' or 'revert last', return a single command with action 'undo'.

Rules:
1. Statements about CURRENT inventory levels use action 'set' \
("We have 30 gallons of whole milk", "30 gallons of whole milk").
2. Only use 'add' or 'remove' when explicitly adding to or removing from inventory.
3. Keep attributes in the item name: "60 bags of 12 ounce paper cups" -> item "12 ounce paper cups".
4. "X units of Y item" is a single command; several of them joined by "and" or commas \
are separate commands.
5. Do not invent missing fields for a fragment that is clearly unfinished; leave them empty.
6. If the input is not an inventory command, return an empty list.

Return a JSON object with a 'commands' array containing the parsed commands."""


class OpenAINLUProvider:
    """OpenAI chat-completions provider with timeouts and SDK-level retries."""

    def __init__(
        self,
        api_key: str | None = None,
        timeout: float = 10.0,
        max_retries: int = 2,
    ):
        """Initialize OpenAI NLU provider.

        Args:
            api_key: OpenAI API key (defaults to OPENAI_API_KEY env var)
            timeout: Request timeout in seconds (default: 10)
            max_retries: Maximum number of SDK retry attempts (default: 2)

        Raises:
            ValueError: If OpenAI API key is not configured
        """
        self.api_key = api_key or os.environ.get("OPENAI_API_KEY")
        if not self.api_key:
            raise ValueError(
                "OPENAI_API_KEY environment variable is required for OpenAI NLU provider"
            )

        self.model = os.environ.get("OPENAI_NLU_MODEL", "gpt-4o-mini")
        self.timeout = float(os.environ.get("VOICESTOCK_NLU_TIMEOUT", str(timeout)))
        self.max_retries = max_retries
        self.client = openai.AsyncOpenAI(
            api_key=self.api_key,
            timeout=self.timeout,
            max_retries=self.max_retries,
        )

        logger.info(
            "Initialized OpenAI NLU provider: model=%s, timeout=%s, max_retries=%s",
            self.model,
            self.timeout,
            self.max_retries,
        )

    def build_messages(
        self,
        fragment: str,
        conversation_history: list[ContextEntry],
        recent_commands: list[RecentCommand],
    ) -> list[dict[str, str]]:
        """Build the chat messages for one extraction request."""
        user_content = (
            f"Transcription: {fragment}\n"
            f"Recent Commands: {json.dumps([c.to_dict() for c in recent_commands])}\n"
            f"Conversation History: {json.dumps([e.to_dict() for e in conversation_history])}"
        )
        return [
            {"role": "system", "content": SYSTEM_PROMPT},
            {"role": "user", "content": user_content},
        ]

    async def extract(
        self,
        fragment: str,
        conversation_history: list[ContextEntry],
        recent_commands: list[RecentCommand],
    ) -> str:
        """Return the model's raw JSON content.

        Raises:
            openai.OpenAIError: On API, network or timeout failures
        """
        response = await self.client.chat.completions.create(
            model=self.model,
            messages=self.build_messages(fragment, conversation_history, recent_commands),
            temperature=0.3,
            max_tokens=300,
            response_format={"type": "json_object"},
        )

        content = response.choices[0].message.content or ""
        logger.debug("OpenAI NLU response content: %s", content)
        return content
