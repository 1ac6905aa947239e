"""Unit tests for NLU provider selection and the rule-based and OpenAI providers."""

import asyncio
import json
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import openai
import pytest

from voicestock.commands.interpreter import CommandInterpreter
from voicestock.commands.session_context import ContextEntry, RecentCommand
from voicestock.nlu import get_nlu_provider
from voicestock.nlu.openai_provider import SYSTEM_PROMPT, OpenAINLUProvider
from voicestock.nlu.rules_provider import (
    RuleBasedNLUProvider,
    clean_item,
    normalize_unit,
    parse_quantity,
)


def _fields(command: dict) -> tuple:
    return (command["action"], command["item"], command["quantity"], command["unit"])


def test_get_nlu_provider_default_rules(monkeypatch):
    """Test that get_nlu_provider returns RuleBasedNLUProvider by default."""
    monkeypatch.delenv("VOICESTOCK_NLU_PROVIDER", raising=False)

    provider = get_nlu_provider()
    assert isinstance(provider, RuleBasedNLUProvider)


def test_get_nlu_provider_openai_fallback_without_key(monkeypatch):
    """Test that requesting OpenAI provider without API key falls back to rules."""
    monkeypatch.setenv("VOICESTOCK_NLU_PROVIDER", "openai")
    monkeypatch.delenv("OPENAI_API_KEY", raising=False)

    provider = get_nlu_provider()
    assert isinstance(provider, RuleBasedNLUProvider)


def test_get_nlu_provider_openai_with_key(monkeypatch):
    """Test that get_nlu_provider returns the OpenAI provider when configured."""
    monkeypatch.setenv("VOICESTOCK_NLU_PROVIDER", "OpenAI")
    monkeypatch.setenv("OPENAI_API_KEY", "sk-test-key")

    provider = get_nlu_provider()
    assert isinstance(provider, OpenAINLUProvider)


def test_get_nlu_provider_unknown_fallback(monkeypatch):
    """Test that unknown provider type falls back to rules."""
    monkeypatch.setenv("VOICESTOCK_NLU_PROVIDER", "unknown_provider")

    provider = get_nlu_provider()
    assert isinstance(provider, RuleBasedNLUProvider)


class TestRuleHelpers:
    """Test the small parsing helpers."""

    @pytest.mark.parametrize(
        "text,expected", [("5", 5), ("2.5", 2.5), ("twelve", 12), ("lots", None)]
    )
    def test_parse_quantity(self, text, expected) -> None:
        assert parse_quantity(text) == expected

    @pytest.mark.parametrize(
        "unit,expected", [("lbs", "pounds"), ("Gallon", "gallons"), ("box", "boxes"), ("crates", "crates")]
    )
    def test_normalize_unit(self, unit, expected) -> None:
        assert normalize_unit(unit) == expected

    def test_clean_item(self) -> None:
        assert clean_item("the whole milk please.") == "whole milk"
        assert clean_item("some   green tea") == "green tea"


class TestRuleBasedProvider:
    """Test the deterministic extractor."""

    @pytest.fixture
    def provider(self) -> RuleBasedNLUProvider:
        return RuleBasedNLUProvider()

    def test_complete_command(self, provider) -> None:
        [command] = provider.parse("Add 5 pounds of coffee.")

        assert _fields(command) == ("add", "coffee", 5, "pounds")
        assert command["confidence"] == 0.95

    def test_number_words(self, provider) -> None:
        [command] = provider.parse("remove three bags of rice")

        assert _fields(command) == ("remove", "rice", 3, "bags")

    def test_item_still_to_come(self, provider) -> None:
        [command] = provider.parse("add 5 pounds of")

        assert _fields(command) == ("add", "", 5, "pounds")
        assert "confidence" not in command

    def test_item_only(self, provider) -> None:
        assert [_fields(c) for c in provider.parse("coffee")] == [("", "coffee", None, "")]

    def test_set_opening_without_amount(self, provider) -> None:
        [command] = provider.parse("Set the 16 ounce paper cups")

        assert _fields(command) == ("set", "16 ounce paper cups", None, "")

    def test_set_continuation(self, provider) -> None:
        [command] = provider.parse("to 30 sleeves")

        assert _fields(command) == ("", "", 30, "sleeves")

    def test_set_in_one_phrase(self, provider) -> None:
        [command] = provider.parse("set the paper cups to 30 sleeves")

        assert _fields(command) == ("set", "paper cups", 30, "sleeves")

    def test_missing_quantity(self, provider) -> None:
        [command] = provider.parse("add some milk")

        assert _fields(command) == ("add", "milk", None, "")

    def test_relative_quantity(self, provider) -> None:
        assert [_fields(c) for c in provider.parse("5 more")] == [("", "", 5, "")]
        assert [_fields(c) for c in provider.parse("2 more gallons")] == [("", "", 2, "gallons")]

    def test_stock_statement_is_set(self, provider) -> None:
        [command] = provider.parse("we have 30 gallons of whole milk")

        assert _fields(command) == ("set", "whole milk", 30, "gallons")

    def test_bare_stock_level_is_set(self, provider) -> None:
        [command] = provider.parse("30 gallons of whole milk")

        assert command["action"] == "set"

    def test_multiple_items_inherit_action(self, provider) -> None:
        commands = provider.parse("add 30 gallons of milk and 20 boxes of tea")

        assert [_fields(c) for c in commands] == [
            ("add", "milk", 30, "gallons"),
            ("add", "tea", 20, "boxes"),
        ]

    def test_item_names_with_and_are_kept(self, provider) -> None:
        [command] = provider.parse("add 2 jars of salt and pepper")

        assert command["item"] == "salt and pepper"

    def test_undo(self, provider) -> None:
        assert provider.parse("revert last")[0]["action"] == "undo"

    def test_empty(self, provider) -> None:
        assert provider.parse("  ...  ") == []

    def test_extract_ignores_context(self, provider) -> None:
        commands = asyncio.run(
            provider.extract("coffee", [ContextEntry("user", "add 5 pounds of")], [])
        )

        assert [_fields(c) for c in commands] == [("", "coffee", None, "")]


def _completion(content: str):
    return SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(content=content))])


class TestOpenAIProvider:
    """Test the OpenAI provider with a mocked SDK client."""

    @pytest.fixture
    def provider(self, monkeypatch) -> OpenAINLUProvider:
        monkeypatch.delenv("OPENAI_NLU_MODEL", raising=False)
        monkeypatch.delenv("VOICESTOCK_NLU_TIMEOUT", raising=False)
        provider = OpenAINLUProvider(api_key="sk-test-key")
        provider.client = MagicMock()
        provider.client.chat.completions.create = AsyncMock()
        return provider

    def test_requires_api_key(self, monkeypatch) -> None:
        monkeypatch.delenv("OPENAI_API_KEY", raising=False)

        with pytest.raises(ValueError, match="OPENAI_API_KEY"):
            OpenAINLUProvider()

    def test_configuration_from_env(self, monkeypatch) -> None:
        monkeypatch.setenv("OPENAI_NLU_MODEL", "gpt-4o")
        monkeypatch.setenv("VOICESTOCK_NLU_TIMEOUT", "3.5")

        provider = OpenAINLUProvider(api_key="sk-test-key")

        assert provider.model == "gpt-4o"
        assert provider.timeout == 3.5

    def test_build_messages_includes_context(self, provider) -> None:
        messages = provider.build_messages(
            "5 more",
            [ContextEntry("user", "add 2 gallons of milk")],
            [RecentCommand(action="add", item="milk", unit="gallons")],
        )

        assert messages[0] == {"role": "system", "content": SYSTEM_PROMPT}
        assert messages[1]["role"] == "user"
        assert "Transcription: 5 more" in messages[1]["content"]
        assert '"item": "milk"' in messages[1]["content"]
        assert "add 2 gallons of milk" in messages[1]["content"]

    def test_extract_returns_content(self, provider) -> None:
        payload = json.dumps(
            {"commands": [{"action": "add", "item": "coffee", "quantity": 5, "unit": "pounds"}]}
        )
        provider.client.chat.completions.create.return_value = _completion(payload)

        content = asyncio.run(provider.extract("add 5 pounds of coffee", [], []))

        assert content == payload
        kwargs = provider.client.chat.completions.create.call_args.kwargs
        assert kwargs["model"] == "gpt-4o-mini"
        assert kwargs["response_format"] == {"type": "json_object"}
        assert kwargs["temperature"] == 0.3

    def test_interpreter_normalizes_model_output(self, provider) -> None:
        provider.client.chat.completions.create.return_value = _completion(
            json.dumps({"commands": [{"action": "Add", "item": "coffee", "quantity": "5", "unit": "pounds"}]})
        )
        interpreter = CommandInterpreter(provider, timeout_seconds=1.0)

        [candidate] = asyncio.run(interpreter.interpret("add 5 pounds of coffee"))

        assert (candidate.action, candidate.item, candidate.quantity, candidate.unit) == (
            "add",
            "coffee",
            5,
            "pounds",
        )
        assert candidate.is_complete

    def test_api_error_becomes_placeholder(self, provider) -> None:
        provider.client.chat.completions.create.side_effect = openai.APIConnectionError(
            request=MagicMock()
        )
        interpreter = CommandInterpreter(provider, timeout_seconds=1.0)

        [candidate] = asyncio.run(interpreter.interpret("add milk"))

        assert candidate.action == "unknown"
