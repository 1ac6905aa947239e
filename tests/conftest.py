"""pytest configuration for voicestock tests."""

import os
import sys
from pathlib import Path
from typing import Any

import pytest

# Add src directory to path so tests can import voicestock
src_path = Path(__file__).parent.parent / "src"
sys.path.insert(0, str(src_path))

# Keep tests hermetic: in-memory context and the rule-based provider
os.environ["REDIS_ENABLED"] = "false"
os.environ["VOICESTOCK_NLU_PROVIDER"] = "rules"
os.environ.pop("OPENAI_API_KEY", None)

from voicestock.commands.interpreter import CommandInterpreter  # noqa: E402
from voicestock.config import InterpreterConfig  # noqa: E402
from voicestock.metrics import get_metrics_collector  # noqa: E402


class FakeClock:
    """Monotonic clock that only moves when told to."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance_ms(self, ms: float) -> None:
        self.now += ms / 1000


class ScriptedProvider:
    """Language-understanding stub returning canned responses per fragment."""

    def __init__(self, responses: dict[str, Any] | None = None) -> None:
        self.responses = dict(responses or {})
        self.calls: list[tuple[str, list, list]] = []

    async def extract(self, fragment, conversation_history, recent_commands):
        self.calls.append((fragment, conversation_history, recent_commands))
        response = self.responses.get(fragment, [])
        if isinstance(response, Exception):
            raise response
        return response


@pytest.fixture(autouse=True)
def reset_metrics():
    """Reset metrics before and after each test."""
    collector = get_metrics_collector()
    collector.reset()
    yield
    collector.reset()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def config() -> InterpreterConfig:
    return InterpreterConfig()


@pytest.fixture
def scripted_provider() -> ScriptedProvider:
    return ScriptedProvider()


@pytest.fixture
def interpreter(scripted_provider: ScriptedProvider) -> CommandInterpreter:
    return CommandInterpreter(scripted_provider, timeout_seconds=1.0)
