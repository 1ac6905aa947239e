"""Conversation and recent-command context for ellipsis resolution."""

import json
import logging
import time
from dataclasses import asdict, dataclass
from typing import Any, Literal, Optional, Protocol

import redis

from voicestock.logging_utils import log_debug, log_error

logger = logging.getLogger(__name__)

Role = Literal["user", "assistant"]


@dataclass(frozen=True)
class ContextEntry:
    """One conversation turn."""

    role: Role
    content: str

    def to_dict(self) -> dict[str, Any]:
        return {"role": self.role, "content": self.content}


@dataclass(frozen=True)
class RecentCommand:
    """A previously completed command, used to resolve "5 more" style fragments."""

    action: str
    item: str
    unit: str
    quantity: float | None = None
    timestamp: float = 0.0

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "RecentCommand":
        return cls(
            action=str(data.get("action", "")),
            item=str(data.get("item", "")),
            unit=str(data.get("unit", "")),
            quantity=data.get("quantity"),
            timestamp=float(data.get("timestamp", 0.0)),
        )


class ContextSource(Protocol):
    """Supplies recent conversation turns and completed commands, oldest first."""

    def get_conversation_history(self) -> list[ContextEntry]:
        ...

    def get_recent_commands(self) -> list[RecentCommand]:
        ...

    def add_to_history(self, role: Role, content: str) -> None:
        ...

    def add_command(self, command: RecentCommand) -> None:
        ...


class StaticContextSource:
    """Context backed by caller-supplied arrays.

    The caller's lists are copied; additions only affect this instance.
    """

    def __init__(
        self,
        conversation_history: list[ContextEntry] | None = None,
        recent_commands: list[RecentCommand] | None = None,
    ) -> None:
        self._history = list(conversation_history or [])
        self._commands = list(recent_commands or [])

    def get_conversation_history(self) -> list[ContextEntry]:
        return list(self._history)

    def get_recent_commands(self) -> list[RecentCommand]:
        return list(self._commands)

    def add_to_history(self, role: Role, content: str) -> None:
        self._history.append(ContextEntry(role=role, content=content))

    def add_command(self, command: RecentCommand) -> None:
        self._commands.append(command)


class SessionContext:
    """In-memory context for a single voice session.

    Keeps only the last few turns and commands so the language-understanding
    prompt stays small.
    """

    def __init__(self, max_history_entries: int = 8, max_recent_commands: int = 2) -> None:
        """Initialize the session context.

        Args:
            max_history_entries: Conversation turns kept (default: 8, four exchanges)
            max_recent_commands: Completed commands kept (default: 2)
        """
        self.max_history_entries = max_history_entries
        self.max_recent_commands = max_recent_commands
        self._history: list[ContextEntry] = []
        self._commands: list[RecentCommand] = []

    def get_conversation_history(self) -> list[ContextEntry]:
        return list(self._history)

    def get_recent_commands(self) -> list[RecentCommand]:
        return list(self._commands)

    def add_to_history(self, role: Role, content: str) -> None:
        self._history.append(ContextEntry(role=role, content=content))
        del self._history[: max(0, len(self._history) - self.max_history_entries)]

    def add_command(self, command: RecentCommand) -> None:
        self._commands.append(command)
        del self._commands[: max(0, len(self._commands) - self.max_recent_commands)]

    def clear(self) -> None:
        self._history.clear()
        self._commands.clear()


class RedisSessionContext:
    """Redis-backed session context that survives process restarts.

    This implementation provides:
    - Context shared by workers serving the same session
    - Automatic expiration via Redis TTL
    - Fallback to in-memory if Redis unavailable
    """

    def __init__(
        self,
        session_id: str,
        redis_client: Optional[redis.Redis] = None,
        default_ttl_seconds: int = 3600,
        key_prefix: str = "voice_context:",
        max_history_entries: int = 8,
        max_recent_commands: int = 2,
    ) -> None:
        """Initialize the Redis-backed session context.

        Args:
            session_id: Session identifier used to build Redis keys
            redis_client: Redis client instance (None to use in-memory fallback)
            default_ttl_seconds: TTL for the session's keys (default: 1 hour)
            key_prefix: Prefix for Redis keys (default: "voice_context:")
            max_history_entries: Conversation turns kept (default: 8)
            max_recent_commands: Completed commands kept (default: 2)
        """
        self.session_id = session_id
        self.redis = redis_client
        self.default_ttl_seconds = default_ttl_seconds
        self.key_prefix = key_prefix
        self.max_history_entries = max_history_entries
        self.max_recent_commands = max_recent_commands

        if self.redis is None:
            logger.warning("Redis not available, using in-memory fallback for session context")
            self._fallback: SessionContext | None = SessionContext(
                max_history_entries, max_recent_commands
            )
        else:
            self._fallback = None

    def _key(self, kind: str) -> str:
        return f"{self.key_prefix}{self.session_id}:{kind}"

    def _read_list(self, kind: str) -> list[dict[str, Any]]:
        try:
            raw_items = self.redis.lrange(self._key(kind), 0, -1)
        except redis.RedisError as e:
            log_error(logger, "Redis error reading session context", kind=kind, error=e)
            return []

        items = []
        for raw in raw_items:
            if isinstance(raw, bytes):
                raw = raw.decode()
            try:
                items.append(json.loads(raw))
            except json.JSONDecodeError as e:
                log_error(logger, "Error deserializing session context entry", kind=kind, error=e)
        return items

    def _push(self, kind: str, payload: dict[str, Any], limit: int) -> None:
        if limit <= 0:
            return

        key = self._key(kind)
        try:
            pipe = self.redis.pipeline()
            pipe.rpush(key, json.dumps(payload))
            pipe.ltrim(key, -limit, -1)
            pipe.expire(key, self.default_ttl_seconds)
            pipe.execute()
        except redis.RedisError as e:
            log_error(logger, "Redis error writing session context", kind=kind, error=e)

    def get_conversation_history(self) -> list[ContextEntry]:
        if self._fallback is not None:
            return self._fallback.get_conversation_history()

        history = []
        for entry in self._read_list("history"):
            role = entry.get("role")
            if role not in ("user", "assistant"):
                role = "user"
            history.append(ContextEntry(role=role, content=str(entry.get("content", ""))))
        return history

    def get_recent_commands(self) -> list[RecentCommand]:
        if self._fallback is not None:
            return self._fallback.get_recent_commands()

        return [RecentCommand.from_dict(entry) for entry in self._read_list("commands")]

    def add_to_history(self, role: Role, content: str) -> None:
        if self._fallback is not None:
            self._fallback.add_to_history(role, content)
            return

        self._push("history", {"role": role, "content": content}, self.max_history_entries)

    def add_command(self, command: RecentCommand) -> None:
        if self._fallback is not None:
            self._fallback.add_command(command)
            return

        payload = command.to_dict()
        if not payload["timestamp"]:
            payload["timestamp"] = time.time()
        self._push("commands", payload, self.max_recent_commands)
        log_debug(
            logger, "Stored recent command", session=self.session_id[:8], item=payload["item"]
        )

    def clear(self) -> None:
        """Clear all context for this session."""
        if self._fallback is not None:
            self._fallback.clear()
            return

        try:
            self.redis.delete(self._key("history"), self._key("commands"))
        except redis.RedisError as e:
            log_error(logger, "Redis error clearing session context", error=e)
