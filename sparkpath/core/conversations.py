"""In-memory conversation history for mentor chat sessions."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from typing import Any


def _utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass
class ConversationTurn:
    """A single message in a mentor conversation."""

    role: str
    content: str
    form_data: Any = None
    created_at: str = field(default_factory=_utc_now)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class ConversationRegistry:
    """
    Maps session ids to their ordered turn history for the lifetime of the process.

    Sessions are created on first use and never expire. Access is not
    synchronized; overlapping appends to one session may interleave.
    """

    max_turns: int | None = None
    _sessions: dict[str, list[ConversationTurn]] = field(
        default_factory=dict, init=False, repr=False
    )

    def create(self, session_id: str) -> list[ConversationTurn]:
        """
        Return the history for a session, creating an empty one if missing.

        Args:
            session_id (str): The ID of the session.

        Returns:
            list[ConversationTurn]: The live history list of the session.
        """
        return self._sessions.setdefault(session_id, [])

    def append(self, session_id: str, turn: ConversationTurn) -> None:
        """
        Append a turn to a session, creating the session if needed.

        Args:
            session_id (str): The ID of the session.
            turn (ConversationTurn): The turn to append.
        """
        history = self.create(session_id)
        history.append(turn)
        if self.max_turns is not None and len(history) > self.max_turns:
            del history[: len(history) - self.max_turns]

    def read(self, session_id: str) -> list[ConversationTurn]:
        """
        Return a copy of a session's ordered history.

        Args:
            session_id (str): The ID of the session.

        Returns:
            list[ConversationTurn]: The turns, oldest first; empty for unknown sessions.
        """
        return list(self._sessions.get(session_id, []))

    def reset(self, session_id: str) -> None:
        """
        Discard a session's history, leaving an empty one in its place.

        Args:
            session_id (str): The ID of the session.
        """
        self._sessions[session_id] = []

    def sessions(self) -> list[str]:
        return list(self._sessions)

    def __contains__(self, session_id: object) -> bool:
        return session_id in self._sessions

    def __len__(self) -> int:
        return len(self._sessions)
