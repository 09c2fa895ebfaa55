from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any

import anyio
from loguru import logger

from sparkpath.core.advisor import AdvisorClient
from sparkpath.core.cache import CacheStore
from sparkpath.core.conversations import ConversationRegistry, ConversationTurn

SUGGESTED_QUESTIONS: tuple[str, ...] = (
    "How do I find my first customers?",
    "When should I hire my first employee?",
    "How much equity should I give to co-founders?",
    "What metrics should I focus on in my first year?",
    "How do I create an effective pitch deck?",
    "What's the best way to approach investors?",
    "How do I know if my startup idea is viable?",
    "What legal structure is best for my startup?",
    "How should I price my product or service?",
    "What are the most common mistakes first-time founders make?",
)


def session_cache_prefix(session_id: str) -> str:
    """
    Return the prefix shared by every cache key belonging to a mentor session.

    Args:
        session_id (str): The ID of the session.

    Returns:
        str: The key prefix. The session id is JSON-quoted so one session's prefix
        never matches another session's keys.
    """
    return f"mentor:{json.dumps(session_id, ensure_ascii=False)}:"


def form_data_cache_key(session_id: str) -> str:
    return f"{session_cache_prefix(session_id)}form-data"


def reply_text(payload: Any) -> str:
    """
    Extract the mentor's reply text from an advisor payload.

    Args:
        payload (Any): The advisor response.

    Returns:
        str: The reply text, or an empty string if none can be found.
    """
    if isinstance(payload, str):
        return payload
    if isinstance(payload, dict):
        return str(
            payload.get("response")
            or payload.get("answer")
            or payload.get("message")
            or ""
        )
    return ""


@dataclass
class MentorService:
    """
    Runs mentor chat turns against the advisor, keeping history in the registry.

    Mentor replies are never cached. The cache only remembers the latest
    form-data snapshot of each session.
    """

    conversations: ConversationRegistry
    advisor: AdvisorClient
    store: CacheStore
    form_data_ttl: int = 86400

    async def ask(
        self,
        session_id: str,
        message: str,
        form_data: Any = None,
    ) -> Any:
        """
        Send a user message to the mentor and record the exchange.

        Args:
            session_id (str): The ID of the session.
            message (str): The user message.
            form_data (Any, optional): Startup profile snapshot, forwarded as sent.
                When omitted the session's last known snapshot is used.

        Returns:
            Any: The advisor payload, unchanged.

        Raises:
            AdvisorError: If the advisor call fails. Nothing is recorded in that case.
        """
        history = self.conversations.read(session_id)
        snapshot = form_data
        if snapshot is None:
            snapshot = await self._recall_form_data(session_id, history)

        payload = await anyio.to_thread.run_sync(
            self.advisor.mentor_reply,
            message,
            [turn.to_dict() for turn in history],
            snapshot,
        )

        self.conversations.append(
            session_id, ConversationTurn(role="user", content=message, form_data=snapshot)
        )
        self.conversations.append(
            session_id, ConversationTurn(role="assistant", content=reply_text(payload))
        )
        if form_data is not None:
            await self._remember_form_data(session_id, form_data)
        return payload

    def reset(self, session_id: str) -> None:
        self.conversations.reset(session_id)
        logger.info("Conversation reset for session {}", session_id)

    async def clear_cached(self, session_id: str) -> None:
        """
        Best-effort removal of the cache entries tied to a session.

        Args:
            session_id (str): The ID of the session.
        """
        prefix = session_cache_prefix(session_id)
        try:
            removed = await self.store.delete_prefix(prefix)
        except Exception as e:
            logger.warning("Could not clear cached mentor data for {}: {}", session_id, e)
            return
        logger.debug("Cleared {} cached mentor entries for {}", removed, session_id)

    async def _recall_form_data(
        self, session_id: str, history: list[ConversationTurn]
    ) -> Any:
        for turn in reversed(history):
            if turn.form_data is not None:
                return turn.form_data
        try:
            return await self.store.get(form_data_cache_key(session_id))
        except Exception as e:
            logger.warning("Could not read cached form data for {}: {}", session_id, e)
            return None

    async def _remember_form_data(
        self, session_id: str, form_data: Any
    ) -> None:
        try:
            await self.store.set(
                form_data_cache_key(session_id), form_data, self.form_data_ttl
            )
        except Exception as e:
            logger.warning("Could not cache form data for {}: {}", session_id, e)
