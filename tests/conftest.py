import re
from typing import Any

import pytest

from sparkpath.core.cache import CacheStore, MemoryCacheStore, RedisCacheStore
from sparkpath.core.conversations import ConversationRegistry
from sparkpath.utils.env_cfg import CacheConfig


class DummyAdvisor:
    """
    Stand-in for the AI advisor service that records every call.
    """

    def __init__(self) -> None:
        """
        Initialize the DummyAdvisor instance.
        """
        self.base_url = "http://advisor.test"
        self.alive = True
        self.error: Exception | None = None
        self.calls: list[tuple[str, tuple[Any, ...]]] = []

    def _answer(self, name: str, args: tuple[Any, ...], result: Any) -> Any:
        self.calls.append((name, args))
        if self.error is not None:
            raise self.error
        return result

    def count(self, name: str) -> int:
        """
        Count the calls made to an advisor method.

        Args:
            name (str): The method name.

        Returns:
            int: The number of recorded calls.
        """
        return sum(1 for called, _ in self.calls if called == name)

    def is_alive(self) -> bool:
        return self.alive

    def generate_roadmap(self, form_data: dict[str, Any]) -> Any:
        industry = form_data.get("industry", "idea")
        return self._answer(
            "generate_roadmap",
            (form_data,),
            {"phases": [{"title": f"Validate the {industry} market", "tasks": []}]},
        )

    def task_guidance(self, task_title: str, form_data: Any) -> Any:
        return self._answer(
            "task_guidance",
            (task_title, form_data),
            {"steps": [f"Start with: {task_title}"]},
        )

    def failure_prediction(
        self, industry: Any, budget: Any, team_size: Any, market_size: Any, country: Any
    ) -> Any:
        return self._answer(
            "failure_prediction",
            (industry, budget, team_size, market_size, country),
            {"failureProbability": 0.42, "factors": ["runway"]},
        )

    def swot_analysis(self, startup_data: Any) -> Any:
        return self._answer(
            "swot_analysis",
            (startup_data,),
            {"strengths": ["team"], "weaknesses": [], "opportunities": [], "threats": []},
        )

    def legal_checklist(self, profile: dict[str, Any]) -> Any:
        return self._answer(
            "legal_checklist",
            (profile,),
            [{"id": "register", "title": f"Register in {profile['country']}"}],
        )

    def checklist_item_details(self, item_id: str, profile: dict[str, Any]) -> Any:
        return self._answer(
            "checklist_item_details",
            (item_id, profile),
            {"itemId": item_id, "region": profile["region"], "steps": ["file forms"]},
        )

    def mentor_reply(
        self,
        message: str,
        history: list[dict[str, Any]],
        form_data: dict[str, Any] | None = None,
    ) -> Any:
        return self._answer(
            "mentor_reply",
            (message, history, form_data),
            {"response": f"Mentor says: {message}", "followUps": []},
        )


class FailingCacheStore(CacheStore):
    """
    Cache store whose every operation fails as if the server were unreachable.
    """

    def __init__(self) -> None:
        self.attempts = 0

    async def get(self, key: str) -> Any | None:
        self.attempts += 1
        raise ConnectionError("cache unreachable")

    async def set(self, key: str, value: Any, ttl_seconds: int) -> None:
        self.attempts += 1
        raise ConnectionError("cache unreachable")

    async def delete_prefix(self, prefix: str) -> int:
        self.attempts += 1
        raise ConnectionError("cache unreachable")

    async def ping(self) -> bool:
        raise ConnectionError("cache unreachable")


def _match_pattern(pattern: str) -> re.Pattern[str]:
    """
    Translate a Redis ``MATCH`` glob into a regular expression.

    Supports ``*``, ``?``, ``[...]`` classes (with ``^`` negation) and backslash escapes.
    """
    parts: list[str] = []
    i = 0
    while i < len(pattern):
        char = pattern[i]
        if char == "\\" and i + 1 < len(pattern):
            parts.append(re.escape(pattern[i + 1]))
            i += 2
            continue
        if char == "*":
            parts.append(".*")
        elif char == "?":
            parts.append(".")
        elif char == "[" and pattern.find("]", i + 2) != -1:
            end = pattern.find("]", i + 2)
            body = pattern[i + 1 : end]
            negate = body.startswith("^")
            if negate:
                body = body[1:]
            body = body.replace("\\", "\\\\")
            parts.append(f"[{'^' if negate else ''}{body}]")
            i = end + 1
            continue
        else:
            parts.append(re.escape(char))
        i += 1
    return re.compile("".join(parts), re.DOTALL)


class FakeRedis:
    """
    Minimal async stand-in for a redis.asyncio client with Redis glob matching.
    """

    def __init__(self) -> None:
        self.data: dict[str, str] = {}
        self.expiries: dict[str, int] = {}
        self.closed = False

    async def get(self, key: str) -> str | None:
        return self.data.get(key)

    async def set(self, key: str, value: str, ex: int | None = None) -> bool:
        self.data[key] = value
        if ex is not None:
            self.expiries[key] = ex
        return True

    async def scan_iter(self, match: str = "*"):
        compiled = _match_pattern(match)
        for key in list(self.data):
            if compiled.fullmatch(key):
                yield key

    async def delete(self, *keys: str) -> int:
        removed = 0
        for key in keys:
            if self.data.pop(key, None) is not None:
                removed += 1
        return removed

    async def ping(self) -> bool:
        return True

    async def aclose(self) -> None:
        self.closed = True


@pytest.fixture
def advisor() -> DummyAdvisor:
    return DummyAdvisor()


@pytest.fixture
def store() -> MemoryCacheStore:
    return MemoryCacheStore()


@pytest.fixture
def failing_store() -> FailingCacheStore:
    return FailingCacheStore()


@pytest.fixture
def registry() -> ConversationRegistry:
    return ConversationRegistry()


@pytest.fixture
def cache_config() -> CacheConfig:
    """
    Cache configuration with short, distinct TTLs and no Redis.

    Returns:
        CacheConfig: The cache configuration.
    """
    return CacheConfig(
        redis_url=None,
        socket_timeout=0.5,
        roadmap_ttl=60,
        task_guidance_ttl=60,
        failure_prediction_ttl=60,
        swot_ttl=60,
        checklist_ttl=120,
        checklist_details_ttl=120,
        mentor_ttl=300,
    )


@pytest.fixture
def redis_store() -> RedisCacheStore:
    """
    Redis store whose client is replaced by an in-process FakeRedis.

    Returns:
        RedisCacheStore: The store; ``redis_store._client`` is the fake.
    """
    store = RedisCacheStore("redis://localhost:6379/0")
    store._client = FakeRedis()
    return store
