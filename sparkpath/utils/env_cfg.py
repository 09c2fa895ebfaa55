import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

load_dotenv()


@dataclass(frozen=True)
class HostConfig:
    """
    Dataclass for host configuration.
    """

    frontend_base_url: str
    advisor_host: str
    server_host: str
    server_port: int


@dataclass(frozen=True)
class AdvisorConfig:
    """
    Dataclass for the AI advisor service configuration.
    """

    request_timeout: float


@dataclass(frozen=True)
class CacheConfig:
    """
    Dataclass for cache configuration. TTL values are in seconds.
    """

    redis_url: str | None
    socket_timeout: float
    roadmap_ttl: int
    task_guidance_ttl: int
    failure_prediction_ttl: int
    swot_ttl: int
    checklist_ttl: int
    checklist_details_ttl: int
    mentor_ttl: int


@dataclass(frozen=True)
class MentorConfig:
    """
    Dataclass for mentor chat configuration.
    """

    max_turns: int | None


@dataclass(frozen=True)
class LogConfig:
    """
    Dataclass for logging configuration.
    """

    path: Path
    console_level: str
    rotation: str
    retention: str


def _as_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError as e:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from e


def load_host_env() -> HostConfig:
    """
    Loads host configuration from environment variables or defaults.

    Returns:
        HostConfig: Dataclass containing host configuration.
        - frontend_base_url (str): The only origin allowed by the CORS policy.
        - advisor_host (str): Base URL of the AI advisor service.
        - server_host (str): Interface the gateway binds to.
        - server_port (int): Port the gateway listens on.
    """
    return HostConfig(
        frontend_base_url=os.getenv("FRONTEND_BASE_URL", "http://localhost:5173"),
        advisor_host=os.getenv("PYTHON_SERVER_URL", "http://localhost:8000").rstrip(
            "/"
        ),
        server_host=os.getenv("HOST", "0.0.0.0"),
        server_port=_as_int("PORT", 4000),
    )


def load_advisor_env() -> AdvisorConfig:
    """
    Loads advisor configuration from environment variables or defaults.

    Returns:
        AdvisorConfig: Dataclass containing advisor configuration.
        - request_timeout (float): Timeout in seconds for a single advisor call.
    """
    return AdvisorConfig(
        request_timeout=float(os.getenv("ADVISOR_REQUEST_TIMEOUT", "120")),
    )


def load_cache_env() -> CacheConfig:
    """
    Loads cache configuration from environment variables or defaults.

    Returns:
        CacheConfig: Dataclass containing cache configuration.
        - redis_url (str | None): Redis connection URL; None selects the in-memory store.
        - socket_timeout (float): Redis socket timeout in seconds.
        - roadmap_ttl (int): TTL for generated roadmaps.
        - task_guidance_ttl (int): TTL for roadmap task guidance.
        - failure_prediction_ttl (int): TTL for failure predictions.
        - swot_ttl (int): TTL for SWOT analyses.
        - checklist_ttl (int): TTL for legal checklists.
        - checklist_details_ttl (int): TTL for legal checklist item details.
        - mentor_ttl (int): TTL for per-session mentor data kept in the cache.
    """
    redis_url = os.getenv("REDIS_URL") or None
    return CacheConfig(
        redis_url=redis_url,
        socket_timeout=float(os.getenv("CACHE_SOCKET_TIMEOUT", "2.0")),
        roadmap_ttl=_as_int("CACHE_TTL_ROADMAP", 3600),
        task_guidance_ttl=_as_int("CACHE_TTL_TASK_GUIDANCE", 3600),
        failure_prediction_ttl=_as_int("CACHE_TTL_FAILURE_PREDICTION", 3600),
        swot_ttl=_as_int("CACHE_TTL_SWOT", 3600),
        checklist_ttl=_as_int("CACHE_TTL_CHECKLIST", 86400),
        checklist_details_ttl=_as_int("CACHE_TTL_CHECKLIST_DETAILS", 86400),
        mentor_ttl=_as_int("CACHE_TTL_MENTOR", 86400),
    )


def load_mentor_env() -> MentorConfig:
    """
    Loads mentor chat configuration from environment variables or defaults.

    Returns:
        MentorConfig: Dataclass containing mentor configuration.
        - max_turns (int | None): Most recent turns kept per session; None keeps all.
    """
    max_turns = _as_int("MENTOR_MAX_TURNS", 0)
    return MentorConfig(max_turns=max_turns if max_turns > 0 else None)


def load_log_env() -> LogConfig:
    """
    Loads logging configuration from environment variables or defaults.

    Returns:
        LogConfig: Dataclass containing logging configuration.
        - path (Path): Path to the gateway log file.
        - console_level (str): Minimum level written to stderr.
        - rotation (str): Size or age at which the log file rotates.
        - retention (str): How long rotated files are kept.
    """
    project_root: Path = Path(__file__).parents[2].resolve()

    return LogConfig(
        path=Path(
            os.getenv("LOG_PATH", project_root / ".logs" / "sparkpath-gateway.log")
        ).expanduser(),
        console_level=os.getenv("LOG_LEVEL", "INFO").upper(),
        rotation=os.getenv("LOG_ROTATION", "10 MB"),
        retention=os.getenv("LOG_RETENTION", "14 days"),
    )
