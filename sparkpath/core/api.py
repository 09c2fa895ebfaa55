from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Callable, cast

import anyio
from fastapi import APIRouter, BackgroundTasks, Body, Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, PlainTextResponse
from loguru import logger
from pydantic import BaseModel, ConfigDict, Field
from starlette.middleware.cors import CORSMiddleware

from sparkpath.core.advisor import AdvisorClient
from sparkpath.core.cache import (
    CacheStore,
    build_cache_key,
    get_cache_store,
    get_or_compute,
)
from sparkpath.core.conversations import ConversationRegistry
from sparkpath.core.mentor import SUGGESTED_QUESTIONS, MentorService
from sparkpath.utils.env_cfg import (
    CacheConfig,
    load_cache_env,
    load_host_env,
    load_mentor_env,
)

LIVENESS_MESSAGE = "SparkPath Server Started"


def _missing(value: Any) -> bool:
    """
    Return True for request fields a browser client would treat as falsy.

    Absent fields, null, empty strings, ``false``, zero and NaN count as missing.
    Empty objects and arrays count as present.
    """
    if value is None or isinstance(value, bool):
        return not value
    if isinstance(value, (int, float)):
        return value == 0 or value != value
    if isinstance(value, str):
        return value == ""
    return False


_TASK_GUIDANCE_REQUIRED = {
    "success": False,
    "message": "Task title and form data are required.",
}
_SWOT_REQUIRED = {"error": "Startup profile data is required"}
_CHECKLIST_REQUIRED = {"error": "Country and region are required"}
_MENTOR_ASK_REQUIRED = {"error": "Session ID and message are required"}
_MENTOR_RESET_REQUIRED = {"error": "Session ID is required"}


# --- Pydantic models for request payloads ---


class _Payload(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class TaskGuidanceIn(_Payload):
    task_title: Any = Field(default=None, alias="taskTitle")
    form_data: Any = Field(default=None, alias="formData")


class FailurePredictionIn(_Payload):
    industry: Any = None
    budget: Any = None
    team_size: Any = Field(default=None, alias="teamSize")
    market_size: Any = Field(default=None, alias="marketSize")
    country: Any = None


class SwotIn(_Payload):
    startup_data: Any = Field(default=None, alias="startupData")


class ChecklistIn(_Payload):
    country: Any = None
    region: Any = None
    industry: Any = None
    budget: Any = None
    team_size: Any = Field(default=None, alias="teamSize")
    target_market: Any = Field(default=None, alias="targetMarket")
    problem_statement: Any = Field(default=None, alias="problemStatement")
    target_customer: Any = Field(default=None, alias="targetCustomer")
    unique_value_proposition: Any = Field(
        default=None, alias="uniqueValueProposition"
    )

    def profile(self) -> dict[str, Any]:
        """
        Return the checklist fields keyed by their wire names.

        Returns:
            dict[str, Any]: Every checklist field, including unset ones as None.
        """
        return self.model_dump(by_alias=True)


class MentorAskIn(_Payload):
    session_id: Any = Field(default=None, alias="sessionId")
    message: Any = None
    form_data: Any = Field(default=None, alias="formData")


class MentorResetIn(_Payload):
    session_id: Any = Field(default=None, alias="sessionId")


# --- Dependencies ---


def get_store(request: Request) -> CacheStore:
    return request.app.state.cache_store


def get_advisor(request: Request) -> AdvisorClient:
    return request.app.state.advisor


def get_cache_config(request: Request) -> CacheConfig:
    return request.app.state.cache_config


def get_mentor(request: Request) -> MentorService:
    return request.app.state.mentor


async def _advise(
    store: CacheStore,
    operation: str,
    fields: Any,
    ttl_seconds: int,
    call: Callable[..., Any],
    *args: Any,
) -> Any:
    """
    Run an advisor call through the cache-aside helper.

    Args:
        store (CacheStore): The cache store.
        operation (str): The operation name used as the cache key prefix.
        fields (Any): Request fields identifying the result.
        ttl_seconds (int): TTL for a freshly computed result.
        call (Callable[..., Any]): Blocking advisor method, run in a worker thread.
        *args (Any): Positional arguments for ``call``.

    Returns:
        Any: The cached or freshly generated advisor payload.
    """
    key = build_cache_key(operation, fields)

    async def producer() -> Any:
        return await anyio.to_thread.run_sync(call, *args)

    return await get_or_compute(store, key, producer, ttl_seconds)


# --- API Endpoints ---

router = APIRouter(prefix="/api")


@router.get("", response_class=PlainTextResponse, tags=["Health"])
def liveness() -> str:
    return LIVENESS_MESSAGE


@router.post("/generate-roadmap", tags=["Roadmap"])
async def generate_roadmap(
    payload: Any = Body(default=None),
    store: CacheStore = Depends(get_store),
    advisor: AdvisorClient = Depends(get_advisor),
    cache_config: CacheConfig = Depends(get_cache_config),
) -> Any:
    """
    Generate a startup roadmap from the submitted form data.

    Args:
        payload (Any): The startup form data, passed through as-is.

    Returns:
        Any: ``{"success": True, "roadmap": ...}`` or a 500 error response.
    """
    form_data = payload or {}
    try:
        roadmap = await _advise(
            store,
            "roadmap",
            form_data,
            cache_config.roadmap_ttl,
            advisor.generate_roadmap,
            form_data,
        )
        return {"success": True, "roadmap": roadmap}
    except Exception as e:
        logger.error("Roadmap generation error: {}", e)
        return JSONResponse(
            status_code=500,
            content={
                "success": False,
                "message": "Failed to generate roadmap",
                "error": str(e),
            },
        )


@router.post("/task-guidance", tags=["Roadmap"])
async def task_guidance(
    payload: TaskGuidanceIn | None = None,
    store: CacheStore = Depends(get_store),
    advisor: AdvisorClient = Depends(get_advisor),
    cache_config: CacheConfig = Depends(get_cache_config),
) -> Any:
    """
    Generate step-by-step guidance for a single roadmap task.

    Args:
        payload (TaskGuidanceIn): The task title and the startup form data.

    Returns:
        Any: ``{"success": True, "data": ...}``, a 400 when a field is missing, or a 500.
    """
    if payload is None:
        payload = TaskGuidanceIn()
    if _missing(payload.task_title) or _missing(payload.form_data):
        logger.error("Task guidance request without task title or form data")
        return JSONResponse(status_code=400, content=_TASK_GUIDANCE_REQUIRED)

    try:
        guidance = await _advise(
            store,
            "task-guidance",
            {"taskTitle": payload.task_title, "formData": payload.form_data},
            cache_config.task_guidance_ttl,
            advisor.task_guidance,
            payload.task_title,
            payload.form_data,
        )
        return {"success": True, "data": guidance}
    except Exception as e:
        logger.error("Task guidance error: {}", e)
        return JSONResponse(
            status_code=500,
            content={
                "success": False,
                "message": "Failed to generate task guidance",
                "error": str(e),
            },
        )


@router.post("/failure-prediction", tags=["Analysis"])
async def failure_prediction(
    payload: FailurePredictionIn | None = None,
    store: CacheStore = Depends(get_store),
    advisor: AdvisorClient = Depends(get_advisor),
    cache_config: CacheConfig = Depends(get_cache_config),
) -> Any:
    """
    Predict the failure likelihood of a startup profile.

    Args:
        payload (FailurePredictionIn): Industry, budget, team size, market size and country.

    Returns:
        Any: The advisor's prediction payload or a 500 error response.
    """
    if payload is None:
        payload = FailurePredictionIn()
    try:
        return await _advise(
            store,
            "failure-prediction",
            payload.model_dump(by_alias=True),
            cache_config.failure_prediction_ttl,
            advisor.failure_prediction,
            payload.industry,
            payload.budget,
            payload.team_size,
            payload.market_size,
            payload.country,
        )
    except Exception as e:
        logger.error("Failure prediction error: {}", e)
        return JSONResponse(
            status_code=500,
            content={"success": False, "message": "Server error", "error": str(e)},
        )


@router.post("/swot-analysis", tags=["Analysis"])
async def swot_analysis(
    payload: SwotIn | None = None,
    store: CacheStore = Depends(get_store),
    advisor: AdvisorClient = Depends(get_advisor),
    cache_config: CacheConfig = Depends(get_cache_config),
) -> Any:
    if payload is None:
        payload = SwotIn()
    if _missing(payload.startup_data):
        return JSONResponse(status_code=400, content=_SWOT_REQUIRED)

    try:
        return await _advise(
            store,
            "swot-analysis",
            {"startupData": payload.startup_data},
            cache_config.swot_ttl,
            advisor.swot_analysis,
            payload.startup_data,
        )
    except Exception as e:
        logger.error("SWOT analysis error: {}", e)
        return JSONResponse(
            status_code=500,
            content={
                "error": "An error occurred while generating the analysis",
                "details": str(e),
            },
        )


@router.post("/checklist", tags=["Legal"])
async def checklist(
    payload: ChecklistIn | None = None,
    store: CacheStore = Depends(get_store),
    advisor: AdvisorClient = Depends(get_advisor),
    cache_config: CacheConfig = Depends(get_cache_config),
) -> Any:
    """
    Build the legal and compliance checklist for a startup.

    Args:
        payload (ChecklistIn): Country and region plus optional profile fields.

    Returns:
        Any: The checklist items, a 400 without country or region, or a 500.
    """
    if payload is None:
        payload = ChecklistIn()
    if _missing(payload.country) or _missing(payload.region):
        return JSONResponse(status_code=400, content=_CHECKLIST_REQUIRED)

    profile = payload.profile()
    try:
        return await _advise(
            store,
            "checklist",
            profile,
            cache_config.checklist_ttl,
            advisor.legal_checklist,
            profile,
        )
    except Exception as e:
        logger.error("Legal checklist error: {}", e)
        return JSONResponse(status_code=500, content={"error": str(e)})


@router.post("/checklist/{item_id}/details", tags=["Legal"])
async def checklist_item_details(
    item_id: str,
    payload: ChecklistIn | None = None,
    store: CacheStore = Depends(get_store),
    advisor: AdvisorClient = Depends(get_advisor),
    cache_config: CacheConfig = Depends(get_cache_config),
) -> Any:
    """
    Explain what a single checklist item requires for the given jurisdiction.

    Args:
        item_id (str): The checklist item identifier from the path.
        payload (ChecklistIn): Country and region plus optional profile fields.

    Returns:
        Any: The compliance details, a 400 without country or region, or a 500.
    """
    if payload is None:
        payload = ChecklistIn()
    if _missing(payload.country) or _missing(payload.region):
        return JSONResponse(status_code=400, content=_CHECKLIST_REQUIRED)

    profile = payload.profile()
    try:
        return await _advise(
            store,
            "checklist-details",
            {"itemId": item_id, **profile},
            cache_config.checklist_details_ttl,
            advisor.checklist_item_details,
            item_id,
            profile,
        )
    except Exception as e:
        logger.error("Checklist details error for item {}: {}", item_id, e)
        return JSONResponse(status_code=500, content={"error": str(e)})


@router.post("/mentor/ask", tags=["Mentor"])
async def mentor_ask(
    payload: MentorAskIn | None = None,
    mentor: MentorService = Depends(get_mentor),
) -> Any:
    """
    Answer a mentor chat message. Replies are never cached.

    Args:
        payload (MentorAskIn): Session ID, message and optional form data.

    Returns:
        Any: The mentor reply payload, a 400 without session ID or message, or a 500.
    """
    if payload is None:
        payload = MentorAskIn()
    if _missing(payload.session_id) or _missing(payload.message):
        return JSONResponse(status_code=400, content=_MENTOR_ASK_REQUIRED)

    try:
        return await mentor.ask(
            str(payload.session_id), str(payload.message), payload.form_data
        )
    except Exception as e:
        logger.error("Mentor error for session {}: {}", payload.session_id, e)
        return JSONResponse(
            status_code=500,
            content={
                "error": "An error occurred while processing your question",
                "details": str(e),
            },
        )


@router.get("/mentor/suggested-questions", tags=["Mentor"])
def suggested_questions() -> dict[str, list[str]]:
    return {"questions": list(SUGGESTED_QUESTIONS)}


@router.post("/mentor/reset", tags=["Mentor"])
def mentor_reset(
    background_tasks: BackgroundTasks,
    payload: MentorResetIn | None = None,
    mentor: MentorService = Depends(get_mentor),
) -> Any:
    """
    Clear a mentor conversation.

    The session's cache entries are removed after the response is sent, on a
    best-effort basis.

    Args:
        payload (MentorResetIn): The session ID.
        background_tasks (BackgroundTasks): Scheduler for the cache cleanup.

    Returns:
        Any: ``{"success": True, "message": ...}`` or a 400 without session ID.
    """
    if payload is None:
        payload = MentorResetIn()
    if _missing(payload.session_id):
        return JSONResponse(status_code=400, content=_MENTOR_RESET_REQUIRED)

    session_id = str(payload.session_id)
    mentor.reset(session_id)
    background_tasks.add_task(mentor.clear_cached, session_id)
    return {"success": True, "message": "Conversation reset successfully"}


_REQUIRED_BY_ENDPOINT: dict[Callable[..., Any], dict[str, Any]] = {
    task_guidance: _TASK_GUIDANCE_REQUIRED,
    swot_analysis: _SWOT_REQUIRED,
    checklist: _CHECKLIST_REQUIRED,
    checklist_item_details: _CHECKLIST_REQUIRED,
    mentor_ask: _MENTOR_ASK_REQUIRED,
    mentor_reset: _MENTOR_RESET_REQUIRED,
}


async def _invalid_body(request: Request, exc: RequestValidationError) -> JSONResponse:
    """
    Answer unreadable or non-object request bodies with the endpoint's 400 response.
    """
    logger.warning("Rejected request body on {}: {}", request.url.path, exc.errors())
    content = _REQUIRED_BY_ENDPOINT.get(
        request.scope.get("endpoint"), {"error": "Invalid request body"}
    )
    return JSONResponse(status_code=400, content=content)


async def _unhandled_error(request: Request, exc: Exception) -> JSONResponse:
    logger.error("Unhandled error on {}: {}", request.url.path, exc)
    return JSONResponse(
        status_code=500, content={"error": "An error occurred", "details": str(exc)}
    )


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """
    Probe the advisor and the cache store on startup; close the store on shutdown.

    Neither probe prevents the gateway from starting.
    """
    advisor: AdvisorClient = app.state.advisor
    if await anyio.to_thread.run_sync(advisor.is_alive):
        logger.info("AI advisor service is reachable at {}", advisor.base_url)
    else:
        logger.warning("AI advisor service is not running at {}", advisor.base_url)

    store: CacheStore = app.state.cache_store
    try:
        if await store.ping():
            logger.info("Cache store is reachable")
        else:
            logger.warning("Cache store did not answer the ping, serving uncached")
    except Exception as e:
        logger.warning("Cache store is unreachable, serving uncached: {}", e)

    yield

    try:
        await store.close()
    except Exception as e:
        logger.warning("Error closing cache store: {}", e)


def create_app(
    cache_store: CacheStore | None = None,
    advisor: AdvisorClient | None = None,
    conversations: ConversationRegistry | None = None,
    cache_config: CacheConfig | None = None,
) -> FastAPI:
    """
    Build the gateway application.

    Args:
        cache_store (CacheStore | None, optional): Cache store; chosen from the environment when omitted.
        advisor (AdvisorClient | None, optional): Advisor client; configured from the environment when omitted.
        conversations (ConversationRegistry | None, optional): Conversation registry shared by all requests.
        cache_config (CacheConfig | None, optional): TTL policy; loaded from the environment when omitted.

    Returns:
        FastAPI: The configured application.
    """
    cache_config = cache_config or load_cache_env()
    cache_store = cache_store or get_cache_store(cache_config)
    advisor = advisor or AdvisorClient()
    if conversations is None:
        conversations = ConversationRegistry(max_turns=load_mentor_env().max_turns)

    application = FastAPI(title="SparkPath Gateway", lifespan=lifespan)
    application.add_middleware(
        middleware_class=cast(Any, CORSMiddleware),
        allow_origins=[load_host_env().frontend_base_url],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    application.state.cache_config = cache_config
    application.state.cache_store = cache_store
    application.state.advisor = advisor
    application.state.conversations = conversations
    application.state.mentor = MentorService(
        conversations=conversations,
        advisor=advisor,
        store=cache_store,
        form_data_ttl=cache_config.mentor_ttl,
    )

    application.add_exception_handler(RequestValidationError, cast(Any, _invalid_body))
    application.add_exception_handler(Exception, _unhandled_error)
    application.include_router(router)
    return application


app = create_app()
