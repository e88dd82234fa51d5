"""HTTP API: stateless endpoints in front of the backing store and the word generator."""
import logging
import secrets
import time
from contextlib import asynccontextmanager
from typing import Any, Dict, Optional, Type, TypeVar

from fastapi import APIRouter, FastAPI, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException

from wordgarden import monitoring
from wordgarden.config import AuthSettings, Settings, settings
from wordgarden.errors import (
    AuthorizationError,
    ConfigurationError,
    InvalidRequestError,
    RateLimitError,
    WordGardenError,
)
from wordgarden.models.api_models import (
    GenerateWordsRequest,
    PasswordRequest,
    ProfileCreateRequest,
    ProfileGetRequest,
    SyncGetRequest,
    SyncSetRequest,
)
from wordgarden.services.cache import ResponseCache
from wordgarden.services.rate_limiter import RateLimiter
from wordgarden.services.store_client import StoreClient
from wordgarden.services.word_generator import LEVEL_DESCRIPTIONS, WordGenerator
from wordgarden.services.word_store import WordStore

logger = logging.getLogger(__name__)

RequestModel = TypeVar("RequestModel", bound=BaseModel)

API_PREFIX = "/api"


def client_ip(request: Request) -> str:
    """Caller address as reported by the edge proxy, falling back to the socket peer."""
    direct = request.headers.get("x-nf-client-connection-ip")
    if direct:
        return direct.strip()
    forwarded = request.headers.get("x-forwarded-for", "").split(",")[0].strip()
    if forwarded:
        return forwarded
    if request.client and request.client.host:
        return request.client.host
    return "unknown"


def check_admin_password(password: Any, auth: AuthSettings, trim: bool = False) -> None:
    """Require the shared admin secret to match, exactly unless ``trim`` strips both sides."""
    expected = auth.admin_password or ""
    supplied = "" if password is None else str(password)
    if trim:
        expected, supplied = expected.strip(), supplied.strip()
    if not expected:
        raise ConfigurationError("Missing WORDGARDEN_ADMIN_PASSWORD env var")
    if not supplied or not secrets.compare_digest(supplied.encode("utf-8"), expected.encode("utf-8")):
        raise AuthorizationError()


async def read_json_body(request: Request) -> Dict[str, Any]:
    try:
        body = await request.json()
    except ValueError:
        raise InvalidRequestError("Invalid JSON body")
    if not isinstance(body, dict):
        raise InvalidRequestError("Invalid JSON body")
    return body


def parse_body(schema: Type[RequestModel], body: Dict[str, Any]) -> RequestModel:
    try:
        return schema.model_validate(body)
    except ValidationError as e:
        problems = [f"{'.'.join(str(part) for part in err['loc'])}: {err['msg']}" for err in e.errors()]
        raise InvalidRequestError("Invalid request body", detail=problems)


def _endpoint_label(request: Request) -> str:
    path = request.url.path
    return path if path.startswith(f"{API_PREFIX}/") else "other"


def create_app(
    app_settings: Optional[Settings] = None,
    store: Optional[StoreClient] = None,
    word_store: Optional[WordStore] = None,
    generator: Optional[WordGenerator] = None,
    rate_limiter: Optional[RateLimiter] = None,
) -> FastAPI:
    """
    Build the API application.

    The rate limiter and the caches live as long as the returned app: they
    are created here (unless injected), never shared between processes, and
    dropped when the process exits.
    """
    app_settings = app_settings or settings
    store = store or StoreClient(app_settings.store)
    word_store = word_store or WordStore(store, ResponseCache(ttl=app_settings.store.word_list_cache_ttl))
    generator = generator or WordGenerator(store, generation_settings=app_settings.generation)
    rate_limiter = rate_limiter or RateLimiter.from_settings(app_settings.rate_limit)
    auth = app_settings.auth

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("Word Garden API started")
        yield
        await generator.aclose()
        await store.aclose()
        logger.info("Word Garden API stopped")

    app = FastAPI(title="Word Garden", lifespan=lifespan)
    app.state.settings = app_settings
    app.state.store = store
    app.state.word_store = word_store
    app.state.generator = generator
    app.state.rate_limiter = rate_limiter

    @app.exception_handler(WordGardenError)
    async def handle_word_garden_error(request: Request, exc: WordGardenError) -> JSONResponse:
        monitoring.error_count.labels(error_type=type(exc).__name__).inc()
        headers = {"Retry-After": str(exc.retry_after)} if isinstance(exc, RateLimitError) else None
        if exc.status_code >= 500:
            logger.error(f"{request.url.path} failed: {exc.message}")
        return JSONResponse(exc.to_dict(), status_code=exc.status_code, headers=headers)

    @app.exception_handler(StarletteHTTPException)
    async def handle_http_error(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        return JSONResponse({"error": exc.detail}, status_code=exc.status_code, headers=getattr(exc, "headers", None))

    @app.middleware("http")
    async def track_requests(request: Request, call_next):
        endpoint = _endpoint_label(request)
        started = time.perf_counter()
        try:
            response = await call_next(request)
        except Exception as e:
            logger.exception(f"Unhandled error on {request.url.path}")
            monitoring.error_count.labels(error_type=type(e).__name__).inc()
            response = JSONResponse({"error": "Function exception", "detail": str(e)}, status_code=500)
        monitoring.request_duration.labels(endpoint=endpoint).observe(time.perf_counter() - started)
        monitoring.api_requests.labels(endpoint=endpoint, status=str(response.status_code)).inc()
        return response

    router = APIRouter(prefix=API_PREFIX)

    @router.get("/list-words")
    async def list_words():
        return await word_store.list_words()

    @router.post("/generate-words")
    async def generate_words(request: Request):
        decision = rate_limiter.check(client_ip(request))
        if not decision.allowed:
            raise RateLimitError(decision.retry_after)

        generator.ensure_configured()
        body = await read_json_body(request)
        check_admin_password(body.get("password"), auth)
        payload = parse_body(GenerateWordsRequest, body)

        if payload.mode != "generate":
            raise InvalidRequestError("Only 'generate' supported")
        if payload.level not in LEVEL_DESCRIPTIONS:
            raise InvalidRequestError("level must be 1, 2, or 3")

        saved = await generator.generate(payload.level, payload.existing_words)
        if saved:
            word_store.invalidate()
        return saved

    @router.post("/sync-get")
    async def sync_get(request: Request):
        payload = parse_body(SyncGetRequest, await read_json_body(request))
        if len(payload.sync_code) < auth.min_sync_code_length:
            raise InvalidRequestError("Missing syncCode")

        row = await store.get_progress(payload.sync_code)
        if row is None:
            return {"found": False}
        return {"found": True, "progress": row.get("progress"), "updated_at": row.get("updated_at")}

    @router.post("/sync-set")
    async def sync_set(request: Request):
        payload = parse_body(SyncSetRequest, await read_json_body(request))
        if len(payload.sync_code) < auth.min_sync_code_length:
            raise InvalidRequestError("Missing syncCode")
        if payload.progress is None or not isinstance(payload.progress, dict):
            raise InvalidRequestError("Missing progress object")

        await store.set_progress(payload.sync_code, payload.progress)
        logger.info(f"Stored progress for {payload.sync_code}")
        return {"ok": True, "updated": True}

    @router.post("/profile-list")
    async def profile_list(request: Request):
        payload = parse_body(PasswordRequest, await read_json_body(request))
        check_admin_password(payload.password, auth, trim=True)
        return {"profiles": await store.list_profiles()}

    @router.post("/profile-get")
    async def profile_get(request: Request):
        payload = parse_body(ProfileGetRequest, await read_json_body(request))
        if len(payload.profile_code) < auth.min_profile_code_length:
            raise InvalidRequestError("Missing profileCode")

        profile = await store.get_profile(payload.profile_code)
        if profile is None:
            return {"found": False}
        return {"found": True, "profileCode": profile.get("profile_code"), "childName": profile.get("child_name")}

    @router.post("/profile-create")
    async def profile_create(request: Request):
        body = await read_json_body(request)
        check_admin_password(body.get("password"), auth)
        payload = parse_body(ProfileCreateRequest, body)
        if not payload.child_name:
            raise InvalidRequestError("Missing childName")
        if len(payload.profile_code) < auth.min_profile_code_length:
            raise InvalidRequestError("Missing profileCode")

        profile = await store.create_profile(payload.profile_code, payload.child_name)
        return {"ok": True, "profile": profile}

    app.include_router(router)
    return app
