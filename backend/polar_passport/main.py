from contextlib import asynccontextmanager
from functools import lru_cache
import logging
import sqlite3
import time
from typing import Any

from fastapi import Body, FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response

from polar_passport.api.contracts import (
    GenerateRequest,
    PainsRequest,
    ProjectCreateRequest,
    SendToTelegramRequest,
)
from polar_passport.brief import PassportBrief
from polar_passport.config import settings
from polar_passport.db import (
    create_draft,
    create_project,
    get_latest_draft,
    get_project,
    init_db,
    list_drafts,
    list_projects,
    ping,
)
from polar_passport.delivery import DeliveryError, TelegramDispatcher
from polar_passport.draft import NormalizedDraft
from polar_passport.export.docx_renderer import render_passport_docx
from polar_passport.export.naming import DOCX_MEDIA_TYPE, content_disposition, passport_filename
from polar_passport.model_runtime import PassportModelClient
from polar_passport.normalizer import normalize_draft
from polar_passport.observability import (
    configure_logging,
    normalize_request_id,
    request_context,
    sanitize_for_logging,
)
from polar_passport.orchestrator import PassportOrchestrator, UpstreamUnavailableError
from polar_passport.pains import suggest_pains
from polar_passport.version import APP_VERSION

logger = logging.getLogger("polar_passport.api")

HIDDEN_VALUE = "***HIDDEN***"
READINESS_CACHE_SECONDS = 30.0
_readiness_cache: dict[str, Any] = {"checked_at": None, "ready": False}


@lru_cache(maxsize=1)
def _cached_model_client() -> PassportModelClient:
    return PassportModelClient(settings=settings)


def get_model_client() -> PassportModelClient:
    return _cached_model_client()


def get_orchestrator() -> PassportOrchestrator:
    return PassportOrchestrator(settings=settings, model_client=get_model_client())


@lru_cache(maxsize=1)
def _cached_telegram_dispatcher() -> TelegramDispatcher:
    return TelegramDispatcher(settings=settings)


def get_telegram_dispatcher() -> TelegramDispatcher:
    return _cached_telegram_dispatcher()


def _hidden(value: str) -> str | None:
    return HIDDEN_VALUE if value else None


def brief_from_draft_payload(payload: Any) -> PassportBrief:
    header = payload.get("header") if isinstance(payload, dict) else None
    if not isinstance(header, dict):
        return PassportBrief()
    return PassportBrief.model_validate(
        {
            "category": header.get("category"),
            "name": header.get("name"),
            "audience": header.get("audience"),
            "pain": header.get("pain"),
            "innovation": header.get("innovation"),
        }
    )


def renormalize_payload(payload: Any) -> NormalizedDraft:
    return normalize_draft(payload, brief_from_draft_payload(payload))


def docx_response(draft: NormalizedDraft) -> Response:
    document = render_passport_docx(draft)
    return Response(
        content=document,
        media_type=DOCX_MEDIA_TYPE,
        headers={
            "Content-Disposition": content_disposition(passport_filename(draft)),
            "Cache-Control": "no-store",
        },
    )


def require_project(project_id: str) -> dict[str, str]:
    project = get_project(project_id)
    if project is None:
        raise HTTPException(status_code=404, detail="Project not found")
    return project


def require_latest_draft(project_id: str) -> dict[str, object]:
    require_project(project_id)
    latest = get_latest_draft(project_id)
    if latest is None:
        raise HTTPException(status_code=404, detail="No draft found for project")
    return latest


@asynccontextmanager
async def lifespan(_: FastAPI):
    configure_logging(settings.log_level)
    logger.info(
        "application_startup",
        extra={"event": "application_startup", "environment": settings.app_env, "app_version": APP_VERSION},
    )
    init_db()
    yield
    logger.info("application_shutdown", extra={"event": "application_shutdown"})


def create_app() -> FastAPI:
    cors_origins = settings.cors_origins_list
    if settings.cors_allow_credentials and any(origin == "*" for origin in cors_origins):
        raise RuntimeError("Invalid CORS_ORIGINS: wildcard '*' is not allowed when credentials are enabled.")

    app = FastAPI(title=settings.app_name, version=APP_VERSION, lifespan=lifespan)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=cors_origins,
        allow_credentials=settings.cors_allow_credentials,
        allow_methods=["GET", "POST"],
        allow_headers=["Content-Type", settings.request_id_header],
        expose_headers=["Content-Disposition", settings.request_id_header],
    )

    @app.middleware("http")
    async def request_context_middleware(request: Request, call_next):
        request_id = normalize_request_id(request.headers.get(settings.request_id_header))
        request.state.request_id = request_id
        started = time.perf_counter()

        def request_fields(event: str) -> dict[str, object]:
            return {
                "event": event,
                "request_id": request_id,
                "method": request.method,
                "path": request.url.path,
                "duration_ms": round((time.perf_counter() - started) * 1000, 2),
            }

        with request_context(request_id):
            logger.info(
                "request_started",
                extra={**request_fields("request_started"), "query": sanitize_for_logging(dict(request.query_params))},
            )
            try:
                response = await call_next(request)
            except Exception:
                logger.exception("request_failed", extra=request_fields("request_failed"))
                raise

            response.headers[settings.request_id_header] = request_id
            logger.info(
                "request_completed",
                extra={**request_fields("request_completed"), "status_code": response.status_code},
            )
            return response

    @app.get("/")
    def root() -> dict[str, str]:
        return {"service": "polar-passport-backend", "status": "running"}

    @app.get("/health")
    def health() -> dict[str, str]:
        return {"status": "ok", "environment": settings.app_env, "version": APP_VERSION}

    @app.get("/ready")
    def ready():
        now = time.monotonic()
        checked_at = _readiness_cache["checked_at"]
        if checked_at is None or now - checked_at > READINESS_CACHE_SECONDS:
            try:
                ping()
                _readiness_cache["ready"] = True
            except (sqlite3.Error, OSError, RuntimeError) as exc:
                logger.warning("readiness_probe_failed", extra={"event": "readiness_probe_failed", "error": str(exc)})
                _readiness_cache["ready"] = False
            _readiness_cache["checked_at"] = now

        if not _readiness_cache["ready"]:
            return JSONResponse(status_code=503, content={"status": "not_ready", "database": "unavailable"})
        return {"status": "ready", "database": "ok"}

    @app.get("/diag")
    def diag() -> dict[str, object]:
        model_client = get_model_client()
        return {
            "app_version": APP_VERSION,
            "environment": settings.app_env,
            "model_provider": settings.model_provider,
            "model_name": model_client.model_label,
            "model_api_url": settings.model_api_url,
            "model_api_key": _hidden(settings.model_api_key),
            "model_configured": model_client.is_configured,
            "aws_region": settings.aws_region,
            "upstream_failure_mode": settings.upstream_failure_mode,
            "database": "sqlite",
            "telegram_bot_token": _hidden(settings.telegram_bot_token),
            "telegram_default_chat_id": _hidden(settings.telegram_default_chat_id),
        }

    @app.post("/generate")
    def generate(payload: GenerateRequest) -> dict[str, object]:
        if payload.project_id:
            require_project(payload.project_id)

        try:
            result = get_orchestrator().generate(payload)
        except UpstreamUnavailableError as exc:
            raise HTTPException(status_code=502, detail=f"Model is unavailable: {exc}") from exc

        response: dict[str, object] = {
            "draft": result.draft.to_payload(),
            "mode": result.mode,
            "model": result.model,
            "project_id": payload.project_id,
            "draft_id": None,
        }
        if payload.project_id:
            stored = create_draft(
                payload.project_id,
                result.draft.to_payload(),
                mode=result.mode,
                model=result.model,
            )
            response["draft_id"] = stored["id"]
        return response

    @app.post("/generate-pains")
    def generate_pains(payload: PainsRequest) -> dict[str, object]:
        result = suggest_pains(payload, get_model_client())
        return {"pains": result.pains, "source": result.source}

    @app.post("/generate-docx")
    def generate_docx(payload: dict[str, Any] = Body(...)) -> Response:
        raw = payload.get("draft", payload)
        return docx_response(renormalize_payload(raw))

    @app.post("/send-to-tg")
    def send_to_telegram(payload: SendToTelegramRequest) -> dict[str, object]:
        if payload.draft is not None:
            raw: Any = payload.draft
        elif payload.project_id:
            raw = require_latest_draft(payload.project_id)["payload"]
        else:
            raise HTTPException(status_code=400, detail="Either draft or project_id is required")

        chat_id = payload.chat_id or settings.telegram_default_chat_id
        if not chat_id:
            raise HTTPException(status_code=400, detail="chat_id is required when no default chat is configured")

        draft = renormalize_payload(raw)
        try:
            get_telegram_dispatcher().send_passport(
                chat_id,
                draft,
                render_passport_docx(draft),
                passport_filename(draft),
            )
        except DeliveryError as exc:
            raise HTTPException(status_code=502, detail=str(exc)) from exc
        return {"ok": True}

    @app.post("/projects")
    def create_project_endpoint(payload: ProjectCreateRequest) -> dict[str, str]:
        return create_project(payload.title, payload.category)

    @app.get("/projects")
    def list_projects_endpoint() -> list[dict[str, object]]:
        return list_projects()

    @app.get("/projects/{project_id}")
    def get_project_endpoint(project_id: str) -> dict[str, object]:
        project = require_project(project_id)
        return {**project, "drafts": list_drafts(project_id)}

    @app.get("/projects/{project_id}/drafts/latest")
    def get_latest_project_draft(project_id: str) -> dict[str, object]:
        latest = require_latest_draft(project_id)
        return {
            "project_id": project_id,
            "draft": renormalize_payload(latest["payload"]).to_payload(),
            "artifact": {
                "id": latest["id"],
                "mode": latest["mode"],
                "model": latest["model"],
                "created_at": latest["created_at"],
            },
        }

    @app.get("/projects/{project_id}/docx")
    def get_project_docx(project_id: str) -> Response:
        latest = require_latest_draft(project_id)
        return docx_response(renormalize_payload(latest["payload"]))

    return app


app = create_app()
