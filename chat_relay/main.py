from fastapi import FastAPI, Depends, HTTPException, Request
from fastapi.exception_handlers import http_exception_handler
from fastapi.responses import JSONResponse, RedirectResponse, Response
from starlette.exceptions import HTTPException as StarletteHTTPException
from prometheus_fastapi_instrumentator import Instrumentator
import structlog

# --- imports internos ---
from chat_relay.core.settings import get_settings, Settings
from chat_relay.core.logging import configure_logging
from chat_relay.errors import (
    CONFIG_ERROR,
    INVALID_MESSAGE,
    METHOD_NOT_ALLOWED,
    ConfigurationError,
    InvalidChatRequest,
    failure_payload,
)
from chat_relay.llm.completion import (
    GENERATION_PARAMS,
    OpenAICompletionService,
    build_conversation,
    close_completion_services,
    extract_reply,
    get_completion_service,
)
from chat_relay.schemas import DEFAULT_MODEL, ChatRequest, ChatResponse, ErrorResponse

# ------------------------------------------------------------------------------
# Config app + logging
# ------------------------------------------------------------------------------
_settings = get_settings()
configure_logging(
    "DEBUG" if _settings.debug else "INFO",
    json_logs=not _settings.is_development,
)
log = structlog.get_logger()

app = FastAPI(title="Chat relay: FastAPI + OpenAI")

# CORS fijo en cada respuesta del endpoint de chat (incluidos errores y preflight)
CORS_HEADERS = {
    "Access-Control-Allow-Credentials": "true",
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "GET,OPTIONS,PATCH,DELETE,POST,PUT",
    "Access-Control-Allow-Headers": (
        "X-CSRF-Token, X-Requested-With, Accept, Accept-Version, Content-Length, "
        "Content-MD5, Content-Type, Date, X-Api-Version"
    ),
}

CHAT_PATH = "/api/chat"
CHAT_METHODS = ["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS", "HEAD"]

Instrumentator().instrument(app).expose(app, endpoint="/metrics")

# ------------------------------------------------------------------------------
# Hooks de ciclo de vida
# ------------------------------------------------------------------------------
@app.on_event("startup")
async def on_startup():
    s = get_settings()
    log.info(
        "startup",
        app=s.app_name,
        debug=s.debug,
        environment=s.environment,
        openai_configured=bool(s.openai_api_key),
    )

@app.on_event("shutdown")
async def on_shutdown():
    await close_completion_services()

# ------------------------------------------------------------------------------
# Rutas base
# ------------------------------------------------------------------------------
@app.get("/", include_in_schema=False)
async def root():
    return RedirectResponse(url="/docs", status_code=307)

@app.get("/health")
async def health(settings: Settings = Depends(get_settings)):
    return {
        "app": settings.app_name,
        "debug": settings.debug,
        "environment": settings.environment,
        "default_model": DEFAULT_MODEL,
        "openai_configured": bool(settings.openai_api_key),
    }

@app.get("/health/live")
async def health_live():
    return {"status": "ok"}

@app.get("/health/ready")
async def health_ready(settings: Settings = Depends(get_settings)):
    if not settings.openai_api_key:
        log.warning("readiness_config_missing")
        raise HTTPException(status_code=503, detail="missing openai configuration")
    return {"ready": True}

# ------------------------------------------------------------------------------
# Endpoint de chat
# ------------------------------------------------------------------------------
def _json(status_code: int, body: dict) -> JSONResponse:
    return JSONResponse(status_code=status_code, content=body, headers=CORS_HEADERS)


async def _parse_chat_request(request: Request) -> ChatRequest:
    # JSON roto, cuerpo que no es objeto o `message` inválido: mismo 400
    try:
        data = await request.json()
        return ChatRequest.model_validate(data)
    except ValueError as e:
        raise InvalidChatRequest(INVALID_MESSAGE) from e


@app.exception_handler(StarletteHTTPException)
async def http_error(request: Request, exc: StarletteHTTPException):
    # verbos fuera de CHAT_METHODS: el router responde 405 antes de llegar a `chat`
    if exc.status_code == 405 and request.url.path == CHAT_PATH:
        return _json(405, ErrorResponse(error=METHOD_NOT_ALLOWED).model_dump())
    return await http_exception_handler(request, exc)


@app.api_route(CHAT_PATH, methods=CHAT_METHODS)
async def chat(
    request: Request,
    settings: Settings = Depends(get_settings),
    service: OpenAICompletionService = Depends(get_completion_service),
):
    if request.method == "OPTIONS":
        return Response(status_code=200, headers=CORS_HEADERS)

    if request.method != "POST":
        return _json(405, ErrorResponse(error=METHOD_NOT_ALLOWED).model_dump())

    try:
        if not settings.openai_api_key:
            log.error("openai_api_key_missing")
            raise ConfigurationError(CONFIG_ERROR)

        payload = await _parse_chat_request(request)

        log.info("chat_request", model=payload.model, message_length=len(payload.message))
        completion = await service.create(
            messages=build_conversation(payload.message),
            model=payload.model,
            **GENERATION_PARAMS,
        )
        reply = extract_reply(completion)

        return _json(
            200,
            ChatResponse(
                success=True,
                reply=reply,
                model=completion.get("model"),
                usage=completion.get("usage"),
            ).model_dump(exclude_unset=True),
        )
    except InvalidChatRequest as e:
        log.warning("chat_invalid_request", error=str(e.__cause__ or e))
        return _json(400, ErrorResponse(error=e.message).model_dump())
    except Exception as e:
        status, body = failure_payload(e, include_details=settings.is_development)
        log.error("chat_error", status=status, error=str(e), error_type=type(e).__name__)
        return _json(status, body)
