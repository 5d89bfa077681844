from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse, Response, StreamingResponse
from starlette.concurrency import iterate_in_threadpool, run_in_threadpool
from starlette.exceptions import HTTPException as StarletteHTTPException
import json

from chat_relay.core.config import settings
from chat_relay.core.errors import InvalidRequestError
from chat_relay.core.logging import log_shutdown_info, log_startup_info, get_logger
from chat_relay.models.request import ChatRequest
from chat_relay.models.response import ChatReply, ErrorResponse, HealthCheckResponse
from chat_relay.services.chat_service import RelayStream, get_chat_service, not_configured_message

logger = get_logger(__name__)

app = FastAPI(title=settings.APP_NAME, version=settings.APP_VERSION)

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "POST, OPTIONS",
    "Access-Control-Allow-Headers": "Content-Type",
}

SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
}

chat_service = get_chat_service()


# CORS: wildcard origin on every response, bare 204 for any preflight
@app.middleware("http")
async def cors_middleware(request: Request, call_next):
    if request.method == "OPTIONS":
        response = Response(status_code=204)
    else:
        response = await call_next(request)
    response.headers.update(CORS_HEADERS)
    return response


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    if exc.status_code == 405:
        message = "Method not allowed"
    else:
        message = str(exc.detail)
    return JSONResponse(status_code=exc.status_code, content=ErrorResponse(error=message).model_dump())


def error_response(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content=ErrorResponse(error=message).model_dump())


def reply_response(reply: ChatReply) -> JSONResponse:
    return JSONResponse(status_code=200, content=reply.model_dump())


async def parse_chat_request(request: Request) -> ChatRequest:
    """Decode and normalize the JSON body; raises InvalidRequestError on bad input."""
    raw = await request.body()
    try:
        payload = json.loads(raw) if raw.strip() else {}
    except ValueError:
        raise InvalidRequestError("Invalid JSON")
    return ChatRequest.from_payload(payload)


@app.on_event("startup")
async def startup_event():
    log_startup_info()
    logger.info("Application startup completed")


@app.on_event("shutdown")
async def shutdown_event():
    log_shutdown_info()


@app.get("/health", response_model=HealthCheckResponse)
async def health():
    """Health check endpoint: reports whether a provider is configured. Makes no outbound call."""
    client = chat_service.llm_client
    return HealthCheckResponse(
        status="ok",
        configured=chat_service.is_configured,
        model=getattr(client, "model", None),
    )


@app.post("/api/chat", response_model=ChatReply)
async def chat(request: Request):
    """Non-streaming chat endpoint."""
    if not chat_service.is_configured:
        return reply_response(ChatReply(reply=not_configured_message()))

    try:
        chat_request = await parse_chat_request(request)
    except InvalidRequestError as e:
        return error_response(400, str(e))

    # the client is blocking (requests); keep it off the event loop
    reply = await run_in_threadpool(chat_service.generate_response, chat_request)
    return reply_response(reply)


@app.post("/api/chat/stream")
async def chat_stream(request: Request):
    """Streaming chat endpoint using Server-Sent Events (SSE)."""
    if not chat_service.is_configured:
        return reply_response(ChatReply(reply=not_configured_message()))

    try:
        chat_request = await parse_chat_request(request)
    except InvalidRequestError as e:
        return error_response(400, str(e))

    result = await run_in_threadpool(chat_service.stream_response, chat_request)
    if isinstance(result, ChatReply):
        return reply_response(result)

    return StreamingResponse(
        event_generator(result),
        media_type="text/event-stream",
        headers=SSE_HEADERS,
    )


async def event_generator(stream: RelayStream):
    """Forward relay events; the upstream is released even if the client disconnects."""
    try:
        async for event in iterate_in_threadpool(iter(stream)):
            yield event
    finally:
        stream.close()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "chat_relay.main:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=settings.RELOAD,
    )
