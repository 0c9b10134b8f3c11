"""
HTTP server for the concierge API.

POST /hotel-voice-assistant takes one utterance, answers it from the canned
response set and logs the exchange. Nothing about the session is kept
between requests.
"""
import json
import time
from typing import Any, List, Optional

from fastapi import Depends, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from logging_setup import get_logger, Component
from .conversation_log import ConversationLog, ConversationRecord
from .conversations_api import router as conversations_router
from .dependencies import get_conversation_log, get_responder, require_api_key
from .errors import ConciergeAPIError, ConversationLogError, ErrorCategory, ErrorHandler
from .responder import Responder


CORS_ALLOW_METHODS = ["GET", "POST", "PUT", "DELETE", "OPTIONS"]
CORS_ALLOW_HEADERS = ["Content-Type", "Authorization", "X-Client-Info", "Apikey"]

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": ", ".join(CORS_ALLOW_METHODS),
    "Access-Control-Allow-Headers": ", ".join(CORS_ALLOW_HEADERS),
}

app = FastAPI(title="Grand Plaza Concierge API")
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=CORS_ALLOW_METHODS,
    allow_headers=CORS_ALLOW_HEADERS,
)
app.include_router(conversations_router)

logger = get_logger(Component.CONCIERGE_API)


class AssistantRequest(BaseModel):
    """Request body sent by the voice front-end (camelCase on the wire)."""
    model_config = ConfigDict(populate_by_name=True)

    user_message: Optional[str] = Field(None, alias="userMessage")
    session_id: Optional[str] = Field(None, alias="sessionId")
    # Entries are passed through untouched; only the count is logged
    conversation_history: Optional[List[Any]] = Field(None, alias="conversationHistory")

    @property
    def history(self) -> List[Any]:
        return self.conversation_history or []


@app.exception_handler(ConciergeAPIError)
async def concierge_error_handler(request: Request, exc: ConciergeAPIError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error(
            "Request failed",
            category=exc.category,
            path=request.url.path,
            exc_info=exc,
        )
    else:
        logger.warning(
            "Request rejected",
            category=exc.category,
            path=request.url.path,
        )
    return JSONResponse(
        status_code=exc.status_code,
        content=ErrorHandler.error_body(exc.category, exc),
        headers=CORS_HEADERS,
    )


async def _parse_request(request: Request) -> AssistantRequest:
    body = await request.body()
    try:
        payload = AssistantRequest.model_validate(json.loads(body))
    except (json.JSONDecodeError, UnicodeDecodeError, ValidationError) as e:
        raise ConciergeAPIError(ErrorCategory.INVALID_BODY, detail=str(e)) from e

    if not payload.user_message or not payload.session_id:
        raise ConciergeAPIError(ErrorCategory.MISSING_FIELDS)
    return payload


def _store_turn(
    conversation_log: ConversationLog,
    payload: AssistantRequest,
    bot_response: str,
    intent: str,
) -> bool:
    """
    Write the exchange to the conversation log.

    A failed write is logged and reported as False; the guest still gets
    their answer.
    """
    record = ConversationRecord.create(
        session_id=payload.session_id,
        user_message=payload.user_message,
        bot_response=bot_response,
        intent=intent,
        history_length=len(payload.history),
    )
    try:
        conversation_log.append(record)
    except ConversationLogError as e:
        logger.error(
            "Error storing conversation",
            session_id=payload.session_id,
            category=ErrorHandler.classify_error(e),
            error=str(e),
        )
        return False
    return True


@app.options("/hotel-voice-assistant")
async def hotel_voice_assistant_preflight() -> Response:
    return Response(status_code=200, headers=CORS_HEADERS)


@app.post("/hotel-voice-assistant", dependencies=[Depends(require_api_key)])
async def hotel_voice_assistant(
    request: Request,
    responder: Responder = Depends(get_responder),
    conversation_log: ConversationLog = Depends(get_conversation_log),
) -> JSONResponse:
    """
    Answer one guest utterance.

    Body: {"userMessage": str, "sessionId": str, "conversationHistory": [...]}
    Returns {"response": str}.
    """
    start_ts = time.time()
    try:
        payload = await _parse_request(request)
        session_logger = logger.with_session(payload.session_id)
        session_logger.debug_pii("Utterance received", user_message=payload.user_message)

        reply = responder.respond(payload.user_message, payload.history)
        stored = _store_turn(conversation_log, payload, reply.text, reply.intent)

        session_logger.info(
            "Turn answered",
            intent=reply.intent,
            history_length=len(payload.history),
            stored=stored,
            latency_ms=int((time.time() - start_ts) * 1000),
        )
        return JSONResponse(content={"response": reply.text}, headers=CORS_HEADERS)
    except ConciergeAPIError:
        raise
    except Exception as e:
        category = ErrorHandler.classify_error(e)
        logger.exception(
            "Error processing request",
            category=category,
            error_type=type(e).__name__,
        )
        return JSONResponse(
            status_code=ErrorHandler.status_code(category),
            content=ErrorHandler.error_body(category, e),
            headers=CORS_HEADERS,
        )


@app.get("/health")
async def health():
    """Health check endpoint."""
    return {"status": "ok", "component": "concierge_api"}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
