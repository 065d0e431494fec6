"""
Chat endpoints (v1).

Both routes take ``{message, threadId?}`` and answer with the chat envelope
``{success, data?, message, error?}``. Backend failures are rendered by the
orchestrator; only authentication and malformed bodies reach the global
exception handlers.
"""

from __future__ import annotations

from fastapi import APIRouter
from fastapi.responses import JSONResponse

from api.dependencies import Orchestrator
from api.middleware.auth import BearerToken
from models.api_models import ChatRequest

router = APIRouter()

_CHAT_RESPONSES: dict[int | str, dict[str, object]] = {
    200: {
        "description": "Agent reply",
        "content": {
            "application/json": {
                "example": {
                    "success": True,
                    "data": {"content": "Sales rose 4% last quarter.", "threadId": "thread_abc", "runId": "run_xyz"},
                    "message": "Response received from AI Foundry Agent",
                }
            }
        },
    },
    400: {"description": "Empty message"},
    500: {"description": "Backend failure rendered into the chat envelope"},
}


@router.post(
    "/chat",
    summary="Chat (authenticated)",
    description="Relay a message using the caller's bearer token for delegated access.",
    responses={**_CHAT_RESPONSES, 401: {"description": "Missing or malformed bearer token"}},
    tags=["Chat"],
)
async def chat(body: ChatRequest, orchestrator: Orchestrator, token: BearerToken) -> JSONResponse:
    result = await orchestrator.handle(body, user_token=token)
    return JSONResponse(status_code=result.status_code, content=result.body.to_wire())


@router.post(
    "/chat/demo",
    summary="Chat (demo)",
    description="Relay a message without caller authentication, using the service identity.",
    responses=_CHAT_RESPONSES,
    tags=["Chat"],
)
async def chat_demo(body: ChatRequest, orchestrator: Orchestrator) -> JSONResponse:
    result = await orchestrator.handle(body)
    return JSONResponse(status_code=result.status_code, content=result.body.to_wire())
