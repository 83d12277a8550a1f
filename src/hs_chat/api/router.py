"""hs_chat REST API: conversations and messages, all require JWT authentication.

Message posts and bulk reads go through the realtime protocol so connected
sessions see the same events as when the action comes over the socket.
"""

from typing import Annotated

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from src.hs_chat.application.schemas import (
    CreateConversationRequest,
    MarkReadResponse,
    SendMessageRequest,
)
from src.hs_chat.application.service import ChatApplicationService
from src.hs_chat.realtime.protocol import ChatProtocol
from src.hs_common.database import get_db_session
from src.hs_common.errors import ServiceUnavailableError
from src.hs_common.response import ApiResponse, success_response
from src.hs_gateway.auth.dependencies import get_current_identity
from src.hs_gateway.auth.identity import Identity

router = APIRouter(prefix="/chat", tags=["chat"])


def get_chat_service(request: Request) -> ChatApplicationService:
    return ChatApplicationService(profiles=getattr(request.app.state, "profiles", None))


def get_chat_protocol(request: Request) -> ChatProtocol:
    protocol = getattr(request.app.state, "chat_protocol", None)
    if protocol is None:
        raise ServiceUnavailableError("Realtime chat is not available")
    return protocol


def _wrap(request: Request, data: object) -> ApiResponse:
    resp = success_response(data)
    resp.request_id = getattr(request.state, "request_id", resp.request_id)
    return resp


@router.post("/conversations")
async def create_or_get_conversation(
    body: CreateConversationRequest,
    identity: Annotated[Identity, Depends(get_current_identity)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    service: Annotated[ChatApplicationService, Depends(get_chat_service)],
    request: Request,
) -> ApiResponse:
    data = await service.create_or_get_conversation(db, identity, body)
    return _wrap(request, data.model_dump())


@router.get("/conversations")
async def list_conversations(
    identity: Annotated[Identity, Depends(get_current_identity)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    service: Annotated[ChatApplicationService, Depends(get_chat_service)],
    request: Request,
) -> ApiResponse:
    data = await service.get_conversations(
        db, identity, authorization=request.headers.get("Authorization")
    )
    return _wrap(request, [c.model_dump() for c in data])


@router.get("/conversations/unread-count")
async def get_unread_count(
    identity: Annotated[Identity, Depends(get_current_identity)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    service: Annotated[ChatApplicationService, Depends(get_chat_service)],
    request: Request,
) -> ApiResponse:
    data = await service.get_unread_count(db, identity)
    return _wrap(request, data.model_dump())


@router.get("/conversations/{conversation_id}/messages")
async def list_messages(
    conversation_id: str,
    identity: Annotated[Identity, Depends(get_current_identity)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    service: Annotated[ChatApplicationService, Depends(get_chat_service)],
    request: Request,
    limit: int = Query(20, ge=1, le=100, description="Items per page"),
    offset: int = Query(0, ge=0, description="Items to skip"),
) -> ApiResponse:
    data = await service.list_messages(db, identity, conversation_id, limit, offset)
    return _wrap(request, data.model_dump())


@router.post("/conversations/{conversation_id}/messages", status_code=201)
async def send_message(
    conversation_id: str,
    body: SendMessageRequest,
    identity: Annotated[Identity, Depends(get_current_identity)],
    protocol: Annotated[ChatProtocol, Depends(get_chat_protocol)],
    request: Request,
) -> ApiResponse:
    data = await protocol.send_message(identity, conversation_id, body.content)
    return _wrap(request, data.model_dump())


@router.post("/conversations/{conversation_id}/read")
async def mark_conversation_read(
    conversation_id: str,
    identity: Annotated[Identity, Depends(get_current_identity)],
    protocol: Annotated[ChatProtocol, Depends(get_chat_protocol)],
    request: Request,
) -> ApiResponse:
    updated = await protocol.mark_conversation_read(identity, conversation_id)
    return _wrap(request, MarkReadResponse(updated=updated).model_dump())
