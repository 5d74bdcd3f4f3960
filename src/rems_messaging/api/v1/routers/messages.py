from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Query

from rems_messaging.api.deps import CurrentPrincipal, UoWDep
from rems_messaging.api.v1.schemas.message import (
    MessagePageResponse,
    MessageResponse,
    SendMessageRequest,
)
from rems_messaging.config import settings
from rems_messaging.services import message_service

router = APIRouter(prefix="/api/v1/messages/conversations", tags=["messages"])


@router.get("/{conversation_id}/messages", response_model=MessagePageResponse)
async def list_messages(
    conversation_id: UUID,
    principal: CurrentPrincipal,
    uow: UoWDep,
    cursor: str | None = Query(None),
    limit: int = Query(settings.MESSAGE_PAGE_SIZE, ge=1, le=200),
) -> MessagePageResponse:
    page = await message_service.list_messages(
        conversation_id, principal, cursor, limit, uow,
    )
    return MessagePageResponse.model_validate(page)


@router.post("/{conversation_id}/messages", response_model=MessageResponse, status_code=201)
async def send_message(
    conversation_id: UUID,
    body: SendMessageRequest,
    principal: CurrentPrincipal,
    uow: UoWDep,
) -> MessageResponse:
    msg, _created = await message_service.send_message(
        conversation_id,
        principal,
        body.content,
        body.client_msg_id,
        uow,
    )
    return MessageResponse.model_validate(msg, from_attributes=True)
