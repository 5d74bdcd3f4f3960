from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Query, Response

from rems_messaging.api.deps import CurrentPrincipal, UoWDep
from rems_messaging.api.v1.schemas.conversation import (
    ConversationResponse,
    MarkReadResponse,
    StartConversationRequest,
    UnreadCountResponse,
)
from rems_messaging.application.dto.conversation import StartConversationDTO
from rems_messaging.services import conversation_service, read_state_service

router = APIRouter(prefix="/api/v1/messages", tags=["conversations"])


@router.get("/conversations", response_model=list[ConversationResponse])
async def list_conversations(
    principal: CurrentPrincipal,
    uow: UoWDep,
    include_archived: bool = Query(False),
) -> list[ConversationResponse]:
    convs = await conversation_service.list_user_conversations(
        principal, include_archived, uow,
    )
    return [ConversationResponse.model_validate(c, from_attributes=True) for c in convs]


@router.get("/unread", response_model=UnreadCountResponse)
async def get_unread_count(
    principal: CurrentPrincipal,
    uow: UoWDep,
) -> UnreadCountResponse:
    total = await conversation_service.unread_total(principal, uow)
    return UnreadCountResponse(unread_count=total)


@router.post("/conversations", response_model=ConversationResponse, status_code=201)
async def start_conversation(
    body: StartConversationRequest,
    principal: CurrentPrincipal,
    uow: UoWDep,
) -> ConversationResponse:
    conv, _created = await conversation_service.start_conversation(
        principal,
        StartConversationDTO(
            recipient_id=body.recipient_id,
            initial_message=body.initial_message,
            property_id=body.property_id,
            title=body.title,
        ),
        uow,
    )
    return ConversationResponse.model_validate(conv, from_attributes=True)


@router.get("/conversations/{conversation_id}", response_model=ConversationResponse)
async def get_conversation(
    conversation_id: UUID,
    principal: CurrentPrincipal,
    uow: UoWDep,
) -> ConversationResponse:
    conv = await conversation_service.get_conversation(conversation_id, principal, uow)
    return ConversationResponse.model_validate(conv, from_attributes=True)


@router.post("/conversations/{conversation_id}/read", response_model=MarkReadResponse)
async def mark_conversation_read(
    conversation_id: UUID,
    principal: CurrentPrincipal,
    uow: UoWDep,
) -> MarkReadResponse:
    marked = await read_state_service.mark_conversation_read(conversation_id, principal, uow)
    return MarkReadResponse(marked=marked)


@router.post("/conversations/{conversation_id}/archive", status_code=204)
async def archive_conversation(
    conversation_id: UUID,
    principal: CurrentPrincipal,
    uow: UoWDep,
) -> Response:
    await conversation_service.archive_conversation(conversation_id, principal, uow)
    return Response(status_code=204)
