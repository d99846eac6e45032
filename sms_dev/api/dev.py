"""
Development-only endpoints backing the virtual phone UI.
"""
from typing import Annotated

from fastapi import APIRouter, Depends

from sms_dev.core.components import get_conversations
from sms_dev.core.logging import get_logger
from sms_dev.schemas.message import ConversationResponse, ConversationsListResponse, MessageResponse
from sms_dev.services.conversations import ConversationIndex

logger = get_logger(__name__)

router = APIRouter(prefix="/v1/dev", tags=["Development"])


@router.get(
    "/conversations",
    response_model=ConversationsListResponse,
    summary="List conversations",
    description="Messages grouped by counterparty phone number, most recent activity first."
)
async def list_conversations(
    conversations: Annotated[ConversationIndex, Depends(get_conversations)],
) -> ConversationsListResponse:
    grouped = conversations.list_conversations()
    logger.debug(
        "Listed conversations",
        extra={"extra_data": {"total": len(grouped)}}
    )
    return ConversationsListResponse(
        conversations=[
            ConversationResponse(
                phoneNumber=c.phone_number,
                messages=[MessageResponse.from_message(m) for m in c.messages],
                lastActivity=c.last_activity,
                unreadCount=c.unread_count,
            )
            for c in grouped
        ],
        total=len(grouped),
    )
