"""
Messages endpoints mirroring the production send/lookup/list API.
"""
import csv
import io
import json
from datetime import datetime, timezone
from typing import Annotated, List, Literal, Optional

from fastapi import APIRouter, Depends, Query, Response, status

from sms_dev.core.components import get_conversations, get_scheduler, get_settings_dep, get_store
from sms_dev.core.config import Settings
from sms_dev.core.errors import NotFoundError, utc_timestamp
from sms_dev.core.logging import get_logger
from sms_dev.core.metrics import record_message_created
from sms_dev.models.message import MessageStatus, to_iso
from sms_dev.schemas.message import (
    ErrorResponse,
    MessageResponse,
    MessagesListResponse,
    Pagination,
    SendMessageRequest,
)
from sms_dev.services.conversations import ConversationIndex
from sms_dev.services.lifecycle import LifecycleScheduler
from sms_dev.services.message_store import MessageFilter, MessageStore

logger = get_logger(__name__)

router = APIRouter(prefix="/v1/messages", tags=["Messages"])

MESSAGE_CSV_HEADERS = ["ID", "To", "From", "Body", "Status", "Created At", "Delivered At", "Cost"]
THREAD_CSV_HEADERS = ["Conversation ID", "Participants", "Message Count", "First Message", "Last Message"]


def _attachment(content: str, media_type: str, stem: str, extension: str) -> Response:
    stamp = datetime.now(timezone.utc).isoformat().replace(":", "-").replace(".", "-")
    return Response(
        content=content,
        media_type=media_type,
        headers={"Content-Disposition": f'attachment; filename="{stem}-{stamp}.{extension}"'},
    )


def _to_csv(headers: List[str], rows: List[list]) -> str:
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerow(headers)
    writer.writerows(rows)
    return buffer.getvalue()


@router.post(
    "",
    response_model=MessageResponse,
    status_code=status.HTTP_201_CREATED,
    responses={400: {"model": ErrorResponse, "description": "Validation error"}},
    summary="Send a message",
    description="Queue an outbound SMS. Status advances to sent and delivered in the background."
)
async def send_message(
    payload: SendMessageRequest,
    store: Annotated[MessageStore, Depends(get_store)],
    scheduler: Annotated[LifecycleScheduler, Depends(get_scheduler)],
    settings: Annotated[Settings, Depends(get_settings_dep)],
) -> MessageResponse:
    """
    Send a message.
    
    Responds immediately with the queued record, like the real API does;
    the lifecycle runs after the response.
    """
    message = store.create(payload.to, payload.from_ or settings.default_from_number, payload.body)
    scheduler.schedule(message.id)
    record_message_created("outbound")
    return MessageResponse.from_message(message)


@router.get(
    "",
    response_model=MessagesListResponse,
    responses={400: {"model": ErrorResponse, "description": "Validation error"}},
    summary="List messages",
    description="Retrieve messages, newest first, with search, filters and pagination."
)
async def list_messages(
    store: Annotated[MessageStore, Depends(get_store)],
    limit: Annotated[int, Query(ge=1, le=100, description="Number of messages to return")] = 20,
    offset: Annotated[int, Query(ge=0, description="Number of messages to skip")] = 0,
    search: Annotated[Optional[str], Query(description="Case-insensitive search in body, to and from")] = None,
    status_filter: Annotated[Optional[MessageStatus], Query(alias="status", description="Exact status")] = None,
    phone: Annotated[Optional[str], Query(description="Substring match against either party")] = None,
    from_date: Annotated[Optional[datetime], Query(description="Created at or after (ISO-8601)")] = None,
    to_date: Annotated[Optional[datetime], Query(description="Created at or before (ISO-8601)")] = None,
) -> MessagesListResponse:
    message_filter = MessageFilter(
        search=search,
        status=status_filter,
        phone=phone,
        from_date=from_date,
        to_date=to_date,
    )
    page = store.list(message_filter, limit=limit, offset=offset)
    
    logger.debug(
        "Listed messages",
        extra={
            "extra_data": {
                "total": page.total,
                "returned": len(page.items),
                "limit": limit,
                "offset": offset,
            }
        }
    )
    
    return MessagesListResponse(
        messages=[MessageResponse.from_message(m) for m in page.items],
        pagination=Pagination(
            limit=page.limit,
            offset=page.offset,
            total=page.total,
            has_more=page.has_more,
        ),
    )


@router.get(
    "/export",
    summary="Export messages",
    description="Download matching messages, oldest first, as JSON or CSV."
)
async def export_messages(
    store: Annotated[MessageStore, Depends(get_store)],
    format: Annotated[Literal["json", "csv"], Query()] = "json",
    phone: Annotated[Optional[str], Query()] = None,
    from_date: Annotated[Optional[datetime], Query()] = None,
    to_date: Annotated[Optional[datetime], Query()] = None,
) -> Response:
    messages = store.export(MessageFilter(phone=phone, from_date=from_date, to_date=to_date))
    
    if format == "csv":
        rows = [
            [m.id, m.to, m.from_, m.body, m.status.value, to_iso(m.created_at), to_iso(m.delivered_at) or "", m.cost]
            for m in messages
        ]
        return _attachment(_to_csv(MESSAGE_CSV_HEADERS, rows), "text/csv", "sms-dev-messages", "csv")
    
    filters = {
        key: value for key, value in {
            "phone": phone,
            "from_date": to_iso(from_date) if from_date else None,
            "to_date": to_iso(to_date) if to_date else None,
        }.items() if value
    }
    document = {
        "export_info": {
            "timestamp": utc_timestamp(),
            "total_messages": len(messages),
            "filters": filters,
        },
        "messages": [m.to_dict() for m in messages],
    }
    return _attachment(json.dumps(document), "application/json", "sms-dev-messages", "json")


@router.get(
    "/conversations/export",
    summary="Export conversations",
    description="Download every pair of participants with their messages, as JSON or CSV."
)
async def export_conversations(
    conversations: Annotated[ConversationIndex, Depends(get_conversations)],
    store: Annotated[MessageStore, Depends(get_store)],
    format: Annotated[Literal["json", "csv"], Query()] = "json",
) -> Response:
    threads = conversations.list_threads()
    
    if format == "csv":
        rows = []
        for thread in threads:
            summary = thread.to_dict()
            rows.append([
                thread.id,
                " <-> ".join(thread.participants),
                summary["message_count"],
                summary["first_message"] or "",
                summary["last_message"] or "",
            ])
        return _attachment(_to_csv(THREAD_CSV_HEADERS, rows), "text/csv", "sms-dev-conversations", "csv")
    
    document = {
        "export_info": {
            "timestamp": utc_timestamp(),
            "total_conversations": len(threads),
            "total_messages": store.count(),
        },
        "conversations": [t.to_dict() for t in threads],
    }
    return _attachment(json.dumps(document), "application/json", "sms-dev-conversations", "json")


@router.get(
    "/{message_id}",
    response_model=MessageResponse,
    responses={404: {"model": ErrorResponse, "description": "Unknown message"}},
    summary="Get a message"
)
async def get_message(
    message_id: str,
    store: Annotated[MessageStore, Depends(get_store)],
) -> MessageResponse:
    return MessageResponse.from_message(store.get(message_id))


@router.delete(
    "/{message_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    responses={404: {"model": ErrorResponse, "description": "Unknown message"}},
    summary="Delete a message",
    description="Remove a message and cancel any status transitions still pending for it."
)
async def delete_message(
    message_id: str,
    store: Annotated[MessageStore, Depends(get_store)],
    scheduler: Annotated[LifecycleScheduler, Depends(get_scheduler)],
) -> Response:
    if not store.delete(message_id):
        raise NotFoundError("Message not found")
    scheduler.cancel(message_id)
    logger.info("Message deleted", extra={"extra_data": {"message_id": message_id}})
    return Response(status_code=status.HTTP_204_NO_CONTENT)
