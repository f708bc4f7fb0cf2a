from typing import Any, Optional

from fastapi import APIRouter, Depends, Request
from starlette.datastructures import UploadFile

from app.context import GatewayContext
from app.api.deps import get_context
from app.services.messaging.media_utils import media_from_inline, media_from_upload
from app.schemas import (
    ActionResponse,
    BroadcastRequest,
    BroadcastResponse,
    GroupMessageRequest,
)
from app.logging import setup_logger

router = APIRouter(tags=["Messages"])

logger = setup_logger(__name__)


async def _read_body(request: Request):
    """
    Fields of a send request, JSON or multipart.

    Returns (number, message, inline media, uploaded file).
    """
    upload: Optional[UploadFile] = None
    content_type = request.headers.get("content-type", "")

    if content_type.startswith("multipart/form-data"):
        form = await request.form()
        media: Any = form.get("media")
        if isinstance(media, UploadFile):
            upload, media = media, None
        return form.get("number"), form.get("message"), media, upload

    try:
        body = await request.json()
    except ValueError:
        body = {}
    if not isinstance(body, dict):
        body = {}
    return body.get("number"), body.get("message"), body.get("media"), upload


@router.post("/send-message", response_model=ActionResponse)
async def send_message(request: Request, ctx: GatewayContext = Depends(get_context)):
    ctx.controller.require_ready()
    number, message, inline_media, upload = await _read_body(request)

    if upload is not None:
        media = media_from_upload(
            await upload.read(),
            upload.content_type,
            upload.filename,
            ctx.settings.MAX_UPLOAD_BYTES,
        )
    else:
        media = media_from_inline(inline_media)

    await ctx.messaging.send_direct(number, message, media)
    return ActionResponse(success=True, message="Message sent successfully")


@router.post(
    "/send-broadcast", response_model=BroadcastResponse, response_model_exclude_none=True
)
async def send_broadcast(body: BroadcastRequest, ctx: GatewayContext = Depends(get_context)):
    results = await ctx.messaging.send_broadcast(
        body.numbers, body.message, media_from_inline(body.media)
    )
    return {"success": True, "results": results}


@router.post("/send-group-message", response_model=ActionResponse)
async def send_group_message(
    body: GroupMessageRequest, ctx: GatewayContext = Depends(get_context)
):
    await ctx.messaging.send_group(body.groupId, body.message, media_from_inline(body.media))
    return ActionResponse(success=True, message="Group message sent successfully")


@router.get("/contacts")
async def get_contacts(ctx: GatewayContext = Depends(get_context)):
    return await ctx.messaging.contacts()


@router.get("/groups")
async def get_groups(ctx: GatewayContext = Depends(get_context)):
    return await ctx.messaging.groups()
