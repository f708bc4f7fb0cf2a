from fastapi import APIRouter, Depends

from app.context import GatewayContext
from app.api.deps import get_context
from app.schemas import ActionResponse, WebhookRequest, WebhookResponse

router = APIRouter(prefix="/webhook", tags=["Webhook"])


@router.get("", response_model=WebhookResponse)
async def get_webhook(ctx: GatewayContext = Depends(get_context)):
    return WebhookResponse(webhookUrl=ctx.webhook.url)


@router.post("", response_model=ActionResponse)
async def set_webhook(body: WebhookRequest, ctx: GatewayContext = Depends(get_context)):
    ctx.webhook.set(body.url)
    return ActionResponse(success=True, message="Webhook URL set successfully")


@router.delete("", response_model=ActionResponse)
async def delete_webhook(ctx: GatewayContext = Depends(get_context)):
    ctx.webhook.clear()
    return ActionResponse(success=True, message="Webhook URL removed")
