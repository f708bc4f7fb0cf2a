from fastapi import APIRouter, Depends

from app.context import GatewayContext
from app.api.deps import get_context
from app.schemas import ActionResponse, StatusResponse

router = APIRouter(tags=["Session"])


@router.get("/status", response_model=StatusResponse)
async def get_status(ctx: GatewayContext = Depends(get_context)):
    return StatusResponse(**ctx.controller.snapshot())


@router.get("/client-info")
async def client_info(ctx: GatewayContext = Depends(get_context)):
    return await ctx.messaging.client_info()


@router.get("/test-profile-pic")
async def test_profile_pic(ctx: GatewayContext = Depends(get_context)):
    return await ctx.messaging.test_profile_picture()


@router.post("/logout", response_model=ActionResponse)
async def logout(ctx: GatewayContext = Depends(get_context)):
    await ctx.controller.logout()
    return ActionResponse(
        success=True, message="Logged out successfully. QR code will appear shortly."
    )
