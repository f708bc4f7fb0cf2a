from fastapi import APIRouter, Depends

from app.context import GatewayContext
from app.api.deps import get_context
from app.schemas import (
    ActionResponse,
    ConfigResponse,
    GenerateKeyRequest,
    GenerateKeyResponse,
    RevokeKeyRequest,
)

router = APIRouter(tags=["Keys"])


@router.get("/config", response_model=ConfigResponse)
async def get_config(ctx: GatewayContext = Depends(get_context)):
    return ConfigResponse(baseUrl=ctx.settings.BASE_URL, corsOrigin=ctx.settings.CORS_ORIGIN)


@router.post("/generate-key", response_model=GenerateKeyResponse)
async def generate_key(body: GenerateKeyRequest, ctx: GatewayContext = Depends(get_context)):
    api_key = ctx.keys.generate(body.masterKey)
    return GenerateKeyResponse(
        success=True, apiKey=api_key, message="API key generated successfully"
    )


@router.post("/revoke-key", response_model=ActionResponse)
async def revoke_key(body: RevokeKeyRequest, ctx: GatewayContext = Depends(get_context)):
    ctx.keys.revoke(body.masterKey, body.apiKey)
    return ActionResponse(success=True, message="API key revoked")
