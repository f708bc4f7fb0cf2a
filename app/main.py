from contextlib import asynccontextmanager
from pathlib import Path
from typing import Optional

from fastapi import APIRouter, FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import FileResponse, JSONResponse
from fastapi.staticfiles import StaticFiles

from app.config import settings
from app.context import GatewayContext, build_context
from app.exceptions import GatewayError
from app.middleware import ApiKeyAuthMiddleware
from app.api.keys import router as keys_router
from app.api.session import router as session_router
from app.api.messages import router as messages_router
from app.api.webhook import router as webhook_router
from app.api.realtime import router as realtime_router
from app.logging import setup_logger

logger = setup_logger(__name__)

PUBLIC_DIR = Path("public")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application startup and shutdown events handler
    - Starts the WhatsApp session controller
    - Tears the client down on shutdown
    """
    ctx: GatewayContext = app.state.context
    logger.info(f"Server running on {ctx.settings.BASE_URL}")
    await ctx.controller.start()

    yield

    logger.info("Shutting down...")
    await ctx.controller.shutdown()


async def gateway_error_handler(request: Request, exc: GatewayError) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content={"error": exc.message})


async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"error": "Invalid request body", "details": jsonable_encoder(exc.errors())},
    )


def create_app(context: Optional[GatewayContext] = None) -> FastAPI:
    app = FastAPI(
        title=settings.PROJECT_NAME,
        description=settings.PROJECT_DESCRIPTION,
        lifespan=lifespan,
    )
    app.state.context = context or build_context(settings)

    app.add_exception_handler(GatewayError, gateway_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)

    # API key authentication
    app.add_middleware(
        ApiKeyAuthMiddleware,
        auto_error=True,
        exclude_paths=[
            r"^/$",
            r"^/docs.*$",
            r"^/openapi.json$",
            r"^/redoc.*$",
            r"^/static/.*$",
            r"^/favicon\.ico$",
            r"^/api/config$",
            r"^/api/generate-key$",
            r"^/api/revoke-key$",
        ],
    )

    # Configure CORS outermost so auth failures carry CORS headers too
    app.add_middleware(
        CORSMiddleware,
        allow_origins=app.state.context.settings.cors_origins,
        allow_methods=["GET", "POST", "DELETE"],
        allow_headers=["*"],
    )

    if PUBLIC_DIR.is_dir():
        app.mount("/static", StaticFiles(directory=PUBLIC_DIR), name="static")

    api_router = APIRouter(prefix="/api")
    api_router.include_router(keys_router)
    api_router.include_router(session_router)
    api_router.include_router(messages_router)
    api_router.include_router(webhook_router)
    app.include_router(api_router)
    app.include_router(realtime_router)

    @app.get("/", tags=["root"], include_in_schema=False)
    async def root():
        index = PUBLIC_DIR / "index.html"
        if index.is_file():
            return FileResponse(index)
        return JSONResponse(content={"status": "ok"}, status_code=status.HTTP_200_OK)

    return app


app = create_app()
