import re
from typing import List, Optional

from fastapi import Request, status
from fastapi.responses import JSONResponse
from starlette.requests import HTTPConnection

from app.constants import API_KEY_HEADER, API_KEY_QUERY_PARAM
from app.logging import setup_logger

logger = setup_logger(__name__)


def extract_api_key(connection: HTTPConnection) -> Optional[str]:
    """API key from the x-api-key header or the api_key query parameter"""
    return connection.headers.get(API_KEY_HEADER) or connection.query_params.get(
        API_KEY_QUERY_PARAM
    )


class ApiKeyAuthMiddleware:
    """
    Middleware for API key authentication.

    Only plain HTTP requests are checked; the WebSocket endpoint validates its
    own key before accepting. Keys are looked up in the KeyStore of the
    application's GatewayContext.
    """

    def __init__(
        self, app, auto_error: bool = True, exclude_paths: Optional[List[str]] = None
    ):
        self.app = app
        self.auto_error = auto_error
        self.exclude_patterns = [re.compile(pattern) for pattern in exclude_paths or []]

    def is_public(self, request: Request) -> bool:
        # Preflight requests carry no credentials
        if request.method == "OPTIONS":
            return True
        return any(pattern.match(request.url.path) for pattern in self.exclude_patterns)

    async def __call__(self, scope, receive, send):
        if scope["type"] != "http":
            return await self.app(scope, receive, send)

        request = Request(scope, receive=receive)
        if self.is_public(request):
            return await self.app(scope, receive, send)

        api_key = extract_api_key(request)
        error = None
        if not api_key:
            error = "API key is required"
        else:
            keys = scope["app"].state.context.keys
            try:
                if not keys.validate(api_key):
                    error = "Invalid API key"
            except Exception as e:
                logger.error(f"Authentication error: {e}")
                error = "Invalid API key"

        if error is not None:
            if self.auto_error:
                return await self.handle_error(scope, receive, send, detail=error)
            return await self.app(scope, receive, send)

        try:
            keys.touch(api_key)
        except Exception as e:
            logger.error(f"Failed to record API key usage: {e}")

        request.state.api_key = api_key
        return await self.app(scope, receive, send)

    async def handle_error(self, scope, receive, send, detail: str):
        logger.info(f"Rejected {scope.get('method')} {scope.get('path')}: {detail}")
        response = JSONResponse(
            status_code=status.HTTP_401_UNAUTHORIZED,
            content={"error": detail},
        )
        await response(scope, receive, send)
