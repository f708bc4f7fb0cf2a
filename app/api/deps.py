from fastapi import Request

from app.context import GatewayContext


def get_context(request: Request) -> GatewayContext:
    return request.app.state.context
