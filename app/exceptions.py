from fastapi import status


class GatewayError(Exception):
    """Base error carrying the HTTP status it is rendered with."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class AuthorizationError(GatewayError):
    status_code = status.HTTP_401_UNAUTHORIZED


class ValidationError(GatewayError):
    status_code = status.HTTP_400_BAD_REQUEST


class NotReadyError(GatewayError):
    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, message: str = "WhatsApp client is not ready"):
        super().__init__(message)


class NotFoundError(GatewayError):
    status_code = status.HTTP_404_NOT_FOUND


class PayloadTooLargeError(GatewayError):
    status_code = 413


class DownstreamError(GatewayError):
    """The WhatsApp client rejected an operation."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR


class StorageError(GatewayError):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
