from pydantic import BaseModel
from typing import Any, Dict, List, Optional, Union


class GenerateKeyRequest(BaseModel):
    masterKey: Optional[str] = None


class RevokeKeyRequest(BaseModel):
    masterKey: Optional[str] = None
    apiKey: Optional[str] = None


class GenerateKeyResponse(BaseModel):
    success: bool
    apiKey: str
    message: str


class ConfigResponse(BaseModel):
    baseUrl: str
    corsOrigin: str


class StatusResponse(BaseModel):
    ready: bool
    qr: Optional[str] = None
    qrPng: Optional[str] = None


class BroadcastRequest(BaseModel):
    numbers: Optional[List[Union[str, int]]] = None
    message: Optional[str] = None
    media: Optional[Dict[str, Any]] = None


class GroupMessageRequest(BaseModel):
    groupId: Optional[str] = None
    message: Optional[str] = None
    media: Optional[Dict[str, Any]] = None


class BroadcastResult(BaseModel):
    number: Union[str, int]
    status: str
    error: Optional[str] = None


class BroadcastResponse(BaseModel):
    success: bool
    results: List[BroadcastResult]


class WebhookRequest(BaseModel):
    url: Optional[str] = None


class WebhookResponse(BaseModel):
    webhookUrl: Optional[str] = None


class ActionResponse(BaseModel):
    success: bool
    message: str
