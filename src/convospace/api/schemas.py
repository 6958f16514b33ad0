"""
API schemas for ConvoSpace.

Pydantic models for request/response validation. Wire names are camelCase;
request fields are optional where the handler reports its own message for a
missing value.
"""

from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, Field


class CamelModel(BaseModel):
    """Accepts both the camelCase alias and the field name."""

    class Config:
        populate_by_name = True


# ===== Auth =====


class CredentialsRequest(BaseModel):
    """Register/login body."""

    email: Optional[str] = None
    password: Optional[str] = None


class EmailRequest(BaseModel):
    email: Optional[str] = None


class ResetConfirmRequest(CamelModel):
    token: Optional[str] = None
    new_password: Optional[str] = Field(None, alias="newPassword")


class UserPublic(BaseModel):
    """Identity returned by the auth endpoints."""

    id: int
    email: str


class RegisterResponse(CamelModel):
    message: str
    user_id: int = Field(alias="userId")
    user: UserPublic


class LoginResponse(BaseModel):
    message: str
    token: str
    user: UserPublic


class TokenResponse(BaseModel):
    token: str
    user: UserPublic


class ValidateResponse(BaseModel):
    valid: bool
    user: UserPublic


class ResetPasswordResponse(CamelModel):
    message: str
    reset_token: Optional[str] = Field(None, alias="resetToken")
    reset_url: Optional[str] = Field(None, alias="resetUrl")


class CheckEmailResponse(BaseModel):
    exists: bool
    available: bool


class LogoutResponse(BaseModel):
    success: bool
    message: str


class MessageResponse(BaseModel):
    message: str


# ===== User =====


class ProfileUser(CamelModel):
    id: int
    email: str
    created_at: datetime = Field(alias="createdAt")


class ProfileResponse(BaseModel):
    user: ProfileUser


class PasswordChangeRequest(CamelModel):
    current_password: Optional[str] = Field(None, alias="currentPassword")
    new_password: Optional[str] = Field(None, alias="newPassword")


class PasswordChangeResponse(BaseModel):
    message: str
    user: UserPublic


class ApiKeyRequest(CamelModel):
    provider: Optional[str] = None
    api_key: Optional[str] = Field(None, alias="apiKey")


class ApiKeysResponse(CamelModel):
    api_keys: dict[str, str] = Field(alias="apiKeys")


# ===== Chat =====


class ChatMessageIn(BaseModel):
    role: str
    content: str


class ChatCompletionRequest(CamelModel):
    messages: Optional[list[ChatMessageIn]] = None
    provider: Optional[str] = None
    model: Optional[str] = None
    temperature: float = 0.7
    max_tokens: int = Field(10096, alias="maxTokens")
    stream: bool = True
    api_keys: dict[str, str] = Field(default_factory=dict, alias="apiKeys")


# ===== Code sessions =====


class CodeActionRequest(CamelModel):
    """Body of POST /api/code; which fields matter depends on ``action``."""

    action: Optional[str] = None
    session_id: Optional[str] = Field(None, alias="sessionId")
    prompt: Optional[str] = None
    selected_files: dict[str, str] = Field(default_factory=dict, alias="selectedFiles")
    rules: list[str] = Field(default_factory=list)
    mode: str = "hybrid"
    context: dict[str, Any] = Field(default_factory=dict)
    provider: Optional[str] = None
    model: Optional[str] = None
    diff_paths: Optional[list[str]] = Field(None, alias="diffPaths")
    api_keys: dict[str, str] = Field(default_factory=dict, alias="apiKeys")


# ===== History =====


class HistorySaveRequest(BaseModel):
    messages: Optional[list[ChatMessageIn]] = None


class ConversationSummary(CamelModel):
    id: str
    title: str
    message_count: int = Field(alias="messageCount")
    timestamp: datetime


class ConversationDetail(ConversationSummary):
    messages: list[ChatMessageIn]


# ===== Health =====


class HealthActionRequest(BaseModel):
    action: Optional[str] = None
    provider: Optional[str] = None


# ===== Suggest =====


class SuggestResponse(BaseModel):
    suggestion: str
