from pydantic import BaseModel, Field, field_validator
from typing import Optional


class LoginIn(BaseModel):
    login: str
    password: str


class TokenOut(BaseModel):
    access_token: str
    token_type: str = "Bearer"


class UserCreate(BaseModel):
    name: str = Field(min_length=1, max_length=200)
    email: str
    username: Optional[str] = None
    password: str = Field(min_length=8)
    is_active: bool = True
    roles: list[str] = Field(default_factory=list)
    teams: list[str] = Field(default_factory=list)

    @field_validator("email")
    @classmethod
    def validate_email(cls, value: str) -> str:
        normalized = str(value or "").strip().lower()
        if "@" not in normalized:
            raise ValueError("email must be a valid address")
        return normalized


class UserUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=200)
    username: Optional[str] = None
    password: Optional[str] = Field(default=None, min_length=8)
    roles: Optional[list[str]] = None
    teams: Optional[list[str]] = None


class ActivationIn(BaseModel):
    is_active: bool


class BulkActionIn(BaseModel):
    action: str = Field(min_length=1)
    ids: list[str] = Field(min_length=1)


class TeamUpsert(BaseModel):
    name: str = Field(min_length=1, max_length=200)
    display_name: Optional[str] = None
    description: Optional[str] = None
    members: Optional[list[str]] = None


class RoleUpsert(BaseModel):
    name: str = Field(min_length=1, max_length=150)
    display_name: Optional[str] = None
    description: Optional[str] = None
    permissions: list[str] = Field(default_factory=list)


class EmailTranslationIn(BaseModel):
    locale: str
    subject: str = Field(min_length=1, max_length=255)
    preheader: Optional[str] = Field(default=None, max_length=255)
    html_content: str = ""
    text_content: Optional[str] = None


class EmailTemplateUpsert(BaseModel):
    key: str = Field(min_length=1, max_length=150)
    name: str = Field(min_length=1, max_length=200)
    description: Optional[str] = None
    kind: str = "content"
    layout: Optional[str] = None
    is_default: bool = False
    # None: available to every team unless teams are given
    all_teams: Optional[bool] = None
    is_active: bool = True
    teams: list[str] = Field(default_factory=list)
    translations: list[EmailTranslationIn] = Field(default_factory=list)

    @field_validator("key")
    @classmethod
    def validate_key(cls, value: str) -> str:
        normalized = str(value or "").strip().lower()
        if not normalized.replace("_", "").replace("-", "").replace(".", "").isalnum():
            raise ValueError("key may contain letters, digits, '.', '-' and '_' only")
        return normalized

    @field_validator("kind")
    @classmethod
    def validate_kind(cls, value: str) -> str:
        normalized = str(value or "").strip().lower()
        if normalized not in ("content", "layout"):
            raise ValueError("kind must be 'content' or 'layout'")
        return normalized


class EmailPreviewIn(BaseModel):
    locale: Optional[str] = None
    context: dict[str, str] = Field(default_factory=dict)


class EmailChangeIn(BaseModel):
    email: str


class NotificationSendIn(BaseModel):
    title: str = Field(min_length=1, max_length=255)
    subtitle: Optional[str] = None
    content: Optional[str] = None
    type: str = "info"
    link: Optional[str] = None
    target: str = "user"
    target_id: Optional[str] = None
    persist: bool = True

    @field_validator("target")
    @classmethod
    def validate_target(cls, value: str) -> str:
        normalized = str(value or "").strip().lower()
        if normalized not in {"user", "team", "global"}:
            raise ValueError("target must be one of: user, team, global")
        return normalized


class BroadcastAuthIn(BaseModel):
    socket_id: str
    channel_name: str
