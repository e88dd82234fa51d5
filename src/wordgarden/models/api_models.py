"""Request bodies accepted by the HTTP endpoints."""
from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


def _as_text(value: Any) -> str:
    return "" if value is None else str(value).strip()


class ApiRequest(BaseModel):
    """Base schema: camelCase aliases, unknown fields ignored."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class PasswordRequest(ApiRequest):
    """Body carrying the shared admin secret."""

    password: str = ""

    @field_validator("password", mode="before")
    @classmethod
    def _password_text(cls, value: Any) -> str:
        return "" if value is None else str(value)


class GenerateWordsRequest(PasswordRequest):
    """Schema for requesting freshly generated words."""

    mode: str = "generate"
    level: int = 1
    existing_words: List[str] = Field(default_factory=list, alias="existingWords")

    @field_validator("mode", mode="before")
    @classmethod
    def _default_mode(cls, value: Any) -> str:
        return _as_text(value) or "generate"

    @field_validator("level", mode="before")
    @classmethod
    def _default_level(cls, value: Any) -> int:
        # Out-of-range values are rejected by the endpoint with a clear message
        if value is None:
            return 1
        if isinstance(value, bool):
            return 0
        if isinstance(value, int):
            return value
        if isinstance(value, float):
            return int(value) if value.is_integer() else 0
        text = str(value).strip()
        return int(text) if text.isdigit() else 0

    @field_validator("existing_words", mode="before")
    @classmethod
    def _word_list(cls, value: Any) -> List[str]:
        if not isinstance(value, list):
            return []
        return ["" if item is None else str(item) for item in value]


class SyncGetRequest(ApiRequest):
    """Schema for reading a learner's synced progress."""

    sync_code: str = Field(default="", alias="syncCode")

    @field_validator("sync_code", mode="before")
    @classmethod
    def _code_text(cls, value: Any) -> str:
        return _as_text(value)


class SyncSetRequest(SyncGetRequest):
    """Schema for storing a learner's progress."""

    progress: Optional[Any] = None


class ProfileGetRequest(ApiRequest):
    """Schema for looking up a child profile."""

    profile_code: str = Field(default="", alias="profileCode")

    @field_validator("profile_code", mode="before")
    @classmethod
    def _code_text(cls, value: Any) -> str:
        return _as_text(value)


class ProfileCreateRequest(PasswordRequest):
    """Schema for creating a child profile."""

    profile_code: str = Field(default="", alias="profileCode")
    child_name: str = Field(default="", alias="childName")

    @field_validator("profile_code", "child_name", mode="before")
    @classmethod
    def _strip_text(cls, value: Any) -> str:
        return _as_text(value)
