"""
Token cache data models.
"""

from datetime import datetime, timezone
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


def _join_key(*parts: str) -> str:
    return "-".join(parts).lower()


def normalize_scopes(scopes: List[str]) -> List[str]:
    """Lower-case, de-duplicate and sort scopes."""
    return sorted({scope.strip().lower() for scope in scopes if scope.strip()})


class CacheEntry(BaseModel):
    """Fields shared by every cached credential."""

    model_config = ConfigDict(extra="ignore")

    home_account_id: str = ""
    environment: str
    credential_type: str
    client_id: str
    secret: str


class AccessTokenEntry(CacheEntry):
    """Cached access token."""

    credential_type: str = "AccessToken"
    realm: str
    target: str
    cached_at: int
    expires_on: int
    token_type: str = "Bearer"

    def key(self) -> str:
        return _join_key(
            self.home_account_id,
            self.environment,
            self.credential_type,
            self.client_id,
            self.realm,
            self.target,
        )

    def scopes(self) -> List[str]:
        return self.target.split(" ")

    def is_expired(self, now: float) -> bool:
        return self.expires_on <= int(now)


class RefreshTokenEntry(CacheEntry):
    """Cached refresh token."""

    credential_type: str = "RefreshToken"
    family_id: Optional[str] = None

    def key(self) -> str:
        return _join_key(
            self.home_account_id,
            self.environment,
            self.credential_type,
            self.family_id or self.client_id,
            "",
            "",
        )


class IdTokenEntry(CacheEntry):
    """Cached ID token."""

    credential_type: str = "IdToken"
    realm: str

    def key(self) -> str:
        return _join_key(
            self.home_account_id,
            self.environment,
            self.credential_type,
            self.client_id,
            self.realm,
            "",
        )


class AccountEntry(BaseModel):
    """Cached account record."""

    model_config = ConfigDict(extra="ignore")

    home_account_id: str
    environment: str
    realm: str
    local_account_id: str = ""
    username: str = ""
    authority_type: str = "MSSTS"

    def key(self) -> str:
        return _join_key(self.home_account_id, self.environment, self.realm)


class AppMetadataEntry(BaseModel):
    """Cached application metadata."""

    model_config = ConfigDict(extra="ignore")

    client_id: str
    environment: str
    family_id: Optional[str] = None

    def key(self) -> str:
        return _join_key("appmetadata", self.environment, self.client_id)


class CacheContract(BaseModel):
    """Serialized form of one cache partition."""

    model_config = ConfigDict(populate_by_name=True)

    access_tokens: Dict[str, AccessTokenEntry] = Field(default_factory=dict, alias="AccessToken")
    refresh_tokens: Dict[str, RefreshTokenEntry] = Field(default_factory=dict, alias="RefreshToken")
    id_tokens: Dict[str, IdTokenEntry] = Field(default_factory=dict, alias="IdToken")
    accounts: Dict[str, AccountEntry] = Field(default_factory=dict, alias="Account")
    app_metadata: Dict[str, AppMetadataEntry] = Field(default_factory=dict, alias="AppMetadata")


class TokenResponse(BaseModel):
    """A successful token endpoint response."""

    access_token: str
    expires_on: datetime
    granted_scopes: List[str] = Field(default_factory=list)
    refresh_token: Optional[str] = None
    id_token: Optional[str] = None
    family_id: Optional[str] = None
    token_type: str = "Bearer"

    @field_validator("access_token")
    @classmethod
    def access_token_present(cls, value: str) -> str:
        if not value:
            raise ValueError("access_token must not be empty")
        return value

    @field_validator("expires_on")
    @classmethod
    def expiry_is_aware(cls, value: datetime) -> datetime:
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return value

    def expires_on_epoch(self) -> int:
        return int(self.expires_on.timestamp())
