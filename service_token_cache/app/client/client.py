"""
Fake confidential client backed by a pluggable cache accessor.
"""

import threading
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable, List, Optional
from urllib.parse import urlparse

from shared.logging import get_logger
from shared.errors import CacheExportError, TokenNotFoundError, ValidationError
from ..accessor.token_cache_accessor import TokenCacheAccessor
from .models import AccountEntry, TokenResponse, normalize_scopes
from .token_cache import TokenCache, app_cache_partition_key, user_cache_partition_key


@dataclass(frozen=True)
class AuthorityInfo:
    """Parsed authority URL."""

    host: str
    tenant: str

    @property
    def canonical_authority(self) -> str:
        return f"https://{self.host}/{self.tenant}/"

    @classmethod
    def from_url(cls, authority: str) -> "AuthorityInfo":
        parsed = urlparse(authority)
        if parsed.scheme != "https":
            raise ValidationError(
                "Authority must be an https URL",
                details={"authority": authority}
            )

        segments = [segment for segment in parsed.path.split("/") if segment]
        if not parsed.netloc or not segments:
            raise ValidationError(
                "Authority must name a host and a tenant",
                details={"authority": authority}
            )

        return cls(host=parsed.netloc, tenant=segments[0])


@dataclass
class AuthParams:
    """Parameters for one token request."""

    client_id: str
    authority_info: AuthorityInfo
    scopes: List[str] = field(default_factory=list)
    home_account_id: str = ""
    is_app_cache: bool = True


@dataclass(frozen=True)
class AuthResult:
    """Token handed back to the caller."""

    access_token: str
    expires_on: datetime
    granted_scopes: List[str]
    tenant_id: str
    from_cache: bool = False


class ConfidentialClient:
    """Confidential client whose token cache lives behind an accessor.

    The client calls ``accessor.replace`` before it reads or writes its
    cache partition and ``accessor.export`` after it writes.
    """

    def __init__(
        self,
        client_id: str,
        authority: str,
        accessor: Optional[TokenCacheAccessor] = None,
        clock: Callable[[], float] = time.time,
    ):
        if not client_id:
            raise ValidationError("client_id must not be empty")

        self.client_id = client_id
        self.authority_info = AuthorityInfo.from_url(authority)
        self.accessor = accessor
        self.clock = clock
        self.cache = TokenCache()
        self.logger = get_logger("token_cache.client")

        self.export_failures = 0
        self._lock = threading.Lock()

    @property
    def tenant_id(self) -> str:
        return self.authority_info.tenant

    def auth_params(self) -> AuthParams:
        """Default request parameters for this client."""
        return AuthParams(client_id=self.client_id, authority_info=self.authority_info)

    def partition_key(self, params: AuthParams) -> str:
        if params.is_app_cache:
            return app_cache_partition_key(params.client_id, params.authority_info.tenant)
        return user_cache_partition_key(params.home_account_id)

    def auth_result_from_token(
        self,
        params: AuthParams,
        token_response: TokenResponse,
        cache_write: bool = True,
    ) -> AuthResult:
        """Turn a token response into an ``AuthResult``, caching it if asked to."""
        now = self.clock()
        if token_response.expires_on_epoch() <= int(now):
            raise ValidationError(
                "Token response is already expired",
                details={"expires_on": token_response.expires_on.isoformat()}
            )

        if cache_write:
            key = self.partition_key(params)
            with self._lock:
                if self.accessor:
                    self.accessor.replace(self.cache, key)

                self.cache.add(
                    token_response,
                    client_id=params.client_id,
                    environment=params.authority_info.host,
                    realm=params.authority_info.tenant,
                    cached_at=int(now),
                    home_account_id=params.home_account_id,
                )

                if self.accessor:
                    try:
                        self.accessor.export(self.cache, key)
                    except CacheExportError as exc:
                        # Token stays in memory; the stored partition is stale
                        self.export_failures += 1
                        self.logger.warning(
                            "Token cache export failed; cached token not persisted",
                            key=key,
                            error=exc.message
                        )

        return AuthResult(
            access_token=token_response.access_token,
            expires_on=token_response.expires_on,
            granted_scopes=normalize_scopes(token_response.granted_scopes),
            tenant_id=params.authority_info.tenant,
        )

    def acquire_token_silent(
        self,
        scopes: List[str],
        account: Optional[AccountEntry] = None,
        is_app_cache: bool = True,
    ) -> AuthResult:
        """Return a cached token for ``scopes`` without contacting the authority.

        Raises ``TokenNotFoundError`` when the cache holds no unexpired token
        covering the scopes. Accessor errors propagate unchanged.
        """
        if not scopes:
            raise ValidationError("At least one scope is required")
        if not is_app_cache and account is None:
            raise ValidationError("An account is required for user cache lookups")

        params = self.auth_params()
        params.scopes = list(scopes)
        params.is_app_cache = is_app_cache
        if account is not None:
            params.home_account_id = account.home_account_id

        key = self.partition_key(params)
        with self._lock:
            if self.accessor:
                self.accessor.replace(self.cache, key)

            entry = self.cache.find_access_token(
                client_id=params.client_id,
                environment=params.authority_info.host,
                realm=params.authority_info.tenant,
                scopes=params.scopes,
                now=self.clock(),
                home_account_id=params.home_account_id,
            )

        if entry is None:
            raise TokenNotFoundError(details={"key": key, "scopes": params.scopes})

        return AuthResult(
            access_token=entry.secret,
            expires_on=datetime.fromtimestamp(entry.expires_on, tz=timezone.utc),
            granted_scopes=entry.scopes(),
            tenant_id=entry.realm,
            from_cache=True,
        )
