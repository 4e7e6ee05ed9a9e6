"""
In-memory token cache for one client.
"""

import threading
from typing import List, Optional

from .models import (
    AccessTokenEntry,
    AccountEntry,
    AppMetadataEntry,
    CacheContract,
    IdTokenEntry,
    RefreshTokenEntry,
    TokenResponse,
    normalize_scopes,
)


APP_CACHE_SUFFIX = "AppTokenCache"


def app_cache_partition_key(client_id: str, tenant_id: str) -> str:
    """Partition key for the client-credentials (application) cache."""
    return f"{client_id}_{tenant_id}_{APP_CACHE_SUFFIX}"


def user_cache_partition_key(home_account_id: str) -> str:
    """Partition key for a user's cache."""
    return home_account_id


class TokenCache:
    """Token cache holding one partition's credentials.

    Implements the Marshal/Unmarshal capabilities the cache accessor works
    with. ``unmarshal`` validates the whole document before swapping it in,
    so a failed load leaves the current state untouched.
    """

    def __init__(self):
        self._contract = CacheContract()
        self._lock = threading.RLock()

    def marshal(self) -> bytes:
        with self._lock:
            return self._contract.model_dump_json(by_alias=True).encode("utf-8")

    def unmarshal(self, data: bytes) -> None:
        contract = CacheContract.model_validate_json(data)
        with self._lock:
            self._contract = contract

    def snapshot(self) -> CacheContract:
        """Deep copy of the current partition contents."""
        with self._lock:
            return self._contract.model_copy(deep=True)

    def add(
        self,
        response: TokenResponse,
        *,
        client_id: str,
        environment: str,
        realm: str,
        cached_at: int,
        home_account_id: str = "",
    ) -> AccessTokenEntry:
        """Write a token response into the cache and return the access token entry."""
        access_token = AccessTokenEntry(
            home_account_id=home_account_id,
            environment=environment,
            client_id=client_id,
            realm=realm,
            target=" ".join(normalize_scopes(response.granted_scopes)),
            secret=response.access_token,
            cached_at=cached_at,
            expires_on=response.expires_on_epoch(),
            token_type=response.token_type,
        )

        with self._lock:
            self._contract.access_tokens[access_token.key()] = access_token

            if response.refresh_token:
                refresh_token = RefreshTokenEntry(
                    home_account_id=home_account_id,
                    environment=environment,
                    client_id=client_id,
                    secret=response.refresh_token,
                    family_id=response.family_id,
                )
                self._contract.refresh_tokens[refresh_token.key()] = refresh_token

            if response.id_token:
                id_token = IdTokenEntry(
                    home_account_id=home_account_id,
                    environment=environment,
                    client_id=client_id,
                    realm=realm,
                    secret=response.id_token,
                )
                self._contract.id_tokens[id_token.key()] = id_token

            if home_account_id:
                account = AccountEntry(
                    home_account_id=home_account_id,
                    environment=environment,
                    realm=realm,
                )
                self._contract.accounts[account.key()] = account

            metadata = AppMetadataEntry(
                client_id=client_id,
                environment=environment,
                family_id=response.family_id,
            )
            self._contract.app_metadata[metadata.key()] = metadata

        return access_token

    def find_access_token(
        self,
        *,
        client_id: str,
        environment: str,
        realm: str,
        scopes: List[str],
        now: float,
        home_account_id: str = "",
    ) -> Optional[AccessTokenEntry]:
        """Return an unexpired access token whose scopes cover ``scopes``."""
        wanted = set(normalize_scopes(scopes))

        with self._lock:
            for entry in self._contract.access_tokens.values():
                if entry.client_id != client_id:
                    continue
                if entry.environment != environment or entry.realm != realm:
                    continue
                if entry.home_account_id != home_account_id:
                    continue
                if not wanted.issubset(entry.scopes()):
                    continue
                if entry.is_expired(now):
                    continue
                return entry

        return None

    def access_token_count(self) -> int:
        with self._lock:
            return len(self._contract.access_tokens)
