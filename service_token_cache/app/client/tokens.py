"""
Synthetic token responses for cache population.
"""

import uuid
from datetime import datetime, timedelta, timezone
from typing import List, Optional

import jwt

from .models import TokenResponse


class SyntheticTokenIssuer:
    """Mints HS256 access tokens that look like real client-credential grants."""

    def __init__(self, signing_key: str, issuer_host: str, ttl_seconds: int = 3600):
        self.signing_key = signing_key
        self.issuer_host = issuer_host
        self.ttl_seconds = ttl_seconds

    def generate_access_token(
        self,
        client_id: str,
        tenant_id: str,
        scopes: List[str],
        now: Optional[datetime] = None,
    ) -> str:
        """Generate an access token for an application."""
        now = now or datetime.now(timezone.utc)
        payload = {
            "iss": f"https://{self.issuer_host}/{tenant_id}/",
            "sub": client_id,
            "aud": client_id,
            "azp": client_id,
            "tid": tenant_id,
            "scp": " ".join(scopes),
            "iat": int(now.timestamp()),
            "exp": int((now + timedelta(seconds=self.ttl_seconds)).timestamp()),
            "jti": str(uuid.uuid4()),
        }

        return jwt.encode(payload, self.signing_key, algorithm="HS256")

    def token_response(
        self,
        client_id: str,
        tenant_id: str,
        scopes: List[str],
        now: Optional[datetime] = None,
    ) -> TokenResponse:
        """Build a successful token response granting ``scopes``."""
        now = now or datetime.now(timezone.utc)
        return TokenResponse(
            access_token=self.generate_access_token(client_id, tenant_id, scopes, now=now),
            expires_on=now + timedelta(seconds=self.ttl_seconds),
            granted_scopes=scopes,
        )

    def decode(self, token: str, client_id: str) -> dict:
        """Verify and decode a token minted by this issuer."""
        return jwt.decode(token, self.signing_key, algorithms=["HS256"], audience=client_id)
