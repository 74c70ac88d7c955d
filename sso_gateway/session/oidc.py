"""
OIDC Identity Provider Adapter
==============================
Relays a login to an external OpenID Connect provider.

Endpoints come from the provider's discovery document
(``/.well-known/openid-configuration``); the authorization redirect and the
code-for-token exchange go through authlib's OAuth2 client. The identity is
taken from the provider's userinfo endpoint over the authenticated back
channel, so ID-token cryptography stays with the provider.
"""

import asyncio
from typing import Any, Dict, Optional

from authlib.integrations.base_client import OAuthError
from authlib.integrations.httpx_client import AsyncOAuth2Client
import httpx
import structlog

from ..config import OIDCConfig
from ..errors import IdentityProviderError
from .models import Identity

logger = structlog.get_logger(__name__)

REQUIRED_METADATA = ("issuer", "authorization_endpoint", "token_endpoint", "userinfo_endpoint")


class OIDCProvider:
    """Authorization-code flow against a single OIDC provider."""

    name = "oidc"

    def __init__(
        self,
        config: OIDCConfig,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.config = config
        self.timeout = timeout
        self._transport = transport
        self._metadata: Optional[Dict[str, Any]] = None
        self._metadata_lock = asyncio.Lock()

    def _client(self) -> AsyncOAuth2Client:
        # One client per flow: authlib keeps the fetched token on the instance
        kwargs = {"transport": self._transport} if self._transport is not None else {}
        return AsyncOAuth2Client(
            client_id=self.config.client_id,
            client_secret=self.config.client_secret,
            scope=self.config.scope,
            redirect_uri=self.config.redirect_uri,
            timeout=self.timeout,
            **kwargs,
        )

    async def metadata(self) -> Dict[str, Any]:
        """
        Provider discovery document, fetched once and cached.

        Raises:
            IdentityProviderError: document unreachable, incomplete, or
                issued for a different issuer
        """
        if self._metadata is not None:
            return self._metadata

        async with self._metadata_lock:
            if self._metadata is not None:
                return self._metadata

            url = self.config.server_metadata_url
            try:
                async with self._client() as client:
                    response = await client.get(url, withhold_token=True)
                    response.raise_for_status()
                    metadata = response.json()
            except (httpx.HTTPError, ValueError) as e:
                logger.error("OIDC discovery failed", url=url, error=str(e))
                raise IdentityProviderError() from e

            if not isinstance(metadata, dict):
                raise IdentityProviderError("Identity provider metadata is malformed")
            missing = [key for key in REQUIRED_METADATA if not metadata.get(key)]
            if missing:
                logger.error("OIDC discovery incomplete", url=url, missing=missing)
                raise IdentityProviderError("Identity provider metadata is incomplete")
            if metadata["issuer"].rstrip("/") != self.config.issuer.rstrip("/"):
                logger.error("OIDC issuer mismatch", expected=self.config.issuer, actual=metadata["issuer"])
                raise IdentityProviderError("Identity provider issuer mismatch")

            logger.info("OIDC discovery loaded", issuer=metadata["issuer"])
            self._metadata = metadata
            return metadata

    async def authorization_url(self, state: str) -> str:
        """Provider URL the browser is sent to; ``state`` comes back unchanged."""
        metadata = await self.metadata()
        async with self._client() as client:
            url, _ = client.create_authorization_url(metadata["authorization_endpoint"], state=state)
        return url

    async def exchange(self, code: str) -> Identity:
        """
        Trade an authorization code for the subject's identity.

        Raises:
            IdentityProviderError: on network failure, provider errors or a
                response without a subject
        """
        metadata = await self.metadata()

        try:
            async with self._client() as client:
                token = await client.fetch_token(
                    metadata["token_endpoint"],
                    grant_type="authorization_code",
                    code=code,
                )
                access_token = token.get("access_token")
                if not access_token:
                    raise IdentityProviderError("Identity provider returned no access token")

                response = await client.get(
                    metadata["userinfo_endpoint"],
                    headers={"Authorization": f"Bearer {access_token}"},
                    withhold_token=True,
                )
                response.raise_for_status()
                profile = response.json()
        except httpx.HTTPStatusError as e:
            logger.error(
                "OIDC exchange rejected",
                url=str(e.request.url),
                status_code=e.response.status_code,
            )
            raise IdentityProviderError() from e
        except OAuthError as e:
            logger.error("OIDC token request refused", error=e.error)
            raise IdentityProviderError() from e
        except (httpx.HTTPError, ValueError) as e:
            logger.error("OIDC exchange failed", error=str(e))
            raise IdentityProviderError() from e

        if not isinstance(profile, dict) or not profile.get("sub"):
            raise IdentityProviderError("Identity provider returned no subject")

        return Identity(
            id=str(profile["sub"]),
            email=profile.get("email"),
            name=profile.get("name"),
        )
