"""Identity provider client — async HTTP wrapper around the provider's admin API.

The provider owns credentials: it knows which sign-in methods an account
has, stores passwords and mints custom login tokens.  This service only
talks to it; nothing here caches provider state.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

import httpx

from passcode_auth.config import settings

logger = logging.getLogger(__name__)


@dataclass
class IdentityUser:
    """Lightweight value object returned by user lookups."""

    uid: str
    email: str
    providers: list[str] = field(default_factory=list)


class IdentityProviderError(Exception):
    """The identity provider rejected a request or could not be reached."""


class InvalidIdToken(IdentityProviderError):
    """A bearer ID token was malformed, expired or revoked."""


class IdentityProviderClient:
    """Async HTTP wrapper around the identity provider admin API.

    ``transport`` lets tests plug in an :class:`httpx.MockTransport`.
    """

    def __init__(
        self,
        base_url: str | None = None,
        api_key: str | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._base_url = (base_url or settings.identity_api_base_url).rstrip("/")
        self._api_key = settings.identity_api_key if api_key is None else api_key
        self._transport = transport

    def _client(self) -> httpx.AsyncClient:
        headers = {"Authorization": f"Bearer {self._api_key}"} if self._api_key else {}
        return httpx.AsyncClient(
            base_url=self._base_url, headers=headers, transport=self._transport
        )

    # ── Lookups ──────────────────────────────────────────

    async def get_user_by_email(self, email: str) -> IdentityUser | None:
        """Look up an account by email.

        Returns an ``IdentityUser`` on success, ``None`` if no account exists.
        """
        try:
            async with self._client() as client:
                resp = await client.get("/users/lookup", params={"email": email})
        except httpx.HTTPError as exc:
            logger.exception("Identity lookup request error for %s", email)
            raise IdentityProviderError(f"User lookup failed for {email}") from exc

        if resp.status_code == 404:
            return None
        if resp.status_code != 200:
            logger.error("Identity lookup failed: %s %s", resp.status_code, resp.text)
            raise IdentityProviderError(f"User lookup failed for {email}")

        return _user_from(resp.json())

    async def verify_id_token(self, id_token: str) -> IdentityUser:
        """Resolve a signed-in user's ID token to the account it belongs to."""
        try:
            async with self._client() as client:
                resp = await client.post("/tokens/verify", json={"id_token": id_token})
        except httpx.HTTPError as exc:
            logger.exception("ID token verification request error")
            raise IdentityProviderError("ID token verification failed") from exc

        if resp.status_code in (400, 401):
            raise InvalidIdToken("Invalid or expired ID token")
        if resp.status_code != 200:
            logger.error("ID token verification failed: %s %s", resp.status_code, resp.text)
            raise IdentityProviderError("ID token verification failed")
        return _user_from(resp.json())

    # ── Credentials ──────────────────────────────────────

    async def update_password(self, uid: str, new_password: str) -> None:
        """Replace the password of account *uid*."""
        await self._post(f"/users/{uid}/password", {"password": new_password}, "Password update")

    async def create_custom_token(self, uid: str) -> str:
        """Mint a custom login token the client can exchange for a session."""
        data = await self._post(f"/users/{uid}/custom-token", {}, "Custom token")
        return data["token"]

    async def _post(self, path: str, payload: dict, action: str) -> dict:
        try:
            async with self._client() as client:
                resp = await client.post(path, json=payload)
        except httpx.HTTPError as exc:
            logger.exception("%s request error", action)
            raise IdentityProviderError(f"{action} request failed") from exc

        if resp.status_code != 200:
            logger.error("%s failed: %s %s", action, resp.status_code, resp.text)
            raise IdentityProviderError(f"{action} failed with status {resp.status_code}")
        return resp.json()


def _user_from(data: dict) -> IdentityUser:
    return IdentityUser(
        uid=data["uid"],
        email=data["email"],
        providers=[p["provider_id"] for p in data.get("provider_data", [])],
    )
