# paragon_listings/adapters/clients/token_manager.py
from __future__ import annotations

import asyncio
import base64
import hashlib
import json
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

import httpx

from ...errors import AuthError
from ..kv_store import KeyValueStore
from .http_resilience import resilient_request
from .paragon_config import ParagonConfig

log = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class Token:
    token: str
    expiration: datetime

    def to_json(self) -> str:
        return json.dumps({"token": self.token, "tokenExpiration": self.expiration.isoformat()})

    @classmethod
    def from_json(cls, raw: str) -> "Token":
        data = json.loads(raw)
        exp = datetime.fromisoformat(str(data["tokenExpiration"]).replace("Z", "+00:00"))
        if exp.tzinfo is None:
            exp = exp.replace(tzinfo=timezone.utc)
        return cls(token=str(data["token"]), expiration=exp)


def token_store_key(client_id: str) -> str:
    """Stable per client identity; the id itself never lands in the store."""
    return "paragon-token:" + hashlib.md5(client_id.encode("utf-8")).hexdigest()


class TokenManager:
    """OAuth2 client-credentials bearer token, cached in memory and in a KeyValueStore."""

    def __init__(self, cfg: ParagonConfig, store: KeyValueStore, http: httpx.AsyncClient) -> None:
        self.cfg = cfg
        self.store = store
        self.http = http
        self.store_key = token_store_key(cfg.client_id)
        self._token: Token | None = None
        self._lock = asyncio.Lock()

    def _usable(self, tok: Token | None) -> bool:
        if tok is None:
            return False
        return tok.expiration > _utcnow() + timedelta(seconds=self.cfg.token_expiry_skew_s)

    async def get_valid_token(self) -> str:
        if self._usable(self._token):
            return self._token.token  # type: ignore[union-attr]

        async with self._lock:
            # another waiter may have refreshed while we queued
            if self._usable(self._token):
                return self._token.token  # type: ignore[union-attr]

            stored = await self._load()
            if self._usable(stored):
                self._token = stored
                return stored.token  # type: ignore[union-attr]

            self._token = await self._exchange()
            await self._save(self._token)
            return self._token.token

    async def invalidate(self) -> None:
        """Forget the current token (feed answered 401)."""
        self._token = None
        try:
            await self.store.delete(self.store_key)
        except Exception as e:
            log.warning("token store delete failed: %s", e)

    async def _load(self) -> Token | None:
        try:
            raw = await self.store.get(self.store_key)
        except Exception as e:
            log.warning("token store read failed: %s", e)
            return None
        if not raw:
            return None
        try:
            return Token.from_json(raw)
        except (ValueError, KeyError, TypeError) as e:
            log.warning("ignoring unreadable stored token: %s", e)
            return None

    async def _save(self, tok: Token) -> None:
        ttl = max(1.0, (tok.expiration - _utcnow()).total_seconds())
        try:
            await self.store.set(self.store_key, tok.to_json(), ttl_s=ttl)
        except Exception as e:
            # token still usable for this process
            log.error("token store write failed: %s", e)

    async def _exchange(self) -> Token:
        if not (self.cfg.token_url and self.cfg.client_id and self.cfg.client_secret):
            raise AuthError("paragon_oauth_not_configured")

        basic = base64.b64encode(f"{self.cfg.client_id}:{self.cfg.client_secret}".encode("utf-8")).decode("ascii")
        headers = {
            "Accept": "application/json",
            "Content-Type": "application/x-www-form-urlencoded",
            "Authorization": f"Basic {basic}",
        }
        data = {"grant_type": "client_credentials"}
        if self.cfg.scope:
            data["scope"] = self.cfg.scope

        issued_at = _utcnow()
        try:
            resp = await resilient_request(
                self.http,
                "POST",
                self.cfg.token_url,
                headers=headers,
                data=data,
                timeout_s=self.cfg.token_timeout_s,
                max_retries=0,
            )
        except httpx.HTTPError as e:
            raise AuthError(f"token exchange failed: {type(e).__name__}") from e

        if not resp.is_success:
            raise AuthError(f"token endpoint returned HTTP {resp.status_code}", status=resp.status_code)

        try:
            payload = resp.json()
        except ValueError as e:
            raise AuthError("token endpoint returned invalid JSON", status=resp.status_code) from e

        access_token = payload.get("access_token") if isinstance(payload, dict) else None
        if not access_token:
            raise AuthError("token response missing access_token", status=resp.status_code)

        try:
            expires_in = int(payload.get("expires_in", 3600))
        except (TypeError, ValueError):
            expires_in = 3600

        tok = Token(token=str(access_token), expiration=issued_at + timedelta(seconds=expires_in))
        log.info("acquired paragon token; expires %s", tok.expiration.isoformat())
        return tok
