"""
Spotify authorization code flow with PKCE.

Per-attempt records {verifier, timestamp, state} are kept in the key/value
store under the state value, plus a last-known pointer for callbacks that
arrive without a matching record. Both are deleted after the one exchange
attempt, whatever its outcome.
"""
import base64
import hashlib
import logging
import secrets
import string
import time
from urllib.parse import urlencode

import httpx

from musicard.config import settings
from musicard.errors import TokenExchangeError, VerifierNotFoundError
from musicard.services.kv_store import KeyValueStore, kv_store
from musicard.services.music_search import SearchContext, search_context

logger = logging.getLogger(__name__)

AUTH_ENDPOINT = "https://accounts.spotify.com/authorize"
TOKEN_ENDPOINT = "https://accounts.spotify.com/api/token"
SCOPES = "user-read-private user-read-email"

STATE_KEY_PREFIX = "spotify_auth_state:"
LAST_STATE_KEY = "spotify_code_verifier"
TOKEN_KEY = "spotify_access_token"

VERIFIER_LENGTH = 128
STATE_LENGTH = 32
STATE_STALE_SECONDS = 10 * 60

UNRESERVED_CHARS = string.ascii_letters + string.digits + "-._~"
_STATE_CHARS = string.ascii_letters + string.digits


def generate_code_verifier(length: int = VERIFIER_LENGTH) -> str:
    return "".join(secrets.choice(UNRESERVED_CHARS) for _ in range(length))


def generate_code_challenge(verifier: str) -> str:
    """S256 challenge: base64url(sha256(verifier)) without padding."""
    digest = hashlib.sha256(verifier.encode("ascii")).digest()
    return base64.urlsafe_b64encode(digest).decode("ascii").rstrip("=")


def generate_state(length: int = STATE_LENGTH) -> str:
    return "".join(secrets.choice(_STATE_CHARS) for _ in range(length))


class SpotifyAuthManager:
    """Drives the PKCE handshake and keeps the resulting access token."""

    def __init__(
        self,
        store: KeyValueStore | None = None,
        context: SearchContext | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.store = store or kv_store
        self.context = context or search_context
        self._transport = transport

    @property
    def client_id(self) -> str:
        return settings.spotify_client_id

    @property
    def redirect_uri(self) -> str:
        return settings.spotify_redirect_uri

    async def start_authorization(self) -> str:
        """Persist a fresh verifier/state pair and return the authorize URL."""
        verifier = generate_code_verifier()
        state = generate_state()
        record = {"verifier": verifier, "timestamp": int(time.time() * 1000), "state": state}

        await self.store.set_json(f"{STATE_KEY_PREFIX}{state}", record)
        await self.store.set_json(LAST_STATE_KEY, record)
        logger.info("Spotify authorization started (redirect_uri=%s)", self.redirect_uri)

        params = {
            "client_id": self.client_id,
            "response_type": "code",
            "redirect_uri": self.redirect_uri,
            "scope": SCOPES,
            "code_challenge_method": "S256",
            "code_challenge": generate_code_challenge(verifier),
            "state": state,
        }
        return f"{AUTH_ENDPOINT}?{urlencode(params)}"

    async def _lookup(self, state: str | None) -> dict | None:
        record = None
        if state:
            record = await self.store.get_json(f"{STATE_KEY_PREFIX}{state}")
        if record is None:
            record = await self.store.get_json(LAST_STATE_KEY)
            if record is not None:
                logger.warning("No record for state %s, using last-known verifier", state)
        # Older clients stored the bare verifier string under the pointer key
        if isinstance(record, str):
            return {"verifier": record, "timestamp": int(time.time() * 1000), "state": state}
        if not isinstance(record, dict) or not record.get("verifier"):
            return None
        return record

    async def exchange_code(self, code: str, state: str | None) -> dict:
        """
        Exchange an authorization code for an access token.

        Raises:
            VerifierNotFoundError: no record for the state and no last-known pointer
            TokenExchangeError: the token endpoint rejected the request
        """
        record = await self._lookup(state)
        if record is None:
            raise VerifierNotFoundError()

        age = time.time() - record.get("timestamp", 0) / 1000
        if age > STATE_STALE_SECONDS:
            logger.warning("Authorization state is %d seconds old", int(age))

        try:
            token = await self._request_token(code, record["verifier"])
        finally:
            await self.store.delete(f"{STATE_KEY_PREFIX}{record.get('state')}", LAST_STATE_KEY)

        await self._persist_token(token)
        self.context.set_spotify_token(token["access_token"])
        self.context.set_provider("spotify")
        logger.info("Spotify token exchange succeeded (expires in %ss)", token.get("expires_in"))
        return token

    async def _request_token(self, code: str, verifier: str) -> dict:
        data = {
            "grant_type": "authorization_code",
            "code": code,
            "redirect_uri": self.redirect_uri,
            "client_id": self.client_id,
            "code_verifier": verifier,
        }
        headers = {"Content-Type": "application/x-www-form-urlencoded"}
        if settings.spotify_client_secret:
            credentials = f"{self.client_id}:{settings.spotify_client_secret}"
            headers["Authorization"] = f"Basic {base64.b64encode(credentials.encode()).decode()}"

        try:
            async with httpx.AsyncClient(transport=self._transport, timeout=10.0) as client:
                response = await client.post(TOKEN_ENDPOINT, data=data, headers=headers)
        except httpx.HTTPError as e:
            raise TokenExchangeError(0, str(e)) from e

        if response.status_code >= 400:
            logger.error("Token exchange failed: %s %s", response.status_code, response.text[:500])
            raise TokenExchangeError(response.status_code, response.text or "Unknown error")
        return response.json()

    async def _persist_token(self, token: dict) -> None:
        expires_in = int(token.get("expires_in", 3600))
        await self.store.set_json(
            TOKEN_KEY,
            {
                "access_token": token["access_token"],
                "token_type": token.get("token_type", "Bearer"),
                "scope": token.get("scope", ""),
                "expires_at": time.time() + expires_in,
            },
            ttl=expires_in,
        )

    async def get_stored_token(self) -> str | None:
        """Persisted access token if it has not expired."""
        record = await self.store.get_json(TOKEN_KEY)
        if not record or record.get("expires_at", 0) <= time.time():
            return None
        return record.get("access_token")

    async def clear_token(self) -> None:
        await self.store.delete(TOKEN_KEY)
        self.context.set_spotify_token(None)


spotify_auth = SpotifyAuthManager()
