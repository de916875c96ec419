"""Amadeus API client — OAuth2 token cache and retrying transport for the hotel directory."""

import asyncio
import logging
import time
from typing import Any, Callable

import httpx

from voyage.config import settings

logger = logging.getLogger(__name__)

TOKEN_PATH = "/v1/security/oauth2/token"
TOKEN_REFRESH_MARGIN = 60       # refresh this many seconds before expiry
TOKEN_DEFAULT_LIFETIME = 1800


class AmadeusError(Exception):
    """Base class for hotel directory failures that abort a search."""

    def __init__(self, message: str, status: int | None = None, payload: Any = None):
        super().__init__(message)
        self.status = status
        self.payload = payload


class MissingCredentialsError(AmadeusError):
    def __init__(self):
        super().__init__("amadeus_missing_credentials")


class TokenExchangeError(AmadeusError):
    pass


class UpstreamTransportError(AmadeusError):
    pass


def response_payload(resp: httpx.Response) -> Any:
    """JSON body of a response, or None when it is not JSON."""
    try:
        return resp.json()
    except ValueError:
        return None


def is_success(resp: httpx.Response) -> bool:
    return 200 <= resp.status_code < 300


class TokenCache:
    """Bearer credential for the directory, refreshed shortly before it expires.

    Concurrent callers arriving during a refresh wait on the same exchange.
    """

    def __init__(
        self,
        client: "AmadeusClient",
        client_id: str,
        client_secret: str,
        clock: Callable[[], float] = time.time,
    ):
        self._client = client
        self._client_id = client_id
        self._client_secret = client_secret
        self._clock = clock
        self._token: str | None = None
        self._expires_at: float = 0.0
        self._lock = asyncio.Lock()
        self.exchanges = 0

    @property
    def configured(self) -> bool:
        return bool(self._client_id and self._client_secret)

    def _valid(self) -> bool:
        return bool(self._token) and self._clock() < self._expires_at - TOKEN_REFRESH_MARGIN

    async def get_token(self) -> str:
        if not self.configured:
            raise MissingCredentialsError()
        if self._valid():
            return self._token

        async with self._lock:
            if self._valid():
                return self._token
            await self._exchange()
            return self._token

    async def _exchange(self):
        started = self._clock()
        resp = await self._client.send(
            "POST",
            TOKEN_PATH,
            data={
                "grant_type": "client_credentials",
                "client_id": self._client_id,
                "client_secret": self._client_secret,
            },
            headers={"Content-Type": "application/x-www-form-urlencoded"},
            timeout=self._client.token_timeout,
        )
        payload = response_payload(resp)
        if not is_success(resp) or not isinstance(payload, dict) or not payload.get("access_token"):
            logger.error(f"Amadeus token exchange failed: {resp.status_code}")
            raise TokenExchangeError(
                f"token exchange failed with status {resp.status_code}",
                status=resp.status_code,
                payload=payload,
            )

        self._token = payload["access_token"]
        self._expires_at = started + float(payload.get("expires_in") or TOKEN_DEFAULT_LIFETIME)
        self.exchanges += 1
        logger.info("Amadeus token refreshed")

    def invalidate(self):
        self._token = None
        self._expires_at = 0.0


class AmadeusClient:
    """Adapter for the Amadeus Self-Service hotel APIs.

    ``send`` retries transport failures only; any HTTP status is returned to
    the caller, which decides how to treat it.
    """

    def __init__(
        self,
        base_url: str | None = None,
        client_id: str | None = None,
        client_secret: str | None = None,
        timeout: float | None = None,
        token_timeout: float | None = None,
        retries: int | None = None,
        retry_backoff: float | None = None,
        max_concurrency: int | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        clock: Callable[[], float] = time.time,
    ):
        self.base_url = base_url or settings.amadeus_base_url
        self.timeout = timeout if timeout is not None else settings.amadeus_timeout
        self.token_timeout = token_timeout if token_timeout is not None else settings.amadeus_token_timeout
        self.retries = retries if retries is not None else settings.amadeus_retries
        self.retry_backoff = retry_backoff if retry_backoff is not None else settings.amadeus_retry_backoff
        self._semaphore = asyncio.Semaphore(max_concurrency or settings.amadeus_max_concurrency)
        self._transport = transport
        self._client: httpx.AsyncClient | None = None
        self.tokens = TokenCache(
            self,
            client_id if client_id is not None else settings.amadeus_client_id,
            client_secret if client_secret is not None else settings.amadeus_client_secret,
            clock=clock,
        )

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=self.timeout,
                transport=self._transport,
            )
        return self._client

    async def send(
        self,
        method: str,
        path: str,
        *,
        params: dict | None = None,
        data: dict | None = None,
        headers: dict | None = None,
        timeout: float | None = None,
    ) -> httpx.Response:
        client = await self._get_client()
        attempts = max(1, self.retries)
        for attempt in range(attempts):
            try:
                async with self._semaphore:
                    return await client.request(
                        method,
                        path,
                        params=params,
                        data=data,
                        headers=headers,
                        timeout=timeout if timeout is not None else self.timeout,
                    )
            except httpx.TransportError as e:
                logger.warning(f"Amadeus {method} {path} transport error (attempt {attempt + 1}/{attempts}): {e}")
                if attempt == attempts - 1:
                    raise UpstreamTransportError(f"{method} {path} failed: {e}") from e
                if self.retry_backoff > 0:
                    await asyncio.sleep(self.retry_backoff * (2 ** attempt))
        raise UpstreamTransportError(f"{method} {path} failed")

    async def authenticate(self) -> str:
        return await self.tokens.get_token()

    async def get(self, path: str, params: dict | None = None) -> httpx.Response:
        """Authorized GET against the directory."""
        token = await self.tokens.get_token()
        return await self.send(
            "GET",
            path,
            params=params,
            headers={"Authorization": f"Bearer {token}"},
        )

    async def close(self):
        if self._client:
            await self._client.aclose()
            self._client = None


amadeus_client = AmadeusClient()
