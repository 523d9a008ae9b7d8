"""
Shared aiohttp plumbing for the block engine, simulation and tip floor clients.
"""

import asyncio
import itertools
import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional
from urllib.parse import urlsplit, urlunsplit

import aiohttp

from exceptions import (
    DeserializationError,
    JsonRpcError,
    TransportError,
    wrap_exception,
)

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 30


@dataclass
class RpcErrorObject:
    code: Optional[int]
    message: str
    data: Any = None

    @classmethod
    def from_dict(cls, data: Any) -> "RpcErrorObject":
        if not isinstance(data, dict):
            return cls(code=None, message=str(data))
        return cls(
            code=data.get("code"),
            message=str(data.get("message", "")),
            data=data.get("data")
        )


@dataclass
class RpcResponse:
    """JSON-RPC 2.0 envelope: exactly one of result / error is normally set."""
    jsonrpc: str
    id: Any
    result: Any = None
    error: Optional[RpcErrorObject] = None

    @property
    def ok(self) -> bool:
        return self.error is None and self.result is not None

    def raise_for_error(self, method: str, error_class: type = JsonRpcError) -> Any:
        if self.error is not None:
            raise error_class(
                f"{method} failed: {self.error.message}",
                rpc_code=self.error.code,
                rpc_message=self.error.message,
                method=method
            )
        return self.result

    @classmethod
    def from_dict(cls, data: Any) -> "RpcResponse":
        if not isinstance(data, dict):
            raise DeserializationError(
                f"Expected a JSON-RPC object, got {type(data).__name__}",
                data_type="RpcResponse"
            )
        error = data.get("error")
        return cls(
            jsonrpc=str(data.get("jsonrpc", "")),
            id=data.get("id"),
            result=data.get("result"),
            error=RpcErrorObject.from_dict(error) if error is not None else None
        )


def redact_url(url: str) -> str:
    """Drop the query string, which often carries an API key."""
    parts = urlsplit(url)
    return urlunsplit((parts.scheme, parts.netloc, parts.path, "", ""))


def retry_after_seconds(response: Any) -> Optional[float]:
    """Read a numeric ``Retry-After`` header off a 429/503 response."""
    if response.status not in (429, 503):
        return None
    value = response.headers.get("Retry-After")
    if value is None:
        return None
    try:
        return max(float(value), 0.0)
    except ValueError:
        # HTTP-date form is not used by the block engine
        return None


class BaseHttpClient:
    """Owns (or borrows) one aiohttp session, created on first use.

    Headers are sent per request so that a borrowed session still carries them.
    """

    def __init__(
        self,
        timeout: float = DEFAULT_TIMEOUT,
        headers: Optional[Dict[str, str]] = None,
        session: Optional[aiohttp.ClientSession] = None
    ):
        self.timeout = timeout
        self._headers = {"Content-Type": "application/json", "Accept": "application/json"}
        if headers:
            self._headers.update(headers)
        self._session = session
        self._owns_session = session is None
        self._session_lock = asyncio.Lock()

    async def _get_session(self) -> aiohttp.ClientSession:
        async with self._session_lock:
            if self._session is None or self._session.closed:
                self._session = aiohttp.ClientSession(
                    timeout=aiohttp.ClientTimeout(total=self.timeout)
                )
                self._owns_session = True
            return self._session

    async def close(self):
        if self._owns_session and self._session and not self._session.closed:
            await self._session.close()

    async def __aenter__(self):
        return self

    async def __aexit__(self, *args):
        await self.close()

    async def _get_json(self, url: str, params: Optional[Dict[str, str]] = None) -> Any:
        session = await self._get_session()
        try:
            async with session.get(url, params=params, headers=self._headers) as response:
                if not 200 <= response.status < 300:
                    body = await response.text()
                    raise TransportError(
                        f"GET {redact_url(url)} returned HTTP {response.status}",
                        status_code=response.status,
                        retry_after=retry_after_seconds(response),
                        url=redact_url(url),
                        context={"body": body[:200]}
                    )
                return await response.json(content_type=None)
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise wrap_exception(e, TransportError, f"GET {redact_url(url)} failed", url=redact_url(url)) from e
        except ValueError as e:
            raise DeserializationError(f"GET {redact_url(url)} returned invalid JSON: {e}") from e


class JsonRpcClient(BaseHttpClient):

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self._ids = itertools.count(1)

    async def call(
        self,
        url: str,
        method: str,
        params: Any,
        query: Optional[Dict[str, str]] = None
    ) -> RpcResponse:
        """
        POST a JSON-RPC 2.0 request and parse the envelope.

        Does not interpret the ``error`` member; callers decide whether an
        error object is fatal.

        Raises:
            TransportError: On connection failure or non-2xx status
            DeserializationError: If the body is not a JSON-RPC object
        """
        session = await self._get_session()
        payload = {
            "jsonrpc": "2.0",
            "id": next(self._ids),
            "method": method,
            "params": params,
        }

        logger.debug(f"RPC {method} -> {redact_url(url)}")

        try:
            async with session.post(url, json=payload, params=query, headers=self._headers) as response:
                if not 200 <= response.status < 300:
                    body = await response.text()
                    raise TransportError(
                        f"{method} returned HTTP {response.status}",
                        status_code=response.status,
                        retry_after=retry_after_seconds(response),
                        url=redact_url(url),
                        context={"method": method, "body": body[:200]}
                    )
                data = await response.json(content_type=None)
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise wrap_exception(
                e, TransportError, f"{method} request failed", url=redact_url(url)
            ) from e
        except ValueError as e:
            raise DeserializationError(f"{method} returned invalid JSON: {e}") from e

        return RpcResponse.from_dict(data)


__all__ = [
    "redact_url",
    "retry_after_seconds",
    "RpcErrorObject",
    "RpcResponse",
    "BaseHttpClient",
    "JsonRpcClient",
]
