"""
HTTP JSON-RPC client (async, httpx).

- One `httpx.AsyncClient` per endpoint; close with `aclose()` or `async with`.
- Retries idempotent calls on transport failures and transient HTTP statuses
  (429/502/503/504) with bounded exponential backoff, then raises
  `TransportError`.
- Application errors (JSON-RPC `error` objects) raise `RpcError` and are never
  retried. Non-idempotent calls (`idempotent=False`) are attempted once.

Example:
    async with AsyncRpcClient("http://localhost:9545") as rpc:
        record = await rpc.request("task.getRecord", {"taskId": task_id})
"""

from __future__ import annotations

import json
import logging
import time
from dataclasses import dataclass, field
from itertools import count
from typing import Any, Dict, Iterator, Mapping, Optional, Sequence, Union

import httpx

from ..errors import JsonRpcCode, RpcError, TransportError, from_jsonrpc_error
from ..utils.retry import RetryError, aretry_call
from ..version import user_agent

log = logging.getLogger(__name__)

JSON = Union[dict, list, str, int, float, bool, None]
Params = Union[Sequence[Any], Mapping[str, Any], None]


_RETRIABLE_HTTP = frozenset({429, 502, 503, 504})
_JSON_HEADERS = {"Content-Type": "application/json", "Accept": "application/json"}


@dataclass
class AsyncRpcClient:
    """Asynchronous JSON-RPC 2.0 client over HTTP."""

    url: str
    timeout: float = 10.0
    max_retries: int = 3
    backoff_base: float = 0.25
    backoff_max: float = 4.0
    headers: Optional[Mapping[str, str]] = None
    transport: Optional[httpx.AsyncBaseTransport] = None
    _ids: Iterator[int] = field(default_factory=lambda: count(int(time.time() * 1000)), repr=False)
    _client: httpx.AsyncClient = field(init=False, repr=False)

    def __post_init__(self) -> None:
        self._client = httpx.AsyncClient(
            timeout=self.timeout,
            headers={**_JSON_HEADERS, "User-Agent": user_agent(), **(self.headers or {})},
            transport=self.transport,
        )

    # --- context manager -------------------------------------------------

    async def __aenter__(self) -> "AsyncRpcClient":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:  # noqa: ANN001
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    # --- public API ------------------------------------------------------

    async def request(
        self,
        method: str,
        params: Params = None,
        *,
        idempotent: bool = True,
    ) -> JSON:
        """Perform a single JSON-RPC request and return `result`."""
        payload = self._make_payload(method, params)
        try:
            return await aretry_call(
                self._send_once,
                payload,
                retries=self.max_retries if idempotent else 0,
                base=self.backoff_base,
                max_delay=self.backoff_max,
                jitter="equal",
                exceptions=TransportError,
            )
        except RetryError as e:
            last = e.last_exception
            status = last.http_status if isinstance(last, TransportError) else None
            raise TransportError(
                f"{method} failed: {getattr(last, 'message', last)}",
                url=self.url,
                attempts=e.attempts,
                http_status=status,
            ) from last

    # --- internals -------------------------------------------------------

    def _make_payload(self, method: str, params: Params) -> Dict[str, Any]:
        """Named params stay an object; anything else becomes a positional list."""
        if isinstance(params, Mapping):
            wire: Any = dict(params)
        elif params is None:
            wire = []
        elif isinstance(params, (str, bytes, bytearray)) or not isinstance(params, Sequence):
            wire = [params]
        else:
            wire = list(params)
        return {"jsonrpc": "2.0", "id": next(self._ids), "method": method, "params": wire}

    async def _send_once(self, payload: Dict[str, Any]) -> JSON:
        method = payload["method"]
        body = json.dumps(payload, separators=(",", ":"), ensure_ascii=False)
        log.debug("rpc -> %s %s id=%s", self.url, method, payload["id"])
        try:
            r = await self._client.post(self.url, content=body)
        except httpx.TransportError as e:
            raise TransportError(f"network error: {e}", url=self.url) from e
        if r.status_code in _RETRIABLE_HTTP:
            raise TransportError(f"HTTP {r.status_code}", url=self.url, http_status=r.status_code)
        try:
            resp = r.json()
        except ValueError as e:
            raise RpcError(
                method=method,
                code=JsonRpcCode.INTERNAL_ERROR,
                message="Non-JSON response from RPC",
                data=f"HTTP {r.status_code}: {r.text[:256]}",
            ) from e

        if not isinstance(resp, dict):
            raise RpcError(method=method, code=JsonRpcCode.INTERNAL_ERROR, message="Invalid JSON-RPC response type",
                           data=type(resp).__name__)
        if resp.get("error"):
            raise from_jsonrpc_error(resp["error"], method=method)
        if "result" not in resp:
            raise RpcError(method=method, code=JsonRpcCode.INTERNAL_ERROR, message="Malformed JSON-RPC response", data=resp)
        return resp["result"]


__all__ = ["AsyncRpcClient"]
