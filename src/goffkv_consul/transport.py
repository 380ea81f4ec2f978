"""Thin HTTP transport for the Consul endpoints the driver consumes."""

from __future__ import annotations

import base64
import logging
import re
from typing import Any
from urllib.parse import quote

import httpx
from pydantic import BaseModel, ConfigDict, Field, field_validator

from goffkv_consul.config import ConsulConfig
from goffkv_consul.errors import TransportError

__all__ = [
    "KVPair",
    "TxnResult",
    "TxnErrorEntry",
    "TxnResponse",
    "ConsulTransport",
    "parse_duration",
]

logger = logging.getLogger(__name__)

_DURATION_RE = re.compile(r"^(\d+(?:\.\d+)?)(ns|us|ms|s|m|h)$")
_DURATION_UNITS = {"ns": 1e-9, "us": 1e-6, "ms": 1e-3, "s": 1.0, "m": 60.0, "h": 3600.0}


def parse_duration(value: str) -> float:
    """Convert a simple Consul duration like ``5m`` or ``250ms`` to seconds."""
    m = _DURATION_RE.match(value.strip())
    if m is None:
        raise ValueError(f"Invalid duration: {value!r}")
    return float(m.group(1)) * _DURATION_UNITS[m.group(2)]


def _kv_url(path: str) -> str:
    # Segments may hold '?', '#' or '%', which must not leak into the URL syntax.
    return "/v1/kv/" + quote(path, safe="/")


class KVPair(BaseModel):
    """A Consul KV entry as returned by ``/v1/kv`` and ``/v1/txn``."""

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    key: str = Field(alias="Key")
    value: bytes | None = Field(default=None, alias="Value")
    modify_index: int = Field(default=0, alias="ModifyIndex")
    create_index: int = Field(default=0, alias="CreateIndex")
    lock_index: int = Field(default=0, alias="LockIndex")
    flags: int = Field(default=0, alias="Flags")
    session: str | None = Field(default=None, alias="Session")

    @field_validator("value", mode="before")
    @classmethod
    def _decode_value(cls, v: Any) -> Any:
        if isinstance(v, str):
            return base64.b64decode(v)
        return v


class TxnResult(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    kv: KVPair = Field(alias="KV")


class TxnErrorEntry(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    op_index: int = Field(alias="OpIndex")
    what: str = Field(default="", alias="What")


class TxnResponse(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    results: list[TxnResult] | None = Field(default=None, alias="Results")
    errors: list[TxnErrorEntry] | None = Field(default=None, alias="Errors")


class ConsulTransport:
    """Synchronous Consul HTTP API client backed by ``httpx``."""

    def __init__(
        self,
        config: ConsulConfig,
        *,
        client: httpx.Client | None = None,
    ) -> None:
        self._config = config
        headers = {}
        if config.token:
            headers["X-Consul-Token"] = config.token
        if client is None:
            client = httpx.Client(
                base_url=config.base_url,
                timeout=config.request_timeout_s,
            )
        client.headers.update(headers)
        self._http = client
        self._watch_wait_s = parse_duration(config.watch_wait)
        self._closed = False

    @property
    def config(self) -> ConsulConfig:
        return self._config

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._http.close()

    # --- Request helpers ---

    def _params(self, *, consistent: bool = True, **extra: Any) -> dict[str, Any]:
        params: dict[str, Any] = {}
        if consistent and self._config.consistent:
            params["consistent"] = ""
        if self._config.datacenter:
            params["dc"] = self._config.datacenter
        for name, value in extra.items():
            if value is not None:
                params[name] = value
        return params

    def _request(
        self,
        operation: str,
        method: str,
        url: str,
        *,
        params: dict[str, Any] | None = None,
        json: Any = None,
        timeout: float | None = None,
    ) -> httpx.Response:
        if self._closed:
            raise TransportError(operation, "transport is closed")
        kwargs: dict[str, Any] = {"params": params}
        if json is not None:
            kwargs["json"] = json
        if timeout is not None:
            kwargs["timeout"] = timeout
        try:
            return self._http.request(method, url, **kwargs)
        except httpx.HTTPError as e:
            raise TransportError(operation, f"{type(e).__name__}: {e}") from e
        except RuntimeError as e:
            # httpx raises RuntimeError once the underlying client is closed.
            raise TransportError(operation, str(e)) from e

    @staticmethod
    def _unexpected(operation: str, resp: httpx.Response) -> TransportError:
        body = resp.text.strip()
        return TransportError(operation, f"HTTP {resp.status_code}: {body or resp.reason_phrase}")

    # --- Transactions ---

    def txn(self, ops: list[dict[str, Any]]) -> tuple[bool, TxnResponse]:
        """Submit ``ops`` to ``/v1/txn``.

        Returns ``(committed, response)``. A rolled back transaction (HTTP 409)
        is a regular outcome; any other non-200 status is a transport error.
        """
        resp = self._request("txn", "PUT", "/v1/txn", params=self._params(), json=ops)
        logger.debug("txn of %d ops -> HTTP %d", len(ops), resp.status_code)
        if resp.status_code not in (200, 409):
            raise self._unexpected("txn", resp)
        try:
            parsed = TxnResponse.model_validate(resp.json())
        except ValueError as e:
            raise TransportError("txn", f"malformed response: {e}") from e
        return resp.status_code == 200, parsed

    # --- KV reads ---

    def kv_get(self, path: str) -> KVPair | None:
        resp = self._request("kv_get", "GET", _kv_url(path), params=self._params())
        if resp.status_code == 404:
            return None
        if resp.status_code != 200:
            raise self._unexpected("kv_get", resp)
        try:
            entries = resp.json()
            return KVPair.model_validate(entries[0]) if entries else None
        except ValueError as e:
            raise TransportError("kv_get", f"malformed response: {e}") from e

    def kv_block(self, path: str, index: int, *, recurse: bool = False) -> int:
        """Blocking query on ``path`` until its index moves past ``index``.

        Returns the ``X-Consul-Index`` reported by the agent, which equals
        ``index`` when the wait timed out without a change.
        """
        params = self._params(index=index, wait=self._config.watch_wait)
        if recurse:
            params["recurse"] = ""
        # Consul adds up to wait/16 of jitter to the wait time.
        timeout = self._config.request_timeout_s + self._watch_wait_s * (1 + 1 / 16)
        resp = self._request(
            "kv_block", "GET", _kv_url(path), params=params, timeout=timeout
        )
        if resp.status_code not in (200, 404):
            raise self._unexpected("kv_block", resp)
        raw = resp.headers.get("X-Consul-Index")
        if raw is None:
            raise TransportError("kv_block", "response lacks X-Consul-Index")
        return int(raw)

    # --- Sessions ---

    def session_create(self, *, ttl: str, behavior: str, lock_delay: str) -> str:
        body = {"TTL": ttl, "Behavior": behavior, "LockDelay": lock_delay}
        resp = self._request(
            "session_create",
            "PUT",
            "/v1/session/create",
            params=self._params(consistent=False),
            json=body,
        )
        if resp.status_code != 200:
            raise self._unexpected("session_create", resp)
        session_id = resp.json().get("ID")
        if not session_id:
            raise TransportError("session_create", "response lacks session ID")
        return str(session_id)

    def session_renew(self, session_id: str) -> bool:
        """Renew a session. Returns False when Consul no longer knows it."""
        resp = self._request(
            "session_renew",
            "PUT",
            f"/v1/session/renew/{session_id}",
            params=self._params(consistent=False),
        )
        if resp.status_code == 404:
            return False
        if resp.status_code != 200:
            raise self._unexpected("session_renew", resp)
        return True

    def session_destroy(self, session_id: str) -> None:
        resp = self._request(
            "session_destroy",
            "PUT",
            f"/v1/session/destroy/{session_id}",
            params=self._params(consistent=False),
        )
        if resp.status_code != 200:
            raise self._unexpected("session_destroy", resp)
