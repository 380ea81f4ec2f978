"""Ephemeral session ownership for leased keys."""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable

from goffkv_consul.config import ConsulConfig
from goffkv_consul.errors import ClientClosedError, TransportError
from goffkv_consul.transport import ConsulTransport

__all__ = ["LeaseManager"]

logger = logging.getLogger(__name__)

SESSION_BEHAVIOR = "delete"


class _SessionKeepAlive:
    """Daemon thread that renews a Consul session periodically."""

    def __init__(
        self,
        transport: ConsulTransport,
        session_id: str,
        ttl_s: float,
        retry_interval_s: float,
        on_expired: Callable[[str], None],
    ) -> None:
        self._transport = transport
        self._session_id = session_id
        self._ttl_s = ttl_s
        self._retry_interval_s = retry_interval_s
        self._on_expired = on_expired
        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None

    def start(self) -> None:
        self._thread = threading.Thread(
            target=self._run,
            name=f"goffkv-session-{self._session_id[:8]}",
            daemon=True,
        )
        self._thread.start()

    def _run(self) -> None:
        interval = self._ttl_s / 2
        last_renewed = time.monotonic()
        wait = interval
        while not self._stop_event.wait(timeout=wait):
            try:
                alive = self._transport.session_renew(self._session_id)
            except TransportError as e:
                if time.monotonic() - last_renewed >= self._ttl_s:
                    logger.error("Giving up renewing session %s: %s", self._session_id, e)
                    self._on_expired(self._session_id)
                    return
                logger.warning("Session %s renewal failed, retrying: %s", self._session_id, e)
                wait = self._retry_interval_s
                continue
            if not alive:
                logger.warning("Session %s expired on the server", self._session_id)
                self._on_expired(self._session_id)
                return
            last_renewed = time.monotonic()
            wait = interval

    def stop(self) -> None:
        self._stop_event.set()
        if self._thread is not None and self._thread is not threading.current_thread():
            self._thread.join(timeout=5)


class LeaseManager:
    """Owns the single ephemeral session of a client.

    The session is created on first use and renewed in the background until
    :meth:`close`. Creation is serialized so concurrent callers share one
    session instead of racing to create several.
    """

    def __init__(self, transport: ConsulTransport, config: ConsulConfig) -> None:
        self._transport = transport
        self._config = config
        self._lock = threading.Lock()
        self._session_id: str | None = None
        self._keepalive: _SessionKeepAlive | None = None
        self._closed = False

    @property
    def session_id(self) -> str | None:
        return self._session_id

    def get_or_create_session(self) -> str:
        with self._lock:
            if self._closed:
                raise ClientClosedError()
            if self._session_id is not None:
                return self._session_id

            session_id = self._transport.session_create(
                ttl=self._config.session_ttl,
                behavior=SESSION_BEHAVIOR,
                lock_delay=self._config.session_lock_delay,
            )
            logger.info("Created session %s (ttl=%s)", session_id, self._config.session_ttl)
            keepalive = _SessionKeepAlive(
                self._transport,
                session_id,
                self._config.session_ttl_s,
                self._config.session_retry_interval_s,
                self._forget,
            )
            keepalive.start()
            self._session_id = session_id
            self._keepalive = keepalive
            return session_id

    def _forget(self, session_id: str) -> None:
        with self._lock:
            if self._session_id == session_id:
                self._session_id = None
                self._keepalive = None

    def close(self) -> None:
        """Stop renewal and destroy the session. Safe to call repeatedly."""
        with self._lock:
            if self._closed:
                return
            self._closed = True
            session_id, keepalive = self._session_id, self._keepalive
            self._session_id = None
            self._keepalive = None

        if keepalive is not None:
            keepalive.stop()
        if session_id is not None:
            try:
                self._transport.session_destroy(session_id)
                logger.info("Destroyed session %s", session_id)
            except TransportError as e:
                # The server expires the session after its TTL anyway.
                logger.warning("Could not destroy session %s: %s", session_id, e)
