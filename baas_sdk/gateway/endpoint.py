"""
Cached network address of the gateway hostname.

The transport dials the cached IPv4 address directly and keeps presenting the
logical hostname in the ``Host`` header, so a bad gateway replica can be
dropped by re-resolving without waiting for the system resolver cache.
"""
import ipaddress
import logging
import random
import socket
import threading
import time
from typing import Callable, List, Optional

from ._rate_limited_log import rate_limited_log

logger = logging.getLogger(__name__)

DEFAULT_REFRESH_INTERVAL = 60
FORCE_REFRESH_DEBOUNCE = 1.0


def is_ipv4(address: str) -> bool:
    try:
        return ipaddress.ip_address(address).version == 4
    except ValueError:
        return False


def system_resolver(hostname: str) -> List[str]:
    """
    Resolve all addresses for ``hostname`` with the system resolver.

    Raises:
        OSError: If the lookup fails
        UnicodeError: If the hostname cannot be IDNA-encoded
    """
    infos = socket.getaddrinfo(hostname, None, proto=socket.IPPROTO_TCP)
    addresses: List[str] = []
    for _family, _type, _proto, _canon, sockaddr in infos:
        address = sockaddr[0]
        if address not in addresses:
            addresses.append(address)
    return addresses


class EndpointCache:
    """
    Periodically refreshed IPv4 address for a gateway hostname.

    ``get_address`` never blocks on DNS. Failed lookups keep the previous
    address; a stale address is preferred over failing the caller.
    """

    def __init__(
        self,
        hostname: str,
        refresh_interval: float = DEFAULT_REFRESH_INTERVAL,
        resolver: Callable[[str], List[str]] = system_resolver,
        debounce: float = FORCE_REFRESH_DEBOUNCE,
        clock: Callable[[], float] = time.monotonic,
        rng: Optional[random.Random] = None,
        logger: Optional[logging.Logger] = None
    ):
        self.hostname = hostname
        self.refresh_interval = refresh_interval
        self.debounce = debounce
        self.logger = logger or logging.getLogger(__name__)
        self._resolver = resolver
        self._clock = clock
        self._rng = rng or random.Random()

        self._cached_address = ""
        self._last_update_time: Optional[float] = None
        self._last_forced_time: Optional[float] = None

        # _lock only guards the address swap; _refresh_lock serializes lookups
        self._lock = threading.Lock()
        self._refresh_lock = threading.Lock()
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None

    @property
    def cached_address(self) -> str:
        with self._lock:
            return self._cached_address

    @property
    def last_update_time(self) -> Optional[float]:
        with self._lock:
            return self._last_update_time

    def get_address(self) -> str:
        """Return the cached IPv4 address, or the hostname if none is cached."""
        with self._lock:
            address = self._cached_address
        return address or self.hostname

    def refresh(self, exclude_current: bool = False) -> str:
        """
        Resolve the hostname and update the cached address.

        Args:
            exclude_current: Skip the currently cached address unless it is
                the only candidate (used after a transport failure)

        Returns:
            The cached address after the refresh (may be empty)
        """
        with self._refresh_lock:
            current = self.cached_address
            try:
                resolved = self._resolver(self.hostname)
            except (OSError, UnicodeError) as e:
                rate_limited_log(
                    f"Endpoint resolution failed for {self.hostname}: {e}",
                    level="error",
                    logger_instance=self.logger,
                )
                return current

            candidates = [ip for ip in resolved if is_ipv4(ip)]
            if not candidates:
                rate_limited_log(
                    f"No IPv4 address found for {self.hostname}",
                    level="warning",
                    logger_instance=self.logger,
                )
                return current

            if exclude_current and current:
                others = [ip for ip in candidates if ip != current]
                if others:
                    self.logger.info(f"Excluding failed endpoint address {current}")
                    candidates = others

            if current in candidates:
                selected = current
            else:
                selected = self._rng.choice(candidates)

            with self._lock:
                self._cached_address = selected
                self._last_update_time = self._clock()

        if selected != current:
            self.logger.info(f"Endpoint for {self.hostname} updated: {current or '-'} -> {selected}")
        else:
            self.logger.debug(f"Endpoint for {self.hostname} unchanged: {selected}")
        return selected

    def force_refresh(self) -> bool:
        """
        Re-resolve after a transport failure, excluding the current address.

        Calls within the debounce window of the previous forced refresh are
        dropped so that many failing callers cause a single lookup.

        Returns:
            True if a lookup was performed
        """
        now = self._clock()
        with self._lock:
            last = self._last_forced_time
            if last is not None and now - last < self.debounce:
                self.logger.debug("Endpoint refresh skipped, refreshed recently")
                return False
            self._last_forced_time = now
        self.logger.warning(f"Forcing endpoint refresh for {self.hostname}")
        self.refresh(exclude_current=True)
        return True

    def background_refresh(self) -> None:
        """Refresh every ``refresh_interval`` seconds until ``stop`` is called."""
        while not self._stop_event.wait(self.refresh_interval):
            self.refresh(exclude_current=False)

    def start(self) -> None:
        """Resolve once and start the background refresh thread."""
        if self._thread is not None and self._thread.is_alive():
            return
        self.refresh(exclude_current=False)
        self._stop_event.clear()
        self._thread = threading.Thread(
            target=self.background_refresh,
            name=f"endpoint-refresh-{self.hostname}",
            daemon=True,
        )
        self._thread.start()
        self.logger.info(f"Endpoint cache started for {self.hostname} (interval {self.refresh_interval}s)")

    def stop(self, timeout: Optional[float] = None) -> None:
        self._stop_event.set()
        if self._thread is not None:
            self._thread.join(timeout)
            self._thread = None
