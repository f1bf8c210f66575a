"""Online/offline detection against the Supabase endpoint."""
import logging
from threading import Lock
from typing import Callable, List, Optional

import requests

from edventure import config

logger = logging.getLogger(__name__)


class ConnectivityMonitor:
    """
    Check the backend over HTTP. Any transport error counts as offline; an HTTP
    error status still proves the network path works, so it counts as online.
    """

    def __init__(self, url: Optional[str] = None, timeout: Optional[float] = None, session: Optional[requests.Session] = None):
        base = url if url is not None else config.SUPABASE_URL
        self.url = f"{base.rstrip('/')}/rest/v1/" if base else None
        self.timeout = timeout if timeout is not None else config.CONNECTIVITY_TIMEOUT
        self.session = session or requests.Session()
        self._callbacks: List[Callable[[], None]] = []
        self._last_online: Optional[bool] = None
        self._lock = Lock()

    def is_online(self) -> bool:
        """Check the backend once and remember the answer for the next poll."""
        online = self._check()
        with self._lock:
            self._last_online = online
        return online

    def _check(self) -> bool:
        if not self.url:
            return False
        try:
            self.session.head(self.url, timeout=self.timeout)
            return True
        except requests.RequestException as e:
            logger.info(f"Backend unreachable ({self.url}): {e}")
            return False

    def on_online(self, callback: Callable[[], None]) -> None:
        """Register a callback fired when connectivity comes back."""
        self._callbacks.append(callback)

    def poll(self) -> bool:
        """Check once; fire on_online callbacks when the last known state was offline."""
        with self._lock:
            previous = self._last_online
        online = self.is_online()
        if online and previous is False:
            logger.info("Back online")
            for callback in list(self._callbacks):
                try:
                    callback()
                except Exception:
                    logger.exception("on_online callback failed")
        return online
