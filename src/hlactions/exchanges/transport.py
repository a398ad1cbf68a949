# src/hlactions/exchanges/transport.py

import asyncio
import json
import logging
import threading
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

import requests

from hlactions.core.constants import MAINNET_API_URL
from hlactions.core.errors import TransportError

logger = logging.getLogger(__name__)


class BaseTransport(ABC):
    """
    The only thing the exchange layer needs from HTTP: POST a JSON body to a path,
    get decoded JSON back. No retries here: failures reach the caller as TransportError.
    """

    @property
    @abstractmethod
    def base_url(self) -> str:
        pass

    @abstractmethod
    async def post_json(self, path: str, body: Dict[str, Any]) -> Any:
        """
        POST ``body`` to ``base_url + path`` and return the decoded response.
        """
        pass


class HttpTransport(BaseTransport):
    """
    Each worker thread gets its own requests.Session, since calls run concurrently
    through asyncio.to_thread. A ``session`` passed in is used by every thread as is.
    """

    def __init__(self, base_url: str = MAINNET_API_URL, timeout: Optional[float] = None,
                 session: Optional[requests.Session] = None):
        self._base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._shared_session = session
        self._local = threading.local()
        self._sessions: List[requests.Session] = []
        self._sessions_lock = threading.Lock()
        if session is not None:
            session.headers.update({"Content-Type": "application/json"})

    @property
    def session(self) -> requests.Session:
        """Session for the calling thread."""
        if self._shared_session is not None:
            return self._shared_session
        session = getattr(self._local, "session", None)
        if session is None:
            session = requests.Session()
            session.headers.update({"Content-Type": "application/json"})
            self._local.session = session
            with self._sessions_lock:
                self._sessions.append(session)
        return session

    @property
    def base_url(self) -> str:
        return self._base_url

    def _post(self, path: str, body: Dict[str, Any]) -> Any:
        url = self._base_url + path
        logger.debug(f"POST {url}")
        try:
            response = self.session.post(url, data=json.dumps(body), timeout=self.timeout)
        except requests.exceptions.RequestException as e:
            raise TransportError(f"Request to {url} failed: {e}") from e

        if not 200 <= response.status_code < 300:
            raise TransportError(
                f"API request failed: {response.status_code} - {response.text}",
                status_code=response.status_code,
                body=response.text,
            )
        try:
            return response.json()
        except ValueError as e:
            raise TransportError(
                f"Failed to decode JSON response from {url}",
                status_code=response.status_code,
                body=response.text,
            ) from e

    async def post_json(self, path: str, body: Dict[str, Any]) -> Any:
        # requests is blocking; keep the event loop free while the call is in flight
        return await asyncio.to_thread(self._post, path, body)

    def close(self) -> None:
        if self._shared_session is not None:
            self._shared_session.close()
        with self._sessions_lock:
            sessions, self._sessions = self._sessions, []
        for session in sessions:
            session.close()
