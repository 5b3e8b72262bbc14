"""
HTTP sender for the Datadog log intake.
"""

import itertools
import logging
import threading
from typing import Dict, Optional
from urllib.parse import urlencode, urlsplit

import requests

from .config import (
    API_KEY_HEADER,
    BASE_PATH,
    CONTENT_TYPE_JSON,
    CONTENT_TYPE_PLAIN,
    DEFAULT_TIMEOUT,
    Options,
    validate_timeout,
)
from .errors import ConfigError

logger = logging.getLogger(__name__)


def build_url(host: str, options: Optional[Options] = None) -> str:
    """
    Build the intake URL for a host.

    Args:
        host: Intake host name, optionally with a port
        options: Metadata sent as query parameters

    Returns:
        Full URL including the query string

    Raises:
        ConfigError: If the host is malformed
    """
    if not host or any(c.isspace() for c in host):
        raise ConfigError(f"invalid host {host!r}")
    try:
        parts = urlsplit("https://" + host)
        # Accessing port validates it
        parts.port
    except ValueError as exc:
        raise ConfigError(f"invalid host {host!r}: {exc}") from exc
    if not parts.hostname or parts.path or parts.query or parts.fragment:
        raise ConfigError(f"invalid host {host!r}")

    url = f"https://{parts.netloc}{BASE_PATH}"

    options = options or Options()
    params = []
    if options.source:
        params.append(("ddsource", options.source))
    if options.service:
        params.append(("service", options.service))
    if options.hostname:
        params.append(("hostname", options.hostname))
    if options.tags:
        params.append(("ddtags", ",".join(options.tags)))
    if params:
        url += "?" + urlencode(params, safe=",")
    return url


class DatadogSender:
    """
    Sends payloads to the Datadog intake via HTTP.

    One POST per payload, retried immediately on failure. Sends are
    serialized: the session is shared and only one retry loop runs at a time.
    """

    def __init__(
        self,
        host: str,
        api_key: str,
        is_json: bool = True,
        max_retry: int = 3,
        options: Optional[Options] = None,
        timeout: Optional[float] = DEFAULT_TIMEOUT,
        session: Optional[requests.Session] = None,
        debug: bool = False,
    ):
        """
        Initialize DatadogSender.

        Args:
            host: Intake host, e.g. config.DATADOG_US_HOST
            api_key: Datadog API key
            is_json: Payloads are JSON arrays (else plain text)
            max_retry: Retries after the first failed attempt, negative for unlimited
            options: Metadata sent as query parameters
            timeout: Request timeout in seconds, None for no timeout
            session: Custom requests.Session to use (e.g., shared by application)
            debug: Emit diagnostics for failed attempts and dropped payloads
        """
        self.host = host
        self.api_key = api_key
        self.is_json = is_json
        self.max_retry = max_retry
        self.options = options or Options()
        self.timeout = validate_timeout(timeout)
        self.debug = debug
        self._lock = threading.Lock()
        self._owns_session = session is None
        self._session = (
            self._build_session()
            if session is None
            else self._prepare_session(session)
        )

    @property
    def headers(self) -> Dict[str, str]:
        return {
            API_KEY_HEADER: self.api_key,
            "Content-Type": CONTENT_TYPE_JSON if self.is_json else CONTENT_TYPE_PLAIN,
            "charset": "UTF-8",
        }

    def _build_session(self) -> requests.Session:
        return self._prepare_session(requests.Session())

    def _prepare_session(self, session: requests.Session) -> requests.Session:
        session.headers.update(self.headers)
        return session

    def _dbg(self, msg: str, *args) -> None:
        if self.debug:
            logger.warning(msg, *args)

    def reset_session(
        self, new_session: Optional[requests.Session] = None
    ) -> None:
        """Replace the current HTTP session.

        Passing ``new_session`` allows callers to swap in their own session
        instance, otherwise a fresh internal session is created. Existing
        internally-owned sessions are closed before replacement.
        """
        if self._owns_session and self._session:
            self._session.close()

        if new_session is not None:
            self._session = self._prepare_session(new_session)
            self._owns_session = False
        else:
            self._session = self._build_session()
            self._owns_session = True

    def _attempts(self):
        if self.max_retry < 0:
            return itertools.count()
        return range(self.max_retry + 1)

    def _post(self, url: str, payload: bytes) -> bool:
        try:
            response = self._session.post(url, data=payload, timeout=self.timeout)
        except requests.exceptions.RequestException as exc:
            self._dbg("Datadog request failed: %s", exc)
            if self._owns_session:
                # Refresh internal session so future sends can recover cleanly
                self.reset_session()
            return False

        if response.status_code < 400:
            return True
        self._dbg("Datadog intake returned HTTP %d", response.status_code)
        return False

    def deliver(self, payload: bytes) -> bool:
        """
        Send one payload to the intake.

        Args:
            payload: Serialized request body

        Returns:
            True if an attempt succeeded, False once retries are exhausted
            or the host is malformed
        """
        if not payload:
            return True

        try:
            url = build_url(self.host, self.options)
        except ConfigError as exc:
            self._dbg("Dropping payload of %d bytes: %s", len(payload), exc)
            return False

        if self.debug:
            logger.debug("POST %s (%d bytes)", url, len(payload))

        with self._lock:
            attempt = 0
            for attempt in self._attempts():
                if self._post(url, payload):
                    return True

        self._dbg(
            "Giving up on payload of %d bytes after %d attempt(s)",
            len(payload),
            attempt + 1,
        )
        return False

    def close(self) -> None:
        """Close the HTTP session."""
        if self._owns_session:
            self._session.close()
