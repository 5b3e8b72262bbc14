"""
Standard logging handler for shipping logs to Datadog.
"""

import logging
from typing import FrozenSet, Optional

import requests

from .batcher import BatchAccumulator
from .config import (
    DATADOG_US_HOST,
    DEFAULT_MAX_RETRY,
    DEFAULT_TIMEOUT,
    HookConfig,
    Options,
)
from .dispatcher import Dispatcher
from .encoder import JSONLineEncoder, LineEncoder, TextLineEncoder
from .errors import ConfigError
from .sender import DatadogSender

STANDARD_LEVELS = (
    logging.CRITICAL,
    logging.ERROR,
    logging.WARNING,
    logging.INFO,
    logging.DEBUG,
)

# Diagnostics from this package must not be shipped by this handler
_OWN_LOGGER = __name__.split(".")[0]


class DatadogHandler(logging.Handler):
    """
    Python logging handler that batches records and sends them to the
    Datadog HTTP log intake.

    Records are encoded on the calling thread, then buffered by a background
    worker and flushed every ``batch_interval`` seconds or as soon as a
    batch reaches the intake's size or entry limits. Delivery runs on
    separate threads and never blocks or fails the logging call.

    Example:
        import logging
        from ddsend import DatadogHandler, Options

        handler = DatadogHandler(
            api_key="...",
            batch_interval=10.0,
            options=Options(service="billing", tags=("env:prod",)),
        )

        logger = logging.getLogger("my_app")
        logger.addHandler(handler)
        logger.setLevel(logging.DEBUG)

        logger.info("Hello from standard logging!")

        # Flushes remaining records; logging.shutdown() also calls it
        handler.close()
    """

    def __init__(
        self,
        api_key: str,
        host: str = DATADOG_US_HOST,
        batch_interval: Optional[float] = None,
        max_retry: int = DEFAULT_MAX_RETRY,
        level: int = logging.NOTSET,
        encoder: Optional[LineEncoder] = None,
        options: Optional[Options] = None,
        timeout: Optional[float] = DEFAULT_TIMEOUT,
        session: Optional[requests.Session] = None,
        close_timeout: Optional[float] = 5.0,
        debug: bool = False,
    ):
        """
        Initialize DatadogHandler.

        Args:
            api_key: Datadog API key (required)
            host: Intake host, e.g. DATADOG_US_HOST or DATADOG_EU_HOST
            batch_interval: Seconds between automatic flushes, defaults to 30
            max_retry: Retries after a failed send, negative for unlimited
            level: Minimum log level to process
            encoder: Line encoder, JSONLineEncoder by default
            options: Source, service, hostname and tags sent with every batch
            timeout: HTTP request timeout in seconds
            session: Custom requests.Session to use
            close_timeout: Seconds close() waits for pending deliveries
            debug: Log diagnostics about failed and dropped sends
        """
        super().__init__(level)

        if not api_key:
            raise ConfigError("api_key is required")

        self.encoder = encoder or JSONLineEncoder()
        self.options = options or Options()
        self.close_timeout = close_timeout
        self.debug = debug

        self._sender = DatadogSender(
            host=host,
            api_key=api_key,
            is_json=self.encoder.is_json,
            max_retry=max_retry,
            options=self.options,
            timeout=timeout,
            session=session,
            debug=debug,
        )
        self._dispatcher = Dispatcher(self._sender, debug=debug)
        self._accumulator = BatchAccumulator(
            on_flush=self._dispatcher.submit,
            is_json=self.encoder.is_json,
            interval=batch_interval,
            debug=debug,
        )
        self._closed = False

    @classmethod
    def from_config(
        cls,
        config: HookConfig,
        level: int = logging.NOTSET,
        encoder: Optional[LineEncoder] = None,
        **kwargs,
    ) -> "DatadogHandler":
        """Build a handler from a HookConfig (see config.load_config)."""
        if encoder is None:
            encoder = JSONLineEncoder() if config.is_json else TextLineEncoder()
        return cls(
            api_key=config.api_key,
            host=config.host,
            batch_interval=config.batch_interval,
            max_retry=config.max_retry,
            level=level,
            encoder=encoder,
            options=config.options,
            timeout=config.timeout,
            debug=config.debug,
            **kwargs,
        )

    def levels(self) -> FrozenSet[int]:
        """Standard levels this handler accepts."""
        return frozenset(lvl for lvl in STANDARD_LEVELS if lvl >= self.level)

    def fire(self, record: logging.LogRecord) -> None:
        """
        Encode a record and queue it for sending.

        Raises:
            EncodingError: If the record cannot be encoded; it is dropped
        """
        line = self.encoder.encode(record, self.formatter)
        self._accumulator.add(line)

    def emit(self, record: logging.LogRecord) -> None:
        """Process a log record."""
        if record.name == _OWN_LOGGER or record.name.startswith(_OWN_LOGGER + "."):
            return
        try:
            self.fire(record)
        except Exception:
            self.handleError(record)

    def flush(self) -> None:
        """Send whatever is buffered without waiting for the interval."""
        if not self._closed:
            self._accumulator.flush()

    @property
    def stats(self):
        return self._accumulator.stats

    def close(self) -> None:
        """Flush remaining records, wait for deliveries, close the session."""
        self.acquire()
        try:
            if self._closed:
                return
            self._closed = True
        finally:
            self.release()

        self._accumulator.close(timeout=self.close_timeout)
        self._dispatcher.wait(timeout=self.close_timeout)
        self._sender.close()
        super().close()

    def __enter__(self):
        """Context manager entry."""
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Context manager exit."""
        self.close()
        return False
