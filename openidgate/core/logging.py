"""Protocol logging for identity verification.

Records the outbound HTTP exchanges made while verifying assertions and
redacts credentials (identity tokens, assertion signatures, auth cookies)
before anything reaches a log handler.

Log levels:
- ERROR: Only log errors
- INFO: Log verification milestones and one line per HTTP exchange
- DEBUG: Add HTTP headers and timing
- TRACE: Add full request/response bodies (requires explicit enable)
"""

from __future__ import annotations

import logging
import re
import time
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import IntEnum
from typing import Any

import httpx

# Custom log level for TRACE (below DEBUG)
TRACE = 5
logging.addLevelName(TRACE, "TRACE")

logger = logging.getLogger("openidgate.protocol")


class LogLevel(IntEnum):
    """Protocol logging levels."""

    ERROR = logging.ERROR
    INFO = logging.INFO
    DEBUG = logging.DEBUG
    TRACE = TRACE


SENSITIVE_PATTERNS = [
    # Token flow
    (re.compile(r"(id_token=)[^&\s]+", re.IGNORECASE), r"\1[REDACTED]"),
    (re.compile(r'"(id_token)"\s*:\s*"[^"]+"', re.IGNORECASE), r'"\1": "[REDACTED]"'),
    # Indirect flow (raw and percent-encoded keys)
    (re.compile(r"(openid\.sig=)[^&\s]+", re.IGNORECASE), r"\1[REDACTED]"),
    (re.compile(r"(openid\.assoc_handle=)[^&\s]+", re.IGNORECASE), r"\1[REDACTED]"),
    # Auth cookies
    (re.compile(r"(AuthToken=)[^;\s]+", re.IGNORECASE), r"\1[REDACTED]"),
    (re.compile(r"(AuthNonce=)[^;\s]+", re.IGNORECASE), r"\1[REDACTED]"),
    (re.compile(r"(Cookie:\s*)[^\r\n]+", re.IGNORECASE), r"\1[REDACTED]"),
    (re.compile(r"^(Bearer\s+)[^\s]+", re.IGNORECASE), r"\1[REDACTED]"),
]


def redact_sensitive(text: str) -> str:
    """Redact credentials from text.

    Args:
        text: Text that may contain sensitive data.

    Returns:
        Text with sensitive data redacted.
    """
    result = text
    for pattern, replacement in SENSITIVE_PATTERNS:
        result = pattern.sub(replacement, result)
    return result


@dataclass
class HTTPExchange:
    """A single outbound HTTP request/response exchange."""

    method: str
    url: str
    request_headers: dict[str, str] = field(default_factory=dict)
    request_body: str | None = None
    response_status: int | None = None
    response_body: str | None = None
    duration_ms: float | None = None
    error: str | None = None
    timestamp: datetime = field(default_factory=lambda: datetime.now(UTC))

    def format_log(self, level: LogLevel, include_sensitive: bool = False) -> str:
        """Format the exchange for logging.

        Args:
            level: Log level determines how much detail to include.
            include_sensitive: If True, include raw sensitive data.
        """

        def show(value: str) -> str:
            return value if include_sensitive else redact_sensitive(value)

        status = self.response_status or "ERROR"
        lines = [f"HTTP {self.method} {show(self.url)} -> {status}"]
        if self.error:
            lines.append(f"  Error: {self.error}")

        if level <= LogLevel.DEBUG:
            if self.duration_ms is not None:
                lines.append(f"  Duration: {self.duration_ms:.1f}ms")
            for name, value in self.request_headers.items():
                lines.append(f"  > {name}: {show(value)}")

        if level <= LogLevel.TRACE:
            if self.request_body:
                lines.append(f"  Request Body: {show(self.request_body)[:2000]}")
            if self.response_body:
                lines.append(f"  Response Body: {show(self.response_body)[:2000]}")

        return "\n".join(lines)


class ProtocolLogger:
    """Configurable protocol logger.

    Keeps the log level and decides how much of each exchange is written.
    Exchanges are kept in memory only when ``capture`` is enabled.
    """

    def __init__(
        self,
        level: LogLevel = LogLevel.INFO,
        trace_enabled: bool = False,
        capture: bool = False,
    ) -> None:
        self.level = level
        self.trace_enabled = trace_enabled
        self.capture = capture
        self.exchanges: list[HTTPExchange] = []

    @property
    def effective_level(self) -> LogLevel:
        """Get effective log level (TRACE only if explicitly enabled)."""
        if self.level == LogLevel.TRACE and not self.trace_enabled:
            return LogLevel.DEBUG
        return self.level

    def log_exchange(self, exchange: HTTPExchange) -> None:
        """Log an HTTP exchange."""
        if self.capture:
            self.exchanges.append(exchange)

        effective = self.effective_level
        include_sensitive = self.trace_enabled and self.level <= LogLevel.TRACE
        text = exchange.format_log(effective, include_sensitive)

        if exchange.error:
            logger.error(text)
        elif effective <= LogLevel.DEBUG:
            logger.debug(text)
        elif effective <= LogLevel.INFO:
            logger.info(text)


class LoggingClient(httpx.Client):
    """HTTPX client that reports every exchange to a ProtocolLogger.

    Redirects are never followed: verification endpoints answer directly.
    """

    def __init__(
        self,
        protocol_logger: ProtocolLogger | None = None,
        **kwargs: Any,
    ) -> None:
        self._protocol_logger = protocol_logger or get_protocol_logger()
        kwargs["follow_redirects"] = False
        super().__init__(**kwargs)

    @property
    def protocol_logger(self) -> ProtocolLogger:
        """Get the protocol logger."""
        return self._protocol_logger

    def request(self, method: str, url: httpx.URL | str, **kwargs: Any) -> httpx.Response:
        """Make an HTTP request and log the exchange."""
        request = self.build_request(method, url, **kwargs)
        exchange = HTTPExchange(
            method=request.method,
            url=str(request.url),
            request_headers=dict(request.headers),
            request_body=request.content.decode("utf-8", errors="replace") or None,
        )
        start_time = time.perf_counter()
        try:
            response = self.send(request)
        except httpx.HTTPError as e:
            exchange.duration_ms = (time.perf_counter() - start_time) * 1000
            exchange.error = f"{type(e).__name__}: {e}"
            self._protocol_logger.log_exchange(exchange)
            raise

        exchange.duration_ms = (time.perf_counter() - start_time) * 1000
        exchange.response_status = response.status_code
        exchange.response_body = response.text
        self._protocol_logger.log_exchange(exchange)
        return response


# Global protocol logger instance
_global_logger: ProtocolLogger | None = None


def get_protocol_logger() -> ProtocolLogger:
    """Get the global protocol logger instance."""
    global _global_logger
    if _global_logger is None:
        _global_logger = ProtocolLogger()
    return _global_logger


def set_protocol_logger(logger_instance: ProtocolLogger) -> None:
    """Set the global protocol logger instance."""
    global _global_logger
    _global_logger = logger_instance


def configure_logging(
    level: LogLevel | str = LogLevel.INFO,
    trace_enabled: bool = False,
    log_file: str | None = None,
) -> ProtocolLogger:
    """Configure protocol logging.

    Args:
        level: Log level (ERROR, INFO, DEBUG, TRACE) or string name.
        trace_enabled: Whether to enable TRACE level (includes sensitive data).
        log_file: Optional file path to write logs to.

    Returns:
        Configured ProtocolLogger, also installed globally.
    """
    if isinstance(level, str):
        level = LogLevel.__members__.get(level.upper(), LogLevel.INFO)

    package_logger = logging.getLogger("openidgate")
    package_logger.setLevel(level)
    package_logger.handlers.clear()

    formatter = logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")
    handlers: list[logging.Handler] = [logging.StreamHandler()]
    if log_file:
        handlers.append(logging.FileHandler(log_file))
    for handler in handlers:
        handler.setLevel(level)
        handler.setFormatter(formatter)
        package_logger.addHandler(handler)

    protocol_logger = ProtocolLogger(level=level, trace_enabled=trace_enabled)
    set_protocol_logger(protocol_logger)

    if trace_enabled:
        logger.warning("TRACE logging enabled - identity tokens and signatures will be logged!")

    return protocol_logger
