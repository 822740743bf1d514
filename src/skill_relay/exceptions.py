"""Custom exception hierarchy for skill-relay.

All skill-relay exceptions inherit from RelayError, allowing callers
to catch broad or specific errors:

    try:
        result = await forwarder.forward(client_id, payload)
    except ForwardError as e:
        print(f"Backend unreachable: {e}")
    except RelayError as e:
        print(f"skill-relay error: {e}")
"""

from __future__ import annotations


class RelayError(Exception):
    """Base exception for all skill-relay errors."""


class InvalidInput(RelayError):
    """Raised when a request body or registry call is missing required fields."""


class ForwardError(RelayError):
    """Raised when a command cannot be delivered to a backend.

    Covers timeouts, refused connections and non-2xx backend replies.
    ``status`` is set only in the last case.
    """

    def __init__(
        self,
        message: str,
        address: str = "",
        cause: BaseException | None = None,
        status: int | None = None,
    ):
        super().__init__(message)
        self.address = address
        self.cause = cause
        self.status = status


class Unauthorized(RelayError):
    """Raised when the shared-secret header is missing or wrong."""


class ConfigError(RelayError):
    """Raised when configuration is invalid or missing."""
