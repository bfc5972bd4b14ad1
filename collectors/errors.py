"""
Exception hierarchy for measurement cycles.

Runners raise these; collectors catch them, log them and report ``up=0``.
Every class carries a short ``kind`` string that shows up in log lines.
"""
from __future__ import annotations

from typing import Optional


class ExporterError(Exception):
    """Base class for every error raised by a measurement cycle."""

    kind = "error"


# ---------------------------------------------------------------------------
# Parsing
# ---------------------------------------------------------------------------

class ParseError(ExporterError):
    """Malformed output from the BBK binary."""

    kind = "parse"

    TOO_FEW_FIELDS = "too few fields"
    INVALID_NUMERIC = "invalid numeric field"

    def __init__(
        self,
        reason: str,
        field: Optional[str] = None,
        value: Optional[str] = None,
        line: str = "",
    ) -> None:
        self.reason = reason
        self.field = field
        self.value = value
        self.line = line
        super().__init__(self._message())

    def _message(self) -> str:
        if self.field is not None:
            return f"{self.reason}: {self.field}={self.value!r} in {self.line!r}"
        return f"{self.reason}: {self.line!r}"


# ---------------------------------------------------------------------------
# Running
# ---------------------------------------------------------------------------

class RunError(ExporterError):
    """A measurement could not be carried out."""

    kind = "run"


class MeasurementTimeout(RunError):
    kind = "timeout"


class StartFailure(RunError):
    kind = "start_failure"


class NonZeroExit(RunError):
    kind = "non_zero_exit"

    def __init__(self, message: str, returncode: int) -> None:
        self.returncode = returncode
        super().__init__(message)


class EmptyOutput(RunError):
    kind = "empty_output"


class ParseFailure(RunError):
    kind = "parse_failure"


class UserInfoFailure(RunError):
    kind = "user_info_failure"


class NoServers(RunError):
    kind = "no_servers"


class ServerLookupFailure(RunError):
    kind = "server_lookup_failure"


class ServerNotFound(RunError):
    kind = "server_not_found"


class ServerMismatch(RunError):
    """The provider answered a server lookup with a different server."""

    kind = "server_mismatch"

    def __init__(self, requested: int, returned: str) -> None:
        self.requested = requested
        self.returned = returned
        super().__init__(
            f"could not find chosen server ID {requested} (provider offered {returned}) "
            "and server_fallback is not set"
        )
