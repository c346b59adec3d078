# audience_hub/query/errors.py
"""Error taxonomy for cohort query compilation and execution."""

from typing import Optional


class AudienceQueryError(Exception):
    """Base class for all cohort query errors."""
    pass


class ConfigurationError(AudienceQueryError):
    """The audience configuration cannot support the requested query."""
    pass


class ValidationError(AudienceQueryError):
    """The filter payload is malformed or uses an unsupported operator."""
    pass


class ExecutionError(AudienceQueryError):
    """The warehouse failed to execute a compiled query."""

    def __init__(self, message: str, mode: Optional[str] = None, sql: Optional[str] = None):
        super().__init__(message)
        self.mode = mode
        self.sql = sql

    def __str__(self) -> str:
        base = super().__str__()
        if self.mode:
            return f"[{self.mode}] {base}"
        return base
