"""
Checker Errors

Exception hierarchy shared by the config loader, registry, scheduler and
node runner.
"""

from typing import List, Optional


class ClusterHealthError(Exception):
    """Base class for all cluster health monitor errors."""


class ConfigError(ClusterHealthError):
    """
    Configuration could not be parsed or failed validation.

    Attributes:
        errors: Individual validation problems, when more than one was found
    """

    def __init__(self, message: str, errors: Optional[List[str]] = None):
        self.errors = errors or []
        if self.errors:
            message = f"{message}: " + "; ".join(self.errors)
        super().__init__(message)


class CheckerBuildError(ClusterHealthError):
    """A checker could not be constructed from its configuration."""


class UnknownCheckerTypeError(CheckerBuildError):
    """No constructor is registered for the requested checker type."""


class CheckerRunError(ClusterHealthError):
    """Infrastructure failure while running a checker (not a health verdict)."""


class DeadlineExceeded(CheckerRunError):
    """The run context deadline passed before the checker finished."""


class RunCancelled(CheckerRunError):
    """The run context was cancelled by the process shutting down."""


class StatusPersistError(ClusterHealthError):
    """Reading or writing the aggregated node status failed."""
