"""Custom exceptions for the firewalld reconciler.

All exceptions provide:
- Clear error messages
- Optional hints for resolution
- Optional details for debugging
- Exit codes for proper shell integration
"""

from typing import Optional


class FWRError(Exception):
    """Base exception for all fwr errors.

    Attributes:
        message: Human-readable error description
        hint: Suggested action to resolve the error
        details: Additional context for debugging
        exit_code: Shell exit code (1-255)
    """

    exit_code: int = 1

    def __init__(
        self,
        message: str,
        *,
        hint: Optional[str] = None,
        details: Optional[list[str]] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.hint = hint
        self.details = details or []

    def __str__(self) -> str:
        return self.message


class ConfigurationError(FWRError):
    """Configuration file or settings errors.

    Raised when:
    - Config file unreadable
    - Invalid YAML syntax
    - Invalid configuration values
    """
    exit_code = 2


class ValidationError(FWRError):
    """Module parameter validation errors.

    Raised when:
    - A required parameter is missing
    - Selector parameters are missing or ambiguous
    """
    exit_code = 3


class AmbiguousSelectorError(ValidationError):
    """More than one of port, service or rich_rule was given."""


class MissingSelectorError(ValidationError):
    """None of port, service or rich_rule was given."""


class PrerequisiteError(FWRError):
    """Missing prerequisites.

    Raised when:
    - The firewall control executable cannot be started
    - Insufficient permissions to execute it
    """
    exit_code = 6


class FirewallError(FWRError):
    """firewalld errors.

    Raised when:
    - A firewalld query or change cannot be trusted
    """
    exit_code = 15

    def __init__(
        self,
        message: str,
        *,
        selector: Optional[str] = None,
        zone: Optional[str] = None,
        hint: Optional[str] = None,
        details: Optional[list[str]] = None,
    ) -> None:
        super().__init__(message, hint=hint, details=details)
        self.selector = selector
        self.zone = zone


class QueryError(FirewallError):
    """A listing command failed or wrote to stderr.

    Only raised when the query failure policy is ``fail``.
    """

    def __init__(
        self,
        message: str,
        *,
        command: str,
        return_code: int,
        stdout: str,
        stderr: str,
        zone: Optional[str] = None,
        hint: Optional[str] = None,
    ) -> None:
        details = [f"Command: {command}", f"Exit code: {return_code}"]
        if stderr.strip():
            details.append(f"Error output: {stderr.strip()}")
        super().__init__(message, zone=zone, hint=hint, details=details)
        self.command = command
        self.return_code = return_code
        self.stdout = stdout
        self.stderr = stderr


class OperationCancelledError(FWRError):
    """The operation was cancelled before it could complete."""
    exit_code = 130
