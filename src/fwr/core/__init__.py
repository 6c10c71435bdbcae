"""Core framework components for the firewalld reconciler."""

from fwr.core.exceptions import (
    FWRError,
    ConfigurationError,
    ValidationError,
    AmbiguousSelectorError,
    MissingSelectorError,
    PrerequisiteError,
    FirewallError,
    QueryError,
    OperationCancelledError,
)

from fwr.core.cancellation import CancellationToken
from fwr.core.context import ExecutionContext, create_context
from fwr.core.output import console, Console, Verbosity
from fwr.core.config import AppConfig, MachineConfig, QueryFailurePolicy
from fwr.core.audit import AuditLogger, AuditEvent, AuditEventType, AuditResult, get_audit_logger
from fwr.core.executor import CommandExecutor, CommandResult, CommandRunner

__all__ = [
    # Exceptions
    "FWRError",
    "ConfigurationError",
    "ValidationError",
    "AmbiguousSelectorError",
    "MissingSelectorError",
    "PrerequisiteError",
    "FirewallError",
    "QueryError",
    "OperationCancelledError",
    # Context
    "CancellationToken",
    "ExecutionContext",
    "create_context",
    # Output
    "console",
    "Console",
    "Verbosity",
    # Config
    "AppConfig",
    "MachineConfig",
    "QueryFailurePolicy",
    # Audit
    "AuditLogger",
    "AuditEvent",
    "AuditEventType",
    "AuditResult",
    "get_audit_logger",
    # Executor
    "CommandExecutor",
    "CommandResult",
    "CommandRunner",
]
