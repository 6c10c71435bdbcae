"""Execution context for one reconciler invocation.

The ExecutionContext holds the flags, configuration, console and
cancellation token that affect how an invocation runs. It is created once
at the entry point and handed to the executor, the firewalld service and
the reconciler.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from fwr.core.cancellation import CancellationToken
from fwr.core.config import AppConfig, DEFAULT_CONFIG_PATH
from fwr.core.output import Console, console, Verbosity


@dataclass
class ExecutionContext:
    """Execution context passed through a reconciliation.

    Attributes:
        dry_run: If True, run existence checks but do not change anything
        verbosity: Output verbosity level (0-3)
        no_color: If True, disable colored output
        config_path: Path to configuration file
        token: Cancellation token observed by every external call
    """

    # Runtime flags
    dry_run: bool = False
    verbosity: int = 1
    no_color: bool = False

    # Configuration
    config_path: Path = field(default_factory=lambda: DEFAULT_CONFIG_PATH)

    token: CancellationToken = field(default_factory=CancellationToken)

    # Internal state (initialized lazily)
    _config: Optional[AppConfig] = field(default=None, repr=False)
    _console: Console = field(default_factory=lambda: console, repr=False)

    def __post_init__(self) -> None:
        """Configure console after initialization."""
        self._console.configure(
            verbosity=self.verbosity,
            dry_run=self.dry_run,
            no_color=self.no_color,
        )

    @property
    def config(self) -> AppConfig:
        """Get application configuration (lazy loaded)."""
        if self._config is None:
            self._config = AppConfig(config_path=self.config_path)
        return self._config

    @property
    def console(self) -> Console:
        """Get console for output."""
        return self._console

    @property
    def is_quiet(self) -> bool:
        return self.verbosity <= Verbosity.QUIET


def create_context(
    dry_run: bool = False,
    verbose: int = 0,
    quiet: bool = False,
    no_color: bool = False,
    config: Optional[Path] = None,
    token: Optional[CancellationToken] = None,
) -> ExecutionContext:
    """Create an execution context from CLI options.

    Args:
        dry_run: Preview changes without executing
        verbose: Increase verbosity (can be repeated)
        quiet: Suppress non-essential output
        no_color: Disable colored output
        config: Path to configuration file
        token: Cancellation token (a fresh one is created if None)

    Returns:
        Configured execution context
    """
    if quiet:
        verbosity = Verbosity.QUIET
    else:
        verbosity = min(Verbosity.NORMAL + verbose, Verbosity.DEBUG)

    return ExecutionContext(
        dry_run=dry_run,
        verbosity=verbosity,
        no_color=no_color,
        config_path=config or DEFAULT_CONFIG_PATH,
        token=token or CancellationToken(),
    )
