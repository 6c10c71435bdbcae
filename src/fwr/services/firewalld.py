"""firewalld service.

Provides the two firewall-cmd protocols the reconciler is built on:
- Existence check: --list-ports / --list-services / --list-rich-rules
- Change: --add-* / --remove-* with --permanent, --immediate and --zone

Selector and zone values are shell-quoted, so the runner always splits
them back into single arguments.
"""

import shlex
from typing import Optional

from fwr.core.cancellation import CancellationToken
from fwr.core.config import QueryFailurePolicy
from fwr.core.context import ExecutionContext
from fwr.core.exceptions import QueryError
from fwr.core.executor import CommandResult, CommandRunner
from fwr.core.models import DesiredState, ReconciliationRequest, Selector


class FirewalldService:
    """Safe interface to firewall-cmd for a single selector.

    Listing output is trusted only when the command exits 0 and writes
    nothing to stderr. What happens otherwise depends on the configured
    query failure policy.
    """

    def __init__(self, ctx: ExecutionContext, runner: CommandRunner) -> None:
        """Initialize firewalld service.

        Args:
            ctx: Execution context
            runner: Runner used for every firewall-cmd invocation
        """
        self.ctx = ctx
        self.runner = runner

    @property
    def query_failure(self) -> QueryFailurePolicy:
        return self.ctx.config.firewalld.query_failure

    def effective_zone(self, zone: Optional[str]) -> Optional[str]:
        """Zone to pass to firewall-cmd, falling back to the configured default."""
        if zone is not None:
            return zone
        return self.ctx.config.firewalld.default_zone

    # =========================================================================
    # Command construction
    # =========================================================================

    def list_args(self, selector: Selector, zone: Optional[str]) -> str:
        """Build the listing command for a selector kind."""
        args = selector.list_flag
        zone = self.effective_zone(zone)
        if zone is not None:
            args += f" --zone={shlex.quote(zone)}"
        return args

    def change_args(self, request: ReconciliationRequest) -> str:
        """Build the single mutating command for a request."""
        selector = request.selector
        if request.desired_state == DesiredState.PRESENT:
            flag = selector.add_flag
        else:
            flag = selector.remove_flag

        parts = [f"{flag}={selector.argument()}"]
        if request.permanent:
            parts.append("--permanent")
        if request.immediate:
            parts.append("--immediate")
        zone = self.effective_zone(request.zone)
        if zone is not None:
            parts.append(f"--zone={shlex.quote(zone)}")
        return " ".join(parts)

    # =========================================================================
    # Protocols
    # =========================================================================

    async def exists(
        self,
        selector: Selector,
        zone: Optional[str],
        token: CancellationToken,
    ) -> bool:
        """Check whether the selector is currently configured.

        Args:
            selector: Port, service or rich rule to look for
            zone: Zone to query (None = daemon default)
            token: Cancellation token

        Returns:
            True if the listing contains the selector exactly

        Raises:
            QueryError: If the listing fails and the policy is ``fail``
        """
        result = await self.runner.run(self.list_args(selector, zone), token)

        if result.return_code != 0 or result.stderr.strip():
            return self._handle_query_failure(selector, zone, result)

        self.ctx.console.verbose(f"Current {selector.noun}s: {result.stdout.strip() or '(none)'}")
        return selector.is_listed(result.stdout)

    def _handle_query_failure(
        self,
        selector: Selector,
        zone: Optional[str],
        result: CommandResult,
    ) -> bool:
        reason = result.stderr.strip() or f"exit code {result.return_code}"

        if self.query_failure == QueryFailurePolicy.FAIL:
            raise QueryError(
                f"Could not determine current state of {selector}: {reason}",
                command=result.command,
                return_code=result.return_code,
                stdout=result.stdout,
                stderr=result.stderr,
                zone=self.effective_zone(zone),
                hint="Check that firewalld is running and the zone exists",
            )

        self.ctx.console.warn(
            f"Could not list current {selector.noun}s ({reason}); assuming not present"
        )
        return False

    async def apply(
        self,
        request: ReconciliationRequest,
        token: CancellationToken,
    ) -> CommandResult:
        """Issue the add or remove command for a request.

        Returns:
            CommandResult of the mutating command (non-zero exit is not raised)
        """
        return await self.runner.run(self.change_args(request), token)
