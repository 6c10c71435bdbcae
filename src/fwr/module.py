"""Module entry point: parameter map in, structured result out.

Validation failures become failed results before anything is run. Only a
launch failure of firewall-cmd and cancellation are raised to the caller.
"""

import asyncio
from typing import Any, Mapping, Optional

from fwr.core.context import ExecutionContext
from fwr.core.exceptions import ValidationError
from fwr.core.executor import CommandExecutor, CommandRunner
from fwr.core.models import ReconciliationResult
from fwr.core.validation import validate_request
from fwr.services.firewalld import FirewalldService
from fwr.services.reconciler import Reconciler


async def run_module(
    params: Mapping[str, Any],
    ctx: ExecutionContext,
    *,
    runner: Optional[CommandRunner] = None,
) -> ReconciliationResult:
    """Validate parameters and reconcile.

    Args:
        params: Module parameters (state, port, service, rich_rule, zone,
            permanent, immediate)
        ctx: Execution context; its token is threaded to every command
        runner: Command runner (defaults to a CommandExecutor for ctx)

    Returns:
        ReconciliationResult

    Raises:
        PrerequisiteError: If firewall-cmd cannot be started
        OperationCancelledError: If ctx.token is cancelled
    """
    try:
        request = validate_request(params)
    except ValidationError as e:
        return ReconciliationResult.failure(e.message)

    if runner is None:
        runner = CommandExecutor(ctx)

    reconciler = Reconciler(ctx, FirewalldService(ctx, runner))
    return await reconciler.reconcile(request, ctx.token)


def run_module_sync(
    params: Mapping[str, Any],
    ctx: ExecutionContext,
    *,
    runner: Optional[CommandRunner] = None,
) -> ReconciliationResult:
    """Blocking wrapper around run_module."""
    return asyncio.run(run_module(params, ctx, runner=runner))
