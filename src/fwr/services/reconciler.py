"""Reconciler: converge one firewalld object to its desired state.

For every request the reconciler runs one existence check and, only when
the live state differs from the desired state, exactly one add or remove
command. It keeps no state between calls.
"""

from typing import Any, Optional

from fwr.core.audit import AuditEventType, AuditLogger, AuditResult, get_audit_logger
from fwr.core.cancellation import CancellationToken
from fwr.core.context import ExecutionContext
from fwr.core.exceptions import QueryError
from fwr.core.executor import CommandResult
from fwr.core.models import (
    DesiredState,
    ReconciliationRequest,
    ReconciliationResult,
)
from fwr.services.firewalld import FirewalldService


# Wording per desired state: (verb, participle, command action)
_WORDING = {
    DesiredState.PRESENT: ("enable", "enabled", "add"),
    DesiredState.ABSENT: ("disable", "disabled", "remove"),
}


class Reconciler:
    """Drives the existence check and the mutating command."""

    def __init__(
        self,
        ctx: ExecutionContext,
        firewalld: FirewalldService,
        audit: Optional[AuditLogger] = None,
    ) -> None:
        self.ctx = ctx
        self.firewalld = firewalld
        self.audit = audit or get_audit_logger()

    async def reconcile(
        self,
        request: ReconciliationRequest,
        token: CancellationToken,
    ) -> ReconciliationResult:
        """Converge the live configuration to the request.

        Args:
            request: Validated request
            token: Cancellation token, observed by both external calls

        Returns:
            Structured result; failures of the change command are reported
            here, not raised

        Raises:
            PrerequisiteError: If firewall-cmd cannot be started
            OperationCancelledError: If cancelled
        """
        selector = request.selector
        verb, participle, action = _WORDING[request.desired_state]
        want_present = request.desired_state == DesiredState.PRESENT

        try:
            present = await self.firewalld.exists(selector, request.zone, token)
        except QueryError as e:
            facts = self._facts(request)
            facts.update(stdout=e.stdout, stderr=e.stderr, exit_code=e.return_code)
            return ReconciliationResult.failure(e.message, facts)

        if present == want_present:
            message = f"{selector.noun.capitalize()} already {participle}"
            self.ctx.console.info(f"{message}: {selector.value}")
            return ReconciliationResult.ok(message, False, self._facts(request))

        token.raise_if_cancelled()
        args = self.firewalld.change_args(request)

        if self.ctx.dry_run:
            self.ctx.console.dry_run_msg(f"{self.ctx.config.firewalld.executable} {args}")
            self._audit(request, AuditResult.DRY_RUN, message=args)
            facts = self._facts(request)
            facts["command"] = args
            return ReconciliationResult.ok(
                f"Would {verb} {selector.noun}", True, facts,
            )

        self.ctx.console.step(f"{action.capitalize()} {selector}")
        result = await self.firewalld.apply(request, token)
        facts = self._command_facts(request, result)

        if not result.success:
            stderr = result.stderr.strip()
            message = f"Could not {verb} {selector.noun}: {selector.value}"
            if stderr:
                message = f"{message}: {stderr}"
            self.ctx.console.error(message)
            self._audit(request, AuditResult.FAILURE, error=stderr or None)
            return ReconciliationResult.failure(message, facts)

        self._audit(request, AuditResult.SUCCESS)
        return ReconciliationResult.ok(
            f"{selector.noun.capitalize()} {participle}", True, facts,
        )

    @staticmethod
    def _facts(request: ReconciliationRequest) -> dict[str, Any]:
        return {request.selector.fact_key: request.selector.value}

    def _command_facts(
        self,
        request: ReconciliationRequest,
        result: CommandResult,
    ) -> dict[str, Any]:
        facts = self._facts(request)
        facts.update(
            stdout=result.stdout,
            stderr=result.stderr,
            exit_code=result.return_code,
        )
        return facts

    def _audit(
        self,
        request: ReconciliationRequest,
        result: AuditResult,
        message: Optional[str] = None,
        error: Optional[str] = None,
    ) -> None:
        if request.desired_state == DesiredState.PRESENT:
            event_type = AuditEventType.FIREWALLD_ADD
        else:
            event_type = AuditEventType.FIREWALLD_REMOVE

        self.audit.log_operation(
            event_type,
            result,
            target_type=request.selector.fact_key,
            target_name=request.selector.value,
            operation=event_type.value,
            parameters={
                "zone": self.firewalld.effective_zone(request.zone),
                "permanent": request.permanent,
                "immediate": request.immediate,
            },
            message=message,
            error=error,
        )
