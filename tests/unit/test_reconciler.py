"""Unit tests for the reconciler state transitions."""

import json

import pytest

from fwr.core.cancellation import CancellationToken
from fwr.core.config import FirewalldConfig, QueryFailurePolicy
from fwr.core.exceptions import OperationCancelledError
from fwr.core.models import DesiredState, Port, ReconciliationRequest, RichRule, Service
from fwr.services.firewalld import FirewalldService
from fwr.services.reconciler import Reconciler

from conftest import FakeFirewalld, make_context


RULE = "rule family=ipv4 source address=1.2.3.4 accept"


class CancelAfterListing(FakeFirewalld):
    """Cancels the token as soon as a listing has been answered."""

    async def run(self, args, token):
        result = await super().run(args, token)
        if args.startswith("--list-"):
            token.cancel("Interrupted")
        return result


SELECTORS = [
    ("port", Port("8080/tcp")),
    ("service", Service("ssh")),
    ("rich-rule", RichRule(RULE)),
]


def _reconciler(ctx, fake, audit=None) -> Reconciler:
    return Reconciler(ctx, FirewalldService(ctx, fake), audit=audit)


def _request(selector, state=DesiredState.PRESENT, **kwargs) -> ReconciliationRequest:
    return ReconciliationRequest(selector=selector, desired_state=state, **kwargs)


class TestScenarios:
    """End-to-end behavior for the documented scenarios."""

    @pytest.mark.asyncio
    async def test_enable_missing_port(self, ctx, fake):
        """present + port not listed + add succeeds -> changed."""
        result = await _reconciler(ctx, fake).reconcile(
            _request(Port("8080/tcp")), CancellationToken(),
        )

        assert result.success is True
        assert result.changed is True
        assert result.facts["port"] == "8080/tcp"
        assert result.facts["exit_code"] == 0
        assert fake.calls == ["--list-ports", "--add-port=8080/tcp"]

    @pytest.mark.asyncio
    async def test_enable_existing_service(self, ctx, fake):
        """present + service already listed -> unchanged, no mutation."""
        fake.seed("service", "ssh")

        result = await _reconciler(ctx, fake).reconcile(
            _request(Service("ssh")), CancellationToken(),
        )

        assert result.success is True
        assert result.changed is False
        assert result.facts == {"service": "ssh"}
        assert fake.mutations == []

    @pytest.mark.asyncio
    async def test_disable_missing_rich_rule(self, ctx, fake):
        """absent + rule not listed -> unchanged, no mutation."""
        result = await _reconciler(ctx, fake).reconcile(
            _request(RichRule(RULE), DesiredState.ABSENT), CancellationToken(),
        )

        assert result.success is True
        assert result.changed is False
        assert result.facts == {"rich_rule": RULE}
        assert fake.calls == ["--list-rich-rules"]

    @pytest.mark.asyncio
    async def test_change_failure(self, ctx, fake):
        """A non-zero add is a failed result carrying the command output."""
        fake.change_failure = (1, "INVALID_ZONE")

        result = await _reconciler(ctx, fake).reconcile(
            _request(Port("8080/tcp"), zone="nope"), CancellationToken(),
        )

        assert result.success is False
        assert result.changed is False
        assert result.facts["exit_code"] == 1
        assert result.facts["stderr"] == "INVALID_ZONE"
        assert result.facts["port"] == "8080/tcp"
        assert "8080/tcp" in result.message
        assert "INVALID_ZONE" in result.message

    @pytest.mark.asyncio
    async def test_disable_failure_message(self, ctx, fake):
        fake.seed("service", "ssh")
        fake.change_failure = (2, "Error: something")

        result = await _reconciler(ctx, fake).reconcile(
            _request(Service("ssh"), DesiredState.ABSENT), CancellationToken(),
        )

        assert result.success is False
        assert result.message == "Could not disable service: ssh: Error: something"


class TestIdempotence:
    """Running the same request twice changes once."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize("kind,selector", SELECTORS)
    async def test_enable_twice(self, ctx, fake, kind, selector):
        reconciler = _reconciler(ctx, fake)
        request = _request(selector, zone="public", permanent=True)

        first = await reconciler.reconcile(request, CancellationToken())
        second = await reconciler.reconcile(request, CancellationToken())

        assert first.changed is True
        assert second.changed is False
        assert fake.items(kind, "public") == [selector.value]
        assert len(fake.mutations) == 1

    @pytest.mark.asyncio
    @pytest.mark.parametrize("kind,selector", SELECTORS)
    async def test_disable_twice(self, ctx, fake, kind, selector):
        fake.seed(kind, selector.value, zone="public")
        reconciler = _reconciler(ctx, fake)
        request = _request(selector, DesiredState.ABSENT, zone="public")

        first = await reconciler.reconcile(request, CancellationToken())
        second = await reconciler.reconcile(request, CancellationToken())

        assert first.changed is True
        assert second.changed is False
        assert fake.items(kind, "public") == []
        assert len(fake.mutations) == 1


class TestMutatingCommand:
    """The single mutating command carries the requested modifiers."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize("kind,selector", SELECTORS)
    async def test_flags_forwarded(self, ctx, fake, kind, selector):
        request = _request(selector, permanent=True, zone="public")

        await _reconciler(ctx, fake).reconcile(request, CancellationToken())

        assert len(fake.mutations) == 1
        assert "--permanent" in fake.mutations[0]
        assert "--zone=public" in fake.mutations[0]

    @pytest.mark.asyncio
    @pytest.mark.parametrize("kind,selector", SELECTORS)
    async def test_no_flags_when_not_requested(self, ctx, fake, kind, selector):
        await _reconciler(ctx, fake).reconcile(_request(selector), CancellationToken())

        assert len(fake.mutations) == 1
        assert "--permanent" not in fake.mutations[0]
        assert "--immediate" not in fake.mutations[0]
        assert "--zone" not in fake.mutations[0]

    @pytest.mark.asyncio
    async def test_immediate_forwarded(self, ctx, fake):
        request = _request(Service("http"), permanent=True, immediate=True)

        await _reconciler(ctx, fake).reconcile(request, CancellationToken())

        assert fake.mutations == ["--add-service=http --permanent --immediate"]


class TestQuotedValues:
    """Values with quotes or spaces are managed like any other."""

    @pytest.mark.asyncio
    async def test_quoted_service_in_quoted_zone(self, ctx, fake):
        request = _request(Service("it's"), zone="my zone")
        reconciler = _reconciler(ctx, fake)

        first = await reconciler.reconcile(request, CancellationToken())
        second = await reconciler.reconcile(request, CancellationToken())

        assert first.success is True
        assert first.changed is True
        assert second.changed is False
        assert fake.items("service", "my zone") == ["it's"]


class TestQueryFailure:
    """Behavior when the existence check cannot be trusted."""

    @pytest.mark.asyncio
    async def test_assume_absent_issues_add(self, ctx, fake):
        """Default policy: unreadable state leads to an add."""
        fake.list_failure = (252, "FirewallD is not running")

        result = await _reconciler(ctx, fake).reconcile(
            _request(Port("8080/tcp")), CancellationToken(),
        )

        assert result.changed is True
        assert fake.mutations == ["--add-port=8080/tcp"]

    @pytest.mark.asyncio
    async def test_assume_absent_disable_is_noop(self, ctx, fake):
        """Default policy: disabling with unreadable state changes nothing."""
        fake.list_failure = (252, "FirewallD is not running")

        result = await _reconciler(ctx, fake).reconcile(
            _request(Port("8080/tcp"), DesiredState.ABSENT), CancellationToken(),
        )

        assert result.success is True
        assert result.changed is False
        assert fake.mutations == []

    @pytest.mark.asyncio
    async def test_fail_policy_reports_failure(self, fake):
        """fail policy: a failed result, and nothing is changed."""
        ctx = make_context(firewalld=FirewalldConfig(query_failure=QueryFailurePolicy.FAIL))
        fake.list_failure = (252, "FirewallD is not running")

        result = await _reconciler(ctx, fake).reconcile(
            _request(Port("8080/tcp")), CancellationToken(),
        )

        assert result.success is False
        assert result.changed is False
        assert result.facts["exit_code"] == 252
        assert result.facts["stderr"] == "FirewallD is not running"
        assert result.facts["port"] == "8080/tcp"
        assert fake.mutations == []


class TestDryRun:
    """Dry-run checks state but never mutates."""

    @pytest.mark.asyncio
    async def test_reports_would_change(self, fake):
        ctx = make_context(dry_run=True)

        result = await _reconciler(ctx, fake).reconcile(
            _request(Port("8080/tcp"), zone="public"), CancellationToken(),
        )

        assert result.success is True
        assert result.changed is True
        assert result.message == "Would enable port"
        assert result.facts["command"] == "--add-port=8080/tcp --zone=public"
        assert fake.calls == ["--list-ports --zone=public"]

    @pytest.mark.asyncio
    async def test_unchanged_when_converged(self, fake):
        ctx = make_context(dry_run=True)
        fake.seed("service", "ssh")

        result = await _reconciler(ctx, fake).reconcile(
            _request(Service("ssh")), CancellationToken(),
        )

        assert result.changed is False


class TestCancellation:
    """A cancelled token stops the reconciliation before any command."""

    @pytest.mark.asyncio
    async def test_cancelled_before_check(self, ctx, fake):
        token = CancellationToken()
        token.cancel()

        with pytest.raises(OperationCancelledError):
            await _reconciler(ctx, fake).reconcile(_request(Port("8080/tcp")), token)

        assert fake.calls == []

    @pytest.mark.asyncio
    @pytest.mark.parametrize("kind,selector", SELECTORS)
    async def test_cancelled_after_check(self, ctx, kind, selector):
        """Cancellation during the check stops the mutating command."""
        fake = CancelAfterListing()

        with pytest.raises(OperationCancelledError):
            await _reconciler(ctx, fake).reconcile(_request(selector), CancellationToken())

        assert fake.calls == [selector.list_flag]
        assert fake.mutations == []
        assert fake.items(kind) == []

    @pytest.mark.asyncio
    async def test_cancelled_after_check_in_dry_run(self):
        fake = CancelAfterListing()

        with pytest.raises(OperationCancelledError):
            await _reconciler(make_context(dry_run=True), fake).reconcile(
                _request(Port("8080/tcp")), CancellationToken(),
            )


class TestAudit:
    """Changes are recorded in the audit log."""

    @pytest.mark.asyncio
    async def test_success_logged(self, ctx, fake, audit):
        await _reconciler(ctx, fake, audit).reconcile(
            _request(Port("8080/tcp"), zone="public", permanent=True), CancellationToken(),
        )

        events = [json.loads(line) for line in audit.log_path.read_text().splitlines()]
        assert len(events) == 1
        assert events[0]["event_type"] == "firewalld.add"
        assert events[0]["result"] == "success"
        assert events[0]["target"] == {"type": "port", "name": "8080/tcp"}
        assert events[0]["parameters"]["zone"] == "public"
        assert events[0]["parameters"]["permanent"] is True

    @pytest.mark.asyncio
    async def test_failure_logged(self, ctx, fake, audit):
        fake.seed("service", "ssh")
        fake.change_failure = (1, "NOT_ENABLED")

        await _reconciler(ctx, fake, audit).reconcile(
            _request(Service("ssh"), DesiredState.ABSENT), CancellationToken(),
        )

        event = json.loads(audit.log_path.read_text().splitlines()[0])
        assert event["event_type"] == "firewalld.remove"
        assert event["result"] == "failure"
        assert event["error"] == "NOT_ENABLED"

    @pytest.mark.asyncio
    async def test_noop_not_logged(self, ctx, fake, audit):
        fake.seed("service", "ssh")

        await _reconciler(ctx, fake, audit).reconcile(
            _request(Service("ssh")), CancellationToken(),
        )

        assert not audit.log_path.exists() or audit.log_path.read_text() == ""
