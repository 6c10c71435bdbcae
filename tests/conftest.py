"""Shared fixtures: an in-memory firewall-cmd and a test execution context."""

import shlex
from typing import Optional

import pytest

from fwr.core.audit import AuditLogger, configure_audit_logger
from fwr.core.cancellation import CancellationToken
from fwr.core.config import AppConfig, AuditConfig, FirewalldConfig, MachineConfig
from fwr.core.context import ExecutionContext
from fwr.core.executor import CommandResult


class FakeFirewalld:
    """Stand-in for firewall-cmd that keeps ports, services and rich rules in memory.

    Understands --list-ports/--list-services/--list-rich-rules and the
    matching --add-*/--remove-* verbs, each with an optional --zone.
    """

    def __init__(self) -> None:
        self.state: dict[tuple[Optional[str], str], list[str]] = {}
        self.calls: list[str] = []
        self.list_failure: Optional[tuple[int, str]] = None
        self.change_failure: Optional[tuple[int, str]] = None

    def seed(self, kind: str, value: str, zone: Optional[str] = None) -> None:
        """Pre-configure an object. kind is port, service or rich-rule."""
        self.state.setdefault((zone, kind), []).append(value)

    def items(self, kind: str, zone: Optional[str] = None) -> list[str]:
        return self.state.get((zone, kind), [])

    @property
    def mutations(self) -> list[str]:
        return [c for c in self.calls if not c.startswith("--list-")]

    async def run(self, args: str, token: CancellationToken) -> CommandResult:
        token.raise_if_cancelled()
        self.calls.append(args)

        argv = shlex.split(args)
        verb = argv[0]
        zone = None
        for arg in argv[1:]:
            if arg.startswith("--zone="):
                zone = arg.split("=", 1)[1]

        if verb.startswith("--list-"):
            if self.list_failure:
                code, stderr = self.list_failure
                return CommandResult(args, code, "", stderr)
            kind = verb[len("--list-"):].rstrip("s")
            items = self.items(kind, zone)
            if kind == "rich-rule":
                stdout = "".join(f"{item}\n" for item in items)
            else:
                stdout = " ".join(items) + "\n"
            return CommandResult(args, 0, stdout, "")

        if self.change_failure:
            code, stderr = self.change_failure
            return CommandResult(args, code, "", stderr)

        name, value = verb[2:].split("=", 1)
        action, kind = name.split("-", 1)
        items = self.state.setdefault((zone, kind), [])
        if action == "add" and value not in items:
            items.append(value)
        elif action == "remove" and value in items:
            items.remove(value)
        return CommandResult(args, 0, "success\n", "")


def make_context(
    dry_run: bool = False,
    firewalld: Optional[FirewalldConfig] = None,
) -> ExecutionContext:
    """Build a context with in-memory configuration and auditing off."""
    config = MachineConfig(
        firewalld=firewalld or FirewalldConfig(),
        audit=AuditConfig(enabled=False),
    )
    return ExecutionContext(dry_run=dry_run, _config=AppConfig(config=config))


@pytest.fixture(autouse=True)
def isolated_environment(monkeypatch, tmp_path):
    """Keep env overrides and the global audit log away from the real system."""
    for name in ("FWR_FIREWALL_CMD", "FWR_QUERY_FAILURE", "FWR_AUDIT_ENABLED"):
        monkeypatch.delenv(name, raising=False)
    configure_audit_logger(AuditConfig(enabled=False, log_path=tmp_path / "audit.log"))


@pytest.fixture
def fake() -> FakeFirewalld:
    return FakeFirewalld()


@pytest.fixture
def ctx() -> ExecutionContext:
    return make_context()


@pytest.fixture
def audit(tmp_path) -> AuditLogger:
    return AuditLogger(log_path=tmp_path / "audit.log")
