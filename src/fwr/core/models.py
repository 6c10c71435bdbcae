"""Request and result types for firewalld reconciliation.

A request carries exactly one selector. The selector variants are separate
frozen classes, so a request naming two objects cannot be built.
"""

import shlex
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, ClassVar, Optional


class DesiredState(str, Enum):
    """Target state of the managed object."""
    PRESENT = "present"
    ABSENT = "absent"


@dataclass(frozen=True)
class Selector:
    """Base for the single firewall object under management."""
    value: str

    # Per-kind wiring, set on each variant
    fact_key: ClassVar[str] = ""
    noun: ClassVar[str] = ""
    list_flag: ClassVar[str] = ""
    add_flag: ClassVar[str] = ""
    remove_flag: ClassVar[str] = ""

    def argument(self) -> str:
        """Value as it appears after --add-*=/--remove-*=, shell-quoted."""
        return shlex.quote(self.value)

    def is_listed(self, listing: str) -> bool:
        """Check membership in the output of the listing command."""
        return self.value in listing.split()

    def __str__(self) -> str:
        return f"{self.noun} {self.value}"


@dataclass(frozen=True)
class Port(Selector):
    """A port spec such as ``8080/tcp``."""
    fact_key: ClassVar[str] = "port"
    noun: ClassVar[str] = "port"
    list_flag: ClassVar[str] = "--list-ports"
    add_flag: ClassVar[str] = "--add-port"
    remove_flag: ClassVar[str] = "--remove-port"


@dataclass(frozen=True)
class Service(Selector):
    """A named firewalld service such as ``ssh``."""
    fact_key: ClassVar[str] = "service"
    noun: ClassVar[str] = "service"
    list_flag: ClassVar[str] = "--list-services"
    add_flag: ClassVar[str] = "--add-service"
    remove_flag: ClassVar[str] = "--remove-service"


@dataclass(frozen=True)
class RichRule(Selector):
    """Full rich-rule text.

    Matched line by line against --list-rich-rules without normalisation,
    so the text must be in firewalld's canonical form.
    """
    fact_key: ClassVar[str] = "rich_rule"
    noun: ClassVar[str] = "rich rule"
    list_flag: ClassVar[str] = "--list-rich-rules"
    add_flag: ClassVar[str] = "--add-rich-rule"
    remove_flag: ClassVar[str] = "--remove-rich-rule"

    def is_listed(self, listing: str) -> bool:
        return self.value in listing.splitlines()


@dataclass(frozen=True)
class ReconciliationRequest:
    """Validated, immutable reconciliation request."""
    selector: Selector
    desired_state: DesiredState
    permanent: bool = False
    immediate: bool = False
    zone: Optional[str] = None


@dataclass
class ReconciliationResult:
    """Outcome of one reconciliation."""
    success: bool
    message: str
    changed: bool = False
    facts: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def ok(cls, message: str, changed: bool, facts: dict[str, Any]) -> "ReconciliationResult":
        return cls(success=True, message=message, changed=changed, facts=facts)

    @classmethod
    def failure(
        cls,
        message: str,
        facts: Optional[dict[str, Any]] = None,
    ) -> "ReconciliationResult":
        return cls(success=False, message=message, changed=False, facts=facts or {})

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON output."""
        return {
            "success": self.success,
            "message": self.message,
            "changed": self.changed,
            "facts": dict(self.facts),
        }
