"""Module parameter validation.

Turns the raw, string-keyed parameter map into a ReconciliationRequest.
All validators return the parsed value or raise ValidationError; none of
them touches the firewall.
"""

from typing import Any, Mapping, Optional

from fwr.core.exceptions import AmbiguousSelectorError, MissingSelectorError, ValidationError
from fwr.core.models import (
    DesiredState,
    Port,
    ReconciliationRequest,
    RichRule,
    Selector,
    Service,
)
from fwr.core.output import console


# Accepted spellings of the state parameter
STATE_ALIASES: dict[str, DesiredState] = {
    "present": DesiredState.PRESENT,
    "enabled": DesiredState.PRESENT,
    "absent": DesiredState.ABSENT,
    "disabled": DesiredState.ABSENT,
}

SELECTOR_TYPES: dict[str, type[Selector]] = {
    "port": Port,
    "service": Service,
    "rich_rule": RichRule,
}


def param_str(value: Any) -> Optional[str]:
    """Convert a parameter value to the string form the module expects.

    None stays None; booleans become "true"/"false".
    """
    if value is None:
        return None
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def parse_state(value: str) -> DesiredState:
    """Map a state string to DesiredState.

    Case-insensitive. Anything that is not a known alias means ABSENT.
    """
    state = STATE_ALIASES.get(value.strip().lower())
    if state is None:
        console.warn(f"Unrecognized state '{value}', treating as absent")
        return DesiredState.ABSENT
    return state


def parse_bool(value: Any, default: bool = False) -> bool:
    """Parse a boolean parameter.

    Accepts real booleans and the strings "true"/"false" in any case.
    Anything else yields the default rather than an error.
    """
    if isinstance(value, bool):
        return value
    if value is None:
        return default

    text = str(value).strip().lower()
    if text == "true":
        return True
    if text == "false":
        return False
    return default


def validate_request(params: Mapping[str, Any]) -> ReconciliationRequest:
    """Validate module parameters.

    Args:
        params: Raw parameter map (state, port, service, rich_rule, zone,
            permanent, immediate)

    Returns:
        The validated request

    Raises:
        ValidationError: If state is missing
        AmbiguousSelectorError: If more than one selector is given
        MissingSelectorError: If no selector is given
    """
    state = param_str(params.get("state"))
    if state is None or not state.strip():
        raise ValidationError(
            "Missing required parameter: state",
            hint="Use one of: present, absent, enabled, disabled",
        )
    desired_state = parse_state(state)

    selectors: list[Selector] = []
    for key, selector_type in SELECTOR_TYPES.items():
        value = param_str(params.get(key))
        if value is not None:
            selectors.append(selector_type(value))

    if len(selectors) > 1:
        raise AmbiguousSelectorError(
            "Only one of `port`, `service`, or `rich_rule` may be provided.",
            details=[str(s) for s in selectors],
        )

    zone = param_str(params.get("zone"))

    if not selectors:
        raise MissingSelectorError(
            "One of 'port', 'service', or 'richrule' is required",
        )

    return ReconciliationRequest(
        selector=selectors[0],
        desired_state=desired_state,
        permanent=parse_bool(params.get("permanent", "false")),
        immediate=parse_bool(params.get("immediate", "false")),
        zone=zone,
    )
