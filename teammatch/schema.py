from typing import Any, Dict, List, Tuple

from .constants import ROLES, SHORT_GOAL_MAX_LENGTH
from .models import CommitmentLevel, EventType, HostelStatus
from .normalize import normalize_tag_set, parse_clock_time, tag_key

ENUM_FIELDS = {
    "eventType": EventType,
    "hostelStatus": HostelStatus,
    "commitmentLevel": CommitmentLevel,
}


def _is_non_empty_str(v: Any) -> bool:
    return isinstance(v, str) and v.strip() != ""


def _validate_availability(availability: Any) -> List[str]:
    if not isinstance(availability, dict):
        return ["Field 'availability' is required"]

    errors: List[str] = []
    start_raw = availability.get("startTime")
    end_raw = availability.get("endTime")
    if not _is_non_empty_str(start_raw) or not _is_non_empty_str(end_raw):
        errors.append("Time range is required")
    else:
        start = parse_clock_time(start_raw)
        end = parse_clock_time(end_raw)
        if start is None or end is None:
            errors.append("Times must use 24-hour HH:MM format")
        elif end <= start:
            errors.append("End time must be later than start time")

    if availability.get("weekdays") is not True and availability.get("weekends") is not True:
        errors.append("Pick weekdays and/or weekends")
    return errors


def validate_card(data: Dict[str, Any]) -> List[str]:
    """
    Returns a list of validation error messages for intent card input.
    Empty list means valid. Mirrors the card form's rules.
    """
    errors: List[str] = []

    if not _is_non_empty_str(data.get("eventName")):
        errors.append("Event name is required")

    for f, enum_cls in ENUM_FIELDS.items():
        value = data.get(f)
        allowed = [e.value for e in enum_cls]
        if value not in allowed:
            errors.append(f"Field '{f}' must be one of: {', '.join(allowed)}")

    for f in ("lookingForRoles", "requiredSkills"):
        if f in data and not isinstance(data[f], list):
            errors.append(f"Field '{f}' must be a list")
    roles = data.get("lookingForRoles")
    if not normalize_tag_set(roles if isinstance(roles, list) else []):
        errors.append("Select at least one role")

    goal = data.get("shortGoal")
    if not _is_non_empty_str(goal):
        errors.append("Short goal is required")
    elif len(goal.strip()) > SHORT_GOAL_MAX_LENGTH:
        errors.append(f"Keep the short goal under {SHORT_GOAL_MAX_LENGTH} characters")

    errors.extend(_validate_availability(data.get("availability")))

    if "isPublic" in data and not isinstance(data["isPublic"], bool):
        errors.append("Field 'isPublic' must be true or false")

    return errors


def validate_card_strict(data: Dict[str, Any]) -> Tuple[bool, List[str]]:
    """
    Basic validation plus: every role must come from the known role list.
    Free-text skills are still allowed.
    """
    errors = validate_card(data)

    roles = data.get("lookingForRoles")
    if isinstance(roles, list):
        known = {tag_key(r) for r in ROLES}
        unknown = [r for r in normalize_tag_set(roles) if tag_key(r) not in known]
        if unknown:
            errors.append(f"Unknown role(s): {', '.join(unknown)}")

    return (not errors, errors)
