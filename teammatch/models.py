"""
Domain records for intent cards and connection requests.

Field names follow Python conventions; `from_dict` / `to_dict` translate
to the camelCase document shape used by the hosted backend and by card
JSON files.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from .normalize import normalize_tag_set


class EventType(str, Enum):
    HACKATHON = "Hackathon"
    SPORTS = "Sports"
    PROJECT = "Project"
    OTHER = "Other"


class HostelStatus(str, Enum):
    HOSTELER = "hosteler"
    DAY_SCHOLAR = "day-scholar"


class CommitmentLevel(str, Enum):
    CASUAL = "casual"
    SERIOUS = "serious"
    WIN = "win"

    @property
    def rank(self) -> int:
        return _COMMITMENT_ORDER.index(self)


_COMMITMENT_ORDER = [CommitmentLevel.CASUAL, CommitmentLevel.SERIOUS, CommitmentLevel.WIN]


class RequestStatus(str, Enum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    REJECTED = "rejected"


def _parse_timestamp(raw: Any) -> Optional[datetime]:
    if raw is None or raw == "":
        return None
    if isinstance(raw, datetime):
        return raw
    try:
        return datetime.fromisoformat(str(raw).replace("Z", "+00:00"))
    except ValueError:
        return None


def _format_timestamp(ts: Optional[datetime]) -> Optional[str]:
    return ts.isoformat() if ts else None


def _optional_str(raw: Any) -> Optional[str]:
    if raw is None:
        return None
    value = str(raw).strip()
    return value or None


def _str_list(raw: Any) -> List[str]:
    if not isinstance(raw, (list, tuple)):
        return []
    return [str(v) for v in raw]


@dataclass(frozen=True)
class Availability:
    weekdays: bool = True
    weekends: bool = True
    start_time: str = "18:00"  # "HH:MM"
    end_time: str = "21:00"

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> Availability:
        data = data or {}
        return cls(
            weekdays=data.get("weekdays") is True,
            weekends=data.get("weekends") is True,
            start_time=str(data.get("startTime", "")),
            end_time=str(data.get("endTime", "")),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "weekdays": self.weekdays,
            "weekends": self.weekends,
            "startTime": self.start_time,
            "endTime": self.end_time,
        }

    def describe(self) -> str:
        days = " + ".join(d for d, on in (("Weekdays", self.weekdays), ("Weekends", self.weekends)) if on)
        return f"{days or 'No days'} • {self.start_time}-{self.end_time}"


@dataclass
class IntentCard:
    id: str
    owner_uid: str
    owner_name: str
    event_type: EventType
    event_name: str
    looking_for_roles: List[str] = field(default_factory=list)
    required_skills: List[str] = field(default_factory=list)
    availability: Availability = field(default_factory=Availability)
    hostel_status: HostelStatus = HostelStatus.HOSTELER
    commitment_level: CommitmentLevel = CommitmentLevel.SERIOUS
    short_goal: str = ""
    is_public: bool = True
    owner_email: Optional[str] = None
    owner_photo_url: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any], card_id: Optional[str] = None) -> IntentCard:
        """
        Build a card from a backend document or card JSON.

        Raises:
            ValueError: If an enum field holds an unknown value
        """
        return cls(
            id=str(card_id if card_id is not None else data.get("id", "")),
            owner_uid=str(data.get("ownerUid", "")),
            owner_name=str(data.get("ownerName", "")),
            owner_email=_optional_str(data.get("ownerEmail")),
            owner_photo_url=_optional_str(data.get("ownerPhotoURL")),
            event_type=EventType(data.get("eventType", EventType.OTHER.value)),
            event_name=str(data.get("eventName", "")).strip(),
            looking_for_roles=normalize_tag_set(_str_list(data.get("lookingForRoles"))),
            required_skills=normalize_tag_set(_str_list(data.get("requiredSkills"))),
            availability=Availability.from_dict(data.get("availability")),
            hostel_status=HostelStatus(data.get("hostelStatus", HostelStatus.HOSTELER.value)),
            commitment_level=CommitmentLevel(data.get("commitmentLevel", CommitmentLevel.SERIOUS.value)),
            short_goal=str(data.get("shortGoal", "")).strip(),
            is_public=data.get("isPublic") is True,
            created_at=_parse_timestamp(data.get("createdAt")),
            updated_at=_parse_timestamp(data.get("updatedAt")),
        )

    def to_dict(self, include_id: bool = True) -> Dict[str, Any]:
        out: Dict[str, Any] = {
            "ownerUid": self.owner_uid,
            "ownerName": self.owner_name,
            "ownerEmail": self.owner_email,
            "ownerPhotoURL": self.owner_photo_url,
            "eventType": self.event_type.value,
            "eventName": self.event_name,
            "lookingForRoles": list(self.looking_for_roles),
            "requiredSkills": list(self.required_skills),
            "availability": self.availability.to_dict(),
            "hostelStatus": self.hostel_status.value,
            "commitmentLevel": self.commitment_level.value,
            "shortGoal": self.short_goal,
            "isPublic": self.is_public,
            "createdAt": _format_timestamp(self.created_at),
            "updatedAt": _format_timestamp(self.updated_at),
        }
        if include_id:
            out = {"id": self.id, **out}
        return out


@dataclass
class ConnectionRequest:
    id: str
    from_uid: str
    from_name: str
    to_uid: str
    to_name: str
    from_intent_card_id: str
    to_intent_card_id: str
    status: RequestStatus = RequestStatus.PENDING
    from_photo_url: Optional[str] = None
    to_photo_url: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any], request_id: Optional[str] = None) -> ConnectionRequest:
        return cls(
            id=str(request_id if request_id is not None else data.get("id", "")),
            from_uid=str(data.get("fromUid", "")),
            from_name=str(data.get("fromName", "")),
            from_photo_url=_optional_str(data.get("fromPhotoURL")),
            to_uid=str(data.get("toUid", "")),
            to_name=str(data.get("toName", "")),
            to_photo_url=_optional_str(data.get("toPhotoURL")),
            from_intent_card_id=str(data.get("fromIntentCardId", "")),
            to_intent_card_id=str(data.get("toIntentCardId", "")),
            status=RequestStatus(data.get("status", RequestStatus.PENDING.value)),
            created_at=_parse_timestamp(data.get("createdAt")),
            updated_at=_parse_timestamp(data.get("updatedAt")),
        )

    def to_dict(self, include_id: bool = True) -> Dict[str, Any]:
        out: Dict[str, Any] = {
            "fromUid": self.from_uid,
            "fromName": self.from_name,
            "fromPhotoURL": self.from_photo_url,
            "toUid": self.to_uid,
            "toName": self.to_name,
            "toPhotoURL": self.to_photo_url,
            "fromIntentCardId": self.from_intent_card_id,
            "toIntentCardId": self.to_intent_card_id,
            "status": self.status.value,
            "createdAt": _format_timestamp(self.created_at),
            "updatedAt": _format_timestamp(self.updated_at),
        }
        if include_id:
            out = {"id": self.id, **out}
        return out


@dataclass
class Connection:
    id: str
    uids: Tuple[str, str]
    request_id: str
    created_at: Optional[datetime] = None

    @staticmethod
    def pair(uid_a: str, uid_b: str) -> Tuple[str, str]:
        """Connections store their two members in ascending order."""
        first, second = sorted([uid_a, uid_b])
        return (first, second)


@dataclass(frozen=True)
class Identity:
    """The signed-in user as reported by the identity provider."""
    uid: str
    display_name: str = "Student"
    email: Optional[str] = None
    photo_url: Optional[str] = None


def newest_first(items: list) -> list:
    """Sort records by created_at descending; records without a timestamp go last."""
    return sorted(
        items,
        key=lambda r: r.created_at.timestamp() if r.created_at else 0.0,
        reverse=True,
    )
