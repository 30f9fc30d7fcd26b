"""
Domain dataclasses and typed store filters used across the application.
"""

from dataclasses import dataclass, field, asdict
from typing import Any, Dict, Mapping, Tuple


@dataclass
class User:
    """A registered identity. Only the password hash is ever stored."""
    username: str
    password_hash: str


@dataclass
class Prescription:
    """A prescription record, always tagged with its owner's username."""
    id: str
    name: str
    owner: str
    directions: str = ""
    time: str = ""   # free-text schedule, e.g. "Every morning"

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_record(cls, record: Mapping[str, Any]) -> "Prescription":
        return cls(
            id=record["id"],
            name=record["name"],
            owner=record["owner"],
            directions=record.get("directions") or "",
            time=record.get("time") or "",
        )


@dataclass(frozen=True)
class Filter:
    """Equality criteria matched jointly (logical AND) against a collection."""
    criteria: Tuple[Tuple[str, str], ...] = field(default_factory=tuple)

    def as_dict(self) -> Dict[str, str]:
        return dict(self.criteria)


def by_id_and_owner(record_id: str, owner: str) -> Filter:
    """Match one prescription only when it belongs to *owner*."""
    return Filter((("id", record_id), ("owner", owner)))


def by_owner(owner: str) -> Filter:
    return Filter((("owner", owner),))


def by_username(username: str) -> Filter:
    return Filter((("username", username),))
