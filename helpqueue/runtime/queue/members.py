"""Principals and the per-queue records kept for them."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta


def utcnow() -> datetime:
    return datetime.now(UTC)


@dataclass(frozen=True)
class Member:
    """A principal of one organizational unit, with its role names."""

    id: str
    display_name: str
    roles: frozenset[str] = frozenset()

    @property
    def mention(self) -> str:
        return f"<@{self.id}>"

    def has_any_role(self, roles: Iterable[str]) -> bool:
        return not self.roles.isdisjoint(roles)


@dataclass
class Helpee:
    """A member waiting in a queue's line."""

    member: Member
    wait_start: datetime
    up_next: bool = False  # informational, set once at insertion


@dataclass
class Helper:
    """A member serving a queue's line."""

    member: Member
    help_start: datetime
    help_end: datetime | None = None
    helped_members: list[Member] = field(default_factory=list)

    @property
    def elapsed(self) -> timedelta:
        return (self.help_end or utcnow()) - self.help_start
