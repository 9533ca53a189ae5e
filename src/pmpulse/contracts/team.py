"""Team, capacity and absence contracts."""

from __future__ import annotations

from datetime import date, datetime
from enum import StrEnum

from pydantic import BaseModel, Field, model_validator


class AbsenceType(StrEnum):
    VACATION = "vacation"
    SICK = "sick"
    TRAINING = "training"
    CONFERENCE = "conference"
    OTHER = "other"


DEFAULT_ROLES: tuple[str, ...] = (
    "Data Engineer",
    "Business Analyst",
    "Scrum Master",
    "SRE",
    "Product Owner",
    "Initiative Manager",
    "Developer",
    "QA Engineer",
    "DevOps Engineer",
    "Custom",
)

ROLE_COMPATIBILITY_GROUPS: dict[str, tuple[str, ...]] = {
    "technical": ("Developer", "Data Engineer", "SRE", "DevOps Engineer", "QA Engineer"),
    "analysis": ("Business Analyst", "Product Owner", "Initiative Manager"),
    "management": ("Scrum Master",),
}


class TeamMember(BaseModel):
    username: str
    name: str = ""
    role: str = "Developer"
    default_capacity: float = Field(default=40.0, ge=0)

    @model_validator(mode="after")
    def validate_role(self) -> TeamMember:
        if self.role not in DEFAULT_ROLES:
            raise ValueError(f"unknown role {self.role!r}; use one of: {', '.join(DEFAULT_ROLES)}")
        return self


class TeamConfig(BaseModel):
    members: list[TeamMember] = Field(default_factory=list)

    def member(self, username: str) -> TeamMember | None:
        for member in self.members:
            if member.username == username:
                return member
        return None


class MemberCapacity(BaseModel):
    username: str
    available_hours: float = Field(ge=0)
    reason: str | None = None


class SprintCapacityRecord(BaseModel):
    sprint_id: str
    sprint_name: str = ""
    member_capacity: list[MemberCapacity] = Field(default_factory=list)

    def for_member(self, username: str) -> MemberCapacity | None:
        for entry in self.member_capacity:
            if entry.username == username:
                return entry
        return None


class Absence(BaseModel):
    id: str
    username: str
    start_date: date
    end_date: date
    reason: str = ""
    type: AbsenceType = AbsenceType.VACATION
    created_at: datetime

    @model_validator(mode="after")
    def validate_range(self) -> Absence:
        if self.end_date < self.start_date:
            raise ValueError("absence end_date must not precede start_date")
        return self

    def overlaps(self, start: date, end: date) -> bool:
        return self.start_date <= end and self.end_date >= start
