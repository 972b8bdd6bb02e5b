"""
Feedback models for NPS Sync.

This module provides the pydantic models for survey responses, the active
filter configuration and the persisted cache entry.
"""

import enum
from datetime import date, datetime
from typing import Any, Dict, FrozenSet, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from nps_sync.core.errors import MalformedDataError
from nps_sync.utils.helpers import derive_uid, ensure_utc, generate_id, parse_date

PROMOTER_MIN_SCORE = 9
DETRACTOR_MAX_SCORE = 6


class Role(str, enum.Enum):
    """Enumeration of respondent roles."""
    AGENT = "agent"
    MANAGER = "manager"
    SUPERVISOR = "supervisor"


class Period(str, enum.Enum):
    """Enumeration of filter periods."""
    ALL = "all"
    TODAY = "today"
    WEEK = "week"
    MONTH = "month"
    QUARTER = "quarter"
    YEAR = "year"
    CUSTOM = "custom"


class View(str, enum.Enum):
    """Which record set an aggregate is computed over."""
    FULL = "full"
    FILTERED = "filtered"


# Upstream labels are Portuguese; already-normalized values map to themselves.
ROLE_LABELS = {
    "gestor": Role.MANAGER,
    "manager": Role.MANAGER,
    "supervisor": Role.SUPERVISOR,
    "agent": Role.AGENT,
}


def normalize_role(label: Optional[str]) -> Role:
    """
    Map a raw upstream role label onto a Role.

    Args:
        label: Raw label such as "Gestor" or "Supervisor".

    Returns:
        The matching Role, AGENT for anything unrecognised.
    """
    if not label:
        return Role.AGENT
    return ROLE_LABELS.get(str(label).strip().lower(), Role.AGENT)


def _first(raw: Dict[str, Any], *names: str) -> Any:
    """Return the first present, non-null value among dotted field names."""
    for name in names:
        value: Any = raw
        for part in name.split("."):
            if not isinstance(value, dict):
                value = None
                break
            value = value.get(part)
        if value is not None:
            return value
    return None


def _text(value: Any) -> str:
    return "" if value is None else str(value)


def coerce_score(value: Any) -> int:
    """
    Coerce an upstream score into an integer in 0..10.

    Raises:
        MalformedDataError: If the value is missing, not numeric or out of range.
    """
    if value is None or isinstance(value, bool):
        raise MalformedDataError(f"Invalid score: {value!r}")
    try:
        number = float(str(value).strip())
    except ValueError:
        raise MalformedDataError(f"Invalid score: {value!r}")
    if not number.is_integer() or not 0 <= number <= 10:
        raise MalformedDataError(f"Score out of range: {value!r}")
    return int(number)


class FeedbackRecord(BaseModel):
    """
    One survey response.

    Records are immutable once created; the store only ever adds or drops
    whole records.
    """
    model_config = ConfigDict(frozen=True)

    uid: str = Field(default_factory=generate_id)
    user_id: str = ""
    company_id: str = ""
    user_name: str = ""
    company_name: str = ""
    score: int = Field(ge=0, le=10)
    reason: str = ""
    created_at: datetime
    role: Role = Role.AGENT

    @field_validator("created_at", mode="before")
    @classmethod
    def validate_created_at(cls, v: Any) -> datetime:
        parsed = parse_date(v)
        if parsed is None:
            raise ValueError(f"Unparseable created_at: {v!r}")
        return parsed

    @field_validator("role", mode="before")
    @classmethod
    def validate_role(cls, v: Any) -> Role:
        if isinstance(v, Role):
            return v
        return normalize_role(v)

    @property
    def is_promoter(self) -> bool:
        return self.score >= PROMOTER_MIN_SCORE

    @property
    def is_detractor(self) -> bool:
        return self.score <= DETRACTOR_MAX_SCORE

    @classmethod
    def from_raw(cls, raw: Dict[str, Any]) -> "FeedbackRecord":
        """
        Normalize a raw row from the remote API.

        Accepts snake_case or camelCase field names and nested ``user`` /
        ``company`` objects. The uid is derived from the user id and the
        row's own id (or its creation time), so refetching a row yields
        the same uid.

        Args:
            raw: Row as decoded from the API response.

        Returns:
            Normalized record.

        Raises:
            MalformedDataError: If a required field is missing or invalid.
        """
        if not isinstance(raw, dict):
            raise MalformedDataError(f"Expected an object, got {type(raw).__name__}")

        user_id = _first(raw, "user_id", "userId", "user.id")
        if user_id is None or str(user_id).strip() == "":
            raise MalformedDataError("Row is missing user_id", {"row": raw})

        created_at = parse_date(_first(raw, "created_at", "createdAt"))
        if created_at is None:
            raise MalformedDataError("Row is missing a valid created_at", {"row": raw})

        score = coerce_score(_first(raw, "score", "nps", "rating"))

        natural_id = _first(raw, "id", "_id")
        uid = derive_uid(
            str(user_id),
            natural_id if natural_id is not None else created_at.isoformat(),
        )

        return cls(
            uid=uid,
            user_id=str(user_id),
            company_id=_text(_first(raw, "company_id", "companyId", "company.id")),
            user_name=_text(_first(raw, "user_name", "userName", "user.name", "name")),
            company_name=_text(_first(raw, "company_name", "companyName", "company.name")),
            score=score,
            reason=_text(_first(raw, "reason", "comment", "feedback")),
            created_at=created_at,
            role=normalize_role(_first(raw, "role", "user_role", "userRole", "user.role")),
        )


class FilterCriteria(BaseModel):
    """
    The active view over the record set.

    Empty ``roles`` or ``scores`` mean no restriction on that axis.
    """
    model_config = ConfigDict(frozen=True)

    period: Period = Period.ALL
    roles: FrozenSet[Role] = frozenset()
    scores: FrozenSet[int] = frozenset()
    custom_start: Optional[Union[datetime, date]] = None
    custom_end: Optional[Union[datetime, date]] = None

    @field_validator("scores")
    @classmethod
    def validate_scores(cls, v: FrozenSet[int]) -> FrozenSet[int]:
        invalid = [score for score in v if not 0 <= score <= 10]
        if invalid:
            raise ValueError(f"Scores out of range: {sorted(invalid)}")
        return v

    @model_validator(mode="after")
    def validate_custom_range(self) -> "FilterCriteria":
        if self.period == Period.CUSTOM:
            if self.custom_start is None or self.custom_end is None:
                raise ValueError("custom period requires custom_start and custom_end")
        return self


class CacheEntry(BaseModel):
    """Persisted snapshot: the full record set plus the last fetch time."""

    records: List[FeedbackRecord] = Field(default_factory=list)
    last_fetch_date: Optional[datetime] = None

    @field_validator("last_fetch_date")
    @classmethod
    def validate_last_fetch_date(cls, v: Optional[datetime]) -> Optional[datetime]:
        return ensure_utc(v) if v is not None else None
