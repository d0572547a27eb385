import datetime
import uuid
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, field_validator

from algorithms import WeightConverter


MAJOR_LIFTS: tuple[str, ...] = (
    "Bench Press",
    "Deadlift",
    "Back Squat",
    "Front Squat",
    "Overhead Press",
    "Barbell Row",
    "Power Clean",
    "Snatch",
    "Clean & Jerk",
    "Incline Bench Press",
    "Sumo Deadlift",
    "Romanian Deadlift",
)


class RecordKind(str, Enum):
    """Measurement category of a personal record."""

    WEIGHT = "Weight"
    TIME = "Time"
    DISTANCE = "Distance"
    REPS = "Reps"
    VOLUME = "Volume"

    @property
    def unit(self) -> str:
        return {
            RecordKind.WEIGHT: "lbs",
            RecordKind.TIME: "min:sec",
            RecordKind.DISTANCE: "mi",
            RecordKind.REPS: "reps",
            RecordKind.VOLUME: "lbs",
        }[self]

    @property
    def higher_is_better(self) -> bool:
        return self is not RecordKind.TIME


# Rank used when records of different kinds are compared for the overall best.
KIND_RANK: dict[RecordKind, int] = {
    RecordKind.WEIGHT: 4,
    RecordKind.VOLUME: 3,
    RecordKind.DISTANCE: 2,
    RecordKind.REPS: 1,
    RecordKind.TIME: 0,
}


def split_seconds(total: float) -> tuple[int, int]:
    """Split ``total`` seconds into whole minutes and seconds (0-59)."""
    whole = int(round(total))
    return whole // 60, whole % 60


def format_duration(total: float) -> str:
    minutes, seconds = split_seconds(total)
    return f"{minutes}:{seconds:02d}"


def _now() -> datetime.datetime:
    return datetime.datetime.now()


class PersonalRecord(BaseModel):
    """A best-effort personal record for one lift.

    ``value`` is stored in the canonical unit of ``record_kind``: pounds for
    weight and volume, seconds for time, miles for distance and a plain
    count for reps.
    """

    model_config = ConfigDict(frozen=True)

    id: uuid.UUID = Field(default_factory=uuid.uuid4)
    lift_name: str
    record_kind: RecordKind = RecordKind.WEIGHT
    value: float = Field(gt=0, allow_inf_nan=False)
    date: datetime.datetime = Field(default_factory=_now)
    notes: Optional[str] = None
    is_custom: bool = False

    @field_validator("lift_name")
    @classmethod
    def _lift_name_not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("lift_name must not be empty")
        return v

    @field_validator("date")
    @classmethod
    def _naive_local_date(cls, v: datetime.datetime) -> datetime.datetime:
        # Stored dates are naive local time so the store can always be sorted.
        if v.tzinfo is not None:
            return v.astimezone().replace(tzinfo=None)
        return v

    def is_better_than(self, other: "PersonalRecord") -> bool:
        """Return True if this record strictly beats ``other`` for its kind."""
        if self.record_kind.higher_is_better:
            return self.value > other.value
        return self.value < other.value

    def overall_key(self) -> tuple:
        """Sort key giving a total order across kinds; larger is better."""
        directional = self.value if self.record_kind.higher_is_better else -self.value
        return (KIND_RANK[self.record_kind], directional, self.date, str(self.id))

    @property
    def time_components(self) -> tuple[int, int]:
        return split_seconds(self.value)

    def formatted_value(self, weight_unit: str = "lb") -> str:
        kind = self.record_kind
        if kind is RecordKind.TIME:
            return format_duration(self.value)
        if kind is RecordKind.DISTANCE:
            return f"{self.value:.2f} mi"
        if kind is RecordKind.REPS:
            return f"{int(self.value)} reps"
        amount = WeightConverter.from_pounds(self.value, weight_unit)
        label = WeightConverter.unit_label(weight_unit)
        if kind is RecordKind.VOLUME:
            return f"{amount:.0f} {label}"
        return f"{amount:.1f} {label}"

    @property
    def formatted_date(self) -> str:
        return f"{self.date:%b} {self.date.day}, {self.date.year}"

    def to_dict(self) -> dict:
        return self.model_dump(mode="json")


RecordList = TypeAdapter(list[PersonalRecord])
LiftNameList = TypeAdapter(list[str])


def sort_newest_first(records: list[PersonalRecord]) -> list[PersonalRecord]:
    return sorted(records, key=lambda r: r.date, reverse=True)
