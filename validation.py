"""Turn user input into records before it reaches the record service."""

import datetime
import math
import re
import uuid
from typing import Optional

from pydantic import ValidationError

from models import PersonalRecord, RecordKind

TIME_PATTERN = re.compile(r"^(\d{1,3}):(\d{2})$")


class RecordValidationError(ValueError):
    """Raised when user input cannot be turned into a record."""


def parse_kind(kind: str | RecordKind) -> RecordKind:
    if isinstance(kind, RecordKind):
        return kind
    for member in RecordKind:
        if kind.strip().lower() in (member.value.lower(), member.name.lower()):
            return member
    raise RecordValidationError(f"Unknown record type: {kind}")


def parse_lift_name(name: Optional[str]) -> str:
    trimmed = (name or "").strip()
    if not trimmed:
        raise RecordValidationError("Please enter a lift name.")
    return trimmed


def parse_value(text: str | float | None) -> float:
    """Parse a positive, finite number."""
    if text is None or (isinstance(text, str) and not text.strip()):
        raise RecordValidationError("Please enter a valid value.")
    try:
        value = float(text)
    except (TypeError, ValueError):
        raise RecordValidationError("Please enter a valid value.")
    if not math.isfinite(value) or value <= 0:
        raise RecordValidationError("Please enter a valid value.")
    return value


def parse_time(minutes: str | int | None, seconds: str | int | None) -> float:
    """Return total seconds for a minutes/seconds pair."""
    try:
        mins = int(minutes)
        secs = int(seconds)
    except (TypeError, ValueError):
        raise RecordValidationError("Please enter valid time values (seconds must be 0-59).")
    if mins < 0 or secs < 0 or secs >= 60:
        raise RecordValidationError("Please enter valid time values (seconds must be 0-59).")
    total = float(mins * 60 + secs)
    if total <= 0:
        raise RecordValidationError("Time must be greater than zero.")
    return total


def parse_time_text(text: str) -> float:
    """Parse ``M:SS`` or ``MM:SS`` into total seconds."""
    match = TIME_PATTERN.match((text or "").strip())
    if not match:
        raise RecordValidationError("Please enter time as min:sec.")
    return parse_time(match.group(1), match.group(2))


def parse_date(text: str | datetime.datetime | None) -> Optional[datetime.datetime]:
    if text is None or isinstance(text, datetime.datetime):
        return text
    if not text.strip():
        return None
    try:
        return datetime.datetime.fromisoformat(text.strip())
    except ValueError:
        raise RecordValidationError(f"Invalid date: {text}")


def parse_notes(notes: Optional[str]) -> Optional[str]:
    trimmed = (notes or "").strip()
    return trimmed or None


def build_record(
    lift_name: str,
    kind: str | RecordKind = RecordKind.WEIGHT,
    value: str | float | None = None,
    *,
    minutes: str | int | None = None,
    seconds: str | int | None = None,
    date: str | datetime.datetime | None = None,
    notes: Optional[str] = None,
    is_custom: bool = False,
    record_id: Optional[uuid.UUID] = None,
) -> PersonalRecord:
    """Validate the inputs of an add or edit form and build a record.

    Time records accept either ``minutes``/``seconds`` or a ``value`` of the
    form ``M:SS``. Passing ``record_id`` keeps the identity of an edited
    record.
    """
    record_kind = parse_kind(kind)
    name = parse_lift_name(lift_name)
    if record_kind is RecordKind.TIME:
        if minutes is not None or seconds is not None:
            amount = parse_time(minutes, seconds)
        elif isinstance(value, str) and ":" in value:
            amount = parse_time_text(value)
        else:
            amount = parse_value(value)
    else:
        amount = parse_value(value)
    fields = {
        "lift_name": name,
        "record_kind": record_kind,
        "value": amount,
        "notes": parse_notes(notes),
        "is_custom": is_custom,
    }
    when = parse_date(date)
    if when is not None:
        fields["date"] = when
    if record_id is not None:
        fields["id"] = record_id
    try:
        return PersonalRecord(**fields)
    except ValidationError as e:
        raise RecordValidationError(str(e))


def edit_record(
    original: PersonalRecord,
    lift_name: str,
    kind: str | RecordKind | None = None,
    value: str | float | None = None,
    *,
    minutes: str | int | None = None,
    seconds: str | int | None = None,
    date: str | datetime.datetime | None = None,
    notes: Optional[str] = None,
) -> PersonalRecord:
    """Build the replacement for ``original`` keeping its id and custom flag.

    ``kind``, ``date`` and ``notes`` default to the values of ``original``;
    pass an empty string as ``notes`` to clear them.
    """
    return build_record(
        lift_name,
        kind if kind is not None else original.record_kind,
        value,
        minutes=minutes,
        seconds=seconds,
        date=date if date is not None else original.date,
        notes=notes if notes is not None else original.notes,
        is_custom=original.is_custom,
        record_id=original.id,
    )
