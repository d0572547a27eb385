import logging
from enum import Enum
from typing import Iterable

from pydantic import BaseModel, ValidationError

from db import KeyValueRepository, StorageError
from models import PersonalRecord, RecordKind

_LOGGER = logging.getLogger(__name__)

FILTER_SETTINGS_KEY = "MaxFilterSettings"
REP_ESTIMATION_TARGETS = (2, 3, 5, 10)


class SortOption(str, Enum):
    DATE = "Date"
    NAME = "Name"
    VALUE = "Value"
    TYPE = "Type"


class SortOrder(str, Enum):
    ASCENDING = "Ascending"
    DESCENDING = "Descending"


class MaxFilterSettings(BaseModel):
    """Visibility and ordering preferences for the personal record list."""

    show_weight_records: bool = True
    show_time_records: bool = True
    show_distance_records: bool = True
    show_rep_records: bool = True
    show_volume_records: bool = True

    show_major_lifts: bool = True
    show_custom_lifts: bool = True

    show_rep_estimations: bool = True
    show_2rm: bool = True
    show_3rm: bool = True
    show_5rm: bool = True
    show_10rm: bool = True

    show_epley_formula: bool = True
    show_brzycki_formula: bool = False

    sort_by: SortOption = SortOption.DATE
    sort_order: SortOrder = SortOrder.DESCENDING

    def shows_kind(self, kind: RecordKind) -> bool:
        return {
            RecordKind.WEIGHT: self.show_weight_records,
            RecordKind.TIME: self.show_time_records,
            RecordKind.DISTANCE: self.show_distance_records,
            RecordKind.REPS: self.show_rep_records,
            RecordKind.VOLUME: self.show_volume_records,
        }[kind]

    def should_show_record(self, record: PersonalRecord, is_custom: bool) -> bool:
        lift_type = self.show_custom_lifts if is_custom else self.show_major_lifts
        return self.shows_kind(record.record_kind) and lift_type

    def should_show_rep_estimation(self, reps: int) -> bool:
        if not self.show_rep_estimations:
            return False
        return {
            2: self.show_2rm,
            3: self.show_3rm,
            5: self.show_5rm,
            10: self.show_10rm,
        }.get(reps, False)

    def visible_rep_targets(self) -> list[int]:
        return [r for r in REP_ESTIMATION_TARGETS if self.should_show_rep_estimation(r)]

    def visible_formulas(self) -> list[str]:
        out = []
        if self.show_epley_formula:
            out.append("epley")
        if self.show_brzycki_formula:
            out.append("brzycki")
        return out

    def sort_records(self, records: Iterable[PersonalRecord]) -> list[PersonalRecord]:
        keys = {
            SortOption.DATE: lambda r: r.date,
            SortOption.NAME: lambda r: r.lift_name,
            SortOption.VALUE: lambda r: r.value,
            SortOption.TYPE: lambda r: r.record_kind.value,
        }
        return sorted(
            records,
            key=keys[self.sort_by],
            reverse=self.sort_order is SortOrder.DESCENDING,
        )

    def filtered_records(
        self, records: Iterable[PersonalRecord], custom_lifts: Iterable[str]
    ) -> list[PersonalRecord]:
        custom = set(custom_lifts)
        visible = [r for r in records if self.should_show_record(r, r.lift_name in custom)]
        return self.sort_records(visible)

    def filtered_lifts(self, all_lifts: Iterable[str], custom_lifts: Iterable[str]) -> list[str]:
        custom = set(custom_lifts)
        return [
            lift
            for lift in all_lifts
            if (self.show_custom_lifts if lift in custom else self.show_major_lifts)
        ]


class FilterSettingsRepository(KeyValueRepository):
    """Load and save :class:`MaxFilterSettings` under a single key."""

    def load(self) -> MaxFilterSettings:
        raw = self.get(FILTER_SETTINGS_KEY)
        if raw is None:
            return MaxFilterSettings()
        try:
            return MaxFilterSettings.model_validate_json(raw)
        except ValidationError as e:
            _LOGGER.error("Error loading filter settings: %s", e)
            return MaxFilterSettings()

    def save(self, settings: MaxFilterSettings) -> bool:
        try:
            self.set(FILTER_SETTINGS_KEY, settings.model_dump_json())
        except StorageError as e:
            _LOGGER.error("Error saving filter settings: %s", e)
            return False
        return True

    def update(self, **changes) -> MaxFilterSettings:
        settings = MaxFilterSettings.model_validate({**self.load().model_dump(), **changes})
        self.save(settings)
        return settings

    def reset_to_defaults(self) -> MaxFilterSettings:
        settings = MaxFilterSettings()
        self.save(settings)
        return settings

    def reset_record_kind_filters(self) -> MaxFilterSettings:
        return self.update(
            show_weight_records=True,
            show_time_records=True,
            show_distance_records=True,
            show_rep_records=True,
            show_volume_records=True,
        )

    def reset_lift_type_filters(self) -> MaxFilterSettings:
        return self.update(show_major_lifts=True, show_custom_lifts=True)

    def reset_estimation_filters(self) -> MaxFilterSettings:
        return self.update(
            show_rep_estimations=True,
            show_2rm=True,
            show_3rm=True,
            show_5rm=True,
            show_10rm=True,
        )
