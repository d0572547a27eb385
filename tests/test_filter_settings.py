import datetime
import logging
import os
import sys

import pytest

sys.path.append(os.path.dirname(os.path.dirname(__file__)))
from filter_settings import (
    FILTER_SETTINGS_KEY,
    FilterSettingsRepository,
    MaxFilterSettings,
    SortOption,
    SortOrder,
)
from models import PersonalRecord, RecordKind


def make_records():
    return [
        PersonalRecord(lift_name="Deadlift", value=405, date=datetime.datetime(2024, 1, 3)),
        PersonalRecord(
            lift_name="Mile", record_kind=RecordKind.TIME, value=360, date=datetime.datetime(2024, 1, 1)
        ),
        PersonalRecord(
            lift_name="Sled Push", value=500, date=datetime.datetime(2024, 1, 2), is_custom=True
        ),
    ]


def test_defaults_show_everything_newest_first():
    records = make_records()
    visible = MaxFilterSettings().filtered_records(records, ["Sled Push"])
    assert [r.lift_name for r in visible] == ["Deadlift", "Sled Push", "Mile"]


def test_kind_and_lift_type_filters():
    settings = MaxFilterSettings(show_time_records=False, show_custom_lifts=False)
    visible = settings.filtered_records(make_records(), ["Sled Push"])
    assert [r.lift_name for r in visible] == ["Deadlift"]
    assert settings.filtered_lifts(["Deadlift", "Sled Push"], ["Sled Push"]) == ["Deadlift"]


@pytest.mark.parametrize(
    "sort_by,order,expected",
    [
        (SortOption.NAME, SortOrder.ASCENDING, ["Deadlift", "Mile", "Sled Push"]),
        (SortOption.VALUE, SortOrder.DESCENDING, ["Sled Push", "Deadlift", "Mile"]),
        (SortOption.DATE, SortOrder.ASCENDING, ["Mile", "Sled Push", "Deadlift"]),
        (SortOption.TYPE, SortOrder.ASCENDING, ["Mile", "Deadlift", "Sled Push"]),
    ],
)
def test_sorting(sort_by, order, expected):
    settings = MaxFilterSettings(sort_by=sort_by, sort_order=order)
    assert [r.lift_name for r in settings.sort_records(make_records())] == expected


def test_rep_estimation_toggles():
    settings = MaxFilterSettings(show_5rm=False)
    assert settings.should_show_rep_estimation(3)
    assert not settings.should_show_rep_estimation(5)
    assert not settings.should_show_rep_estimation(4)
    assert settings.visible_rep_targets() == [2, 3, 10]
    assert MaxFilterSettings(show_rep_estimations=False).visible_rep_targets() == []
    assert MaxFilterSettings().visible_formulas() == ["epley"]


def test_repository_persists_and_resets(tmp_path):
    repo = FilterSettingsRepository(str(tmp_path / "filters.db"))
    assert repo.load() == MaxFilterSettings()
    repo.update(show_time_records=False, sort_by="Name")
    loaded = FilterSettingsRepository(str(tmp_path / "filters.db")).load()
    assert loaded.show_time_records is False
    assert loaded.sort_by is SortOption.NAME

    repo.update(show_custom_lifts=False, show_2rm=False)
    assert repo.reset_record_kind_filters().show_time_records is True
    assert repo.reset_lift_type_filters().show_custom_lifts is True
    assert repo.reset_estimation_filters().show_2rm is True
    assert repo.load().sort_by is SortOption.NAME
    assert repo.reset_to_defaults() == MaxFilterSettings()


def test_repository_rejects_invalid_update(tmp_path):
    repo = FilterSettingsRepository(str(tmp_path / "filters.db"))
    with pytest.raises(ValueError):
        repo.update(sort_by="Colour")


def test_corrupt_settings_fall_back_to_defaults(tmp_path, caplog):
    repo = FilterSettingsRepository(str(tmp_path / "filters.db"))
    repo.set(FILTER_SETTINGS_KEY, "garbage")
    with caplog.at_level(logging.ERROR, logger="filter_settings"):
        assert repo.load() == MaxFilterSettings()
    assert "Error loading filter settings" in caplog.text
