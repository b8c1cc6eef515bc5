"""
Field mapping tests: every domain field has exactly one storage column
"""

from dataclasses import fields
from datetime import datetime, timezone

import pytest

from health_tracker.data.models import (
    ActivityEntry, ActivityType, BodyPart, InjuryRecord, InjuryStatus, Progress, Role, SeverityPoint,
)
from health_tracker.errors import SchemaValidationError
from health_tracker.gateway.mapping import INJURIES, MAPPINGS, MESSAGES, PROFILES
from health_tracker.gateway.tables import TABLE_MODELS


@pytest.mark.parametrize("table", sorted(MAPPINGS))
def test_mapping_is_total(table):
    mapping = MAPPINGS[table]
    domain_fields = {f.name for f in fields(mapping.entity)}
    columns = set(TABLE_MODELS[table].__table__.columns.keys())

    assert set(mapping.fields) == domain_fields
    assert set(mapping.columns) == columns


def test_renamed_columns():
    assert PROFILES.fields["approved"] == "is_approved"
    assert PROFILES.fields["team_name"] == "team"
    assert INJURIES.fields["created_at"] == "date_logged"
    assert MESSAGES.fields["sent_at"] == "timestamp"
    assert MESSAGES.fields["read"] == "is_read"


def test_injury_json_arrays_keep_unknown_keys():
    row = {
        "id": "inj-1",
        "athlete_id": "ath-1",
        "body_part": "Left Ankle",
        "severity": 4,
        "pain_type": "Sharp",
        "description": "Rolled it",
        "status": "Active",
        "date_logged": "2024-03-01T09:15:00.000Z",
        "severity_history": [{"date": "2024-03-01T09:15:00.000Z", "value": 4, "source": "intake"}],
        "activity_log": [{
            "id": "a1", "authorName": "Taylor Trainer", "authorRole": "TRAINER",
            "date": "2024-03-02T10:00:00.000Z", "type": "Treatment", "content": "Iced", "mood": "ok",
        }],
        "client_ref": None,
    }

    record = INJURIES.from_row(row)

    assert record.body_part == BodyPart.ANKLE_L
    assert record.severity_history[0].extras == {"source": "intake"}
    assert record.activity_log[0].progress is None
    assert INJURIES.to_row(record) == row


def test_encoded_activity_uses_storage_names():
    when = datetime(2024, 3, 2, 10, 0, 0, 250000, tzinfo=timezone.utc)
    record = InjuryRecord(
        id="inj-1", athlete_id="ath-1", body_part=BodyPart.BACK, severity=3, pain_type="", description="",
        status=InjuryStatus.RECOVERING, created_at=when,
        severity_history=(SeverityPoint(date=when, value=3),),
        activity_log=(ActivityEntry(id="a1", author_name="Alex", author_role=Role.ATHLETE, date=when,
                                    type=ActivityType.STATUS_UPDATE, content="Better", progress=Progress.BETTER),),
    )

    row = INJURIES.to_row(record)

    assert row["date_logged"] == "2024-03-02T10:00:00.250Z"
    assert row["activity_log"][0]["authorName"] == "Alex"
    assert row["activity_log"][0]["progress"] == "Better"
    assert INJURIES.from_row(row) == record


def test_patch_uses_column_names():
    assert PROFILES.to_patch(approved=True, team_name=None) == {"is_approved": True, "team": None}
    with pytest.raises(KeyError):
        PROFILES.to_patch(nickname="x")


def test_malformed_row_is_rejected():
    with pytest.raises(SchemaValidationError) as exc:
        INJURIES.from_row({"id": "inj-2", "athlete_id": "ath-1", "body_part": "Tail", "severity": 14,
                           "status": "Active", "date_logged": "2024-03-01T09:15:00.000Z"})
    assert exc.value.table == "injuries"


def test_nullable_flags_default():
    profile = PROFILES.from_row({"id": "p1", "name": "Casey", "role": "COACH", "is_approved": None})
    assert profile.approved is False
