"""
Derived view tests
"""

from datetime import datetime, timedelta, timezone

from health_tracker.analysis import views
from health_tracker.analysis.views import RosterFilter, TimeWindow
from health_tracker.data.models import (
    BodyPart, HealthStatus, InjuryRecord, InjuryStatus, Message, Profile, Role, SeverityBand, TrainingRecord,
)

NOW = datetime(2024, 3, 15, 12, 0, tzinfo=timezone.utc)


def injury(id, body_part, athlete_id="ath-1", days_ago=1, status=InjuryStatus.ACTIVE, severity=5):
    return InjuryRecord(
        id=id, athlete_id=athlete_id, body_part=body_part, severity=severity, pain_type="Sharp",
        description="", status=status, created_at=NOW - timedelta(days=days_ago),
    )


def athlete(id, name, status=HealthStatus.HEALTHY, sport="Track"):
    return Profile(id=id, name=name, role=Role.ATHLETE, approved=True, status=status, sport=sport)


def test_recurring_body_parts_require_two_injuries():
    injuries = [
        injury("i1", BodyPart.KNEE_R),
        injury("i2", BodyPart.KNEE_R, status=InjuryStatus.RESOLVED),
        injury("i3", BodyPart.ANKLE_L),
    ]
    assert views.recurring_body_parts(injuries, "ath-1") == [BodyPart.KNEE_R]
    assert views.is_recurring_athlete(injuries, "ath-1")
    assert not views.is_recurring_athlete(injuries, "ath-2")


def test_window_cutoff_is_inclusive():
    injuries = [injury("edge", BodyPart.HIP, days_ago=7), injury("old", BodyPart.HIP, days_ago=8)]
    assert [i.id for i in views.filter_by_window(injuries, TimeWindow.WEEK, NOW)] == ["edge"]
    assert len(views.filter_by_window(injuries, TimeWindow.MONTH, NOW)) == 2
    assert len(views.filter_by_window([injury("x", BodyPart.HIP, days_ago=181)], TimeWindow.SEASON, NOW)) == 0


def test_top_body_parts_keeps_first_seen_order_on_ties():
    injuries = [
        injury("1", BodyPart.BACK), injury("2", BodyPart.HEAD), injury("3", BodyPart.HEAD),
        injury("4", BodyPart.BACK), injury("5", BodyPart.CHEST), injury("6", BodyPart.HIP),
    ]
    assert views.top_body_parts(injuries) == [(BodyPart.BACK, 2), (BodyPart.HEAD, 2), (BodyPart.CHEST, 1)]


def test_heatmap_covers_every_body_part():
    counts = views.heatmap_counts([injury("1", BodyPart.BACK)])
    assert len(counts) == len(BodyPart)
    assert counts[BodyPart.BACK] == 1
    assert views.heat_level(counts[BodyPart.HEAD]) == views.HeatLevel.NONE
    assert views.heat_level(2) == views.HeatLevel.HIGH


def test_severity_bands():
    assert views.severity_band(3) == SeverityBand.LOW
    assert views.severity_band(4) == SeverityBand.MED
    assert views.severity_band(7) == SeverityBand.HIGH


def test_weekly_buckets_are_half_open():
    buckets = views.weekly_buckets(NOW, 6)
    assert len(buckets) == 6
    assert buckets[-1].label == "3/15"
    assert buckets[-1].end == NOW

    exactly_now = TrainingRecord(id="t1", athlete_id="ath-1", date=NOW, duration_minutes=60, rpe=5, stress_level=3)
    week_edge = TrainingRecord(id="t2", athlete_id="ath-1", date=NOW - timedelta(days=7),
                               duration_minutes=30, rpe=4, stress_level=3)
    too_old = TrainingRecord(id="t3", athlete_id="ath-1", date=NOW - timedelta(days=50),
                             duration_minutes=30, rpe=4, stress_level=3)

    series = views.weekly_load_series([exactly_now, week_edge, too_old], [injury("i", BodyPart.HIP)], NOW)

    assert series[-1].load == 300
    assert series[-2].load == 120  # start of the last bucket belongs to the one before
    assert sum(b.load for b in series) == 420
    assert series[-1].injuries == 1


def test_conversation_is_symmetric_and_ordered():
    t0 = NOW - timedelta(hours=2)
    messages = [
        Message(id="2", sender_id="b", receiver_id="a", text="reply", sent_at=t0 + timedelta(minutes=5)),
        Message(id="1", sender_id="a", receiver_id="b", text="hello", sent_at=t0),
        Message(id="3", sender_id="a", receiver_id="c", text="other", sent_at=t0),
    ]
    assert [m.id for m in views.conversation(messages, "a", "b")] == ["1", "2"]
    assert views.conversation(messages, "a", "b") == views.conversation(messages, "b", "a")
    assert views.unread_count(messages, "a") == 1


def test_roster_filters_and_search():
    athletes = [
        athlete("ath-1", "Alex Runner", HealthStatus.INJURED),
        athlete("ath-2", "Jordan Swim", HealthStatus.RECOVERY, sport="Swimming"),
        athlete("ath-3", "Sam Sprint"),
    ]
    injuries = [injury("1", BodyPart.BACK, "ath-3"), injury("2", BodyPart.BACK, "ath-3")]

    assert [a.id for a in views.filter_roster(athletes, injuries, RosterFilter.NOT_CLEARED)] == ["ath-1"]
    assert [a.id for a in views.filter_roster(athletes, injuries, RosterFilter.INJURED_ACTIVE)] == ["ath-2"]
    assert [a.id for a in views.filter_roster(athletes, injuries, RosterFilter.RECURRING)] == ["ath-3"]
    assert [a.id for a in views.filter_roster(athletes, injuries, search="swim")] == ["ath-2"]


def test_overview_lists_latest_injuries_first():
    athletes = [athlete("ath-1", "Alex Runner", HealthStatus.INJURED), athlete("ath-2", "Jordan", HealthStatus.RECOVERY)]
    injuries = [injury("old", BodyPart.HIP, days_ago=9), injury("new", BodyPart.HIP, days_ago=1)]

    result = views.overview(athletes, injuries)

    assert [a.id for a in result.not_cleared] == ["ath-1"]
    assert {a.id for a in result.priority} == {"ath-1", "ath-2"}  # ath-1 recurs on the hip
    assert [i.id for i in result.recent_injuries] == ["new", "old"]


def test_injury_counts_use_the_same_bucket_edges():
    on_edge = injury("edge", BodyPart.KNEE_L, days_ago=7)
    at_now = injury("now", BodyPart.KNEE_L, days_ago=0)
    outside = injury("old", BodyPart.KNEE_L, days_ago=43)

    series = views.weekly_load_series([], [on_edge, at_now, outside], NOW)

    assert series[-1].injuries == 1
    assert series[-2].injuries == 1
    assert sum(b.injuries for b in series) == 2
