#!/usr/bin/env python3
"""
Derived View Calculators - Deterministic dashboard metrics

Pure functions over a store snapshot. Nothing here reads the clock: every
time-dependent calculation takes ``now`` explicitly, so identical inputs
always give identical output.
"""

import enum
import logging
from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from ..data.models import (
    BodyPart, HealthStatus, InjuryRecord, InjuryStatus, Message, Profile, SeverityBand, TrainingRecord,
)

logger = logging.getLogger(__name__)

class TimeWindow(str, enum.Enum):
    WEEK = "week"
    MONTH = "month"
    SEASON = "season"

WINDOW_DAYS = {
    TimeWindow.WEEK: 7,
    TimeWindow.MONTH: 30,
    TimeWindow.SEASON: 180,
}

class RosterFilter(str, enum.Enum):
    ALL = "ALL"
    NOT_CLEARED = "NOT_CLEARED"  # status Injured
    INJURED_ACTIVE = "INJURED_ACTIVE"  # status Recovery
    RECURRING = "RECURRING"

class HeatLevel(str, enum.Enum):
    NONE = "none"
    LOW = "low"  # one injury
    HIGH = "high"  # two or more

@dataclass
class WeeklyBucket:
    """One week of the training load / injury series"""
    label: str  # M/D of the bucket end
    start: datetime  # exclusive
    end: datetime  # inclusive
    load: int = 0  # sum of duration x RPE
    injuries: int = 0

    def contains(self, moment: datetime) -> bool:
        return self.start < moment <= self.end

@dataclass
class Overview:
    """Coach overview widgets"""
    not_cleared: List[Profile] = field(default_factory=list)
    priority: List[Profile] = field(default_factory=list)
    recent_injuries: List[InjuryRecord] = field(default_factory=list)

# Injury filters

def injuries_for_athlete(injuries: Iterable[InjuryRecord], athlete_id: str) -> List[InjuryRecord]:
    return [i for i in injuries if i.athlete_id == athlete_id]

def active_injuries(injuries: Iterable[InjuryRecord]) -> List[InjuryRecord]:
    """Injuries that are not yet resolved"""
    return [i for i in injuries if i.status != InjuryStatus.RESOLVED]

def injuries_for_body_part(injuries: Iterable[InjuryRecord], body_part: BodyPart) -> List[InjuryRecord]:
    return [i for i in injuries if i.body_part == body_part]

def filter_by_window(injuries: Iterable[InjuryRecord], window: TimeWindow, now: datetime) -> List[InjuryRecord]:
    """Injuries logged at or after ``now`` minus the window length"""
    cutoff = now - timedelta(days=WINDOW_DAYS[TimeWindow(window)])
    return [i for i in injuries if i.created_at >= cutoff]

# Recurrence

def recurring_body_parts(injuries: Iterable[InjuryRecord], athlete_id: Optional[str] = None) -> List[BodyPart]:
    """Body parts injured more than once, in order of first occurrence"""
    if athlete_id is not None:
        injuries = injuries_for_athlete(injuries, athlete_id)
    counts = Counter(i.body_part for i in injuries)
    return [part for part, count in counts.items() if count > 1]

def is_recurring_athlete(injuries: Iterable[InjuryRecord], athlete_id: str) -> bool:
    return len(recurring_body_parts(injuries, athlete_id)) > 0

# Body-part aggregates

def top_body_parts(injuries: Iterable[InjuryRecord], n: int = 3) -> List[Tuple[BodyPart, int]]:
    """Most injured body parts, descending; ties keep first-seen order"""
    counts = Counter(i.body_part for i in injuries)
    ranked = sorted(counts.items(), key=lambda item: item[1], reverse=True)
    return ranked[:n]

def heatmap_counts(injuries: Iterable[InjuryRecord]) -> Dict[BodyPart, int]:
    counts = Counter(i.body_part for i in injuries)
    return {part: counts.get(part, 0) for part in BodyPart}

def heat_level(count: int) -> HeatLevel:
    if count <= 0:
        return HeatLevel.NONE
    if count == 1:
        return HeatLevel.LOW
    return HeatLevel.HIGH

def severity_band(severity: int) -> SeverityBand:
    if severity >= 7:
        return SeverityBand.HIGH
    if severity >= 4:
        return SeverityBand.MED
    return SeverityBand.LOW

# Weekly series

def weekly_buckets(now: datetime, weeks: int = 6) -> List[WeeklyBucket]:
    """Trailing weekly buckets, oldest first, the last one ending at ``now``"""
    buckets = []
    for i in range(weeks - 1, -1, -1):
        end = now - timedelta(days=7 * i)
        buckets.append(WeeklyBucket(label=f"{end.month}/{end.day}", start=end - timedelta(days=7), end=end))
    return buckets

def weekly_load_series(training: Iterable[TrainingRecord], injuries: Iterable[InjuryRecord],
                       now: datetime, weeks: int = 6) -> List[WeeklyBucket]:
    """Training load and injury counts per week over ``(start, end]`` buckets.

    Records outside every bucket are dropped, not clamped.
    """
    buckets = weekly_buckets(now, weeks)

    for record in training:
        bucket = _bucket_for(buckets, record.date)
        if bucket:
            bucket.load += record.load

    for injury in injuries:
        bucket = _bucket_for(buckets, injury.created_at)
        if bucket:
            bucket.injuries += 1

    return buckets

def _bucket_for(buckets: Sequence[WeeklyBucket], moment: datetime) -> Optional[WeeklyBucket]:
    for bucket in buckets:
        if bucket.contains(moment):
            return bucket
    return None

# Messaging

def conversation(messages: Iterable[Message], a: str, b: str) -> List[Message]:
    """Messages exchanged between ``a`` and ``b``, oldest first"""
    pair = {a, b}
    thread = [m for m in messages if {m.sender_id, m.receiver_id} == pair]
    return sorted(thread, key=lambda m: m.sent_at)

def unread_count(messages: Iterable[Message], reader_id: str, other_id: Optional[str] = None) -> int:
    return sum(
        1 for m in messages
        if m.receiver_id == reader_id and not m.read and (other_id is None or m.sender_id == other_id)
    )

# Roster

def filter_roster(athletes: Iterable[Profile], injuries: Sequence[InjuryRecord],
                  roster_filter: RosterFilter = RosterFilter.ALL, search: str = "") -> List[Profile]:
    """Roster view: case-insensitive search on name or sport, then status filter"""
    term = search.strip().lower()
    roster_filter = RosterFilter(roster_filter)
    selected = []
    for athlete in athletes:
        if term and term not in (athlete.name or "").lower() and term not in (athlete.sport or "").lower():
            continue
        if roster_filter == RosterFilter.NOT_CLEARED and athlete.status != HealthStatus.INJURED:
            continue
        if roster_filter == RosterFilter.INJURED_ACTIVE and athlete.status != HealthStatus.RECOVERY:
            continue
        if roster_filter == RosterFilter.RECURRING and not is_recurring_athlete(injuries, athlete.id):
            continue
        selected.append(athlete)
    return selected

def overview(athletes: Sequence[Profile], injuries: Sequence[InjuryRecord], recent: int = 5) -> Overview:
    """Not-cleared athletes, priority athletes and the latest injury reports"""
    not_cleared = [a for a in athletes if a.status == HealthStatus.INJURED]
    priority = [
        a for a in athletes
        if a.status == HealthStatus.RECOVERY or is_recurring_athlete(injuries, a.id)
    ]
    latest = sorted(injuries, key=lambda i: i.created_at, reverse=True)[:recent]
    return Overview(not_cleared=not_cleared, priority=priority, recent_injuries=latest)
