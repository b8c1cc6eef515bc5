"""
Domain entities for athlete health tracking
"""

import enum
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import Any, Dict, Optional, Tuple


class Role(str, enum.Enum):
    ATHLETE = "ATHLETE"
    COACH = "COACH"
    TRAINER = "TRAINER"


class BodyPart(str, enum.Enum):
    HEAD = "Head"
    SHOULDER_L = "Left Shoulder"
    SHOULDER_R = "Right Shoulder"
    ARM_L = "Left Arm"
    ARM_R = "Right Arm"
    CHEST = "Chest"
    ABS = "Abdomen"
    BACK = "Back"
    HIP = "Hip"
    LEG_L = "Left Leg"
    LEG_R = "Right Leg"
    KNEE_L = "Left Knee"
    KNEE_R = "Right Knee"
    ANKLE_L = "Left Ankle"
    ANKLE_R = "Right Ankle"
    FOOT_L = "Left Foot"
    FOOT_R = "Right Foot"


class InjuryStatus(str, enum.Enum):
    ACTIVE = "Active"
    RECOVERING = "Recovering"
    RESOLVED = "Resolved"


class HealthStatus(str, enum.Enum):
    HEALTHY = "Healthy"
    INJURED = "Injured"
    RECOVERY = "Recovery"


class ActivityType(str, enum.Enum):
    TREATMENT = "Treatment"
    NOTE = "Note"
    STATUS_UPDATE = "Status Update"


class Progress(str, enum.Enum):
    BETTER = "Better"
    SAME = "Same"
    WORSE = "Worse"


class EventType(str, enum.Enum):
    INSERT = "INSERT"
    UPDATE = "UPDATE"


class SeverityBand(str, enum.Enum):
    LOW = "low"    # 1-3
    MED = "med"    # 4-6
    HIGH = "high"  # 7-10


# Timestamp helpers

def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def parse_timestamp(value: Any) -> datetime:
    """Parse an ISO-8601 string (or datetime) into an aware UTC datetime"""
    if isinstance(value, datetime):
        dt = value
    else:
        text = str(value)
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        dt = datetime.fromisoformat(text)
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def format_timestamp(dt: datetime) -> str:
    """Render a datetime as 2024-01-31T09:15:00.000Z"""
    dt = parse_timestamp(dt)
    return dt.strftime("%Y-%m-%dT%H:%M:%S.") + f"{dt.microsecond // 1000:03d}Z"


@dataclass(frozen=True)
class SeverityPoint:
    """One point of an injury's severity history"""
    date: datetime
    value: int
    extras: Dict[str, Any] = field(default_factory=dict, compare=False)


@dataclass(frozen=True)
class ActivityEntry:
    """Treatment, note or status update appended to an injury"""
    id: str
    author_name: str
    author_role: Role
    date: datetime
    type: ActivityType
    content: str
    progress: Optional[Progress] = None
    extras: Dict[str, Any] = field(default_factory=dict, compare=False)


@dataclass(frozen=True)
class Profile:
    """A person using the system: athlete, coach or trainer"""
    id: Optional[str]
    name: str
    role: Role
    email: Optional[str] = None
    approved: bool = False  # athletes only, flipped once by a coach
    team_id: Optional[str] = None
    status: Optional[HealthStatus] = None  # athletes only
    sport: Optional[str] = None
    team_name: Optional[str] = None
    year: Optional[str] = None
    avatar_url: Optional[str] = None
    dob: Optional[str] = None
    correlation_id: Optional[str] = None

    @property
    def is_athlete(self) -> bool:
        return self.role == Role.ATHLETE

    @property
    def is_staff(self) -> bool:
        return self.role in (Role.COACH, Role.TRAINER)


@dataclass(frozen=True)
class MedicalRecord:
    """Sensitive contact and medical attributes, stored apart from the profile"""
    user_id: str
    emergency_contact_name: str = ""
    emergency_contact_phone: str = ""
    medications: str = ""
    allergies: str = ""
    medical_allergies: str = ""
    insurance_provider: str = ""
    insurance_policy_number: str = ""
    correlation_id: Optional[str] = None

    @property
    def id(self) -> str:
        return self.user_id


@dataclass(frozen=True)
class InjuryRecord:
    """A single reported injury"""
    id: Optional[str]
    athlete_id: str
    body_part: BodyPart
    severity: int
    pain_type: str
    description: str
    status: InjuryStatus
    created_at: datetime
    severity_history: Tuple[SeverityPoint, ...] = ()
    activity_log: Tuple[ActivityEntry, ...] = ()
    correlation_id: Optional[str] = None

    def __post_init__(self):
        if not 0 <= self.severity <= 10:
            raise ValueError(f"severity must be within 0-10, got {self.severity}")

    def with_severity(self, value: int, at: Optional[datetime] = None) -> "InjuryRecord":
        """Set current severity and append the matching history point"""
        point = SeverityPoint(date=at or utcnow(), value=value)
        return replace(self, severity=value, severity_history=self.severity_history + (point,))

    def with_activity(self, entry: ActivityEntry) -> "InjuryRecord":
        """Prepend an activity entry (newest first)"""
        return replace(self, activity_log=(entry,) + self.activity_log)

    def sorted_activity(self) -> Tuple[ActivityEntry, ...]:
        """Activity log ordered newest first; stored order is not guaranteed"""
        return tuple(sorted(self.activity_log, key=lambda e: e.date, reverse=True))

    @property
    def severity_consistent(self) -> bool:
        if not self.severity_history:
            return True
        return self.severity_history[-1].value == self.severity

    @property
    def is_resolved(self) -> bool:
        return self.status == InjuryStatus.RESOLVED


@dataclass(frozen=True)
class TrainingRecord:
    """A logged training session"""
    id: Optional[str]
    athlete_id: str
    date: datetime
    duration_minutes: int
    rpe: int  # 1-10 perceived exertion
    stress_level: int  # 1-10
    notes: Optional[str] = None
    correlation_id: Optional[str] = None

    def __post_init__(self):
        if self.duration_minutes <= 0:
            raise ValueError(f"duration must be positive, got {self.duration_minutes}")
        if not 1 <= self.rpe <= 10:
            raise ValueError(f"RPE must be within 1-10, got {self.rpe}")
        if not 1 <= self.stress_level <= 10:
            raise ValueError(f"stress level must be within 1-10, got {self.stress_level}")

    @property
    def load(self) -> int:
        return self.duration_minutes * self.rpe


@dataclass(frozen=True)
class Message:
    """A direct message between two profiles"""
    id: Optional[str]
    sender_id: str
    receiver_id: str
    text: str
    sent_at: datetime
    read: bool = False
    correlation_id: Optional[str] = None

    def involves(self, profile_id: str) -> bool:
        return profile_id in (self.sender_id, self.receiver_id)


@dataclass(frozen=True)
class Team:
    """A team owned by one coach; athletes join with a rotatable code"""
    id: Optional[str]
    name: str
    sport: str
    coach_id: str
    join_code: str
    requires_approval: bool = True
    join_code_expires_at: Optional[datetime] = None
    join_code_max_uses: Optional[int] = None
    join_code_uses: int = 0
    correlation_id: Optional[str] = None

    def join_code_valid(self, code: str, now: datetime) -> bool:
        if code != self.join_code:
            return False
        if self.join_code_expires_at is not None and now >= self.join_code_expires_at:
            return False
        if self.join_code_max_uses is not None and self.join_code_uses >= self.join_code_max_uses:
            return False
        return True
