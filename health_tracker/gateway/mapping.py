"""
Bidirectional mapping between domain entities and storage rows

Every domain field maps to exactly one storage column and back. Inbound
rows are validated with pydantic before they are turned into entities;
malformed rows raise ``SchemaValidationError`` so callers can quarantine
them. The ``severity_history`` and ``activity_log`` JSON arrays keep any
keys they do not model, so a row survives a round trip unchanged.
"""

import enum
import logging
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional, Type

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from ..data.models import (
    ActivityEntry, ActivityType, BodyPart, HealthStatus, InjuryRecord, InjuryStatus,
    MedicalRecord, Message, Profile, Progress, Role, SeverityPoint, Team, TrainingRecord,
    format_timestamp, parse_timestamp,
)
from ..errors import SchemaValidationError
from .base import Row

logger = logging.getLogger(__name__)


# Row schemas (storage naming)

class SeverityPointSchema(BaseModel):
    model_config = ConfigDict(extra="allow")

    date: datetime
    value: int


class ActivityEntrySchema(BaseModel):
    model_config = ConfigDict(extra="allow", populate_by_name=True)

    id: str
    author_name: str = Field(alias="authorName")
    author_role: Role = Field(alias="authorRole")
    date: datetime
    type: ActivityType
    content: str = ""
    progress: Optional[Progress] = None


class ProfileSchema(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: str
    name: str
    role: Role
    email: Optional[str] = None
    is_approved: Optional[bool] = False
    team_id: Optional[str] = None
    status: Optional[HealthStatus] = None
    sport: Optional[str] = None
    team: Optional[str] = None
    year: Optional[str] = None
    avatar_url: Optional[str] = None
    dob: Optional[str] = None
    client_ref: Optional[str] = None


class MedicalRecordSchema(BaseModel):
    model_config = ConfigDict(extra="ignore")

    user_id: str
    emergency_contact_name: Optional[str] = ""
    emergency_contact_phone: Optional[str] = ""
    medications: Optional[str] = ""
    allergies: Optional[str] = ""
    medical_allergies: Optional[str] = ""
    insurance_provider: Optional[str] = ""
    insurance_policy_number: Optional[str] = ""
    client_ref: Optional[str] = None


class InjurySchema(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: str
    athlete_id: str
    body_part: BodyPart
    severity: int = Field(ge=0, le=10)
    pain_type: Optional[str] = ""
    description: Optional[str] = ""
    status: InjuryStatus
    date_logged: datetime
    severity_history: List[SeverityPointSchema] = []
    activity_log: List[ActivityEntrySchema] = []
    client_ref: Optional[str] = None

    @field_validator("severity_history", "activity_log", mode="before")
    @classmethod
    def _null_to_empty(cls, value):
        return [] if value is None else value


class TrainingLogSchema(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: str
    athlete_id: str
    date: datetime
    duration_minutes: int = Field(gt=0)
    rpe: int = Field(ge=1, le=10)
    stress_level: int = Field(ge=1, le=10)
    notes: Optional[str] = None
    client_ref: Optional[str] = None


class MessageSchema(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: str
    sender_id: str
    receiver_id: str
    text: str
    timestamp: datetime
    is_read: Optional[bool] = False
    client_ref: Optional[str] = None


class TeamSchema(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: str
    name: str
    sport: Optional[str] = ""
    coach_id: str
    join_code: str
    join_code_expires_at: Optional[datetime] = None
    join_code_max_uses: Optional[int] = None
    join_code_uses: Optional[int] = 0
    requires_approval: Optional[bool] = True
    client_ref: Optional[str] = None


# JSON array codecs

def encode_severity_history(points) -> List[Dict[str, Any]]:
    return [{**p.extras, "date": format_timestamp(p.date), "value": p.value} for p in points]


def decode_severity_history(items: List[SeverityPointSchema]):
    return tuple(
        SeverityPoint(date=parse_timestamp(item.date), value=item.value, extras=dict(item.model_extra or {}))
        for item in items
    )


def encode_activity_log(entries) -> List[Dict[str, Any]]:
    encoded = []
    for entry in entries:
        item = {
            **entry.extras,
            "id": entry.id,
            "authorName": entry.author_name,
            "authorRole": entry.author_role.value,
            "date": format_timestamp(entry.date),
            "type": entry.type.value,
            "content": entry.content,
        }
        if entry.progress is not None:
            item["progress"] = entry.progress.value
        encoded.append(item)
    return encoded


def decode_activity_log(items: List[ActivityEntrySchema]):
    return tuple(
        ActivityEntry(
            id=item.id,
            author_name=item.author_name,
            author_role=item.author_role,
            date=parse_timestamp(item.date),
            type=item.type,
            content=item.content,
            progress=item.progress,
            extras=dict(item.model_extra or {}),
        )
        for item in items
    )


def _encode_value(value: Any) -> Any:
    if isinstance(value, enum.Enum):
        return value.value
    if isinstance(value, datetime):
        return format_timestamp(value)
    return value


def _decode_value(value: Any) -> Any:
    if isinstance(value, datetime):
        return parse_timestamp(value)
    return value


def _or_default(default: Any) -> Callable[[Any], Any]:
    return lambda value: default if value is None else value


class FieldMap:
    """Total field mapping for one entity/table pair"""

    def __init__(self, table: str, entity: Type, schema: Type[BaseModel], fields: Dict[str, str],
                 encoders: Optional[Dict[str, Callable]] = None,
                 decoders: Optional[Dict[str, Callable]] = None,
                 primary_key: str = "id"):
        self.table = table
        self.entity = entity
        self.schema = schema
        self.fields = fields  # domain field -> storage column
        self.columns = {column: name for name, column in fields.items()}
        self.encoders = encoders or {}
        self.decoders = decoders or {}
        self.primary_key = primary_key
        if len(self.columns) != len(self.fields):
            raise ValueError(f"Field mapping for '{table}' is not one-to-one")

    def to_row(self, record: Any, include_key: bool = True) -> Row:
        """Domain entity -> storage row"""
        row = {}
        for name, column in self.fields.items():
            if column == self.primary_key and not include_key:
                continue
            value = getattr(record, name)
            encoder = self.encoders.get(name, _encode_value)
            row[column] = encoder(value)
        return row

    def to_patch(self, **changes: Any) -> Row:
        """Domain field changes -> storage patch"""
        patch = {}
        for name, value in changes.items():
            if name not in self.fields:
                raise KeyError(f"'{name}' is not a field of {self.entity.__name__}")
            encoder = self.encoders.get(name, _encode_value)
            patch[self.fields[name]] = encoder(value)
        return patch

    def validate(self, row: Row) -> BaseModel:
        try:
            return self.schema.model_validate(row)
        except ValidationError as e:
            raise SchemaValidationError(
                f"Malformed '{self.table}' row: {e.error_count()} validation error(s)",
                table=self.table, row=row,
            ) from e

    def from_row(self, row: Row) -> Any:
        """Storage row -> domain entity (validated)"""
        model = self.validate(row)
        values = {}
        for name, column in self.fields.items():
            decoder = self.decoders.get(name, _decode_value)
            values[name] = decoder(getattr(model, column))
        try:
            return self.entity(**values)
        except ValueError as e:
            raise SchemaValidationError(str(e), table=self.table, row=row) from e


PROFILES = FieldMap(
    "profiles", Profile, ProfileSchema,
    fields={
        "id": "id",
        "name": "name",
        "role": "role",
        "email": "email",
        "approved": "is_approved",
        "team_id": "team_id",
        "status": "status",
        "sport": "sport",
        "team_name": "team",
        "year": "year",
        "avatar_url": "avatar_url",
        "dob": "dob",
        "correlation_id": "client_ref",
    },
    decoders={"approved": _or_default(False)},
)

MEDICAL_RECORDS = FieldMap(
    "medical_records", MedicalRecord, MedicalRecordSchema,
    fields={
        "user_id": "user_id",
        "emergency_contact_name": "emergency_contact_name",
        "emergency_contact_phone": "emergency_contact_phone",
        "medications": "medications",
        "allergies": "allergies",
        "medical_allergies": "medical_allergies",
        "insurance_provider": "insurance_provider",
        "insurance_policy_number": "insurance_policy_number",
        "correlation_id": "client_ref",
    },
    decoders={
        name: _or_default("") for name in (
            "emergency_contact_name", "emergency_contact_phone", "medications", "allergies",
            "medical_allergies", "insurance_provider", "insurance_policy_number",
        )
    },
    primary_key="user_id",
)

INJURIES = FieldMap(
    "injuries", InjuryRecord, InjurySchema,
    fields={
        "id": "id",
        "athlete_id": "athlete_id",
        "body_part": "body_part",
        "severity": "severity",
        "pain_type": "pain_type",
        "description": "description",
        "status": "status",
        "created_at": "date_logged",
        "severity_history": "severity_history",
        "activity_log": "activity_log",
        "correlation_id": "client_ref",
    },
    encoders={
        "severity_history": encode_severity_history,
        "activity_log": encode_activity_log,
    },
    decoders={
        "pain_type": _or_default(""),
        "description": _or_default(""),
        "severity_history": decode_severity_history,
        "activity_log": decode_activity_log,
    },
)

TRAINING_LOGS = FieldMap(
    "training_logs", TrainingRecord, TrainingLogSchema,
    fields={
        "id": "id",
        "athlete_id": "athlete_id",
        "date": "date",
        "duration_minutes": "duration_minutes",
        "rpe": "rpe",
        "stress_level": "stress_level",
        "notes": "notes",
        "correlation_id": "client_ref",
    },
)

MESSAGES = FieldMap(
    "messages", Message, MessageSchema,
    fields={
        "id": "id",
        "sender_id": "sender_id",
        "receiver_id": "receiver_id",
        "text": "text",
        "sent_at": "timestamp",
        "read": "is_read",
        "correlation_id": "client_ref",
    },
    decoders={"read": _or_default(False)},
)

TEAMS = FieldMap(
    "teams", Team, TeamSchema,
    fields={
        "id": "id",
        "name": "name",
        "sport": "sport",
        "coach_id": "coach_id",
        "join_code": "join_code",
        "requires_approval": "requires_approval",
        "join_code_expires_at": "join_code_expires_at",
        "join_code_max_uses": "join_code_max_uses",
        "join_code_uses": "join_code_uses",
        "correlation_id": "client_ref",
    },
    decoders={
        "sport": _or_default(""),
        "requires_approval": _or_default(True),
        "join_code_uses": _or_default(0),
    },
)

MAPPINGS: Dict[str, FieldMap] = {
    m.table: m for m in (PROFILES, MEDICAL_RECORDS, INJURIES, TRAINING_LOGS, MESSAGES, TEAMS)
}


def mapping_for(table: str) -> FieldMap:
    try:
        return MAPPINGS[table]
    except KeyError:
        raise KeyError(f"No field mapping for table '{table}'") from None
