"""
Role-based redaction applied wherever injury or medical data is read for display

The store always keeps unredacted records; every read boundary that renders
data for a coach must project it through these functions.
"""

from dataclasses import replace
from typing import Optional

from ..data.models import ActivityType, InjuryRecord, MedicalRecord, Role
from ..errors import AuthorizationError

HIDDEN = "Medical description hidden."


def _check_owner(role: Role, viewer_id: Optional[str], owner_id: str) -> None:
    if role == Role.ATHLETE and viewer_id is not None and viewer_id != owner_id:
        raise AuthorizationError("Athletes may only view their own medical data")


def redact_injury_for_role(record: InjuryRecord, role: Role, viewer_id: Optional[str] = None) -> InjuryRecord:
    """Coaches get no description and no Treatment entries"""
    _check_owner(role, viewer_id, record.athlete_id)
    if role != Role.COACH:
        return record
    return replace(
        record,
        description=HIDDEN,
        activity_log=tuple(e for e in record.activity_log if e.type != ActivityType.TREATMENT),
    )


def redact_medical_for_role(record: MedicalRecord, role: Role, viewer_id: Optional[str] = None) -> MedicalRecord:
    """Coaches only see the emergency contact"""
    _check_owner(role, viewer_id, record.user_id)
    if role != Role.COACH:
        return record
    return MedicalRecord(
        user_id=record.user_id,
        emergency_contact_name=record.emergency_contact_name,
        emergency_contact_phone=record.emergency_contact_phone,
        correlation_id=record.correlation_id,
    )
