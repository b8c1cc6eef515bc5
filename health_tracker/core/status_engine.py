"""
Status Transition Engine - keeps athlete health status in step with injuries

Rules:
- a newly created injury moves the athlete to Recovery ("flagged, not yet
  assessed"), not Injured
- resolving an injury moves the athlete to Healthy only when none of their
  other injuries is still open
- coaches and trainers may set any status directly
- athletes never write a status field; they report through severity
  updates and activity notes
"""

import logging
from typing import Iterable, Optional, Set

from ..data.models import ActivityType, HealthStatus, InjuryRecord, InjuryStatus, Role
from ..errors import AuthorizationError

logger = logging.getLogger(__name__)

PRIVILEGED_ROLES = frozenset({Role.COACH, Role.TRAINER})

# Injury fields each role may patch directly
ATHLETE_INJURY_FIELDS: Set[str] = {"severity", "severity_history", "activity_log"}
STAFF_INJURY_FIELDS: Set[str] = ATHLETE_INJURY_FIELDS | {"status", "pain_type", "description", "body_part"}

ATHLETE_ACTIVITY_TYPES = frozenset({ActivityType.NOTE, ActivityType.STATUS_UPDATE})


class StatusTransitionEngine:
    """Derives athlete status changes from injury lifecycle events"""

    def on_injury_created(self, injury: InjuryRecord) -> HealthStatus:
        logger.debug(f"Injury {injury.id} created for {injury.athlete_id}: athlete -> Recovery")
        return HealthStatus.RECOVERY

    def on_injury_updated(self, injury: InjuryRecord,
                          athlete_injuries: Iterable[InjuryRecord]) -> Optional[HealthStatus]:
        """Return the athlete's new status, or None to leave it unchanged.

        ``athlete_injuries`` is the athlete's current set; the updated
        injury itself is skipped by id.
        """
        if injury.status != InjuryStatus.RESOLVED:
            return None
        still_open = [
            other for other in athlete_injuries
            if other.id != injury.id
            and other.athlete_id == injury.athlete_id
            and other.status != InjuryStatus.RESOLVED
        ]
        if still_open:
            logger.debug(f"Injury {injury.id} resolved; {len(still_open)} other injuries still open")
            return None
        logger.debug(f"Last open injury {injury.id} resolved: athlete {injury.athlete_id} -> Healthy")
        return HealthStatus.HEALTHY

    def manual_override(self, actor_role: Role, status: HealthStatus) -> HealthStatus:
        if actor_role not in PRIVILEGED_ROLES:
            raise AuthorizationError(f"{actor_role.value} may not set athlete status directly")
        return HealthStatus(status)

    def check_injury_patch(self, actor_role: Role, fields: Iterable[str]) -> None:
        """Reject injury field writes the actor's role does not permit"""
        allowed = STAFF_INJURY_FIELDS if actor_role in PRIVILEGED_ROLES else ATHLETE_INJURY_FIELDS
        denied = sorted(set(fields) - allowed)
        if denied:
            raise AuthorizationError(f"{actor_role.value} may not change {', '.join(denied)}")

    def check_activity(self, actor_role: Role, activity_type: ActivityType) -> None:
        if actor_role not in PRIVILEGED_ROLES and activity_type not in ATHLETE_ACTIVITY_TYPES:
            raise AuthorizationError(f"{actor_role.value} may not add {activity_type.value} entries")
