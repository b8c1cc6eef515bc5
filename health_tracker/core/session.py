#!/usr/bin/env python3
"""
Tracker Session - One signed-in user's view of the backend

Owns the gateway handle, the single reconciliation store for the session
and every change-feed subscription it opens. Write actions apply
optimistically, persist through the gateway, then install the confirmed
row. A failed write raises PersistenceError and leaves the optimistic
state in place for the caller to retry or discard.
"""

import asyncio
import enum
import logging
import secrets
import string
import uuid
from dataclasses import replace
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, List, Optional

from ..analysis import views
from ..config import Config
from ..data.models import (
    ActivityEntry, ActivityType, BodyPart, EventType, HealthStatus, InjuryRecord, InjuryStatus,
    MedicalRecord, Message, Profile, Progress, Role, SeverityPoint, Team, TrainingRecord, utcnow,
)
from ..errors import (
    AuthorizationError, InvalidTransitionError, MissingRelatedEntityError, PersistenceError,
    ProfileNotFoundError, QueryError, RecordNotFoundError, SchemaValidationError,
)
from ..gateway.base import ChangeEvent, RemoteDataGateway, RowFilter, Subscription
from ..gateway.mapping import mapping_for
from .redaction import redact_injury_for_role, redact_medical_for_role
from .status_engine import StatusTransitionEngine
from .store import PROVISIONAL_PREFIX, ReconciliationStore

logger = logging.getLogger(__name__)

STAFF_FILED_NOTE = "Initial injury report filed by staff."
JOIN_CODE_ALPHABET = string.ascii_uppercase + string.digits

class SessionState(str, enum.Enum):
    SIGNED_OUT = "signed_out"
    APPROVAL_PENDING = "approval_pending"
    AUTHENTICATED = "authenticated"

async def register_profile(gateway: RemoteDataGateway, user_id: str, name: str, role: Role,
                           **attributes: Any) -> Profile:
    """Create the profile row for a freshly signed-up user"""
    profile = Profile(
        id=user_id,
        name=name,
        role=Role(role),
        approved=False,
        status=HealthStatus.HEALTHY if Role(role) == Role.ATHLETE else None,
        **attributes,
    )
    mapping = mapping_for("profiles")
    try:
        row = await gateway.insert("profiles", mapping.to_row(profile))
    except PersistenceError:
        raise
    except Exception as e:
        raise PersistenceError(f"Sign-up failed: {e}", table="profiles", record=profile) from e
    logger.info(f"Registered {profile.role.value} profile {user_id}")
    return mapping.from_row(row)

class TrackerSession:
    """Main session class - orchestrates store, gateway and status rules"""

    def __init__(self, gateway: RemoteDataGateway, config: Optional[Config] = None,
                 clock: Callable[[], datetime] = utcnow):
        self.gateway = gateway
        self.config = config or Config()
        self.clock = clock
        self.store = ReconciliationStore()
        self.engine = StatusTransitionEngine()
        self.user: Optional[Profile] = None
        self.state = SessionState.SIGNED_OUT
        self.quarantine: List[SchemaValidationError] = []
        self.read_errors: List[QueryError] = []
        self._subscriptions: List[Subscription] = []
        self._pending_tasks: List[asyncio.Task] = []
        self.background_errors: List[BaseException] = []

    # Lifecycle

    async def restore(self, user_id: str) -> SessionState:
        """Resume a session for an authenticated user id"""
        rows = await self._load("profiles", RowFilter(equals={"id": user_id}))
        profiles = self._ingest("profiles", rows)
        if not profiles:
            logger.error(f"Profile not found for user {user_id}; signing out")
            await self.close()
            raise ProfileNotFoundError(f"No profile for user {user_id}")

        self.user = profiles[0]
        if self.user.is_athlete and not self.user.approved:
            self.state = SessionState.APPROVAL_PENDING
            self._subscribe("profiles", RowFilter(equals={"id": self.user.id}), (EventType.UPDATE,))
            logger.info(f"Athlete {self.user.id} awaiting coach approval")
            return self.state

        self.state = SessionState.AUTHENTICATED
        await self.initialize()
        return self.state

    async def initialize(self):
        """Preload the role's data slice and open change-feed subscriptions"""
        user = self._require_user()
        logger.info(f"Initializing {user.role.value} session for {user.id}...")
        self._close_subscriptions()

        await self._preload(user)
        self._open_subscriptions(user)

        logger.info(f"Session initialization complete: {self.store.get_stats()}")

    async def close(self):
        """Tear down subscriptions and sign out"""
        self._close_subscriptions()
        for task in list(self._pending_tasks):
            task.cancel()
        self._pending_tasks.clear()
        self.state = SessionState.SIGNED_OUT
        self.user = None
        logger.info("Session closed")

    async def _preload(self, user: Profile):
        me = user.id
        mine = RowFilter(equals={"athlete_id": me})
        my_messages = RowFilter(either={"sender_id": me, "receiver_id": me})

        if user.is_athlete:
            staff = RowFilter(members={"role": [Role.COACH.value, Role.TRAINER.value]})
            self._ingest("profiles", await self._load("profiles", staff))
            self._ingest("injuries", await self._load("injuries", mine, "date_logged", descending=True))
            self._ingest("training_logs", await self._load("training_logs", mine, "date", descending=True))
            self._ingest("medical_records", await self._load("medical_records", RowFilter(equals={"user_id": me})))
            if user.team_id:
                self._ingest("teams", await self._load("teams", RowFilter(equals={"id": user.team_id})))
        else:
            self._ingest("profiles", await self._load("profiles"))
            self._ingest("injuries", await self._load("injuries", order_by="date_logged", descending=True))
            self._ingest("training_logs", await self._load("training_logs"))
            self._ingest("medical_records", await self._load("medical_records"))
            teams = RowFilter(equals={"coach_id": me}) if user.role == Role.COACH else RowFilter()
            self._ingest("teams", await self._load("teams", teams))

        self._ingest("messages", await self._load("messages", my_messages, "timestamp"))

    def _open_subscriptions(self, user: Profile):
        me = user.id
        both = (EventType.INSERT, EventType.UPDATE)
        self._subscribe("messages", RowFilter(either={"sender_id": me, "receiver_id": me}), both)
        if user.is_athlete:
            self._subscribe("injuries", RowFilter(equals={"athlete_id": me}), both)
            self._subscribe("training_logs", RowFilter(equals={"athlete_id": me}), (EventType.INSERT,))
            self._subscribe("profiles", RowFilter(equals={"id": me}), (EventType.UPDATE,))
        else:
            self._subscribe("injuries", RowFilter(), both)
            self._subscribe("training_logs", RowFilter(), (EventType.INSERT,))
            self._subscribe("profiles", RowFilter(), both)
            if user.role == Role.COACH:
                self._subscribe("teams", RowFilter(equals={"coach_id": me}), both)

    def _subscribe(self, table: str, row_filter: RowFilter, events):
        subscription = self.gateway.subscribe(table, row_filter, self._on_change, events)
        self._subscriptions.append(subscription)
        logger.debug(f"Listening on '{table}'")

    def _close_subscriptions(self):
        for subscription in self._subscriptions:
            subscription.unsubscribe()
        if self._subscriptions:
            logger.info(f"Closed {len(self._subscriptions)} subscriptions")
        self._subscriptions = []

    @property
    def subscriptions(self) -> List[Subscription]:
        return list(self._subscriptions)

    # Inbound data

    async def _load(self, table: str, row_filter: RowFilter = RowFilter(),
                    order_by: Optional[str] = None, descending: bool = False) -> List[Dict[str, Any]]:
        """Read path: failures degrade to an empty result"""
        try:
            return await self.gateway.query(table, row_filter, order_by, descending)
        except QueryError as e:
            logger.error(f"Loading '{table}' failed, showing no rows: {e}")
            self.read_errors.append(e)
            return []

    def _map_row(self, table: str, row: Dict[str, Any]) -> Optional[Any]:
        try:
            return mapping_for(table).from_row(row)
        except SchemaValidationError as e:
            logger.warning(f"Quarantined malformed '{table}' row {row.get('id')}: {e}")
            self.quarantine.append(e)
            return None

    def _ingest(self, table: str, rows: List[Dict[str, Any]]) -> List[Any]:
        store = self.store.table(table)
        records = []
        for row in rows:
            record = self._map_row(table, row)
            if record is not None:
                records.append(store.apply_server_confirmed(record))
        logger.debug(f"Loaded {len(records)} '{table}' records")
        return records

    def _on_change(self, event: ChangeEvent):
        """Change-feed handler"""
        record = self._map_row(event.table, event.record)
        if record is None:
            return
        self.store.table(event.table).apply_remote_event(event.event_type, record)

        if event.table == "profiles" and self.user and record.id == self.user.id:
            self._on_own_profile_changed(record)

    def _on_own_profile_changed(self, profile: Profile):
        was_pending = self.state == SessionState.APPROVAL_PENDING
        self.user = profile
        if was_pending and profile.approved:
            logger.info(f"Athlete {profile.id} approved; loading dashboard")
            self.state = SessionState.AUTHENTICATED
            task = asyncio.get_running_loop().create_task(self.initialize())
            self._pending_tasks.append(task)
            task.add_done_callback(self._on_task_done)

    def _on_task_done(self, task: asyncio.Task):
        if task in self._pending_tasks:
            self._pending_tasks.remove(task)
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            logger.error(f"Background session load failed: {error}", exc_info=error)
            self.background_errors.append(error)

    # Outbound writes

    def _require_user(self, *states: SessionState) -> Profile:
        allowed = states or (SessionState.AUTHENTICATED,)
        if self.user is None or self.state not in allowed:
            raise AuthorizationError("No authenticated user for this session")
        return self.user

    def _require_role(self, *roles: Role) -> Profile:
        user = self._require_user()
        if user.role not in roles:
            raise AuthorizationError(f"{user.role.value} may not perform this action")
        return user

    async def _persist_insert(self, table: str, record: Any) -> Any:
        mapping = mapping_for(table)
        store = self.store.table(table)
        provisional = store.apply_local_insert(record)
        include_key = not str(provisional.id).startswith(PROVISIONAL_PREFIX)
        try:
            row = await self.gateway.insert(table, mapping.to_row(provisional, include_key=include_key))
        except PersistenceError as e:
            logger.error(f"Persisting new '{table}' record failed: {e}")
            raise PersistenceError(str(e), table=table, record=provisional) from e
        except Exception as e:
            logger.error(f"Persisting new '{table}' record failed: {e}")
            raise PersistenceError(f"Insert into '{table}' failed: {e}", table=table, record=provisional) from e
        return store.apply_server_confirmed(mapping.from_row(row))

    async def _persist_update(self, table: str, updated: Any, **changes: Any) -> Any:
        if str(updated.id).startswith(PROVISIONAL_PREFIX):
            raise InvalidTransitionError(f"'{table}' record {updated.id} is not confirmed yet")
        mapping = mapping_for(table)
        store = self.store.table(table)
        if store.has(updated.id):
            store.apply_local_update(updated)
        try:
            row = await self.gateway.update(table, updated.id, mapping.to_patch(**changes))
        except PersistenceError as e:
            logger.error(f"Persisting '{table}' {updated.id} failed: {e}")
            raise PersistenceError(str(e), table=table, record=updated) from e
        except Exception as e:
            logger.error(f"Persisting '{table}' {updated.id} failed: {e}")
            raise PersistenceError(f"Update of '{table}' failed: {e}", table=table, record=updated) from e
        return store.apply_server_confirmed(mapping.from_row(row))

    def _injury(self, injury_id: str) -> InjuryRecord:
        injury = self.store.injuries.get(injury_id)
        if injury is None:
            raise RecordNotFoundError(f"No injury with id {injury_id}")
        user = self._require_user()
        if user.is_athlete and injury.athlete_id != user.id:
            raise AuthorizationError("Athletes may only change their own injuries")
        return injury

    def _new_activity(self, activity_type: ActivityType, content: str,
                      progress: Optional[Progress] = None) -> ActivityEntry:
        user = self._require_user()
        return ActivityEntry(
            id=f"act_{uuid.uuid4().hex[:12]}",
            author_name=user.name,
            author_role=user.role,
            date=self.clock(),
            type=ActivityType(activity_type),
            content=content,
            progress=Progress(progress) if progress else None,
        )

    async def _apply_status(self, athlete_id: str, status: HealthStatus) -> Profile:
        profile = self.store.profiles.get(athlete_id)
        if profile is None:
            raise RecordNotFoundError(f"No athlete profile with id {athlete_id}")
        if profile.status == status:
            return profile
        logger.info(f"Athlete {athlete_id}: {profile.status.value if profile.status else None} -> {status.value}")
        confirmed = await self._persist_update("profiles", replace(profile, status=status), status=status)
        if self.user and confirmed.id == self.user.id:
            self.user = confirmed
        return confirmed

    # Injury actions

    async def report_injury(self, body_part: BodyPart, severity: int, pain_type: str, description: str,
                            status: InjuryStatus = InjuryStatus.ACTIVE,
                            athlete_id: Optional[str] = None) -> InjuryRecord:
        """Log a new injury and flag the athlete for assessment"""
        user = self._require_user()
        now = self.clock()
        activity_log = ()
        if user.is_athlete:
            if athlete_id not in (None, user.id):
                raise AuthorizationError("Athletes may only report their own injuries")
            athlete_id = user.id
        else:
            if athlete_id is None:
                raise MissingRelatedEntityError("Select an athlete before filing an injury")
            athlete = self.store.profiles.get(athlete_id)
            if athlete is None or not athlete.is_athlete:
                raise RecordNotFoundError(f"No athlete profile with id {athlete_id}")
            activity_log = (self._new_activity(ActivityType.TREATMENT, STAFF_FILED_NOTE, Progress.WORSE),)

        record = InjuryRecord(
            id=None,
            athlete_id=athlete_id,
            body_part=BodyPart(body_part),
            severity=severity,
            pain_type=pain_type,
            description=description,
            status=InjuryStatus(status),
            created_at=now,
            severity_history=(SeverityPoint(date=now, value=severity),),
            activity_log=activity_log,
        )
        confirmed = await self._persist_insert("injuries", record)
        logger.info(f"Injury {confirmed.id} ({confirmed.body_part.value}) reported for {athlete_id}")

        await self._apply_status(athlete_id, self.engine.on_injury_created(confirmed))
        return confirmed

    async def update_injury(self, injury_id: str, severity: Optional[int] = None,
                            status: Optional[InjuryStatus] = None) -> InjuryRecord:
        """Record a new severity and/or status, logging a Status Update entry"""
        injury = self._injury(injury_id)
        user = self._require_user()
        fields = ["activity_log"]
        if severity is not None:
            fields += ["severity", "severity_history"]
        if status is not None and InjuryStatus(status) != injury.status:
            fields.append("status")
        self.engine.check_injury_patch(user.role, fields)

        updated = injury
        if severity is not None:
            updated = updated.with_severity(severity, self.clock())
        if "status" in fields:
            updated = replace(updated, status=InjuryStatus(status))

        new_severity = updated.severity
        if new_severity < injury.severity:
            progress = Progress.BETTER
        elif new_severity > injury.severity:
            progress = Progress.WORSE
        else:
            progress = Progress.SAME
        updated = updated.with_activity(self._new_activity(
            ActivityType.STATUS_UPDATE,
            f"Condition updated. Severity: {new_severity}/10. Status: {updated.status.value}.",
            progress,
        ))

        changes = {name: getattr(updated, name) for name in fields}
        confirmed = await self._persist_update("injuries", updated, **changes)

        if "status" in fields:
            athlete_injuries = self.store.injuries.list(lambda i: i.athlete_id == confirmed.athlete_id)
            new_status = self.engine.on_injury_updated(confirmed, athlete_injuries)
            if new_status is not None:
                await self._apply_status(confirmed.athlete_id, new_status)
        return confirmed

    async def add_activity(self, injury_id: str, activity_type: ActivityType, content: str,
                           progress: Optional[Progress] = None) -> InjuryRecord:
        """Append a treatment or note to an injury's activity log"""
        injury = self._injury(injury_id)
        user = self._require_user()
        if not content.strip():
            raise ValueError("Activity content must not be empty")
        self.engine.check_activity(user.role, ActivityType(activity_type))
        updated = injury.with_activity(self._new_activity(activity_type, content, progress))
        return await self._persist_update("injuries", updated, activity_log=updated.activity_log)

    # Training

    async def log_training(self, duration_minutes: int, rpe: int, stress_level: int,
                           notes: Optional[str] = None) -> TrainingRecord:
        user = self._require_role(Role.ATHLETE)
        record = TrainingRecord(
            id=None,
            athlete_id=user.id,
            date=self.clock(),
            duration_minutes=duration_minutes,
            rpe=rpe,
            stress_level=stress_level,
            notes=notes,
        )
        return await self._persist_insert("training_logs", record)

    # Messaging

    def staff_contact(self, role: Role) -> Optional[Profile]:
        """The coach or trainer an athlete talks to, if one exists yet"""
        user = self._require_user()
        role = Role(role)
        if role == Role.COACH and user.team_id:
            team = self.store.teams.get(user.team_id)
            if team is not None:
                coach = self.store.profiles.get(team.coach_id)
                if coach is not None:
                    return coach
        for profile in self.store.profiles.list(lambda p: p.role == role and p.id != user.id):
            return profile
        return None

    def can_message(self, role: Role) -> bool:
        return self.staff_contact(role) is not None

    async def send_message(self, receiver_id: Optional[str], text: str) -> Message:
        user = self._require_user()
        if not receiver_id:
            raise MissingRelatedEntityError("No recipient for this conversation yet")
        if not text.strip():
            raise ValueError("Message text must not be empty")
        message = Message(id=None, sender_id=user.id, receiver_id=receiver_id, text=text, sent_at=self.clock())
        return await self._persist_insert("messages", message)

    async def send_message_to_staff(self, role: Role, text: str) -> Message:
        contact = self.staff_contact(role)
        if contact is None:
            raise MissingRelatedEntityError(f"No {Role(role).value.lower()} assigned yet; messaging is disabled")
        return await self.send_message(contact.id, text)

    async def mark_conversation_read(self, other_id: str) -> int:
        user = self._require_user()
        unread = self.store.messages.list(
            lambda m: m.receiver_id == user.id and m.sender_id == other_id and not m.read
        )
        for message in unread:
            await self._persist_update("messages", replace(message, read=True), read=True)
        return len(unread)

    # Roster management

    async def set_athlete_status(self, athlete_id: str, status: HealthStatus) -> Profile:
        """Manual override by a coach or trainer"""
        user = self._require_user()
        new_status = self.engine.manual_override(user.role, HealthStatus(status))
        return await self._apply_status(athlete_id, new_status)

    def _athlete_for_coach(self, athlete_id: str) -> Profile:
        user = self._require_role(Role.COACH)
        athlete = self.store.profiles.get(athlete_id)
        if athlete is None or not athlete.is_athlete:
            raise RecordNotFoundError(f"No athlete profile with id {athlete_id}")
        if athlete.team_id:
            # a coach's store only holds the teams they own
            team = self.store.teams.get(athlete.team_id)
            if team is None or team.coach_id != user.id:
                raise AuthorizationError("Athlete belongs to another coach's team")
        return athlete

    async def approve_athlete(self, athlete_id: str) -> Profile:
        athlete = self._athlete_for_coach(athlete_id)
        if athlete.approved:
            raise InvalidTransitionError(f"Athlete {athlete_id} is already approved")
        return await self._persist_update("profiles", replace(athlete, approved=True), approved=True)

    async def decline_athlete(self, athlete_id: str) -> Profile:
        """Detach a pending athlete from the team; the profile is kept"""
        athlete = self._athlete_for_coach(athlete_id)
        if athlete.approved:
            raise InvalidTransitionError(f"Athlete {athlete_id} is already approved")
        updated = replace(athlete, team_id=None, team_name=None)
        return await self._persist_update("profiles", updated, team_id=None, team_name=None)

    # Teams

    def _new_join_code(self) -> Dict[str, Any]:
        code = "".join(secrets.choice(JOIN_CODE_ALPHABET) for _ in range(self.config.join_code_length))
        expires_at = None
        if self.config.join_code_ttl_hours > 0:
            expires_at = self.clock() + timedelta(hours=self.config.join_code_ttl_hours)
        max_uses = self.config.join_code_max_uses or None
        return {"join_code": code, "join_code_expires_at": expires_at,
                "join_code_max_uses": max_uses, "join_code_uses": 0}

    async def create_team(self, name: str, sport: str, requires_approval: bool = True) -> Team:
        user = self._require_role(Role.COACH)
        team = Team(id=None, name=name, sport=sport, coach_id=user.id,
                    requires_approval=requires_approval, **self._new_join_code())
        confirmed = await self._persist_insert("teams", team)
        logger.info(f"Team {confirmed.id} '{name}' created with code {confirmed.join_code}")
        return confirmed

    async def rotate_join_code(self, team_id: str) -> Team:
        user = self._require_role(Role.COACH)
        team = self.store.teams.get(team_id)
        if team is None:
            raise RecordNotFoundError(f"No team with id {team_id}")
        if team.coach_id != user.id:
            raise AuthorizationError("Only the owning coach may rotate the join code")
        code = self._new_join_code()
        return await self._persist_update("teams", replace(team, **code), **code)

    async def join_team(self, join_code: str) -> Profile:
        """Attach the signed-in athlete to the team owning ``join_code``"""
        user = self._require_user(SessionState.AUTHENTICATED, SessionState.APPROVAL_PENDING)
        if not user.is_athlete:
            raise AuthorizationError("Only athletes join teams")
        code = join_code.strip().upper()
        rows = await self._load("teams", RowFilter(equals={"join_code": code}))
        teams = self._ingest("teams", rows)
        now = self.clock()
        team = next((t for t in teams if t.join_code_valid(code, now)), None)
        if team is None:
            raise InvalidTransitionError("Join code is invalid, expired or used up")
        if user.team_id == team.id:
            return user

        if not self.store.profiles.has(user.id):
            self.store.profiles.apply_server_confirmed(user)
        approved = user.approved or not team.requires_approval
        updated = replace(user, team_id=team.id, team_name=team.name, sport=team.sport, approved=approved)
        profile = await self._persist_update(
            "profiles", updated, team_id=team.id, team_name=team.name, sport=team.sport, approved=approved
        )
        uses = team.join_code_uses + 1
        await self._persist_update("teams", replace(team, join_code_uses=uses), join_code_uses=uses)

        self.user = profile
        if profile.approved and self.state == SessionState.APPROVAL_PENDING:
            self.state = SessionState.AUTHENTICATED
            await self.initialize()
        return profile

    # Medical records

    async def save_medical_record(self, **fields: Any) -> MedicalRecord:
        """Create or update the signed-in user's medical record"""
        user = self._require_user()
        existing = self.store.medical_records.get(user.id)
        if existing is None:
            return await self._persist_insert("medical_records", MedicalRecord(user_id=user.id, **fields))
        return await self._persist_update("medical_records", replace(existing, **fields), **fields)

    def medical_record_for(self, user_id: str) -> Optional[MedicalRecord]:
        user = self._require_user()
        record = self.store.medical_records.get(user_id)
        if record is None:
            return None
        return redact_medical_for_role(record, user.role, user.id)

    # Read boundary (redacted views)

    def injuries_view(self, athlete_id: Optional[str] = None) -> List[InjuryRecord]:
        """Injuries as the signed-in role may see them, newest first"""
        user = self._require_user()
        if user.is_athlete:
            athlete_id = user.id
        injuries = self.store.injuries.list(
            (lambda i: i.athlete_id == athlete_id) if athlete_id else None
        )
        injuries.sort(key=lambda i: i.created_at, reverse=True)
        return [redact_injury_for_role(i, user.role, user.id) for i in injuries]

    def injury_view(self, injury_id: str) -> InjuryRecord:
        user = self._require_user()
        injury = self.store.injuries.get(injury_id)
        if injury is None:
            raise RecordNotFoundError(f"No injury with id {injury_id}")
        return redact_injury_for_role(injury, user.role, user.id)

    def athletes(self) -> List[Profile]:
        return self.store.profiles.list(lambda p: p.is_athlete)

    def roster(self, roster_filter: views.RosterFilter = views.RosterFilter.ALL,
               search: str = "") -> List[Profile]:
        return views.filter_roster(self.athletes(), self.store.injuries.list(), roster_filter, search)

    def recurring_issues(self, athlete_id: str) -> List[BodyPart]:
        return views.recurring_body_parts(self.store.injuries.list(), athlete_id)

    def weekly_series(self, athlete_id: Optional[str] = None) -> List[views.WeeklyBucket]:
        training = self.store.training_logs.list()
        injuries = self.store.injuries.list()
        if athlete_id:
            training = [t for t in training if t.athlete_id == athlete_id]
            injuries = views.injuries_for_athlete(injuries, athlete_id)
        return views.weekly_load_series(training, injuries, self.clock(), self.config.weekly_buckets)

    def top_injured(self, window: views.TimeWindow = views.TimeWindow.MONTH):
        windowed = views.filter_by_window(self.store.injuries.list(), window, self.clock())
        return views.top_body_parts(windowed, self.config.top_body_parts)

    def heatmap(self, window: views.TimeWindow = views.TimeWindow.MONTH) -> Dict[BodyPart, int]:
        return views.heatmap_counts(views.filter_by_window(self.store.injuries.list(), window, self.clock()))

    def overview(self) -> views.Overview:
        user = self._require_user()
        result = views.overview(self.athletes(), self.store.injuries.list())
        result.recent_injuries = [redact_injury_for_role(i, user.role, user.id) for i in result.recent_injuries]
        return result

    def conversation_with(self, other_id: str) -> List[Message]:
        user = self._require_user()
        return views.conversation(self.store.messages.list(), user.id, other_id)

    def unread_from(self, other_id: Optional[str] = None) -> int:
        user = self._require_user()
        return views.unread_count(self.store.messages.list(), user.id, other_id)
