"""
Shared fixtures: an in-memory SQL gateway seeded with a small roster
"""

import asyncio
from datetime import datetime, timezone

import pytest

from health_tracker.config import Config
from health_tracker.core.session import TrackerSession
from health_tracker.data.models import HealthStatus, Profile, Role, Team
from health_tracker.gateway.mapping import PROFILES, TEAMS
from health_tracker.gateway.sql_gateway import SqlGateway

NOW = datetime(2024, 3, 15, 12, 0, tzinfo=timezone.utc)

COACH = Profile(id="coach-1", name="Casey Coach", role=Role.COACH, team_id="team-1", team_name="Hawks")
TRAINER = Profile(id="trainer-1", name="Taylor Trainer", role=Role.TRAINER)
ATHLETE = Profile(id="ath-1", name="Alex Runner", role=Role.ATHLETE, approved=True, team_id="team-1",
                  team_name="Hawks", status=HealthStatus.HEALTHY, sport="Track")
PENDING = Profile(id="ath-2", name="Jordan Swim", role=Role.ATHLETE, approved=False, team_id="team-1",
                  team_name="Hawks", status=HealthStatus.HEALTHY, sport="Swimming")
TEAM = Team(id="team-1", name="Hawks", sport="Track", coach_id="coach-1", join_code="HAWK42")


async def settle():
    """Let scheduled change-feed deliveries and background loads run"""
    for _ in range(20):
        await asyncio.sleep(0.01)


async def seed(gateway, profiles=(COACH, TRAINER, ATHLETE, PENDING)):
    await gateway.insert("teams", TEAMS.to_row(TEAM))
    for profile in profiles:
        await gateway.insert("profiles", PROFILES.to_row(profile))
    await settle()


@pytest.fixture
def config():
    return Config(database_url="sqlite:///:memory:")


@pytest.fixture
def clock():
    return lambda: NOW


@pytest.fixture
async def gateway():
    gw = SqlGateway("sqlite:///:memory:")
    await seed(gw)
    yield gw
    gw.dispose()


@pytest.fixture
def make_session(gateway, config, clock):
    sessions = []

    async def _make(user_id: str) -> TrackerSession:
        session = TrackerSession(gateway, config, clock=clock)
        sessions.append(session)
        await session.restore(user_id)
        return session

    yield _make
    for session in sessions:
        session._close_subscriptions()
