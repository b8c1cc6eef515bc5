"""
SQLAlchemy tables backing the reference gateway
"""

from sqlalchemy import Column, Integer, String, Text, Boolean, JSON, ForeignKey
from sqlalchemy.orm import declarative_base

Base = declarative_base()

class ProfileRow(Base):
    """Public profile data"""
    __tablename__ = 'profiles'

    id = Column(String, primary_key=True)
    name = Column(String, nullable=False)
    role = Column(String, nullable=False, index=True)
    email = Column(String, nullable=True)
    is_approved = Column(Boolean, default=False)
    team_id = Column(String, ForeignKey('teams.id'), nullable=True, index=True)
    status = Column(String, nullable=True)
    sport = Column(String, nullable=True)
    team = Column(String, nullable=True)
    year = Column(String, nullable=True)
    avatar_url = Column(String, nullable=True)
    dob = Column(String, nullable=True)
    client_ref = Column(String, nullable=True, index=True)

class MedicalRecordRow(Base):
    """Sensitive medical data, kept apart from the public profile"""
    __tablename__ = 'medical_records'

    user_id = Column(String, ForeignKey('profiles.id'), primary_key=True)
    emergency_contact_name = Column(String, default='')
    emergency_contact_phone = Column(String, default='')
    medications = Column(Text, default='')
    allergies = Column(Text, default='')
    medical_allergies = Column(Text, default='')
    insurance_provider = Column(String, default='')
    insurance_policy_number = Column(String, default='')
    client_ref = Column(String, nullable=True)

class InjuryRow(Base):
    """Reported injuries"""
    __tablename__ = 'injuries'

    id = Column(String, primary_key=True)
    athlete_id = Column(String, ForeignKey('profiles.id'), nullable=False, index=True)
    body_part = Column(String, nullable=False)
    severity = Column(Integer, nullable=False)
    pain_type = Column(String, default='')
    description = Column(Text, default='')
    status = Column(String, nullable=False)
    date_logged = Column(String, nullable=False, index=True)
    # JSON arrays, passed through verbatim
    severity_history = Column(JSON, default=list)
    activity_log = Column(JSON, default=list)
    client_ref = Column(String, nullable=True, index=True)

class TrainingLogRow(Base):
    """Training sessions logged by athletes"""
    __tablename__ = 'training_logs'

    id = Column(String, primary_key=True)
    athlete_id = Column(String, ForeignKey('profiles.id'), nullable=False, index=True)
    date = Column(String, nullable=False, index=True)
    duration_minutes = Column(Integer, nullable=False)
    rpe = Column(Integer, nullable=False)
    stress_level = Column(Integer, nullable=False)
    notes = Column(Text, nullable=True)
    client_ref = Column(String, nullable=True, index=True)

class MessageRow(Base):
    """Direct messages"""
    __tablename__ = 'messages'

    id = Column(String, primary_key=True)
    sender_id = Column(String, ForeignKey('profiles.id'), nullable=False, index=True)
    receiver_id = Column(String, ForeignKey('profiles.id'), nullable=False, index=True)
    text = Column(Text, nullable=False)
    timestamp = Column(String, nullable=False, index=True)
    is_read = Column(Boolean, default=False)
    client_ref = Column(String, nullable=True, index=True)

class TeamRow(Base):
    """Teams owned by a coach"""
    __tablename__ = 'teams'

    id = Column(String, primary_key=True)
    name = Column(String, nullable=False)
    sport = Column(String, default='')
    coach_id = Column(String, nullable=False, index=True)
    join_code = Column(String, nullable=False, index=True)
    join_code_expires_at = Column(String, nullable=True)
    join_code_max_uses = Column(Integer, nullable=True)
    join_code_uses = Column(Integer, default=0)
    requires_approval = Column(Boolean, default=True)
    client_ref = Column(String, nullable=True, index=True)

TABLE_MODELS = {
    'profiles': ProfileRow,
    'medical_records': MedicalRecordRow,
    'injuries': InjuryRow,
    'training_logs': TrainingLogRow,
    'messages': MessageRow,
    'teams': TeamRow,
}
