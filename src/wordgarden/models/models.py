"""Database models for the local progress store."""
from sqlalchemy import JSON, Column, Integer, String

from wordgarden.models.base import Base, TimestampMixin


class LearnerProgress(Base, TimestampMixin):
    """Progress record of one learner, stored as the JSON the app syncs."""

    __tablename__ = "learner_progress"

    profile_code = Column(String, primary_key=True)
    progress = Column(JSON, nullable=False)


class ActiveProfile(Base, TimestampMixin):
    """The profile currently opened on this device (a single row)."""

    __tablename__ = "active_profile"

    id = Column(Integer, primary_key=True)
    profile_code = Column(String, nullable=False)
    child_name = Column(String, nullable=True)
