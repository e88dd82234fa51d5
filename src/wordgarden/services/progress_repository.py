"""Local persistence of learner progress and the active profile."""
import copy
import logging
from abc import ABC, abstractmethod
from datetime import UTC, datetime
from typing import Any, Callable, Dict, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from wordgarden.models.base import SessionLocal
from wordgarden.models.models import ActiveProfile, LearnerProgress

logger = logging.getLogger(__name__)

ACTIVE_PROFILE_ID = 1


def utc_timestamp() -> str:
    """Current UTC time as ISO-8601 with millisecond precision and a 'Z' suffix."""
    return datetime.now(UTC).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def stamp(record: Dict[str, Any]) -> Dict[str, Any]:
    stamped = dict(record)
    stamped["_updatedAt"] = utc_timestamp()
    return stamped


class ProgressRepository(ABC):
    """Key-value store of progress records keyed by learner (profile) code."""

    @abstractmethod
    def get(self, learner_key: str) -> Optional[Dict[str, Any]]:
        """Return the stored record or None."""
        raise NotImplementedError("Subclasses must implement this method")

    @abstractmethod
    def put(self, learner_key: str, record: Dict[str, Any]) -> Dict[str, Any]:
        """Stamp ``_updatedAt``, store the record and return it."""
        raise NotImplementedError("Subclasses must implement this method")

    def get_active_profile(self) -> Optional[Dict[str, Any]]:
        return None

    def set_active_profile(self, profile_code: str, child_name: Optional[str] = None) -> None:
        pass

    def clear_active_profile(self) -> None:
        pass


class InMemoryProgressRepository(ProgressRepository):
    """Repository kept in a dict; used by tests and throwaway sessions."""

    def __init__(self):
        self._records: Dict[str, Dict[str, Any]] = {}
        self._active: Optional[Dict[str, Any]] = None

    def get(self, learner_key: str) -> Optional[Dict[str, Any]]:
        record = self._records.get(learner_key)
        return copy.deepcopy(record) if record is not None else None

    def put(self, learner_key: str, record: Dict[str, Any]) -> Dict[str, Any]:
        stamped = stamp(record)
        self._records[learner_key] = copy.deepcopy(stamped)
        return stamped

    def get_active_profile(self) -> Optional[Dict[str, Any]]:
        return dict(self._active) if self._active else None

    def set_active_profile(self, profile_code: str, child_name: Optional[str] = None) -> None:
        self._active = {"profileCode": profile_code, "childName": child_name}

    def clear_active_profile(self) -> None:
        self._active = None


class SqlProgressRepository(ProgressRepository):
    """Repository backed by the local SQL database.

    Write failures are logged and ignored: the in-memory progress stays
    authoritative for the running session and the next save retries.
    """

    def __init__(self, session_factory: Callable[[], Session] = SessionLocal):
        self.session_factory = session_factory

    def get(self, learner_key: str) -> Optional[Dict[str, Any]]:
        db = self.session_factory()
        try:
            row = db.get(LearnerProgress, learner_key)
            return copy.deepcopy(row.progress) if row is not None else None
        except SQLAlchemyError as e:
            logger.warning(f"Could not read progress for {learner_key}: {e}")
            return None
        finally:
            db.close()

    def put(self, learner_key: str, record: Dict[str, Any]) -> Dict[str, Any]:
        stamped = stamp(record)
        db = self.session_factory()
        try:
            row = db.get(LearnerProgress, learner_key)
            if row is None:
                db.add(LearnerProgress(profile_code=learner_key, progress=stamped))
            else:
                row.progress = stamped
            db.commit()
        except SQLAlchemyError as e:
            db.rollback()
            logger.warning(f"Could not store progress for {learner_key}: {e}")
        finally:
            db.close()
        return stamped

    def get_active_profile(self) -> Optional[Dict[str, Any]]:
        db = self.session_factory()
        try:
            row = db.get(ActiveProfile, ACTIVE_PROFILE_ID)
            if row is None:
                return None
            return {"profileCode": row.profile_code, "childName": row.child_name}
        except SQLAlchemyError as e:
            logger.warning(f"Could not read the active profile: {e}")
            return None
        finally:
            db.close()

    def set_active_profile(self, profile_code: str, child_name: Optional[str] = None) -> None:
        db = self.session_factory()
        try:
            row = db.get(ActiveProfile, ACTIVE_PROFILE_ID)
            if row is None:
                db.add(ActiveProfile(id=ACTIVE_PROFILE_ID, profile_code=profile_code, child_name=child_name))
            else:
                row.profile_code = profile_code
                row.child_name = child_name
            db.commit()
        except SQLAlchemyError as e:
            db.rollback()
            logger.warning(f"Could not store the active profile: {e}")
        finally:
            db.close()

    def clear_active_profile(self) -> None:
        db = self.session_factory()
        try:
            db.query(ActiveProfile).delete()
            db.commit()
        except SQLAlchemyError as e:
            db.rollback()
            logger.warning(f"Could not clear the active profile: {e}")
        finally:
            db.close()
