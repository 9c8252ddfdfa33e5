import json
import logging

from sqlalchemy.exc import SQLAlchemyError

from seatmap.config import ACTIVE_STATUS
from seatmap.db_models import AuditLogDB, ClassroomDB, SeatMapDB, StudentDB, StudentPhotoDB
from seatmap.errors import ClassroomNotFound, LayoutStoreError, StudentNotFound
from seatmap.models import Student

logger = logging.getLogger(__name__)

AUDIT_ACTIONS = {"CREATE", "UPDATE", "DELETE", "IMPORT", "EXPORT"}


def get_classroom(db, classroom_id):
    classroom = db.query(ClassroomDB).filter(ClassroomDB.id == classroom_id).first()
    if not classroom:
        raise ClassroomNotFound(classroom_id)
    return classroom


def get_student(db, student_id):
    student = db.query(StudentDB).filter(StudentDB.id == student_id).first()
    if not student:
        raise StudentNotFound(student_id)
    return student


def get_roster(db, classroom_id):
    """Active students of a classroom ordered by name, with their photo path."""
    rows = (
        db.query(StudentDB, StudentPhotoDB.storage_path)
        .outerjoin(StudentPhotoDB, StudentPhotoDB.student_id == StudentDB.id)
        .filter(StudentDB.classroom_id == classroom_id)
        .filter(StudentDB.status == ACTIVE_STATUS)
        .order_by(StudentDB.name, StudentDB.id)
        .all()
    )
    return [
        Student(
            student_id=s.id,
            name=s.name,
            is_leader=s.is_leader,
            is_vice_leader=s.is_vice_leader,
            photo_ref=storage_path,
        )
        for s, storage_path in rows
    ]


class LayoutStore:
    """One persisted seat map per classroom, replaced wholesale on save."""

    def __init__(self, db):
        self.db = db

    def load(self, classroom_id):
        record = self.db.query(SeatMapDB).filter(SeatMapDB.classroom_id == classroom_id).first()
        if not record:
            return None
        try:
            return json.loads(record.layout_json)
        except ValueError:
            logger.warning(f"Seat map of classroom {classroom_id} is not valid JSON, starting fresh")
            return None

    def save(self, classroom_id, blob, updated_by=None):
        try:
            record = self.db.query(SeatMapDB).filter(SeatMapDB.classroom_id == classroom_id).first()
            if record is None:
                record = SeatMapDB(classroom_id=classroom_id)
                self.db.add(record)
            record.layout_json = json.dumps(blob)
            record.updated_by = updated_by
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Saving seat map of classroom {classroom_id} failed: {e}")
            raise LayoutStoreError(f"Could not save seat map of classroom {classroom_id}") from e


def log_audit(db, action, entity, entity_id, actor, metadata=None):
    """Record who did what. Without a known actor nothing is written."""
    if action not in AUDIT_ACTIONS:
        raise ValueError(f"Unknown audit action {action!r}")
    if not actor:
        return None

    entry = AuditLogDB(
        action=action,
        entity=entity,
        entity_id=str(entity_id),
        actor_user_id=str(actor),
        metadata_json=json.dumps(metadata or {}),
    )
    db.add(entry)
    db.commit()
    return entry


def set_leader_flag(db, student, field, value):
    """Set is_leader/is_vice_leader; turning it on clears it for the rest of the classroom."""
    if field not in ("is_leader", "is_vice_leader"):
        raise ValueError(f"Unknown leader flag {field!r}")

    if value:
        (
            db.query(StudentDB)
            .filter(StudentDB.classroom_id == student.classroom_id)
            .filter(StudentDB.id != student.id)
            .filter(getattr(StudentDB, field).is_(True))
            .update({field: False}, synchronize_session=False)
        )
    setattr(student, field, value)
    db.commit()
    db.refresh(student)
    return student


def set_photo(db, student, storage_path, updated_by=None):
    photo = db.query(StudentPhotoDB).filter(StudentPhotoDB.student_id == student.id).first()
    if photo is None:
        photo = StudentPhotoDB(student_id=student.id)
        db.add(photo)
    photo.storage_path = storage_path
    photo.updated_by = updated_by
    db.commit()
    return photo
