from datetime import datetime

from sqlalchemy import Boolean, Column, Date, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import relationship

from seatmap.config import ACTIVE_STATUS
from seatmap.database import Base


class SchoolDB(Base):
    __tablename__ = "schools"

    id = Column(Integer, primary_key = True, index = True)
    inep = Column(String, nullable = True)
    name = Column(String, nullable = False)
    created_at = Column(DateTime, default = datetime.utcnow, nullable = False)

    classrooms = relationship("ClassroomDB", back_populates = "school", cascade = "all, delete")


class ClassroomDB(Base):
    __tablename__ = "classrooms"

    id = Column(Integer, primary_key = True, index = True)
    school_id = Column(Integer, ForeignKey("schools.id"), nullable = False)
    year_grade = Column(String, nullable = False)
    label = Column(String, nullable = False)
    shift = Column(String, nullable = False)
    created_at = Column(DateTime, default = datetime.utcnow, nullable = False)

    school = relationship("SchoolDB", back_populates = "classrooms")
    students = relationship("StudentDB", back_populates = "classroom", cascade = "all, delete")
    seat_map = relationship("SeatMapDB", uselist = False, cascade = "all, delete")

    @property
    def display_name(self):
        return f"{self.year_grade} {self.label} ({self.shift})"


class StudentDB(Base):
    __tablename__ = "students"

    id = Column(Integer, primary_key = True, index = True)
    school_id = Column(Integer, ForeignKey("schools.id"), nullable = False)
    classroom_id = Column(Integer, ForeignKey("classrooms.id"), nullable = False, index = True)
    enrollment_code = Column(String, nullable = True, index = True)
    name = Column(String, nullable = False)
    birthdate = Column(Date, nullable = True)
    responsible_name = Column(String, nullable = True)
    responsible_phone = Column(String, nullable = True)
    status = Column(String, nullable = False, default = ACTIVE_STATUS)
    is_leader = Column(Boolean, nullable = False, default = False)
    is_vice_leader = Column(Boolean, nullable = False, default = False)
    created_at = Column(DateTime, default = datetime.utcnow, nullable = False)

    classroom = relationship("ClassroomDB", back_populates = "students")
    photo = relationship("StudentPhotoDB", uselist = False, cascade = "all, delete")


class StudentPhotoDB(Base):
    __tablename__ = "student_photos"

    student_id = Column(Integer, ForeignKey("students.id"), primary_key = True)
    storage_path = Column(String, nullable = False)
    updated_at = Column(DateTime, default = datetime.utcnow, onupdate = datetime.utcnow)
    updated_by = Column(String, nullable = True)


class SeatMapDB(Base):
    __tablename__ = "seat_maps"

    classroom_id = Column(Integer, ForeignKey("classrooms.id"), primary_key = True)

    # stored like: {"rows": 5, "cols": 6, "seats": [[12, null, ...], ...]}
    layout_json = Column(Text, nullable = False)
    updated_at = Column(DateTime, default = datetime.utcnow, onupdate = datetime.utcnow)
    updated_by = Column(String, nullable = True)


class AuditLogDB(Base):
    __tablename__ = "audit_log"

    id = Column(Integer, primary_key = True, index = True)
    action = Column(String, nullable = False)
    entity = Column(String, nullable = False)
    entity_id = Column(String, nullable = False)
    actor_user_id = Column(String, nullable = False)
    metadata_json = Column(Text, nullable = False, default = "{}")
    created_at = Column(DateTime, default = datetime.utcnow, nullable = False)
