import io
import logging
from contextlib import asynccontextmanager
from datetime import date
from typing import List, Optional

from fastapi import Depends, FastAPI, File, Header, HTTPException, UploadFile
from fastapi.responses import Response
from pydantic import BaseModel
from sqlalchemy.orm import Session

from seatmap import config
from seatmap.allocator import fill_empty_seats
from seatmap.assets import PhotoResolver
from seatmap.database import get_db, init_db
from seatmap.db_models import ClassroomDB, SchoolDB, StudentDB
from seatmap.errors import (
    ClassroomNotFound,
    LayoutStoreError,
    RosterImportError,
    SeatingError,
    StudentNotFound,
)
from seatmap.layouts import SeatingLayoutEngine
from seatmap.renderer import LayoutRenderer, write_pdf
from seatmap.store import (
    LayoutStore,
    get_classroom,
    get_roster,
    get_student,
    log_audit,
    set_leader_flag,
    set_photo,
)
from seatmap.student_import import import_students, read_roster_file

logging.basicConfig(level=config.LOG_LEVEL)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app):
    init_db()
    yield


app = FastAPI(title = "Seat Map API", lifespan = lifespan)


def http_error(exc):
    if isinstance(exc, (ClassroomNotFound, StudentNotFound)):
        return HTTPException(status_code=404, detail=str(exc))
    if isinstance(exc, LayoutStoreError):
        return HTTPException(status_code=503, detail=str(exc))
    return HTTPException(status_code=400, detail=str(exc))


def classroom_or_404(db, classroom_id):
    try:
        return get_classroom(db, classroom_id)
    except ClassroomNotFound as e:
        raise http_error(e)


def student_or_404(db, student_id):
    try:
        return get_student(db, student_id)
    except StudentNotFound as e:
        raise http_error(e)


def school_or_404(db, school_id):
    school = db.query(SchoolDB).filter(SchoolDB.id == school_id).first()
    if not school:
        raise HTTPException(status_code=404, detail=f"School {school_id} not found")
    return school


def reject_nulls(fields, *names):
    for name in names:
        if name in fields and fields[name] is None:
            raise HTTPException(status_code=400, detail=f"{name} cannot be empty")


def school_out(school):
    return {"id": school.id, "name": school.name, "inep": school.inep}


def classroom_out(classroom):
    return {
        "id": classroom.id,
        "school_id": classroom.school_id,
        "school_name": classroom.school.name,
        "year_grade": classroom.year_grade,
        "label": classroom.label,
        "shift": classroom.shift,
        "name": classroom.display_name
    }


def student_out(student):
    return {
        "id": student.id,
        "classroom_id": student.classroom_id,
        "enrollment_code": student.enrollment_code,
        "name": student.name,
        "birthdate": student.birthdate,
        "responsible_name": student.responsible_name,
        "responsible_phone": student.responsible_phone,
        "status": student.status,
        "is_leader": student.is_leader,
        "is_vice_leader": student.is_vice_leader
    }


def editor_for(db, classroom_id, layout):
    classroom_or_404(db, classroom_id)
    roster = get_roster(db, classroom_id)
    try:
        return SeatingLayoutEngine.from_blob(roster, layout)
    except SeatingError as e:
        raise http_error(e)


def seat_map_response(engine, **extra):
    response = {
        "layout": engine.serialize(),
        "unplaced": [s.to_dict() for s in engine.unplaced_students()],
    }
    response.update(extra)
    return response


class SchoolIn(BaseModel):
    name: str
    inep: Optional[str] = None


class ClassroomIn(BaseModel):
    school_id: int
    year_grade: str
    label: str
    shift: str


class SchoolUpdate(BaseModel):
    name: Optional[str] = None
    inep: Optional[str] = None


class ClassroomUpdate(BaseModel):
    school_id: Optional[int] = None
    year_grade: Optional[str] = None
    label: Optional[str] = None
    shift: Optional[str] = None


class StudentIn(BaseModel):
    name: str
    enrollment_code: Optional[str] = None
    birthdate: Optional[date] = None
    responsible_name: Optional[str] = None
    responsible_phone: Optional[str] = None
    status: str = config.ACTIVE_STATUS


class StudentUpdate(BaseModel):
    classroom_id: Optional[int] = None
    name: Optional[str] = None
    enrollment_code: Optional[str] = None
    birthdate: Optional[date] = None
    responsible_name: Optional[str] = None
    responsible_phone: Optional[str] = None
    status: Optional[str] = None


class LayoutIn(BaseModel):
    rows: Optional[int] = None
    cols: Optional[int] = None
    seats: Optional[List[List[Optional[int]]]] = None


class EditRequest(BaseModel):
    layout: Optional[LayoutIn] = None


class AssignRequest(EditRequest):
    student_id: int
    row: int
    col: int


class SeatRequest(EditRequest):
    row: int
    col: int


class ResizeRequest(EditRequest):
    rows: int
    cols: int


class PhotoIn(BaseModel):
    storage_path: str


class LeaderIn(BaseModel):
    field: str = "is_leader"
    value: bool = True


def layout_blob(layout):
    return layout.model_dump() if layout is not None else None


@app.get("/")
def root():
    return {"message": "Seat Map API is running !"}


@app.post("/schools")
def create_school(school: SchoolIn, db: Session = Depends(get_db), x_user_id: Optional[str] = Header(None)):
    record = SchoolDB(name=school.name, inep=school.inep)
    db.add(record)
    db.commit()
    db.refresh(record)
    log_audit(db, "CREATE", "schools", record.id, x_user_id, {"name": record.name})
    return school_out(record)


@app.get("/schools")
def get_schools(db: Session = Depends(get_db)):
    schools = db.query(SchoolDB).order_by(SchoolDB.name).all()
    return [school_out(s) for s in schools]


@app.put("/schools/{school_id}")
def update_school(
    school_id: int,
    changes: SchoolUpdate,
    db: Session = Depends(get_db),
    x_user_id: Optional[str] = Header(None)
):
    school = school_or_404(db, school_id)
    fields = changes.model_dump(exclude_unset=True)
    reject_nulls(fields, "name")
    for field, value in fields.items():
        setattr(school, field, value)
    db.commit()
    db.refresh(school)
    log_audit(db, "UPDATE", "schools", school_id, x_user_id, fields)
    return school_out(school)


@app.delete("/schools/{school_id}")
def delete_school(school_id: int, db: Session = Depends(get_db), x_user_id: Optional[str] = Header(None)):
    school = school_or_404(db, school_id)
    name = school.name
    # classrooms go with the school, and their students and seat maps with them
    db.delete(school)
    db.commit()
    logger.info(f"School {school_id} ({name}) deleted")
    log_audit(db, "DELETE", "schools", school_id, x_user_id, {"name": name})
    return {"message": "School deleted", "id": school_id}


@app.post("/classrooms")
def create_classroom(classroom: ClassroomIn, db: Session = Depends(get_db), x_user_id: Optional[str] = Header(None)):
    school = school_or_404(db, classroom.school_id)

    record = ClassroomDB(
        school_id=school.id,
        year_grade=classroom.year_grade,
        label=classroom.label,
        shift=classroom.shift
    )
    db.add(record)
    db.commit()
    db.refresh(record)
    log_audit(db, "CREATE", "classrooms", record.id, x_user_id, {"name": record.display_name})
    return {"id": record.id, "school_id": school.id, "name": record.display_name}


@app.get("/classrooms")
def get_classrooms(db: Session = Depends(get_db)):
    classrooms = db.query(ClassroomDB).order_by(ClassroomDB.year_grade, ClassroomDB.label).all()
    return [classroom_out(c) for c in classrooms]


@app.put("/classrooms/{classroom_id}")
def update_classroom(
    classroom_id: int,
    changes: ClassroomUpdate,
    db: Session = Depends(get_db),
    x_user_id: Optional[str] = Header(None)
):
    classroom = classroom_or_404(db, classroom_id)
    fields = changes.model_dump(exclude_unset=True)
    reject_nulls(fields, "school_id", "year_grade", "label", "shift")
    if "school_id" in fields:
        school_or_404(db, fields["school_id"])
        for student in classroom.students:
            student.school_id = fields["school_id"]

    for field, value in fields.items():
        setattr(classroom, field, value)
    db.commit()
    db.refresh(classroom)
    log_audit(db, "UPDATE", "classrooms", classroom_id, x_user_id, fields)
    return classroom_out(classroom)


@app.delete("/classrooms/{classroom_id}")
def delete_classroom(classroom_id: int, db: Session = Depends(get_db), x_user_id: Optional[str] = Header(None)):
    classroom = classroom_or_404(db, classroom_id)
    name = classroom.display_name
    # the seat map and the students are removed along with the classroom
    db.delete(classroom)
    db.commit()
    logger.info(f"Classroom {classroom_id} ({name}) deleted")
    log_audit(db, "DELETE", "classrooms", classroom_id, x_user_id, {"name": name})
    return {"message": "Classroom deleted", "id": classroom_id}


@app.get("/classrooms/{classroom_id}/students")
def get_classroom_students(classroom_id: int, db: Session = Depends(get_db)):
    classroom_or_404(db, classroom_id)
    return [s.to_dict() for s in get_roster(db, classroom_id)]


@app.post("/classrooms/{classroom_id}/students")
def create_student(
    classroom_id: int,
    student: StudentIn,
    db: Session = Depends(get_db),
    x_user_id: Optional[str] = Header(None)
):
    classroom = classroom_or_404(db, classroom_id)
    record = StudentDB(school_id=classroom.school_id, classroom_id=classroom.id, **student.model_dump())
    db.add(record)
    db.commit()
    db.refresh(record)
    log_audit(db, "CREATE", "students", record.id, x_user_id, {"name": record.name})
    return student_out(record)


@app.put("/students/{student_id}")
def update_student(
    student_id: int,
    changes: StudentUpdate,
    db: Session = Depends(get_db),
    x_user_id: Optional[str] = Header(None)
):
    student = student_or_404(db, student_id)
    fields = changes.model_dump(exclude_unset=True)
    reject_nulls(fields, "classroom_id", "name", "status")
    if "classroom_id" in fields and fields["classroom_id"] != student.classroom_id:
        target = classroom_or_404(db, fields["classroom_id"])
        student.school_id = target.school_id
        # leader flags are per classroom
        student.is_leader = False
        student.is_vice_leader = False

    for field, value in fields.items():
        setattr(student, field, value)
    db.commit()
    db.refresh(student)
    log_audit(db, "UPDATE", "students", student_id, x_user_id, {"fields": sorted(fields)})
    return student_out(student)


@app.delete("/students/{student_id}")
def delete_student(student_id: int, db: Session = Depends(get_db), x_user_id: Optional[str] = Header(None)):
    student = student_or_404(db, student_id)
    name = student.name
    db.delete(student)
    db.commit()
    log_audit(db, "DELETE", "students", student_id, x_user_id, {"name": name})
    return {"message": "Student deleted", "id": student_id}


@app.post("/classrooms/{classroom_id}/students/import")
def import_classroom_students(
    classroom_id: int,
    file: UploadFile = File(...),
    db: Session = Depends(get_db),
    x_user_id: Optional[str] = Header(None)
):
    classroom = classroom_or_404(db, classroom_id)
    try:
        frame = read_roster_file(io.BytesIO(file.file.read()), file.filename)
        result = import_students(db, classroom, frame)
    except RosterImportError as e:
        raise http_error(e)

    log_audit(db, "IMPORT", "students", classroom_id, x_user_id, {
        "file": file.filename,
        "inserted": result["inserted"],
        "updated": result["updated"]
    })
    return {"message": "Student import completed", **result}


@app.put("/students/{student_id}/photo")
def update_student_photo(
    student_id: int,
    photo: PhotoIn,
    db: Session = Depends(get_db),
    x_user_id: Optional[str] = Header(None)
):
    student = student_or_404(db, student_id)
    set_photo(db, student, photo.storage_path, x_user_id)
    log_audit(db, "UPDATE", "student_photos", student_id, x_user_id, {"path": photo.storage_path})
    return {"student_id": student_id, "storage_path": photo.storage_path}


@app.put("/students/{student_id}/leader")
def update_student_leader(student_id: int, leader: LeaderIn, db: Session = Depends(get_db)):
    student = student_or_404(db, student_id)
    try:
        set_leader_flag(db, student, leader.field, leader.value)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return {"student_id": student.id, "is_leader": student.is_leader, "is_vice_leader": student.is_vice_leader}


@app.get("/classrooms/{classroom_id}/seat-map")
def get_seat_map(classroom_id: int, db: Session = Depends(get_db)):
    saved = LayoutStore(db).load(classroom_id)
    engine = editor_for(db, classroom_id, saved)
    return seat_map_response(engine, saved=saved is not None)


@app.put("/classrooms/{classroom_id}/seat-map")
def save_seat_map(
    classroom_id: int,
    layout: LayoutIn,
    db: Session = Depends(get_db),
    x_user_id: Optional[str] = Header(None)
):
    engine = editor_for(db, classroom_id, layout_blob(layout))
    blob = engine.serialize()
    try:
        LayoutStore(db).save(classroom_id, blob, x_user_id)
    except LayoutStoreError as e:
        raise http_error(e)

    log_audit(db, "UPDATE", "seat_maps", classroom_id, x_user_id, {"rows": blob["rows"], "cols": blob["cols"]})
    return seat_map_response(engine, message="Seat map saved")


@app.post("/classrooms/{classroom_id}/seat-map/assign")
def assign_seat(classroom_id: int, req: AssignRequest, db: Session = Depends(get_db)):
    engine = editor_for(db, classroom_id, layout_blob(req.layout))
    try:
        evicted = engine.assign(req.student_id, req.row, req.col)
    except SeatingError as e:
        raise http_error(e)
    return seat_map_response(engine, evicted=evicted)


@app.post("/classrooms/{classroom_id}/seat-map/unassign")
def unassign_seat(classroom_id: int, req: SeatRequest, db: Session = Depends(get_db)):
    engine = editor_for(db, classroom_id, layout_blob(req.layout))
    try:
        removed = engine.unassign(req.row, req.col)
    except SeatingError as e:
        raise http_error(e)
    return seat_map_response(engine, removed=removed)


@app.post("/classrooms/{classroom_id}/seat-map/resize")
def resize_seat_map(classroom_id: int, req: ResizeRequest, db: Session = Depends(get_db)):
    engine = editor_for(db, classroom_id, layout_blob(req.layout))
    try:
        dropped = engine.resize(req.rows, req.cols)
    except SeatingError as e:
        raise http_error(e)
    return seat_map_response(engine, dropped=dropped)


@app.post("/classrooms/{classroom_id}/seat-map/clear")
def clear_seat_map(classroom_id: int, req: EditRequest, db: Session = Depends(get_db)):
    engine = editor_for(db, classroom_id, layout_blob(req.layout))
    engine.clear()
    return seat_map_response(engine)


@app.post("/classrooms/{classroom_id}/seat-map/auto-fill")
def auto_fill_seat_map(classroom_id: int, req: EditRequest, db: Session = Depends(get_db)):
    engine = editor_for(db, classroom_id, layout_blob(req.layout))
    placements = fill_empty_seats(engine)
    return seat_map_response(engine, placed=len(placements))


@app.get("/classrooms/{classroom_id}/seat-map/pdf")
def export_seat_map_pdf(classroom_id: int, db: Session = Depends(get_db), x_user_id: Optional[str] = Header(None)):
    classroom = classroom_or_404(db, classroom_id)
    engine = editor_for(db, classroom_id, LayoutStore(db).load(classroom_id))

    renderer = LayoutRenderer(asset_resolver=PhotoResolver(config.PHOTO_DIR))
    document = renderer.render(
        engine,
        engine.student,
        title="Seating Chart",
        subtitle=f"{classroom.school.name} - {classroom.display_name}"
    )

    buffer = io.BytesIO()
    write_pdf(document, buffer)

    filename = f"seat_map_{classroom.id}.pdf"
    log_audit(db, "EXPORT", "seat_maps", classroom_id, x_user_id, {"file": filename})
    return Response(
        content=buffer.getvalue(),
        media_type="application/pdf",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'}
    )
