import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from seatmap import config
from seatmap.database import get_db, init_db
from seatmap.db_models import ClassroomDB, SchoolDB, StudentDB
from seatmap.layouts import SeatingLayoutEngine
from seatmap.models import Student


@pytest.fixture
def roster():
    return [
        Student("a", "Ana Beatriz Souza", is_leader=True),
        Student("b", "Bruno Lima"),
        Student("c", "Carla Dias", is_vice_leader=True),
        Student("d", "Diego Rocha"),
    ]


@pytest.fixture
def layout(roster):
    return SeatingLayoutEngine(roster).initialize(5, 6)


@pytest.fixture
def db():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    init_db(engine)
    session = sessionmaker(autocommit=False, autoflush=False, bind=engine)()
    try:
        yield session
    finally:
        session.close()
        engine.dispose()


@pytest.fixture
def classroom(db):
    """A classroom with three active students, one transferred, and a neighbour class."""
    school = SchoolDB(name="EMEF Monteiro Lobato", inep="23000001")
    db.add(school)
    db.flush()

    room = ClassroomDB(school_id=school.id, year_grade="7", label="A", shift="Manha")
    other = ClassroomDB(school_id=school.id, year_grade="7", label="B", shift="Tarde")
    db.add_all([room, other])
    db.flush()

    db.add_all([
        StudentDB(school_id=school.id, classroom_id=room.id, name="Carla Dias"),
        StudentDB(school_id=school.id, classroom_id=room.id, name="Ana Beatriz Souza", is_leader=True),
        StudentDB(school_id=school.id, classroom_id=room.id, name="Bruno Lima"),
        StudentDB(school_id=school.id, classroom_id=room.id, name="Zeca Transferido", status="Transferido"),
        StudentDB(school_id=school.id, classroom_id=other.id, name="Outra Turma"),
    ])
    db.commit()
    return room


@pytest.fixture
def students(db, classroom):
    """Active students of ``classroom`` keyed by first name."""
    rows = db.query(StudentDB).filter(StudentDB.classroom_id == classroom.id).all()
    return {s.name.split()[0]: s for s in rows}


@pytest.fixture
def client(db, tmp_path, monkeypatch):
    from seatmap.main_api import app

    monkeypatch.setattr(config, "PHOTO_DIR", tmp_path / "photos")
    app.dependency_overrides[get_db] = lambda: db
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()
