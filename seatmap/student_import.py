import logging
import re
from datetime import date
from pathlib import Path

import pandas as pd
from sqlalchemy.exc import SQLAlchemyError

from seatmap.db_models import StudentDB
from seatmap.errors import RosterImportError
from seatmap.models import Student

logger = logging.getLogger(__name__)

FIELDS = ["name", "enrollment_code", "birthdate", "responsible_name", "responsible_phone"]

# header spellings seen in school spreadsheets, compared after normalize_header
COLUMN_ALIASES = {
    "name": ["nome", "name", "aluno", "nome_aluno", "nome_do_aluno", "student_name"],
    "enrollment_code": ["matricula", "matrícula", "enrollment", "enrollment_code", "codigo", "código"],
    "birthdate": ["nascimento", "birthdate", "data_nascimento", "data_de_nascimento", "dt_nasc", "birth_date"],
    "responsible_phone": ["telefone", "phone", "fone", "cel", "celular", "contato"],
    "responsible_name": ["responsavel", "responsável", "responsible", "pai_mae", "nome_responsavel"],
}

TEXT_EXTENSIONS = {".csv", ".txt"}
EXCEL_EXTENSIONS = {".xlsx", ".xls"}

DMY = re.compile(r"(\d{1,2})[/\-](\d{1,2})[/\-](\d{4})")
ISO = re.compile(r"(\d{4})-(\d{2})-(\d{2})")


def normalize_header(header):
    return re.sub(r"[_\s]+", "_", str(header).strip().lower())


def map_headers(headers):
    """
    Guess which spreadsheet column holds which student field.

    Exact alias matches win over partial ones, so "nome_responsavel" is not
    taken for the student name. Each field is mapped at most once.
    """
    normalized = {h: normalize_header(h) for h in headers}
    mapping = {}

    for exact in (True, False):
        for header, norm in normalized.items():
            if header in mapping:
                continue
            for field_name, aliases in COLUMN_ALIASES.items():
                if field_name in mapping.values():
                    continue
                if exact:
                    hit = norm in aliases
                else:
                    hit = any(alias in norm for alias in aliases)
                if hit:
                    mapping[header] = field_name
                    break
    return mapping


def parse_birthdate(value):
    if not value:
        return None
    match = DMY.search(value)
    if match:
        day, month, year = (int(g) for g in match.groups())
    else:
        match = ISO.search(value)
        if not match:
            return None
        year, month, day = (int(g) for g in match.groups())
    try:
        return date(year, month, day)
    except ValueError:
        return None


def read_roster_file(source, filename=None):
    """
    Read a CSV or spreadsheet of students into a frame with the FIELDS
    columns plus ``line`` (the 1-based line in the file, header is 1).
    Rows without a name are dropped.
    """
    suffix = Path(filename or str(source)).suffix.lower()
    try:
        if suffix in TEXT_EXTENSIONS:
            df = pd.read_csv(source, dtype=str, keep_default_na=False, sep=None, engine="python")
        elif suffix in EXCEL_EXTENSIONS:
            df = pd.read_excel(source, dtype=str).fillna("")
        else:
            raise RosterImportError(f"Unsupported roster file type {suffix or '(none)'}")
    except RosterImportError:
        raise
    except Exception as e:
        raise RosterImportError(f"Roster file read failed: {str(e)}") from e

    mapping = map_headers(df.columns)
    if "name" not in mapping.values():
        raise RosterImportError(f"No student name column among {list(df.columns)}")

    result = pd.DataFrame()
    for field_name in FIELDS:
        original = next((h for h, f in mapping.items() if f == field_name), None)
        if original is None:
            result[field_name] = [""] * len(df)
        else:
            result[field_name] = df[original].astype(str).str.strip().values
    result["line"] = [i + 2 for i in range(len(df))]

    result = result[result["name"] != ""].reset_index(drop=True)
    logger.info(f"Read {len(result)} students from {filename or source}")
    return result


def roster_from_frame(frame):
    """Students for offline use; the enrollment code is the id when present."""
    students = []
    for _, row in frame.iterrows():
        students.append(
            Student(
                student_id=row["enrollment_code"] or f"line-{row['line']}",
                name=row["name"],
            )
        )
    return students


def import_students(db, classroom, frame):
    """
    Insert or update the classroom's students from a frame made by
    ``read_roster_file``. A row with the enrollment code and birthdate of
    an existing student updates that student.
    """
    result = {"inserted": 0, "updated": 0, "errors": []}

    try:
        for _, row in frame.iterrows():
            birthdate = parse_birthdate(row["birthdate"])
            if row["birthdate"] and birthdate is None:
                result["errors"].append(f"Line {row['line']}: birthdate {row['birthdate']!r} not recognised")

            existing = None
            if row["enrollment_code"] and birthdate:
                existing = (
                    db.query(StudentDB)
                    .filter(StudentDB.enrollment_code == row["enrollment_code"])
                    .filter(StudentDB.birthdate == birthdate)
                    .first()
                )

            if existing:
                existing.name = row["name"]
                existing.school_id = classroom.school_id
                existing.classroom_id = classroom.id
                existing.responsible_name = row["responsible_name"] or None
                existing.responsible_phone = row["responsible_phone"] or None
                result["updated"] += 1
                continue

            db.add(StudentDB(
                school_id=classroom.school_id,
                classroom_id=classroom.id,
                enrollment_code=row["enrollment_code"] or None,
                name=row["name"],
                birthdate=birthdate,
                responsible_name=row["responsible_name"] or None,
                responsible_phone=row["responsible_phone"] or None,
            ))
            # later rows of the same file must find this one
            db.flush()
            result["inserted"] += 1

        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Roster import into classroom {classroom.id} failed: {e}")
        raise RosterImportError(f"Roster import failed: {str(e)}") from e

    return result
