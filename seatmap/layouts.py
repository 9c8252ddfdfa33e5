import logging
from collections.abc import Mapping

from seatmap import config
from seatmap.errors import InvalidLayout, UnknownStudent
from seatmap.models import Grid


def create_empty_seats(rows, cols):
    return [[None for _ in range(cols)] for _ in range(rows)]


class SeatingLayoutEngine:
    """
    Seat map of one classroom: a rows x cols grid where every seat holds
    at most one student id and every student id sits in at most one seat.

    The roster is a snapshot handed in by the caller and is never modified.
    Dropping a student on an occupied seat evicts the previous occupant
    (who becomes unplaced), and shrinking the grid unplaces whoever sat in
    the removed seats. Neither case relocates anybody.
    """

    def __init__(self, roster):
        self.logger = logging.getLogger(__name__)
        self.roster = []
        self._students = {}
        for student in roster:
            if student.student_id in self._students:
                continue
            self._students[student.student_id] = student
            self.roster.append(student)

        self.grid = None
        self.seats = []
        self._positions = {}

    @property
    def rows(self):
        return self.grid.rows

    @property
    def cols(self):
        return self.grid.cols

    def initialize(self, rows, cols, persisted_seats=None):
        """
        Start an empty rows x cols grid and overlay ``persisted_seats``.

        ``persisted_seats`` may be nested lists (the stored form) or a
        mapping of ``(row, col) -> student_id``. Entries outside the grid,
        for students no longer on the roster, or repeating a student that
        was already placed are dropped without raising.
        """
        self.grid = Grid(rows, cols)
        self.seats = create_empty_seats(rows, cols)
        self._positions = {}

        dropped = 0
        for row, col, student_id in self._iter_persisted(persisted_seats):
            if student_id is None:
                continue
            if not self.grid.contains(row, col):
                dropped += 1
                continue
            try:
                usable = student_id in self._students and student_id not in self._positions
            except TypeError:
                # lists or objects stored where an id belongs
                usable = False
            if not usable:
                dropped += 1
                continue
            self.seats[row][col] = student_id
            self._positions[student_id] = (row, col)

        if dropped:
            self.logger.info(f"Dropped {dropped} stale seat entries while loading a {rows}x{cols} layout")
        return self

    @staticmethod
    def _iter_persisted(persisted_seats):
        if not persisted_seats:
            return
        if isinstance(persisted_seats, Mapping):
            for key, student_id in persisted_seats.items():
                try:
                    row, col = key
                except (TypeError, ValueError):
                    continue
                if isinstance(row, int) and isinstance(col, int):
                    yield row, col, student_id
            return
        if not isinstance(persisted_seats, (list, tuple)):
            return
        for row, seat_row in enumerate(persisted_seats):
            if not isinstance(seat_row, (list, tuple)):
                continue
            for col, student_id in enumerate(seat_row):
                yield row, col, student_id

    def _require_grid(self):
        if self.grid is None:
            raise InvalidLayout("Layout has not been initialized")

    def occupant(self, row, col):
        self._require_grid()
        self.grid.check(row, col)
        return self.seats[row][col]

    def position_of(self, student_id):
        return self._positions.get(student_id)

    def student(self, student_id):
        return self._students.get(student_id)

    def assign(self, student_id, row, col):
        """
        Seat ``student_id`` at (row, col), vacating its previous seat.

        Returns the id of the student evicted from the destination seat,
        or None. The evicted student is left unplaced.
        """
        self._require_grid()
        if student_id not in self._students:
            raise UnknownStudent(student_id)
        self.grid.check(row, col)

        previous = self._positions.pop(student_id, None)
        if previous is not None:
            self.seats[previous[0]][previous[1]] = None

        evicted = self.seats[row][col]
        if evicted is not None:
            del self._positions[evicted]
            self.logger.info(f"Student {evicted!r} evicted from seat ({row}, {col}) by {student_id!r}")

        self.seats[row][col] = student_id
        self._positions[student_id] = (row, col)
        self.logger.debug(f"Assigned {student_id!r} to ({row}, {col}), previously at {previous}")
        return evicted

    def unassign(self, row, col):
        """Empty a seat. Returns the id that sat there, if any."""
        self._require_grid()
        self.grid.check(row, col)
        student_id = self.seats[row][col]
        if student_id is not None:
            self.seats[row][col] = None
            del self._positions[student_id]
            self.logger.debug(f"Unassigned {student_id!r} from ({row}, {col})")
        return student_id

    def resize(self, rows, cols):
        """
        Change the grid size keeping the seats both grids share.

        Returns the ids of students whose seats fell outside the new grid.
        """
        self._require_grid()
        grid = Grid(rows, cols)
        seats = create_empty_seats(rows, cols)
        positions = {}
        dropped = []

        for row, col in self.grid.positions():
            student_id = self.seats[row][col]
            if student_id is None:
                continue
            if grid.contains(row, col):
                seats[row][col] = student_id
                positions[student_id] = (row, col)
            else:
                dropped.append(student_id)

        old = self.grid
        self.grid = grid
        self.seats = seats
        self._positions = positions
        if dropped:
            self.logger.info(f"Resize {old.rows}x{old.cols} -> {rows}x{cols} unplaced {len(dropped)} students")
        return dropped

    def clear(self):
        self._require_grid()
        self.seats = create_empty_seats(self.grid.rows, self.grid.cols)
        self._positions = {}

    def placed_students(self):
        return [s for s in self.roster if s.student_id in self._positions]

    def unplaced_students(self):
        """Roster members without a seat, in roster order."""
        return [s for s in self.roster if s.student_id not in self._positions]

    def empty_seats(self):
        self._require_grid()
        return [(row, col) for row, col in self.grid.positions() if self.seats[row][col] is None]

    def serialize(self):
        self._require_grid()
        return {
            "rows": self.grid.rows,
            "cols": self.grid.cols,
            "seats": [list(seat_row) for seat_row in self.seats],
        }

    def deserialize(self, blob):
        """
        Load a stored layout, filtering it the same way as ``initialize``.

        A missing blob gives a fresh layout of the default size; missing
        dimensions fall back to the defaults as well.
        """
        if blob is None:
            return self.initialize(config.DEFAULT_ROWS, config.DEFAULT_COLS)
        if not isinstance(blob, Mapping):
            raise InvalidLayout(f"Expected a mapping with rows, cols and seats, got {type(blob).__name__}")

        rows = blob.get("rows")
        cols = blob.get("cols")
        rows = config.DEFAULT_ROWS if rows is None else rows
        cols = config.DEFAULT_COLS if cols is None else cols
        try:
            rows, cols = int(rows), int(cols)
        except (TypeError, ValueError) as e:
            raise InvalidLayout(f"Layout dimensions are not integers: {rows!r}x{cols!r}") from e
        return self.initialize(rows, cols, blob.get("seats"))

    @classmethod
    def from_blob(cls, roster, blob):
        return cls(roster).deserialize(blob)

    def render_text(self):
        """Plain text view of the grid, one line per row."""
        self._require_grid()
        lines = []
        for seat_row in self.seats:
            cells = []
            for student_id in seat_row:
                if student_id is None:
                    cells.append("-")
                else:
                    cells.append(self._students[student_id].name)
            lines.append(" | ".join(cells))
        return "\n".join(lines)
