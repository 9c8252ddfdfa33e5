from seatmap import config
from seatmap.errors import InvalidDimensions, OutOfBounds


class Student:
    def __init__(self, student_id, name, is_leader=False, is_vice_leader=False, photo_ref=None):
        self.student_id = student_id
        self.name = name
        self.is_leader = is_leader
        self.is_vice_leader = is_vice_leader
        self.photo_ref = photo_ref

    def to_dict(self):
        return {
            "id": self.student_id,
            "name": self.name,
            "is_leader": self.is_leader,
            "is_vice_leader": self.is_vice_leader,
            "photo_ref": self.photo_ref,
        }

    def __repr__(self):
        return f"Student({self.student_id!r}, {self.name!r})"


class Grid:
    def __init__(self, rows, cols):
        if rows < 1 or cols < 1:
            raise InvalidDimensions(rows, cols)
        if rows > config.MAX_ROWS or cols > config.MAX_COLS:
            raise InvalidDimensions(
                rows, cols, f"Grid can be at most {config.MAX_ROWS}x{config.MAX_COLS}, got {rows}x{cols}"
            )
        self.rows = rows
        self.cols = cols

    def contains(self, row, col):
        return 0 <= row < self.rows and 0 <= col < self.cols

    def check(self, row, col):
        if not self.contains(row, col):
            raise OutOfBounds(row, col, self.rows, self.cols)

    def positions(self):
        """Every (row, col) in row-major order."""
        for row in range(self.rows):
            for col in range(self.cols):
                yield row, col

    def __repr__(self):
        return f"Grid({self.rows}x{self.cols})"
