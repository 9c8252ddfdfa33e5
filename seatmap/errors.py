class SeatingError(Exception):
    """Base class for seat map editing errors."""


class InvalidDimensions(SeatingError):
    def __init__(self, rows, cols, message=None):
        self.rows = rows
        self.cols = cols
        super().__init__(message or f"Grid must have at least one row and one column, got {rows}x{cols}")


class OutOfBounds(SeatingError):
    def __init__(self, row, col, rows, cols):
        self.row = row
        self.col = col
        super().__init__(f"Seat ({row}, {col}) is outside the {rows}x{cols} grid")


class UnknownStudent(SeatingError):
    def __init__(self, student_id):
        self.student_id = student_id
        super().__init__(f"Student {student_id!r} is not in the classroom roster")


class InvalidLayout(SeatingError):
    pass


class ClassroomNotFound(Exception):
    def __init__(self, classroom_id):
        self.classroom_id = classroom_id
        super().__init__(f"Classroom {classroom_id} not found")


class StudentNotFound(Exception):
    def __init__(self, student_id):
        self.student_id = student_id
        super().__init__(f"Student {student_id} not found")


class LayoutStoreError(Exception):
    pass


class RosterImportError(Exception):
    pass
