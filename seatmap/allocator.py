def fill_empty_seats(engine):
    """
    Seat every unplaced student, in roster order, on the empty seats in
    row-major order. Occupied seats are never touched.

    Returns a list of placements: {"student": Student, "row": r, "col": c}.
    """
    placements = []
    empty = engine.empty_seats()
    index = 0

    for student in engine.unplaced_students():
        if index >= len(empty):
            break

        row, col = empty[index]
        engine.assign(student.student_id, row, col)
        placements.append({
            "student": student,
            "row": row,
            "col": col
        })

        index += 1
    return placements
