import random

import pytest

from seatmap import config
from seatmap.errors import InvalidDimensions, InvalidLayout, OutOfBounds, UnknownStudent
from seatmap.layouts import SeatingLayoutEngine


def occupants(engine):
    return [sid for row in engine.seats for sid in row if sid is not None]


def unplaced_ids(engine):
    return [s.student_id for s in engine.unplaced_students()]


def test_initialize_builds_empty_grid(layout, roster):
    assert (layout.rows, layout.cols) == (5, 6)
    assert occupants(layout) == []
    assert unplaced_ids(layout) == [s.student_id for s in roster]


@pytest.mark.parametrize("rows,cols", [(0, 3), (3, 0), (-1, 2)])
def test_initialize_rejects_non_positive_dimensions(roster, rows, cols):
    with pytest.raises(InvalidDimensions):
        SeatingLayoutEngine(roster).initialize(rows, cols)


def test_assign_places_student(layout):
    assert layout.assign("a", 1, 2) is None
    assert layout.occupant(1, 2) == "a"
    assert layout.position_of("a") == (1, 2)
    assert "a" not in unplaced_ids(layout)


def test_assign_moves_student_out_of_previous_seat(layout):
    layout.assign("a", 0, 0)
    layout.assign("a", 3, 4)
    assert layout.occupant(0, 0) is None
    assert layout.occupant(3, 4) == "a"
    assert occupants(layout) == ["a"]


def test_assign_onto_occupied_seat_evicts_without_relocating(layout):
    layout.assign("b", 2, 2)
    evicted = layout.assign("a", 2, 2)

    assert evicted == "b"
    assert layout.occupant(2, 2) == "a"
    assert layout.position_of("b") is None
    assert "b" in unplaced_ids(layout)
    assert occupants(layout) == ["a"]


def test_assign_same_seat_again_is_stable(layout):
    layout.assign("a", 1, 1)
    assert layout.assign("a", 1, 1) is None
    assert layout.occupant(1, 1) == "a"


def test_assign_unknown_student(layout):
    with pytest.raises(UnknownStudent):
        layout.assign("zz", 0, 0)


@pytest.mark.parametrize("row,col", [(5, 0), (0, 6), (-1, 0), (0, -1)])
def test_assign_out_of_bounds(layout, row, col):
    with pytest.raises(OutOfBounds):
        layout.assign("a", row, col)
    assert occupants(layout) == []


def test_failed_assign_leaves_previous_seat(layout):
    layout.assign("a", 0, 0)
    with pytest.raises(OutOfBounds):
        layout.assign("a", 9, 9)
    assert layout.occupant(0, 0) == "a"


def test_unassign(layout):
    layout.assign("c", 4, 5)
    assert layout.unassign(4, 5) == "c"
    assert layout.occupant(4, 5) is None
    assert "c" in unplaced_ids(layout)


def test_unassign_empty_seat_is_noop(layout):
    assert layout.unassign(0, 0) is None


def test_unassign_out_of_bounds(layout):
    with pytest.raises(OutOfBounds):
        layout.unassign(5, 5)


def test_no_student_ever_holds_two_seats(roster):
    engine = SeatingLayoutEngine(roster).initialize(3, 3)
    rng = random.Random(7)
    ids = [s.student_id for s in roster]

    for _ in range(300):
        engine.assign(rng.choice(ids), rng.randrange(3), rng.randrange(3))
        seated = occupants(engine)
        assert len(seated) == len(set(seated))
        for sid in seated:
            row, col = engine.position_of(sid)
            assert engine.occupant(row, col) == sid


def test_resize_keeps_overlap_and_unplaces_the_rest(layout):
    layout.assign("a", 0, 0)
    layout.assign("b", 4, 5)
    layout.assign("c", 2, 3)

    dropped = layout.resize(3, 4)

    assert (layout.rows, layout.cols) == (3, 4)
    assert dropped == ["b"]
    assert layout.occupant(0, 0) == "a"
    assert layout.occupant(2, 3) == "c"
    assert unplaced_ids(layout) == ["b", "d"]


def test_resize_to_three_by_three_drops_column_three(layout):
    layout.assign("a", 0, 0)
    layout.assign("b", 4, 5)
    layout.assign("c", 2, 3)

    dropped = layout.resize(3, 3)

    assert sorted(dropped) == ["b", "c"]
    assert occupants(layout) == ["a"]


def test_resize_grow_keeps_everyone(layout):
    layout.assign("d", 4, 5)
    assert layout.resize(8, 8) == []
    assert layout.occupant(4, 5) == "d"
    assert layout.occupant(7, 7) is None


@pytest.mark.parametrize("rows,cols", [(0, 2), (2, 0)])
def test_resize_rejects_non_positive(layout, rows, cols):
    layout.assign("a", 0, 0)
    with pytest.raises(InvalidDimensions):
        layout.resize(rows, cols)
    assert (layout.rows, layout.cols) == (5, 6)
    assert layout.occupant(0, 0) == "a"


def test_resize_above_maximum_is_rejected(layout):
    layout.assign("a", 0, 0)
    with pytest.raises(InvalidDimensions, match="at most"):
        layout.resize(config.MAX_ROWS + 1, 2)
    with pytest.raises(InvalidDimensions):
        layout.resize(2, 2000)
    assert (layout.rows, layout.cols) == (5, 6)
    assert layout.occupant(0, 0) == "a"


def test_maximum_dimensions_come_from_config(roster, monkeypatch):
    monkeypatch.setattr(config, "MAX_ROWS", 3)
    monkeypatch.setattr(config, "MAX_COLS", 3)

    assert SeatingLayoutEngine(roster).initialize(3, 3).rows == 3
    with pytest.raises(InvalidDimensions):
        SeatingLayoutEngine(roster).initialize(4, 3)
    with pytest.raises(InvalidDimensions):
        SeatingLayoutEngine(roster).deserialize({"rows": 3, "cols": 4, "seats": []})


def test_clear_empties_all_and_keeps_dimensions(layout, roster):
    layout.assign("a", 0, 0)
    layout.assign("b", 1, 1)
    layout.clear()

    assert (layout.rows, layout.cols) == (5, 6)
    assert occupants(layout) == []
    assert unplaced_ids(layout) == [s.student_id for s in roster]


def test_unplaced_and_placed_partition_roster(layout, roster):
    layout.assign("c", 0, 1)
    layout.assign("a", 3, 3)

    placed = {s.student_id for s in layout.placed_students()}
    unplaced = set(unplaced_ids(layout))
    assert placed == set(occupants(layout))
    assert placed & unplaced == set()
    assert placed | unplaced == {s.student_id for s in roster}


def test_unplaced_follows_roster_order(layout):
    layout.assign("b", 0, 0)
    assert unplaced_ids(layout) == ["a", "c", "d"]


def test_serialize_shape(layout):
    layout.assign("a", 0, 1)
    blob = layout.serialize()

    assert blob["rows"] == 5
    assert blob["cols"] == 6
    assert len(blob["seats"]) == 5
    assert all(len(row) == 6 for row in blob["seats"])
    assert blob["seats"][0][1] == "a"


def test_serialize_is_a_copy(layout):
    blob = layout.serialize()
    blob["seats"][0][0] = "a"
    assert layout.occupant(0, 0) is None


def test_round_trip(layout, roster):
    layout.assign("a", 0, 0)
    layout.assign("d", 4, 5)
    layout.assign("c", 2, 3)

    restored = SeatingLayoutEngine(roster).deserialize(layout.serialize())

    assert restored.serialize() == layout.serialize()
    assert unplaced_ids(restored) == unplaced_ids(layout)


def test_deserialize_drops_students_no_longer_on_roster(roster):
    blob = {"rows": 2, "cols": 2, "seats": [["a", "gone"], [None, "b"]]}
    engine = SeatingLayoutEngine(roster).deserialize(blob)

    assert engine.serialize()["seats"] == [["a", None], [None, "b"]]


def test_deserialize_drops_out_of_bounds_cells(roster):
    blob = {"rows": 1, "cols": 2, "seats": [["a", None, "b"], ["c", "d"]]}
    engine = SeatingLayoutEngine(roster).deserialize(blob)

    assert engine.serialize() == {"rows": 1, "cols": 2, "seats": [["a", None]]}
    assert unplaced_ids(engine) == ["b", "c", "d"]


def test_deserialize_keeps_first_copy_of_duplicated_student(roster):
    blob = {"rows": 2, "cols": 2, "seats": [[None, "a"], ["a", "b"]]}
    engine = SeatingLayoutEngine(roster).deserialize(blob)

    assert engine.position_of("a") == (0, 1)
    assert engine.occupant(1, 0) is None


def test_deserialize_pads_ragged_and_malformed_rows(roster):
    blob = {"rows": 3, "cols": 3, "seats": [["a"], "garbage", None]}
    engine = SeatingLayoutEngine(roster).deserialize(blob)

    assert engine.serialize()["seats"] == [["a", None, None], [None] * 3, [None] * 3]


def test_deserialize_drops_unhashable_seat_entries(roster):
    blob = {"rows": 1, "cols": 3, "seats": [[["a"], "b", {"id": "c"}]]}
    engine = SeatingLayoutEngine(roster).deserialize(blob)

    assert engine.serialize()["seats"] == [[None, "b", None]]
    assert unplaced_ids(engine) == ["a", "c", "d"]


def test_deserialize_none_gives_default_layout(roster):
    engine = SeatingLayoutEngine(roster).deserialize(None)
    assert (engine.rows, engine.cols) == (config.DEFAULT_ROWS, config.DEFAULT_COLS)
    assert occupants(engine) == []


def test_deserialize_missing_dimensions_use_defaults(roster, monkeypatch):
    monkeypatch.setattr(config, "DEFAULT_ROWS", 2)
    monkeypatch.setattr(config, "DEFAULT_COLS", 3)
    engine = SeatingLayoutEngine(roster).deserialize({"seats": [["b"]]})

    assert (engine.rows, engine.cols) == (2, 3)
    assert engine.occupant(0, 0) == "b"


def test_deserialize_rejects_non_mapping(roster):
    with pytest.raises(InvalidLayout):
        SeatingLayoutEngine(roster).deserialize([["a"]])


def test_deserialize_rejects_zero_rows(roster):
    with pytest.raises(InvalidDimensions):
        SeatingLayoutEngine(roster).deserialize({"rows": 0, "cols": 4, "seats": []})


def test_initialize_accepts_coordinate_mapping(roster):
    engine = SeatingLayoutEngine(roster).initialize(2, 2, {(0, 0): "a", (1, 1): "b", (5, 5): "c", (0, 1): "nobody"})

    assert engine.occupant(0, 0) == "a"
    assert engine.occupant(1, 1) == "b"
    assert engine.occupant(0, 1) is None
    assert unplaced_ids(engine) == ["c", "d"]


def test_roster_duplicates_are_ignored(roster):
    engine = SeatingLayoutEngine(roster + [roster[0]]).initialize(1, 1)
    assert len(engine.roster) == 4


def test_operations_need_initialize(roster):
    with pytest.raises(InvalidLayout):
        SeatingLayoutEngine(roster).assign("a", 0, 0)


def test_render_text(roster):
    engine = SeatingLayoutEngine(roster).initialize(1, 2)
    engine.assign("b", 0, 1)
    assert engine.render_text() == "- | Bruno Lima"
