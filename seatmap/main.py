import argparse
import json
import logging

from seatmap import config
from seatmap.allocator import fill_empty_seats
from seatmap.assets import PhotoResolver
from seatmap.errors import RosterImportError, SeatingError
from seatmap.layouts import SeatingLayoutEngine
from seatmap.renderer import LayoutRenderer, write_pdf
from seatmap.student_import import read_roster_file, roster_from_frame


def build_parser():
    parser = argparse.ArgumentParser(description="Render a classroom seating chart from a roster file")
    parser.add_argument("roster", help="CSV or Excel file with one student per row")
    parser.add_argument("--layout", help="saved seat map JSON to start from")
    parser.add_argument("--rows", type=int, default=config.DEFAULT_ROWS)
    parser.add_argument("--cols", type=int, default=config.DEFAULT_COLS)
    parser.add_argument("--auto-fill", action="store_true", help="seat unplaced students on empty seats")
    parser.add_argument("--photos", help="directory holding student photos")
    parser.add_argument("--title", default="Seating Chart")
    parser.add_argument("--subtitle", default="")
    parser.add_argument("--save-layout", help="write the resulting seat map JSON here")
    parser.add_argument("--out", required=True, help="PDF file to write")
    return parser


def main(argv=None):
    parser = build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(level=config.LOG_LEVEL)

    try:
        students = roster_from_frame(read_roster_file(args.roster))
        engine = SeatingLayoutEngine(students)

        if args.layout:
            with open(args.layout, encoding="utf-8") as f:
                engine.deserialize(json.load(f))
        else:
            engine.initialize(args.rows, args.cols)
    except (SeatingError, RosterImportError, json.JSONDecodeError) as e:
        parser.error(str(e))

    if args.auto_fill:
        fill_empty_seats(engine)

    print("\n--- Seat Map ---")
    print(engine.render_text())

    unplaced = engine.unplaced_students()
    if unplaced:
        print(f"\n--- Unplaced ({len(unplaced)}) ---")
        for s in unplaced:
            print(f"{s.student_id}: {s.name}")

    if args.save_layout:
        with open(args.save_layout, "w", encoding="utf-8") as f:
            json.dump(engine.serialize(), f)

    resolver = PhotoResolver(args.photos) if args.photos else None
    document = LayoutRenderer(asset_resolver=resolver).render(engine, engine.student, args.title, args.subtitle)
    write_pdf(document, args.out)
    print(f"\nWrote {args.out}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
