#!/usr/bin/env python
"""Page through a sqlite query with QueryLoader from the command line.

Usage: python scripts/page_sqlite_query.py /path/to/db.sqlite "SELECT * FROM t ORDER BY id" --per-page 20
"""

import argparse
import sys
from pathlib import Path

from PySide6.QtCore import QCoreApplication, QTimer

from query_loader.engine import QueryLoader, SqliteQuerySource
from query_loader.settings_manager import LoaderSettings


def main() -> int:
    parser = argparse.ArgumentParser()
    parser.add_argument("db_path")
    parser.add_argument("sql", help="SELECT with ORDER BY and without LIMIT/OFFSET")
    parser.add_argument("--per-page", type=int, default=None, help="rows per page (0 = everything at once)")
    parser.add_argument("--pages", type=int, default=1, help="number of pages to print")
    parser.add_argument("--all", action="store_true", help="fetch every row in batches")
    parser.add_argument("--settings", default=None, help="optional loader settings JSON")
    args = parser.parse_args()

    db_path = Path(args.db_path)
    if not db_path.exists():
        print("DB file does not exist:", db_path)
        return 1

    app = QCoreApplication(sys.argv[:1])
    source = SqliteQuerySource(db_path, args.sql)
    if args.settings:
        loader = QueryLoader.from_settings(LoaderSettings(args.settings), source)
    else:
        loader = QueryLoader(source)
    if args.per_page is not None:
        loader.set_page_size(args.per_page)
    if args.all:
        loader.set_exhaustive_mode(True)

    state = {"pages": 0, "printed": 0, "rc": 0}

    def on_rows(rows: tuple) -> None:
        for row in rows[state["printed"] :]:
            print(row)
        state["printed"] = len(rows)
        state["pages"] += 1
        if state["pages"] < args.pages and loader.has_next_page():
            loader.request_next_page()
        else:
            app.quit()

    def on_error(err: object) -> None:
        print("query failed:", err, file=sys.stderr)
        state["rc"] = 1

    loader.result_ready.connect(on_rows)
    loader.load_failed.connect(on_error)
    QTimer.singleShot(0, loader.start)
    app.exec()
    loader.shutdown()
    return state["rc"]


if __name__ == "__main__":
    raise SystemExit(main())
