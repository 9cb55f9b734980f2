"""Tạo database MySQL (nếu chưa có) và áp dụng schema cho máy chủ điểm danh QR."""

from __future__ import annotations

import argparse
import importlib
import sys
from pathlib import Path
from typing import Optional, Sequence

REPO_ROOT = Path(__file__).resolve().parents[1]
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

from config import get_settings_module

from src.qr_attendance.qr_attendance.database.bootstrap import apply_schema, list_tables

REQUIRED_TABLES = ("events", "attendance")


def _parse_args(argv: Optional[Sequence[str]]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Apply the attendance server schema to MySQL")
    parser.add_argument(
        "--schema",
        type=Path,
        default=REPO_ROOT / "database" / "schema.sql",
        help="SQL file to apply (default: database/schema.sql)",
    )
    return parser.parse_args(argv)


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = _parse_args(argv)
    if not args.schema.is_file():
        print(f"Schema file not found: {args.schema}")
        return 2

    settings = importlib.import_module(get_settings_module())
    db_config = dict(settings.DB_CONFIG)

    apply_schema(db_config, schema_path=args.schema)
    tables = list_tables(db_config)
    target = f"{db_config.get('host')}:{db_config.get('port', 3306)}/{db_config.get('database')}"
    print(f"Schema {args.schema.name} applied to {target}")
    print("Tables: " + ", ".join(sorted(tables)))

    missing = [t for t in REQUIRED_TABLES if t not in tables]
    if missing:
        print("Missing tables: " + ", ".join(missing))
        return 1
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
