#!/usr/bin/env python3
"""Create the record store schema and register programme definitions from JSON."""

import argparse
import json
import pathlib

from programme_engine.application.engine import ProgressionEngine
from programme_engine.domain.repositories import RecordStore
from programme_engine.infrastructure.di_container import get_container


def main() -> None:
    parser = argparse.ArgumentParser(
        description="Ensure the records table exists and load programme definitions",
    )
    parser.add_argument(
        "path",
        nargs="?",
        help="JSON file with one programme object or a list of programmes",
    )
    parser.add_argument(
        "--schema-only",
        action="store_true",
        help="Create the schema without loading programmes",
    )
    args = parser.parse_args()

    container = get_container()
    container.resolve(RecordStore).ensure_schema()
    if args.schema_only or not args.path:
        return

    data = json.loads(pathlib.Path(args.path).read_text(encoding="utf-8"))
    if isinstance(data, dict):
        data = data.get("programmes", [data])
    engine = container.resolve(ProgressionEngine)
    for programme in engine.register_programmes(data):
        print(f"Registered {programme.id} ({programme.duration_days} days)")


if __name__ == "__main__":
    main()
