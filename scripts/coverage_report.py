"""
coverage_report.py — Read per-line coverage exported by the test suite.

Expected format (e.g. from excoveralls' JSON export):

    [
      {"file": "lib/app/accounts.ex", "lines": [[1, true], [2, false], [3, null]]}
    ]

A `false` flag marks an uncovered line; `null` marks a non-executable one.
"""

import json
from pathlib import Path


def load_coverage(coverage_path: Path) -> list[dict]:
    """Load coverage records; a missing or unreadable file yields no records."""
    if not coverage_path.exists():
        print(f"  Coverage file not found at {coverage_path}")
        return []

    try:
        data = json.loads(coverage_path.read_text(encoding="utf-8"))
    except (OSError, ValueError) as e:
        print(f"  Error loading coverage data: {e}")
        return []

    if not isinstance(data, list):
        print(f"  Warning: Coverage data in {coverage_path} is not a list, ignoring it")
        return []

    records = [item for item in data if isinstance(item, dict)]
    print(f"  Loaded coverage data for {len(records)} files from {coverage_path}")
    return records


def find_file_coverage(records: list[dict], filename: str) -> dict | None:
    return next((item for item in records if item.get("file") == filename), None)


def uncovered_lines(record: dict | None) -> list[int]:
    """Line numbers whose covered flag is exactly `false`."""
    if not record:
        return []
    uncovered = []
    for entry in record.get("lines") or []:
        if isinstance(entry, (list, tuple)) and len(entry) >= 2 and entry[1] is False:
            uncovered.append(entry[0])
    return uncovered
