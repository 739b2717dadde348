"""
ignore_patterns.py — Exclude files from analysis with glob-like patterns.

Patterns come from an optional ignore file in the consuming repo
(default: .ai-analyzer-ignore), one per line:

    # generated code
    *.min.js
    node_modules/*
    priv/static/?.css

`*` matches any run of characters (including `/`), `?` matches one
character, everything else is literal. A pattern matching a directory
prefix of a path ignores everything below it.
"""

import re
from pathlib import Path


def compile_pattern(pattern: str) -> re.Pattern:
    """Compile one glob-like pattern into an anchored regex."""
    parts = []
    for char in pattern:
        if char == "*":
            parts.append(".*")
        elif char == "?":
            parts.append(".")
        else:
            parts.append(re.escape(char))
    return re.compile("^" + "".join(parts) + "$")


def _ancestor_paths(filename: str) -> list[str]:
    parts = filename.split("/")
    return ["/".join(parts[:i]) for i in range(1, len(parts))]


def should_ignore(filename: str, patterns: list[str]) -> bool:
    """True if the file, or any of its ancestor directories, matches a pattern."""
    if not patterns:
        return False

    ancestors = _ancestor_paths(filename)
    for pattern in patterns:
        regex = compile_pattern(pattern)
        if regex.fullmatch(filename):
            return True
        if any(regex.fullmatch(ancestor) for ancestor in ancestors):
            return True
    return False


def parse_ignore_file(content: str) -> list[str]:
    """Trimmed, non-blank, non-comment lines of an ignore file."""
    patterns = []
    for line in content.split("\n"):
        line = line.strip()
        if line and not line.startswith("#"):
            patterns.append(line)
    return patterns


def load_ignore_patterns(ignore_path: Path) -> list[str]:
    """Load ignore patterns; a missing or unreadable file ignores nothing."""
    if not ignore_path.exists():
        print(f"  No {ignore_path.name} file found, analyzing all files")
        return []

    try:
        patterns = parse_ignore_file(ignore_path.read_text(encoding="utf-8"))
    except (OSError, UnicodeDecodeError) as e:
        print(f"  Warning: Could not load ignore patterns from {ignore_path}: {e}")
        return []

    print(f"  Loaded {len(patterns)} ignore patterns from {ignore_path.name}")
    return patterns
