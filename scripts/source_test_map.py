"""
source_test_map.py — Find the test file for each source file, and queue new tests.

Two mapping strategies share one interface, `map(sources, tests)`:
  - HeuristicMapper: naming convention (lib/a/b.ex -> test/a/b_test.exs)
  - ModelAssistedMapper: asks the model, falls back to the heuristic

`select_mapper` picks one by repository size. Suggested tests are queued in
a PendingTestFiles collector owned by the run and flushed once at the end.
"""

import textwrap
from pathlib import Path

from llm_client import ask_model
from model_response import parse_test_mapping
from prompts import MAPPING_SYSTEM_PROMPT, build_mapping_prompt

SKIP_DIRS = {".git", "node_modules", "_build", "deps", "cover", ".elixir_ls"}


# ---------------------------------------------------------------------------
# Repository map
# ---------------------------------------------------------------------------

def _walk(directory: Path, root: Path, files: list[str]):
    for entry in sorted(directory.iterdir()):
        if entry.is_dir():
            if entry.name in SKIP_DIRS:
                continue
            _walk(entry, root, files)
        elif entry.is_file():
            files.append(entry.relative_to(root).as_posix())


def generate_repo_map(root: Path) -> list[str]:
    """All repository files relative to root, skipping VCS and build directories."""
    files: list[str] = []
    try:
        _walk(root, root, files)
    except OSError as e:
        print(f"  Error generating repo map: {e}")
        return []
    return files


def split_repo_map(
    files: list[str], source_dir: str, test_suffix: str, extensions: list[str],
) -> tuple[list[str], list[str]]:
    """Partition the repo map into (source files, test files)."""
    sources, tests = [], []
    for f in files:
        if f.endswith(test_suffix):
            tests.append(f)
        elif f.endswith(tuple(extensions)) and source_dir in f.split("/")[:-1]:
            sources.append(f)
    return sources, tests


# ---------------------------------------------------------------------------
# Mapping strategies
# ---------------------------------------------------------------------------

class HeuristicMapper:
    """Map `<prefix>lib/<rest>.ex` to `<prefix>test/<rest>_test.exs`."""

    def __init__(self, source_dir: str = "lib", test_dir: str = "test", test_suffix: str = "_test.exs"):
        self.source_dir = source_dir
        self.test_dir = test_dir
        self.test_suffix = test_suffix

    def conventional_test_path(self, source: str) -> str | None:
        parts = source.split("/")
        if self.source_dir not in parts[:-1]:
            return None
        index = parts.index(self.source_dir)
        stem = Path(parts[-1]).stem
        test_parts = parts[:index] + [self.test_dir] + parts[index + 1:-1] + [stem + self.test_suffix]
        return "/".join(test_parts)

    def map(self, sources: list[str], tests: list[str]) -> dict[str, str | None]:
        known_tests = set(tests)
        mapping = {}
        for source in sources:
            candidate = self.conventional_test_path(source)
            mapping[source] = candidate if candidate in known_tests else None
        return mapping


class ModelAssistedMapper:
    """Ask the model for the mapping; anything it gets wrong uses the heuristic."""

    def __init__(self, client, model: str, max_tokens: int, fallback: HeuristicMapper):
        self.client = client
        self.model = model
        self.max_tokens = max_tokens
        self.fallback = fallback

    def map(self, sources: list[str], tests: list[str]) -> dict[str, str | None]:
        heuristic = self.fallback.map(sources, tests)
        if not sources:
            return heuristic

        reply = ask_model(
            self.client, build_mapping_prompt(sources, tests),
            MAPPING_SYSTEM_PROMPT, self.model, self.max_tokens,
        )
        if reply is None:
            return heuristic

        suggested = parse_test_mapping(reply).mappings
        known_tests = set(tests)
        mapping = {}
        for source in sources:
            test = suggested.get(source)
            mapping[source] = test if test in known_tests else heuristic[source]
        return mapping


def select_mapper(
    sources: list[str],
    tests: list[str],
    heuristic: HeuristicMapper,
    threshold: int,
    model_mapper: ModelAssistedMapper | None = None,
):
    """Model-assisted when available and the repo map fits one prompt."""
    if model_mapper is not None and len(sources) + len(tests) <= threshold:
        return model_mapper
    return heuristic


# ---------------------------------------------------------------------------
# Pending test files
# ---------------------------------------------------------------------------

def merge_test_blocks(existing: str, blocks: list[str]) -> str:
    """Content of a test file after adding `blocks` to it."""
    if not existing.strip():
        return "\n\n".join(blocks) + "\n"

    lines = existing.rstrip().split("\n")
    closing = lines[-1]
    if closing.strip() != "end":
        return existing.rstrip("\n") + "\n\n" + "\n\n".join(blocks) + "\n"

    indent = closing[: len(closing) - len(closing.lstrip())] + "  "
    body = []
    for block in blocks:
        body.append("")
        for line in textwrap.dedent(block).split("\n"):
            body.append(indent + line if line.strip() else "")
    return "\n".join(lines[:-1] + body + [closing]) + "\n"


class PendingTestFiles:
    """Suggested test code grouped by the test file it belongs in."""

    __test__ = False

    def __init__(self):
        self._pending: dict[str, list[str]] = {}
        self._sources: dict[str, set[str]] = {}

    def add(self, test_path: str, source_path: str, code: str):
        if not code.strip():
            return
        self._pending.setdefault(test_path, []).append(code.strip("\n"))
        self._sources.setdefault(test_path, set()).add(source_path)

    def sources_for(self, test_path: str) -> set[str]:
        return set(self._sources.get(test_path, set()))

    def __len__(self) -> int:
        return len(self._pending)

    def __iter__(self):
        return iter(self._pending.items())

    def flush(self, repo_root: Path) -> list[str]:
        """Add queued tests to their files, creating them as needed.

        A file whose last line is a closing `end` gets the tests inside that
        block, indented one level; anything else is appended to.
        """
        written = []
        for test_path, blocks in self._pending.items():
            target = repo_root / test_path
            try:
                target.parent.mkdir(parents=True, exist_ok=True)
                existing = target.read_text(encoding="utf-8") if target.exists() else ""
                target.write_text(merge_test_blocks(existing, blocks), encoding="utf-8")
            except OSError as e:
                print(f"  Warning: Could not write {test_path}: {e}")
                continue
            sources = ", ".join(sorted(self.sources_for(test_path)))
            print(f"  Wrote {len(blocks)} test(s) to {test_path} (for {sources})")
            written.append(test_path)
        self._pending.clear()
        self._sources.clear()
        return written
