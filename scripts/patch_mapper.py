"""
patch_mapper.py — Map model-echoed code snippets back onto a file's patch.

GitHub's "list PR files" API returns a unified-diff `patch` per file. The
language model only sees the added lines and answers with a free-text
"code" snippet that may have lost or changed its indentation. This module
recovers where that snippet lives in new-file line numbers so a review
comment can be anchored to it, and which indentation it originally had so
a suggested fix can be rendered consistently.

All functions are pure and operate on one file's patch at a time.
"""

import re
from dataclasses import dataclass

HUNK_HEADER_RE = re.compile(
    r"^@@ -(?P<old_start>\d+)(?:,(?P<old_count>\d+))? \+(?P<new_start>\d+)(?:,(?P<new_count>\d+))? @@"
)
LEADING_WHITESPACE_RE = re.compile(r"^(\s+)")


@dataclass(frozen=True)
class LineLocation:
    """Inclusive new-file line range of a located snippet."""

    start_line: int | None = None
    end_line: int | None = None
    indentation: str | None = None

    @property
    def found(self) -> bool:
        return self.start_line is not None and self.end_line is not None


NOT_FOUND = LineLocation()


def _is_added(line: str) -> bool:
    return line.startswith("+") and not line.startswith("+++")


def parse_hunk_header(line: str) -> tuple[int, int] | None:
    """Return (new_start, new_count) for a hunk header, or None.

    An omitted count means a single-line hunk, as in `@@ -3 +3 @@`.
    """
    match = HUNK_HEADER_RE.match(line)
    if not match:
        return None
    new_count = match.group("new_count")
    return int(match.group("new_start")), int(new_count) if new_count is not None else 1


def extract_added_lines(patch: str | None) -> list[str]:
    """Return the content of every added line, `+` marker stripped, in order."""
    if not patch:
        return []
    return [line[1:] for line in patch.split("\n") if _is_added(line)]


def _normalize_snippet(snippet: str) -> list[str]:
    return [line.strip() for line in snippet.split("\n") if line.strip()]


def _find_line_range(patch: str, normalized: list[str]) -> tuple[int | None, int | None]:
    """Scan the patch for consecutive added lines equal to `normalized`.

    Commits to the first occurrence of the snippet's first line. A broken
    multi-line match is retried at the breaking line only; there is no
    backtracking to later occurrences.
    """
    current_line = 0
    start_line = None
    end_line = None
    matched = 0
    in_match = False
    wanted = len(normalized)

    for line in patch.split("\n"):
        if line.startswith("@@"):
            header = parse_hunk_header(line)
            if header:
                current_line = header[0]
            continue

        if _is_added(line):
            trimmed = line[1:].strip()

            if not in_match and trimmed == normalized[0]:
                start_line = current_line
                matched = 1
                in_match = True
                if wanted == 1:
                    end_line = current_line
                    break
            elif in_match and matched < wanted:
                if trimmed == normalized[matched]:
                    matched += 1
                    if matched == wanted:
                        end_line = current_line
                        break
                else:
                    in_match = False
                    matched = 0
                    start_line = None
                    # The breaking line may itself open a new match
                    if trimmed == normalized[0]:
                        start_line = current_line
                        matched = 1
                        in_match = True

            current_line += 1
        elif not line.startswith("-"):
            current_line += 1
            # Snippets only span consecutive added lines
            if in_match and matched < wanted:
                in_match = False
                matched = 0
                start_line = None

    if start_line is not None and end_line is None:
        if wanted == 1:
            end_line = start_line
        else:
            return None, None

    return start_line, end_line


def _recover_indentation(patch: str, snippet: str) -> str | None:
    original_lines = snippet.split("\n")
    first_line = next((line for line in original_lines if line.strip()), None)
    if first_line is None:
        return None

    match = LEADING_WHITESPACE_RE.match(first_line)
    if match:
        return match.group(1)

    # The model dropped the indentation; borrow it from the patch itself
    wanted = first_line.strip()
    for content in extract_added_lines(patch):
        if content.strip() == wanted:
            match = LEADING_WHITESPACE_RE.match(content)
            if match:
                return match.group(1)
            break
    return None


def locate_snippet(patch: str | None, snippet: str | None) -> LineLocation:
    """Find the added-line range a (possibly re-indented) snippet came from.

    Matching compares trimmed line content, ignores blank snippet lines and
    never crosses a context line. Returns NOT_FOUND for absent input or a
    partial multi-line match.
    """
    if not patch or not snippet:
        return NOT_FOUND

    normalized = _normalize_snippet(snippet)
    if not normalized:
        return NOT_FOUND

    start_line, end_line = _find_line_range(patch, normalized)
    # Added lines before any hunk header have no new-file line number
    if start_line is None or end_line is None or start_line < 1:
        return NOT_FOUND

    return LineLocation(start_line, end_line, _recover_indentation(patch, snippet))


def reformat_indentation(suggestion: str | None, indentation: str | None) -> str | None:
    """Re-indent every non-blank line of `suggestion` with `indentation`.

    Whatever indentation the suggestion arrived with is discarded; relative
    nesting inside the suggestion is not preserved.
    """
    if not suggestion or not indentation:
        return suggestion

    reformatted = []
    for line in suggestion.split("\n"):
        if not line.strip():
            reformatted.append("")
        else:
            reformatted.append(indentation + line.lstrip())
    return "\n".join(reformatted)


def last_line_number(patch: str | None) -> int:
    """Last new-file line covered by the final hunk of the patch (at least 1)."""
    if not patch:
        return 1

    last_line = 0
    for line in patch.split("\n"):
        if line.startswith("@@"):
            header = parse_hunk_header(line)
            if header:
                new_start, new_count = header
                last_line = new_start + new_count - 1
    return max(last_line, 1)
