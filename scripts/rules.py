"""
rules.py — Load the project's coding rules.

Each Markdown file under the rules directory is one rule. Its ID is the
file name without extension and its title is the first level-1 heading:

    .ai-code-rules/
        no-io-inspect.md      # "# Do not leave IO.inspect calls"
        naming/modules.md
"""

import re
from pathlib import Path

H1_RE = re.compile(r"^#\s+(.+?)\s*#*\s*$")


def extract_title(content: str, fallback: str) -> str:
    """First `# Heading` outside fenced code blocks, else the fallback."""
    in_fence = False
    for line in content.split("\n"):
        if line.lstrip().startswith("```"):
            in_fence = not in_fence
            continue
        if in_fence:
            continue
        match = H1_RE.match(line)
        if match:
            return match.group(1)
    return fallback


def load_rules(rules_dir: Path, repo_root: Path) -> list[dict]:
    """Return `{id, title, content, path}` for every Markdown rule, sorted by path."""
    if not rules_dir.is_dir():
        print(f"  Rules directory not found: {rules_dir}")
        return []

    rules = []
    for rule_file in sorted(rules_dir.rglob("*.md")):
        if not rule_file.is_file():
            continue
        content = rule_file.read_text(encoding="utf-8")
        try:
            rel_path = str(rule_file.relative_to(repo_root))
        except ValueError:
            rel_path = str(rule_file)
        rules.append({
            "id": rule_file.stem,
            "title": extract_title(content, rule_file.stem),
            "content": content,
            "path": rel_path,
        })
    return rules
