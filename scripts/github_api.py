"""
github_api.py — Pull-request files in, review comments out, via `gh api`.

The gh CLI authenticates with GITHUB_TOKEN from the environment.
"""

import json
import subprocess
import tempfile
from pathlib import Path

COMMENT_PAYLOAD_PATH = Path(tempfile.gettempdir()) / "ai-review-comment.json"


class GitHubAPIError(Exception):
    """A gh api call whose result the caller depends on failed."""


def _gh_api(args: list[str], timeout: int = 15) -> tuple[int, str, str]:
    """Run gh api command."""
    try:
        result = subprocess.run(
            ["gh", "api"] + args,
            capture_output=True, text=True, timeout=timeout,
        )
        return result.returncode, result.stdout, result.stderr
    except subprocess.TimeoutExpired:
        return -1, "", "timeout"
    except (OSError, subprocess.SubprocessError) as e:
        return -1, "", str(e)


def list_pr_files(repo: str, pr_number: str) -> list[dict]:
    """Return `{filename, status, patch?}` for every file in the PR."""
    rc, stdout, stderr = _gh_api([
        f"repos/{repo}/pulls/{pr_number}/files",
        "--paginate",
        "--jq", ".[] | {filename, status, patch}",
    ], timeout=60)
    if rc != 0:
        raise GitHubAPIError(f"Could not list files for {repo}#{pr_number}: {stderr[:200]}")

    files = []
    for line in stdout.splitlines():
        line = line.strip()
        if not line:
            continue
        try:
            files.append(json.loads(line))
        except json.JSONDecodeError as e:
            raise GitHubAPIError(f"Unexpected gh output for PR files: {e}") from e
    return files


def get_head_commit(repo: str, pr_number: str) -> str:
    """Get the HEAD commit SHA for a PR."""
    rc, stdout, stderr = _gh_api([
        f"repos/{repo}/pulls/{pr_number}",
        "--jq", ".head.sha",
    ])
    sha = stdout.strip() if rc == 0 else ""
    if not sha:
        raise GitHubAPIError(f"Could not read HEAD commit of {repo}#{pr_number}: {stderr[:200]}")
    return sha


def build_comment_payload(
    path: str, commit_id: str, start_line: int | None, end_line: int, body: str,
) -> dict:
    """Line-anchored review comment; multi-line when start_line differs from end_line."""
    payload: dict = {
        "body": body,
        "commit_id": commit_id,
        "path": path,
        "line": end_line,
        "side": "RIGHT",
    }
    if start_line and start_line != end_line:
        payload["start_line"] = start_line
        payload["start_side"] = "RIGHT"
    return payload


def create_review_comment(repo: str, pr_number: str, payload: dict) -> bool:
    """Post a single review comment on a PR. Failures are logged, not raised."""
    COMMENT_PAYLOAD_PATH.write_text(json.dumps(payload, ensure_ascii=False))
    rc, _, stderr = _gh_api([
        f"repos/{repo}/pulls/{pr_number}/comments",
        "--input", str(COMMENT_PAYLOAD_PATH), "--method", "POST",
    ])
    if rc != 0:
        print(f"    Error posting comment on {payload['path']}:{payload['line']}: {stderr[:200]}")
    return rc == 0
