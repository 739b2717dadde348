#!/usr/bin/env python3
"""
analyze-code.py — Check PR changes against project rules and post fixes inline.

For every changed file in the pull request:
1. Skip ignored, removed, and files without added lines
2. Send the added lines (plus the full file for context) and the rules to Claude
3. Map each reported snippet back onto the patch's new-file line numbers
4. Re-indent the suggested fix to match the original code
5. Post it as a line- or range-anchored review comment with a suggestion block

Supports dry-run mode with AI_REVIEW_DRY_RUN=true (no model or comment calls).
"""

import os
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parent))
from config_loader import get_repo_root, is_dry_run, load_config
from github_api import (
    GitHubAPIError,
    build_comment_payload,
    create_review_comment,
    get_head_commit,
    list_pr_files,
)
from ignore_patterns import load_ignore_patterns, should_ignore
from llm_client import ask_model, create_client, model_settings
from model_response import CodeReviewResult, ReviewIssue, parse_code_review
from patch_mapper import extract_added_lines, locate_snippet, reformat_indentation
from prompts import REVIEW_SYSTEM_PROMPT, build_review_prompt
from rules import load_rules


def read_full_file(repo_root: Path, filename: str) -> str:
    """Current content of a changed file, or "" when it can't be read."""
    try:
        return (repo_root / filename).read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        print(f"  Warning: Could not read file {filename}: {e}")
        return ""


def format_comment_body(issue: ReviewIssue, suggestion: str | None, rule_link: str) -> str:
    return (
        f"## AI Code Review: {issue.rule_id}\n\n"
        f"{issue.explanation}\n\n"
        "### Suggestion:\n"
        "```suggestion\n"
        f"{suggestion or ''}\n"
        "```\n\n"
        f"[View rule]({rule_link})"
    )


def build_issue_comment(
    path: str, patch: str, issue: ReviewIssue, commit_id: str, rules_by_id: dict[str, dict],
) -> dict | None:
    """Review-comment payload for one issue, or None if its code isn't in the patch."""
    location = locate_snippet(patch, issue.code)
    if not location.found:
        return None

    suggestion = reformat_indentation(issue.suggestion, location.indentation)
    rule = rules_by_id.get(issue.rule_id)
    rule_link = rule["path"] if rule else f"{issue.rule_id}.md"
    body = format_comment_body(issue, suggestion, rule_link)
    return build_comment_payload(path, commit_id, location.start_line, location.end_line, body)


def analyze_file(client, added_code: str, rules: list[dict], full_file: str, config: dict) -> CodeReviewResult:
    model, max_tokens = model_settings(config)
    prompt = build_review_prompt(added_code, rules, full_file)
    reply = ask_model(client, prompt, REVIEW_SYSTEM_PROMPT, model, max_tokens)
    if reply is None:
        return CodeReviewResult.empty()
    return parse_code_review(reply)


def post_issue_comments(
    repo: str, pr_number: str, commit_id: str, file: dict,
    result: CodeReviewResult, rules_by_id: dict[str, dict],
) -> tuple[int, int]:
    """Post one comment per located issue. Returns (posted, unlocated)."""
    posted = 0
    unlocated = 0
    for issue in result.issues:
        payload = build_issue_comment(file["filename"], file.get("patch"), issue, commit_id, rules_by_id)
        if payload is None:
            print(f"    Could not find line numbers for {issue.rule_id} issue in {file['filename']}")
            unlocated += 1
            continue

        anchor = f"{payload.get('start_line', payload['line'])}-{payload['line']}"
        print(f"    Posting comment on {file['filename']}:{anchor}")
        if create_review_comment(repo, pr_number, payload):
            posted += 1
    return posted, unlocated


def review_files(
    files: list[dict],
    rules: list[dict],
    ignore_patterns: list[str],
    config: dict,
    repo_root: Path,
    client=None,
    repo: str = "",
    pr_number: str = "",
    commit_id: str = "",
) -> dict:
    """Analyze each PR file in turn. Without a client, only report what would be sent."""
    read_full = config.get("analyzer", {}).get("read_full_file", True)
    rules_by_id = {rule["id"]: rule for rule in rules}
    stats = {"files_analyzed": 0, "issues": 0, "comments_posted": 0, "unlocated": 0}

    for file in files:
        filename = file["filename"]
        if should_ignore(filename, ignore_patterns):
            print(f"  Skipping ignored file: {filename}")
            continue
        if file.get("status") == "removed":
            continue

        added_lines = extract_added_lines(file.get("patch"))
        if not added_lines:
            continue

        full_file = read_full_file(repo_root, filename) if read_full else ""
        added_code = "\n".join(added_lines)
        print(f"  Analyzing {filename} ({len(added_lines)} added lines)")
        stats["files_analyzed"] += 1

        if client is None:
            prompt = build_review_prompt(added_code, rules, full_file)
            print(f"    [DRY RUN] Prompt: ~{len(prompt) // 4} tokens")
            continue

        result = analyze_file(client, added_code, rules, full_file, config)
        stats["issues"] += len(result.issues)
        if not result.issues:
            continue

        posted, unlocated = post_issue_comments(repo, pr_number, commit_id, file, result, rules_by_id)
        stats["comments_posted"] += posted
        stats["unlocated"] += unlocated

    return stats


def write_step_summary(stats: dict, dry_run: bool):
    summary_file = os.environ.get("GITHUB_STEP_SUMMARY", "")
    if not summary_file:
        return
    with open(summary_file, "a") as f:
        f.write(f"\n## AI Code Review{' (Dry Run)' if dry_run else ''}\n\n")
        f.write(f"- Files analyzed: {stats['files_analyzed']}\n")
        f.write(f"- Issues found: {stats['issues']}\n")
        f.write(f"- Comments posted: {stats['comments_posted']}\n")
        if stats["unlocated"]:
            f.write(f"- Issues not located in the diff: {stats['unlocated']}\n")


# ---------------------------------------------------------------------------
# Main
# ---------------------------------------------------------------------------

def main():
    print("=== AI Code Analyzer starting ===")

    config = load_config()
    repo_root = get_repo_root()
    analyzer_config = config.get("analyzer", {})
    rules_path = analyzer_config.get("rules_path", ".ai-code-rules")

    github_token = os.environ.get("GITHUB_TOKEN") or os.environ.get("GH_TOKEN")
    repo = os.environ.get("GITHUB_REPOSITORY", "")
    pr_number = os.environ.get("PR_NUMBER", "")
    dry_run = is_dry_run()

    print("Inputs received:")
    print(f"- github-token: {'set' if github_token else 'not set'}")
    print(f"- anthropic-api-key: {'set' if os.environ.get('ANTHROPIC_API_KEY') else 'not set'}")
    print(f"- rules-path: {rules_path}")

    if not github_token:
        print("ERROR: GitHub token is required. Please set GITHUB_TOKEN environment variable.")
        sys.exit(1)
    if not repo or not pr_number:
        print("ERROR: Missing required environment variables: GITHUB_REPOSITORY or PR_NUMBER")
        sys.exit(1)
    if not dry_run and not os.environ.get("ANTHROPIC_API_KEY"):
        print("ERROR: Anthropic API key is required. Please set ANTHROPIC_API_KEY or enable AI_REVIEW_DRY_RUN.")
        sys.exit(1)

    print(f"Processing PR #{pr_number} in {repo}")

    rules = load_rules(repo_root / rules_path, repo_root)
    if not rules:
        print(f"No rules found in {rules_path}")
        return
    print(f"Loaded {len(rules)} rules from {rules_path}")

    ignore_patterns = load_ignore_patterns(
        repo_root / analyzer_config.get("ignore_file", ".ai-analyzer-ignore")
    )

    try:
        files = list_pr_files(repo, pr_number)
        commit_id = "" if dry_run else get_head_commit(repo, pr_number)
    except GitHubAPIError as e:
        print(f"ERROR: {e}")
        sys.exit(1)

    if dry_run:
        print("=== DRY RUN MODE (AI_REVIEW_DRY_RUN enabled) ===")
        client = None
    else:
        print(f"Using latest commit ID from PR: {commit_id}")
        client = create_client()

    stats = review_files(
        files, rules, ignore_patterns, config, repo_root,
        client=client, repo=repo, pr_number=pr_number, commit_id=commit_id,
    )

    print(f"Files analyzed: {stats['files_analyzed']}")
    print(f"Issues found: {stats['issues']}, comments posted: {stats['comments_posted']}")
    write_step_summary(stats, dry_run)
    print("=== AI code analysis completed ===")


if __name__ == "__main__":
    main()
