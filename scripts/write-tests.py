#!/usr/bin/env python3
"""
write-tests.py — Suggest (and write) unit tests for uncovered PR changes.

It:
1. Loads the coverage export and maps changed source files to their tests
2. Asks Claude for tests targeting the added and uncovered lines of each file
3. Posts each suggestion as a review comment at the end of the file's diff
4. Adds the suggested tests to the mapped test files once all files are done

Supports dry-run mode with AI_REVIEW_DRY_RUN=true (no model or comment calls).
"""

import os
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parent))
from config_loader import get_repo_root, is_dry_run, load_config
from coverage_report import find_file_coverage, load_coverage, uncovered_lines
from github_api import (
    GitHubAPIError,
    build_comment_payload,
    create_review_comment,
    get_head_commit,
    list_pr_files,
)
from llm_client import ask_model, create_client, model_settings
from model_response import TestSuggestion, TestSuggestionResult, parse_test_suggestions
from patch_mapper import extract_added_lines, last_line_number
from prompts import TEST_SYSTEM_PROMPT, build_test_prompt
from source_test_map import (
    HeuristicMapper,
    ModelAssistedMapper,
    PendingTestFiles,
    generate_repo_map,
    select_mapper,
    split_repo_map,
)


def read_repo_file(repo_root: Path, filename: str) -> str:
    """Content of a repository file, or "" when it can't be read."""
    try:
        return (repo_root / filename).read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        print(f"  Could not retrieve full content for {filename}: {e}")
        return ""


def format_test_comment_body(suggestion: TestSuggestion, language: str) -> str:
    return (
        f"## AI Test Suggestion for: {suggestion.target}\n\n"
        f"{suggestion.explanation}\n\n"
        "### Suggested Test:\n"
        f"```{language}\n"
        f"{suggestion.test_code}\n"
        "```\n"
    )


def is_candidate(file: dict, extensions: list[str]) -> bool:
    return file.get("status") != "removed" and file["filename"].endswith(tuple(extensions))


def build_mapper(sources: list[str], tests: list[str], config: dict, client=None):
    writer_config = config.get("test_writer", {})
    heuristic = HeuristicMapper(
        source_dir=writer_config.get("source_dir", "lib"),
        test_dir=writer_config.get("test_dir", "test"),
        test_suffix=writer_config.get("test_suffix", "_test.exs"),
    )
    model_mapper = None
    if client is not None:
        model, max_tokens = model_settings(config)
        model_mapper = ModelAssistedMapper(client, model, max_tokens, heuristic)
    threshold = int(writer_config.get("model_mapping_threshold", 200))
    return select_mapper(sources, tests, heuristic, threshold, model_mapper), heuristic


def suggest_tests(
    client, added_code: str, record: dict | None, uncovered: list[int],
    full_file: str, test_file: str, test_content: str, config: dict,
) -> TestSuggestionResult:
    model, max_tokens = model_settings(config)
    prompt = build_test_prompt(added_code, record, uncovered, full_file, test_file, test_content)
    reply = ask_model(client, prompt, TEST_SYSTEM_PROMPT, model, max_tokens)
    if reply is None:
        return TestSuggestionResult.empty()
    return parse_test_suggestions(reply)


def write_tests_for_files(
    files: list[dict],
    coverage: list[dict],
    test_map: dict[str, str | None],
    heuristic: HeuristicMapper,
    pending: PendingTestFiles,
    config: dict,
    repo_root: Path,
    client=None,
    repo: str = "",
    pr_number: str = "",
    commit_id: str = "",
) -> dict:
    """Suggest tests per PR file and queue them in `pending`."""
    writer_config = config.get("test_writer", {})
    extensions = writer_config.get("extensions", [".ex", ".exs"])
    language = writer_config.get("test_language", "elixir")
    stats = {"files_analyzed": 0, "suggestions": 0, "comments_posted": 0}

    for file in files:
        filename = file["filename"]
        if file.get("status") == "removed":
            continue
        if not is_candidate(file, extensions):
            print(f"  Skipping unsupported file: {filename}")
            continue

        added_lines = extract_added_lines(file.get("patch"))
        if not added_lines:
            continue

        print(f"  Analyzing {filename} ({len(added_lines)} added lines)")
        stats["files_analyzed"] += 1

        record = find_file_coverage(coverage, filename)
        uncovered = uncovered_lines(record)
        if record:
            print(f"    Found {len(uncovered)} uncovered lines in {filename}")

        full_file = read_repo_file(repo_root, filename)
        test_file = test_map.get(filename) or ""
        test_content = read_repo_file(repo_root, test_file) if test_file else ""
        added_code = "\n".join(added_lines)

        if client is None:
            prompt = build_test_prompt(added_code, record, uncovered, full_file, test_file, test_content)
            print(f"    [DRY RUN] Prompt: ~{len(prompt) // 4} tokens, test file: {test_file or 'none'}")
            continue

        result = suggest_tests(
            client, added_code, record, uncovered, full_file, test_file, test_content, config,
        )
        stats["suggestions"] += len(result.suggestions)

        anchor_line = last_line_number(file.get("patch"))
        target_test = test_file or heuristic.conventional_test_path(filename)
        for suggestion in result.suggestions:
            payload = build_comment_payload(
                filename, commit_id, None, anchor_line,
                format_test_comment_body(suggestion, language),
            )
            if create_review_comment(repo, pr_number, payload):
                stats["comments_posted"] += 1
                print(f"    Posted test suggestion for {suggestion.target} in {filename}")

            if target_test:
                pending.add(target_test, filename, suggestion.test_code)
            else:
                print(f"    No test file location for {filename}, not queuing {suggestion.target}")

    return stats


def write_step_summary(stats: dict, written: list[str], dry_run: bool):
    summary_file = os.environ.get("GITHUB_STEP_SUMMARY", "")
    if not summary_file:
        return
    with open(summary_file, "a") as f:
        f.write(f"\n## AI Test Writer{' (Dry Run)' if dry_run else ''}\n\n")
        f.write(f"- Files analyzed: {stats['files_analyzed']}\n")
        f.write(f"- Test suggestions: {stats['suggestions']}\n")
        f.write(f"- Comments posted: {stats['comments_posted']}\n")
        for path in written:
            f.write(f"- Updated `{path}`\n")


# ---------------------------------------------------------------------------
# Main
# ---------------------------------------------------------------------------

def main():
    print("=== AI Test Writer starting ===")

    config = load_config()
    repo_root = get_repo_root()
    writer_config = config.get("test_writer", {})
    coverage_path = writer_config.get("coverage_path", "cover/coverage.json")
    extensions = writer_config.get("extensions", [".ex", ".exs"])

    github_token = os.environ.get("GITHUB_TOKEN") or os.environ.get("GH_TOKEN")
    repo = os.environ.get("GITHUB_REPOSITORY", "")
    pr_number = os.environ.get("PR_NUMBER", "")
    dry_run = is_dry_run()

    print("Inputs received:")
    print(f"- github-token: {'set' if github_token else 'not set'}")
    print(f"- anthropic-api-key: {'set' if os.environ.get('ANTHROPIC_API_KEY') else 'not set'}")
    print(f"- coverage-path: {coverage_path}")

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

    try:
        files = list_pr_files(repo, pr_number)
        commit_id = "" if dry_run else get_head_commit(repo, pr_number)
    except GitHubAPIError as e:
        print(f"ERROR: {e}")
        sys.exit(1)

    coverage = load_coverage(repo_root / coverage_path)

    if dry_run:
        print("=== DRY RUN MODE (AI_REVIEW_DRY_RUN enabled) ===")
        client = None
    else:
        print(f"Using latest commit ID from PR: {commit_id}")
        client = create_client()

    _, tests = split_repo_map(
        generate_repo_map(repo_root),
        writer_config.get("source_dir", "lib"),
        writer_config.get("test_suffix", "_test.exs"),
        extensions,
    )
    changed_sources = [f["filename"] for f in files if is_candidate(f, extensions)]
    mapper, heuristic = build_mapper(changed_sources, tests, config, client)
    print(f"Mapping {len(changed_sources)} changed files onto {len(tests)} test files "
          f"({type(mapper).__name__})")
    test_map = mapper.map(changed_sources, tests)

    pending = PendingTestFiles()
    stats = write_tests_for_files(
        files, coverage, test_map, heuristic, pending, config, repo_root,
        client=client, repo=repo, pr_number=pr_number, commit_id=commit_id,
    )

    written: list[str] = []
    if dry_run or not writer_config.get("write_test_files", True):
        print(f"Not writing test files ({len(pending)} pending)")
    elif pending:
        written = pending.flush(repo_root)

    print(f"Files analyzed: {stats['files_analyzed']}")
    print(f"Test suggestions: {stats['suggestions']}, comments posted: {stats['comments_posted']}")
    write_step_summary(stats, written, dry_run)
    print("=== AI test analysis completed ===")


if __name__ == "__main__":
    main()
