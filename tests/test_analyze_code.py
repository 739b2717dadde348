"""Tests for analyze-code.py — issue placement, comment bodies, per-file flow."""

import json
from unittest.mock import patch

import pytest

from model_response import CodeReviewResult, ReviewIssue

PATCH = (
    "@@ -10,4 +10,6 @@ defmodule App.Accounts do\n"
    "   def get_user(id) do\n"
    "+    user = Repo.get(User, id)\n"
    "+    IO.inspect(user)\n"
    "     user\n"
    "   end\n"
)

RULES = [{"id": "no-io-inspect", "title": "No IO.inspect", "content": "Use Logger.",
          "path": ".ai-code-rules/no-io-inspect.md"}]


class TestBuildIssueComment:
    @pytest.fixture(autouse=True)
    def _import(self):
        import importlib
        self.mod = importlib.import_module("analyze-code")

    def test_single_line_issue(self):
        issue = ReviewIssue("no-io-inspect", "IO.inspect(user)", "Debug output", "Logger.debug(inspect(user))")
        payload = self.mod.build_issue_comment(
            "lib/app/accounts.ex", PATCH, issue, "abc123", {r["id"]: r for r in RULES},
        )
        assert payload["path"] == "lib/app/accounts.ex"
        assert payload["commit_id"] == "abc123"
        assert payload["line"] == 12
        assert "start_line" not in payload
        # indentation recovered from the patch
        assert "```suggestion\n    Logger.debug(inspect(user))\n```" in payload["body"]
        assert "[View rule](.ai-code-rules/no-io-inspect.md)" in payload["body"]

    def test_multi_line_issue_is_a_range(self):
        issue = ReviewIssue("r", "user = Repo.get(User, id)\nIO.inspect(user)", "why", "user = Repo.get!(User, id)")
        payload = self.mod.build_issue_comment("lib/a.ex", PATCH, issue, "sha", {})
        assert (payload["start_line"], payload["line"]) == (11, 12)
        assert "[View rule](r.md)" in payload["body"]

    def test_unlocatable_issue(self):
        issue = ReviewIssue("r", "something else entirely", "why", None)
        assert self.mod.build_issue_comment("lib/a.ex", PATCH, issue, "sha", {}) is None

    def test_no_comment_on_line_zero(self):
        issue = ReviewIssue("r", "foo", "why", "bar")
        assert self.mod.build_issue_comment("lib/a.ex", "+foo", issue, "sha", {}) is None


class TestFormatCommentBody:
    @pytest.fixture(autouse=True)
    def _import(self):
        import importlib
        self.mod = importlib.import_module("analyze-code")

    def test_layout(self):
        issue = ReviewIssue("no-io-inspect", "x", "Debug output left in.", "y")
        body = self.mod.format_comment_body(issue, "  y", "rules/no-io-inspect.md")
        assert body == (
            "## AI Code Review: no-io-inspect\n\n"
            "Debug output left in.\n\n"
            "### Suggestion:\n"
            "```suggestion\n"
            "  y\n"
            "```\n\n"
            "[View rule](rules/no-io-inspect.md)"
        )

    def test_missing_suggestion_leaves_block_empty(self):
        issue = ReviewIssue("r", "x", "Remove this.", None)
        assert "```suggestion\n\n```" in self.mod.format_comment_body(issue, None, "r.md")


class TestReviewFiles:
    @pytest.fixture(autouse=True)
    def _import(self):
        import importlib
        self.mod = importlib.import_module("analyze-code")

    def _files(self):
        return [
            {"filename": "lib/app/accounts.ex", "status": "modified", "patch": PATCH},
            {"filename": "node_modules/x/index.js", "status": "added", "patch": "@@ -0,0 +1 @@\n+x"},
            {"filename": "lib/old.ex", "status": "removed", "patch": "@@ -1 +0,0 @@\n-x"},
            {"filename": "lib/only_removals.ex", "status": "modified", "patch": "@@ -1,2 +1,1 @@\n a\n-b"},
        ]

    def test_posts_located_issues_and_skips_the_rest(self, tmp_path):
        result = CodeReviewResult([
            ReviewIssue("no-io-inspect", "IO.inspect(user)", "Debug output", "Logger.debug(inspect(user))"),
            ReviewIssue("no-io-inspect", "not in the diff", "?", None),
        ])
        posted = []

        with patch.object(self.mod, "analyze_file", return_value=result) as analyze, \
             patch.object(self.mod, "create_review_comment",
                          side_effect=lambda repo, pr, payload: posted.append(payload) or True):
            stats = self.mod.review_files(
                self._files(), RULES, ["node_modules/*"], {}, tmp_path,
                client=object(), repo="owner/repo", pr_number="7", commit_id="abc",
            )

        assert analyze.call_count == 1
        assert analyze.call_args[0][1] == "    user = Repo.get(User, id)\n    IO.inspect(user)"
        assert stats == {"files_analyzed": 1, "issues": 2, "comments_posted": 1, "unlocated": 1}
        assert [p["line"] for p in posted] == [12]

    def test_failed_comment_does_not_stop_later_ones(self, tmp_path):
        result = CodeReviewResult([
            ReviewIssue("r", "IO.inspect(user)", "a", None),
            ReviewIssue("r", "user = Repo.get(User, id)", "b", None),
        ])
        with patch.object(self.mod, "analyze_file", return_value=result), \
             patch.object(self.mod, "create_review_comment", side_effect=[False, True]) as post:
            stats = self.mod.review_files(
                self._files()[:1], RULES, [], {}, tmp_path,
                client=object(), repo="owner/repo", pr_number="7", commit_id="abc",
            )
        assert post.call_count == 2
        assert stats["comments_posted"] == 1

    def test_dry_run_makes_no_calls(self, tmp_path, capsys):
        with patch.object(self.mod, "analyze_file") as analyze, \
             patch.object(self.mod, "create_review_comment") as post:
            stats = self.mod.review_files(self._files(), RULES, [], {}, tmp_path)
        analyze.assert_not_called()
        post.assert_not_called()
        assert stats["files_analyzed"] == 2
        assert "[DRY RUN]" in capsys.readouterr().out

    def test_full_file_sent_as_context(self, tmp_path):
        source = tmp_path / "lib" / "app" / "accounts.ex"
        source.parent.mkdir(parents=True)
        source.write_text("defmodule App.Accounts do\nend\n")

        with patch.object(self.mod, "analyze_file", return_value=CodeReviewResult()) as analyze:
            self.mod.review_files(self._files()[:1], RULES, [], {}, tmp_path, client=object())
        assert analyze.call_args[0][3] == "defmodule App.Accounts do\nend\n"


class TestAnalyzeFile:
    @pytest.fixture(autouse=True)
    def _import(self):
        import importlib
        self.mod = importlib.import_module("analyze-code")

    def test_parses_model_reply(self):
        reply = "```json\n" + json.dumps({"issues": [
            {"rule_id": "r", "code": "c", "explanation": "e", "suggestion": "s"},
        ]}) + "\n```"
        with patch.object(self.mod, "ask_model", return_value=reply) as ask:
            result = self.mod.analyze_file(object(), "c", RULES, "", {"model": {"name": "m", "max_tokens": 10}})
        assert result.issues == [ReviewIssue("r", "c", "e", "s")]
        assert ask.call_args[0][3:] == ("m", 10)
        assert "# Code to analyze (newly added lines):\n```\nc\n```" in ask.call_args[0][1]

    def test_api_failure_is_empty(self):
        with patch.object(self.mod, "ask_model", return_value=None):
            assert self.mod.analyze_file(object(), "c", RULES, "", {}) == CodeReviewResult.empty()


class TestMain:
    @pytest.fixture(autouse=True)
    def _import(self):
        import importlib
        self.mod = importlib.import_module("analyze-code")

    @pytest.fixture
    def env(self, tmp_path, monkeypatch):
        monkeypatch.setenv("GITHUB_WORKSPACE", str(tmp_path))
        monkeypatch.setenv("GITHUB_TOKEN", "ghs_test")
        monkeypatch.setenv("GITHUB_REPOSITORY", "owner/repo")
        monkeypatch.setenv("PR_NUMBER", "7")
        monkeypatch.setenv("ANTHROPIC_API_KEY", "sk-test")
        monkeypatch.delenv("GITHUB_STEP_SUMMARY", raising=False)
        for var in ("AI_REVIEW_RULES_PATH", "AI_REVIEW_CONFIG", "AI_REVIEW_IGNORE_FILE",
                    "AI_REVIEW_DRY_RUN", "AI_REVIEW_ACTION_PATH"):
            monkeypatch.delenv(var, raising=False)
        return tmp_path

    def test_missing_token_fails(self, env, monkeypatch):
        monkeypatch.delenv("GITHUB_TOKEN")
        monkeypatch.delenv("GH_TOKEN", raising=False)
        with pytest.raises(SystemExit) as exc:
            self.mod.main()
        assert exc.value.code == 1

    def test_missing_pr_number_fails(self, env, monkeypatch):
        monkeypatch.delenv("PR_NUMBER")
        with pytest.raises(SystemExit):
            self.mod.main()

    def test_missing_api_key_fails(self, env, monkeypatch, capsys):
        monkeypatch.delenv("ANTHROPIC_API_KEY")
        with patch.object(self.mod, "list_pr_files") as list_files:
            with pytest.raises(SystemExit) as exc:
                self.mod.main()
        assert exc.value.code == 1
        list_files.assert_not_called()
        assert "ERROR: Anthropic API key is required" in capsys.readouterr().out

    def test_no_rules_exits_cleanly(self, env, capsys):
        with patch.object(self.mod, "list_pr_files") as list_files:
            self.mod.main()
        list_files.assert_not_called()
        assert "No rules found in .ai-code-rules" in capsys.readouterr().out

    def test_dry_run_end_to_end(self, env, monkeypatch, capsys):
        monkeypatch.delenv("ANTHROPIC_API_KEY")
        monkeypatch.setenv("AI_REVIEW_DRY_RUN", "true")
        rules_dir = env / ".ai-code-rules"
        rules_dir.mkdir()
        (rules_dir / "no-io-inspect.md").write_text("# No IO.inspect\n")
        summary = env / "summary.md"
        monkeypatch.setenv("GITHUB_STEP_SUMMARY", str(summary))

        files = [{"filename": "lib/app/accounts.ex", "status": "modified", "patch": PATCH}]
        with patch.object(self.mod, "list_pr_files", return_value=files), \
             patch.object(self.mod, "get_head_commit") as head, \
             patch.object(self.mod, "create_client") as client:
            self.mod.main()

        head.assert_not_called()
        client.assert_not_called()
        assert "DRY RUN" in capsys.readouterr().out
        assert "- Files analyzed: 1" in summary.read_text()

    def test_listing_failure_is_fatal(self, env):
        rules_dir = env / ".ai-code-rules"
        rules_dir.mkdir()
        (rules_dir / "r.md").write_text("# R\n")
        with patch.object(self.mod, "list_pr_files", side_effect=self.mod.GitHubAPIError("boom")):
            with pytest.raises(SystemExit):
                self.mod.main()
