"""Tests for ignore_patterns.py — glob compilation, ancestor matching, ignore file loading."""

import pytest

from ignore_patterns import compile_pattern, load_ignore_patterns, parse_ignore_file, should_ignore


class TestCompilePattern:
    def test_dot_is_literal(self):
        regex = compile_pattern("*.js")
        assert regex.fullmatch("app.js")
        assert not regex.fullmatch("appxjs")

    def test_star_matches_any_run(self):
        assert compile_pattern("src/*").fullmatch("src/a/b/c.py")

    def test_question_mark_matches_one_character(self):
        regex = compile_pattern("file?.ex")
        assert regex.fullmatch("file1.ex")
        assert not regex.fullmatch("file12.ex")

    def test_anchored(self):
        regex = compile_pattern("lib")
        assert not regex.fullmatch("lib/app.ex")
        assert not regex.fullmatch("my_lib")

    def test_regex_metacharacters_are_literal(self):
        regex = compile_pattern("a+b(1).txt")
        assert regex.fullmatch("a+b(1).txt")
        assert not regex.fullmatch("aab1.txt")


class TestShouldIgnore:
    def test_no_patterns_ignores_nothing(self):
        assert should_ignore("anything/at/all.py", []) is False

    def test_direct_match(self):
        assert should_ignore("bundle.min.js", ["*.min.js"]) is True

    def test_directory_pattern_matches_nested_file(self):
        assert should_ignore("node_modules/pkg/index.js", ["node_modules/*"]) is True

    def test_ancestor_directory_match(self):
        assert should_ignore("priv/static/assets/app.css", ["priv/static"]) is True

    @pytest.mark.parametrize("filename", ["lib/app.ex", "test/app_test.exs", "mix.exs"])
    def test_unrelated_files_kept(self, filename):
        assert should_ignore(filename, ["node_modules/*", "*.md", "priv"]) is False

    def test_full_path_is_not_treated_as_ancestor(self):
        assert should_ignore("docs", ["docs/*"]) is False

    def test_trailing_newline_is_not_ignored(self):
        assert should_ignore("app.js\n", ["*.js"]) is False
        assert should_ignore("lib\n", ["lib"]) is False

    def test_any_pattern_can_match(self):
        assert should_ignore("README.md", ["*.lock", "*.md"]) is True


class TestIgnoreFile:
    def test_parse_drops_comments_and_blank_lines(self):
        content = "# generated\n\n  *.min.js  \nnode_modules/*\n   # indented comment\n"
        assert parse_ignore_file(content) == ["*.min.js", "node_modules/*"]

    def test_missing_file(self, tmp_path):
        assert load_ignore_patterns(tmp_path / ".ai-analyzer-ignore") == []

    def test_loads_patterns(self, tmp_path, capsys):
        ignore_file = tmp_path / ".ai-analyzer-ignore"
        ignore_file.write_text("deps/*\n# comment\n_build/*\n")
        assert load_ignore_patterns(ignore_file) == ["deps/*", "_build/*"]
        assert "Loaded 2 ignore patterns" in capsys.readouterr().out

    def test_unreadable_file_ignores_nothing(self, tmp_path):
        ignore_dir = tmp_path / ".ai-analyzer-ignore"
        ignore_dir.mkdir()
        assert load_ignore_patterns(ignore_dir) == []
