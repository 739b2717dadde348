"""
prompts.py — Prompt text for the code-review and test-writer bots.
"""

import json

REVIEW_SYSTEM_PROMPT = (
    "You are an expert software engineer that identifies violations of coding rules and suggests fixes."
)
TEST_SYSTEM_PROMPT = (
    "You are a test writing assistant that helps developers improve their test coverage."
)
MAPPING_SYSTEM_PROMPT = (
    "You are an expert software engineer who knows how projects lay out their tests."
)


def _fenced(text: str, language: str = "") -> str:
    return f"```{language}\n{text}\n```"


def build_review_prompt(code: str, rules: list[dict], full_file: str = "") -> str:
    """Ask the model to check newly added lines against the rule set."""
    rules_text = "\n\n".join(f"## {rule['title']}\n{rule['content']}" for rule in rules)

    parts = [
        "You are an expert and careful software engineer checking if code follows specific rules.",
        "",
        "# Rules to check:",
        rules_text,
        "",
        "# Code to analyze (newly added lines):",
        _fenced(code),
        "",
    ]
    if full_file:
        parts += [
            "# Full file context (for reference only):",
            _fenced(full_file),
            "",
        ]

    parts.append("""IMPORTANT: Only analyze the code shown in the "Code to analyze" section, which represents newly added lines in a pull request. Focus exclusively on these lines when identifying rule violations. The full file context is provided only for reference to understand the surrounding code when providing the suggestion.

Analyze the code and identify any violations of the rules. For each violation:
1. Carefully identify the specific rule that was violated. If the rule was not provided above then ignore the violation
2. Explain why it violates the rule
3. Include the exact problematic code snippet that violates the rule
4. Suggest a specific code change to fix the issue but only if it changes the code in a meaningful way. Do NOT create suggestions that would leave the code the same as before. If the suggestion is to remove the code, provide none.

Format your response as JSON:
{
  "issues": [
    {
      "rule_id": "rule-id",
      "code": "the exact problematic code snippet",
      "explanation": "why this violates the rule",
      "suggestion": "suggested code fix"
    }
  ]
}

If no issues are found, return {"issues": []}.""")
    return "\n".join(parts)


def build_test_prompt(
    code: str,
    coverage: dict | None,
    uncovered_lines: list[int],
    full_file: str = "",
    test_file: str = "",
    test_file_content: str = "",
) -> str:
    """Ask the model for tests that cover the changed code."""
    parts = ["You are a test writing assistant that helps developers improve their test coverage.", ""]

    if full_file:
        parts += ["# Full file content for context:", _fenced(full_file), ""]

    parts += ["# Code changes to analyze:", _fenced(code), ""]

    if coverage:
        uncovered = ", ".join(str(n) for n in uncovered_lines) if uncovered_lines else "None detected"
        parts += [
            "# Current coverage data:",
            _fenced(json.dumps(coverage, indent=2), "json"),
            "",
            "# Uncovered lines:",
            uncovered,
            "",
        ]
    else:
        parts += ["# No coverage data available for this file.", ""]

    if test_file:
        parts.append(f"# Existing test file: {test_file}")
        if test_file_content:
            parts.append(_fenced(test_file_content))
        parts.append("Write tests that fit into this file and follow its conventions.")
        parts.append("")

    parts.append("""Analyze the code and suggest tests that would improve coverage. For each suggestion:
1. Identify the specific function or code block that needs testing
2. Explain why testing this is important
3. Provide a specific test case implementation that would test this code
4. Make sure the test follows best practices and is well-structured

Format your response as JSON:
{
  "suggestions": [
    {
      "target": "name of function or code block to test",
      "explanation": "why this needs testing",
      "test_code": "suggested test implementation"
    }
  ]
}

If no test suggestions are needed, return {"suggestions": []}.""")
    return "\n".join(parts)


def build_mapping_prompt(source_files: list[str], test_files: list[str]) -> str:
    """Ask the model which test file covers each source file."""
    sources = "\n".join(f"- {f}" for f in source_files) or "(none)"
    tests = "\n".join(f"- {f}" for f in test_files) or "(none)"
    return f"""Match each source file to the test file that tests it.

# Source files:
{sources}

# Test files:
{tests}

Only use test files from the list above. If no test file covers a source
file, map it to null.

Format your response as JSON:
{{
  "mappings": {{
    "path/to/source_file": "path/to/test_file or null"
  }}
}}"""
