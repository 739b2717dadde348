"""
config_loader.py — Load and merge action configuration.

Configuration is resolved in this order (later overrides earlier):
1. Built-in defaults (defaults/config.yaml in the action repo)
2. Project config (.github/ai-review/config.yaml in the consuming repo)
3. Environment variable overrides

This module is imported by both entry scripts.
"""

import os
import subprocess
from pathlib import Path

import yaml


def _deep_merge(base: dict, override: dict) -> dict:
    """Recursively merge override into base. Override wins for leaf values."""
    merged = base.copy()
    for key, value in override.items():
        if key in merged and isinstance(merged[key], dict) and isinstance(value, dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def _read_yaml(path: Path) -> dict:
    data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    if not isinstance(data, dict):
        raise ValueError(f"{path} must contain a YAML mapping")
    return data


def load_config() -> dict:
    """Load configuration from defaults + project config + env overrides.

    Environment variables:
        AI_REVIEW_CONFIG: Path to project config (relative to repo root)
        AI_REVIEW_ACTION_PATH: Path to the action's own directory
    """
    # 1. Built-in defaults from the action repo
    action_path = Path(os.environ.get("AI_REVIEW_ACTION_PATH", Path(__file__).parent.parent))
    defaults_path = action_path / "defaults" / "config.yaml"

    config = {}
    if defaults_path.exists():
        config = _read_yaml(defaults_path)

    # 2. Project-specific config from the consuming repo
    repo_root = _find_repo_root()
    config_rel_path = os.environ.get("AI_REVIEW_CONFIG", ".github/ai-review/config.yaml")
    project_config_path = repo_root / config_rel_path

    if project_config_path.exists():
        config = _deep_merge(config, _read_yaml(project_config_path))
        print(f"  Loaded project config from {config_rel_path}")
    else:
        print(f"  No project config at {config_rel_path}, using defaults")

    # 3. Environment variable overrides
    if os.environ.get("AI_REVIEW_MODEL"):
        config.setdefault("model", {})["name"] = os.environ["AI_REVIEW_MODEL"]
    if os.environ.get("AI_REVIEW_MAX_TOKENS"):
        config.setdefault("model", {})["max_tokens"] = int(os.environ["AI_REVIEW_MAX_TOKENS"])
    if os.environ.get("AI_REVIEW_RULES_PATH"):
        config.setdefault("analyzer", {})["rules_path"] = os.environ["AI_REVIEW_RULES_PATH"]
    if os.environ.get("AI_REVIEW_IGNORE_FILE"):
        config.setdefault("analyzer", {})["ignore_file"] = os.environ["AI_REVIEW_IGNORE_FILE"]
    if os.environ.get("AI_REVIEW_COVERAGE_PATH"):
        config.setdefault("test_writer", {})["coverage_path"] = os.environ["AI_REVIEW_COVERAGE_PATH"]

    return config


def is_dry_run() -> bool:
    """Dry-run only when requested with AI_REVIEW_DRY_RUN=true."""
    return os.environ.get("AI_REVIEW_DRY_RUN", "false").lower() == "true"


def _find_repo_root() -> Path:
    """Find the Git repository root."""
    # In GitHub Actions, GITHUB_WORKSPACE is the repo root
    workspace = os.environ.get("GITHUB_WORKSPACE")
    if workspace:
        return Path(workspace)

    try:
        result = subprocess.run(
            ["git", "rev-parse", "--show-toplevel"],
            capture_output=True, text=True, timeout=5,
        )
        if result.returncode == 0:
            return Path(result.stdout.strip())
    except (OSError, subprocess.SubprocessError):
        pass

    # Last resort: current directory
    return Path.cwd()


def get_repo_root() -> Path:
    """Public accessor for repo root."""
    return _find_repo_root()
