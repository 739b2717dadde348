"""
llm_client.py — Single round-trip calls to Claude.
"""

import time

import anthropic

DEFAULT_MODEL = "claude-3-7-sonnet-latest"
DEFAULT_MAX_TOKENS = 4000


def create_client() -> anthropic.Anthropic:
    """Client authenticated from ANTHROPIC_API_KEY."""
    return anthropic.Anthropic()


def model_settings(config: dict) -> tuple[str, int]:
    model_config = config.get("model", {})
    return (
        model_config.get("name", DEFAULT_MODEL),
        int(model_config.get("max_tokens", DEFAULT_MAX_TOKENS)),
    )


def ask_model(client, prompt: str, system: str, model: str, max_tokens: int) -> str | None:
    """Send one user message and return the reply text, or None on API failure."""
    start = time.monotonic()
    try:
        response = client.messages.create(
            model=model,
            max_tokens=max_tokens,
            system=system,
            messages=[{"role": "user", "content": prompt}],
        )
    except anthropic.APIError as e:
        print(f"  Warning: Model call failed: {e}")
        return None

    raw_text = ""
    for block in response.content:
        if hasattr(block, "text"):
            raw_text += block.text

    elapsed = (time.monotonic() - start) * 1000
    usage = getattr(response, "usage", None)
    if usage is not None:
        print(f"  Model replied in {elapsed:.0f}ms "
              f"(input: {usage.input_tokens}, output: {usage.output_tokens} tokens)")
    return raw_text
