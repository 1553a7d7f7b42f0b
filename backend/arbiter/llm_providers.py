"""OpenRouter model names and helpers for building pydantic-ai model strings."""

from enum import StrEnum

OPENROUTER_PREFIX = "openrouter"
ONLINE_SUFFIX = ":online"


class OpenRouterModel(StrEnum):
    """Models known to work well for resolution via OpenRouter."""

    GROK_4_1_FAST = "x-ai/grok-4.1-fast"
    GPT_5 = "openai/gpt-5"
    GPT_5_MINI = "openai/gpt-5-mini"
    CLAUDE_SONNET_4_5 = "anthropic/claude-sonnet-4.5"
    GEMINI_2_5_PRO = "google/gemini-2.5-pro"


def get_model_string(model: OpenRouterModel | str, web_search: bool = False) -> str:
    """Get the pydantic-ai model string for an OpenRouter model.

    ``web_search`` selects OpenRouter's ``:online`` variant, which grounds the
    answer with web results.
    """
    name = model.value if isinstance(model, OpenRouterModel) else model
    if web_search and not name.endswith(ONLINE_SUFFIX):
        name = f"{name}{ONLINE_SUFFIX}"
    return f"{OPENROUTER_PREFIX}:{name}"
