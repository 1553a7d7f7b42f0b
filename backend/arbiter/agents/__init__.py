"""pydantic-ai agents used by Arbiter."""
