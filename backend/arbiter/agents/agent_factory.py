"""Generic agent factory for managing lazily-built agent instances."""

import logging
import os
from typing import Callable, Generic, TypeVar

from pydantic_ai import Agent

logger = logging.getLogger(__name__)

DepsT = TypeVar("DepsT")
OutputT = TypeVar("OutputT")


class AgentFactory(Generic[DepsT, OutputT]):
    """Builds an agent on first use with consistent initialization."""

    def __init__(
        self,
        create_fn: Callable[[], Agent[DepsT, OutputT]],
        register_tools_fn: Callable[[Agent[DepsT, OutputT]], None] | None = None,
        api_keys: dict[str, str] | None = None,
    ):
        """Initialize the agent factory.

        Args:
            create_fn: Function that creates a new agent instance
            register_tools_fn: Optional function to register tools, prompts and
                validators on the agent
            api_keys: Environment variables to export before the agent is built,
                e.g. ``{"OPENROUTER_API_KEY": "..."}``. Empty values are skipped.
        """
        self._create_fn = create_fn
        self._register_tools_fn = register_tools_fn
        self._api_keys = api_keys or {}
        self._agent: Agent[DepsT, OutputT] | None = None

    def get_agent(self) -> Agent[DepsT, OutputT]:
        """Get or create the agent instance."""
        if self._agent is None:
            self._setup_api_keys()
            self._agent = self._create_fn()
            if self._register_tools_fn is not None:
                self._register_tools_fn(self._agent)
        return self._agent

    def _setup_api_keys(self) -> None:
        for name, value in self._api_keys.items():
            if value:
                os.environ[name] = value
            elif not os.environ.get(name):
                logger.warning(f"{name} not set - model calls will fail")
