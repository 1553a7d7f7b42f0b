"""Resolver Agent package."""

from .main import SUBMIT_RESOLUTION_TOOL, AIResolver
from .models import ResolutionDecision, ResolverDependencies
from .prompts import build_system_prompt, build_user_prompt

__all__ = [
    "AIResolver",
    "SUBMIT_RESOLUTION_TOOL",
    "ResolutionDecision",
    "ResolverDependencies",
    "build_system_prompt",
    "build_user_prompt",
]
