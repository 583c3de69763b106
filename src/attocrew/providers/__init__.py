"""Reasoning-service providers."""

from attocrew.providers.base import ReasoningService
from attocrew.providers.mock import MockProvider
from attocrew.providers.responses import ResponsesProvider

__all__ = ["MockProvider", "ReasoningService", "ResponsesProvider"]
