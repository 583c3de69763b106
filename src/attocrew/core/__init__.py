"""Reasoning loop and action dispatch."""

from attocrew.core.dispatch import ActionDispatcher
from attocrew.core.loop import LoopResult, ReasoningLoop

__all__ = ["ActionDispatcher", "LoopResult", "ReasoningLoop"]
