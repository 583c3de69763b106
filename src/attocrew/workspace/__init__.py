"""Shared-workspace coordination."""

from attocrew.workspace.locks import LockRegistry, LockType

__all__ = ["LockRegistry", "LockType"]
