"""Persistence layer."""

from attocrew.persistence.store import CrewStore

__all__ = ["CrewStore"]
