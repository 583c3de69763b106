"""Agent-to-agent and project-wide messaging."""

from __future__ import annotations

from enum import StrEnum

from attocrew.errors import AgentNotFoundError, InvalidMessageTypeError, SelfMessageError, TeamError
from attocrew.events.bus import EventBroadcaster
from attocrew.persistence.store import CrewStore, GroupMessageRecord, MessageRecord
from attocrew.types.events import EventType


class MessageType(StrEnum):
    """Kinds of directed agent messages."""

    MESSAGE = "message"
    QUESTION = "question"
    RESPONSE = "response"
    TASK_HANDOFF = "task_handoff"


MESSAGE_TYPES: tuple[str, ...] = tuple(t.value for t in MessageType)
SENDER_TYPES: tuple[str, ...] = ("user", "agent")


class CommunicationManager:
    """Stores and fans out agent messages."""

    def __init__(self, store: CrewStore, *, broadcaster: EventBroadcaster | None = None) -> None:
        self._store = store
        self._broadcaster = broadcaster

    async def send_agent_message(
        self,
        from_agent_id: int,
        to_agent_id: int,
        message: str,
        message_type: MessageType | str = MessageType.MESSAGE,
        related_task_id: int | None = None,
    ) -> MessageRecord:
        """Record a directed message.

        Raises:
            SelfMessageError: sender and recipient are the same agent.
            InvalidMessageTypeError: *message_type* is not a known kind.
            AgentNotFoundError: either agent does not exist.
        """
        if from_agent_id == to_agent_id:
            raise SelfMessageError(from_agent_id)
        if str(message_type) not in MESSAGE_TYPES:
            raise InvalidMessageTypeError(str(message_type), MESSAGE_TYPES)
        if not message:
            raise TeamError("message is required")
        sender = await self._store.get_agent(from_agent_id)
        if sender is None:
            raise AgentNotFoundError(from_agent_id)
        if await self._store.get_agent(to_agent_id) is None:
            raise AgentNotFoundError(to_agent_id)

        record = await self._store.insert_message(
            from_agent_id, to_agent_id, message, str(message_type), related_task_id,
        )
        if self._broadcaster is not None:
            self._broadcaster.emit(
                EventType.AGENT_MESSAGE,
                sender.project_id,
                agent_id=from_agent_id,
                task_id=related_task_id,
                to_agent_id=to_agent_id,
                message_id=record.id,
                message_type=record.message_type,
                message=message,
            )
        return record

    async def inbox(
        self, agent_id: int, *, unread_only: bool = False, limit: int = 50,
    ) -> list[MessageRecord]:
        return await self._store.list_messages(
            to_agent_id=agent_id, unread_only=unread_only, limit=limit,
        )

    async def sent_messages(self, agent_id: int, *, limit: int = 50) -> list[MessageRecord]:
        return await self._store.list_messages(from_agent_id=agent_id, limit=limit)

    async def conversation(self, agent_a: int, agent_b: int, *, limit: int = 50) -> list[MessageRecord]:
        """Messages between two agents, oldest first."""
        return await self._store.conversation(agent_a, agent_b, limit=limit)

    async def mark_as_read(self, message_id: int, agent_id: int) -> bool:
        return await self._store.mark_message_read(message_id, agent_id)

    async def mark_all_as_read(self, agent_id: int) -> int:
        return await self._store.mark_all_messages_read(agent_id)

    async def unread_count(self, agent_id: int) -> int:
        return await self._store.unread_count(agent_id)

    async def send_group_message(
        self,
        project_id: int,
        sender_type: str,
        message: str,
        *,
        sender_agent_id: int | None = None,
    ) -> GroupMessageRecord:
        if sender_type not in SENDER_TYPES:
            raise TeamError("sender_type must be 'user' or 'agent'")
        if sender_type == "agent" and sender_agent_id is None:
            raise TeamError("sender_agent_id required when sender_type is agent")
        if not message:
            raise TeamError("message is required")
        record = await self._store.insert_group_message(
            project_id, sender_type, message, sender_agent_id,
        )
        if self._broadcaster is not None:
            self._broadcaster.emit(
                EventType.GROUP_MESSAGE,
                project_id,
                agent_id=sender_agent_id,
                message_id=record.id,
                sender_type=sender_type,
                message=message,
            )
        return record

    async def group_messages(
        self, project_id: int, *, limit: int = 100, offset: int = 0,
    ) -> list[GroupMessageRecord]:
        return await self._store.list_group_messages(project_id, limit=limit, offset=offset)

