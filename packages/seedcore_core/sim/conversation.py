"""Single-holder conversation lock and the hand-off transitions around it."""

from __future__ import annotations

from dataclasses import dataclass
import logging
import threading
from typing import Mapping, Optional

from .agents import CONVERSATIONAL_ROLES, Agent, AgentState


logger = logging.getLogger("seedcore_core.sim.conversation")


class ConversationCoordinator:
    """Holds the id of the one agent allowed to be ``CONVERSING``."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._holder: Optional[str] = None

    @property
    def holder(self) -> Optional[str]:
        with self._lock:
            return self._holder

    def enter_conversation(self, agent_id: str) -> Optional[str]:
        """Make ``agent_id`` the holder and return the previous holder, if any."""
        with self._lock:
            previous = self._holder
            self._holder = agent_id
        return previous

    def exit_conversation(self, agent_id: str) -> bool:
        """Release the lock if ``agent_id`` holds it. Stale callers are ignored."""
        with self._lock:
            if self._holder != agent_id:
                return False
            self._holder = None
        return True

    def reset(self) -> None:
        with self._lock:
            self._holder = None


@dataclass(frozen=True)
class ConversationHandoff:
    agent_id: str
    previous_agent_id: Optional[str]

    def to_dict(self) -> dict[str, Optional[str]]:
        return {"agent_id": self.agent_id, "previous_agent_id": self.previous_agent_id}


def start_conversation(
    coordinator: ConversationCoordinator,
    agents: Mapping[str, Agent],
    agent_id: str,
) -> Optional[ConversationHandoff]:
    """Move ``agent_id`` into conversation, pausing whoever held it before.

    Returns ``None`` without touching anything when the agent is unknown or
    its role cannot converse. Callers must hold the agent store lock.
    """
    agent = agents.get(agent_id)
    if agent is None:
        logger.debug("[CONVERSATION] Ignoring unknown agent '%s'", agent_id)
        return None
    if agent.role not in CONVERSATIONAL_ROLES:
        logger.debug("[CONVERSATION] Role %s cannot converse (agent '%s')", agent.role.value, agent_id)
        return None

    previous_id = coordinator.enter_conversation(agent_id)
    if previous_id is not None and previous_id != agent_id:
        previous = agents.get(previous_id)
        if previous is not None:
            previous.state = AgentState.PAUSING
            previous.is_generating_dialogue = False

    agent.state = AgentState.CONVERSING
    agent.target = agent.position
    agent.is_generating_dialogue = True
    logger.info("[CONVERSATION] '%s' entered conversation (previous holder: %s)", agent_id, previous_id)
    return ConversationHandoff(agent_id=agent_id, previous_agent_id=previous_id)


def end_conversation(
    coordinator: ConversationCoordinator,
    agents: Mapping[str, Agent],
    agent_id: str,
) -> bool:
    released = coordinator.exit_conversation(agent_id)
    agent = agents.get(agent_id)
    if agent is not None and agent.state == AgentState.CONVERSING:
        agent.state = AgentState.PAUSING
        agent.is_generating_dialogue = False
    return released


def release_stale_holder(coordinator: ConversationCoordinator, agents: Mapping[str, Agent]) -> Optional[str]:
    """Clear the lock when its holder has left ``CONVERSING`` on its own."""
    holder = coordinator.holder
    if holder is None:
        return None
    agent = agents.get(holder)
    if agent is not None and agent.state == AgentState.CONVERSING:
        return None
    if coordinator.exit_conversation(holder):
        logger.debug("[CONVERSATION] Released lock held by '%s'", holder)
        return holder
    return None
