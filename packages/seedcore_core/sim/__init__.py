"""Agent simulation for the SeedCore hotel."""

from .agents import Agent, AgentRole, AgentState, spawn_agents
from .config import SimulationConfig
from .conversation import ConversationCoordinator
from .dialogue import DialogueOutcome, DialoguePipeline, DialogueRequest, clean_dialogue_text
from .runner import SimulationEngine, UnknownAgentError
from .world import Atmosphere, CorePlane, CoreState

__all__ = [
    "Agent",
    "AgentRole",
    "AgentState",
    "spawn_agents",
    "SimulationConfig",
    "ConversationCoordinator",
    "DialogueOutcome",
    "DialoguePipeline",
    "DialogueRequest",
    "clean_dialogue_text",
    "SimulationEngine",
    "UnknownAgentError",
    "Atmosphere",
    "CorePlane",
    "CoreState",
]
