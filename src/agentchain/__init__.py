"""AgentChain: run a list of model-backed agents as one chain."""

from agentchain.core.chain import Chain
from agentchain.core.orchestrator import ChainOrchestrator
from agentchain.core.agent import Agent, Attachments, Connection, ConnectionType
from agentchain.core.grouping import ExecutionGroup, group_agents
from agentchain.core.condition import evaluate_condition, validate_condition
from agentchain.core.result import AgentStep, ChainResult, ParallelResult
from agentchain._version import __version__

__all__ = [
    "Chain",
    "ChainOrchestrator",
    "Agent",
    "Attachments",
    "Connection",
    "ConnectionType",
    "ExecutionGroup",
    "group_agents",
    "evaluate_condition",
    "validate_condition",
    "AgentStep",
    "ChainResult",
    "ParallelResult",
    "__version__",
]
