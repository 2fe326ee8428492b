"""Partition an ordered agent list into execution groups."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

from agentchain.core.agent import Agent, ConnectionType


class GroupType(str, Enum):
    SEQUENTIAL = "sequential"
    PARALLEL = "parallel"


@dataclass
class ExecutionGroup:
    type: GroupType
    agents: list[Agent] = field(default_factory=list)
    start_index: int = 0

    @property
    def end_index(self) -> int:
        """Index one past the last agent of the group."""
        return self.start_index + len(self.agents)

    @property
    def is_parallel(self) -> bool:
        return self.type == GroupType.PARALLEL


def group_agents(agents: list[Agent]) -> list[ExecutionGroup]:
    """Only contiguous runs of parallel agents are batched; everything else is a singleton."""
    groups: list[ExecutionGroup] = []
    current: ExecutionGroup | None = None

    for i, agent in enumerate(agents):
        if i == 0:
            current = ExecutionGroup(type=GroupType.SEQUENTIAL, agents=[agent], start_index=i)
            groups.append(current)
            continue

        if agent.connection_type == ConnectionType.PARALLEL:
            if current is not None and current.is_parallel:
                current.agents.append(agent)
                continue
            current = ExecutionGroup(type=GroupType.PARALLEL, agents=[agent], start_index=i)
        else:
            current = ExecutionGroup(type=GroupType.SEQUENTIAL, agents=[agent], start_index=i)
        groups.append(current)

    return groups
