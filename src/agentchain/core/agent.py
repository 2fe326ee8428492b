"""Chain definition nodes: agents and their connections."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum


class ConnectionType(str, Enum):
    DIRECT = "direct"
    CONDITIONAL = "conditional"
    PARALLEL = "parallel"
    COLLABORATIVE = "collaborative"  # reserved, runs like direct


@dataclass
class Connection:
    """Relationship of an agent to the node(s) before it in definition order."""

    type: ConnectionType = ConnectionType.DIRECT
    condition: str | None = None
    source_agent_id: str | None = None

    @classmethod
    def from_config(cls, connection_config: dict) -> "Connection":
        return cls(
            type=ConnectionType(connection_config.get("type", "direct")),
            condition=connection_config.get("condition"),
            source_agent_id=connection_config.get("source_agent_id"),
        )


@dataclass
class Attachments:
    images: list[dict] = field(default_factory=list)  # {"url": ..., "description": ...}
    audio_transcription: str | None = None
    web_search_results: list[dict] = field(default_factory=list)
    web_search: bool = False  # fetch results for the prompt before invoking

    def is_empty(self) -> bool:
        return not (self.images or self.audio_transcription or self.web_search_results)


@dataclass
class Agent:
    """One node of a chain: a model, a prompt and an optional connection."""

    id: str
    model: str
    prompt: str
    name: str | None = None
    connection: Connection | None = None
    attachments: Attachments = field(default_factory=Attachments)

    @property
    def connection_type(self) -> ConnectionType:
        if self.connection is None:
            return ConnectionType.DIRECT
        return self.connection.type

    def display_name(self, position: int) -> str:
        return self.name or f"Agent {position + 1}"

    @classmethod
    def from_config(cls, agent_config: dict, default_model: str | None = None) -> "Agent":
        connection = None
        if agent_config.get("connection"):
            connection = Connection.from_config(agent_config["connection"])

        return cls(
            id=str(agent_config["id"]),
            model=agent_config.get("model") or default_model or "",
            prompt=agent_config["prompt"],
            name=agent_config.get("name"),
            connection=connection,
            attachments=Attachments(
                images=list(agent_config.get("images") or []),
                audio_transcription=agent_config.get("audio_transcription"),
                web_search_results=list(agent_config.get("web_search_results") or []),
                web_search=agent_config.get("web_search", False),
            ),
        )
