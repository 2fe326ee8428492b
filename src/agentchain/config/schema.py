"""Pydantic models for YAML chain definitions."""

from __future__ import annotations

from typing import Literal, Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from agentchain.core.condition import validate_condition


class RecorderConfig(BaseModel):
    backend: str = "memory"
    path: str = ".agentchain/steps.db"
    visibility_delay: float = 0.0

    @field_validator("backend")
    @classmethod
    def validate_backend(cls, v: str) -> str:
        allowed = ("memory", "sqlite")
        if v not in allowed:
            raise ValueError(f"recorder.backend must be one of {allowed}, got '{v}'")
        return v


class ObserveConfig(BaseModel):
    trace: bool = True
    cost_tracking: bool = True
    log_level: str = "info"
    log_format: str = "pretty"

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        allowed = ("debug", "info", "warning", "error")
        if v not in allowed:
            raise ValueError(f"log_level must be one of {allowed}, got '{v}'")
        return v

    @field_validator("log_format")
    @classmethod
    def validate_log_format(cls, v: str) -> str:
        allowed = ("pretty", "json")
        if v not in allowed:
            raise ValueError(f"log_format must be one of {allowed}, got '{v}'")
        return v


class ControlConfig(BaseModel):
    max_attempts: int = Field(default=3, ge=1)
    base_delay: float = Field(default=1.0, ge=0.0)
    max_delay: float = Field(default=10.0, ge=0.0)
    jitter: float = Field(default=1.0, ge=0.0)
    read_attempts: int = Field(default=3, ge=1)
    read_delay: float = Field(default=0.5, ge=0.0)


class ChainSettings(BaseModel):
    name: str
    description: str = ""
    llm: str = "openai/gpt-4o-mini"
    temperature: float = 0.7
    max_tokens: int = 4096
    recorder: RecorderConfig = Field(default_factory=RecorderConfig)
    observe: ObserveConfig = Field(default_factory=ObserveConfig)
    control: ControlConfig = Field(default_factory=ControlConfig)

    @field_validator("llm")
    @classmethod
    def validate_llm(cls, v: str) -> str:
        if "/" not in v:
            raise ValueError(
                f"llm must be in 'provider/model' format (e.g., 'openai/gpt-4o-mini'), got '{v}'"
            )
        return v

    @field_validator("temperature")
    @classmethod
    def validate_temperature(cls, v: float) -> float:
        if not 0.0 <= v <= 2.0:
            raise ValueError(f"temperature must be between 0.0 and 2.0, got {v}")
        return v


class ConnectionConfig(BaseModel):
    type: Literal["direct", "conditional", "parallel", "collaborative"] = "direct"
    condition: Optional[str] = None
    source_agent_id: Optional[str] = None

    @model_validator(mode="after")
    def validate_condition_syntax(self) -> "ConnectionConfig":
        if self.type == "conditional":
            result = validate_condition(self.condition or "")
            if not result.is_valid:
                raise ValueError(f"invalid condition {self.condition!r}: {result.error}")
        return self


class ImageConfig(BaseModel):
    url: str
    description: str = ""


class AgentConfig(BaseModel):
    id: str
    prompt: str
    model: Optional[str] = None
    name: Optional[str] = None
    connection: Optional[ConnectionConfig] = None
    images: list[ImageConfig] = Field(default_factory=list)
    audio_transcription: Optional[str] = None
    web_search: bool = False

    @field_validator("id", mode="before")
    @classmethod
    def coerce_id(cls, v):
        return str(v) if isinstance(v, int) else v

    @field_validator("model")
    @classmethod
    def validate_model(cls, v: str | None) -> str | None:
        if v is not None and "/" not in v:
            raise ValueError(f"agent model must be in 'provider/model' format, got '{v}'")
        return v


class ChainConfig(BaseModel):
    chain: ChainSettings
    agents: list[AgentConfig] = Field(min_length=1)

    @model_validator(mode="after")
    def validate_agent_references(self) -> "ChainConfig":
        seen: list[str] = []
        for agent in self.agents:
            if agent.id in seen:
                raise ValueError(f"Duplicate agent id '{agent.id}'")

            source = agent.connection.source_agent_id if agent.connection else None
            if source is not None and source not in seen:
                raise ValueError(
                    f"Agent '{agent.id}' connects from '{source}', which is not an earlier agent. "
                    f"Earlier agents: {seen}"
                )
            seen.append(agent.id)
        return self
