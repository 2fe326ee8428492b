"""Build a step recorder from the ``chain.recorder`` config section."""

from __future__ import annotations

from agentchain.recorder.base import StepRecorder
from agentchain.recorder.memory import InMemoryStepRecorder
from agentchain.recorder.sqlite import SQLiteStepRecorder


def create_recorder(config: dict) -> StepRecorder:
    backend = config.get("backend", "memory")
    if backend == "sqlite":
        return SQLiteStepRecorder(db_path=config.get("path", ".agentchain/steps.db"))
    return InMemoryStepRecorder(visibility_delay=config.get("visibility_delay", 0.0))
