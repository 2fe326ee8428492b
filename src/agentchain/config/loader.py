"""YAML chain definition loading and validation."""

from __future__ import annotations

from pathlib import Path
from typing import Any, Union

import yaml
from pydantic import ValidationError

from agentchain.config.defaults import merge_with_defaults
from agentchain.config.schema import ChainConfig


class ConfigError(Exception):
    pass


def _read(path: Path) -> str:
    if not path.exists():
        raise ConfigError(
            f"Chain file not found at '{path}'. "
            f"Run 'agentchain init' to create one, or point at it with --yaml."
        )
    try:
        return path.read_text(encoding="utf-8")
    except OSError as e:
        raise ConfigError(f"Cannot read chain file '{path}': {e}")


def _parse(text: str, source: str) -> dict:
    try:
        data = yaml.safe_load(text)
    except yaml.YAMLError as e:
        mark = getattr(e, "problem_mark", None)
        where = f" on line {mark.line + 1}, column {mark.column + 1}" if mark is not None else ""
        raise ConfigError(f"YAML syntax error in {source}{where}: {getattr(e, 'problem', None) or e}")

    if not isinstance(data, dict):
        raise ConfigError(
            f"Chain definition {source} must be a YAML mapping with 'chain' and 'agents', "
            f"got {type(data).__name__}."
        )
    return data


def _location(loc: tuple, config: dict) -> str:
    """Render a pydantic error location, naming the agent when the error is inside one."""
    parts = [str(p) for p in loc]
    if len(loc) >= 2 and loc[0] == "agents" and isinstance(loc[1], int):
        agents = config.get("agents") or []
        agent_id = agents[loc[1]].get("id") if loc[1] < len(agents) and isinstance(agents[loc[1]], dict) else None
        label = f"agents[{loc[1]}]" + (f" ({agent_id})" if agent_id else "")
        parts = [label] + parts[2:]
    return " → ".join(parts)


class ConfigLoader:

    @staticmethod
    def load(path: Union[str, Path]) -> dict:
        path = Path(path)
        return ConfigLoader.validate(_parse(_read(path), f"'{path}'"))

    @staticmethod
    def loads(text: str) -> dict:
        """Validate a chain definition given as YAML text."""
        return ConfigLoader.validate(_parse(text, "<string>"))

    @staticmethod
    def validate(config: dict[str, Any]) -> dict:
        merged = merge_with_defaults(config)
        try:
            validated = ChainConfig(**merged)
        except ValidationError as e:
            lines = []
            for err in e.errors():
                loc = _location(err["loc"], merged)
                lines.append(f"  - {loc}: {err['msg']}" if loc else f"  - {err['msg']}")
            raise ConfigError("Chain validation failed:\n" + "\n".join(lines))

        return validated.model_dump()
