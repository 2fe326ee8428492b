"""Persistent step recorder backed by SQLite."""

from __future__ import annotations

import asyncio
import sqlite3
import threading
import time
import uuid
from pathlib import Path
from typing import Any

from agentchain.core.result import AgentStep, TokenUsage
from agentchain.recorder.base import StepRecorder, StepStateError


class SQLiteStepRecorder(StepRecorder):

    def __init__(self, db_path: str = ".agentchain/steps.db"):
        self.db_path = db_path

        if db_path != ":memory:":
            Path(db_path).parent.mkdir(parents=True, exist_ok=True)

        self._conn = sqlite3.connect(db_path, check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        self._db_lock = threading.Lock()
        self._init_db()

    def _init_db(self):
        """Create tables if they don't exist."""
        self._conn.execute("""
            CREATE TABLE IF NOT EXISTS agent_steps (
                id TEXT PRIMARY KEY,
                session_id TEXT NOT NULL,
                idx INTEGER NOT NULL,
                model TEXT NOT NULL,
                prompt TEXT NOT NULL,
                name TEXT,
                connection_type TEXT NOT NULL DEFAULT 'direct',
                connection_condition TEXT,
                source_agent_index INTEGER,
                execution_group INTEGER,
                response TEXT,
                streamed_content TEXT,
                thinking TEXT,
                is_thinking INTEGER DEFAULT 0,
                is_streaming INTEGER DEFAULT 0,
                is_complete INTEGER DEFAULT 0,
                was_skipped INTEGER DEFAULT 0,
                skip_reason TEXT,
                error TEXT,
                input_tokens INTEGER DEFAULT 0,
                output_tokens INTEGER DEFAULT 0,
                cost REAL DEFAULT 0.0,
                created_at REAL NOT NULL,
                completed_at REAL,
                UNIQUE (session_id, idx)
            )
        """)
        self._conn.execute("""
            CREATE INDEX IF NOT EXISTS idx_agent_steps_session ON agent_steps(session_id)
        """)
        self._conn.commit()

    async def _db_query(self, sql: str, params: tuple = ()) -> list:
        def _run():
            with self._db_lock:
                return self._conn.execute(sql, params).fetchall()
        return await asyncio.to_thread(_run)

    async def _transition(self, step_id: str, fields: dict[str, Any]):
        """Apply *fields* to a non-terminal step in one locked read-check-write."""

        def _run():
            with self._db_lock:
                row = self._conn.execute(
                    "SELECT * FROM agent_steps WHERE id = ?", (step_id,)
                ).fetchone()
                if row is None:
                    raise KeyError(f"Unknown step '{step_id}'")
                step = _row_to_step(row)
                if step.is_terminal:
                    raise StepStateError(
                        f"Step {step.index} of session '{step.session_id}' is already {step.status.value}"
                    )
                assignments = ", ".join(f"{column} = ?" for column in fields)
                self._conn.execute(
                    f"UPDATE agent_steps SET {assignments} WHERE id = ?",
                    (*fields.values(), step_id),
                )
                self._conn.commit()

        await asyncio.to_thread(_run)

    async def create_step(
        self,
        session_id: str,
        index: int,
        model: str,
        prompt: str,
        name: str | None,
        connection_type: str,
        connection_condition: str | None = None,
        source_agent_index: int | None = None,
        execution_group: int | None = None,
    ) -> str:
        step_id = str(uuid.uuid4())

        def _run():
            with self._db_lock:
                try:
                    self._conn.execute(
                        "INSERT INTO agent_steps "
                        "(id, session_id, idx, model, prompt, name, connection_type, "
                        "connection_condition, source_agent_index, execution_group, created_at) "
                        "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
                        (
                            step_id, session_id, index, model, prompt, name, connection_type,
                            connection_condition, source_agent_index, execution_group, time.time(),
                        ),
                    )
                    self._conn.commit()
                except sqlite3.IntegrityError as e:
                    self._conn.rollback()
                    raise StepStateError(
                        f"Step {index} already exists in session '{session_id}'"
                    ) from e

        await asyncio.to_thread(_run)
        return step_id

    async def mark_skipped(self, step_id: str, reason: str):
        await self._transition(step_id, {
            "was_skipped": 1,
            "skip_reason": reason,
            "is_streaming": 0,
            "completed_at": time.time(),
        })

    async def update_streaming(self, step_id: str, content: str):
        await self._transition(step_id, {"streamed_content": content, "is_streaming": 1})

    async def update_thinking(self, step_id: str, thinking: str, is_thinking: bool = True):
        await self._transition(step_id, {
            "thinking": thinking,
            "is_thinking": int(is_thinking),
            "is_streaming": 1,
        })

    async def mark_complete(
        self,
        step_id: str,
        content: str,
        usage: TokenUsage | None = None,
        cost: float = 0.0,
        thinking: str | None = None,
    ):
        usage = usage or TokenUsage()
        fields: dict[str, Any] = {
            "response": content,
            "is_complete": 1,
            "is_streaming": 0,
            "is_thinking": 0,
            "input_tokens": usage.input_tokens,
            "output_tokens": usage.output_tokens,
            "cost": cost,
            "completed_at": time.time(),
        }
        if thinking:
            fields["thinking"] = thinking
        await self._transition(step_id, fields)

    async def mark_error(self, step_id: str, message: str):
        await self._transition(step_id, {
            "error": message,
            "is_streaming": 0,
            "is_thinking": 0,
            "completed_at": time.time(),
        })

    async def read_steps(self, session_id: str) -> list[AgentStep]:
        rows = await self._db_query(
            "SELECT * FROM agent_steps WHERE session_id = ? ORDER BY idx",
            (session_id,),
        )
        return [_row_to_step(row) for row in rows]

    async def get_step(self, step_id: str) -> AgentStep | None:
        rows = await self._db_query("SELECT * FROM agent_steps WHERE id = ?", (step_id,))
        return _row_to_step(rows[0]) if rows else None

    async def list_sessions(self) -> list[dict]:
        rows = await self._db_query(
            "SELECT session_id, COUNT(*) AS steps, MIN(created_at) AS started_at "
            "FROM agent_steps GROUP BY session_id ORDER BY started_at DESC"
        )
        return [dict(row) for row in rows]

    def close(self):
        self._conn.close()


def _row_to_step(row: sqlite3.Row) -> AgentStep:
    return AgentStep(
        id=row["id"],
        session_id=row["session_id"],
        index=row["idx"],
        model=row["model"],
        prompt=row["prompt"],
        name=row["name"],
        connection_type=row["connection_type"],
        connection_condition=row["connection_condition"],
        source_agent_index=row["source_agent_index"],
        execution_group=row["execution_group"],
        response=row["response"],
        streamed_content=row["streamed_content"],
        thinking=row["thinking"],
        is_thinking=bool(row["is_thinking"]),
        is_streaming=bool(row["is_streaming"]),
        is_complete=bool(row["is_complete"]),
        was_skipped=bool(row["was_skipped"]),
        skip_reason=row["skip_reason"],
        error=row["error"],
        tokens=TokenUsage(input_tokens=row["input_tokens"], output_tokens=row["output_tokens"]),
        cost=row["cost"],
        created_at=row["created_at"],
        completed_at=row["completed_at"],
    )
