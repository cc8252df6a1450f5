"""Message bus over PostgreSQL LISTEN/NOTIFY.

Two autocommit connections: one dedicated to LISTEN and draining
notifications, one for NOTIFY. Topics are channel names; messages are JSON
payloads. A message too large for a NOTIFY payload is inserted into a spill
table and the notification carries a reference that the listener resolves
before dispatch.
"""

import asyncio
import json
from typing import Any

import psycopg
from psycopg import sql

from inspection_import.config.settings import Settings
from inspection_import.logging.logger import Log
from inspection_import.messaging.base import BaseMessageBus, Message, MessageHandler, Subscription
from inspection_import.messaging.exceptions import MessageBusError, MessageTooLargeError

# NOTIFY rejects payloads of 8000 bytes or more.
_MAX_PAYLOAD_BYTES = 7999

# Larger messages are stored in the spill table; the notification carries only the row id.
_SPILL_KEY = "__spillId"
DEFAULT_SPILL_TABLE = "message_bus_payloads"
DEFAULT_SPILL_RETENTION_SECONDS = 3600


def build_conninfo(settings: Settings) -> str:
    return (
        f"host={settings.db_host} "
        f"port={settings.db_port} "
        f"dbname={settings.db_database} "
        f"user={settings.db_username} "
        f"password={settings.db_password}"
    )


class PostgresMessageBus(BaseMessageBus):
    def __init__(
        self,
        conninfo: str,
        poll_interval_seconds: float = 0.5,
        spill_table: str = DEFAULT_SPILL_TABLE,
        spill_retention_seconds: int = DEFAULT_SPILL_RETENTION_SECONDS,
        max_spill_bytes: int = 1024 * 1024,
    ) -> None:
        super().__init__()
        self._conninfo = conninfo
        self._poll_interval = poll_interval_seconds
        self._spill_table = sql.Identifier(spill_table)
        self._spill_retention = spill_retention_seconds
        self._max_spill_bytes = max_spill_bytes
        self._spill_ready = False
        self._listener: psycopg.AsyncConnection[Any] | None = None
        self._publisher: psycopg.AsyncConnection[Any] | None = None
        self._listen_task: asyncio.Task[None] | None = None
        self._listener_lock = asyncio.Lock()
        self._listening: set[str] = set()

    @classmethod
    def from_settings(cls, settings: Settings) -> "PostgresMessageBus":
        return cls(build_conninfo(settings))

    @property
    def is_connected(self) -> bool:
        return (
            self._listener is not None
            and self._publisher is not None
            and not self._listener.closed
            and not self._publisher.closed
        )

    async def connect(self) -> None:
        try:
            self._listener = await psycopg.AsyncConnection.connect(self._conninfo, autocommit=True)
            self._publisher = await psycopg.AsyncConnection.connect(self._conninfo, autocommit=True)
        except psycopg.Error as exc:
            await self.close()
            raise MessageBusError(f"Cannot connect message bus: {exc}") from exc
        self._listen_task = asyncio.get_running_loop().create_task(self._listen_loop())
        Log.info("Postgres message bus connected")

    async def close(self) -> None:
        if self._listen_task is not None:
            self._listen_task.cancel()
            try:
                await self._listen_task
            except asyncio.CancelledError:
                pass
            self._listen_task = None
        for conn in (self._listener, self._publisher):
            if conn is not None and not conn.closed:
                await conn.close()
        self._listener = None
        self._publisher = None
        self._listening.clear()
        self._spill_ready = False

    def _connections(self) -> tuple[psycopg.AsyncConnection[Any], psycopg.AsyncConnection[Any]]:
        listener, publisher = self._listener, self._publisher
        if listener is None or publisher is None or listener.closed or publisher.closed:
            raise MessageBusError("Message bus is not connected")
        return listener, publisher

    async def subscribe(self, topic: str, handler: MessageHandler) -> Subscription:
        listener, _ = self._connections()
        if topic not in self._listening:
            async with self._listener_lock:
                try:
                    await listener.execute(sql.SQL("LISTEN {}").format(sql.Identifier(topic)))
                except psycopg.Error as exc:
                    raise MessageBusError(f"Cannot listen on '{topic}': {exc}") from exc
            self._listening.add(topic)
        return await super().subscribe(topic, handler)

    async def publish(self, topic: str, message: Message) -> None:
        _, publisher = self._connections()
        try:
            payload = json.dumps(message)
        except (TypeError, ValueError) as exc:
            raise MessageBusError(f"Message is not JSON-serializable: {exc}") from exc
        size = len(payload.encode("utf-8"))
        try:
            if size > _MAX_PAYLOAD_BYTES:
                if size > self._max_spill_bytes:
                    raise MessageTooLargeError(
                        f"Message on '{topic}' is {size} bytes, "
                        f"above the {self._max_spill_bytes} byte limit"
                    )
                payload = json.dumps({_SPILL_KEY: await self._spill(publisher, topic, payload)})
            await publisher.execute("SELECT pg_notify(%s, %s)", (topic, payload))
        except psycopg.Error as exc:
            raise MessageBusError(f"Cannot publish to '{topic}': {exc}") from exc

    async def _spill(
        self,
        publisher: psycopg.AsyncConnection[Any],
        topic: str,
        payload: str,
    ) -> int:
        if not self._spill_ready:
            await publisher.execute(
                sql.SQL(
                    "CREATE TABLE IF NOT EXISTS {} ("
                    "id BIGSERIAL PRIMARY KEY, topic TEXT NOT NULL, payload TEXT NOT NULL, "
                    "created_at TIMESTAMPTZ NOT NULL DEFAULT now())"
                ).format(self._spill_table)
            )
            self._spill_ready = True
        await publisher.execute(
            sql.SQL("DELETE FROM {} WHERE created_at < now() - %s * interval '1 second'").format(
                self._spill_table
            ),
            (self._spill_retention,),
        )
        cursor = await publisher.execute(
            sql.SQL("INSERT INTO {} (topic, payload) VALUES (%s, %s) RETURNING id").format(
                self._spill_table
            ),
            (topic, payload),
        )
        row = await cursor.fetchone()
        if row is None:
            raise MessageBusError(f"Cannot store message for '{topic}'")
        Log.debug(f"Spilled {len(payload)} byte message on '{topic}' to row {row[0]}")
        return row[0]

    async def _resolve(
        self,
        listener: psycopg.AsyncConnection[Any],
        message: Message,
    ) -> Message | None:
        spill_id = message.get(_SPILL_KEY)
        if spill_id is None:
            return message
        async with self._listener_lock:
            cursor = await listener.execute(
                sql.SQL("SELECT payload FROM {} WHERE id = %s").format(self._spill_table),
                (spill_id,),
            )
            row = await cursor.fetchone()
        if row is None:
            Log.warning(f"Spilled message {spill_id} is no longer available")
            return None
        resolved = json.loads(row[0])
        return resolved if isinstance(resolved, dict) else None

    async def _listen_loop(self) -> None:
        while self._listener is not None:
            listener = self._listener
            try:
                async with self._listener_lock:
                    received = [n async for n in listener.notifies(timeout=self._poll_interval)]
            except psycopg.Error as exc:
                Log.error(f"Message bus listener stopped: {exc}")
                return
            for notify in received:
                try:
                    message = json.loads(notify.payload)
                except json.JSONDecodeError:
                    Log.warning(f"Dropping non-JSON notification on '{notify.channel}'")
                    continue
                if not isinstance(message, dict):
                    continue
                try:
                    resolved = await self._resolve(listener, message)
                except (psycopg.Error, json.JSONDecodeError) as exc:
                    Log.error(f"Cannot load spilled message on '{notify.channel}': {exc}")
                    continue
                if resolved is not None:
                    await self._dispatch(notify.channel, resolved)
