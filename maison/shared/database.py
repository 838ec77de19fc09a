"""Database configuration and MySQL-backed reading storage."""

import logging
import os
import threading
from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional

import pymysql
from pymysql.cursors import DictCursor

from .errors import PersistenceError
from .models import FIELDS, Reading, StoredReading
from .store import ReadingStore, as_utc, utcnow

logger = logging.getLogger(__name__)

TABLE = "energy_readings"
COLUMNS = [spec.name for spec in FIELDS]

CREATE_TABLE_SQL = f"""
    CREATE TABLE IF NOT EXISTS {TABLE} (
        id BIGINT UNSIGNED NOT NULL AUTO_INCREMENT PRIMARY KEY,
        timestamp DATETIME(6) NOT NULL,
        {", ".join(f"{c} DOUBLE NULL" for c in COLUMNS)},
        INDEX idx_{TABLE}_timestamp (timestamp DESC, id DESC)
    )
"""


@dataclass
class DBConfig:
    """Database connection configuration."""
    host: str
    user: str
    password: str
    database: str
    port: int = 3306

    @classmethod
    def from_env(cls) -> "DBConfig":
        """Create config from environment variables."""
        return cls(
            host=os.getenv("DB_HOST", "localhost"),
            user=os.getenv("DB_USER", ""),
            password=os.getenv("DB_PASSWORD", ""),
            database=os.getenv("DB_DATABASE", "maison"),
            port=int(os.getenv("DB_PORT", "3306")),
        )


def _to_db_time(timestamp: datetime) -> datetime:
    # DATETIME columns hold naive UTC
    return as_utc(timestamp).replace(tzinfo=None)


def _restore_gas(value: Optional[float]):
    if value is not None and float(value).is_integer():
        return int(value)
    return value


class MySQLReadingStore(ReadingStore):
    """Stores readings in a single append-only MySQL table.

    Each worker thread gets its own connection, so concurrent appends are
    not serialized behind one socket.
    """

    def __init__(self, db_config: DBConfig, timeout: float = 5.0):
        """Initialize storage with database configuration.

        Args:
            db_config: Database connection configuration.
            timeout: Connect, read and write timeout in seconds.
        """
        self.db_config = db_config
        self.timeout = timeout
        self._local = threading.local()
        self._connections: List[pymysql.Connection] = []
        self._connections_lock = threading.Lock()

    def _get_connection(self) -> pymysql.Connection:
        """Get or create this thread's database connection."""
        conn = getattr(self._local, "connection", None)
        if conn is None or not conn.open:
            timeout = max(1, int(round(self.timeout)))
            conn = pymysql.connect(
                host=self.db_config.host,
                port=self.db_config.port,
                user=self.db_config.user,
                password=self.db_config.password,
                database=self.db_config.database,
                cursorclass=DictCursor,
                connect_timeout=timeout,
                read_timeout=timeout,
                write_timeout=timeout,
            )
            self._local.connection = conn
            with self._connections_lock:
                self._connections.append(conn)
        return conn

    def ensure_schema(self):
        """Create the readings table if it does not exist."""
        try:
            conn = self._get_connection()
            with conn.cursor() as cursor:
                cursor.execute(CREATE_TABLE_SQL)
            conn.commit()
        except pymysql.MySQLError as e:
            raise PersistenceError(f"Could not create {TABLE}: {e}") from e

    def append(self, reading: Reading) -> StoredReading:
        timestamp = as_utc(reading.timestamp) if reading.timestamp else utcnow()
        insert_sql = f"""
            INSERT INTO {TABLE} (timestamp, {", ".join(COLUMNS)})
            VALUES ({", ".join(["%s"] * (len(COLUMNS) + 1))})
        """
        params = [_to_db_time(timestamp)] + [getattr(reading, c) for c in COLUMNS]

        conn = None
        try:
            conn = self._get_connection()
            with conn.cursor() as cursor:
                cursor.execute(insert_sql, params)
                row_id = cursor.lastrowid
            conn.commit()
        except pymysql.MySQLError as e:
            if conn is not None:
                try:
                    conn.rollback()
                except pymysql.MySQLError as rollback_error:
                    logger.debug(f"Rollback failed: {rollback_error}")
            raise PersistenceError(f"Error storing reading: {e}") from e

        return StoredReading.from_reading(reading, id=row_id, timestamp=timestamp)

    def _fetch_recent(self, count: int) -> List[StoredReading]:
        query = f"""
            SELECT id, timestamp, {", ".join(COLUMNS)}
            FROM {TABLE}
            ORDER BY timestamp DESC, id DESC
            LIMIT %s
        """
        try:
            conn = self._get_connection()
            with conn.cursor() as cursor:
                cursor.execute(query, (count,))
                rows = cursor.fetchall()
            # end the implicit read transaction so later queries see new rows
            conn.commit()
        except pymysql.MySQLError as e:
            raise PersistenceError(f"Error fetching recent readings: {e}") from e

        return [self._row_to_reading(row) for row in rows]

    @staticmethod
    def _row_to_reading(row: dict) -> StoredReading:
        values = {c: row[c] for c in COLUMNS}
        values["gas_level"] = _restore_gas(values["gas_level"])
        return StoredReading(id=row["id"], timestamp=as_utc(row["timestamp"]), **values)

    def ping(self) -> bool:
        try:
            self._get_connection().ping(reconnect=True)
            return True
        except pymysql.MySQLError as e:
            logger.warning(f"Database ping failed: {e}")
            return False

    def close(self):
        """Close every connection opened by this store."""
        with self._connections_lock:
            connections, self._connections = self._connections, []
        for conn in connections:
            if conn.open:
                conn.close()
        self._local = threading.local()
