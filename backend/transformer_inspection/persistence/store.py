"""
SQLite store for inspections.

Single-file SQLite database, one row per inspection. The anomaly set and
its audit log are JSON text columns that are always replaced whole: the
store never patches inside an array, so callers must write complete,
already-merged arrays.

This is also the deserialization boundary. Array columns have been
written as JSON arrays, as JSON-encoded strings, and as empty text over
the system's life; decode_array() normalizes all of them so nothing past
this module ever inspects the raw representation.

Read-modify-write through this store is not transactional across calls.
Two concurrent edits to one inspection can interleave and the later
save_anomalies() wins (lost update).
"""

import json
import sqlite3
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional

from .errors import LoadError, PersistenceError, SaveError, SchemaError


# Database schema version for migrations
SCHEMA_VERSION = 1


def decode_array(value: Any, column: str = "array") -> List[Dict[str, Any]]:
    """
    Normalize a stored array column to a list of dicts.

    Accepts None, a list, JSON text of a list, or JSON text of a
    JSON-encoded string holding a list.

    Raises:
        LoadError: If the value cannot be read as a list of objects
    """
    if value is None:
        return []

    decoded = value
    # At most two rounds: plain JSON text, then double-encoded text
    for _ in range(2):
        if not isinstance(decoded, str):
            break
        if not decoded.strip():
            return []
        try:
            decoded = json.loads(decoded)
        except json.JSONDecodeError as e:
            raise LoadError(f"Column {column} is not valid JSON: {e}") from e

    if not isinstance(decoded, list):
        raise LoadError(f"Column {column} must hold a JSON array, got {type(decoded).__name__}")

    for item in decoded:
        if not isinstance(item, dict):
            raise LoadError(f"Column {column} must hold objects, got {type(item).__name__}")

    return decoded


class InspectionStore:
    """
    Manages SQLite persistence for inspections.

    Stores:
    - Inspection header fields (numbers, dates, status, inspector)
    - Reference image URL (the image bytes live in external object storage)
    - Anomaly set and anomaly audit log, as whole JSON arrays
    """

    def __init__(self, db_path: Optional[str] = None):
        """
        Initialize store.

        Args:
            db_path: Path to SQLite database file (defaults to ./inspections.db)
        """
        if db_path is None:
            db_path = str(Path.cwd() / "inspections.db")

        self.db_path = db_path
        self._ensure_schema()

    @contextmanager
    def _connect(self):
        """Context manager for database connections."""
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row  # Access columns by name
        try:
            yield conn
            conn.commit()
        except PersistenceError:
            conn.rollback()
            raise
        except Exception as e:
            conn.rollback()
            raise PersistenceError(f"Database operation failed: {e}") from e
        finally:
            conn.close()

    def _ensure_schema(self):
        """Create schema if it doesn't exist."""
        with self._connect() as conn:
            cursor = conn.cursor()

            # Schema version tracking
            cursor.execute("""
                CREATE TABLE IF NOT EXISTS schema_version (
                    version INTEGER PRIMARY KEY,
                    applied_at TEXT NOT NULL
                )
            """)

            cursor.execute("SELECT version FROM schema_version ORDER BY version DESC LIMIT 1")
            row = cursor.fetchone()
            current_version = row[0] if row else 0

            if current_version > SCHEMA_VERSION:
                raise SchemaError(
                    f"Database {self.db_path} has schema version {current_version}, "
                    f"newer than supported version {SCHEMA_VERSION}"
                )

            if current_version < SCHEMA_VERSION:
                self._migrate_schema(conn, current_version)

    def _migrate_schema(self, conn, from_version: int):
        """Apply schema migrations."""
        cursor = conn.cursor()

        if from_version < 1:
            cursor.execute("""
                CREATE TABLE IF NOT EXISTS inspections (
                    iid INTEGER PRIMARY KEY AUTOINCREMENT,
                    inspection_number TEXT NOT NULL UNIQUE,
                    transformer_number TEXT NOT NULL,
                    inspection_date TEXT,
                    maintainance_date TEXT,
                    status TEXT,
                    inspector TEXT,
                    ref_image TEXT NOT NULL DEFAULT '',
                    anomalies TEXT NOT NULL DEFAULT '[]',
                    anomalies_log TEXT NOT NULL DEFAULT '[]',
                    created_at TEXT NOT NULL
                )
            """)

            cursor.execute("""
                CREATE INDEX IF NOT EXISTS idx_inspections_transformer
                ON inspections (transformer_number)
            """)

            cursor.execute(
                "INSERT INTO schema_version (version, applied_at) VALUES (?, ?)",
                (1, datetime.now().isoformat())
            )

    # Inspection persistence

    def create_inspection(self, inspection_data: Dict) -> int:
        """
        Insert a new inspection.

        Args:
            inspection_data: Dict with wire keys: inspectionNumber,
                transformerNumber, inspectionDate, maintainanceDate, status,
                inspector, refImage, anomalies, anomaliesLog

        Returns:
            The new numeric inspection id (iid)

        Raises:
            SaveError: If the inspection number is already taken
        """
        with self._connect() as conn:
            cursor = conn.cursor()
            try:
                cursor.execute("""
                    INSERT INTO inspections (
                        inspection_number, transformer_number, inspection_date,
                        maintainance_date, status, inspector, ref_image,
                        anomalies, anomalies_log, created_at
                    ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """, (
                    inspection_data["inspectionNumber"],
                    inspection_data["transformerNumber"],
                    inspection_data.get("inspectionDate"),
                    inspection_data.get("maintainanceDate"),
                    inspection_data.get("status"),
                    inspection_data.get("inspector"),
                    inspection_data.get("refImage") or "",
                    json.dumps(inspection_data.get("anomalies", [])),
                    json.dumps(inspection_data.get("anomaliesLog", [])),
                    datetime.now().isoformat(),
                ))
            except sqlite3.IntegrityError as e:
                raise SaveError(
                    f"Inspection number already exists: {inspection_data['inspectionNumber']}"
                ) from e
            return cursor.lastrowid

    def load_inspection(self, iid: int) -> Optional[Dict]:
        """
        Load one inspection.

        Args:
            iid: Numeric inspection id

        Returns:
            Dict with wire keys and decoded arrays, or None if not found
        """
        with self._connect() as conn:
            cursor = conn.cursor()
            cursor.execute("SELECT * FROM inspections WHERE iid = ?", (iid,))
            row = cursor.fetchone()

        if not row:
            return None
        return self._row_to_dict(row)

    def load_all_inspections(self) -> List[Dict]:
        """Load all inspections, newest first."""
        with self._connect() as conn:
            cursor = conn.cursor()
            cursor.execute("SELECT * FROM inspections ORDER BY iid DESC")
            rows = cursor.fetchall()

        return [self._row_to_dict(row) for row in rows]

    def inspection_number_exists(self, inspection_number: str) -> bool:
        """Check whether an inspection number is taken."""
        with self._connect() as conn:
            cursor = conn.cursor()
            cursor.execute(
                "SELECT 1 FROM inspections WHERE inspection_number = ? LIMIT 1",
                (inspection_number,)
            )
            return cursor.fetchone() is not None

    def save_anomalies(self, iid: int, anomalies: List[Dict], anomalies_log: List[Dict]) -> bool:
        """
        Replace both anomaly arrays of an inspection.

        Args:
            iid: Numeric inspection id
            anomalies: Complete anomaly set
            anomalies_log: Complete audit log

        Returns:
            True if the inspection exists and was updated
        """
        with self._connect() as conn:
            cursor = conn.cursor()
            cursor.execute(
                "UPDATE inspections SET anomalies = ?, anomalies_log = ? WHERE iid = ?",
                (json.dumps(anomalies), json.dumps(anomalies_log), iid)
            )
            return cursor.rowcount > 0

    def save_ref_image(self, iid: int, ref_image: str) -> bool:
        """Replace the reference image URL. Returns True if updated."""
        with self._connect() as conn:
            cursor = conn.cursor()
            cursor.execute(
                "UPDATE inspections SET ref_image = ? WHERE iid = ?",
                (ref_image or "", iid)
            )
            return cursor.rowcount > 0

    def delete_inspection(self, iid: int) -> bool:
        """Delete an inspection. Returns True if a row was removed."""
        with self._connect() as conn:
            cursor = conn.cursor()
            cursor.execute("DELETE FROM inspections WHERE iid = ?", (iid,))
            return cursor.rowcount > 0

    @staticmethod
    def _row_to_dict(row: sqlite3.Row) -> Dict:
        return {
            "iid": row["iid"],
            "inspectionNumber": row["inspection_number"],
            "transformerNumber": row["transformer_number"],
            "inspectionDate": row["inspection_date"],
            "maintainanceDate": row["maintainance_date"],
            "status": row["status"],
            "inspector": row["inspector"],
            "refImage": row["ref_image"] or "",
            "anomalies": decode_array(row["anomalies"], "anomalies"),
            "anomaliesLog": decode_array(row["anomalies_log"], "anomalies_log"),
            "createdAt": row["created_at"],
        }
