import contextlib
import datetime
import json
import math
import sqlite3
import threading
from typing import Any, Container, Dict, Iterator, List, Optional

from .base import BaseStorage
from ..core.history import StudyDirection
from ..core.trial import FrozenTrial, TrialState
from ..distributions import BaseDistribution, distribution_to_json, json_to_distribution
from ..exceptions import (
    DuplicatedStudyError,
    StudyNotFoundError,
    TrialNotFoundError,
    UpdateFinishedTrialError,
)

_SCHEMA = (
    """
    CREATE TABLE IF NOT EXISTS studies (
        study_id INTEGER PRIMARY KEY AUTOINCREMENT,
        study_name TEXT NOT NULL UNIQUE,
        direction TEXT NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS study_user_attributes (
        study_id INTEGER NOT NULL,
        key TEXT NOT NULL,
        value_json TEXT NOT NULL, -- Stored as JSON string
        PRIMARY KEY (study_id, key),
        FOREIGN KEY (study_id) REFERENCES studies (study_id)
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS trials (
        trial_id INTEGER PRIMARY KEY AUTOINCREMENT,
        number INTEGER NOT NULL,
        study_id INTEGER NOT NULL,
        state TEXT NOT NULL,
        value REAL,
        datetime_start TEXT,
        datetime_complete TEXT,
        UNIQUE (study_id, number),
        FOREIGN KEY (study_id) REFERENCES studies (study_id)
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS trial_params (
        trial_id INTEGER NOT NULL,
        param_name TEXT NOT NULL,
        param_value REAL NOT NULL, -- Internal representation
        distribution_json TEXT NOT NULL,
        PRIMARY KEY (trial_id, param_name),
        FOREIGN KEY (trial_id) REFERENCES trials (trial_id)
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS trial_intermediate_values (
        trial_id INTEGER NOT NULL,
        step INTEGER NOT NULL,
        intermediate_value REAL,
        PRIMARY KEY (trial_id, step),
        FOREIGN KEY (trial_id) REFERENCES trials (trial_id)
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS trial_user_attributes (
        trial_id INTEGER NOT NULL,
        key TEXT NOT NULL,
        value_json TEXT NOT NULL,
        PRIMARY KEY (trial_id, key),
        FOREIGN KEY (trial_id) REFERENCES trials (trial_id)
    )
    """,
)


def _to_iso(dt: Optional[datetime.datetime]) -> Optional[str]:
    return dt.isoformat() if dt is not None else None


def _from_iso(text: Optional[str]) -> Optional[datetime.datetime]:
    return datetime.datetime.fromisoformat(text) if text is not None else None


class SQLiteStorage(BaseStorage):
    """
    A storage backend that uses SQLite for persistence.

    This class implements the BaseStorage interface to provide a durable, file-based
    storage solution for studies. Each thread gets its own connection; every
    write runs inside a ``BEGIN IMMEDIATE`` transaction so that trial numbers
    stay unique and state transitions stay atomic, also across processes
    sharing the same file.

    Args:
        database_url (str): The path to the SQLite database file, optionally
            prefixed with ``sqlite:///``.
    """

    def __init__(self, database_url: str):
        if database_url.startswith("sqlite:///"):
            self.database_url = database_url[len("sqlite:///"):]
        else:
            self.database_url = database_url
        if self.database_url in ("", ":memory:"):
            raise ValueError(
                "SQLiteStorage needs a database file shared by all threads; "
                "use InMemoryStorage for a non-persistent study."
            )
        self._local = threading.local()
        self._init_db()

    def _get_conn(self) -> sqlite3.Connection:
        """Establishes and returns this thread's database connection."""
        if not hasattr(self._local, "conn"):
            conn = sqlite3.connect(self.database_url, timeout=30.0, isolation_level=None)
            conn.row_factory = sqlite3.Row
            conn.execute("PRAGMA journal_mode=WAL;")
            conn.execute("PRAGMA synchronous=NORMAL;")
            self._local.conn = conn
        return self._local.conn

    @contextlib.contextmanager
    def _transaction(self) -> Iterator[sqlite3.Connection]:
        conn = self._get_conn()
        conn.execute("BEGIN IMMEDIATE")
        try:
            yield conn
        except BaseException:
            conn.execute("ROLLBACK")
            raise
        else:
            conn.execute("COMMIT")

    def _init_db(self):
        """Initializes the database schema if it doesn't exist."""
        with self._transaction() as conn:
            for statement in _SCHEMA:
                conn.execute(statement)

    def close(self) -> None:
        conn = getattr(self._local, "conn", None)
        if conn is not None:
            conn.close()
            del self._local.conn

    # Studies

    def create_study(self, study_name: str, direction: StudyDirection) -> int:
        try:
            with self._transaction() as conn:
                cursor = conn.execute(
                    "INSERT INTO studies (study_name, direction) VALUES (?, ?)",
                    (study_name, direction.value)
                )
                return cursor.lastrowid
        except sqlite3.IntegrityError as e:
            raise DuplicatedStudyError(f"Study '{study_name}' already exists.") from e

    def delete_study(self, study_id: int) -> None:
        with self._transaction() as conn:
            self._check_study(conn, study_id)
            trial_ids = "SELECT trial_id FROM trials WHERE study_id = ?"
            for table in ("trial_params", "trial_intermediate_values", "trial_user_attributes"):
                conn.execute(f"DELETE FROM {table} WHERE trial_id IN ({trial_ids})", (study_id,))
            conn.execute("DELETE FROM trials WHERE study_id = ?", (study_id,))
            conn.execute("DELETE FROM study_user_attributes WHERE study_id = ?", (study_id,))
            conn.execute("DELETE FROM studies WHERE study_id = ?", (study_id,))

    def get_study_id_from_name(self, study_name: str) -> int:
        row = self._get_conn().execute(
            "SELECT study_id FROM studies WHERE study_name = ?", (study_name,)
        ).fetchone()
        if row is None:
            raise StudyNotFoundError(f"Study '{study_name}' does not exist.")
        return row["study_id"]

    def get_study_name_from_id(self, study_id: int) -> str:
        return self._check_study(self._get_conn(), study_id)["study_name"]

    def get_study_direction(self, study_id: int) -> StudyDirection:
        return StudyDirection(self._check_study(self._get_conn(), study_id)["direction"])

    def get_all_study_names(self) -> List[str]:
        rows = self._get_conn().execute(
            "SELECT study_name FROM studies ORDER BY study_id"
        ).fetchall()
        return [row["study_name"] for row in rows]

    def set_study_user_attr(self, study_id: int, key: str, value: Any) -> None:
        with self._transaction() as conn:
            self._check_study(conn, study_id)
            conn.execute(
                "INSERT OR REPLACE INTO study_user_attributes (study_id, key, value_json) VALUES (?, ?, ?)",
                (study_id, key, json.dumps(value))
            )

    def get_study_user_attrs(self, study_id: int) -> Dict[str, Any]:
        conn = self._get_conn()
        self._check_study(conn, study_id)
        rows = conn.execute(
            "SELECT key, value_json FROM study_user_attributes WHERE study_id = ?", (study_id,)
        ).fetchall()
        return {row["key"]: json.loads(row["value_json"]) for row in rows}

    # Trials

    def create_trial(self, study_id: int, template_trial: Optional[FrozenTrial] = None) -> int:
        with self._transaction() as conn:
            self._check_study(conn, study_id)
            number = conn.execute(
                "SELECT COUNT(*) FROM trials WHERE study_id = ?", (study_id,)
            ).fetchone()[0]

            if template_trial is None:
                cursor = conn.execute(
                    "INSERT INTO trials (number, study_id, state, datetime_start) VALUES (?, ?, ?, ?)",
                    (number, study_id, TrialState.RUNNING.value, _to_iso(datetime.datetime.now()))
                )
                return cursor.lastrowid

            t = template_trial
            cursor = conn.execute(
                "INSERT INTO trials (number, study_id, state, value, datetime_start, datetime_complete) "
                "VALUES (?, ?, ?, ?, ?, ?)",
                (number, study_id, t.state.value, t.value,
                 _to_iso(t.datetime_start), _to_iso(t.datetime_complete))
            )
            trial_id = cursor.lastrowid
            for name, value in t.params.items():
                dist = t.distributions[name]
                conn.execute(
                    "INSERT INTO trial_params (trial_id, param_name, param_value, distribution_json) "
                    "VALUES (?, ?, ?, ?)",
                    (trial_id, name, dist.to_internal_repr(value), distribution_to_json(dist))
                )
            for step, value in t.intermediate_values.items():
                conn.execute(
                    "INSERT INTO trial_intermediate_values (trial_id, step, intermediate_value) "
                    "VALUES (?, ?, ?)",
                    (trial_id, step, value)
                )
            for key, value in t.user_attrs.items():
                conn.execute(
                    "INSERT INTO trial_user_attributes (trial_id, key, value_json) VALUES (?, ?, ?)",
                    (trial_id, key, json.dumps(value))
                )
            return trial_id

    def set_trial_param(self, trial_id: int, param_name: str, param_value_internal: float,
                        distribution: BaseDistribution) -> None:
        with self._transaction() as conn:
            self._check_running(conn, trial_id)
            conn.execute(
                "INSERT OR REPLACE INTO trial_params (trial_id, param_name, param_value, distribution_json) "
                "VALUES (?, ?, ?, ?)",
                (trial_id, param_name, param_value_internal, distribution_to_json(distribution))
            )

    def set_trial_state_values(self, trial_id: int, state: TrialState,
                               value: Optional[float] = None) -> bool:
        complete = _to_iso(datetime.datetime.now()) if state.is_finished() else None
        with self._transaction() as conn:
            cursor = conn.execute(
                "UPDATE trials SET state = ?, value = COALESCE(?, value), datetime_complete = ? "
                "WHERE trial_id = ? AND state = ?",
                (state.value, value, complete, trial_id, TrialState.RUNNING.value)
            )
            if cursor.rowcount == 0:
                self._check_running(conn, trial_id)
            return True

    def set_trial_intermediate_value(self, trial_id: int, step: int, intermediate_value: float) -> None:
        with self._transaction() as conn:
            self._check_running(conn, trial_id)
            conn.execute(
                "INSERT OR REPLACE INTO trial_intermediate_values (trial_id, step, intermediate_value) "
                "VALUES (?, ?, ?)",
                (trial_id, step, None if math.isnan(intermediate_value) else intermediate_value)
            )

    def set_trial_user_attr(self, trial_id: int, key: str, value: Any) -> None:
        with self._transaction() as conn:
            self._check_running(conn, trial_id)
            conn.execute(
                "INSERT OR REPLACE INTO trial_user_attributes (trial_id, key, value_json) VALUES (?, ?, ?)",
                (trial_id, key, json.dumps(value))
            )

    def get_trial(self, trial_id: int) -> FrozenTrial:
        conn = self._get_conn()
        row = conn.execute("SELECT * FROM trials WHERE trial_id = ?", (trial_id,)).fetchone()
        if row is None:
            raise TrialNotFoundError(f"No trial with trial_id {trial_id} exists.")
        return self._build_trials(conn, [row], "trial_id = ?", (trial_id,))[0]

    def get_all_trials(self, study_id: int,
                       states: Optional[Container[TrialState]] = None) -> List[FrozenTrial]:
        conn = self._get_conn()
        self._check_study(conn, study_id)
        rows = conn.execute(
            "SELECT * FROM trials WHERE study_id = ? ORDER BY number", (study_id,)
        ).fetchall()
        where = "trial_id IN (SELECT trial_id FROM trials WHERE study_id = ?)"
        trials = self._build_trials(conn, rows, where, (study_id,))
        if states is not None:
            trials = [t for t in trials if t.state in states]
        return trials

    def _build_trials(self, conn: sqlite3.Connection, rows, where: str, args: tuple) -> List[FrozenTrial]:
        trials: Dict[int, FrozenTrial] = {}
        for row in rows:
            trials[row["trial_id"]] = FrozenTrial(
                number=row["number"],
                trial_id=row["trial_id"],
                state=TrialState(row["state"]),
                value=row["value"],
                datetime_start=_from_iso(row["datetime_start"]),
                datetime_complete=_from_iso(row["datetime_complete"]),
            )

        for row in conn.execute(
            f"SELECT trial_id, param_name, param_value, distribution_json FROM trial_params WHERE {where}",
            args
        ):
            trial = trials.get(row["trial_id"])
            if trial is None:
                continue
            dist = json_to_distribution(row["distribution_json"])
            trial.params[row["param_name"]] = dist.to_external_repr(row["param_value"])
            trial.distributions[row["param_name"]] = dist

        for row in conn.execute(
            f"SELECT trial_id, step, intermediate_value FROM trial_intermediate_values WHERE {where} "
            "ORDER BY step",
            args
        ):
            trial = trials.get(row["trial_id"])
            if trial is None:
                continue
            value = row["intermediate_value"]
            trial.intermediate_values[row["step"]] = float("nan") if value is None else value

        for row in conn.execute(
            f"SELECT trial_id, key, value_json FROM trial_user_attributes WHERE {where}", args
        ):
            trial = trials.get(row["trial_id"])
            if trial is None:
                continue
            trial.user_attrs[row["key"]] = json.loads(row["value_json"])

        return list(trials.values())

    def _check_study(self, conn: sqlite3.Connection, study_id: int) -> sqlite3.Row:
        row = conn.execute("SELECT * FROM studies WHERE study_id = ?", (study_id,)).fetchone()
        if row is None:
            raise StudyNotFoundError(f"No study with study_id {study_id} exists.")
        return row

    def _check_running(self, conn: sqlite3.Connection, trial_id: int) -> None:
        row = conn.execute(
            "SELECT number, state FROM trials WHERE trial_id = ?", (trial_id,)
        ).fetchone()
        if row is None:
            raise TrialNotFoundError(f"No trial with trial_id {trial_id} exists.")
        state = TrialState(row["state"])
        if state.is_finished():
            raise UpdateFinishedTrialError(
                f"Trial #{row['number']} has already finished and can not be updated "
                f"(state: {state.name})."
            )
