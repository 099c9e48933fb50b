"""Run stores: where finished runs go.

Every store supports the same three operations (save, list, clear) and
raises `PersistenceFailure` when the underlying medium rejects them. The
session aggregator does not care which one it is given.
"""

from __future__ import annotations

import json
import logging
import os
from datetime import timezone
from typing import Callable, Optional, Protocol

import httpx
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from smartrunner.core.config import settings
from smartrunner.models.run import Run
from smartrunner.tracking.errors import InsufficientData, PersistenceFailure
from smartrunner.tracking.models import PathPoint, RunRecord

logger = logging.getLogger(__name__)


class RunStore(Protocol):
    def save(self, record: RunRecord) -> None: ...

    def list_runs(self) -> list[RunRecord]: ...

    def clear(self) -> int: ...


# --------- Local (device) storage --------- #

class LocalRunStore:
    """JSON file history, newest run first.

    Same layout the browser kept under the `smartRunner_history` key.
    Defaults to `settings.local_history_path`.
    """

    def __init__(self, path: Optional[str] = None):
        self.path = path or settings.local_history_path

    def _read(self) -> list[dict]:
        if not os.path.exists(self.path):
            return []
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, ValueError) as e:
            raise PersistenceFailure(f"Cannot read run history {self.path}: {e}") from e
        if not isinstance(data, list):
            raise PersistenceFailure(f"Run history {self.path} is not a list")
        return data

    def _write(self, runs: list[dict]) -> None:
        tmp = f"{self.path}.tmp"
        try:
            directory = os.path.dirname(self.path)
            if directory:
                os.makedirs(directory, exist_ok=True)
            with open(tmp, "w", encoding="utf-8") as f:
                json.dump(runs, f)
            os.replace(tmp, self.path)
        except OSError as e:
            raise PersistenceFailure(f"Cannot write run history {self.path}: {e}") from e

    def save(self, record: RunRecord) -> None:
        runs = self._read()
        self._write([record.to_dict(), *runs])
        logger.info("Saved run %s locally (%d in history)", record.id, len(runs) + 1)

    def list_runs(self) -> list[RunRecord]:
        try:
            return [RunRecord.from_dict(r) for r in self._read()]
        except (AttributeError, KeyError, TypeError, ValueError, InsufficientData) as e:
            raise PersistenceFailure(f"Corrupt run history {self.path}: {e}") from e

    def clear(self) -> int:
        try:
            count = len(self._read())
        except PersistenceFailure as e:
            logger.warning("Clearing unreadable run history: %s", e)
            count = 0
        try:
            if os.path.exists(self.path):
                os.remove(self.path)
        except OSError as e:
            raise PersistenceFailure(f"Cannot clear run history {self.path}: {e}") from e
        return count


# --------- Database --------- #

def record_to_row(record: RunRecord, user_id: str) -> Run:
    return Run(
        id=record.id,
        user_id=user_id,
        created_at=record.created_at,
        distance_m=record.distance,
        duration_s=record.duration,
        avg_speed_kmh=record.avg_speed,
        max_speed_kmh=record.max_speed,
        calories=record.calories,
        path=[p.to_dict() for p in record.path],
    )


def row_to_record(row: Run) -> RunRecord:
    created_at = row.created_at
    # SQLite hands back naive datetimes
    if created_at is not None and created_at.tzinfo is None:
        created_at = created_at.replace(tzinfo=timezone.utc)
    return RunRecord(
        id=row.id,
        created_at=created_at,
        distance=float(row.distance_m),
        duration=float(row.duration_s),
        avg_speed=float(row.avg_speed_kmh),
        max_speed=float(row.max_speed_kmh),
        calories=int(row.calories),
        path=tuple(PathPoint.from_dict(p) for p in row.path),
    )


class SqlRunStore:
    """Runs of one user in the application database."""

    def __init__(self, db: Session, user_id: str):
        self.db = db
        self.user_id = user_id

    def save(self, record: RunRecord) -> None:
        try:
            self.db.add(record_to_row(record, self.user_id))
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            raise PersistenceFailure(f"Cannot store run {record.id}: {e}") from e

    def list_runs(self) -> list[RunRecord]:
        try:
            rows = (
                self.db.query(Run)
                .filter(Run.user_id == self.user_id)
                .order_by(Run.created_at.desc())
                .all()
            )
        except SQLAlchemyError as e:
            raise PersistenceFailure(f"Cannot list runs: {e}") from e
        return [row_to_record(r) for r in rows]

    def clear(self) -> int:
        try:
            count = self.db.query(Run).filter(Run.user_id == self.user_id).delete()
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            raise PersistenceFailure(f"Cannot clear runs: {e}") from e
        return count


# --------- Remote backend --------- #

class RemoteRunStore:
    """Talks to the backend's /runs endpoints with a bearer token.

    `token_provider` is called before every request; the token is forwarded
    as is and never inspected here. An injected `client` is used unchanged
    and `base_url` only applies to the client built here.
    """

    def __init__(
        self,
        base_url: str,
        token_provider: Callable[[], Optional[str]],
        client: Optional[httpx.Client] = None,
        timeout: float = 10.0,
    ):
        self.token_provider = token_provider
        self.client = client or httpx.Client(base_url=base_url, timeout=timeout)

    def _headers(self) -> dict[str, str]:
        token = self.token_provider()
        return {"Authorization": f"Bearer {token}"} if token else {}

    def _request(self, method: str, url: str, **kwargs) -> httpx.Response:
        try:
            r = self.client.request(method, url, headers=self._headers(), **kwargs)
            r.raise_for_status()
        except httpx.HTTPError as e:
            raise PersistenceFailure(f"{method} {url} failed: {e}") from e
        return r

    def _json(self, method: str, url: str):
        r = self._request(method, url)
        try:
            return r.json()
        except ValueError as e:
            raise PersistenceFailure(f"{method} {url} returned invalid JSON: {e}") from e

    def save(self, record: RunRecord) -> None:
        self._request("POST", "/runs/", json=record.to_dict())

    def list_runs(self) -> list[RunRecord]:
        data = self._json("GET", "/runs/")
        if not isinstance(data, list):
            raise PersistenceFailure(f"Expected a list of runs, got {type(data).__name__}")
        try:
            return [RunRecord.from_dict(r) for r in data]
        except (AttributeError, KeyError, TypeError, ValueError, InsufficientData) as e:
            raise PersistenceFailure(f"Malformed run from server: {e}") from e

    def clear(self) -> int:
        data = self._json("DELETE", "/runs/")
        try:
            return int(data["deleted"])
        except (KeyError, TypeError, ValueError) as e:
            raise PersistenceFailure(f"Malformed clear response: {data!r}") from e
