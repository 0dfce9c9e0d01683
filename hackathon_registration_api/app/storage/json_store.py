"""
JSON file storage backend.

All data lives in one JSON document::

    {"problemStatements": [...], "registrations": [...], "settings": {...}}

There is no native transaction, so mutual exclusion is emulated with a
sibling lock file created with ``O_CREAT | O_EXCL``.  Creating the file
either succeeds for exactly one caller or fails with
``FileExistsError``; the loser sleeps ``lock_retry_delay`` seconds and
retries up to ``lock_retries`` times before giving up with
``LockAcquisitionError``.  Inside the lock the document is re-read
from disk, checked, modified and written back through a temporary file
that is renamed over the real path, which is the only step assumed to
be atomic.

The lock file records a random owner token.  A holder only deletes the
lock on release if it still holds its own token, and refuses to write
if its lock has been taken over, so a lock removed as stale cannot
let two writers in at once.

Every mutating operation takes the lock, not only registration, so a
delete racing a register never loses either write.  Capacity is
computed by counting registrations in the freshly read document; no
counter is cached.

Limitation: the lock file is a mutex only for processes that share
one filesystem.  Several machines or serverless instances without a
shared volume each see their own file and can oversubscribe a
statement.  Use the MongoDB backend for those deployments.
"""

import json
import logging
import os
import threading
import time
import uuid
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Dict, Iterator, List, Mapping, Optional

from hackathon_registration_api.app.core.exceptions import (
    DuplicateTeamError,
    LockAcquisitionError,
    ProblemStatementFullError,
    ProblemStatementNotFoundError,
    StorageError,
)
from hackathon_registration_api.app.storage.base import (
    StorageBackend,
    apply_problem_statement_updates,
    build_registration_record,
    catalog_entries,
    coerce_max_selections,
    count_by_problem,
    default_problem_statements,
    normalize_problem_statement,
    normalize_team_number,
    problem_view,
)


logger = logging.getLogger(__name__)


def _empty_document() -> Dict[str, Any]:
    return {"problemStatements": [], "registrations": []}


class JSONFileStorage(StorageBackend):
    """Flat JSON file backend guarded by an exclusive-create lock file."""

    name = "json"

    def __init__(
        self,
        data_file: str | Path,
        lock_retries: int = 10,
        lock_retry_delay: float = 0.05,
        lock_stale_seconds: Optional[float] = 30.0,
        **kwargs,
    ):
        super().__init__(**kwargs)
        self.data_file = Path(data_file)
        self.lock_file = Path(f"{self.data_file}.lock")
        self.tmp_file = Path(f"{self.data_file}.tmp")
        self.lock_retries = max(1, lock_retries)
        self.lock_retry_delay = lock_retry_delay
        self.lock_stale_seconds = lock_stale_seconds
        # Token of the lock file held by the current thread, if any.
        self._owner = threading.local()

    # Locking

    def _try_create_lock(self) -> bool:
        token = uuid.uuid4().hex
        try:
            fd = os.open(self.lock_file, os.O_CREAT | os.O_EXCL | os.O_WRONLY, 0o644)
        except FileExistsError:
            return False
        with os.fdopen(fd, "w") as f:
            f.write(json.dumps({"pid": os.getpid(), "created_at": time.time(), "token": token}))
        self._owner.token = token
        return True

    @staticmethod
    def _lock_token(path: Path) -> Optional[str]:
        try:
            info = json.loads(path.read_text(encoding="utf-8"))
        except (FileNotFoundError, ValueError):
            return None
        return info.get("token") if isinstance(info, dict) else None

    def holds_lock(self) -> bool:
        """Whether the calling thread still owns the lock file."""
        token = getattr(self._owner, "token", None)
        return token is not None and self._lock_token(self.lock_file) == token

    def _remove_stale_lock(self) -> None:
        """Delete a lock file left behind by a crashed holder.

        The lock is first renamed aside so that the file inspected is the
        file deleted.  If what was moved turns out to be fresh (a new
        holder replaced the stale lock in between), it is put back.
        """
        if not self.lock_stale_seconds:
            return
        try:
            age = time.time() - self.lock_file.stat().st_mtime
        except FileNotFoundError:
            return
        if age <= self.lock_stale_seconds:
            return
        aside = self.lock_file.with_name(f"{self.lock_file.name}.stale-{uuid.uuid4().hex}")
        try:
            os.rename(self.lock_file, aside)
        except FileNotFoundError:
            return
        try:
            age = time.time() - aside.stat().st_mtime
            if age > self.lock_stale_seconds:
                logger.warning("Removed stale lock %s (age %.1fs)", self.lock_file, age)
                return
            try:
                os.link(aside, self.lock_file)
            except OSError as e:
                logger.error("Could not restore live lock %s (%s); its holder will refuse to write", self.lock_file, e)
        finally:
            aside.unlink(missing_ok=True)

    def _release_lock(self) -> None:
        token, self._owner.token = getattr(self._owner, "token", None), None
        if self._lock_token(self.lock_file) != token:
            logger.warning("Lock %s was taken over by another holder; leaving it in place", self.lock_file)
            return
        try:
            self.lock_file.unlink()
        except FileNotFoundError:
            logger.warning("Lock %s vanished before release", self.lock_file)

    @contextmanager
    def _locked(self) -> Iterator[None]:
        """Hold the lock file for the duration of the block."""
        self.data_file.parent.mkdir(parents=True, exist_ok=True)
        for attempt in range(self.lock_retries):
            if self._try_create_lock():
                break
            self._remove_stale_lock()
            if attempt < self.lock_retries - 1:
                time.sleep(self.lock_retry_delay)
        else:
            raise LockAcquisitionError(
                f"Could not acquire lock {self.lock_file} after {self.lock_retries} attempts; try again"
            )
        try:
            yield
        finally:
            self._release_lock()

    # Document I/O

    def _read(self) -> Dict[str, Any]:
        """Read the persisted document from disk."""
        try:
            raw = self.data_file.read_text(encoding="utf-8")
        except FileNotFoundError:
            return _empty_document()
        try:
            data = json.loads(raw) if raw.strip() else _empty_document()
        except json.JSONDecodeError as e:
            raise StorageError(f"Data file {self.data_file} is not valid JSON: {e}", cause=e) from e
        if not isinstance(data, dict):
            raise StorageError(f"Data file {self.data_file} does not hold a JSON object")
        if not isinstance(data.get("problemStatements"), list):
            data["problemStatements"] = []
        if not isinstance(data.get("registrations"), list):
            data["registrations"] = []
        return data

    def _atomic_write(self, data: Mapping[str, Any]) -> None:
        """Write to a temporary file and rename it over the data file.

        Refuses to write once the caller no longer owns the lock, which
        happens when a holder outlives ``lock_stale_seconds`` and its lock
        is removed as stale.
        """
        if not self.holds_lock():
            raise LockAcquisitionError(f"Lost lock {self.lock_file} before writing; try again")
        payload = json.dumps(data, indent=2, ensure_ascii=False)
        with open(self.tmp_file, "w", encoding="utf-8") as f:
            f.write(payload)
            f.flush()
            os.fsync(f.fileno())
        os.replace(self.tmp_file, self.data_file)

    # Lifecycle

    def init(self) -> None:
        with self._locked():
            data = self._read()
            if data["problemStatements"]:
                return
            data["problemStatements"] = default_problem_statements()
            self._atomic_write(data)
        logger.info("Seeded default problem statements into %s", self.data_file)

    # Problem statements

    def get_all_problem_statements(self) -> List[Dict[str, Any]]:
        data = self._read()
        counts = count_by_problem(data["registrations"])
        return [problem_view(p, counts.get(p.get("id"), 0)) for p in data["problemStatements"]]

    def get_problem_statement_by_id(self, problem_statement_id: str) -> Optional[Dict[str, Any]]:
        data = self._read()
        return next((p for p in data["problemStatements"] if p.get("id") == problem_statement_id), None)

    def create_problem_statement(self, problem_statement: Mapping[str, Any]) -> int:
        record = normalize_problem_statement(problem_statement)
        with self._locked():
            data = self._read()
            if any(p.get("id") == record["id"] for p in data["problemStatements"]):
                return 0
            data["problemStatements"].append(record)
            self._atomic_write(data)
        return 1

    def update_problem_statement(self, problem_statement_id: str, updates: Mapping[str, Any]) -> int:
        with self._locked():
            data = self._read()
            for index, current in enumerate(data["problemStatements"]):
                if current.get("id") == problem_statement_id:
                    data["problemStatements"][index] = {**current, **apply_problem_statement_updates(current, updates)}
                    self._atomic_write(data)
                    return 1
        return 0

    def delete_problem_statement(self, problem_statement_id: str) -> int:
        with self._locked():
            data = self._read()
            before = len(data["problemStatements"])
            data["problemStatements"] = [p for p in data["problemStatements"] if p.get("id") != problem_statement_id]
            removed = before - len(data["problemStatements"])
            if not removed:
                return 0
            data["registrations"] = [
                r for r in data["registrations"] if r.get("problemStatementId") != problem_statement_id
            ]
            self._atomic_write(data)
        return removed

    def get_evaluation_criteria(self) -> Optional[Dict[str, Any]]:
        return self._read().get("evaluationCriteria") or None

    # Registrations

    def create_registration_atomic(self, registration: Mapping[str, Any]) -> Dict[str, Any]:
        record = build_registration_record(registration)
        target = record["teamNumber"]
        problem_id = record["problemStatementId"]
        with self._locked():
            # Re-read inside the lock so the checks see the latest commit.
            data = self._read()
            if any(normalize_team_number(r.get("teamNumber")) == target for r in data["registrations"]):
                raise DuplicateTeamError(target)
            problem = next((p for p in data["problemStatements"] if p.get("id") == problem_id), None)
            if problem is None:
                raise ProblemStatementNotFoundError(problem_id)
            current = sum(1 for r in data["registrations"] if r.get("problemStatementId") == problem_id)
            if current >= coerce_max_selections(problem.get("maxSelections")):
                raise ProblemStatementFullError(problem_id)
            data["registrations"].append(record)
            self._atomic_write(data)
        logger.info("Registered team %s for %s (%d/%s)", target, problem_id, current + 1, problem.get("maxSelections"))
        return record

    def delete_registration(self, team_number: str) -> int:
        target = normalize_team_number(team_number)
        with self._locked():
            data = self._read()
            before = len(data["registrations"])
            data["registrations"] = [
                r for r in data["registrations"] if normalize_team_number(r.get("teamNumber")) != target
            ]
            removed = before - len(data["registrations"])
            if removed:
                self._atomic_write(data)
        return removed

    def get_all_registrations(self) -> List[Dict[str, Any]]:
        data = self._read()
        return self._registration_views(data["registrations"], data["problemStatements"])

    def get_registrations_by_problem_statement(self, problem_statement_id: str) -> List[Dict[str, Any]]:
        data = self._read()
        matching = [r for r in data["registrations"] if r.get("problemStatementId") == problem_statement_id]
        return self._registration_views(matching, data["problemStatements"])

    def is_team_number_taken(self, team_number: str) -> bool:
        target = normalize_team_number(team_number)
        return any(normalize_team_number(r.get("teamNumber")) == target for r in self._read()["registrations"])

    # Bulk operations

    def reset_all(self) -> None:
        with self._locked():
            data = self._read()
            data["problemStatements"] = default_problem_statements()
            data["registrations"] = []
            self._atomic_write(data)
        logger.warning("All registrations and problem statements reset in %s", self.data_file)

    def replace_from_json(self, payload: Any) -> Optional[int]:
        entries = catalog_entries(payload)
        if entries is None:
            return None
        with self._locked():
            data = self._read()
            data["problemStatements"] = entries
            data["registrations"] = []
            self._atomic_write(data)
        return len(entries)

    def import_from_json(self, payload: Any) -> Optional[int]:
        entries = catalog_entries(payload)
        if entries is None:
            return None
        with self._locked():
            data = self._read()
            known = {p.get("id") for p in data["problemStatements"]}
            added = 0
            for entry in entries:
                if entry["id"] in known:
                    continue
                data["problemStatements"].append(entry)
                known.add(entry["id"])
                added += 1
            if added:
                self._atomic_write(data)
        return added

    # Settings

    def get_settings(self) -> Dict[str, Any]:
        settings = self._read().get("settings")
        return dict(settings) if isinstance(settings, dict) else {}

    def set_settings(self, partial: Mapping[str, Any]) -> Dict[str, Any]:
        with self._locked():
            data = self._read()
            current = data.get("settings") if isinstance(data.get("settings"), dict) else {}
            data["settings"] = {**current, **dict(partial or {})}
            self._atomic_write(data)
        return dict(data["settings"])
