"""
MongoDB storage backend.

Registrations are made capacity‑safe with a multi‑document transaction
(majority read and write concern, primary reads) around a conditional
increment of the statement's cached ``selectedCount``::

    update_one({"id": ..., "$expr": {"$lt": ["$selectedCount", max]}},
               {"$inc": {"selectedCount": 1}})

The filter and the increment are evaluated by the server as a single
operation, so two racing transactions can never both see a free slot.
Before the increment the cached counter is reconciled with the actual
number of registrations, healing drift left by out‑of‑band writes.
Rejections are raised inside the transaction callback so that the
transaction aborts with no visible side effects.

Unique indexes on ``problem_statements.id`` and
``registrations.teamNumber`` back the application‑level checks.  When
historical duplicates prevent creating them, duplicates are removed
(keep the first document by ``_id``, delete the rest) and creation is
retried; if that still fails the backend keeps running without the
storage‑level guarantee.  Removed document ids are logged at WARNING
so discarded data can be traced.
"""

import functools
import logging
from typing import Any, Callable, Dict, List, Mapping, Optional

from pymongo import ASCENDING, MongoClient, ReadPreference, ReturnDocument
from pymongo.collection import Collection
from pymongo.errors import ConnectionFailure, DuplicateKeyError, OperationFailure, PyMongoError
from pymongo.read_concern import ReadConcern
from pymongo.write_concern import WriteConcern

from hackathon_registration_api.app.core.exceptions import (
    DataInconsistencyError,
    DuplicateTeamError,
    ProblemStatementFullError,
    ProblemStatementNotFoundError,
    StorageConnectivityError,
    StorageError,
    TransactionContentionError,
)
from hackathon_registration_api.app.storage.base import (
    StorageBackend,
    apply_problem_statement_updates,
    build_registration_record,
    catalog_entries,
    coerce_max_selections,
    default_problem_statements,
    normalize_problem_statement,
    normalize_team_number,
    problem_view,
)


logger = logging.getLogger(__name__)

DUPLICATE_KEY = 11000
# Codes raised by create_index when an index with the same name or key
# already exists with different options.
INDEX_CONFLICT_CODES = {DUPLICATE_KEY, 85, 86}
# Labels left on an error once with_transaction has used up its retries.
TRANSIENT_TRANSACTION_LABELS = ("TransientTransactionError", "UnknownTransactionCommitResult")


def _translate_errors(method: Callable) -> Callable:
    """Re-raise driver errors as ``StorageError`` subclasses.

    Connection failures become ``StorageConnectivityError`` so callers
    can fall back or retry.  Transactions that exhausted the driver's
    retries on a transient label become ``TransactionContentionError``,
    which is retryable too.  Anything else the driver raises becomes a
    plain, non-retryable ``StorageError``.
    """

    @functools.wraps(method)
    def wrapper(self, *args, **kwargs):
        try:
            return method(self, *args, **kwargs)
        except ConnectionFailure as e:
            raise StorageConnectivityError(f"MongoDB unreachable during {method.__name__}: {e}", cause=e) from e
        except PyMongoError as e:
            if any(e.has_error_label(label) for label in TRANSIENT_TRANSACTION_LABELS):
                raise TransactionContentionError(
                    f"MongoDB transaction conflicted during {method.__name__}: {e}", cause=e
                ) from e
            raise StorageError(f"MongoDB error during {method.__name__}: {e}", cause=e) from e

    return wrapper


class MongoStorage(StorageBackend):
    """Transactional backend on top of a MongoDB replica set."""

    name = "mongo"

    def __init__(
        self,
        uri: str,
        db_name: str = "hackathon",
        collection_prefix: str = "",
        server_selection_timeout_ms: int = 10000,
        client: Optional[MongoClient] = None,
        **kwargs,
    ):
        super().__init__(**kwargs)
        self.uri = uri
        self.db_name = db_name
        self.collection_prefix = collection_prefix or ""
        self.client = client or MongoClient(uri, serverSelectionTimeoutMS=server_selection_timeout_ms)
        self.db = self.client[db_name]
        self.problem_statements: Collection = self.db[f"{self.collection_prefix}problem_statements"]
        self.registrations: Collection = self.db[f"{self.collection_prefix}registrations"]
        self.settings: Collection = self.db[f"{self.collection_prefix}settings"]
        self.evaluation_criteria: Collection = self.db[f"{self.collection_prefix}evaluation_criteria"]
        self.unique_problem_index = False
        self.unique_team_index = False

    def _run_transaction(self, callback: Callable):
        with self.client.start_session() as session:
            return session.with_transaction(
                callback,
                read_concern=ReadConcern("majority"),
                write_concern=WriteConcern(w="majority"),
                read_preference=ReadPreference.PRIMARY,
            )

    # Indexes and deduplication

    def deduplicate(self, collection: Collection, key: str) -> int:
        """Delete all but the first document (by ``_id``) of each duplicate key group."""
        pipeline = [
            {"$sort": {"_id": 1}},
            {"$group": {"_id": f"${key}", "ids": {"$push": "$_id"}, "count": {"$sum": 1}}},
            {"$match": {"count": {"$gt": 1}}},
        ]
        removed = 0
        for group in collection.aggregate(pipeline, allowDiskUse=True):
            extra = group["ids"][1:]
            logger.warning(
                "Deleting %d duplicate %s documents with %s=%r: %s",
                len(extra), collection.name, key, group["_id"], extra,
            )
            removed += collection.delete_many({"_id": {"$in": extra}}).deleted_count
        return removed

    def _ensure_unique_index(self, collection: Collection, key: str) -> bool:
        """Create a unique index on ``key``; ``False`` if it cannot be created."""
        try:
            collection.create_index([(key, ASCENDING)], unique=True)
            return True
        except OperationFailure as e:
            if e.code not in INDEX_CONFLICT_CODES:
                raise
            logger.warning("Unique index on %s.%s conflicts with stored data: %s", collection.name, key, e)
        self.deduplicate(collection, key)
        try:
            collection.create_index([(key, ASCENDING)], unique=True)
            return True
        except OperationFailure as e:
            logger.warning(
                "Continuing without unique index on %s.%s; uniqueness relies on application checks: %s",
                collection.name, key, e,
            )
            return False

    # Lifecycle

    def _seed(self) -> None:
        for doc in default_problem_statements():
            try:
                self.problem_statements.update_one(
                    {"id": doc["id"]},
                    {"$setOnInsert": {**doc, "selectedCount": 0}},
                    upsert=True,
                )
            except DuplicateKeyError:
                # A concurrent init() inserted the same seed document.
                logger.debug("Seed statement %s already present", doc["id"])

    @_translate_errors
    def init(self) -> None:
        self.client.admin.command("ping")
        self.unique_problem_index = self._ensure_unique_index(self.problem_statements, "id")
        self.unique_team_index = self._ensure_unique_index(self.registrations, "teamNumber")
        self.registrations.create_index([("problemStatementId", ASCENDING)])
        if self.problem_statements.count_documents({}, limit=1) == 0:
            self._seed()
            logger.info("Seeded default problem statements into %s", self.problem_statements.full_name)

    def close(self) -> None:
        self.client.close()

    # Problem statements

    def _counts(self) -> Dict[str, int]:
        pipeline = [{"$group": {"_id": "$problemStatementId", "count": {"$sum": 1}}}]
        return {row["_id"]: row["count"] for row in self.registrations.aggregate(pipeline) if row["_id"]}

    @_translate_errors
    def get_all_problem_statements(self) -> List[Dict[str, Any]]:
        problems = list(self.problem_statements.find({}, {"_id": 0}))
        counts = self._counts()
        return [problem_view(p, counts.get(p.get("id"), 0)) for p in problems]

    @_translate_errors
    def get_problem_statement_by_id(self, problem_statement_id: str) -> Optional[Dict[str, Any]]:
        return self.problem_statements.find_one({"id": problem_statement_id}, {"_id": 0})

    @_translate_errors
    def create_problem_statement(self, problem_statement: Mapping[str, Any]) -> int:
        record = normalize_problem_statement(problem_statement)
        if self.problem_statements.find_one({"id": record["id"]}, {"_id": 1}):
            return 0
        try:
            self.problem_statements.insert_one({**record, "selectedCount": 0})
        except DuplicateKeyError:
            return 0
        return 1

    @_translate_errors
    def update_problem_statement(self, problem_statement_id: str, updates: Mapping[str, Any]) -> int:
        changes = apply_problem_statement_updates({}, updates)
        if not changes:
            return 1 if self.problem_statements.find_one({"id": problem_statement_id}, {"_id": 1}) else 0
        result = self.problem_statements.update_one({"id": problem_statement_id}, {"$set": changes})
        return result.matched_count

    @_translate_errors
    def delete_problem_statement(self, problem_statement_id: str) -> int:
        def cascade(session) -> int:
            removed = self.problem_statements.delete_one({"id": problem_statement_id}, session=session).deleted_count
            if removed:
                self.registrations.delete_many({"problemStatementId": problem_statement_id}, session=session)
            return removed

        return self._run_transaction(cascade)

    @_translate_errors
    def get_evaluation_criteria(self) -> Optional[Dict[str, Any]]:
        return self.evaluation_criteria.find_one({}, {"_id": 0})

    # Registrations

    @_translate_errors
    def create_registration_atomic(self, registration: Mapping[str, Any]) -> Dict[str, Any]:
        record = build_registration_record(registration)
        target = record["teamNumber"]
        problem_id = record["problemStatementId"]

        def reserve(session) -> int:
            if self.registrations.find_one({"teamNumber": target}, {"_id": 1}, session=session):
                raise DuplicateTeamError(target)
            problem = self.problem_statements.find_one({"id": problem_id}, session=session)
            if problem is None:
                raise ProblemStatementNotFoundError(problem_id)
            max_selections = coerce_max_selections(problem.get("maxSelections"))

            actual = self.registrations.count_documents({"problemStatementId": problem_id}, session=session)
            if problem.get("selectedCount") != actual:
                logger.info(
                    "Reconciling selectedCount of %s from %r to %d", problem_id, problem.get("selectedCount"), actual
                )
                self.problem_statements.update_one(
                    {"id": problem_id}, {"$set": {"selectedCount": actual}}, session=session
                )

            reserved = self.problem_statements.update_one(
                {
                    "id": problem_id,
                    "$expr": {"$lt": [{"$ifNull": ["$selectedCount", 0]}, {"$literal": max_selections}]},
                },
                {"$inc": {"selectedCount": 1}},
                session=session,
            )
            if reserved.modified_count == 0:
                raise ProblemStatementFullError(problem_id)

            try:
                self.registrations.insert_one(dict(record), session=session)
            except PyMongoError:
                try:
                    self.problem_statements.update_one(
                        {"id": problem_id}, {"$inc": {"selectedCount": -1}}, session=session
                    )
                except PyMongoError as compensation_error:
                    logger.debug("Slot release skipped, transaction already aborted: %s", compensation_error)
                raise
            return actual + 1

        try:
            taken = self._run_transaction(reserve)
        except DuplicateKeyError as e:
            raise DuplicateTeamError(target) from e
        logger.info("Registered team %s for %s (%d taken)", target, problem_id, taken)
        return record

    @_translate_errors
    def delete_registration(self, team_number: str) -> int:
        target = normalize_team_number(team_number)

        def remove(session) -> int:
            removed = self.registrations.find_one_and_delete({"teamNumber": target}, session=session)
            if removed is None:
                return 0
            problem_id = removed.get("problemStatementId")
            if problem_id:
                self.problem_statements.update_one(
                    {"id": problem_id, "selectedCount": {"$gt": 0}},
                    {"$inc": {"selectedCount": -1}},
                    session=session,
                )
            return 1

        return self._run_transaction(remove)

    def _with_duplicate_healing(self, operation: Callable[[], List[Dict[str, Any]]]) -> List[Dict[str, Any]]:
        """Run a registration read, deduplicating and retrying once on duplicate-key errors."""
        try:
            return operation()
        except OperationFailure as e:
            if e.code != DUPLICATE_KEY:
                raise
            logger.warning("Duplicate key error while reading registrations, deduplicating: %s", e)
        self.deduplicate(self.registrations, "teamNumber")
        try:
            return operation()
        except OperationFailure as e:
            if e.code != DUPLICATE_KEY:
                raise
            raise DataInconsistencyError(
                "Registrations contain duplicate team numbers that could not be repaired; "
                "an administrator must clean up the registrations collection",
                cause=e,
            ) from e

    @_translate_errors
    def get_all_registrations(self) -> List[Dict[str, Any]]:
        def load() -> List[Dict[str, Any]]:
            registrations = list(self.registrations.find({}, {"_id": 0}).sort("_id", ASCENDING))
            problems = list(self.problem_statements.find({}, {"_id": 0}))
            return self._registration_views(registrations, problems)

        return self._with_duplicate_healing(load)

    @_translate_errors
    def get_registrations_by_problem_statement(self, problem_statement_id: str) -> List[Dict[str, Any]]:
        def load() -> List[Dict[str, Any]]:
            problem = self.problem_statements.find_one({"id": problem_statement_id}, {"_id": 0})
            registrations = list(
                self.registrations.find({"problemStatementId": problem_statement_id}, {"_id": 0}).sort("_id", ASCENDING)
            )
            return self._registration_views(registrations, [problem] if problem else [])

        return self._with_duplicate_healing(load)

    @_translate_errors
    def is_team_number_taken(self, team_number: str) -> bool:
        return self.registrations.find_one({"teamNumber": normalize_team_number(team_number)}, {"_id": 1}) is not None

    # Bulk operations

    @_translate_errors
    def reset_all(self) -> None:
        self.registrations.delete_many({})
        self.problem_statements.delete_many({})
        self._seed()
        logger.warning("All registrations and problem statements reset in %s", self.db_name)

    @_translate_errors
    def replace_from_json(self, payload: Any) -> Optional[int]:
        entries = catalog_entries(payload)
        if entries is None:
            return None
        self.registrations.delete_many({})
        self.problem_statements.delete_many({})
        if entries:
            self.problem_statements.insert_many([{**entry, "selectedCount": 0} for entry in entries])
        return len(entries)

    @_translate_errors
    def import_from_json(self, payload: Any) -> Optional[int]:
        entries = catalog_entries(payload)
        if entries is None:
            return None
        added = 0
        for entry in entries:
            try:
                result = self.problem_statements.update_one(
                    {"id": entry["id"]}, {"$setOnInsert": {**entry, "selectedCount": 0}}, upsert=True
                )
            except DuplicateKeyError:
                continue
            if result.upserted_id is not None:
                added += 1
        return added

    # Settings

    @_translate_errors
    def get_settings(self) -> Dict[str, Any]:
        doc = self.settings.find_one({"_id": "global"})
        return dict((doc or {}).get("data") or {})

    @_translate_errors
    def set_settings(self, partial: Mapping[str, Any]) -> Dict[str, Any]:
        if not partial:
            return self.get_settings()
        doc = self.settings.find_one_and_update(
            {"_id": "global"},
            {"$set": {f"data.{key}": value for key, value in partial.items()}},
            upsert=True,
            return_document=ReturnDocument.AFTER,
        )
        return dict(doc.get("data") or {})
