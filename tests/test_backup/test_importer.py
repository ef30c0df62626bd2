"""Tests for batched backup import."""

import copy
import json
import logging
from unittest.mock import patch

import pytest

from studytracker.backup.codec import encode
from studytracker.backup.importer import BATCH_LIMIT, BatchedImporter, ImportResult
from studytracker.backup.schemas import parse_backup
from studytracker.db.sqlite import SQLiteWriteBatch
from studytracker.errors import AuthenticationError, DocumentStoreError, ValidationError

from ..helpers.builders import (
    USER_ID,
    corrupt_document,
    make_progress,
    make_subjects,
    seed_collection,
)


def make_backup(
    subjects: int = 0,
    progress: int = 0,
    settings: dict = None,
    user_id: str = USER_ID,
    extra: dict = None,
) -> dict:
    """Build a backup dictionary in the wire layout."""
    collections = {
        "subjects": [{"id": i, "data": d} for i, d in make_subjects(subjects)],
        "progress": [{"id": i, "data": d} for i, d in make_progress(progress)],
    }
    if settings is not None:
        collections["userSettings"] = [{"id": user_id, "data": settings}]
    if extra:
        collections.update(extra)

    return encode(
        {
            "metadata": {
                "userId": user_id,
                "timestamp": "2025-01-20T10:00:00.000000Z",
                "version": "1.0.0",
            },
            "collections": collections,
        }
    )


@pytest.fixture
def commit_spy():
    """Record every batch commit while still applying it."""
    original = SQLiteWriteBatch.commit
    with patch.object(SQLiteWriteBatch, "commit", autospec=True, side_effect=original) as spy:
        yield spy


def committed_sizes(spy) -> list[int]:
    return [len(call.args[0]) for call in spy.call_args_list]


class TestImportResult:
    """Tests for ImportResult."""

    def test_defaults(self):
        result = ImportResult()
        assert result.success is True
        assert result.failed_documents == 0

    def test_to_dict(self):
        result = ImportResult(total_documents=5, imported_documents=3, errors=["boom"])

        assert result.to_dict() == {
            "totalDocuments": 5,
            "importedDocuments": 3,
            "errors": ["boom"],
        }
        assert result.success is False
        assert result.failed_documents == 2


class TestBatchedImporterInit:
    """Tests for importer configuration."""

    def test_default_limit(self, db, session):
        assert BatchedImporter(db, session).batch_limit == BATCH_LIMIT == 400

    @pytest.mark.parametrize("limit", [0, -1, 501])
    def test_limit_out_of_range(self, db, session, limit):
        with pytest.raises(ValueError):
            BatchedImporter(db, session, batch_limit=limit)


class TestImportUserData:
    """Tests for BatchedImporter.import_user_data."""

    def test_requires_signed_in_user(self, db, anonymous):
        importer = BatchedImporter(db, anonymous)

        with pytest.raises(AuthenticationError):
            importer.import_user_data(json.dumps(make_backup(subjects=2)))

        assert db.list_documents(USER_ID, "subjects") == []

    def test_rejects_malformed_backup(self, db, session):
        importer = BatchedImporter(db, session)

        with pytest.raises(ValidationError):
            importer.import_user_data('{"collections": {}}')

        with pytest.raises(ValidationError):
            importer.import_user_data("not json at all")

    def test_malformed_backup_writes_nothing(self, seeded_db, session):
        importer = BatchedImporter(seeded_db, session)

        with pytest.raises(ValidationError):
            importer.import_user_data({"metadata": {}, "collections": {}}, overwrite=True)

        assert len(seeded_db.list_documents(USER_ID, "progress")) == 25

    def test_imports_all_collections(self, db, session):
        backup = make_backup(subjects=3, progress=10, settings={"theme": "dark"})

        result = BatchedImporter(db, session).import_user_data(json.dumps(backup))

        assert result.success
        assert result.total_documents == 14
        assert result.imported_documents == 14
        assert len(db.list_documents(USER_ID, "subjects")) == 3
        assert len(db.list_documents(USER_ID, "progress")) == 10
        assert db.get_document(USER_ID, "userSettings", USER_ID).data == {"theme": "dark"}

    def test_timestamps_are_decoded(self, db, session):
        BatchedImporter(db, session).import_user_data(make_backup(progress=1))

        stored = db.get_document(USER_ID, "progress", "progress-0").data
        expected = dict(make_progress(1))["progress-0"]
        assert stored["recordDate"] == expected["recordDate"]
        assert stored["session"]["breaks"] == expected["session"]["breaks"]

    def test_commits_in_batches(self, db, session, commit_spy):
        result = BatchedImporter(db, session).import_user_data(make_backup(progress=401))

        assert committed_sizes(commit_spy) == [400, 1]
        assert result.imported_documents == 401
        assert len(db.list_documents(USER_ID, "progress")) == 401

    def test_exact_multiple_of_limit(self, db, session, commit_spy):
        BatchedImporter(db, session).import_user_data(make_backup(progress=400))

        assert committed_sizes(commit_spy) == [400]

    def test_custom_limit(self, db, session, commit_spy):
        BatchedImporter(db, session, batch_limit=4).import_user_data(make_backup(subjects=10))

        assert committed_sizes(commit_spy) == [4, 4, 2]

    def test_empty_collections_commit_nothing(self, db, session, commit_spy):
        result = BatchedImporter(db, session).import_user_data(make_backup())

        assert commit_spy.call_count == 0
        assert result.total_documents == 0
        assert result.success

    def test_settings_keyed_by_importing_user(self, db, session):
        backup = make_backup(settings={"theme": "dark"}, user_id="old-account")
        backup["collections"]["userSettings"].append({"id": "second", "data": {"theme": "x"}})

        result = BatchedImporter(db, session).import_user_data(backup)

        assert result.total_documents == 2
        assert result.imported_documents == 1
        assert db.get_document(USER_ID, "userSettings", USER_ID).data == {"theme": "dark"}
        assert db.get_document(USER_ID, "userSettings", "second") is None

    def test_user_mismatch_is_logged(self, db, session, caplog):
        with caplog.at_level(logging.WARNING, logger="studytracker.backup.importer"):
            result = BatchedImporter(db, session).import_user_data(
                make_backup(subjects=1, user_id="old-account")
            )

        assert result.success
        assert "old-account" in caplog.text
        assert len(db.list_documents(USER_ID, "subjects")) == 1

    def test_unknown_collection_is_reported(self, db, session):
        backup = make_backup(subjects=1, extra={"notes": [{"id": "n1", "data": {}}]})

        result = BatchedImporter(db, session).import_user_data(backup)

        assert result.errors == ["Skipped unknown collection 'notes'"]
        assert result.imported_documents == 1
        assert db.list_documents(USER_ID, "notes") == []

    def test_does_not_mutate_input(self, db, session):
        backup = make_backup(subjects=2, settings={"theme": "dark"})
        snapshot = copy.deepcopy(backup)

        BatchedImporter(db, session).import_user_data(backup)

        assert backup == snapshot


class TestOverwrite:
    """Tests for merge versus overwrite restores."""

    def test_merge_keeps_existing_records(self, seeded_db, session):
        seed_collection(seeded_db, USER_ID, "subjects", [("local-only", {"name": "Local"})])

        BatchedImporter(seeded_db, session).import_user_data(make_backup(subjects=1))

        ids = {s.id for s in seeded_db.list_documents(USER_ID, "subjects")}
        assert "local-only" in ids
        assert len(seeded_db.list_documents(USER_ID, "progress")) == 25

    def test_merge_replaces_matching_ids(self, seeded_db, session):
        backup = make_backup(subjects=1)
        backup["collections"]["subjects"][0]["data"] = {"name": "Renamed"}

        BatchedImporter(seeded_db, session).import_user_data(backup)

        assert seeded_db.get_document(USER_ID, "subjects", "subject-0").data == {"name": "Renamed"}

    def test_overwrite_replaces_mutable_collections(self, seeded_db, session):
        result = BatchedImporter(seeded_db, session).import_user_data(
            make_backup(subjects=1), overwrite=True
        )

        assert result.success
        assert [s.id for s in seeded_db.list_documents(USER_ID, "subjects")] == ["subject-0"]
        assert seeded_db.list_documents(USER_ID, "progress") == []

    def test_overwrite_keeps_settings(self, seeded_db, session):
        BatchedImporter(seeded_db, session).import_user_data(make_backup(), overwrite=True)

        assert seeded_db.get_document(USER_ID, "userSettings", USER_ID) is not None

    def test_overwrite_leaves_other_users_alone(self, seeded_db, session):
        seed_collection(seeded_db, "someone-else", "subjects", make_subjects(2))

        BatchedImporter(seeded_db, session).import_user_data(make_backup(), overwrite=True)

        assert len(seeded_db.list_documents("someone-else", "subjects")) == 2

    def test_cleanup_user_data_counts_deletes(self, seeded_db, session):
        deleted = BatchedImporter(seeded_db, session, batch_limit=10).cleanup_user_data(USER_ID)

        assert deleted == 28

    def test_cleanup_failure_does_not_abort_import(self, seeded_db, session, caplog):
        with patch.object(
            seeded_db, "list_documents", side_effect=DocumentStoreError("read failed")
        ):
            with caplog.at_level(logging.WARNING, logger="studytracker.backup.importer"):
                result = BatchedImporter(seeded_db, session).import_user_data(
                    make_backup(subjects=1), overwrite=True
                )

        assert result.success
        assert result.imported_documents == 1
        assert "read failed" in caplog.text

    def test_corrupt_record_does_not_abort_overwrite(self, seeded_db, session, caplog):
        """Test that an unreadable stored record only skips that collection's cleanup."""
        corrupt_document(seeded_db, USER_ID, "subjects", "subject-2")

        with caplog.at_level(logging.WARNING, logger="studytracker.backup.importer"):
            result = BatchedImporter(seeded_db, session).import_user_data(
                make_backup(subjects=1), overwrite=True
            )

        assert result.success
        assert result.imported_documents == 1
        assert "Could not read subjects" in caplog.text
        assert seeded_db.list_documents(USER_ID, "progress") == []


class TestPartialFailure:
    """Tests for per-collection error isolation."""

    def test_settings_failure_is_recorded(self, db, session):
        backup = make_backup(subjects=2, settings={"theme": "dark"})

        with patch.object(db, "set_document", side_effect=DocumentStoreError("denied")):
            result = BatchedImporter(db, session).import_user_data(backup)

        assert len(result.errors) == 1
        assert "settings" in result.errors[0]
        assert result.imported_documents == 2
        assert result.total_documents == 3

    def test_failing_collection_does_not_stop_others(self, db, session):
        original = SQLiteWriteBatch.commit

        def fail_progress(batch):
            if any(op.collection == "progress" for op in batch.operations):
                raise DocumentStoreError("quota exceeded")
            return original(batch)

        backup = make_backup(subjects=3, progress=5, settings={"theme": "dark"})
        with patch.object(SQLiteWriteBatch, "commit", autospec=True, side_effect=fail_progress):
            result = BatchedImporter(db, session).import_user_data(backup)

        assert len(result.errors) == 1
        assert "progress" in result.errors[0]
        assert "quota exceeded" in result.errors[0]
        assert result.imported_documents == 4
        assert result.total_documents == 9
        assert len(db.list_documents(USER_ID, "subjects")) == 3
        assert db.list_documents(USER_ID, "progress") == []
        assert db.get_document(USER_ID, "userSettings", USER_ID) is not None

    def test_earlier_batches_stay_committed(self, db, session):
        original = SQLiteWriteBatch.commit
        calls = {"count": 0}

        def fail_second(batch):
            calls["count"] += 1
            if calls["count"] == 2:
                raise DocumentStoreError("quota exceeded")
            return original(batch)

        with patch.object(SQLiteWriteBatch, "commit", autospec=True, side_effect=fail_second):
            result = BatchedImporter(db, session, batch_limit=5).import_user_data(
                make_backup(progress=12)
            )

        assert result.imported_documents == 5
        assert len(result.errors) == 1
        assert len(db.list_documents(USER_ID, "progress")) == 5


class TestImportDocument:
    """Tests for importing an already-parsed document."""

    def test_import_document(self, db, session):
        document = parse_backup(make_backup(subjects=2))

        result = BatchedImporter(db, session).import_document(document)

        assert result.imported_documents == 2
