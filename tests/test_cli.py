"""Tests for the CLI interface."""

import json
import os
import tempfile
from pathlib import Path
from unittest.mock import patch

import pytest
from typer.testing import CliRunner

from studytracker.cli import app
from studytracker.config import reset_config
from studytracker.db.sqlite import get_db, reset_db
from studytracker.sync.drive import RemoteSyncClient

from .helpers.builders import make_progress, make_subjects, seed_collection
from .helpers.fakes import FakeCloudProvider

CLI_USER = "cli-user"


@pytest.fixture(autouse=True)
def setup_test_db():
    """Set up a test database and signed-in user for each test."""
    reset_db()
    reset_config()

    with tempfile.NamedTemporaryFile(suffix=".db", delete=False) as f:
        db_path = f.name

    os.environ["STUDYTRACKER_DB_PATH"] = db_path
    os.environ["STUDYTRACKER_USER_ID"] = CLI_USER

    yield

    # Cleanup
    reset_db()
    reset_config()
    for name in ("STUDYTRACKER_DB_PATH", "STUDYTRACKER_USER_ID"):
        os.environ.pop(name, None)
    if Path(db_path).exists():
        Path(db_path).unlink()


@pytest.fixture
def runner():
    """Create a CLI test runner."""
    return CliRunner()


@pytest.fixture
def seeded():
    """Put some study data in the CLI's database."""
    db = get_db()
    seed_collection(db, CLI_USER, "subjects", make_subjects(2))
    seed_collection(db, CLI_USER, "progress", make_progress(5))
    return db


@pytest.fixture
def cloud():
    """Signed-in fake Drive wired into the CLI."""
    provider = FakeCloudProvider(signed_in=True)
    with patch(
        "studytracker.cli._sync_client",
        side_effect=lambda: RemoteSyncClient(provider, prefix="echoes_backup"),
    ):
        yield provider


class TestCLIBasics:
    """Tests for basic CLI functionality."""

    def test_help(self, runner: CliRunner):
        """Test that help command works."""
        result = runner.invoke(app, ["--help"])
        assert result.exit_code == 0
        assert "backup" in result.stdout
        assert "drive" in result.stdout

    def test_version(self, runner: CliRunner):
        """Test version command."""
        result = runner.invoke(app, ["version"])
        assert result.exit_code == 0
        assert "0.1.0" in result.stdout


class TestBackupCommands:
    """Tests for local export, import and inspect."""

    def test_export_to_file(self, runner: CliRunner, seeded, tmp_path):
        """Test exporting to an explicit path."""
        output = tmp_path / "backup.json"

        result = runner.invoke(app, ["backup", "export", "--output", str(output)])

        assert result.exit_code == 0
        data = json.loads(output.read_text())
        assert data["metadata"]["userId"] == CLI_USER
        assert len(data["collections"]["progress"]) == 5

    def test_export_requires_user(self, runner: CliRunner, tmp_path):
        """Test that export fails without a signed-in user."""
        os.environ.pop("STUDYTRACKER_USER_ID")
        reset_config()

        result = runner.invoke(app, ["backup", "export", "-o", str(tmp_path / "b.json")])

        assert result.exit_code == 1
        assert "not authenticated" in result.stdout
        assert not (tmp_path / "b.json").exists()

    def test_inspect(self, runner: CliRunner, seeded, tmp_path):
        output = tmp_path / "backup.json"
        runner.invoke(app, ["backup", "export", "-o", str(output)])

        result = runner.invoke(app, ["backup", "inspect", str(output)])

        assert result.exit_code == 0
        assert CLI_USER in result.stdout
        assert "progress" in result.stdout

    def test_import_round_trip(self, runner: CliRunner, seeded, tmp_path):
        """Test that an exported file imports back with overwrite."""
        output = tmp_path / "backup.json"
        runner.invoke(app, ["backup", "export", "-o", str(output)])
        seeded.delete_document(CLI_USER, "subjects", "subject-0")

        result = runner.invoke(app, ["backup", "import", str(output), "--overwrite", "--yes"])

        assert result.exit_code == 0
        assert "Imported" in result.stdout
        assert seeded.get_document(CLI_USER, "subjects", "subject-0") is not None

    def test_import_overwrite_needs_confirmation(self, runner: CliRunner, seeded, tmp_path):
        output = tmp_path / "backup.json"
        runner.invoke(app, ["backup", "export", "-o", str(output)])

        result = runner.invoke(app, ["backup", "import", str(output), "--overwrite"], input="n\n")

        assert result.exit_code == 1
        assert len(seeded.list_documents(CLI_USER, "progress")) == 5

    def test_import_missing_file(self, runner: CliRunner, tmp_path):
        result = runner.invoke(app, ["backup", "import", str(tmp_path / "nope.json")])

        assert result.exit_code == 1
        assert "File not found" in result.stdout

    def test_import_invalid_json(self, runner: CliRunner, tmp_path):
        """Test that a malformed backup is rejected."""
        bad = tmp_path / "bad.json"
        bad.write_text("{broken")

        result = runner.invoke(app, ["backup", "import", str(bad)])

        assert result.exit_code == 1
        assert "Invalid backup data" in result.stdout


class TestDriveCommands:
    """Tests for Google Drive commands."""

    def test_upload(self, runner: CliRunner, seeded, cloud):
        result = runner.invoke(app, ["drive", "upload", "--name", "echoes_backup_cli.json"])

        assert result.exit_code == 0
        assert len(cloud.files_named("echoes_backup_cli.json")) == 1

    def test_list(self, runner: CliRunner, cloud):
        cloud.add_file("echoes_backup_a.json")

        result = runner.invoke(app, ["drive", "list"])

        assert result.exit_code == 0
        assert "Drive Backups" in result.stdout

    def test_list_empty(self, runner: CliRunner, cloud):
        result = runner.invoke(app, ["drive", "list"])

        assert result.exit_code == 0
        assert "No backups" in result.stdout

    def test_restore_latest(self, runner: CliRunner, seeded, cloud):
        """Test restoring the newest Drive backup."""
        runner.invoke(app, ["drive", "upload", "--name", "echoes_backup_1.json"])
        seeded.delete_document(CLI_USER, "subjects", "subject-1")

        result = runner.invoke(app, ["drive", "restore"])

        assert result.exit_code == 0
        assert seeded.get_document(CLI_USER, "subjects", "subject-1") is not None

    def test_restore_without_backups(self, runner: CliRunner, cloud):
        result = runner.invoke(app, ["drive", "restore"])

        assert result.exit_code == 1
        assert "No backup file found" in result.stdout

    def test_provider_failure(self, runner: CliRunner, cloud):
        cloud.fail_on.add("list_files")

        result = runner.invoke(app, ["drive", "list"])

        assert result.exit_code == 1
        assert "Error" in result.stdout

    def test_prune(self, runner: CliRunner, cloud):
        for i in range(4):
            cloud.add_file(f"echoes_backup_{i}.json")

        result = runner.invoke(app, ["drive", "prune", "--keep", "1"])

        assert result.exit_code == 0
        assert len(cloud.files) == 1

    def test_sign_out(self, runner: CliRunner, cloud):
        result = runner.invoke(app, ["drive", "sign-out"])

        assert result.exit_code == 0
        assert cloud.signed_in is False
