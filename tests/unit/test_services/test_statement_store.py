"""Tests for the statement upload store."""

import io

import pytest

from autofin.core.exceptions import StatementFileNotFoundError, UnsupportedFileTypeError
from autofin.services.statement_store import StatementFileStore


@pytest.fixture
def store(db_connection, tmp_path):
    return StatementFileStore(tmp_path / "statements", db_connection)


class TestUpload:
    """Tests for storing uploads."""

    def test_upload_path(self, store, statement_path):
        record = store.upload_path(statement_path, user="alice")

        assert record.id is not None
        assert record.original_file_name == "statement.xlsx"
        assert record.file_name != "statement.xlsx"
        assert record.file_name.endswith(".xlsx")
        assert record.path.read_bytes() == statement_path.read_bytes()
        assert len(record.sha256) == 64

    def test_get(self, store, statement_path):
        record = store.upload_path(statement_path, user="alice")

        loaded = store.get(record.file_name)

        assert loaded.sha256 == record.sha256
        assert loaded.created_by == "alice"

    def test_wrong_suffix(self, store):
        with pytest.raises(UnsupportedFileTypeError):
            store.upload("statement.pdf", io.BytesIO(b"PK\x03\x04rest"))

    def test_wrong_content(self, store, tmp_path):
        """Test a renamed non-zip file is rejected and nothing is written."""
        with pytest.raises(UnsupportedFileTypeError):
            store.upload("statement.xlsx", io.BytesIO(b"%PDF-1.7 not a workbook"))
        assert not (tmp_path / "statements").exists() or not any((tmp_path / "statements").iterdir())


class TestOpen:
    """Tests for opening stored statements."""

    def test_open(self, store, statement_path):
        record = store.upload_path(statement_path)

        sheet = store.open(record.file_name)

        assert sheet.source == record.file_name
        assert sheet.header.account_number == "0101-12-345678"
        assert sheet.header.currency == "LAK"

    def test_unknown_name(self, store):
        with pytest.raises(StatementFileNotFoundError):
            store.open("missing.xlsx")

    def test_file_removed_from_disk(self, store, statement_path):
        record = store.upload_path(statement_path)
        record.path.unlink()

        with pytest.raises(StatementFileNotFoundError):
            store.open(record.file_name)
