"""Statement Store - keeps uploaded statement workbooks.

Uploaded files are checked to be xlsx (zip container), written under a
generated name and recorded in the statement_file table together with their
SHA256 hash.
"""

import hashlib
import logging
import sqlite3
import uuid
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import BinaryIO, Optional, Union

from autofin.core.config import StatementLayout
from autofin.core.database import transaction
from autofin.core.exceptions import StatementFileNotFoundError, UnsupportedFileTypeError
from autofin.parsers.statement.models import StatementSheet
from autofin.parsers.statement.reader import StatementReader

logger = logging.getLogger(__name__)

XLSX_SUFFIX = ".xlsx"
ZIP_SIGNATURE = b"PK\x03\x04"


@dataclass
class StatementFile:
    """Stored statement record."""

    file_name: str
    original_file_name: str
    location: str
    sha256: str = ""
    id: Optional[int] = None
    created_by: str = ""
    created_at: Optional[datetime] = None

    @property
    def path(self) -> Path:
        return Path(self.location)


class StatementFileStore:
    """
    Stores statement uploads and opens them for the income engine.

    Usage:
        store = StatementFileStore(Path("statements"), conn)
        record = store.upload("march.xlsx", stream)
        sheet = store.open(record.file_name)
    """

    def __init__(
        self,
        base_dir: Union[str, Path],
        db_connection: sqlite3.Connection,
        layout: Optional[StatementLayout] = None,
    ):
        self.base_dir = Path(base_dir)
        self.conn = db_connection
        self.reader = StatementReader(layout)

    def upload(self, original_name: str, stream: BinaryIO, user: str = "") -> StatementFile:
        """
        Store an uploaded statement.

        Raises:
            UnsupportedFileTypeError: If the content is not an xlsx workbook
        """
        if Path(original_name).suffix.lower() != XLSX_SUFFIX:
            raise UnsupportedFileTypeError(original_name)
        head = stream.read(len(ZIP_SIGNATURE))
        if head != ZIP_SIGNATURE:
            raise UnsupportedFileTypeError(original_name)

        self.base_dir.mkdir(parents=True, exist_ok=True)
        file_name = f"{uuid.uuid4().hex}{XLSX_SUFFIX}"
        target = self.base_dir / file_name
        digest = hashlib.sha256(head)
        with open(target, "wb") as out:
            out.write(head)
            for chunk in iter(lambda: stream.read(65536), b""):
                digest.update(chunk)
                out.write(chunk)

        now = datetime.now()
        record = StatementFile(
            file_name=file_name,
            original_file_name=Path(original_name).name,
            location=str(target),
            sha256=digest.hexdigest(),
            created_by=user,
            created_at=now,
        )
        try:
            with transaction(self.conn) as conn:
                cursor = conn.execute(
                    """INSERT INTO statement_file
                    (original_file_name, file_name, location, sha256, created_by, created_at)
                    VALUES (?, ?, ?, ?, ?, ?)""",
                    (record.original_file_name, record.file_name, record.location,
                     record.sha256, user, now.isoformat()),
                )
                record.id = cursor.lastrowid
        except Exception as e:
            logger.error(f"Failed to record statement {record.original_file_name}: {e}")
            target.unlink(missing_ok=True)
            raise
        logger.info(f"Stored statement {record.original_file_name} as {file_name}")
        return record

    def upload_path(self, file_path: Union[str, Path], user: str = "") -> StatementFile:
        """Store a statement from a local file path."""
        file_path = Path(file_path)
        with open(file_path, "rb") as f:
            return self.upload(file_path.name, f, user)

    def get(self, file_name: str) -> StatementFile:
        row = self.conn.execute(
            "SELECT * FROM statement_file WHERE file_name = ?", (file_name,)
        ).fetchone()
        if row is None:
            raise StatementFileNotFoundError(file_name)
        return StatementFile(
            id=row["id"],
            file_name=row["file_name"],
            original_file_name=row["original_file_name"],
            location=row["location"],
            sha256=row["sha256"],
            created_by=row["created_by"],
            created_at=datetime.fromisoformat(row["created_at"]) if row["created_at"] else None,
        )

    def open(self, file_name: str) -> StatementSheet:
        """
        Read a stored statement.

        Raises:
            StatementFileNotFoundError: Unknown name or missing file on disk
        """
        record = self.get(file_name)
        if not record.path.exists():
            raise StatementFileNotFoundError(file_name)
        sheet = self.reader.read(record.path)
        sheet.source = record.file_name
        return sheet

