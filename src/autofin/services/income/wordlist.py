"""
Income wordlist and memo classifier.

The wordlist is an ordered keyword -> category dictionary. Classification
walks it in order and the first matching entry wins, so the order is part of
the data: entries are read newest first (created_at DESC, id DESC).

Matching rules (word and memo both trimmed and lower-cased):
- words of up to 3 characters must equal a whole token of the memo, where
  the memo is split on "|" and then on spaces
- longer words match anywhere in the memo as a substring
"""

import hashlib
import logging
import sqlite3
from dataclasses import dataclass
from datetime import datetime
from typing import Iterable, List, Optional, Sequence, Tuple

from autofin.core.database import transaction
from autofin.core.exceptions import ValidationError, WordlistNotFoundError
from autofin.core.models import IncomeSource

logger = logging.getLogger(__name__)

SHORT_WORD_LENGTH = 3
FIELD_SEPARATOR = "|"


@dataclass(frozen=True)
class WordlistEntry:
    """One keyword and the income category it maps to."""
    word: str
    category: IncomeSource
    id: Optional[int] = None
    created_at: Optional[datetime] = None

    @property
    def normalized(self) -> str:
        return self.word.strip().lower()


@dataclass(frozen=True)
class Classification:
    """Outcome of classifying one memo."""
    category: IncomeSource
    word: str = ""

    @property
    def matched(self) -> bool:
        return self.category is not IncomeSource.UNCLASSIFIED


UNCLASSIFIED = Classification(IncomeSource.UNCLASSIFIED)


def memo_tokens(memo: str) -> List[str]:
    """Split a normalized memo into tokens: first on '|', then on spaces."""
    tokens = []
    for segment in memo.split(FIELD_SEPARATOR):
        tokens.extend(t.strip() for t in segment.split(" ") if t.strip())
    return tokens


def word_matches(word: str, memo: str, short_word_length: int = SHORT_WORD_LENGTH) -> bool:
    """
    Check one normalized word against one normalized memo.

    Short words only match whole tokens so that "ot" does not hit "hot soup".
    """
    if not word:
        return False
    if len(word) <= short_word_length:
        return word in memo_tokens(memo)
    return word in memo


def classify(
    memo: str,
    entries: Iterable[WordlistEntry],
    short_word_length: int = SHORT_WORD_LENGTH,
) -> Classification:
    """
    Classify a memo against an ordered wordlist.

    Args:
        memo: Free text memo of the transaction
        entries: Wordlist in match order
        short_word_length: Longest word length that uses the token rule

    Returns:
        Classification of the first matching entry, or UNCLASSIFIED
    """
    text = (memo or "").strip().lower()
    if not text:
        return UNCLASSIFIED
    for entry in entries:
        if word_matches(entry.normalized, text, short_word_length):
            return Classification(entry.category, entry.word.strip())
    return UNCLASSIFIED


class WordlistSnapshot:
    """
    Immutable, versioned view of the wordlist for one calculation run.

    The version is a content hash, so two snapshots with the same entries in
    the same order share a version.
    """

    def __init__(self, entries: Sequence[WordlistEntry] = (), short_word_length: int = SHORT_WORD_LENGTH):
        self._entries: Tuple[WordlistEntry, ...] = tuple(entries)
        self.short_word_length = short_word_length
        digest = hashlib.sha1()
        for entry in self._entries:
            digest.update(f"{entry.normalized}\x1f{entry.category.value}\x1e".encode("utf-8"))
        self.version = digest.hexdigest()[:12]

    @classmethod
    def from_pairs(cls, pairs: Iterable[Tuple[str, str]], **kwargs) -> "WordlistSnapshot":
        """Build a snapshot from (word, category) pairs already in match order."""
        return cls([WordlistEntry(word, IncomeSource.parse(category)) for word, category in pairs], **kwargs)

    @property
    def entries(self) -> Tuple[WordlistEntry, ...]:
        return self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self):
        return iter(self._entries)

    def for_category(self, category: IncomeSource) -> "WordlistSnapshot":
        """Return a snapshot restricted to one category, order preserved."""
        return WordlistSnapshot(
            [e for e in self._entries if e.category is category],
            short_word_length=self.short_word_length,
        )

    def classify(self, memo: str) -> Classification:
        return classify(memo, self._entries, self.short_word_length)

    def __repr__(self) -> str:
        return f"WordlistSnapshot(entries={len(self._entries)}, version={self.version})"


class WordlistStore:
    """
    sqlite-backed wordlist.

    Usage:
        store = WordlistStore(conn)
        store.create("salary", "SALARY", user="admin")
        snapshot = store.snapshot()
    """

    def __init__(self, db_connection: sqlite3.Connection):
        self.conn = db_connection

    def create(self, word: str, category, user: str = "") -> WordlistEntry:
        """
        Add a wordlist entry.

        Raises:
            ValidationError: If the word is empty or the category is invalid
        """
        word, source = self._validate(word, category)
        now = datetime.now()
        with transaction(self.conn) as conn:
            cursor = conn.execute(
                """INSERT INTO income_wordlist
                (word, category, created_by, updated_by, created_at, updated_at)
                VALUES (?, ?, ?, ?, ?, ?)""",
                (word, source.value, user, user, now.isoformat(), now.isoformat()),
            )
            entry_id = cursor.lastrowid
        logger.info(f"Wordlist entry {entry_id} added: {word!r} -> {source.value}")
        return WordlistEntry(word=word, category=source, id=entry_id, created_at=now)

    def update(self, entry_id: int, word: str, category, user: str = "") -> WordlistEntry:
        """Replace the word and category of an entry."""
        word, source = self._validate(word, category)
        with transaction(self.conn) as conn:
            cursor = conn.execute(
                """UPDATE income_wordlist
                SET word = ?, category = ?, updated_by = ?, updated_at = ?
                WHERE id = ?""",
                (word, source.value, user, datetime.now().isoformat(), entry_id),
            )
            if cursor.rowcount == 0:
                raise WordlistNotFoundError(entry_id)
        return self.get(entry_id)

    def delete(self, entry_id: int) -> None:
        with transaction(self.conn) as conn:
            cursor = conn.execute("DELETE FROM income_wordlist WHERE id = ?", (entry_id,))
            if cursor.rowcount == 0:
                raise WordlistNotFoundError(entry_id)

    def get(self, entry_id: int) -> WordlistEntry:
        row = self.conn.execute(
            "SELECT id, word, category, created_at FROM income_wordlist WHERE id = ?",
            (entry_id,),
        ).fetchone()
        if row is None:
            raise WordlistNotFoundError(entry_id)
        return self._row_to_entry(row)

    def list(self, word: Optional[str] = None, category=None) -> List[WordlistEntry]:
        """
        List entries in match order, optionally filtered.

        Args:
            word: Case-insensitive substring filter on the word
            category: Only entries of this category
        """
        sql = "SELECT id, word, category, created_at FROM income_wordlist WHERE 1=1"
        params: list = []
        if word:
            sql += " AND lower(word) LIKE ?"
            params.append(f"%{word.strip().lower()}%")
        if category:
            sql += " AND category = ?"
            params.append(IncomeSource.parse(category).value)
        sql += " ORDER BY created_at DESC, id DESC"
        return [self._row_to_entry(row) for row in self.conn.execute(sql, params)]

    def snapshot(self, short_word_length: int = SHORT_WORD_LENGTH) -> WordlistSnapshot:
        """Read the whole wordlist, newest first, as a snapshot."""
        snapshot = WordlistSnapshot(self.list(), short_word_length=short_word_length)
        logger.debug(f"Loaded {snapshot!r}")
        return snapshot

    @staticmethod
    def _validate(word: str, category) -> Tuple[str, IncomeSource]:
        if category is None or str(getattr(category, "value", category)).strip() == "":
            raise ValidationError("Category must not be empty", field="category")
        source = IncomeSource.parse(category)
        word = (word or "").strip()
        if not word:
            raise ValidationError("Word must not be empty", field="word")
        return word, source

    @staticmethod
    def _row_to_entry(row) -> WordlistEntry:
        created = row["created_at"]
        return WordlistEntry(
            word=row["word"],
            category=IncomeSource(row["category"]),
            id=row["id"],
            created_at=datetime.fromisoformat(created) if created else None,
        )
