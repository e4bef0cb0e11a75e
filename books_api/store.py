from collections.abc import Callable
from datetime import datetime, timezone

from .entities import BookRecord
from .models import Book
from .rwlock import ReadWriteLock


class BookNotFound(KeyError):
    def __init__(self, book_id: int):
        super().__init__(book_id)
        self.book_id = book_id

    def __str__(self) -> str:
        return f"book {self.book_id} not found"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class BookStore:
    """Thread-safe in-memory book collection.

    Records are kept in insertion order with a side index of id -> position.
    Ids come from a counter that is never reset, so a removed id never
    resolves again. Every mutation of the list and the index happens under
    the same write lock, and callers only ever receive copies.
    """

    def __init__(self, clock: Callable[[], datetime] = _utcnow):
        self._clock = clock
        self._lock = ReadWriteLock()
        self._books: list[BookRecord] = []
        self._index: dict[int, int] = {}
        self._last_id = 0

    @property
    def last_id(self) -> int:
        with self._lock.read():
            return self._last_id

    def __len__(self) -> int:
        with self._lock.read():
            return len(self._books)

    def add(self, name: str, author: str) -> Book:
        now = self._clock()
        with self._lock.write():
            book_id = self._last_id + 1
            self._last_id = book_id
            record = BookRecord(id=book_id, name=name, author=author, created_at=now, updated_at=now)
            self._index[book_id] = len(self._books)
            self._books.append(record)
            return self._to_schema(record)

    def list(self) -> list[Book]:
        with self._lock.read():
            return [self._to_schema(record) for record in self._books]

    def get(self, book_id: int) -> Book:
        with self._lock.read():
            return self._to_schema(self._lookup(book_id))

    def update(self, book_id: int, name: str, author: str) -> Book:
        # lookup, mutation and commit share one write acquisition
        with self._lock.write():
            record = self._lookup(book_id)
            record.name = name
            record.author = author
            record.updated_at = max(self._clock(), record.updated_at)
            return self._to_schema(record)

    def remove(self, book_id: int) -> None:
        with self._lock.write():
            position = self._index.get(book_id)
            if position is None:
                raise BookNotFound(book_id)
            del self._books[position]
            del self._index[book_id]
            for shifted in range(position, len(self._books)):
                self._index[self._books[shifted].id] = shifted

    def _lookup(self, book_id: int) -> BookRecord:
        position = self._index.get(book_id)
        if position is None:
            raise BookNotFound(book_id)
        return self._books[position]

    @staticmethod
    def _to_schema(record: BookRecord) -> Book:
        return Book.model_validate(record, from_attributes=True)
