import json
import os
import tempfile
from abc import ABC, abstractmethod
from copy import deepcopy
from typing import List, Optional

import config as cfg
from utils.debug import debug_log


def _debug_log(message: str):
    debug_log(message, tag="DB")


class PersistenceError(Exception):
    """Raised by a backend that cannot complete a read or write."""
    pass


class HistoryPersistence(ABC):
    """
    Port for the daily history collection.

    The whole collection is read and written at once; there are no row-level
    operations. Ordinary I/O trouble is reported through return values: load()
    returns an empty list for a missing or unreadable collection, and save()
    and clear() return (success, error). The only exception a backend may
    raise is PersistenceError, for failures it cannot express that way; the
    history store treats it like an unreadable collection or a failed write.
    """

    @abstractmethod
    def load(self) -> List[dict]:
        ...

    @abstractmethod
    def save(self, records: List[dict]) -> tuple[bool, str]:
        ...

    def clear(self) -> tuple[bool, str]:
        return self.save([])


class MemoryHistoryPersistence(HistoryPersistence):
    """Keeps the serialized collection in memory. Used by tests and throwaway runs."""

    def __init__(self, records: Optional[List[dict]] = None):
        self.records: List[dict] = deepcopy(records) if records else []
        self.save_count = 0
        self.fail_writes = False

    def load(self) -> List[dict]:
        return deepcopy(self.records)

    def save(self, records: List[dict]) -> tuple[bool, str]:
        if self.fail_writes:
            return False, "write refused"
        self.records = deepcopy(records)
        self.save_count += 1
        return True, ""


class JsonFileHistoryPersistence(HistoryPersistence):
    """
    Key/value JSON file holding the collection under a single well-known key.

    Other keys in the file are preserved. Writes go to a temp file in the same
    directory and are moved into place with os.replace, so a crash leaves
    either the old or the new file, never a torn one.
    """

    def __init__(self, path: Optional[str] = None, key: Optional[str] = None):
        self.path = path or cfg.HISTORY_FILE
        self.key = key or cfg.HISTORY_KEY

    def _read_document(self) -> dict:
        if not os.path.exists(self.path):
            return {}
        with open(self.path, "r", encoding="utf-8") as f:
            document = json.load(f)
        if not isinstance(document, dict):
            raise PersistenceError(f"{self.path} does not hold a key/value object")
        return document

    def load(self) -> List[dict]:
        try:
            records = self._read_document().get(self.key, [])
        except (OSError, json.JSONDecodeError, PersistenceError) as e:
            _debug_log(f"Load failed, starting empty: {e}")
            return []
        if not isinstance(records, list) or not all(isinstance(r, dict) for r in records):
            # Same as a record that fails validation: the collection is unusable
            _debug_log(f"Key {self.key} does not hold a list of records, starting empty")
            return []
        return records

    def _write_document(self, document: dict) -> tuple[bool, str]:
        """
        Blocking write, run on the caller's thread. For session flushes that is
        the event loop: at most 90 small records are written per flush, and
        keeping the write on the loop keeps each merge serialized with sample
        accumulation.
        """
        try:
            directory = os.path.dirname(os.path.abspath(self.path))
            os.makedirs(directory, exist_ok=True)
            fd, tmp_path = tempfile.mkstemp(dir=directory, prefix=".history-", suffix=".tmp")
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as f:
                    json.dump(document, f)
                    f.flush()
                    os.fsync(f.fileno())
                os.replace(tmp_path, self.path)
            except BaseException:
                if os.path.exists(tmp_path):
                    os.remove(tmp_path)
                raise
            return True, ""
        except (OSError, TypeError, ValueError) as e:
            _debug_log(f"Write failed: {e}")
            return False, str(e)

    def save(self, records: List[dict]) -> tuple[bool, str]:
        try:
            document = self._read_document()
        except (OSError, json.JSONDecodeError, PersistenceError):
            document = {}  # Unreadable file is replaced wholesale
        document[self.key] = records
        return self._write_document(document)

    def clear(self) -> tuple[bool, str]:
        try:
            document = self._read_document()
        except (OSError, json.JSONDecodeError, PersistenceError):
            document = {}
        document.pop(self.key, None)
        return self._write_document(document)
