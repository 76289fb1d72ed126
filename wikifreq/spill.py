"""
Spill file storage.

A spill file is a gzip-compressed, sorted, deduplicated run of CountRecords
written once by a single owner and read back by the merge. Writers produce the
file under a temporary name and rename it into place on a clean close, so a
reader never sees a half-written spill. Readers re-check the ordering on the
way in and fail loudly on anything that would corrupt the merged counts.
"""

import gzip
import io
import logging
import os
import shutil
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, Iterator, List, Optional

from .errors import SpillIntegrityError, SpillWriteError
from .records import CountRecord, decode_record, encode_record

logger = logging.getLogger(__name__)

SPILL_SUFFIX = ".tsv.gz"
PARTIAL_SUFFIX = ".partial"


def open_gzip_writer(path: str, compress_level: int = 1):
    """
    Open a gzip text file for writing with a fixed header timestamp, so the
    same records always produce the same bytes.
    """
    return io.TextIOWrapper(
        gzip.GzipFile(path, "wb", compresslevel=compress_level, mtime=0), encoding="utf-8"
    )


def remove_spill(spill_file: "SpillFile"):
    try:
        os.remove(spill_file.path)
    except FileNotFoundError:
        pass


@dataclass
class SpillFile:
    """A finished spill file and the identity of its owner.

    Shard spills have ``level == 0``. Intermediate files produced by merge
    passes have ``level >= 1`` and use ``shard_index`` as their batch number.
    """

    path: str
    shard_index: int
    sequence: int
    level: int = 0
    records: int = 0
    label: Optional[str] = None

    @property
    def identity(self) -> str:
        if self.label:
            return self.label
        if self.level == 0:
            return f"shard {self.shard_index} spill {self.sequence}"
        return f"merge pass {self.level} batch {self.shard_index}"


class SpillDirectory:
    """Owns the directory a run writes its spill files into.

    Files are partitioned by shard index and sequence number, so concurrent
    writers in different worker processes never collide.
    """

    def __init__(self, base_dir: str):
        self.base_dir = Path(base_dir)
        self.base_dir.mkdir(parents=True, exist_ok=True)

    @classmethod
    def create(cls, parent: Optional[str] = None, prefix: str = "wikifreq-") -> "SpillDirectory":
        if parent:
            os.makedirs(parent, exist_ok=True)
        return cls(tempfile.mkdtemp(prefix=prefix, dir=parent))

    def spill_path(self, shard_index: int, sequence: int) -> str:
        return str(self.base_dir / f"shard-{shard_index:04d}-{sequence:05d}{SPILL_SUFFIX}")

    def merge_path(self, level: int, batch: int) -> str:
        return str(self.base_dir / f"merge-{level:02d}-{batch:05d}{SPILL_SUFFIX}")

    def list_files(self) -> List[str]:
        return sorted(str(path) for path in self.base_dir.glob(f"*{SPILL_SUFFIX}"))

    def cleanup(self):
        """Remove the directory and every spill file in it."""
        if self.base_dir.exists():
            shutil.rmtree(self.base_dir)
            logger.info(f"Cleaned up spill directory: {self.base_dir}")


class SpillWriter:
    """Scoped writer for one spill file.

    Records must be appended in strictly increasing NGram order. The file only
    appears at its final path when the writer is closed without an error.

    Example:
        >>> with SpillWriter(path, shard_index=0, sequence=0) as writer:
        ...     writer.write_all(records)
        >>> spill_file = writer.spill_file
    """

    def __init__(
        self,
        path: str,
        shard_index: int,
        sequence: int,
        level: int = 0,
        compress_level: int = 1,
        label: Optional[str] = None,
    ):
        self.path = path
        self.label = label
        self.shard_index = shard_index
        self.sequence = sequence
        self.level = level
        self.compress_level = compress_level
        self.spill_file: Optional[SpillFile] = None
        self._tmp_path: Optional[str] = None
        self._handle = None
        self._last_ngram = None
        self._records = 0

    def __enter__(self) -> "SpillWriter":
        self._tmp_path = self.path + PARTIAL_SUFFIX
        try:
            self._handle = open_gzip_writer(self._tmp_path, self.compress_level)
        except OSError as e:
            self._discard()
            raise self._error(e) from e
        return self

    def write(self, record: CountRecord):
        if self._last_ngram is not None and record.ngram <= self._last_ngram:
            raise self._error(
                f"records out of order: {record.ngram!r} after {self._last_ngram!r}"
            )
        try:
            self._handle.write(encode_record(record))
        except OSError as e:
            raise self._error(e) from e
        self._last_ngram = record.ngram
        self._records += 1

    def write_all(self, records: Iterable[CountRecord]) -> int:
        for record in records:
            self.write(record)
        return self._records

    def __exit__(self, exc_type, exc_value, traceback):
        if exc_type is not None:
            self._discard()
            return False
        try:
            self._handle.close()
            self._handle = None
            os.replace(self._tmp_path, self.path)
            self._tmp_path = None
        except OSError as e:
            self._discard()
            raise self._error(e) from e
        self.spill_file = SpillFile(
            path=self.path,
            shard_index=self.shard_index,
            sequence=self.sequence,
            level=self.level,
            records=self._records,
            label=self.label,
        )
        return False

    def _discard(self):
        if self._handle is not None:
            try:
                self._handle.close()
            except OSError:
                logger.warning(f"Could not close partial spill {self._tmp_path}")
            self._handle = None
        if self._tmp_path is not None and os.path.exists(self._tmp_path):
            os.remove(self._tmp_path)
        self._tmp_path = None

    def _error(self, reason) -> SpillWriteError:
        return SpillWriteError(self.shard_index, self.sequence, self.path, str(reason))


def write_spill(
    records: Iterable[CountRecord],
    path: str,
    shard_index: int,
    sequence: int,
    level: int = 0,
    compress_level: int = 1,
) -> SpillFile:
    """Write sorted records to a new spill file and return its handle."""
    with SpillWriter(path, shard_index, sequence, level=level, compress_level=compress_level) as writer:
        writer.write_all(records)
    return writer.spill_file


class SpillReader:
    """Scoped, validating reader for one spill file.

    Iterating yields CountRecords in file order. Any decoding problem, ordering
    violation or duplicate key raises SpillIntegrityError naming the file's
    owner; the file handle is released on every exit path.
    """

    def __init__(self, spill_file: SpillFile):
        self.spill_file = spill_file
        self._handle = None

    def __enter__(self) -> "SpillReader":
        try:
            self._handle = gzip.open(self.spill_file.path, "rt", encoding="utf-8")
        except OSError as e:
            raise self._error(f"cannot open: {e}") from e
        return self

    def __exit__(self, exc_type, exc_value, traceback):
        self.close()
        return False

    def close(self):
        if self._handle is not None:
            self._handle.close()
            self._handle = None

    def __iter__(self) -> Iterator[CountRecord]:
        previous = None
        line_number = 0
        try:
            for line_number, line in enumerate(self._handle, start=1):
                try:
                    record = decode_record(line)
                except ValueError as e:
                    raise self._error(f"malformed record: {e}", line_number) from e
                if previous is not None and record.ngram <= previous:
                    reason = "duplicate key" if record.ngram == previous else "records not sorted"
                    raise self._error(f"{reason}: {record.ngram!r} after {previous!r}", line_number)
                previous = record.ngram
                yield record
        except (OSError, EOFError, UnicodeDecodeError) as e:
            raise self._error(f"unreadable: {e}", line_number + 1) from e

    def _error(self, reason: str, line_number: Optional[int] = None) -> SpillIntegrityError:
        return SpillIntegrityError(self.spill_file.identity, self.spill_file.path, reason, line_number)


def read_spill(spill_file: SpillFile) -> Iterator[CountRecord]:
    """Yield every record of a spill file, closing it when exhausted or abandoned."""
    with SpillReader(spill_file) as reader:
        yield from reader
