"""
Merge-Reducer

K-way merges sorted CountRecord sources (spill files and in-memory shard
remainders) into one stream with exactly one record per NGram, summing the
counts of every source positioned at the same NGram.

Memory is proportional to the number of open sources, never to the number of
distinct NGrams. When there are more spill files than ``max_open_files``, the
files are first merged in batches into intermediate spill files, pass after
pass, until one final merge fits under the limit.
"""

import heapq
import logging
from contextlib import ExitStack
from dataclasses import dataclass, field
from typing import Dict, Iterable, Iterator, List, Optional, Sequence

from .configs import MergeConfig
from .errors import SpillIntegrityError, WikiFreqError
from .records import CountRecord
from .spill import SpillDirectory, SpillFile, SpillReader, SpillWriter, remove_spill

logger = logging.getLogger(__name__)


def merge_records(
    sources: Sequence[Iterable[CountRecord]],
    identities: Optional[Sequence[str]] = None,
) -> Iterator[CountRecord]:
    """
    Merge sorted record sources into one sorted, deduplicated stream.

    Args:
        sources: Iterables each yielding records in strictly increasing NGram order
        identities: Names of the sources for error messages

    Yields:
        One CountRecord per distinct NGram with counts and article counts summed

    Raises:
        SpillIntegrityError: if a source yields records out of order

    Example:
        >>> a = [CountRecord(("cat",), 1), CountRecord(("the",), 1)]
        >>> b = [CountRecord(("dog",), 1), CountRecord(("the",), 2)]
        >>> [tuple(r) for r in merge_records([a, b])]
        [(('cat',), 1, 0), (('dog',), 1, 0), (('the',), 3, 0)]
    """
    if identities is None:
        identities = [f"source {idx}" for idx in range(len(sources))]

    iterators = [iter(source) for source in sources]
    heads: Dict[int, CountRecord] = {}
    heap = []
    for idx, iterator in enumerate(iterators):
        record = next(iterator, None)
        if record is not None:
            heads[idx] = record
            heap.append((record.ngram, idx))
    heapq.heapify(heap)

    previous = None
    while heap:
        ngram = heap[0][0]
        count = 0
        articles = 0

        # Drain every source currently positioned at this ngram
        while heap and heap[0][0] == ngram:
            _, idx = heapq.heappop(heap)
            record = heads.pop(idx)
            count += record.count
            articles += record.articles

            following = next(iterators[idx], None)
            if following is None:
                continue
            if following.ngram <= record.ngram:
                raise SpillIntegrityError(
                    identities[idx],
                    "<memory>",
                    f"records not sorted: {following.ngram!r} after {record.ngram!r}",
                )
            heads[idx] = following
            heapq.heappush(heap, (following.ngram, idx))

        if previous is not None and ngram <= previous:
            raise WikiFreqError(f"Merge produced {ngram!r} after {previous!r}")
        previous = ngram
        yield CountRecord(ngram, count, articles)


@dataclass
class MergeStats:
    """Counters describing one merge."""

    input_files: int = 0
    in_memory_sources: int = 0
    passes: int = 0
    intermediate_files: int = 0
    records: int = 0
    distinct: Dict[int, int] = field(default_factory=dict)
    totals: Dict[int, int] = field(default_factory=dict)

    def observe(self, record: CountRecord):
        order = len(record.ngram)
        self.records += 1
        self.distinct[order] = self.distinct.get(order, 0) + 1
        self.totals[order] = self.totals.get(order, 0) + record.count


class MergeReducer:
    """
    Combines every spill file of a run, plus un-spilled remainders, into the
    merged stream.

    Consumed spill files are deleted once the merge reading them has finished.

    Args:
        config: Fan-in limit
        spill_directory: Where intermediate files of multi-pass merges go
        delete_consumed: Remove input spill files after they are merged
    """

    def __init__(
        self,
        config: Optional[MergeConfig] = None,
        spill_directory: Optional[SpillDirectory] = None,
        delete_consumed: bool = True,
    ):
        self.config = (config or MergeConfig()).validate()
        self.spill_directory = spill_directory
        self.delete_consumed = delete_consumed
        self.stats = MergeStats()

    def merge(
        self,
        spill_files: Sequence[SpillFile],
        remainders: Sequence[Sequence[CountRecord]] = (),
    ) -> Iterator[CountRecord]:
        """Yield the merged stream of all spill files and remainders."""
        self.stats = MergeStats(input_files=len(spill_files), in_memory_sources=len(remainders))
        files = self._reduce_fan_in(list(spill_files))
        self.stats.passes += 1

        logger.info(
            f"Final merge of {len(files)} spill files and {len(remainders)} in-memory sources"
        )
        with ExitStack() as stack:
            readers = [stack.enter_context(SpillReader(spill_file)) for spill_file in files]
            identities = [spill_file.identity for spill_file in files]
            identities += [f"in-memory remainder {idx}" for idx in range(len(remainders))]
            for record in merge_records(list(readers) + list(remainders), identities):
                self.stats.observe(record)
                yield record

        self._consume(files)
        logger.info(f"Merged {self.stats.records:,} distinct ngrams in {self.stats.passes} passes")

    def merge_to_file(
        self,
        spill_files: Sequence[SpillFile],
        path: str,
        remainders: Sequence[Sequence[CountRecord]] = (),
        compress_level: int = 6,
    ) -> SpillFile:
        """Persist the merged stream as a record file at ``path``."""
        with SpillWriter(path, 0, 0, compress_level=compress_level, label="merged stream") as writer:
            writer.write_all(self.merge(spill_files, remainders))
        return writer.spill_file

    def _reduce_fan_in(self, files: List[SpillFile]) -> List[SpillFile]:
        limit = self.config.max_open_files
        level = 0
        while len(files) > limit:
            if self.spill_directory is None:
                raise WikiFreqError(
                    f"{len(files)} spill files exceed max_open_files={limit} "
                    "and no directory was given for intermediate files"
                )
            level += 1
            batches = [files[start:start + limit] for start in range(0, len(files), limit)]
            logger.info(f"Merge pass {level}: {len(files)} files in {len(batches)} batches")

            merged = []
            for batch_index, batch in enumerate(batches):
                if len(batch) == 1:
                    merged.append(batch[0])
                    continue
                merged.append(self._merge_batch(batch, level, batch_index))
            files = merged
            self.stats.passes += 1
        return files

    def _merge_batch(self, batch: List[SpillFile], level: int, batch_index: int) -> SpillFile:
        path = self.spill_directory.merge_path(level, batch_index)
        with ExitStack() as stack:
            readers = [stack.enter_context(SpillReader(spill_file)) for spill_file in batch]
            with SpillWriter(
                path,
                shard_index=batch_index,
                sequence=0,
                level=level,
                compress_level=self.config.compress_level,
            ) as writer:
                writer.write_all(merge_records(readers, [f.identity for f in batch]))
        self.stats.intermediate_files += 1
        self._consume(batch)
        return writer.spill_file

    def _consume(self, files: Iterable[SpillFile]):
        if not self.delete_consumed:
            return
        for spill_file in files:
            remove_spill(spill_file)
