"""
Top-K Selector

Streams the merged counts once through a bounded min-heap and keeps the K
entries with the highest counts. Ties are broken by ascending NGram, so the
result does not depend on the order records arrive in: a heap entry is "worse"
than another when its count is lower, or its count is equal and its NGram is
larger.

Runs in O(M log K) time and O(K) memory for M input records.
"""

import heapq
import logging
import os
from typing import Iterable, List

from .configs import TopKConfig
from .records import CountRecord, format_ngram

logger = logging.getLogger(__name__)


class _Ranked:
    """Heap entry ordered so the heap minimum is the weakest kept record."""

    __slots__ = ("record",)

    def __init__(self, record: CountRecord):
        self.record = record

    def __lt__(self, other: "_Ranked") -> bool:
        if self.record.count != other.record.count:
            return self.record.count < other.record.count
        return self.record.ngram > other.record.ngram


def rank_key(record: CountRecord):
    """Sort key for the final result: descending count, then ascending NGram."""
    return (-record.count, record.ngram)


class TopKSelector:
    """
    Bounded min-heap over a record stream.

    Example:
        >>> selector = TopKSelector(2)
        >>> selector.extend([CountRecord(("cat",), 1), CountRecord(("sat",), 2),
        ...                  CountRecord(("the",), 2)])
        >>> [(r.ngram, r.count) for r in selector.result()]
        [(('sat',), 2), (('the',), 2)]
    """

    def __init__(self, k: int):
        self.k = max(k, 0)
        self._heap: List[_Ranked] = []
        self.seen = 0

    def offer(self, record: CountRecord):
        self.seen += 1
        if self.k == 0:
            return
        entry = _Ranked(record)
        if len(self._heap) < self.k:
            heapq.heappush(self._heap, entry)
        elif self._heap[0] < entry:
            heapq.heapreplace(self._heap, entry)

    def extend(self, records: Iterable[CountRecord]):
        for record in records:
            self.offer(record)

    def result(self) -> List[CountRecord]:
        """The kept records, highest count first, ascending NGram on ties."""
        return sorted((entry.record for entry in self._heap), key=rank_key)

    def __len__(self) -> int:
        return len(self._heap)


def _passes_filters(record: CountRecord, config: TopKConfig) -> bool:
    ngram = record.ngram
    if config.order is not None and len(ngram) != config.order:
        return False
    if config.min_article_count and record.articles <= config.min_article_count:
        return False
    for token in ngram:
        if len(token) < config.min_token_length or token in config.exclude_tokens:
            return False
    return True


def select_top_k(records: Iterable[CountRecord], config: TopKConfig) -> List[CountRecord]:
    """
    Select the top ``config.k`` records that pass the configured filters.

    Returns min(K, number of eligible records) records; K <= 0 returns [].
    """
    config.validate()
    if config.k <= 0:
        return []
    selector = TopKSelector(config.k)
    selector.extend(record for record in records if _passes_filters(record, config))
    logger.info(f"Selected {len(selector)} of {selector.seen:,} eligible records (k={config.k})")
    return selector.result()


def write_top_k(records: List[CountRecord], output_file: str, with_counts: bool = False) -> str:
    """
    Write a top-K result as plain text, most frequent first.

    Each line holds the NGram's tokens separated by spaces, optionally
    followed by a tab and the count.
    """
    tmp_path = f"{output_file}.partial"
    try:
        with open(tmp_path, "w", encoding="utf-8") as f:
            for record in records:
                line = format_ngram(record.ngram)
                if with_counts:
                    line += f"\t{record.count}"
                f.write(line + "\n")
        os.replace(tmp_path, output_file)
    finally:
        if os.path.exists(tmp_path):
            os.remove(tmp_path)
    logger.info(f"Wrote {len(records)} entries to {output_file}")
    return output_file

