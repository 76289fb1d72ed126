"""
Shard Aggregator

Counts unigrams and bigrams for one shard of the corpus while keeping its
in-memory table under a byte budget:

1. Tokens are interned so each distinct string is stored once per table.
2. Every article contributes one increment per token and one per adjacent
   token pair inside that article; bigrams never span two articles.
3. When the estimated table size reaches the budget, the whole table is
   sorted by NGram, written out as a spill file and cleared.
4. At the end of the shard the remainder is either spilled as well or handed
   back in sorted order for the merge to consume directly.

Articles that cannot be tokenized are skipped and counted, never fatal. A
spill that cannot be written is fatal for the shard.
"""

import logging
import time
from dataclasses import dataclass, field
from typing import Callable, Dict, Iterable, List, Optional, Sequence

import psutil

from .configs import AggregatorConfig
from .errors import TokenizationError
from .records import CountRecord, InternTable, NGram, entry_bytes, sorted_records
from .spill import SpillDirectory, SpillFile, write_spill

logger = logging.getLogger(__name__)


def get_memory_usage() -> float:
    """Resident memory of the current process in MB."""
    return psutil.Process().memory_info().rss / (1024 * 1024)


@dataclass
class ShardStats:
    """Counters for one shard, summed into the run report."""

    shard_index: int
    articles: int = 0
    skipped_articles: int = 0
    filtered_articles: int = 0
    tokens: int = 0
    bigrams: int = 0
    spills: int = 0
    peak_estimated_bytes: int = 0
    peak_rss_mb: float = 0.0
    elapsed_seconds: float = 0.0


@dataclass
class ShardResult:
    """What a finished shard hands to the merge."""

    shard_index: int
    spill_files: List[SpillFile]
    stats: ShardStats
    remainder: List[CountRecord] = field(default_factory=list)


class ShardAggregator:
    """
    Bounded-memory unigram/bigram counter for one shard.

    Args:
        shard_index: Identity of the shard, used to name its spill files
        config: Memory budget and spill location
        tokenizer: Callable turning article text into tokens; only needed for
            ``add_article`` / ``count_articles``
        spill_directory: Where spill files go. Defaults to ``config.spill_dir``,
            or a fresh temporary directory on the first spill. The caller owns
            that directory and removes it with ``spill_directory.cleanup()``
            once the spill files have been merged.

    Example:
        >>> aggregator = ShardAggregator(0, AggregatorConfig(memory_limit_bytes=1 << 20))
        >>> aggregator.add_tokens(["the", "cat", "sat"])
        >>> result = aggregator.finish(keep_remainder=True)
        >>> [r.ngram for r in result.remainder]
        [('cat',), ('cat', 'sat'), ('sat',), ('the',), ('the', 'cat')]
    """

    def __init__(
        self,
        shard_index: int,
        config: AggregatorConfig,
        tokenizer: Optional[Callable[[str], List[str]]] = None,
        spill_directory: Optional[SpillDirectory] = None,
    ):
        self.shard_index = shard_index
        self.config = config.validate()
        self.tokenizer = tokenizer
        self.stats = ShardStats(shard_index=shard_index)

        self._spill_directory = spill_directory
        self._table: Dict[NGram, List[int]] = {}
        self._interned = InternTable()
        self._entry_bytes = 0
        self._spill_files: List[SpillFile] = []
        self._finished = False
        self._start_time = time.time()

    @property
    def estimated_bytes(self) -> int:
        return self._entry_bytes + self._interned.nbytes

    @property
    def distinct_ngrams(self) -> int:
        return len(self._table)

    @property
    def spill_files(self) -> List[SpillFile]:
        return list(self._spill_files)

    @property
    def spill_directory(self) -> Optional[SpillDirectory]:
        """The directory spill files were written to, or None before the first spill."""
        return self._spill_directory

    def add_tokens(self, tokens: Sequence[str]):
        """Count one article's unigrams and in-article bigrams.

        Raises:
            TokenizationError: if a token is empty, not a string or contains
                whitespace. Nothing of the article is counted in that case.
        """
        if self._finished:
            raise RuntimeError(f"Shard {self.shard_index} is already finished")

        for token in tokens:
            self._check_token(token)

        seen = set()
        previous = None
        for token in tokens:
            self._increment((token,), seen)
            if previous is not None:
                self._increment((previous, token), seen)
            previous = token

        self.stats.articles += 1
        self.stats.tokens += len(tokens)
        self.stats.bigrams += max(len(tokens) - 1, 0)

    def add_article(self, text: str) -> bool:
        """Tokenize and count one article. Returns False if it was skipped."""
        if self.tokenizer is None:
            raise RuntimeError("add_article needs a tokenizer")
        try:
            tokens = self.tokenizer(text)
            self.add_tokens(tokens)
        except TokenizationError as e:
            self.stats.skipped_articles += 1
            logger.warning(
                f"Shard {self.shard_index}: skipping article "
                f"{self.stats.articles + self.stats.skipped_articles}: {e}"
            )
            return False
        return True

    def count_articles(self, articles: Iterable[str], progress_every: int = 10000) -> ShardStats:
        for text in articles:
            self.add_article(text)
            seen = self.stats.articles + self.stats.skipped_articles
            if progress_every and seen % progress_every == 0:
                logger.info(
                    f"Shard {self.shard_index}: {seen:,} articles, "
                    f"{self.distinct_ngrams:,} ngrams in memory"
                )
        return self.stats

    def spill(self) -> Optional[SpillFile]:
        """Sort the in-memory table, write it as a new spill file and clear it."""
        if not self._table:
            return None

        directory = self._directory()
        sequence = len(self._spill_files)
        spill_file = write_spill(
            sorted_records(self._table),
            directory.spill_path(self.shard_index, sequence),
            shard_index=self.shard_index,
            sequence=sequence,
            compress_level=self.config.compress_level,
        )
        self._spill_files.append(spill_file)
        self.stats.spills += 1
        self._sample_memory()
        logger.info(
            f"Shard {self.shard_index}: spilled {spill_file.records:,} records "
            f"({self.estimated_bytes:,} estimated bytes) to {spill_file.path}"
        )

        self._table = {}
        self._interned.clear()
        self._entry_bytes = 0
        return spill_file

    def finish(self, keep_remainder: bool = False) -> ShardResult:
        """
        Close the shard.

        Args:
            keep_remainder: Hand the un-spilled table back as sorted records
                instead of writing a final spill file.
        """
        remainder: List[CountRecord] = []
        if keep_remainder:
            remainder = list(sorted_records(self._table))
            self._table = {}
            self._interned.clear()
            self._entry_bytes = 0
        else:
            self.spill()

        self._finished = True
        self._sample_memory()
        self.stats.elapsed_seconds = time.time() - self._start_time
        return ShardResult(
            shard_index=self.shard_index,
            spill_files=list(self._spill_files),
            stats=self.stats,
            remainder=remainder,
        )

    def _check_token(self, token: str):
        if not isinstance(token, str) or not token:
            raise TokenizationError(f"invalid token {token!r}")
        if token not in self._interned and token.split() != [token]:
            raise TokenizationError(f"token contains whitespace: {token!r}")

    def _increment(self, ngram: NGram, seen: set):
        first_in_article = ngram not in seen
        if first_in_article:
            seen.add(ngram)

        cell = self._table.get(ngram)
        if cell is not None:
            cell[0] += 1
            if first_in_article:
                cell[1] += 1
            return

        # Keys always reference tokens held by the current intern table
        ngram = tuple(self._interned.intern(token) for token in ngram)
        self._table[ngram] = [1, 1 if first_in_article else 0]
        self._entry_bytes += entry_bytes(ngram)
        estimate = self.estimated_bytes
        if estimate > self.stats.peak_estimated_bytes:
            self.stats.peak_estimated_bytes = estimate
        if estimate >= self.config.memory_limit_bytes:
            self.spill()

    def _directory(self) -> SpillDirectory:
        if self._spill_directory is None:
            if self.config.spill_dir:
                self._spill_directory = SpillDirectory(self.config.spill_dir)
            else:
                self._spill_directory = SpillDirectory.create()
        return self._spill_directory

    def _sample_memory(self):
        self.stats.peak_rss_mb = max(self.stats.peak_rss_mb, get_memory_usage())
