"""
Shared record types for unigram/bigram counting.

An NGram is a plain tuple of one or two tokens, so Python's tuple ordering is
the lexicographic order every spill file and the merged stream are sorted by.
A CountRecord is the fixed-shape unit that flows from the shard aggregators
through the merge to the top-K selector.

Spill line format (tab separated, tokens never contain whitespace):

    count<TAB>articles<TAB>token1[<TAB>token2]
"""

import sys
from typing import Dict, Iterator, NamedTuple, Tuple

NGram = Tuple[str, ...]

MAX_ORDER = 2

# Per-key cost of a table entry besides the token strings themselves:
# the key tuple, the [count, articles] cell and the dict slot.
_CELL_BYTES = sys.getsizeof([0, 0]) + 2 * sys.getsizeof(2**40)
_DICT_SLOT_BYTES = 3 * 8 * 3 // 2
_KEY_BYTES = {order: sys.getsizeof(("",) * order) for order in range(1, MAX_ORDER + 1)}


class CountRecord(NamedTuple):
    """An NGram with its occurrence count and the number of articles it occurs in."""

    ngram: NGram
    count: int
    articles: int = 0

    @property
    def order(self) -> int:
        return len(self.ngram)


def entry_bytes(ngram: NGram) -> int:
    """Estimated table cost of one NGram key, not counting its interned tokens."""
    return _KEY_BYTES[len(ngram)] + _CELL_BYTES + _DICT_SLOT_BYTES


class InternTable:
    """
    Stores each distinct token string once.

    Every NGram built by a shard aggregator references the canonical string held
    here, so a token that appears in thousands of bigrams is allocated once.
    The table tracks the bytes it holds so the owner can include it in its
    memory estimate.
    """

    def __init__(self):
        self._strings: Dict[str, str] = {}
        self.nbytes = 0

    def intern(self, token: str) -> str:
        canonical = self._strings.get(token)
        if canonical is None:
            self._strings[token] = token
            self.nbytes += sys.getsizeof(token) + _DICT_SLOT_BYTES
            canonical = token
        return canonical

    def __len__(self) -> int:
        return len(self._strings)

    def __contains__(self, token: str) -> bool:
        return token in self._strings

    def clear(self):
        self._strings.clear()
        self.nbytes = 0


def encode_record(record: CountRecord) -> str:
    """Serialize a record to one spill line, including the trailing newline."""
    return f"{record.count}\t{record.articles}\t" + "\t".join(record.ngram) + "\n"


def decode_record(line: str) -> CountRecord:
    """
    Parse one spill line.

    Raises:
        ValueError: if the line does not hold a positive count, a non-negative
            article count and one or two non-empty tokens.
    """
    fields = line.rstrip("\n").split("\t")
    if len(fields) < 3 or len(fields) > 2 + MAX_ORDER:
        raise ValueError(f"expected 3 or 4 tab-separated fields, got {len(fields)}")
    count = int(fields[0])
    articles = int(fields[1])
    if count < 1:
        raise ValueError(f"count must be >= 1, got {count}")
    if articles < 0:
        raise ValueError(f"article count must be >= 0, got {articles}")
    ngram = tuple(fields[2:])
    if any(not token for token in ngram):
        raise ValueError("empty token")
    return CountRecord(ngram, count, articles)


def format_ngram(ngram: NGram) -> str:
    return " ".join(ngram)


def sorted_records(table: Dict[NGram, list]) -> Iterator[CountRecord]:
    """Yield the entries of a ``{ngram: [count, articles]}`` table in NGram order."""
    for ngram in sorted(table):
        count, articles = table[ngram]
        yield CountRecord(ngram, count, articles)

