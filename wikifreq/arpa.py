"""
ARPA-style frequencies file.

The frequencies file is the run's published output: a gzip-compressed text
file with a ``\\data\\`` header followed by the unigram and bigram sections,
each in ascending NGram order.

Entries are filtered by article count: an NGram is written only when every
one of its tokens occurs in more than ``min_article_count`` articles.
"""

import logging
import os
import shutil
import tempfile
from contextlib import ExitStack
from dataclasses import dataclass
from typing import Callable, Iterable, Iterator, Set

from .corpus import open_text
from .errors import WikiFreqError
from .records import CountRecord
from .spill import open_gzip_writer

logger = logging.getLogger(__name__)


@dataclass
class FrequenciesSummary:
    total_unigrams: int = 0
    unigrams_written: int = 0
    bigrams_written: int = 0


def _qualifying_tokens(records: Iterable[CountRecord], min_article_count: int, summary: FrequenciesSummary) -> Set[str]:
    tokens = set()
    for record in records:
        if len(record.ngram) != 1:
            continue
        summary.total_unigrams += record.count
        if record.articles > min_article_count:
            tokens.add(record.ngram[0])
    return tokens


def write_frequencies(
    records: Callable[[], Iterable[CountRecord]],
    output_path: str,
    min_article_count: int = 0,
) -> FrequenciesSummary:
    """
    Write the frequencies file from a merged record stream.

    Args:
        records: Zero-argument callable returning a fresh iteration of the
            merged stream; the stream is read more than once
        output_path: Path of the gzip file to create
        min_article_count: Tokens occurring in this many articles or fewer are dropped

    Returns:
        Totals written to the header
    """
    summary = FrequenciesSummary()
    vocabulary = _qualifying_tokens(records(), min_article_count, summary)

    def keep(record: CountRecord) -> bool:
        return all(token in vocabulary for token in record.ngram)

    tmp_path = f"{output_path}.partial"
    directory = os.path.dirname(os.path.abspath(output_path))
    with ExitStack() as stack:
        # The header needs both section sizes, so the sections go to scratch files first
        sections = {
            order: stack.enter_context(tempfile.TemporaryFile("w+", encoding="utf-8", dir=directory))
            for order in (1, 2)
        }
        for record in records():
            order = len(record.ngram)
            if order not in sections or not keep(record):
                continue
            sections[order].write(f"{record.count}\t" + "\t".join(record.ngram) + "\n")
            if order == 1:
                summary.unigrams_written += 1
            else:
                summary.bigrams_written += 1

        try:
            with open_gzip_writer(tmp_path, compress_level=9) as out:
                out.write("\\data\\\n")
                out.write(f"total unigrams = {summary.total_unigrams}\n")
                out.write(f"ngram 1 = {summary.unigrams_written}\n")
                out.write(f"ngram 2 = {summary.bigrams_written}\n")
                for order, section in sections.items():
                    out.write(f"\n\\{order}-grams:\n")
                    section.seek(0)
                    shutil.copyfileobj(section, out)
                out.write("\n\\end\\\n")
            os.replace(tmp_path, output_path)
        finally:
            if os.path.exists(tmp_path):
                os.remove(tmp_path)

    logger.info(
        f"Wrote {summary.unigrams_written:,} unigrams and {summary.bigrams_written:,} bigrams "
        f"to {output_path}"
    )
    return summary


def read_arpa_unigrams(path: str) -> Iterator[CountRecord]:
    """
    Stream the ``\\1-grams:`` section of a frequencies file as CountRecords.

    The article count is not stored in the file and is reported as 0.

    Raises:
        WikiFreqError: if a unigram line is malformed
    """
    in_section = False
    with open_text(path) as f:
        for line_number, line in enumerate(f, start=1):
            if line.startswith("\\1-grams:"):
                in_section = True
                continue
            if not in_section:
                continue
            line = line.rstrip("\n")
            if not line.strip():
                break
            fields = line.split("\t")
            try:
                if len(fields) != 2:
                    raise ValueError(f"expected 2 fields, got {len(fields)}")
                count = int(fields[0])
            except ValueError as e:
                raise WikiFreqError(f"Malformed unigram at {path}:{line_number}: {e}") from e
            yield CountRecord((fields[1],), count)
