"""
Corpus splitting and article sources.

The splitter turns a cirrussearch JSON-lines dump into N gzip files of
normalized article text, one article per line, picking the piece for each
article with a seeded RNG so a re-run produces the same pieces. Each piece is
one shard for the frequency pipeline, read back through ArticleSource.
"""

import gzip
import json
import logging
import random
import shutil
import time
from contextlib import ExitStack
from dataclasses import dataclass
from pathlib import Path
from typing import IO, Iterator, List

from .configs import SplitConfig
from .spill import open_gzip_writer
from .tokenizer import normalize_text

logger = logging.getLogger(__name__)

SPLIT_MARKER = ".split."


def open_text(path: str, mode: str = "rt") -> IO[str]:
    """Open a text file, transparently decompressing ``.gz`` files."""
    if str(path).endswith(".gz"):
        return gzip.open(path, mode, encoding="utf-8")
    return open(path, mode[0], encoding="utf-8")


def open_binary(path: str) -> IO[bytes]:
    """Open a file for reading bytes, transparently decompressing ``.gz`` files."""
    if str(path).endswith(".gz"):
        return gzip.open(path, "rb")
    return open(path, "rb")


@dataclass
class SplitReport:
    """Outcome of splitting a dump."""

    output_files: List[str]
    documents: int = 0
    articles: int = 0
    filtered_documents: int = 0
    malformed_documents: int = 0
    elapsed_seconds: float = 0.0


def extract_article(line: str):
    """
    Return the normalized article text of one dump line, or None.

    Raises:
        ValueError: if the line is not valid JSON
    """
    document = json.loads(line)
    if not isinstance(document, dict):
        return None
    text = document.get("text")
    if not isinstance(text, str):
        return None
    # One article per output line
    return " ".join(normalize_text(text).splitlines())


def split_corpus(input_path: str, output_dir: str, config: SplitConfig = None) -> SplitReport:
    """
    Split a cirrussearch dump into ``config.pieces`` gzip files.

    The output directory is deleted first if it exists. Lines without a
    string ``text`` field (the dump's index lines, non-content pages) are
    filtered; lines that are not valid UTF-8 JSON are skipped and counted.
    """
    config = (config or SplitConfig()).validate()
    start_time = time.time()

    output_path = Path(output_dir)
    if output_path.is_dir():
        logger.info(f"Deleting output directory {output_path}")
        shutil.rmtree(output_path)
    output_path.mkdir(parents=True)

    basename = Path(input_path).name.split(".")[0]
    paths = [
        str(output_path / f"{basename}{SPLIT_MARKER}{i:03d}.gz") for i in range(config.pieces)
    ]
    report = SplitReport(output_files=paths)
    rng = random.Random(config.seed)

    with ExitStack() as stack:
        outputs = [stack.enter_context(open_gzip_writer(p, compress_level=6)) for p in paths]
        reader = stack.enter_context(open_binary(input_path))
        for line in reader:
            if not line.strip():
                continue
            report.documents += 1
            try:
                text = extract_article(line.decode("utf-8"))
            except ValueError as e:
                report.malformed_documents += 1
                logger.warning(f"Skipping malformed document {report.documents}: {e}")
                continue
            if text is None:
                report.filtered_documents += 1
                continue

            outputs[rng.randrange(config.pieces)].write(text + "\n")
            report.articles += 1
            if report.articles % config.progress_every == 0:
                logger.info(f"Split {report.articles:,} articles")

    report.elapsed_seconds = time.time() - start_time
    logger.info(
        f"Split {report.articles:,} articles into {config.pieces} pieces "
        f"({report.filtered_documents:,} filtered, {report.malformed_documents:,} malformed) "
        f"in {report.elapsed_seconds:.1f}s"
    )
    return report


def discover_split_files(input_dir: str) -> List[str]:
    """Split files in ``input_dir`` in name order; position is the shard index."""
    return sorted(
        str(path)
        for path in Path(input_dir).iterdir()
        if path.is_file() and SPLIT_MARKER in path.name
    )


class ArticleSource:
    """
    Restartable sequence of the articles in one split file.

    Every iteration re-opens the file. Articles with fewer than
    ``min_article_tokens`` whitespace-separated words are left out and counted
    in ``filtered``.
    """

    def __init__(self, path: str, min_article_tokens: int = 0):
        self.path = path
        self.min_article_tokens = min_article_tokens
        self.filtered = 0

    def __iter__(self) -> Iterator[str]:
        self.filtered = 0
        with open_text(self.path) as f:
            for line in f:
                text = line.rstrip("\n")
                if not text.strip():
                    continue
                if self.min_article_tokens and len(text.split()) < self.min_article_tokens:
                    self.filtered += 1
                    continue
                yield text
