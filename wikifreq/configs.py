"""
Configuration classes for the frequency pipeline.
"""

import os
import tempfile
from dataclasses import dataclass, field
from typing import Optional, Tuple

from .errors import ConfigurationError

DEFAULT_MEMORY_LIMIT_BYTES = 256 * 1024 * 1024
DEFAULT_MAX_OPEN_FILES = 512
OUT_OF_VOCABULARY_TOKEN = "<unk>"
MAX_SPLIT_PIECES = 1024


@dataclass
class AggregatorConfig:
    """Configuration for a shard aggregator.

    Attributes:
        memory_limit_bytes (int): Estimated table size that triggers a spill
        spill_dir (str): Directory the shard writes its spill files into
        compress_level (int): gzip level for spill files
    """

    memory_limit_bytes: int = DEFAULT_MEMORY_LIMIT_BYTES
    spill_dir: Optional[str] = None
    compress_level: int = 1

    def validate(self) -> "AggregatorConfig":
        if self.memory_limit_bytes <= 0:
            raise ConfigurationError(
                f"memory_limit_bytes must be positive, got {self.memory_limit_bytes}"
            )
        if not 0 <= self.compress_level <= 9:
            raise ConfigurationError(f"compress_level must be 0..9, got {self.compress_level}")
        return self


@dataclass
class MergeConfig:
    """Configuration for the merge-reducer.

    Attributes:
        max_open_files (int): Largest number of spill files read at once. Beyond
            that, the merge runs in passes over batches of this size.
        compress_level (int): gzip level for intermediate and merged files.
    """

    max_open_files: int = DEFAULT_MAX_OPEN_FILES
    compress_level: int = 1

    def validate(self) -> "MergeConfig":
        if self.max_open_files < 2:
            raise ConfigurationError(
                f"max_open_files must be at least 2, got {self.max_open_files}"
            )
        if not 0 <= self.compress_level <= 9:
            raise ConfigurationError(f"compress_level must be 0..9, got {self.compress_level}")
        return self


@dataclass
class TopKConfig:
    """Configuration for top-K selection.

    Attributes:
        k (int): Number of entries to keep. Zero or negative yields an empty result.
        order (Optional[int]): Restrict to unigrams (1) or bigrams (2); None keeps both
        min_token_length (int): Every token of an entry must have at least this many characters
        exclude_tokens (Tuple[str, ...]): Entries containing any of these tokens are skipped
        min_article_count (int): Entries must occur in more than this many articles
    """

    k: int
    order: Optional[int] = 1
    min_token_length: int = 1
    exclude_tokens: Tuple[str, ...] = (OUT_OF_VOCABULARY_TOKEN,)
    min_article_count: int = 0

    def validate(self) -> "TopKConfig":
        if self.order is not None and self.order not in (1, 2):
            raise ConfigurationError(f"order must be 1, 2 or None, got {self.order}")
        if self.min_token_length < 0:
            raise ConfigurationError(
                f"min_token_length must be non-negative, got {self.min_token_length}"
            )
        if self.min_article_count < 0:
            raise ConfigurationError(
                f"min_article_count must be non-negative, got {self.min_article_count}"
            )
        return self


@dataclass
class SplitConfig:
    """Configuration for splitting a dump into shard files."""

    pieces: int = 12
    seed: int = 42
    progress_every: int = 10000

    def validate(self) -> "SplitConfig":
        if not 1 <= self.pieces <= MAX_SPLIT_PIECES:
            raise ConfigurationError(
                f"pieces must be between 1 and {MAX_SPLIT_PIECES}, got {self.pieces}"
            )
        return self


@dataclass
class PipelineConfig:
    """Configuration for a full create-frequencies run.

    Attributes:
        input_dir (str): Directory of split files, one shard per file
        output_file (str): Name of the frequencies file, written gzip-compressed
        language (str): ISO 639-1 language code passed to the tokenizer
        dictionary_path (Optional[str]): Word list; tokens outside it become ``<unk>``
        num_workers (Optional[int]): Worker processes; None means one less than the CPU count
        memory_limit_bytes (int): Per-shard spill threshold
        spill_dir (Optional[str]): Parent directory for the run's spill files
        min_article_tokens (int): Articles with fewer words are filtered out
        min_article_count (int): Tokens must occur in more articles than this to be written
        max_open_files (int): Merge fan-in
        keep_merged (bool): Keep the merged counts file next to the frequencies file
        top_k (Optional[int]): Also write the top K words of the run
        progress_every (int): Log progress every N articles per shard
    """

    input_dir: str
    output_file: str
    language: str = "en"
    dictionary_path: Optional[str] = None
    num_workers: Optional[int] = None
    memory_limit_bytes: int = DEFAULT_MEMORY_LIMIT_BYTES
    spill_dir: Optional[str] = None
    min_article_tokens: int = 0
    min_article_count: int = 0
    max_open_files: int = DEFAULT_MAX_OPEN_FILES
    keep_merged: bool = True
    top_k: Optional[int] = None
    min_token_length: int = 1
    progress_every: int = 10000
    exclude_tokens: Tuple[str, ...] = field(default=(OUT_OF_VOCABULARY_TOKEN,))

    def validate(self) -> "PipelineConfig":
        if not os.path.isdir(self.input_dir):
            raise ConfigurationError(f"Input directory does not exist: {self.input_dir}")
        if not self.output_file:
            raise ConfigurationError("output_file must not be empty")
        if self.num_workers is not None and self.num_workers < 1:
            raise ConfigurationError(f"num_workers must be at least 1, got {self.num_workers}")
        if self.min_article_tokens < 0:
            raise ConfigurationError(
                f"min_article_tokens must be non-negative, got {self.min_article_tokens}"
            )
        self.aggregator_config().validate()
        self.merge_config().validate()
        self.frequencies_top_k_config().validate()
        return self

    def resolved_workers(self) -> int:
        if self.num_workers is not None:
            return self.num_workers
        return max((os.cpu_count() or 1) - 1, 1)

    def resolved_spill_parent(self) -> str:
        return self.spill_dir or tempfile.gettempdir()

    def aggregator_config(self, spill_dir: Optional[str] = None) -> AggregatorConfig:
        return AggregatorConfig(memory_limit_bytes=self.memory_limit_bytes, spill_dir=spill_dir)

    def merge_config(self) -> MergeConfig:
        return MergeConfig(max_open_files=self.max_open_files)

    def frequencies_top_k_config(self) -> TopKConfig:
        return TopKConfig(
            k=self.top_k or 0,
            order=1,
            min_token_length=self.min_token_length,
            exclude_tokens=self.exclude_tokens,
            min_article_count=self.min_article_count,
        )
