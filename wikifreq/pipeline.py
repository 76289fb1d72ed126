"""
Frequency pipeline

Runs a full create-frequencies job over a directory of split files:

1. Aggregate: one ShardAggregator per split file, run sequentially or on a
   multiprocessing pool. Shards share nothing but the spill directory, where
   each writes only its own files.
2. Merge: every spill file of every shard is k-way merged into the merged
   counts file.
3. Write output: the ARPA-style frequencies file, and optionally the top K
   words.

Any fatal error aborts the whole run. The spill directory is always removed,
and on failure so are the output files the run had started writing.
"""

import logging
import os
import time
from dataclasses import dataclass, field
from multiprocessing import Pool
from typing import FrozenSet, List, Optional

from .aggregator import ShardAggregator, ShardResult
from .arpa import write_frequencies
from .configs import AggregatorConfig, PipelineConfig
from .corpus import ArticleSource, discover_split_files
from .errors import ConfigurationError, PipelineError, SpillIntegrityError
from .merge import MergeReducer
from .spill import SpillDirectory, read_spill
from .tokenizer import Tokenizer, load_dictionary, validate_language_code
from .topk import select_top_k, write_top_k

logger = logging.getLogger(__name__)


@dataclass
class ShardTask:
    """Everything a worker process needs to aggregate one shard."""

    shard_index: int
    path: str
    spill_dir: str
    memory_limit_bytes: int
    language: str = "en"
    dictionary: Optional[FrozenSet[str]] = None
    min_article_tokens: int = 0
    progress_every: int = 10000


@dataclass
class RunReport:
    """Summary of a successful run."""

    shards: int = 0
    articles: int = 0
    skipped_articles: int = 0
    filtered_articles: int = 0
    tokens: int = 0
    bigrams: int = 0
    distinct_unigrams: int = 0
    distinct_bigrams: int = 0
    spill_files: int = 0
    merge_passes: int = 0
    peak_rss_mb: float = 0.0
    frequencies_file: Optional[str] = None
    merged_file: Optional[str] = None
    top_k_file: Optional[str] = None
    elapsed_seconds: float = 0.0
    shard_results: List[ShardResult] = field(default_factory=list, repr=False)

    def lines(self) -> List[str]:
        lines = [
            f"Articles processed:  {self.articles:,}",
            f"Articles skipped:    {self.skipped_articles:,}",
            f"Articles filtered:   {self.filtered_articles:,}",
            f"Tokens counted:      {self.tokens:,}",
            f"Bigrams counted:     {self.bigrams:,}",
            f"Distinct unigrams:   {self.distinct_unigrams:,}",
            f"Distinct bigrams:    {self.distinct_bigrams:,}",
            f"Spill files:         {self.spill_files:,} across {self.shards} shards",
            f"Merge passes:        {self.merge_passes}",
            f"Peak worker memory:  {self.peak_rss_mb:.1f} MB",
            f"Frequencies file:    {self.frequencies_file}",
        ]
        if self.merged_file:
            lines.append(f"Merged counts file:  {self.merged_file}")
        if self.top_k_file:
            lines.append(f"Top-K file:          {self.top_k_file}")
        lines.append(f"Elapsed:             {self.elapsed_seconds:.2f} seconds")
        return lines


def aggregate_shard(task: ShardTask) -> ShardResult:
    """Count one shard into spill files. Runs inside a worker process."""
    try:
        tokenizer = Tokenizer(task.language, task.dictionary)
        aggregator = ShardAggregator(
            task.shard_index,
            AggregatorConfig(memory_limit_bytes=task.memory_limit_bytes, spill_dir=task.spill_dir),
            tokenizer=tokenizer,
            spill_directory=SpillDirectory(task.spill_dir),
        )
        source = ArticleSource(task.path, task.min_article_tokens)
        aggregator.count_articles(source, progress_every=task.progress_every)
        aggregator.stats.filtered_articles = source.filtered
        result = aggregator.finish()
    except Exception as e:
        raise PipelineError("aggregate", f"shard {task.shard_index} ({task.path})", e) from e

    stats = result.stats
    logger.info(
        f"Shard {stats.shard_index} done in PID {os.getpid()}: {stats.articles:,} articles, "
        f"{stats.tokens:,} tokens, {stats.spills} spills, {stats.elapsed_seconds:.2f}s"
    )
    return result


def run_shards(tasks: List[ShardTask], num_workers: int) -> List[ShardResult]:
    """Aggregate all shards, in-process when one worker is enough."""
    if num_workers <= 1 or len(tasks) <= 1:
        results = [aggregate_shard(task) for task in tasks]
    else:
        processes = min(num_workers, len(tasks))
        logger.info(f"Aggregating {len(tasks)} shards on {processes} worker processes")
        with Pool(processes=processes) as pool:
            # Unordered so the first failing shard surfaces immediately
            results = list(pool.imap_unordered(aggregate_shard, tasks))
    return sorted(results, key=lambda result: result.shard_index)


def output_paths(config: PipelineConfig):
    """Paths of the frequencies, merged counts and top-K files of a run."""
    frequencies = os.path.join(config.input_dir, config.output_file)
    if not frequencies.endswith(".gz"):
        frequencies += ".gz"
    stem = frequencies[: -len(".gz")]
    merged = f"{stem}.counts.tsv.gz"
    top_k = f"{stem}.top{config.top_k}.txt" if config.top_k else None
    return frequencies, merged, top_k


def _remove_outputs(paths: List[str]):
    """Remove output files written by the current run."""
    for path in paths:
        if os.path.exists(path):
            os.remove(path)
            logger.info(f"Removed partial output {path}")


def run_pipeline(config: PipelineConfig) -> RunReport:
    """
    Run aggregate, merge and write-output for every split file in the input directory.

    Raises:
        ConfigurationError: if the configuration is invalid or there are no split files
        PipelineError: if any stage fails; the run leaves no output files behind
    """
    config.validate()
    start_time = time.time()

    validate_language_code(config.language)
    dictionary = load_dictionary(config.dictionary_path) if config.dictionary_path else None

    shard_paths = discover_split_files(config.input_dir)
    if not shard_paths:
        raise ConfigurationError(f"No split files found in {config.input_dir}")

    frequencies_path, merged_path, top_k_path = output_paths(config)
    spill_directory = SpillDirectory.create(config.resolved_spill_parent())
    logger.info(f"Found {len(shard_paths)} shards, spilling to {spill_directory.base_dir}")

    tasks = [
        ShardTask(
            shard_index=index,
            path=path,
            spill_dir=str(spill_directory.base_dir),
            memory_limit_bytes=config.memory_limit_bytes,
            language=config.language,
            dictionary=dictionary,
            min_article_tokens=config.min_article_tokens,
            progress_every=config.progress_every,
        )
        for index, path in enumerate(shard_paths)
    ]

    report = RunReport(shards=len(tasks))
    created: List[str] = []
    stage, component = "aggregate", "shard pool"
    try:
        results = run_shards(tasks, config.resolved_workers())
        report.shard_results = results
        for result in results:
            stats = result.stats
            report.articles += stats.articles
            report.skipped_articles += stats.skipped_articles
            report.filtered_articles += stats.filtered_articles
            report.tokens += stats.tokens
            report.bigrams += stats.bigrams
            report.spill_files += len(result.spill_files)
            report.peak_rss_mb = max(report.peak_rss_mb, stats.peak_rss_mb)

        stage, component = "merge", "merge-reducer"
        reducer = MergeReducer(config.merge_config(), spill_directory)
        spill_files = [spill_file for result in results for spill_file in result.spill_files]
        merged_file = reducer.merge_to_file(spill_files, merged_path)
        created.append(merged_path)
        report.merge_passes = reducer.stats.passes
        report.distinct_unigrams = reducer.stats.distinct.get(1, 0)
        report.distinct_bigrams = reducer.stats.distinct.get(2, 0)

        stage, component = "write-output", "frequencies writer"
        write_frequencies(lambda: read_spill(merged_file), frequencies_path, config.min_article_count)
        created.append(frequencies_path)
        report.frequencies_file = frequencies_path

        if top_k_path:
            component = "top-k selector"
            top = select_top_k(read_spill(merged_file), config.frequencies_top_k_config())
            report.top_k_file = write_top_k(top, top_k_path)
            created.append(top_k_path)

        if config.keep_merged:
            report.merged_file = merged_path
        else:
            os.remove(merged_path)
            created.remove(merged_path)
    except PipelineError:
        _remove_outputs(created)
        raise
    except SpillIntegrityError as e:
        _remove_outputs(created)
        raise PipelineError(stage, e.identity, e) from e
    except Exception as e:
        _remove_outputs(created)
        raise PipelineError(stage, component, e) from e
    finally:
        spill_directory.cleanup()

    report.elapsed_seconds = time.time() - start_time
    for line in report.lines():
        logger.info(line)
    return report
