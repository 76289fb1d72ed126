"""
Exact unigram and bigram frequency counting over Wikipedia dumps.

Each shard of the corpus is counted under a memory budget, spilling sorted
runs to disk when the budget is reached. The spill files of all shards are
k-way merged into one exact count per NGram, from which the frequencies file
and the top-K words are produced.

Classes:
    ShardAggregator: Bounded-memory counter for one shard
    MergeReducer: Combines spill files into the merged stream
    TopKSelector: Bounded heap over the merged stream
"""

from .aggregator import ShardAggregator, ShardResult
from .configs import AggregatorConfig, MergeConfig, PipelineConfig, SplitConfig, TopKConfig
from .errors import (
    ConfigurationError,
    PipelineError,
    SpillIntegrityError,
    SpillWriteError,
    TokenizationError,
    WikiFreqError,
)
from .merge import MergeReducer, merge_records
from .pipeline import RunReport, run_pipeline
from .records import CountRecord, NGram
from .topk import TopKSelector, select_top_k

__version__ = "0.1.0"

__all__ = [
    "AggregatorConfig",
    "ConfigurationError",
    "CountRecord",
    "MergeConfig",
    "MergeReducer",
    "NGram",
    "PipelineConfig",
    "PipelineError",
    "RunReport",
    "ShardAggregator",
    "ShardResult",
    "SpillIntegrityError",
    "SpillWriteError",
    "SplitConfig",
    "TokenizationError",
    "TopKConfig",
    "TopKSelector",
    "WikiFreqError",
    "merge_records",
    "run_pipeline",
    "select_top_k",
]
