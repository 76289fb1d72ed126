"""
Error taxonomy for the frequency pipeline.

Input errors (an article that cannot be tokenized) are recovered at the shard
boundary and only show up as counters. Resource errors (spill files that cannot
be written or read back) and configuration errors are fatal and abort the run.
"""

from typing import Optional


class WikiFreqError(Exception):
    """Base class for all errors raised by wikifreq."""


class ConfigurationError(WikiFreqError):
    """A configuration value cannot produce a valid run."""


class TokenizationError(WikiFreqError):
    """An article could not be turned into a token sequence."""


class SpillWriteError(WikiFreqError):
    """A spill file could not be written to stable storage."""

    def __init__(self, shard_index: int, sequence: int, path: str, reason: str):
        self.shard_index = shard_index
        self.sequence = sequence
        self.path = path
        self.reason = reason
        super().__init__(
            f"Failed to write spill {sequence} of shard {shard_index} to {path}: {reason}"
        )

    def __reduce__(self):
        return (type(self), (self.shard_index, self.sequence, self.path, self.reason))


class SpillIntegrityError(WikiFreqError):
    """A spill file is unreadable, malformed, unsorted or holds duplicate keys."""

    def __init__(
        self,
        identity: str,
        path: str,
        reason: str,
        line_number: Optional[int] = None,
    ):
        self.identity = identity
        self.path = path
        self.reason = reason
        self.line_number = line_number
        location = f"{path}:{line_number}" if line_number is not None else path
        super().__init__(f"Integrity check failed for {identity} ({location}): {reason}")

    def __reduce__(self):
        return (type(self), (self.identity, self.path, self.reason, self.line_number))


class PipelineError(WikiFreqError):
    """A fatal error that aborted a run, tagged with the failing stage."""

    def __init__(self, stage: str, component: str, cause: BaseException):
        self.stage = stage
        self.component = component
        self.cause = cause
        super().__init__(f"{stage} failed in {component}: {cause}")

    def __reduce__(self):
        return (type(self), (self.stage, self.component, self.cause))
