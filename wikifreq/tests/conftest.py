"""
Shared fixtures for wikifreq tests.
"""

import os
import sys

sys.path.append(
    os.path.dirname(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))
)

import pytest

from wikifreq.spill import SpillDirectory
from wikifreq.tests.helpers import write_split_file


@pytest.fixture
def spill_directory(tmp_path):
    return SpillDirectory(str(tmp_path / "spill"))


@pytest.fixture
def corpus_dir(tmp_path):
    """Three small split files with overlapping vocabulary."""
    directory = tmp_path / "pieces"
    directory.mkdir()
    write_split_file(directory / "wiki.split.000.gz", ["The cat sat.", "the dog sat on the mat"])
    write_split_file(directory / "wiki.split.001.gz", ["A cat, a dog!", "cat cat cat"])
    write_split_file(directory / "wiki.split.002.gz", ["the end"])
    return directory
