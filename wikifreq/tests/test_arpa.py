"""
Unit tests for the frequencies file.
"""

import gzip
import os
import sys

sys.path.append(
    os.path.dirname(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))
)

import pytest

from wikifreq.arpa import read_arpa_unigrams, write_frequencies
from wikifreq.errors import WikiFreqError
from wikifreq.records import CountRecord
from wikifreq.tests.helpers import records_of

RECORDS = records_of(
    {
        "cat": (5, 3),
        "sat": (2, 2),
        "the": (4, 3),
        "cat sat": (1, 1),
        "the cat": (2, 2),
        "zebra": (1, 1),
        "the zebra": (1, 1),
    }
)


def _read(path):
    with gzip.open(path, "rt", encoding="utf-8") as f:
        return f.read()


class TestWriteFrequencies:
    """Test suite for write_frequencies."""

    def test_format(self, tmp_path):
        """Test header, sections and terminator."""
        path = str(tmp_path / "en.arpa.gz")
        summary = write_frequencies(lambda: iter(RECORDS), path)
        assert summary.total_unigrams == 12
        assert _read(path) == (
            "\\data\\\n"
            "total unigrams = 12\n"
            "ngram 1 = 4\n"
            "ngram 2 = 3\n"
            "\n\\1-grams:\n"
            "5\tcat\n"
            "2\tsat\n"
            "4\tthe\n"
            "1\tzebra\n"
            "\n\\2-grams:\n"
            "1\tcat\tsat\n"
            "2\tthe\tcat\n"
            "1\tthe\tzebra\n"
            "\n\\end\\\n"
        )

    def test_min_article_count(self, tmp_path):
        """Test rare tokens and the bigrams containing them are dropped."""
        path = str(tmp_path / "en.arpa.gz")
        summary = write_frequencies(lambda: iter(RECORDS), path, min_article_count=2)
        content = _read(path)
        assert summary.unigrams_written == 2
        assert summary.bigrams_written == 1
        assert "total unigrams = 12\n" in content
        assert "2\tthe\tcat\n" in content
        assert "\tsat\n" not in content
        assert "zebra" not in content

    def test_empty_stream(self, tmp_path):
        """Test an empty corpus still yields a well-formed file."""
        path = str(tmp_path / "empty.arpa.gz")
        write_frequencies(lambda: iter([]), path)
        assert "ngram 1 = 0\n" in _read(path)
        assert list(read_arpa_unigrams(path)) == []

    def test_no_partial_file_left(self, tmp_path):
        """Test only the final file remains."""
        path = str(tmp_path / "en.arpa.gz")
        write_frequencies(lambda: iter(RECORDS), path)
        assert os.listdir(tmp_path) == ["en.arpa.gz"]


class TestReadArpaUnigrams:
    """Test suite for read_arpa_unigrams."""

    def test_read_back(self, tmp_path):
        """Test the unigram section is streamed as records."""
        path = str(tmp_path / "en.arpa.gz")
        write_frequencies(lambda: iter(RECORDS), path)
        assert list(read_arpa_unigrams(path)) == [
            CountRecord(("cat",), 5),
            CountRecord(("sat",), 2),
            CountRecord(("the",), 4),
            CountRecord(("zebra",), 1),
        ]

    def test_malformed(self, tmp_path):
        """Test a broken unigram line is reported."""
        path = str(tmp_path / "bad.arpa.gz")
        with gzip.open(path, "wt", encoding="utf-8") as f:
            f.write("\\data\\\n\n\\1-grams:\nfive\tcat\n")
        with pytest.raises(WikiFreqError):
            list(read_arpa_unigrams(path))
