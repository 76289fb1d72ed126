"""
End-to-end tests for the command line interface.
"""

import os
import sys

sys.path.append(
    os.path.dirname(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))
)

import pytest

from wikifreq.cli import main, parse_arguments
from wikifreq.tests.helpers import write_dump


def _read(path):
    with open(path, encoding="utf-8") as f:
        return f.read()


class TestParseArguments:
    """Test suite for argument parsing."""

    def test_defaults(self, tmp_path):
        """Test default values of the top-k-words command."""
        source = tmp_path / "en.arpa.gz"
        source.write_bytes(b"")
        args = parse_arguments(["top-k-words", "-f", str(source), "-o", "top.txt"])
        assert args.number_of_words == 10000
        assert args.minimum_word_length == 3
        assert not args.with_counts

    @pytest.mark.parametrize("pieces", ["0", "1025", "many"])
    def test_split_pieces_bounds(self, tmp_path, pieces):
        """Test pieces must be an integer in 1..1024."""
        dump = write_dump(tmp_path / "dump.json.gz", [])
        with pytest.raises(SystemExit):
            parse_arguments(["split", "-p", dump, "-o", str(tmp_path / "out"), "-s", pieces])

    @pytest.mark.parametrize("k", ["0", "100001"])
    def test_number_of_words_bounds(self, tmp_path, k):
        """Test K must be in 1..100000."""
        source = tmp_path / "en.arpa.gz"
        source.write_bytes(b"")
        with pytest.raises(SystemExit):
            parse_arguments(["top-k-words", "-f", str(source), "-o", "top.txt", "-k", k])

    def test_missing_input_file(self, tmp_path):
        """Test a missing input file is rejected."""
        with pytest.raises(SystemExit):
            parse_arguments(["split", "-p", str(tmp_path / "nope.gz"), "-o", str(tmp_path)])

    def test_command_required(self):
        """Test a sub-command is required."""
        with pytest.raises(SystemExit):
            parse_arguments([])


class TestCommands:
    """Test suite for the split, create-frequencies and top-k-words commands."""

    def _run_all(self, tmp_path):
        documents = [
            {"index": {"_id": "1"}},
            {"text": "The cat sat."},
            {"index": {"_id": "2"}},
            {"text": "the dog sat on the mat"},
            {"text": "A cat, a dog!"},
            {"text": "cat cat cat"},
            {"text": "the end"},
        ]
        dump = write_dump(tmp_path / "enwiki-cirrussearch-content.json.gz", documents)
        pieces = str(tmp_path / "pieces")
        assert main(["split", "-p", dump, "-o", pieces, "-s", "3"]) == 0
        assert (
            main(
                [
                    "create-frequencies",
                    "-d", pieces,
                    "-o", "en.arpa",
                    "-l", "en",
                    "--num-workers", "1",
                    "--spill-dir", str(tmp_path / "spills"),
                ]
            )
            == 0
        )
        return pieces

    def test_split_create_top_k(self, tmp_path):
        """Test the three commands chained over a small dump."""
        pieces = self._run_all(tmp_path)
        frequencies = os.path.join(pieces, "en.arpa.gz")
        assert os.path.exists(frequencies)

        output = str(tmp_path / "top.txt")
        assert main(["top-k-words", "-f", frequencies, "-o", output, "-k", "2"]) == 0
        assert _read(output) == "cat\nthe\n"

    def test_top_k_from_merged_counts(self, tmp_path):
        """Test top-k-words also reads the merged counts file."""
        pieces = self._run_all(tmp_path)
        merged = os.path.join(pieces, "en.arpa.counts.tsv.gz")
        output = str(tmp_path / "top.txt")
        assert main(["top-k-words", "-f", merged, "-o", output, "-k", "3", "-m", "1", "--with-counts"]) == 0
        assert _read(output) == "cat\t5\nthe\t4\na\t2\n"

    def test_invalid_language_exit_code(self, tmp_path, corpus_dir):
        """Test configuration errors exit with status 2."""
        code = main(["create-frequencies", "-d", str(corpus_dir), "-o", "x.arpa", "-l", "english"])
        assert code == 2

    def test_pipeline_failure_exit_code(self, tmp_path, corpus_dir):
        """Test a failed run exits with status 1."""
        (corpus_dir / "wiki.split.009.gz").write_bytes(b"not gzip")
        code = main(
            [
                "create-frequencies",
                "-d", str(corpus_dir),
                "-o", "x.arpa",
                "-l", "en",
                "--num-workers", "1",
                "--spill-dir", str(tmp_path / "spills"),
            ]
        )
        assert code == 1
        assert not os.path.exists(corpus_dir / "x.arpa.gz")
