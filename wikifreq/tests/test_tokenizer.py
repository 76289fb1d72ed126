"""
Unit tests for normalization and tokenization.
"""

import os
import sys

sys.path.append(
    os.path.dirname(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))
)

import pytest

from wikifreq.errors import ConfigurationError, TokenizationError
from wikifreq.tokenizer import (
    Tokenizer,
    load_dictionary,
    normalize_text,
    normalize_word,
    validate_language_code,
)


class TestNormalization:
    """Test suite for text normalization."""

    def test_nfkc(self):
        """Test compatibility characters are folded."""
        assert normalize_text("ﬁne") == "fine"

    def test_normalize_word(self):
        """Test words are lowercased and stripped of surrounding punctuation."""
        assert normalize_word("\"Hello,\"") == "hello"
        assert normalize_word("don't") == "don't"


class TestLanguageCode:
    """Test suite for language code validation."""

    @pytest.mark.parametrize("code", ["en", "pl", "de"])
    def test_valid(self, code):
        """Test two lowercase letters are accepted."""
        assert validate_language_code(code) == code

    @pytest.mark.parametrize("code", ["", "EN", "eng", "e1", None])
    def test_invalid(self, code):
        """Test anything else is rejected."""
        with pytest.raises(ConfigurationError):
            validate_language_code(code)


class TestTokenizer:
    """Test suite for Tokenizer."""

    def test_tokenize(self):
        """Test lowercase tokens with punctuation stripped."""
        assert Tokenizer("en").tokenize("The cat, the DOG.") == ["the", "cat", "the", "dog"]

    def test_drops_pure_punctuation(self):
        """Test tokens that are only punctuation disappear."""
        assert Tokenizer("en")("-- cat ... sat !!") == ["cat", "sat"]

    def test_empty_text(self):
        """Test empty or whitespace-only text yields no tokens."""
        tokenizer = Tokenizer("en")
        assert tokenizer("") == []
        assert tokenizer("  \t ") == []

    def test_deterministic(self):
        """Test the same text always yields the same tokens."""
        text = "Zażółć gęślą jaźń, the cat."
        assert Tokenizer("pl")(text) == Tokenizer("pl")(text)

    def test_dictionary_replaces_unknown(self):
        """Test tokens outside the dictionary become <unk>."""
        tokenizer = Tokenizer("en", {"the", "cat"})
        assert tokenizer("the cat sat") == ["the", "cat", "<unk>"]

    def test_rejects_non_string(self):
        """Test non-string input raises TokenizationError."""
        with pytest.raises(TokenizationError):
            Tokenizer("en").tokenize(b"bytes")

    def test_rejects_nul(self):
        """Test NUL characters raise TokenizationError."""
        with pytest.raises(TokenizationError):
            Tokenizer("en").tokenize("the\x00cat")

    def test_invalid_language(self):
        """Test construction validates the language code."""
        with pytest.raises(ConfigurationError):
            Tokenizer("english")


class TestDictionary:
    """Test suite for dictionary loading."""

    def test_load(self, tmp_path):
        """Test comments and blanks are skipped and words normalized."""
        path = tmp_path / "words.txt"
        path.write_text("# comment\nThe\n\ncat,\nsat\n", encoding="utf-8")
        assert load_dictionary(str(path)) == frozenset({"the", "cat", "sat"})

    def test_from_dictionary_file(self, tmp_path):
        """Test the tokenizer can be built straight from a word list."""
        path = tmp_path / "words.txt"
        path.write_text("cat\n", encoding="utf-8")
        tokenizer = Tokenizer.from_dictionary_file("en", str(path))
        assert tokenizer("cat dog") == ["cat", "<unk>"]

    def test_missing_file(self, tmp_path):
        """Test an unreadable dictionary is a configuration error."""
        with pytest.raises(ConfigurationError):
            load_dictionary(str(tmp_path / "missing.txt"))

    def test_empty_file(self, tmp_path):
        """Test a dictionary without words is a configuration error."""
        path = tmp_path / "empty.txt"
        path.write_text("# nothing here\n\n", encoding="utf-8")
        with pytest.raises(ConfigurationError):
            load_dictionary(str(path))
