"""
Article normalization and tokenization.

Turns raw article text into the ordered, lowercase token sequence the shard
aggregator counts. Tokenization is a pure function of (text, language,
dictionary): the same input always produces the same tokens.
"""

import logging
import re
import string
import unicodedata
from pathlib import Path
from typing import FrozenSet, Iterable, List, Optional

from .configs import OUT_OF_VOCABULARY_TOKEN
from .errors import ConfigurationError, TokenizationError

logger = logging.getLogger(__name__)

PUNCTUATION = string.punctuation + string.whitespace
LANGUAGE_CODE = re.compile(r"^[a-z]{2}$")


def normalize_text(text: str) -> str:
    """NFKC-normalize text, the same normalization the splitter applies."""
    return unicodedata.normalize("NFKC", text)


def normalize_word(word: str) -> str:
    """Lowercase a word and strip ASCII punctuation from both ends."""
    return normalize_text(word).lower().strip(PUNCTUATION)


def validate_language_code(language: str) -> str:
    if not LANGUAGE_CODE.match(language or ""):
        raise ConfigurationError(
            f"Unsupported language code {language!r}, expected an ISO 639-1 code such as 'en' or 'pl'"
        )
    return language


def load_dictionary(path: str) -> FrozenSet[str]:
    """
    Load a word list into a set of normalized words.

    One word per line; lines starting with ``#`` are comments and blank lines
    are ignored. Each word goes through the same normalization as article
    tokens so lookups agree with the tokenizer.

    Raises:
        ConfigurationError: if the file cannot be read or holds no words.
    """
    try:
        with open(path, "r", encoding="utf-8") as f:
            lines = f.read().splitlines()
    except OSError as e:
        raise ConfigurationError(f"Cannot read dictionary {path}: {e}") from e

    words = set()
    for line in lines:
        if line.startswith("#"):
            continue
        word = normalize_word(line)
        if word:
            words.add(word)

    if not words:
        raise ConfigurationError(f"Dictionary {path} contains no words")
    logger.info(f"Loaded {len(words):,} dictionary words from {Path(path).name}")
    return frozenset(words)


class Tokenizer:
    """
    Splits normalized article text into lowercase word tokens.

    Args:
        language: ISO 639-1 code of the corpus language
        dictionary: Known words. When given, every other token is replaced by
            the out-of-vocabulary token ``<unk>``.

    Example:
        >>> Tokenizer("en").tokenize("The cat, the DOG.")
        ['the', 'cat', 'the', 'dog']
    """

    def __init__(self, language: str = "en", dictionary: Optional[Iterable[str]] = None):
        self.language = validate_language_code(language)
        self.dictionary = frozenset(dictionary) if dictionary is not None else None

    @classmethod
    def from_dictionary_file(cls, language: str, dictionary_path: Optional[str]) -> "Tokenizer":
        dictionary = load_dictionary(dictionary_path) if dictionary_path else None
        return cls(language, dictionary)

    def tokenize(self, text: str) -> List[str]:
        if not isinstance(text, str):
            raise TokenizationError(f"article text must be str, got {type(text).__name__}")
        if "\x00" in text:
            raise TokenizationError("article text contains NUL characters")

        tokens = []
        for word in normalize_text(text).lower().split():
            token = word.strip(PUNCTUATION)
            if not token:
                continue
            if self.dictionary is not None and token not in self.dictionary:
                token = OUT_OF_VOCABULARY_TOKEN
            tokens.append(token)
        return tokens

    __call__ = tokenize
