"""
File builders shared by the test modules.
"""

import gzip
import json

from wikifreq.records import CountRecord


def write_split_file(path, articles):
    """Write articles one per line to a gzip split file."""
    with gzip.open(path, "wt", encoding="utf-8") as f:
        for article in articles:
            f.write(article + "\n")
    return str(path)


def write_dump(path, documents):
    """Write a cirrussearch-style JSON lines dump, gzip-compressed."""
    with gzip.open(path, "wt", encoding="utf-8") as f:
        for document in documents:
            f.write((document if isinstance(document, str) else json.dumps(document)) + "\n")
    return str(path)


def records_of(pairs):
    """Build sorted CountRecords from ``{"a b": (count, articles)}``."""
    records = [
        CountRecord(tuple(key.split(" ")), count, articles) for key, (count, articles) in pairs.items()
    ]
    return sorted(records, key=lambda record: record.ngram)


def as_table(records):
    """``{ngram: (count, articles)}`` view of a record stream."""
    return {record.ngram: (record.count, record.articles) for record in records}
