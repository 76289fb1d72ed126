"""
Command line interface for word frequency counting over Wikipedia dumps.

Examples:
  wikifreq split --input-path enwiki-cirrussearch-content.json.gz --output-dir ./pieces
  wikifreq create-frequencies --input-dir ./pieces --output-file en.arpa --language en
  wikifreq create-frequencies -d ./pieces -o en.arpa -l en --dictionary en.txt --memory-limit-mb 512
  wikifreq top-k-words --input-file ./pieces/en.arpa.gz --output-file top.txt -k 10000
"""

import argparse
import logging
import os
import sys

from .arpa import read_arpa_unigrams
from .configs import MAX_SPLIT_PIECES, PipelineConfig, SplitConfig, TopKConfig
from .corpus import split_corpus
from .errors import ConfigurationError, PipelineError, WikiFreqError
from .pipeline import run_pipeline
from .spill import SpillFile, read_spill
from .topk import select_top_k, write_top_k

logger = logging.getLogger(__name__)

MAX_NUMBER_OF_WORDS = 100000


def _bounded_int(name: str, minimum: int, maximum: int = None):
    def parse(value: str) -> int:
        try:
            number = int(value)
        except ValueError:
            raise argparse.ArgumentTypeError(f"{name} is not a valid integer: {value!r}")
        if number < minimum:
            raise argparse.ArgumentTypeError(f"{name} must be at least {minimum}, got {number}")
        if maximum is not None and number > maximum:
            raise argparse.ArgumentTypeError(f"{name} must be at most {maximum}, got {number}")
        return number

    return parse


def _existing_file(value: str) -> str:
    if not os.path.isfile(value):
        raise argparse.ArgumentTypeError("Input filepath does not exist or isn't a file.")
    return value


def _existing_dir(value: str) -> str:
    if not os.path.isdir(value):
        raise argparse.ArgumentTypeError("Input path doesn't exist or isn't a directory.")
    return value


def parse_arguments(argv=None):
    """Parse command line arguments for the wikifreq sub-commands."""
    parser = argparse.ArgumentParser(
        prog="wikifreq",
        description="Word frequency counter using Wikipedia dataset dumps.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__.split("Examples:", 1)[1] if __doc__ else None,
    )
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging verbosity (default: INFO)",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    split = subparsers.add_parser("split", help="Split a cirrussearch JSON GZ file into pieces")
    split.add_argument(
        "-p",
        "--input-path",
        required=True,
        type=_existing_file,
        metavar="FILE",
        help="Path to cirrussearch JSON GZ file, download from "
        "https://dumps.wikimedia.org/other/cirrussearch/",
    )
    split.add_argument(
        "-o",
        "--output-dir",
        required=True,
        metavar="DIR",
        help="Output directory for split files. Will be deleted if exists.",
    )
    split.add_argument(
        "-s",
        "--pieces",
        type=_bounded_int("Pieces", 1, MAX_SPLIT_PIECES),
        default=12,
        metavar="POSITIVE INTEGER",
        help="How many pieces to split the input file into (default: 12)",
    )
    split.add_argument("--seed", type=int, default=42, help="Seed for piece assignment (default: 42)")

    create = subparsers.add_parser(
        "create-frequencies",
        help="Create a frequencies file from line-delimited files of articles",
    )
    create.add_argument(
        "-d",
        "--input-dir",
        required=True,
        type=_existing_dir,
        metavar="DIR",
        help="Directory full of split files. The frequencies file is written here.",
    )
    create.add_argument(
        "-o",
        "--output-file",
        required=True,
        metavar="FILE",
        help="Name of output ARPA file. Will be GZIP compressed and have .gz appended.",
    )
    create.add_argument(
        "-l",
        "--language",
        required=True,
        metavar="ISO 639-1 CODE",
        help="Two-character language code, e.g. en, pl",
    )
    create.add_argument(
        "--dictionary",
        metavar="FILE",
        type=_existing_file,
        help="Word list; tokens not in it are counted as <unk>",
    )
    create.add_argument(
        "--num-workers",
        type=_bounded_int("Number of workers", 1),
        default=None,
        help="Worker processes (default: CPU cores minus one)",
    )
    create.add_argument(
        "--memory-limit-mb",
        type=_bounded_int("Memory limit", 1),
        default=256,
        help="Per-shard in-memory table budget before spilling to disk (default: 256)",
    )
    create.add_argument("--spill-dir", metavar="DIR", help="Parent directory for spill files")
    create.add_argument(
        "--min-article-tokens",
        type=_bounded_int("Minimum article tokens", 0),
        default=0,
        help="Skip articles with fewer words than this (default: 0, keep all)",
    )
    create.add_argument(
        "--min-article-count",
        type=_bounded_int("Minimum article count", 0),
        default=0,
        help="Only write words that occur in more than this many articles (default: 0)",
    )
    create.add_argument(
        "--max-open-files",
        type=_bounded_int("Max open files", 2),
        default=512,
        help="Merge fan-in; more spill files are merged in passes (default: 512)",
    )
    create.add_argument(
        "--top-k",
        type=_bounded_int("Top K", 1, MAX_NUMBER_OF_WORDS),
        default=None,
        help="Also write the top K words of the run",
    )
    create.add_argument(
        "--discard-merged",
        action="store_true",
        help="Delete the merged counts file after writing the frequencies file",
    )

    top_k = subparsers.add_parser(
        "top-k-words",
        help="Create a file with the top K words (unigrams) in a frequencies file",
    )
    top_k.add_argument(
        "-f",
        "--input-file",
        required=True,
        type=_existing_file,
        metavar="FILE",
        help="GZIP-compressed frequencies file as produced by 'create-frequencies', "
        "or its .counts.tsv.gz merged counts file",
    )
    top_k.add_argument(
        "-o",
        "--output-file",
        required=True,
        metavar="FILE",
        help="Name of output file to put top K words. Will not be compressed.",
    )
    top_k.add_argument(
        "-k",
        "--number-of-words",
        type=_bounded_int("Number of words", 1, MAX_NUMBER_OF_WORDS),
        default=10000,
        metavar="POSITIVE INTEGER",
        help="Number of words to return, starting with most frequent (default: 10000)",
    )
    top_k.add_argument(
        "-m",
        "--minimum-word-length",
        type=_bounded_int("Minimum word length", 1),
        default=3,
        metavar="POSITIVE INTEGER",
        help="Minimum (inclusive) length of word to consider (default: 3)",
    )
    top_k.add_argument(
        "--with-counts",
        action="store_true",
        help="Write 'word<TAB>count' lines instead of bare words",
    )

    return parser.parse_args(argv)


def handle_split(args) -> int:
    report = split_corpus(args.input_path, args.output_dir, SplitConfig(pieces=args.pieces, seed=args.seed))
    print(f"Wrote {report.articles:,} articles to {len(report.output_files)} pieces in {args.output_dir}")
    if report.malformed_documents:
        print(f"Skipped {report.malformed_documents:,} malformed documents")
    return 0


def handle_create_frequencies(args) -> int:
    config = PipelineConfig(
        input_dir=args.input_dir,
        output_file=args.output_file,
        language=args.language,
        dictionary_path=args.dictionary,
        num_workers=args.num_workers,
        memory_limit_bytes=args.memory_limit_mb * 1024 * 1024,
        spill_dir=args.spill_dir,
        min_article_tokens=args.min_article_tokens,
        min_article_count=args.min_article_count,
        max_open_files=args.max_open_files,
        keep_merged=not args.discard_merged,
        top_k=args.top_k,
    )
    report = run_pipeline(config)
    print("\n".join(report.lines()))
    return 0


def handle_top_k_words(args) -> int:
    if args.input_file.endswith(".counts.tsv.gz"):
        records = read_spill(SpillFile(path=args.input_file, shard_index=0, sequence=0, label="merged stream"))
    else:
        records = read_arpa_unigrams(args.input_file)
    config = TopKConfig(k=args.number_of_words, order=1, min_token_length=args.minimum_word_length)
    top = select_top_k(records, config)
    write_top_k(top, args.output_file, with_counts=args.with_counts)
    print(f"Wrote {len(top):,} words to {args.output_file}")
    return 0


HANDLERS = {
    "split": handle_split,
    "create-frequencies": handle_create_frequencies,
    "top-k-words": handle_top_k_words,
}


def main(argv=None) -> int:
    args = parse_arguments(argv)
    logging.basicConfig(
        level=getattr(logging, args.log_level), format="%(asctime)s - %(levelname)s - %(message)s"
    )
    try:
        return HANDLERS[args.command](args)
    except ConfigurationError as e:
        logger.error(f"Configuration error: {e}")
        return 2
    except PipelineError as e:
        logger.error(f"Run failed during {e.stage} in {e.component}: {e.cause}")
        return 1
    except WikiFreqError as e:
        logger.error(str(e))
        return 1


if __name__ == "__main__":
    sys.exit(main())
