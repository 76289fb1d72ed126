#!/usr/bin/env python3
"""
Test runner for the wikifreq package.

Runs each test suite as its own pytest process plus a smoke run of the
command line interface, and prints a summary. Can be used locally or in CI
environments.

Usage:
    python run_all_tests.py                  # Run all suites
    python run_all_tests.py --module merge   # Run one suite
    python run_all_tests.py --quiet          # Only report failures
"""

import subprocess
import sys
import time

TEST_SUITES = {
    "records": ("wikifreq/tests/test_records.py", "Record types and spill line codec"),
    "tokenizer": ("wikifreq/tests/test_tokenizer.py", "Normalization and tokenization"),
    "spill": ("wikifreq/tests/test_spill.py", "Spill writing and integrity checks"),
    "aggregator": ("wikifreq/tests/test_aggregator.py", "Shard aggregator and spilling"),
    "merge": ("wikifreq/tests/test_merge.py", "K-way merge and multi-pass fan-in"),
    "topk": ("wikifreq/tests/test_topk.py", "Top-K selection and tie breaking"),
    "corpus": ("wikifreq/tests/test_corpus.py", "Dump splitting and article sources"),
    "arpa": ("wikifreq/tests/test_arpa.py", "Frequencies file format"),
    "configs": ("wikifreq/tests/test_configs.py", "Configuration and error types"),
    "pipeline": ("wikifreq/tests/test_pipeline.py", "Full create-frequencies runs"),
    "cli": ("wikifreq/tests/test_cli.py", "Command line interface"),
}


class TestRunner:
    """Orchestrates running all tests with proper reporting."""

    def __init__(self, verbose=True):
        self.verbose = verbose
        self.results = {}

    def log(self, message, level="INFO"):
        """Log message with timestamp."""
        if self.verbose or level != "INFO":
            timestamp = time.strftime("%H:%M:%S")
            print(f"[{timestamp}] {level}: {message}")

    def run_command(self, command, description=""):
        """Run a command and capture output."""
        self.log(f"Running: {description or ' '.join(command)}")

        try:
            result = subprocess.run(
                command,
                capture_output=True,
                text=True,
                timeout=300,  # 5 minute timeout
            )
        except subprocess.TimeoutExpired:
            self.log(f"⏰ {description} - TIMEOUT", "ERROR")
            return False, "Command timed out"

        if result.returncode == 0:
            self.log(f"✅ {description} - PASSED")
            return True, result.stdout

        self.log(f"❌ {description} - FAILED", "ERROR")
        self.log(f"STDOUT: {result.stdout}", "ERROR")
        self.log(f"STDERR: {result.stderr}", "ERROR")
        return False, result.stderr

    def run_suite(self, name):
        path, description = TEST_SUITES[name]
        success, _ = self.run_command(
            [sys.executable, "-m", "pytest", path, "-v", "--tb=short"], description=description
        )
        self.results[name] = success
        return success

    def run_cli_smoke_test(self):
        """Check the command line entry point starts."""
        success, _ = self.run_command(
            [sys.executable, "-m", "wikifreq", "--help"], description="CLI help"
        )
        self.results["cli-smoke"] = success
        return success

    def run_all_tests(self):
        """Run every suite and print a summary."""
        self.log("🚀 Starting test suite...")
        start_time = time.time()

        for name in TEST_SUITES:
            self.log("=" * 60)
            self.run_suite(name)
        self.run_cli_smoke_test()

        elapsed_time = time.time() - start_time
        passed = sum(self.results.values())
        total = len(self.results)

        self.log("=" * 60)
        self.log("TEST SUMMARY")
        self.log("=" * 60)
        for name, result in self.results.items():
            status = "✅ PASSED" if result else "❌ FAILED"
            self.log(f"{name.upper()}: {status}")

        self.log(f"Overall: {passed}/{total} suites passed")
        self.log(f"Execution time: {elapsed_time:.2f} seconds")

        if passed == total:
            self.log("🎉 ALL TESTS PASSED!")
            return True
        self.log("💥 SOME TESTS FAILED!", "ERROR")
        return False


def main():
    """Main entry point."""
    import argparse

    parser = argparse.ArgumentParser(description="Run the wikifreq test suites")
    parser.add_argument("--quiet", "-q", action="store_true", help="Reduce output verbosity")
    parser.add_argument(
        "--module", "-m", choices=sorted(TEST_SUITES), help="Run tests for specific module only"
    )
    args = parser.parse_args()

    runner = TestRunner(verbose=not args.quiet)
    if args.module:
        success = runner.run_suite(args.module)
    else:
        success = runner.run_all_tests()

    sys.exit(0 if success else 1)


if __name__ == "__main__":
    main()
