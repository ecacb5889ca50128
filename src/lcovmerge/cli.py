"""
lcovmerge.cli - Command-line interface.

Main entry point for the lcovmerge CLI tool.
"""

import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional

from lcovmerge import __version__
from lcovmerge.commands import merge_cmd


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser."""
    parser = argparse.ArgumentParser(
        prog="lcovmerge",
        description="Merge LCOV coverage traces into a single trace",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  lcovmerge a.info b.info               # Merge to stdout, validating checksums
  lcovmerge -o all.info shard*.info     # Merge into a file
  lcovmerge -d a.info b.info            # Ignore checksums, skip source reads
  lcovmerge -g a.info                   # Attach a checksum to every DA record
  lcovmerge -d -g a.info                # Replace input checksums with fresh ones

Configuration:
  Defaults can be set in .lcovmerge.toml:

    [merge]
    discard_checksums = false
    generate_checksums = true

  or with LCOVMERGE_MERGE_GENERATE_CHECKSUMS=true and friends.
        """,
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"lcovmerge {__version__}",
    )
    parser.add_argument(
        "inputs",
        nargs="*",
        metavar="INPUT",
        help="Trace files to merge",
    )
    parser.add_argument(
        "-d",
        "--discard-checksum",
        dest="discard_checksums",
        action="store_true",
        default=None,
        help="Discard and ignore line checksums; checksums are no longer validated",
    )
    parser.add_argument(
        "-g",
        "--generate-checksum",
        dest="generate_checksums",
        action="store_true",
        default=None,
        help="Generate a checksum for each line record. With -d, checksums "
        "from the inputs are ignored and replaced by generated ones",
    )
    parser.add_argument(
        "-o",
        "--output-file",
        type=Path,
        help="Write the merged trace to FILE instead of stdout",
        metavar="FILE",
    )
    parser.add_argument(
        "--config",
        type=Path,
        help="Path to configuration file",
        metavar="PATH",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Verbose output",
    )
    parser.add_argument(
        "-q",
        "--quiet",
        action="store_true",
        help="Suppress non-error output",
    )

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """
    Main entry point for the CLI.

    Args:
        argv: Command line arguments (defaults to sys.argv[1:])

    Returns:
        Exit code (0 for success, non-zero for failure)
    """
    parser = create_parser()

    # Enable shell tab-completion if argcomplete is installed
    # Install with: pip install lcovmerge[completion]
    try:
        import argcomplete

        argcomplete.autocomplete(parser)
    except ImportError:
        pass

    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )

    try:
        return merge_cmd.run(args)
    except KeyboardInterrupt:
        print("\nOperation cancelled.", file=sys.stderr)
        return 130
    except Exception as e:
        if args.verbose:
            raise
        print(f"Error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
