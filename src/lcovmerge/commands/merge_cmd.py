"""
lcovmerge.commands.merge_cmd - Merge trace files.

Resolves the checksum policy from configuration and flags, merges every
input and writes the result. Nothing is written unless every input merges.
"""

from __future__ import annotations

import argparse
import sys
from pathlib import Path

from lcovmerge.config import load_config
from lcovmerge.merge import MergeSession
from lcovmerge.trace import MergeConfig, TraceError


def resolve_merge_config(args: argparse.Namespace) -> tuple[MergeConfig, Path | None]:
    """Combine the config file and command-line flags.

    Returns:
        The checksum policy and the output path (None for stdout)
    """
    config = load_config(getattr(args, "config", None))
    merge_config = MergeConfig.from_dict(config.section("merge"))

    if getattr(args, "discard_checksums", None) is not None:
        merge_config.discard_checksums = args.discard_checksums
    if getattr(args, "generate_checksums", None) is not None:
        merge_config.generate_checksums = args.generate_checksums

    output = getattr(args, "output_file", None)
    if output is None and config.get("output.file"):
        output = Path(config.get("output.file"))
    return merge_config, output


def run(args: argparse.Namespace) -> int:
    """Run the merge command."""
    inputs = list(getattr(args, "inputs", None) or [])
    if not inputs:
        print("lcovmerge: no input files", file=sys.stderr)
        return 1

    merge_config, output = resolve_merge_config(args)
    session = MergeSession(merge_config)
    try:
        session.add_all(str(p) for p in inputs)
    except TraceError as e:
        print(e, file=sys.stderr)
        return 1

    text = session.export_text()
    if output is None:
        # Bytes that were not valid UTF-8 in the input go out unchanged.
        sys.stdout.flush()
        sys.stdout.buffer.write(text.encode("utf-8", errors="surrogateescape"))
        sys.stdout.buffer.flush()
    else:
        try:
            with open(output, "w", encoding="utf-8", errors="surrogateescape", newline="\n") as f:
                f.write(text)
        except OSError as e:
            print(f"lcovmerge: failed to write {output}: {e.strerror or e}", file=sys.stderr)
            output.unlink(missing_ok=True)
            return 1

    if not getattr(args, "quiet", False):
        files = sum(len(t.files) for t in session.tests.values())
        print(
            f"Merged {len(inputs)} input(s): {len(session.tests)} test(s), {files} file record(s)",
            file=sys.stderr,
        )
    return 0
