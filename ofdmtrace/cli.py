"""
Command line entry point, ``ofdm-trace [--noldpc]``.

Runs the default trace and writes it to ``ofdm_trace_out.txt`` in the
current directory.
"""

import argparse
import sys
from typing import List, Optional

from .config import TraceConfig
from .harness import run_trace
from .io import save_trace
from .logger import logger

DEFAULT_OUTPUT = "ofdm_trace_out.txt"
# the comparison script loads its own arrays under the bare names
EXPORT_SUFFIX = "_c"


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="ofdm-trace",
        description="Simulate OFDM frames through an impaired channel and dump every "
        "intermediate array for comparison against a reference.",
    )
    parser.add_argument(
        "--noldpc",
        action="store_true",
        help="send the payload twice instead of LDPC encoding it",
    )
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    config = TraceConfig(ldpc_enable=not args.noldpc)

    try:
        result = run_trace(config)
    except MemoryError:
        logger.critical("Out of memory")
        return 1

    save_trace(DEFAULT_OUTPUT, result.trace.arrays(EXPORT_SUFFIX), header="Created by ofdm-trace")
    return 0


if __name__ == "__main__":
    sys.exit(main())
