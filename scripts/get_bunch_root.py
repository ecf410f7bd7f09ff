#!/usr/bin/env python3
"""
Compute the mega roots of a bunch straight from a side-chain node.

Usage:
    python scripts/get_bunch_root.py <start_block> <bunch_depth> [--rpc URL]
"""
import argparse
import asyncio
import json
import logging
import os
import sys

from dotenv import load_dotenv

project_root = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
sys.path.insert(0, project_root)
load_dotenv(dotenv_path=os.path.join(project_root, ".env"), override=True)

from checkpoint.app.bunching import build_bunch  # noqa: E402
from checkpoint.app.errors import CheckpointError  # noqa: E402
from checkpoint.app.source import ESN_RPC, BlockSource  # noqa: E402


def main() -> None:
    parser = argparse.ArgumentParser(description="Compute bunch mega roots")
    parser.add_argument("start", type=int, help="First block number of the bunch")
    parser.add_argument("depth", type=int, help="Bunch depth (bunch holds 2^depth blocks)")
    parser.add_argument("--rpc", default=ESN_RPC, help="Side-chain JSON-RPC endpoint")
    args = parser.parse_args()

    logging.basicConfig(level=os.getenv("LOG_LEVEL", "INFO"),
                        format="%(asctime)s %(name)s %(levelname)s %(message)s")

    try:
        header = asyncio.run(build_bunch(BlockSource(args.rpc), args.start, args.depth))
    except CheckpointError as exc:
        print(f"Cannot build bunch: {exc}", file=sys.stderr)
        sys.exit(1)

    print(json.dumps(header.model_dump(), indent=2))


if __name__ == "__main__":
    main()
