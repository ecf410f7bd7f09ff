#!/usr/bin/env python3
"""
Produce the inclusion proof of one block's transaction root in its bunch.

Usage:
    python scripts/get_proof_of_bunch_inclusion.py <start_block> <bunch_depth> <block_number>
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

from checkpoint.app.bunching import build_bunch, prove_block  # noqa: E402
from checkpoint.app.errors import CheckpointError  # noqa: E402
from checkpoint.app.source import ESN_RPC, BlockSource  # noqa: E402


async def run(rpc: str, start: int, depth: int, block_number: int):
    source = BlockSource(rpc)
    header = await build_bunch(source, start, depth)
    return await prove_block(source, header, block_number)


def main() -> None:
    parser = argparse.ArgumentParser(description="Generate a proof of bunch inclusion")
    parser.add_argument("start", type=int, help="First block number of the bunch")
    parser.add_argument("depth", type=int, help="Bunch depth")
    parser.add_argument("block", type=int, help="Block number to prove")
    parser.add_argument("--rpc", default=ESN_RPC, help="Side-chain JSON-RPC endpoint")
    args = parser.parse_args()

    logging.basicConfig(level=os.getenv("LOG_LEVEL", "INFO"),
                        format="%(asctime)s %(name)s %(levelname)s %(message)s")

    try:
        proof = asyncio.run(run(args.rpc, args.start, args.depth, args.block))
    except CheckpointError as exc:
        print(f"Cannot build proof: {exc}", file=sys.stderr)
        sys.exit(1)

    print(json.dumps(proof.model_dump(), indent=2))


if __name__ == "__main__":
    main()
