#!/usr/bin/env python3
"""
Offline check of a transaction root against a published bunch mega root.

Start block, depth and mega root come from the trusted bunch header; the
transaction root, block number and proof are the claim being checked.

Usage:
    python scripts/verify_proof_of_bunch_inclusion.py \
        --mega-root 0x.. --start 0 --depth 2 --tx-root 0x.. --block 2 --proof 0x..

Exit status: 0 valid, 1 invalid, 2 malformed input.
"""
import argparse
import os
import sys

project_root = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
sys.path.insert(0, project_root)

from checkpoint.app.errors import CheckpointError  # noqa: E402
from checkpoint.app.proofs import verify_tx_root  # noqa: E402


def main() -> None:
    parser = argparse.ArgumentParser(description="Verify a proof of bunch inclusion")
    parser.add_argument("--mega-root", required=True, help="Committed transactions mega root")
    parser.add_argument("--start", type=int, required=True, help="Bunch start block number")
    parser.add_argument("--depth", type=int, required=True, help="Bunch depth")
    parser.add_argument("--tx-root", required=True, help="Transactions root being claimed")
    parser.add_argument("--block", type=int, required=True, help="Block number of the claim")
    parser.add_argument("--proof", default="0x", help="Concatenated sibling hashes (hex)")
    args = parser.parse_args()

    try:
        ok = verify_tx_root(args.mega_root, args.depth, args.tx_root,
                            args.block - args.start, args.proof)
    except (CheckpointError, ValueError) as exc:
        print(f"Malformed input: {exc}", file=sys.stderr)
        sys.exit(2)

    print("VALID" if ok else "INVALID")
    sys.exit(0 if ok else 1)


if __name__ == "__main__":
    main()
