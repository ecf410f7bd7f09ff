#!/usr/bin/env python3
"""
verify_block.py - Independent check of a gateway-issued inclusion proof.

Runs separately from the gateway:
- Fetches the committed bunch and the proof for a block from the Checkpoint Gateway
- Recomputes the mega root locally from the proof
- Compares it against the bunch record (never trusts the gateway's own verdict)

Usage:
    python scripts/verify_block.py <block_number> [<block_number> ...] [--gateway URL]

Output: one line per block, and JSON to results/verify_<timestamp>.json with --out.
"""
import argparse
import json
import os
import sys
import time
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List

import requests
from dotenv import load_dotenv

project_root = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
sys.path.insert(0, project_root)
load_dotenv(dotenv_path=os.path.join(project_root, ".env"), override=True)

from checkpoint.app.errors import CheckpointError  # noqa: E402
from checkpoint.app.proofs import verify_tx_root  # noqa: E402

DEFAULT_GATEWAY = os.getenv("GATEWAY_URL", "http://localhost:8000")


def build_session() -> requests.Session:
    s = requests.Session()
    s.headers["X-Role"] = "relayer"
    return s


def api(session: requests.Session, base_url: str, path: str) -> Any:
    resp = session.get(f"{base_url}{path}", timeout=30)
    resp.raise_for_status()
    return resp.json()


def verify_block(session: requests.Session, base_url: str, block_number: int) -> Dict[str, Any]:
    t0 = time.monotonic()
    resp = session.get(f"{base_url}/proof/{block_number}", timeout=60)
    if resp.status_code == 404:
        return {"block_number": block_number, "verdict": "FAIL",
                "reason": "Block not in any committed bunch"}
    resp.raise_for_status()
    proof = resp.json()

    # Mega root comes from the bunch record, not from the proof response.
    bunch = api(session, base_url, f"/bunches/{proof['bunch_index']}")
    try:
        ok = verify_tx_root(bunch["transactions_mega_root"], bunch["bunch_depth"],
                            proof["transactions_root"],
                            block_number - bunch["start_block_number"], proof["proof"])
        reason = "Proof reproduces committed mega root" if ok else "Mega root mismatch"
    except CheckpointError as exc:
        ok, reason = False, f"Malformed proof: {exc}"

    return {
        "block_number": block_number,
        "bunch_index": proof["bunch_index"],
        "leaf_index": proof["leaf_index"],
        "verdict": "PASS" if ok else "FAIL",
        "reason": reason,
        "verify_ms": round((time.monotonic() - t0) * 1000, 2),
    }


def main() -> None:
    parser = argparse.ArgumentParser(description="Verify block inclusion proofs from the gateway")
    parser.add_argument("blocks", type=int, nargs="+", help="Block numbers to verify")
    parser.add_argument("--gateway", default=DEFAULT_GATEWAY, help="Gateway base URL")
    parser.add_argument("--out", default=None, help="Directory for a JSON results file")
    args = parser.parse_args()

    session = build_session()
    try:
        h = session.get(f"{args.gateway}/health", timeout=5).json()
        print(f"Gateway: {args.gateway}  backend={h.get('ledger_backend')}")
    except Exception as exc:
        print(f"Cannot reach gateway: {exc}", file=sys.stderr)
        sys.exit(1)

    results: List[Dict[str, Any]] = []
    for number in args.blocks:
        r = verify_block(session, args.gateway, number)
        results.append(r)
        print(f"  block {number:<10d}  {r['verdict']:5s}  {r['reason']}")

    if args.out:
        out_dir = Path(args.out)
        out_dir.mkdir(parents=True, exist_ok=True)
        out_json = out_dir / f"verify_{datetime.now().strftime('%Y%m%d_%H%M%S')}.json"
        out_json.write_text(json.dumps(results, indent=2))
        print(f"Results -> {out_json}")

    sys.exit(0 if all(r["verdict"] == "PASS" for r in results) else 1)


if __name__ == "__main__":
    main()
