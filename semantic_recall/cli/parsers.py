from __future__ import annotations

import argparse


def build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(description="Semantic recall (embedding fallback + memory retrieval)")
    sub = ap.add_subparsers(dest="cmd", required=False)

    em = sub.add_parser("embed")
    em.add_argument("--text", action="append", default=[], required=True, help="Text to embed; can repeat")
    em.add_argument("--provider", default=None, help="Preferred provider (tried first when healthy)")
    em.add_argument("--timeout", type=float, default=None, help="Per-provider timeout in seconds (default 30)")
    em.add_argument("--preview", type=int, default=8, help="Values shown per vector; 0 prints full vectors")

    se = sub.add_parser("search")
    se.add_argument("--name", required=False, help="Qdrant collection; defaults to $MEMORY_COLLECTION_NAME")
    se.add_argument("--user", required=True, help="User whose memories are searched")
    se.add_argument("--q", required=True)
    se.add_argument("--k", type=int, default=None, help="Candidate limit (default 5)")
    se.add_argument("--min-similarity", type=float, default=None)
    se.add_argument("--tag", action="append", default=[], help="Tag filter; can repeat")
    se.add_argument("--importance", type=float, default=None, help="Minimum importance score")
    se.add_argument("--context", default="balanced", help="light | balanced | comprehensive")
    se.add_argument("--provider", default=None)
    se.add_argument("--timeout", type=float, default=None, help="Per-call timeout in seconds (default 30)")

    pr = sub.add_parser("probe")
    pr.add_argument("--provider", default=None, help="Probe one provider; default probes all")

    us = sub.add_parser("usage")
    us.add_argument("--csv", action="store_true", help="Print CSV export instead of JSON")

    sub.add_parser("providers")

    return ap
