#!/usr/bin/env python3
"""
Rebuild or verify player snapshot chains.

Every match snapshot is re-derived from the player's initial snapshot by
replaying their reviews in temporal_order, and current attributes are reset
to the end of the chain.

Rebuild every player:
    python scripts/rebuild_growth.py

Only specific players:
    python scripts/rebuild_growth.py --player-ids 12,40

Report drift without writing:
    python scripts/rebuild_growth.py --verify

Dry run (rebuild, then roll back):
    python scripts/rebuild_growth.py --dry-run
"""
from __future__ import annotations

import argparse
import json
import sys
from datetime import datetime, timezone
from pathlib import Path
from time import perf_counter

# Add src to path so this script can be run directly
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from squadgrowth.db import Player, get_session
from squadgrowth.growth.recalculator import ChainRecalculator
from squadgrowth.logging_config import setup_logging


def _utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Rebuild or verify player snapshot chains.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument(
        "--player-ids",
        default=None,
        help="Comma-separated player IDs to process (default: all players).",
    )
    parser.add_argument(
        "--verify",
        action="store_true",
        help="Only compare stored chains with a fresh replay; never writes.",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Rebuild but roll back instead of committing.",
    )
    parser.add_argument(
        "--metrics-json",
        default=None,
        help="Write a JSON summary to this path on completion.",
    )
    return parser


def main() -> int:
    args = _build_parser().parse_args()
    setup_logging(log_format="console")

    player_ids: set[int] | None = None
    if args.player_ids:
        try:
            player_ids = {int(x.strip()) for x in args.player_ids.split(",") if x.strip()}
        except ValueError as exc:
            print(f"ERROR: --player-ids must be comma-separated integers: {exc}")
            return 1

    mode = "verify" if args.verify else "rebuild"
    started_at = _utc_now_iso()
    print(f"GROWTH CHAINS  mode={mode}  dry_run={args.dry_run}  started={started_at}")
    print("-" * 60)

    t_start = perf_counter()
    processed = 0
    replayed = 0
    inconsistent: list[int] = []

    with get_session() as session:
        query = session.query(Player.id).order_by(Player.id)
        if player_ids:
            query = query.filter(Player.id.in_(player_ids))
        ids = [row.id for row in query.all()]

        recalculator = ChainRecalculator(session)
        for player_id in ids:
            if args.verify:
                report = recalculator.verify_player_chain(player_id)
                replayed += report.matches_checked
                if not report.is_consistent:
                    inconsistent.append(player_id)
                    print(
                        f"  player {player_id}: {len(report.mismatches)} snapshot mismatches, "
                        f"current drift={bool(report.current_drift)}"
                    )
            else:
                result = recalculator.rebuild_player_chain(player_id)
                replayed += result.matches_replayed
            processed += 1

        if args.verify or args.dry_run:
            session.rollback()
            if args.dry_run:
                print("(dry run - changes rolled back)")

    elapsed = perf_counter() - t_start

    print("-" * 60)
    print(f"Players:                {processed}")
    print(f"Matches replayed:       {replayed}")
    if args.verify:
        print(f"Inconsistent players:   {len(inconsistent)}")
    print(f"Elapsed:                {elapsed:.2f}s")

    if args.metrics_json:
        payload = {
            "status": "success",
            "mode": mode,
            "dry_run": args.dry_run,
            "started_at": started_at,
            "elapsed_s": round(elapsed, 3),
            "players": processed,
            "matches_replayed": replayed,
            "inconsistent_player_ids": inconsistent,
        }
        metrics_path = Path(args.metrics_json)
        metrics_path.parent.mkdir(parents=True, exist_ok=True)
        metrics_path.write_text(json.dumps(payload, indent=2) + "\n", encoding="utf-8")

    return 1 if inconsistent else 0


if __name__ == "__main__":
    raise SystemExit(main())
