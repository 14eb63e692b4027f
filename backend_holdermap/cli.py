"""
Operator command line.

    holdermap snapshot MINT [--n 120] [--edge-wallets 30] [--tx-limit 120] [--max-signatures 1500]
    holdermap board [--limit 30] [--per-program-limit 80] [--min-total-gor 25000] [--refresh]
    holdermap watch MINT [--poll-interval 8] [--force-refresh 600] [--count 0]

Results go to stdout as JSON. Failures print {"error", "code"} to stderr and
exit with status 1. Log lines go to stderr.
"""

from __future__ import annotations

import argparse
import asyncio
import json
import sys
from typing import Any, Sequence

from backend_holdermap.analytics.snapshot import SnapshotOptions
from backend_holdermap.config.env import masked_rpc_url
from backend_holdermap.config.settings import Settings, get_settings, parse_limit_param
from backend_holdermap.core.exceptions import HolderMapError
from backend_holdermap.holdermap_logging import get_logger
from backend_holdermap.ledger.rpc_client import SolanaRpcLedger
from backend_holdermap.live.controller import LiveOptions
from backend_holdermap.service import HolderMapService

logger = get_logger(__name__)


def _open_ledger(settings: Settings) -> SolanaRpcLedger:
    return SolanaRpcLedger(
        settings.rpc_url,
        timeout_sec=settings.rpc_timeout_sec,
        max_retries=settings.rpc_max_retries,
    )


def _float_or_none(value: str | None) -> float | None:
    if value is None:
        return None
    try:
        return float(value)
    except ValueError:
        return None


def build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(prog="holdermap", description="Token holder map and trading board for Gorbagana")
    sub = ap.add_subparsers(dest="command", required=True)

    snap = sub.add_parser("snapshot", help="Holder graph for one mint")
    snap.add_argument("mint", help="Token mint address")
    snap.add_argument("--n", dest="holder_limit", default=None, help="Holders to return (20-300)")
    snap.add_argument("--edge-wallets", default=None, help="Top holders scanned for transfers (5-80)")
    snap.add_argument("--tx-limit", default=None, help="Signatures per wallet (20-400)")
    snap.add_argument("--max-signatures", default=None, help="Total signature cap (100-5000)")
    snap.add_argument("--refresh", action="store_true", help="Ignore cached snapshot")

    board = sub.add_parser("board", help="High-volume wallets across launch programs")
    board.add_argument("--limit", default=None, help="Entries to return (1-100)")
    board.add_argument("--per-program-limit", default=None, help="Signatures per program (10-300)")
    board.add_argument("--min-total-gor", default=None, help="Minimum total volume in GOR")
    board.add_argument("--refresh", action="store_true", help="Ignore cached board")

    watch = sub.add_parser("watch", help="Print a snapshot whenever holder activity changes")
    watch.add_argument("mint", help="Token mint address")
    watch.add_argument("--poll-interval", default=None, help="Seconds between activity checks (2-60)")
    watch.add_argument("--force-refresh", default=None, help="Seconds before a forced rebuild (60-3600)")
    watch.add_argument("--count", type=int, default=0, help="Stop after this many snapshots (0 = run until interrupted)")
    return ap


def snapshot_options_from_args(args: argparse.Namespace, settings: Settings) -> SnapshotOptions:
    return SnapshotOptions(
        holder_limit=parse_limit_param(args.holder_limit, settings.holder_limit, 20, 300),
        edge_wallet_limit=parse_limit_param(args.edge_wallets, settings.edge_wallet_limit, 5, 80),
        tx_limit=parse_limit_param(args.tx_limit, settings.tx_limit, 20, 400),
        max_signatures=parse_limit_param(args.max_signatures, settings.max_signatures, 100, 5000),
    )


def live_options_from_args(args: argparse.Namespace, settings: Settings) -> LiveOptions:
    return LiveOptions(
        poll_interval_sec=float(
            parse_limit_param(args.poll_interval, int(settings.live_poll_interval_sec), 2, 60)
        ),
        force_refresh_sec=float(
            parse_limit_param(args.force_refresh, int(settings.live_force_refresh_sec), 60, 3600)
        ),
    )


def _emit(payload: dict[str, Any], *, indent: int | None = 2) -> None:
    print(json.dumps(payload, indent=indent))


async def _watch(service: HolderMapService, args: argparse.Namespace) -> None:
    queue: asyncio.Queue = asyncio.Queue()
    unsubscribe = service.subscribe(
        args.mint,
        live_options_from_args(args, service.settings),
        queue.put_nowait,
        queue.put_nowait,
    )
    delivered = 0
    try:
        while args.count <= 0 or delivered < args.count:
            item = await queue.get()
            if isinstance(item, HolderMapError):
                print(json.dumps(item.to_dict()), file=sys.stderr)
                continue
            if isinstance(item, Exception):
                print(json.dumps({"error": str(item), "code": "internal_error"}), file=sys.stderr)
                continue
            _emit(item.to_dict(), indent=None)
            delivered += 1
    finally:
        unsubscribe()


async def run_command(args: argparse.Namespace, settings: Settings) -> int:
    async with _open_ledger(settings) as ledger:
        service = HolderMapService(ledger, settings)
        try:
            if args.command == "snapshot":
                snapshot = await service.snapshot(
                    args.mint,
                    snapshot_options_from_args(args, settings),
                    force_refresh=args.refresh,
                )
                _emit(snapshot.to_dict())
            elif args.command == "board":
                board = await service.high_volume_board(
                    limit=parse_limit_param(args.limit, settings.board_result_limit, 1, 100),
                    per_program_limit=parse_limit_param(
                        args.per_program_limit, settings.board_per_program_limit, 10, 300
                    ),
                    min_total_gor=_float_or_none(args.min_total_gor),
                    force_refresh=args.refresh,
                )
                _emit(board.to_dict())
            elif args.command == "watch":
                await _watch(service, args)
        finally:
            await service.close()
    return 0


def main(argv: Sequence[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    settings = get_settings()
    logger.debug("cli_start", command=args.command, rpc_url=masked_rpc_url(settings.rpc_url))
    try:
        return asyncio.run(run_command(args, settings))
    except HolderMapError as e:
        logger.warning("cli_command_failed", command=args.command, code=e.code, error=e.message)
        print(json.dumps(e.to_dict()), file=sys.stderr)
        return 1
    except KeyboardInterrupt:
        return 130


if __name__ == "__main__":
    sys.exit(main())
