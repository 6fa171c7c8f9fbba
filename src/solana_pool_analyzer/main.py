"""Command line entrypoint for the Solana pool analyzer."""

from __future__ import annotations

import argparse
import asyncio
import json
import os
import sys
from typing import List, Optional, Sequence, TextIO

from .config.settings import PROFILE_ENV_VAR, get_app_config
from .errors import NoPoolsFoundError
from .monitoring import bootstrap_observability
from .monitoring.logger import get_logger
from .pipeline import PoolAnalyzer
from .schemas import ScoredRecord
from .utils.constants import JUP_MINT, SOL_MINT


def format_report(best: ScoredRecord) -> str:
    record = best.record
    lines = [
        "ANALYSIS RESULTS",
        f"Best pool found on: {record.source.label}",
        f"Pool name: {record.display_name}",
        f"Pool address: {record.pool_id}",
        f"Price: ${record.price_usd:.6f}",
        f"Liquidity: ${record.liquidity_usd:.2f}",
        f"Fee rate: {record.fee_percentage:.4f}%",
    ]
    if record.volume_24h_usd is not None:
        lines.append(f"24h Volume: ${record.volume_24h_usd:.2f}")
    lines.append(f"Health score: {best.score:.4f} (out of 1.0)")
    return "\n".join(lines)


def format_ranking(ranked: Sequence[ScoredRecord]) -> str:
    lines = [f"{'#':>3}  {'AMM':<13} {'Pool':<46} {'Liquidity':>16} {'Fee %':>8} {'Score':>7}"]
    for index, item in enumerate(ranked, start=1):
        record = item.record
        lines.append(
            f"{index:>3}  {record.source.label:<13} {record.pool_id:<46} "
            f"{record.liquidity_usd:>16,.2f} {record.fee_percentage:>8.4f} {item.score:>7.4f}"
        )
    return "\n".join(lines)


async def run_async(
    token_a: str,
    token_b: str,
    *,
    show_all: bool = False,
    as_json: bool = False,
    timeout_seconds: Optional[float] = None,
    analyzer: Optional[PoolAnalyzer] = None,
    out: Optional[TextIO] = None,
) -> None:
    out = out or sys.stdout
    analyzer = analyzer or PoolAnalyzer(timeout_seconds=timeout_seconds)
    if show_all:
        ranked = await analyzer.rank(token_a, token_b)
        if as_json:
            json.dump([item.to_dict() for item in ranked], out, indent=2)
            out.write("\n")
        else:
            out.write(format_ranking(ranked) + "\n")
        return
    best = await analyzer.evaluate(token_a, token_b)
    if as_json:
        json.dump(best.to_dict(), out, indent=2)
        out.write("\n")
    else:
        out.write(format_report(best) + "\n")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Find the healthiest liquidity pool for a Solana token pair",
    )
    parser.add_argument("token_a", nargs="?", default=JUP_MINT, help="First token mint (default: JUP)")
    parser.add_argument("token_b", nargs="?", default=SOL_MINT, help="Second token mint (default: wrapped SOL)")
    parser.add_argument("--json", action="store_true", default=False, help="Print the result as JSON.")
    parser.add_argument(
        "--all",
        action="store_true",
        default=False,
        help="List every usable pool, best first, instead of only the winner.",
    )
    parser.add_argument(
        "--timeout",
        type=float,
        default=None,
        help="Per-source timeout in seconds (default: pipeline.request_timeout_seconds).",
    )
    parser.add_argument(
        "--profile",
        default=None,
        help=f"Configuration profile to load (overrides {PROFILE_ENV_VAR}).",
    )
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    if args.profile:
        os.environ[PROFILE_ENV_VAR] = args.profile
        get_app_config.cache_clear()
    config = get_app_config()
    bootstrap_observability(config)
    logger = get_logger(__name__)
    logger.info(
        "Fetching data for %s/%s pools (profile %s)",
        args.token_a,
        args.token_b,
        config.profile.active,
    )
    try:
        asyncio.run(
            run_async(
                args.token_a,
                args.token_b,
                show_all=args.all,
                as_json=args.json,
                timeout_seconds=args.timeout,
            )
        )
    except NoPoolsFoundError as exc:
        print(f"Error analyzing pools: {exc}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
