"""
OOF Moments - CLI.

Runs one wallet analysis against the live chain sources and prints the
result as JSON.

USAGE:
    python -m oof_moments.cli <wallet>
    python -m oof_moments.cli <wallet> --chains solana base --timeout 90
    python -m oof_moments.cli <wallet> --ignore-cooldown --log-level DEBUG
"""

import argparse
import asyncio
import json
import logging
import sys
from typing import List, Optional

from .analyzer import WalletAnalyzer
from .config import AnalyzerConfig
from .exceptions import AnalysisRateLimitedError
from .gate import AnalysisGate, InMemoryRateLimitStore
from .models import Chain


logger = logging.getLogger(__name__)


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser."""
    parser = argparse.ArgumentParser(
        prog="oof-moments",
        description="Analyze a wallet's trading history and score its OOF moments",
    )
    parser.add_argument(
        "wallet",
        help="Wallet address to analyze",
    )
    parser.add_argument(
        "--chains",
        nargs="+",
        choices=[c.value for c in Chain],
        default=None,
        help="Chains to analyze (default: all enabled)",
    )
    parser.add_argument(
        "--timeout",
        type=float,
        default=None,
        help="Overall analysis timeout in seconds",
    )
    parser.add_argument(
        "--ignore-cooldown",
        action="store_true",
        help="Use a throwaway rate-limit store instead of the persistent one",
    )
    parser.add_argument(
        "--include-positions",
        action="store_true",
        help="Include every analysed position in the output",
    )
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level (default: INFO)",
    )
    return parser


def build_config(args: argparse.Namespace) -> AnalyzerConfig:
    config = AnalyzerConfig()
    if args.chains:
        selected = {Chain(c) for c in args.chains}
        for chain, chain_config in config.chains.items():
            chain_config.enabled = chain in selected
    if args.timeout is not None:
        config.analysis_timeout_seconds = args.timeout
    return config


async def run(args: argparse.Namespace) -> int:
    config = build_config(args)
    gate = AnalysisGate(InMemoryRateLimitStore(), config) if args.ignore_cooldown else None
    analyzer = WalletAnalyzer(config=config, gate=gate)

    try:
        result = await analyzer.analyze_wallet(args.wallet)
    except AnalysisRateLimitedError as e:
        print(json.dumps({"rate_limited": True, **e.to_dict()}, indent=2))
        return 2
    finally:
        await analyzer.close()

    output = result.to_dict()
    if not args.include_positions:
        output.pop("all_position_analyses", None)
    print(json.dumps(output, indent=2))
    return 0 if result.analysis_complete else 1


def main(argv: Optional[List[str]] = None) -> int:
    parser = create_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        stream=sys.stderr,
    )

    return asyncio.run(run(args))


if __name__ == "__main__":
    sys.exit(main())
