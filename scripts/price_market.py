"""
price_market.py — Price one prop market from a JSON dump of feed quotes.

Input
-----
A JSON file holding either a list of quote rows, or an object with
``rows`` plus optional ``line`` and ``market`` keys.  Each row::

    {"book": "draftkings", "side": "over", "price": "+120", "line": 24.5}

Both sides are priced through the full pipeline (best price, reference,
de-vig, edge/EV, Kelly) and printed as JSON, ranked by edge.

Usage
-----
  python scripts/price_market.py quotes.json
  python scripts/price_market.py quotes.json --mode book --book pinnacle
  python scripts/price_market.py quotes.json --exclude bovada --bankroll 1000
"""

import argparse
import json
import logging
import sys
from pathlib import Path

# Ensure the project root (one level up from scripts/) is on sys.path so that
# `from propedge.xxx import ...` resolves when the script is run directly.
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from dotenv import load_dotenv  # noqa: E402

from propedge.core.devig import ALL_DEVIG_METHODS  # noqa: E402
from propedge.core.pricing_config import PricingConfig  # noqa: E402
from propedge.services.edge import (  # noqa: E402
    COMPARISON_MODES,
    ReferenceSpec,
    build_opportunity,
    rank_opportunities,
)
from propedge.services.ledger import ingest_market  # noqa: E402
from propedge.services.price_selector import rank_books  # noqa: E402

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


def _load_rows(path: Path):
    payload = json.loads(path.read_text())
    if isinstance(payload, list):
        return payload, None, None
    return payload.get("rows", []), payload.get("line"), payload.get("market")


def main() -> int:
    parser = argparse.ArgumentParser(
        description="Price a prop market from a JSON dump of sportsbook quotes."
    )
    parser.add_argument("path", type=Path, help="JSON file of quote rows")
    parser.add_argument("--line", type=float, default=None, help="Market line (overrides file)")
    parser.add_argument("--market", default=None, help="Market key, e.g. player_points")
    parser.add_argument("--mode", choices=COMPARISON_MODES, default="next_best")
    parser.add_argument("--book", default=None, help="Reference book for --mode book")
    parser.add_argument("--custom-price", type=float, default=None,
                        help="Reference decimal price for --mode custom")
    parser.add_argument("--method", choices=ALL_DEVIG_METHODS, default="multiplicative")
    parser.add_argument("--exclude", action="append", default=[],
                        help="Book to exclude from best price (repeatable)")
    parser.add_argument("--bankroll", type=float, default=0.0)
    parser.add_argument("--kelly-percent", type=float, default=None)
    args = parser.parse_args()

    load_dotenv()
    config = PricingConfig.from_env()

    rows, file_line, file_market = _load_rows(args.path)
    line = args.line if args.line is not None else file_line
    market = args.market or file_market

    try:
        reference = ReferenceSpec(
            mode=args.mode, book_id=args.book, custom_decimal=args.custom_price
        )
    except ValueError as exc:
        parser.error(str(exc))

    over, under = ingest_market(rows, line, aliases=config.book_aliases)
    logger.info(
        "Loaded %d rows for %s line=%s: over=%d books, under=%d books",
        len(rows), market or "market", line, len(over), len(under),
    )

    opportunities = [
        build_opportunity(over, under, reference, args.exclude, args.method, config, market),
        build_opportunity(under, over, reference, args.exclude, args.method, config, market),
    ]
    ranked = rank_opportunities(opportunities)
    if not ranked:
        logger.warning("No eligible quotes on either side; nothing to price.")
        return 1

    output = []
    for opp in ranked:
        side = over if opp.side == over.side else under
        entry = opp.to_dict()
        entry["stake"] = opp.stake(args.bankroll, args.kelly_percent).to_dict()
        entry["top_books"] = [
            q.book_id
            for q in rank_books(
                side,
                top_n=config.top_n,
                priority_books=config.priority_books,
                reference_book=config.reference_book,
                excluded_books=args.exclude,
                aliases=config.book_aliases,
            )
        ]
        output.append(entry)

    print(json.dumps(output, indent=2))
    return 0


if __name__ == "__main__":
    sys.exit(main())
