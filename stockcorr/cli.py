"""
Command-line interface for the stock price service.

This module provides CLI commands for running a single average-price or
correlation query against upstream, and for serving the HTTP API.
"""

import argparse
import json
import logging
import sys

from stockcorr.config import Settings
from stockcorr.errors import StockCorrError
from stockcorr.service import AggregationService


def average_command(args):
    """Print the average price payload for one ticker."""
    with AggregationService.from_settings() as service:
        try:
            result = service.get_average_price(args.ticker, args.minutes)
        except StockCorrError as e:
            print(f"\n✗ Error: {e}", file=sys.stderr)
            sys.exit(1)

    print(json.dumps(result.to_dict(), indent=2))


def correlation_command(args):
    """Print the correlation payload for two tickers."""
    with AggregationService.from_settings() as service:
        try:
            report = service.get_correlation(args.tickers, args.minutes)
        except StockCorrError as e:
            print(f"\n✗ Error: {e}", file=sys.stderr)
            sys.exit(1)

    if not report.correlation.is_defined:
        print("  Warning: correlation is undefined for these series", file=sys.stderr)
    print(json.dumps(report.to_dict(), indent=2))


def serve_command(args):
    """Run the HTTP API with uvicorn."""
    import uvicorn
    from stockcorr.web import create_app

    port = args.port if args.port is not None else Settings().port
    print(f"Stock price API on port: {port}")
    uvicorn.run(create_app(), host=args.host, port=port)


def main(argv=None):
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        description="Stock price aggregation and correlation",
        formatter_class=argparse.RawDescriptionHelpFormatter
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")

    subparsers = parser.add_subparsers(dest="command", help="Command to run")

    average_parser = subparsers.add_parser("average", help="Average price of a ticker")
    average_parser.add_argument("ticker", help="Ticker symbol")
    average_parser.add_argument("--minutes", type=int, default=None, help="Look-back window (default: 50)")

    corr_parser = subparsers.add_parser("correlation", help="Correlation between two tickers")
    corr_parser.add_argument("tickers", nargs="+", help="Exactly two ticker symbols")
    corr_parser.add_argument("--minutes", type=int, default=None, help="Look-back window (default: 50)")

    serve_parser = subparsers.add_parser("serve", help="Serve the HTTP API")
    serve_parser.add_argument("--host", default="0.0.0.0", help="Bind address")
    serve_parser.add_argument("--port", type=int, default=None, help="Port (default: $PORT or 5000)")

    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s"
    )

    if args.command == "average":
        average_command(args)
    elif args.command == "correlation":
        correlation_command(args)
    elif args.command == "serve":
        serve_command(args)
    else:
        parser.print_help()
        sys.exit(1)


if __name__ == "__main__":
    main()
