"""Command-line interface for mirroring the rule wiki."""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import List, Optional

from .config import ENTRY_POINTS, MirrorConfig, load_env_file
from .scheduler import CrawlReport


def _setup_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(message)s",
        datefmt="%H:%M:%S",
    )


def _parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="wikimirror",
        description="Mirror the DSA rule wiki into local markdown documents.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""\
Examples:
  # Full mirror into ./result
  wikimirror

  # Different output directory, JSON run report
  wikimirror -o docs/ --report run.json

  # Trial run from a single entry point
  wikimirror --entry-point index.php/magie.html --max-pages 20

Settings can also come from a .env file (WIKIMIRROR_BASE_URL,
WIKIMIRROR_ID_PREFIX, WIKIMIRROR_OUTPUT_DIR).
""",
    )
    parser.add_argument(
        "-o",
        "--output",
        type=str,
        default=None,
        help="Output directory for the markdown files (default: result)",
    )
    parser.add_argument(
        "--base-url",
        type=str,
        default=None,
        help="Base URL of the wiki",
    )
    parser.add_argument(
        "--id-prefix",
        type=str,
        default=None,
        help="Namespace prefix for document IDs (default: dsa-rule-)",
    )
    parser.add_argument(
        "--entry-point",
        dest="entry_points",
        action="append",
        default=None,
        metavar="PATH",
        help=f"Site-relative seed page, repeatable (default: the {len(ENTRY_POINTS)} built-in sections)",
    )
    parser.add_argument(
        "--max-pages",
        type=int,
        default=None,
        help="Stop after this many pages (default: no limit)",
    )
    parser.add_argument(
        "--report",
        type=str,
        default=None,
        help="Write the run report as JSON to this file",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Enable verbose logging",
    )
    return parser.parse_args(argv)


def _build_config(args: argparse.Namespace) -> MirrorConfig:
    return MirrorConfig.from_env(
        base_url=args.base_url,
        id_prefix=args.id_prefix,
        output_dir=args.output,
        entry_points=args.entry_points,
        max_pages=args.max_pages,
    )


def _log_summary(report: CrawlReport) -> None:
    logging.info(
        "Wrote %d documents (%d pages processed, %d duplicates skipped)",
        report.stats.get("written_documents", 0),
        report.stats.get("processed_pages", 0),
        report.stats.get("skipped_duplicates", 0),
    )
    for failure in report.failures:
        logging.warning(
            "Failed (%s): %s - %s", failure["stage"], failure["url"], failure["error"]
        )


def _write_report(report: CrawlReport, output: str) -> None:
    path = Path(output)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(report.to_dict(), indent=2, ensure_ascii=False))
    logging.info("Wrote report to %s", path)


async def _run_async(args: argparse.Namespace) -> int:
    from . import mirror_wiki_async

    config = _build_config(args)
    logging.info(
        "Mirroring %s into %s (%d entry points)",
        config.base_url,
        config.output_dir,
        len(config.entry_points),
    )
    report = await mirror_wiki_async(config)

    _log_summary(report)
    if args.report:
        _write_report(report, args.report)

    return 0 if report.ok else 1


def main(argv: Optional[List[str]] = None) -> int:
    """CLI entry point for the wikimirror command."""
    args = _parse_args(argv)
    _setup_logging(args.verbose)
    load_env_file()

    try:
        return asyncio.run(_run_async(args))
    except KeyboardInterrupt:
        logging.info("Interrupted")
        return 130
    except Exception as exc:
        logging.error("Error: %s", exc)
        if args.verbose:
            logging.exception("Full traceback:")
        return 1


if __name__ == "__main__":
    sys.exit(main())
