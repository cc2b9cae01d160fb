"""
Command-line entry point.

    page-improver <page-id> [--tier quick|standard|deep|triage] [--directions TEXT]
                  [--apply] [--no-grade] [--section-level] [--triage]
                  [--list [--limit N]]

Exit code 0 on success, 1 on any failure.
"""

import argparse
import asyncio
import logging
import sys
from typing import List, Optional

from pydantic import ValidationError

from .core.models.errors import PageImproverError
from .core.models.pipeline import PipelineOptions, PipelineRunResult
from .pipeline.context import PipelineContext
from .pipeline.controller import run_pipeline
from .pipeline.tiers import TIER_ALIASES, TIERS, TRIAGE, available_tiers
from .utils.config import Config, get_config, validate_config
from .utils.logging import setup_logging


logger = logging.getLogger(__name__)


class ArgumentParser(argparse.ArgumentParser):
    """Exits with status 1 on bad arguments."""

    def error(self, message):
        self.print_usage(sys.stderr)
        self.exit(1, f"{self.prog}: error: {message}\n")


def build_parser() -> argparse.ArgumentParser:
    parser = ArgumentParser(
        prog="page-improver",
        description="Improve wiki pages with research, synthesis and review phases."
    )
    parser.add_argument("page_id", nargs="?", help="Page id, or a unique part of an id or title")
    parser.add_argument(
        "--tier",
        default="standard",
        help=f"Improvement tier ({', '.join(available_tiers() + list(TIER_ALIASES))})"
    )
    parser.add_argument("--triage", action="store_true", help="Same as --tier triage")
    parser.add_argument("--directions", default="", help="Specific improvement directions")
    parser.add_argument("--apply", action="store_true", help="Write the result back to the page file")
    parser.add_argument("--no-grade", dest="grade", action="store_false", help="Skip grading after --apply")
    parser.add_argument(
        "--section-level",
        action="store_true",
        help="Rewrite section by section instead of the whole page at once"
    )
    parser.add_argument("--no-fetch", dest="fetch_sources", action="store_false",
                        help="Do not fetch research source URLs")
    parser.add_argument("--adversarial-model", default=None, help="Model for the adversarial reviewer")
    parser.add_argument("--max-adversarial-iterations", type=int, default=2,
                        help="Cap on re-research iterations (deep tier)")
    parser.add_argument("--list", action="store_true", help="List pages that most need improvement")
    parser.add_argument("--limit", type=int, default=20, help="Number of pages for --list")
    parser.add_argument("--env", default=None, help="Configuration name (development, production, testing)")
    return parser


def options_from_args(args: argparse.Namespace) -> PipelineOptions:
    return PipelineOptions(
        tier=TRIAGE if args.triage else args.tier,
        directions=args.directions,
        apply=args.apply,
        grade=args.grade,
        section_level=args.section_level,
        fetch_sources=args.fetch_sources,
        adversarial_model=args.adversarial_model,
        max_adversarial_iterations=args.max_adversarial_iterations
    )


def print_candidates(ctx: PipelineContext, limit: int):
    candidates = ctx.store.list_candidates(limit=limit)
    print(f"\nPages needing improvement (top {len(candidates)}):\n")
    print(f"{'#':>3}  {'Q':>4}  {'Imp':>4}  {'Gap':>4}  Page")
    print("-" * 72)
    for i, page in enumerate(candidates, 1):
        quality = page.quality or 0
        importance = page.reader_importance or 0
        print(f"{i:>3}  {quality:>4.0f}  {importance:>4.0f}  {importance - quality:>4.0f}  {page.id} ({page.title})")
    print("\nUsage: page-improver <page-id> [--tier quick|standard|deep|triage]")
    print("Tiers:")
    for name, tier in TIERS.items():
        print(f"  {name:<9} {tier.cost:<8} {tier.description}")


def print_result(result: PipelineRunResult):
    print("\n" + "=" * 60)
    print(f"{result.title or result.page_id}: tier {result.tier}, {result.duration:.1f}s")
    print(f"Phases: {', '.join(result.phases)}")
    if result.tier == "skip" and result.triage is not None:
        print(f"Skipped: {result.triage.reason}")
        return
    if result.validation is not None and result.validation.has_critical:
        print(f"Critical validation issues: {', '.join(i.rule for i in result.validation.critical)}")
    if result.review is not None and result.review.issues:
        print(f"Review issues: {len(result.review.issues)}")
    if result.output_path:
        print(f"Output: {result.output_path}")
    if result.applied:
        print("Changes applied.")
    if result.grading_error:
        print(f"Grading failed: {result.grading_error}")


def main(argv: Optional[List[str]] = None, config: Optional[Config] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    config = config or get_config(args.env)
    setup_logging(config)

    if not args.list and not args.page_id:
        parser.print_usage(sys.stderr)
        print("error: a page id is required unless --list is given", file=sys.stderr)
        return 1

    for problem in validate_config(config):
        logger.warning(f"Configuration: {problem}")

    ctx = PipelineContext.from_config(config)
    try:
        if args.list:
            print_candidates(ctx, args.limit)
            return 0
        result = asyncio.run(run_pipeline(ctx, args.page_id, options_from_args(args)))
    except (PageImproverError, ValidationError) as e:
        logger.error(str(e))
        print(f"Error: {e}", file=sys.stderr)
        return 1
    except Exception as e:
        logger.error(f"Pipeline failed: {e}", exc_info=True)
        print(f"Error: {e}", file=sys.stderr)
        return 1

    print_result(result)
    return 0


if __name__ == "__main__":
    sys.exit(main())
