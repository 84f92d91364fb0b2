import argparse
import asyncio

from listing_pipeline.ai_client import build_analyzer, build_keyword_enricher
from listing_pipeline.config import GENERATION_DELAY_SECONDS
from listing_pipeline.db import Base, engine
from listing_pipeline.services import registry
from listing_pipeline.utils import logger
import listing_pipeline.models  # noqa: F401 ensure models are imported so tables are known


async def run(user_id: str, delay: float):
    analyzer = build_analyzer()
    task = registry.start_batch(user_id, analyzer, build_keyword_enricher(), delay=delay)
    return await task


def main():
    parser = argparse.ArgumentParser(description="Generate listings for every pending SKU of a user.")
    parser.add_argument("user_id")
    parser.add_argument("--delay", type=float, default=None,
                        help="seconds between items (default: GENERATION_DELAY_SECONDS)")
    args = parser.parse_args()

    Base.metadata.create_all(bind=engine)
    delay = GENERATION_DELAY_SECONDS if args.delay is None else args.delay

    logger.info("Running bulk generation for user %s", args.user_id)
    try:
        report = asyncio.run(run(args.user_id, delay))
    except RuntimeError as e:
        raise SystemExit(f"Bulk generation could not start: {e}")

    print(f"Selected {len(report.selected)} item(s)")
    print(f"  ready:           {len(report.ready)}")
    print(f"  needs attention: {len(report.needs_attention)} {report.needs_attention or ''}")
    print(f"  skipped:         {len(report.skipped)}")
    if report.cancelled:
        print("Run was cancelled before finishing.")


if __name__ == "__main__":
    main()
