#!/usr/bin/env python3
"""
Storybook Generator - Command Line Entry Point

Generates an illustrated storybook from a prompt and writes it as JSON
(the same document the web API returns).

Usage:
    python main.py --prompt "A brave little mouse who dreams of becoming a chef"
    python main.py --prompt "A dragon learns to share" --pages 3 --sequential
    python main.py --prompt "..." --sequential --server http://localhost:8000

Keys are read from GEMINI_API_KEY and FAL_KEY (or --gemini-key/--fal-key).
In --sequential mode pages are illustrated one at a time; press Ctrl-C to
stop after the current page.
"""

import argparse
import asyncio
import json
import os
import signal
import sys
from datetime import datetime
from pathlib import Path

from src.core.cloudwatch_logging import configure_logging
from src.core.config import DEFAULT_PAGE_COUNT, MAX_PAGE_COUNT, GeneratorConfig, ImageConfig
from src.core.errors import QuotaExceededError, StorybookError
from src.core.image_generator import ImageSynthesizer
from src.core.interactive import (
    CancellationToken,
    illustrate_sequentially,
    local_image_renderer,
    remote_image_renderer,
)
from src.core.models import StoryResult
from src.core.pipeline import StoryPipeline
from src.core.story_generator import StoryGenerator


def create_argument_parser() -> argparse.ArgumentParser:
    """Create and configure argument parser."""
    parser = argparse.ArgumentParser(
        description="Generate an illustrated children's storybook from a prompt",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s --prompt "A curious kitten discovers a magical garden"
  %(prog)s --prompt "A friendly bear builds a home" --pages 3 --output bear.json
  %(prog)s --prompt "A turtle learns to swim" --sequential
        """
    )

    parser.add_argument(
        "--prompt", "-p",
        type=str,
        required=True,
        help="Story idea"
    )
    parser.add_argument(
        "--pages", "-n",
        type=int,
        default=DEFAULT_PAGE_COUNT,
        help=f"Number of story pages, 1-{MAX_PAGE_COUNT} (default: {DEFAULT_PAGE_COUNT})"
    )

    # Credentials
    parser.add_argument(
        "--gemini-key",
        type=str,
        default=os.getenv("GEMINI_API_KEY", ""),
        help="Gemini API key (default: $GEMINI_API_KEY)"
    )
    parser.add_argument(
        "--fal-key",
        type=str,
        default=os.getenv("FAL_KEY", ""),
        help="fal.ai API key; without it Gemini draws the images (default: $FAL_KEY)"
    )

    # Mode
    parser.add_argument(
        "--sequential",
        action="store_true",
        help="Illustrate pages one at a time with Gemini; Ctrl-C stops after the current page"
    )
    parser.add_argument(
        "--server",
        type=str,
        help="In --sequential mode, call this server's /api/generate-image instead of Gemini directly"
    )

    # Output
    parser.add_argument(
        "--output", "-o",
        type=str,
        help="Output JSON path (default: output/<title>_<timestamp>.json)"
    )
    parser.add_argument(
        "--output-dir",
        type=str,
        default="output",
        help="Output directory (default: output)"
    )

    # Debug
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Enable verbose output"
    )

    return parser


def generate_output_filename(title: str, output_dir: str) -> str:
    """Generate output filename from title and timestamp."""
    safe_title = "".join(c if c.isalnum() or c in " -_" else "_" for c in title)
    safe_title = safe_title.strip().replace(" ", "_")[:50] or "storybook"
    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    return str(Path(output_dir) / f"{safe_title}_{timestamp}.json")


def write_story(story: StoryResult, output_path: str) -> None:
    path = Path(output_path)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(
        json.dumps(story.model_dump(by_alias=True, exclude_none=True), indent=2),
        encoding="utf-8",
    )


async def run_pipeline(args: argparse.Namespace) -> StoryResult:
    """Server-equivalent mode: bounded-concurrency illustration."""
    config = GeneratorConfig.from_keys(args.gemini_key, args.fal_key or None)
    pipeline = StoryPipeline(config)
    return await pipeline.run(args.prompt, args.pages)


async def run_sequential(args: argparse.Namespace) -> StoryResult:
    """Client mode: one page at a time, cancellable with Ctrl-C."""
    config = GeneratorConfig.from_keys(args.gemini_key)
    draft = await StoryGenerator(config.llm).generate_story(args.prompt, args.pages)
    print(f"Story: {draft.title} ({draft.page_count} pages)")

    token = CancellationToken()
    loop = asyncio.get_running_loop()
    try:
        loop.add_signal_handler(signal.SIGINT, token.cancel)
    except NotImplementedError:
        pass  # Windows: Ctrl-C interrupts instead of stopping cleanly

    def report(page):
        print(f"  page {page.page_number}/{draft.page_count} illustrated")

    synthesizer = None
    if args.server:
        render = remote_image_renderer(args.server, args.gemini_key)
    else:
        synthesizer = ImageSynthesizer(ImageConfig.for_gemini(args.gemini_key))
        render = local_image_renderer(synthesizer)

    try:
        outcome = await illustrate_sequentially(draft.pages, render, token, on_page=report)
    finally:
        if synthesizer is not None:
            await synthesizer.close()
        try:
            loop.remove_signal_handler(signal.SIGINT)
        except NotImplementedError:
            pass

    if outcome.cancelled:
        print(f"Stopped: {outcome.completed}/{draft.page_count} pages illustrated")
    if outcome.quota_exceeded:
        print("Image quota exceeded. Please use a paid API key.", file=sys.stderr)

    return StoryResult.assemble(draft, outcome.pages, None)


def main() -> int:
    """Main entry point."""
    parser = create_argument_parser()
    args = parser.parse_args()

    configure_logging("DEBUG" if args.verbose else "INFO")

    if not args.gemini_key:
        print("Error: Gemini API key not configured.", file=sys.stderr)
        print("Set GEMINI_API_KEY in .env file or pass --gemini-key", file=sys.stderr)
        return 1
    if not 1 <= args.pages <= MAX_PAGE_COUNT:
        print(f"Error: --pages must be between 1 and {MAX_PAGE_COUNT}", file=sys.stderr)
        return 1

    runner = run_sequential if args.sequential else run_pipeline
    try:
        story = asyncio.run(runner(args))
    except QuotaExceededError as e:
        print(f"Error: provider quota exceeded: {e}", file=sys.stderr)
        return 1
    except StorybookError as e:
        print(f"Error generating story: {e}", file=sys.stderr)
        return 1

    output_path = args.output or generate_output_filename(story.title, args.output_dir)
    write_story(story, output_path)
    print(f"Storybook written to: {output_path}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
