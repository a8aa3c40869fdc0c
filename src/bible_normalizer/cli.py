#!/usr/bin/env python3
"""
CLI for Bible Normalizer - Normalizes saved API payloads into chapter JSON.

Usage:
    python -m bible_normalizer john_3.json --translation ESV           # Print chapter JSON
    python -m bible_normalizer payloads/*.json -t KJV --output bible   # Write chapter files
    python -m bible_normalizer payloads/*.json -t NLT -o bible -w 20   # Use 20 parallel workers
"""

import argparse
import json
import logging
import re
import threading
import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from pathlib import Path
from typing import Optional

from .errors import ParseError
from .models import Chapter, Translation
from .registry import get_parser

logger = logging.getLogger(__name__)


# =============================================================================
# Configuration
# =============================================================================

OUTPUT_DIR = "bible"
DEFAULT_WORKERS = 10
LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


# =============================================================================
# Thread-Safe Chapter Writer
# =============================================================================

def book_slug(book_name: str) -> str:
    """'1 Corinthians' -> '1_corinthians'"""
    return re.sub(r"[^a-z0-9]+", "_", book_name.lower()).strip("_")


class ChapterWriter:
    """Thread-safe writer that saves normalized chapters to JSON files."""

    def __init__(self, output_dir: str = OUTPUT_DIR):
        self.output_dir = Path(output_dir)
        self.locks: dict[str, threading.Lock] = {}
        self.global_lock = threading.Lock()

    def _get_lock(self, file_path: str) -> threading.Lock:
        """Get or create a lock for a specific file."""
        with self.global_lock:
            if file_path not in self.locks:
                self.locks[file_path] = threading.Lock()
            return self.locks[file_path]

    def get_chapter_path(self, chapter: Chapter) -> Path:
        """Get the path for a chapter file."""
        return (
            self.output_dir
            / book_slug(chapter.book_name)
            / f"{chapter.chapter_number}.{chapter.translation.value}.json"
        )

    def write_chapter(self, chapter: Chapter) -> Path:
        """Save the chapter, replacing any earlier file for it."""
        chapter_path = self.get_chapter_path(chapter)
        lock = self._get_lock(str(chapter_path))

        with lock:
            chapter_path.parent.mkdir(parents=True, exist_ok=True)
            with open(chapter_path, "w", encoding="utf-8") as f:
                json.dump(chapter.to_dict(), f, indent=2, ensure_ascii=False)

        return chapter_path


# =============================================================================
# Progress Tracking
# =============================================================================

class ProgressTracker:
    """Track normalization results across worker threads."""

    def __init__(self, total_files: int):
        self.total = total_files
        self.completed = 0
        self.failed = 0
        self.verses = 0
        self.lock = threading.Lock()
        self.start_time = time.time()

    def update(self, success: bool = True, verses: int = 0):
        with self.lock:
            if success:
                self.completed += 1
                self.verses += verses
            else:
                self.failed += 1

    def get_stats(self) -> dict:
        with self.lock:
            elapsed = time.time() - self.start_time
            return {
                "completed": self.completed,
                "failed": self.failed,
                "total": self.total,
                "verses": self.verses,
                "elapsed": elapsed,
                "rate": self.completed / elapsed if elapsed > 0 else 0,
            }


# =============================================================================
# Normalization Logic
# =============================================================================

def load_payload(path: str):
    """Load one saved API payload."""
    with open(path, "r", encoding="utf-8") as f:
        return json.load(f)


def normalize_file(path: str, translation: Translation) -> Chapter:
    """Parse one payload file with the shared parser for its translation."""
    return get_parser(translation).parse(load_payload(path))


def normalize_task(
    path: str,
    translation: Translation,
    writer: ChapterWriter,
    progress: ProgressTracker,
) -> bool:
    """Normalize a single file and write it out. Returns success status."""
    try:
        chapter = normalize_file(path, translation)
    except (OSError, json.JSONDecodeError) as e:
        progress.update(success=False)
        logger.error("Could not read %s: %s", path, e)
        return False
    except ParseError as e:
        progress.update(success=False)
        logger.error("Could not normalize %s: %s", path, e)
        return False

    chapter_path = writer.write_chapter(chapter)
    progress.update(success=True, verses=len(chapter.verses))
    logger.info("%s -> %s (%d verses)", path, chapter_path, len(chapter.verses))
    return True


def normalize_files(
    paths: list[str],
    translation: Translation,
    max_workers: int = DEFAULT_WORKERS,
    output_dir: str = OUTPUT_DIR,
) -> dict:
    """
    Normalize payload files in parallel and write one JSON file per chapter.

    Args:
        paths: Payload files to normalize
        translation: Translation every payload belongs to
        max_workers: Number of parallel workers
        output_dir: Output directory for JSON files

    Returns:
        Final progress stats
    """
    print("📖 Bible Normalizer")
    print("=" * 60)
    print(f"Files to normalize: {len(paths):,}")
    print(f"Translation: {translation.value} ({translation.full_name})")
    print(f"Workers: {max_workers}")
    print(f"Output: {output_dir}/")
    print("=" * 60)

    writer = ChapterWriter(output_dir)
    progress = ProgressTracker(len(paths))

    with ThreadPoolExecutor(max_workers=max_workers) as executor:
        futures = {
            executor.submit(normalize_task, path, translation, writer, progress): path
            for path in paths
        }

        for future in as_completed(futures):
            try:
                future.result()
            except OSError as e:
                progress.update(success=False)
                logger.error("Could not write chapter for %s: %s", futures[future], e)

    stats = progress.get_stats()

    print("=" * 60)
    print("✅ Normalization complete!" if not stats["failed"] else "⚠️  Normalization finished with errors")
    print(f"   Chapters written: {stats['completed']:,}")
    print(f"   Verses: {stats['verses']:,}")
    print(f"   Failed: {stats['failed']:,}")
    print(f"   Time: {time.strftime('%H:%M:%S', time.gmtime(stats['elapsed']))}")
    print(f"   Rate: {stats['rate']:.1f} chapters/sec")
    print(f"   Output: {output_dir}/")
    print("=" * 60)

    return stats


# =============================================================================
# CLI Entry Point
# =============================================================================

def main(argv: Optional[list[str]] = None) -> int:
    parser = argparse.ArgumentParser(
        description="Normalize saved Bible API payloads into canonical chapter JSON."
    )
    parser.add_argument(
        "payloads",
        nargs="+",
        help="Payload JSON files, one chapter each"
    )
    parser.add_argument(
        "--translation", "-t",
        type=str,
        required=True,
        help=f"Translation of the payloads ({', '.join(t.value for t in Translation)})"
    )
    parser.add_argument(
        "--output", "-o",
        type=str,
        help="Output directory; without it a single chapter is printed to stdout"
    )
    parser.add_argument(
        "--workers", "-w",
        type=int,
        default=DEFAULT_WORKERS,
        help=f"Number of parallel workers (default: {DEFAULT_WORKERS})"
    )
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Log parser diagnostics"
    )

    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format=LOG_FORMAT,
    )

    if args.workers < 1:
        print(f"❌ --workers must be at least 1, got {args.workers}")
        return 1

    try:
        translation = Translation(args.translation.upper())
    except ValueError:
        print(f"❌ Unknown translation: {args.translation}")
        print(f"   Valid translations: {', '.join(t.value for t in Translation)}")
        return 1

    if args.output is None:
        if len(args.payloads) != 1:
            print("❌ --output is required when normalizing more than one file")
            return 1
        path = args.payloads[0]
        try:
            chapter = normalize_file(path, translation)
        except (OSError, json.JSONDecodeError) as e:
            print(f"❌ Could not read {path}: {e}")
            return 1
        except ParseError as e:
            print(f"❌ Could not normalize {path}: {e}")
            return 1
        print(chapter.to_json())
        return 0

    stats = normalize_files(
        args.payloads,
        translation,
        max_workers=args.workers,
        output_dir=args.output,
    )

    return 0 if stats["failed"] == 0 else 1


if __name__ == "__main__":
    exit(main())
