#!/usr/bin/env python3
"""
NatureWatch CLI - Command-line interface for video object analysis.

Usage:
    python naturewatch_cli.py /info [video]
    python naturewatch_cli.py /analyze [video] [output_dir]
    python naturewatch_cli.py /frame <seconds> [video]
"""

import logging
import sys
from pathlib import Path

from naturewatch import (
    AnalysisSession,
    BatchProgress,
    ExtractionFailed,
    ItemFailed,
    NatureWatchError,
    find_video_file,
    get_processing_resolution,
    load_video,
)


def _print_progress(event):
    if isinstance(event, BatchProgress):
        print(f"\rProcessed {event.processed} of {event.total} frames ({event.percent:.0f}%)", end="", flush=True)
    elif isinstance(event, (ItemFailed, ExtractionFailed)):
        print(f"\n⚠️  {event.frame_id} @ {event.timestamp:.2f}s skipped: {event.reason}")


def show_info(video_path: Path):
    video = load_video(video_path)
    processing = get_processing_resolution(video.resolution)
    print(f"File:       {video_path.name}")
    print(f"Duration:   {video.duration:.2f}s @ {video.fps:.2f} fps")
    print(f"Resolution: {video.resolution.width}x{video.resolution.height}")
    print(f"Processing: {processing.width}x{processing.height}")


def analyze_video(video_path: Path, output_dir: Path) -> Path:
    with AnalysisSession.open(video_path, on_event=_print_progress) as session:
        result = session.analyze_all()
        print()
        print(f"Analyzed {result.completed}/{result.total} frames ({len(result.failed)} skipped)")
        for label, entry in sorted(session.inventory.items()):
            print(f"  {label}: {entry.count} (confidence {entry.last_confidence:.2f})")
        output_path = session.save_export(output_dir)
    print(f"✅ Analysis saved to: {output_path}")
    return output_path


def analyze_frame(video_path: Path, seconds: float):
    with AnalysisSession.open(video_path) as session:
        frame_id = session.analyze_at(seconds)
        session.queue.wait_idle()
        frame = session.frame(frame_id)
        print(f"{frame.id} @ {frame.timestamp:.2f}s: {len(frame.segmentation.masks)} objects")
        for mask in frame.segmentation.masks:
            print(f"  {mask.label} [{mask.category}] {mask.confidence:.2f}")
        stats = session.statistics(frame_id)
        print(f"Static: {stats['static']}  Dynamic: {stats['dynamic']}  Total: {stats['total']}")


def main():
    if len(sys.argv) < 2 or sys.argv[1] in ('-h', '--help'):
        print(__doc__)
        print("Commands:")
        print("  /info [video]                  - Show video metadata and processing resolution")
        print("  /analyze [video] [output_dir]  - Detect objects in every frame and export JSON")
        print("  /frame <seconds> [video]       - Detect objects in a single frame")
        return 0

    logging.basicConfig(level=logging.WARNING, format='%(asctime)s [%(levelname)s] %(message)s')
    command = sys.argv[1].lower()

    try:
        if command == '/info':
            show_info(find_video_file(sys.argv[2] if len(sys.argv) > 2 else None))
        elif command == '/analyze':
            video_path = find_video_file(sys.argv[2] if len(sys.argv) > 2 else None)
            output_dir = Path(sys.argv[3]) if len(sys.argv) > 3 else Path('.')
            analyze_video(video_path, output_dir)
        elif command == '/frame':
            if len(sys.argv) < 3:
                print("Usage: /frame <seconds> [video]", file=sys.stderr)
                return 1
            seconds = float(sys.argv[2])
            analyze_frame(find_video_file(sys.argv[3] if len(sys.argv) > 3 else None), seconds)
        else:
            print(f"Unknown command: {command}")
            return 1
    except (NatureWatchError, FileNotFoundError, RuntimeError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    return 0


if __name__ == '__main__':
    sys.exit(main())
