# lungecoach/runtime/cli.py
from __future__ import annotations
import argparse
import json
import sys
import time
from pathlib import Path
from typing import List, Optional

from lungecoach.common.events import EventType, RepCompleted
from lungecoach.counter.detector import LungeConfig
from lungecoach.counter.replay import load_frames, run_frames
from lungecoach.counter.session import LungeSessionManager


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    p = argparse.ArgumentParser(description="Count lunge reps per leg from a webcam or a recorded landmark stream.")
    p.add_argument("--replay", type=Path, default=None,
                   help="JSONL file of landmark frames to replay instead of opening the camera")
    p.add_argument("--camera", type=int, default=0, help="Camera index (default: 0)")
    p.add_argument("--mirror", action="store_true",
                   help="Input is mirrored (front/selfie camera); swap left and right legs")
    p.add_argument("--show", action="store_true", help="Show the camera window with the overlay (q to quit)")
    p.add_argument("--verbose", action="store_true", help="Print phase changes and skipped frames")
    return p.parse_args(argv)


def _print_event(ev: dict):
    print(json.dumps(ev), flush=True)


def _print_rep(rep: RepCompleted):
    print(f"rep: {rep.leg.value} ({rep.quality.display or rep.quality.value}) "
          f"left={rep.left_count} right={rep.right_count}", flush=True)


def replay(args: argparse.Namespace) -> int:
    cfg = LungeConfig(mirror=args.mirror)
    try:
        summary = run_frames(
            load_frames(args.replay),
            cfg,
            on_rep=_print_rep,
            debug_cb=_print_event if args.verbose else None,
        )
    except (OSError, ValueError) as e:
        print("Error:", e, file=sys.stderr)
        return 1
    print(f"frames={summary.frames} left={summary.left} right={summary.right} quality={summary.quality}", flush=True)
    return 0


def live(args: argparse.Namespace) -> int:
    mgr = LungeSessionManager()

    def sink(ev: dict):
        if ev.get("type") == EventType.REP.value:
            print(f"rep: {ev['leg']} ({ev['quality']}) left={ev['left']} right={ev['right']}", flush=True)
        elif args.verbose or ev.get("type") == EventType.TRACE.value:
            _print_event(ev)

    mgr.set_event_sink(sink)
    mgr.start(mirror=args.mirror, camera_index=args.camera, show_window=args.show)
    print("Counting lunges. Press Ctrl+C to exit.", flush=True)
    try:
        while mgr.active_pipeline is not None and mgr.active_pipeline.is_alive():
            time.sleep(0.2)
    except KeyboardInterrupt:
        print("\nExiting…", flush=True)
    final = mgr.stop()
    print(f"left={final.left} right={final.right} total={final.total_reps}", flush=True)
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)
    if args.replay is not None:
        return replay(args)
    return live(args)


if __name__ == "__main__":
    raise SystemExit(main())
