import io
import json
import tempfile
import unittest
from contextlib import redirect_stderr, redirect_stdout
from dataclasses import asdict
from pathlib import Path

from _frames import left_lunge_bottom, right_lunge_bottom, standing
from lungecoach.counter.replay import load_frames, run_frames
from lungecoach.runtime import cli


def write_replay(directory, frames, extra_lines=(), name="frames.jsonl"):
    path = Path(directory) / name
    with path.open("w", encoding="utf-8") as fh:
        for lms in frames:
            fh.write(json.dumps({"landmarks": [dict(asdict(lm), visibility=0.9) for lm in lms]}))
            fh.write("\n")
        for line in extra_lines:
            fh.write(line + "\n")
    return path


SESSION = [standing(), left_lunge_bottom(), standing(), standing(), right_lunge_bottom(depth=0.05), standing()]


class ReplayTests(unittest.TestCase):
    def setUp(self) -> None:
        tmp = tempfile.TemporaryDirectory()
        self.addCleanup(tmp.cleanup)
        self.tmp = tmp.name

    def test_load_frames_skips_blank_lines_and_extra_keys(self) -> None:
        path = write_replay(self.tmp, [standing()], extra_lines=["", "   "])
        frames = list(load_frames(path))
        self.assertEqual(len(frames), 1)
        self.assertEqual(len(frames[0]), 33)
        self.assertEqual(frames[0], standing())

    def test_invalid_line_reports_line_number(self) -> None:
        path = write_replay(self.tmp, [standing()], extra_lines=["{not json"])
        with self.assertRaises(ValueError) as ctx:
            list(load_frames(path))
        self.assertIn(":2:", str(ctx.exception))

    def test_run_frames_summary(self) -> None:
        summary = run_frames(load_frames(write_replay(self.tmp, SESSION)))
        self.assertEqual(summary.frames, 6)
        self.assertEqual((summary.left, summary.right), (1, 1))
        self.assertEqual(summary.quality, "almost_perfect")
        self.assertEqual([r.leg.value for r in summary.reps], ["left", "right"])


class CliReplayTests(unittest.TestCase):
    def setUp(self) -> None:
        tmp = tempfile.TemporaryDirectory()
        self.addCleanup(tmp.cleanup)
        self.tmp = tmp.name

    def test_replay_prints_reps_and_totals(self) -> None:
        out = io.StringIO()
        with redirect_stdout(out):
            code = cli.main(["--replay", str(write_replay(self.tmp, SESSION))])
        self.assertEqual(code, 0)
        text = out.getvalue()
        self.assertIn("rep: left (Perfect ^_^)", text)
        self.assertIn("rep: right (Almost Perfect :D)", text)
        self.assertIn("frames=6 left=1 right=1", text)

    def test_replay_of_missing_file_fails(self) -> None:
        err = io.StringIO()
        with redirect_stdout(io.StringIO()):
            with redirect_stderr(err):
                code = cli.main(["--replay", "does-not-exist.jsonl"])
        self.assertEqual(code, 1)
        self.assertIn("Error:", err.getvalue())


if __name__ == "__main__":  # pragma: no cover
    unittest.main()
