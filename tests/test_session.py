import unittest

from _frames import left_lunge_bottom, right_lunge_bottom, standing
from lungecoach.common.events import Leg
from lungecoach.counter.detector import LungeConfig
from lungecoach.counter.session import LungeSessionManager
from lungecoach.counter.web_pipeline import WebLandmarkPipeline


def one_rep(push, bottom=left_lunge_bottom):
    push(standing())
    push(bottom())
    return push(standing())


class WebSessionTests(unittest.TestCase):
    def setUp(self) -> None:
        self.events = []
        self.mgr = LungeSessionManager()
        self.mgr.set_event_sink(self.events.append)
        self.mgr.set_web_mode(True)

    def test_start_uses_web_pipeline_with_fresh_detector(self) -> None:
        sid, status = self.mgr.start()
        self.assertTrue(sid)
        self.assertIsInstance(self.mgr.active_pipeline, WebLandmarkPipeline)
        self.assertEqual(self.events[0]["type"], "session_started")
        self.assertEqual(self.mgr.status().state, "running")

    def test_reps_are_counted_and_forwarded(self) -> None:
        self.mgr.start()
        rep = one_rep(self.mgr.push_landmarks)
        self.assertIs(rep.leg, Leg.LEFT)
        one_rep(self.mgr.push_landmarks, right_lunge_bottom)

        st = self.mgr.status()
        self.assertEqual((st.left, st.right), (1, 1))
        reps = [e for e in self.events if e["type"] == "rep"]
        self.assertEqual([e["leg"] for e in reps], ["left", "right"])
        self.assertEqual(reps[-1]["session_id"], self.mgr.active_id)
        self.assertIn("phase", {e["type"] for e in self.events})

    def test_pause_drops_frames(self) -> None:
        self.mgr.start()
        self.mgr.pause()
        self.assertIsNone(one_rep(self.mgr.push_landmarks))
        self.mgr.resume()
        self.assertIsNotNone(one_rep(self.mgr.push_landmarks))
        self.assertEqual(self.mgr.status().left, 1)

    def test_stop_returns_summary_and_restart_resets(self) -> None:
        first, _ = self.mgr.start()
        one_rep(self.mgr.push_landmarks)
        final = self.mgr.stop()
        self.assertEqual(final.session_id, first)
        self.assertEqual((final.left, final.right, final.total_reps), (1, 0, 1))
        self.assertEqual(self.mgr.status().state, "stopped")

        second, _ = self.mgr.start(mirror=True)
        self.assertNotEqual(first, second)
        self.assertEqual(self.mgr.status().left, 0)
        self.assertEqual(self.mgr.status().quality, "unset")
        self.assertTrue(self.mgr.active_cfg.mirror)

    def test_push_without_session_is_ignored(self) -> None:
        self.assertIsNone(self.mgr.push_landmarks(standing()))
        self.assertEqual(self.mgr.status().state, "stopped")


class ErrorDuringReadTests(unittest.TestCase):
    def test_detector_survives_pipeline_cleared_between_reads(self) -> None:
        class VanishingManager(LungeSessionManager):
            """active_pipeline disappears right after the first read, as when the camera thread fails."""

            def __init__(self, pipe):
                super().__init__()
                self._reads = [pipe]

            @property
            def active_pipeline(self):
                return self._reads.pop(0) if self._reads else None

            @active_pipeline.setter
            def active_pipeline(self, value):
                pass

        pipe = WebLandmarkPipeline(LungeConfig(), on_rep=lambda rep: None)
        mgr = VanishingManager(pipe)
        self.assertIs(mgr.detector, pipe.detector)
        self.assertIsNone(mgr.detector)


if __name__ == "__main__":  # pragma: no cover
    unittest.main()
