from __future__ import annotations
import time
import threading
from typing import Callable, Optional

import cv2
import numpy as np
import mediapipe as mp

from lungecoach.common.events import RepCompleted
from lungecoach.counter.detector import LungeConfig, LungeRepDetector

# Overlay text anchors, relative to the displayed frame
_LEFT_TEXT_POS = (0.10, 0.12)
_RIGHT_TEXT_POS = (0.40, 0.12)
_QUALITY_TEXT_POS = (0.15, 0.90)


def _to_px(rel, width: int, height: int):
    return int(rel[0] * width), int(rel[1] * height)


def draw_overlay(frame: np.ndarray, landmarks, detector: LungeRepDetector) -> np.ndarray:
    """Draw landmarks, per-leg counters and the quality label onto a BGR frame in place.

    Landmarks stay normalized everywhere else; this is the only place they are mapped to pixels.
    """
    h, w = frame.shape[:2]
    if landmarks is not None:
        for lm in landmarks:
            cv2.circle(frame, (int(lm.x * w), int(lm.y * h)), 4, (0, 255, 255), -1)

    scale = max(0.6, h / 720.0)
    thickness = max(1, int(round(2 * scale)))
    red = (0, 0, 255)
    cv2.putText(frame, f"Left: {detector.left_count}", _to_px(_LEFT_TEXT_POS, w, h),
                cv2.FONT_HERSHEY_SIMPLEX, scale, red, thickness)
    cv2.putText(frame, f"Right: {detector.right_count}", _to_px(_RIGHT_TEXT_POS, w, h),
                cv2.FONT_HERSHEY_SIMPLEX, scale, red, thickness)
    text = detector.quality.display
    if text:
        cv2.putText(frame, text, _to_px(_QUALITY_TEXT_POS, w, h),
                    cv2.FONT_HERSHEY_SIMPLEX, scale, red, thickness)
    return frame


class PosePipeline(threading.Thread):
    def __init__(
            self,
            cfg: LungeConfig,
            on_rep: Callable[[RepCompleted], None],
            camera_index: int = 0,
            show_window: bool = False,
            on_error: Optional[Callable[[str], None]] = None,
            debug_cb: Optional[Callable[[dict], None]] = None,
    ):
        super().__init__(daemon=True)
        self.cfg = cfg
        self.on_rep = on_rep
        self.camera_index = camera_index
        self.show_window = show_window
        self.on_error = on_error
        self._stop_evt = threading.Event()
        self._paused = threading.Event()
        # owned by this thread only
        self.detector = LungeRepDetector(cfg, debug_cb=debug_cb)
        self.cap = None
        self.pose = None

    def run(self):
        mp_pose = mp.solutions.pose

        try:
            self.cap = cv2.VideoCapture(self.camera_index)
            if not self.cap.isOpened():
                raise RuntimeError("Webcam not available")

            self.pose = mp_pose.Pose(min_detection_confidence=0.5, min_tracking_confidence=0.5)

            if self.show_window:
                try:
                    cv2.namedWindow("Lunges", cv2.WINDOW_NORMAL)
                except cv2.error:
                    # headless build
                    self.show_window = False

            while not self._stop_evt.is_set():
                if self._paused.is_set():
                    time.sleep(0.05)
                    continue
                ok, frame = self.cap.read()
                if not ok:
                    time.sleep(0.01)
                    continue
                image = cv2.cvtColor(frame, cv2.COLOR_BGR2RGB)
                res = self.pose.process(image)
                landmarks = None
                if res.pose_landmarks:
                    landmarks = res.pose_landmarks.landmark
                    rep = self.detector.step(landmarks)
                    if rep is not None:
                        self.on_rep(rep)

                if self.show_window:
                    draw_overlay(frame, landmarks, self.detector)
                    cv2.imshow("Lunges", frame)
                    if cv2.waitKey(1) & 0xFF == ord("q"):
                        break
        except Exception as e:
            # surface error to manager
            if self.on_error:
                self.on_error(str(e))
            else:
                print("PosePipeline error:", e)
        finally:
            if self.cap is not None:
                self.cap.release()
            if self.pose is not None:
                self.pose.close()
            if self.show_window:
                cv2.destroyAllWindows()

    def stop(self):
        self._stop_evt.set()

    def pause(self):
        self._paused.set()

    def resume(self):
        self._paused.clear()
