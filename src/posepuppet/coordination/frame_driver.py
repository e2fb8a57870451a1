"""Per-frame cycle: estimate, update the skeleton, re-skin, publish."""

import asyncio
import logging
from typing import Any, Iterable, Optional

from posepuppet.coordination.session import PuppetSession
from posepuppet.core.clock import DeltaClock
from posepuppet.core.events import EventType
from posepuppet.estimation.pose import flip_face, flip_pose, to_face_frame
from posepuppet.skinning.illustration import RenderPath

logger = logging.getLogger(__name__)


class FrameDriver:
    """Runs frame cycles for one ``PuppetSession``.

    Cycle order:
      1. Await pose estimates, then face estimates (the only suspension points)
      2. Top-ranked pose, first face; no pose means an invalid frame
      3. Undo camera mirroring, reduce the face mesh to named keypoints
      4. Publish SKELETON_DATA for peers
      5. Update the illustration and publish FRAME_UPDATED or FRAME_INVALID

    Cycles never overlap: ``run`` awaits each one before starting the next.
    """

    def __init__(self, session: PuppetSession):
        self.session = session
        self.clock = DeltaClock()
        self.frame_index = 0
        self._running = False

    @property
    def running(self) -> bool:
        return self._running

    async def step(self, frame: Any) -> Optional[list[RenderPath]]:
        session = self.session
        index = self.frame_index
        self.frame_index += 1

        poses = await session.pose_estimator.estimate_poses(frame)
        faces = await session.face_estimator.estimate_faces(frame)

        if not poses:
            return self._invalid(index, "no pose")
        pose = poses[0]
        if session.flip_pose:
            flip_pose(pose)

        face = None
        if faces:
            prediction = faces[0]
            if session.flip_face:
                flip_face(prediction)
            face = to_face_frame(prediction)
        else:
            session.stats.faces_missing += 1
            logger.warning("No face detected")

        session.events.publish(EventType.SKELETON_DATA, pose=pose, face=face)

        illustration = session.illustration
        if not illustration.update_skeleton(pose, face):
            return self._invalid(index, "skeleton rejected frame")

        paths = illustration.render_paths()
        confidences = [p.confidence for p in paths]
        mean = sum(confidences) / len(confidences) if confidences else None
        session.stats.record_valid(mean)
        session.events.publish(EventType.FRAME_UPDATED, paths=paths, frame_index=index)
        return paths

    def _invalid(self, index: int, reason: str) -> None:
        logger.debug("Frame %d invalid: %s", index, reason)
        self.session.stats.record_invalid(reason)
        self.session.events.publish(EventType.FRAME_INVALID, frame_index=index, reason=reason)
        return None

    async def run(
        self,
        frames: Iterable[Any],
        max_frames: Optional[int] = None,
        target_fps: Optional[float] = None,
    ) -> int:
        """Drive ``frames`` sequentially until exhausted, stopped or capped.

        With ``target_fps`` each cycle is padded to 1/target_fps seconds;
        otherwise the loop only yields to other tasks between cycles.
        Returns the number of cycles run.
        """
        self._running = True
        self.clock.reset()
        self.session.events.publish(EventType.DRIVER_STARTED)
        count = 0
        try:
            for frame in frames:
                if not self._running:
                    break
                if max_frames is not None and count >= max_frames:
                    break
                await self.step(frame)
                count += 1
                await asyncio.sleep(self.clock.remaining(target_fps))
                self.session.stats.record_delta(self.clock.get_delta())
        finally:
            self._running = False
            self.session.events.publish(EventType.DRIVER_STOPPED, frames=count)
        return count

    def stop(self) -> None:
        """End the schedule once the current cycle completes."""
        self._running = False
