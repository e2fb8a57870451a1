"""Explicit per-puppet context: oracles, illustration and event bus."""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from posepuppet.core.events import EventBus
from posepuppet.core.state import SessionStats
from posepuppet.estimation.pose import FaceEstimator, PoseEstimator
from posepuppet.loaders.svg_loader import load_svg
from posepuppet.skinning.illustration import PoseIllustration, bind_illustration

logger = logging.getLogger(__name__)


@dataclass
class PuppetSession:
    """Everything one animated character needs.

    ``flip_pose`` / ``flip_face`` undo a mirrored (selfie) camera by swapping
    left/right keypoint names before the skeleton sees them.
    """
    pose_estimator: PoseEstimator
    face_estimator: FaceEstimator
    illustration: PoseIllustration
    events: EventBus = field(default_factory=EventBus)
    stats: SessionStats = field(default_factory=SessionStats)
    flip_pose: bool = True
    flip_face: bool = False

    @classmethod
    def from_svg(
        cls,
        path: Path,
        pose_estimator: PoseEstimator,
        face_estimator: FaceEstimator,
        influence_radius: Optional[float] = None,
        **kwargs,
    ) -> "PuppetSession":
        """Load a character asset and bind it in one step."""
        root = load_svg(path)
        illustration = bind_illustration(root, influence_radius=influence_radius)
        logger.info("Session ready for %s", path)
        return cls(pose_estimator, face_estimator, illustration, **kwargs)

    def peer(self, pose_estimator: PoseEstimator, face_estimator: FaceEstimator) -> "PuppetSession":
        """Second session over a copy of this illustration, for a remote peer."""
        return PuppetSession(
            pose_estimator,
            face_estimator,
            self.illustration.copy_for_peer(),
            flip_pose=self.flip_pose,
            flip_face=self.flip_face,
        )
