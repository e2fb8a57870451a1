"""Tests for binding and skinning a vector illustration."""

import numpy as np
import pytest

from posepuppet.core.math_utils import vec2
from posepuppet.estimation.pose import Keypoint, Pose
from posepuppet.loaders.vector_tree import PathSegment, VectorPath
from posepuppet.rig.skeleton import Skeleton
from posepuppet.skinning.illustration import PoseIllustration, bind_illustration


def _all_skinnings(illustration):
    for path in illustration.skinned_paths:
        for seg in path.segments:
            yield seg.point
            if seg.handle_in is not None:
                yield seg.handle_in
            if seg.handle_out is not None:
                yield seg.handle_out


def _path(illustration, name):
    for path in illustration.skinned_paths:
        if path.name == name:
            return path
    raise KeyError(name)


def test_bind_stats(illustration):
    stats = illustration.stats
    assert stats.paths == 4
    assert stats.groups == 1
    assert stats.skipped_groups == []
    assert len(illustration.skeleton.secondary_bones) == 1
    assert illustration.skeleton.secondary_bones[0].name == "topMid-rightTop0"


def test_weights_are_normalized(illustration):
    for skinning in _all_skinnings(illustration):
        weights = list(skinning.weight_map().values())
        assert weights, "every artwork point should be influenced by some bone"
        assert all(w >= 0.0 for w in weights)
        assert sum(weights) == pytest.approx(1.0)


def test_collinear_handles_share_anchor_weights(illustration):
    head = _path(illustration, "head")
    for seg in head.segments:
        assert seg.handle_in.weight_map() == seg.point.weight_map()
        assert seg.handle_out.weight_map() == seg.point.weight_map()
    arm = _path(illustration, "rightArm")
    middle = arm.segments[1]
    assert middle.handle_in.weight_map() == middle.point.weight_map()
    assert illustration.stats.shared_handle_weights >= 5


def test_point_on_bone_takes_full_weight(illustration):
    skeleton = illustration.skeleton
    bone = skeleton.bone("leftHip-leftKnee")
    weights = illustration.get_weights(vec2(240, 550), skeleton.bone_groups["leftLeg"])
    assert weights[bone.name].value == pytest.approx(1.0)
    assert next(iter(weights)) == bone.name


def test_single_bone_binding_follows_translation():
    config = {
        "bodyBones": [["leftShoulder", "leftElbow"]],
        "boneGroups": {"arm": ["leftShoulder-leftElbow"]},
    }
    skeleton = Skeleton({"leftShoulder": (0.0, 0.0), "leftElbow": (100.0, 0.0)}, config)
    illustration = PoseIllustration(skeleton, influence_radius=1.0)
    skinned = illustration.bind_path_to_bones(
        VectorPath(name="band", segments=[PathSegment((50, 0)), PathSegment((50, 40))]),
    )
    anchor = skinned.segments[0].point
    assert anchor.weight_map() == {"leftShoulder-leftElbow": 1.0}
    assert skinned.segments[1].point.is_fixed

    pose = Pose([
        Keypoint("leftShoulder", (10.0, 10.0), 0.9),
        Keypoint("leftElbow", (110.0, 10.0), 0.9),
        Keypoint("leftEar", (10.0, -40.0), 0.9),
        Keypoint("rightEar", (30.0, -40.0), 0.9),
    ], 0.9)
    assert illustration.update_skeleton(pose, None)
    np.testing.assert_array_almost_equal(anchor.current_position, [60, 10])
    np.testing.assert_array_equal(skinned.segments[1].point.current_position, [50, 40])


def test_influence_radius_excludes_far_bones(illustration):
    skeleton = illustration.skeleton
    illustration.influence_radius = 5.0
    assert illustration.get_weights(vec2(1000, 1000), skeleton.bones) == {}


def test_rest_frame_reproduces_artwork(illustration, pose_factory, face_factory):
    assert illustration.update_skeleton(pose_factory(), face_factory())
    for skinning in _all_skinnings(illustration):
        np.testing.assert_array_almost_equal(skinning.current_position, skinning.position)


def test_translation_moves_every_point(illustration, pose_factory, face_factory):
    assert illustration.update_skeleton(pose_factory(offset=(10, 10)), face_factory(offset=(10, 10)))
    for skinning in _all_skinnings(illustration):
        np.testing.assert_array_almost_equal(
            skinning.current_position, skinning.position + vec2(10, 10),
        )
    paths = illustration.render_paths()
    assert len(paths) == 4
    brim = next(p for p in paths if p.name == "brim")
    np.testing.assert_array_almost_equal(brim.segments[0].point, (190, 170))


def test_render_paths_keep_relative_handles(illustration, pose_factory, face_factory):
    illustration.update_skeleton(pose_factory(offset=(10, 10)), face_factory(offset=(10, 10)))
    arm = next(p for p in illustration.render_paths() if p.name == "rightArm")
    assert arm.segments[0].handle_in is None
    np.testing.assert_array_almost_equal(arm.segments[0].handle_out, (-10, 25))
    assert not arm.closed
    assert len(list(arm.iter_curves())) == 2


def test_invalid_frame_keeps_geometry(illustration, pose_factory, face_factory):
    illustration.update_skeleton(pose_factory(offset=(10, 10)), face_factory(offset=(10, 10)))
    before = [s.current_position.copy() for s in _all_skinnings(illustration)]
    assert not illustration.update_skeleton(pose_factory(offset=(80, 0), score=0.05), None)
    assert illustration.render_paths() is None
    for b, skinning in zip(before, _all_skinnings(illustration)):
        np.testing.assert_array_equal(skinning.current_position, b)


def test_unbound_point_stays_at_rest(illustration, pose_factory, face_factory):
    illustration.influence_radius = 5.0
    far = VectorPath(name="far", segments=[PathSegment((900, 900)), PathSegment((950, 900))])
    skinned = illustration.bind_path_to_bones(far)
    assert skinned.segments[0].point.is_fixed
    illustration.update_skeleton(pose_factory(offset=(10, 10)), face_factory(offset=(10, 10)))
    np.testing.assert_array_equal(skinned.segments[0].point.current_position, [900, 900])


def test_low_confidence_paths(illustration, pose_factory, face_factory):
    illustration.update_skeleton(pose_factory(part_score=0.1), face_factory(confidence=0.95))
    low = {p.name for p in illustration.low_confidence_paths()}
    assert "torso" in low
    assert "head" not in low
    assert _path(illustration, "head").confidence == pytest.approx(0.95)


def test_skinning_color_in_range(illustration):
    for skinning in _all_skinnings(illustration):
        assert all(0.0 <= c <= 1.0 + 1e-9 for c in illustration.skinning_color(skinning))


def test_copy_for_peer_is_independent(illustration, pose_factory, face_factory):
    peer = illustration.copy_for_peer()
    assert peer.skeleton is not illustration.skeleton
    peer.update_skeleton(pose_factory(offset=(50, 0)), face_factory(offset=(50, 0)))
    assert peer.skeleton.is_valid
    assert not illustration.skeleton.is_valid
    for skinning in _all_skinnings(illustration):
        np.testing.assert_array_equal(skinning.current_position, skinning.position)


def test_bind_illustration_builds_skeleton(asset_factory):
    illustration = bind_illustration(asset_factory(), influence_radius=500.0)
    assert isinstance(illustration, PoseIllustration)
    assert isinstance(illustration.skeleton, Skeleton)
    assert illustration.influence_radius == 500.0
    assert illustration.stats.paths == 4
