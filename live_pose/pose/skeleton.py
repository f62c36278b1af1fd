"""Static skeleton topology of the PoseNet part set."""

from typing import List, Sequence, Tuple

from live_pose.pose.base import Keypoint

SkeletonEdge = Tuple[str, str]

SKELETON_EDGES: Tuple[SkeletonEdge, ...] = (
    ("leftHip", "leftShoulder"),
    ("leftElbow", "leftShoulder"),
    ("leftElbow", "leftWrist"),
    ("leftHip", "leftKnee"),
    ("leftKnee", "leftAnkle"),
    ("rightHip", "rightShoulder"),
    ("rightElbow", "rightShoulder"),
    ("rightElbow", "rightWrist"),
    ("rightHip", "rightKnee"),
    ("rightKnee", "rightAnkle"),
    ("leftShoulder", "rightShoulder"),
    ("leftHip", "rightHip"),
)


def get_adjacent_keypoints(
    keypoints: Sequence[Keypoint],
    min_score: float,
    edges: Sequence[SkeletonEdge] = SKELETON_EDGES,
) -> List[Tuple[Keypoint, Keypoint]]:
    """
    Pairs of connected keypoints whose scores are both above ``min_score``.

    Args:
        keypoints: Keypoints of one pose.
        min_score: Exclusive score threshold.
        edges: Part name pairs to consider.

    Returns:
        (from, to) keypoint pairs, in edge table order.
    """
    by_part = {kp.part: kp for kp in keypoints}
    pairs = []
    for part_a, part_b in edges:
        a = by_part.get(part_a)
        b = by_part.get(part_b)
        if a is None or b is None:
            continue
        if a.score > min_score and b.score > min_score:
            pairs.append((a, b))
    return pairs
