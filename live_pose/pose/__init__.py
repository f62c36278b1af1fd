"""Pose estimation module with pluggable backends."""

from live_pose.pose.base import PART_NAMES, Keypoint, Pose, PoseModel
from live_pose.pose.factory import create_pose_model
from live_pose.pose.skeleton import SKELETON_EDGES, get_adjacent_keypoints

__all__ = [
    "PART_NAMES",
    "Keypoint",
    "Pose",
    "PoseModel",
    "SKELETON_EDGES",
    "create_pose_model",
    "get_adjacent_keypoints",
]
