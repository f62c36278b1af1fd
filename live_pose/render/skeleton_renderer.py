"""Skeleton overlay built from the latest pose."""

import logging
from dataclasses import dataclass
from typing import Optional, Sequence, Tuple

import cv2
import numpy as np

from live_pose.config import INPUT_TENSOR_HEIGHT, INPUT_TENSOR_WIDTH, MIN_KEYPOINT_SCORE
from live_pose.pose.base import Keypoint, Pose
from live_pose.pose.skeleton import SKELETON_EDGES, SkeletonEdge, get_adjacent_keypoints

logger = logging.getLogger(__name__)

# BGR
POINT_COLOR = (255, 0, 0)
EDGE_COLOR = (255, 0, 255)


@dataclass(frozen=True)
class RenderablePose:
    """
    Drawable overlay of one pose.

    Attributes:
        points: Keypoints that passed the confidence filter.
        edges: (from, to) keypoint pairs whose both endpoints passed.
    """
    points: Tuple[Keypoint, ...] = ()
    edges: Tuple[Tuple[Keypoint, Keypoint], ...] = ()

    @property
    def is_empty(self) -> bool:
        return not self.points and not self.edges


EMPTY_OVERLAY = RenderablePose()


def render_pose(
    pose: Optional[Pose],
    edges: Sequence[SkeletonEdge] = SKELETON_EDGES,
    min_score: float = MIN_KEYPOINT_SCORE,
) -> RenderablePose:
    """
    Build the overlay for a pose.

    Keypoints with ``score > min_score`` become points; an edge is kept only
    when both of its endpoints are points. Pure and idempotent.

    Args:
        pose: Latest pose, or None before the first inference.
        edges: Skeleton edge table (part name pairs).
        min_score: Exclusive confidence threshold.

    Returns:
        RenderablePose (empty when there is no pose).
    """
    if pose is None:
        return EMPTY_OVERLAY

    points = tuple(kp for kp in pose.keypoints if kp.score > min_score)
    lines = get_adjacent_keypoints(pose.keypoints, min_score, edges)
    return RenderablePose(points=points, edges=tuple(lines))


def draw_overlay(
    image: np.ndarray,
    overlay: RenderablePose,
    source_size: Tuple[int, int] = (INPUT_TENSOR_WIDTH, INPUT_TENSOR_HEIGHT),
    point_radius: int = 2,
    line_thickness: int = 1,
    target_box: Optional[Tuple[int, int, int, int]] = None,
) -> np.ndarray:
    """
    Draw an overlay onto a copy of a display image.

    Keypoints live in tensor space; they are stretched onto ``target_box`` the
    same way that region of the camera frame was stretched into the tensor.

    Args:
        image: Display image (BGR).
        overlay: Overlay from ``render_pose``.
        source_size: (width, height) of the coordinate space of the overlay.
        point_radius: Radius of keypoint circles, in tensor-space pixels.
        line_thickness: Thickness of skeleton lines, in tensor-space pixels.
        target_box: (x0, y0, width, height) of the image region the tensor
            was taken from; the whole image when None.

    Returns:
        Image with the skeleton drawn.
    """
    output = image.copy()
    if overlay.is_empty:
        return output

    if target_box is None:
        target_box = (0, 0, output.shape[1], output.shape[0])
    x0, y0, w, h = target_box
    sx = w / source_size[0]
    sy = h / source_size[1]
    scale = max(1.0, min(sx, sy))

    def to_pixel(kp: Keypoint) -> Tuple[int, int]:
        return int(round(x0 + kp.x * sx)), int(round(y0 + kp.y * sy))

    for a, b in overlay.edges:
        cv2.line(
            output,
            to_pixel(a),
            to_pixel(b),
            EDGE_COLOR,
            max(1, int(round(line_thickness * scale))),
            cv2.LINE_AA,
        )

    for kp in overlay.points:
        cv2.circle(output, to_pixel(kp), max(1, int(round(point_radius * scale))), POINT_COLOR, -1)

    return output


def draw_status(image: np.ndarray, text: str) -> np.ndarray:
    """Write a status line (loading / ready / fps) in the top-left corner."""
    cv2.putText(
        image,
        text,
        (10, 30),
        cv2.FONT_HERSHEY_SIMPLEX,
        0.8,
        (0, 255, 0),
        2,
        cv2.LINE_AA,
    )
    return image
