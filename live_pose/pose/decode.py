"""Decoding of PoseNet heatmap/offset outputs into a single pose."""

from typing import Optional, Sequence

import numpy as np

from live_pose.errors import InferenceError
from live_pose.pose.base import NUM_KEYPOINTS, PART_NAMES, Keypoint, Pose


def sigmoid(x: np.ndarray) -> np.ndarray:
    return 1.0 / (1.0 + np.exp(-x))


def argmax_2d(scores: np.ndarray) -> np.ndarray:
    """
    Location of the maximum of each channel.

    Args:
        scores: Array of shape (H, W, K).

    Returns:
        Integer array of shape (K, 2) with (y, x) per channel.
    """
    height, width, depth = scores.shape
    flat = scores.reshape(height * width, depth).argmax(axis=0)
    return np.stack([flat // width, flat % width], axis=-1)


def decode_single_pose(
    heatmap_scores: np.ndarray,
    offsets: np.ndarray,
    output_stride: int,
    input_size: Optional[Sequence[int]] = None,
    flip_horizontal: bool = False,
) -> Pose:
    """
    Decode the strongest pose from PoseNet outputs.

    Each part is placed at its highest-scoring heatmap cell, refined by the
    offset vector stored at that cell.

    Args:
        heatmap_scores: Heatmap probabilities, shape (h, w, 17).
        offsets: Offset vectors, shape (h, w, 34); y offsets in the first 17
            channels, x offsets in the last 17.
        output_stride: Stride between heatmap cells in input pixels.
        input_size: (width, height) of the model input, used for clamping
            and horizontal flipping.
        flip_horizontal: Mirror x coordinates.

    Returns:
        Pose with 17 keypoints; pose score is the mean keypoint score.
    """
    if heatmap_scores.ndim == 4:
        heatmap_scores = heatmap_scores[0]
    if offsets.ndim == 4:
        offsets = offsets[0]

    if heatmap_scores.ndim != 3 or heatmap_scores.shape[-1] != NUM_KEYPOINTS:
        raise InferenceError(f"Unexpected heatmap shape {heatmap_scores.shape}")
    if offsets.shape[:2] != heatmap_scores.shape[:2] or offsets.shape[-1] != 2 * NUM_KEYPOINTS:
        raise InferenceError(f"Unexpected offsets shape {offsets.shape}")

    coords = argmax_2d(heatmap_scores)
    parts = np.arange(NUM_KEYPOINTS)
    ys, xs = coords[:, 0], coords[:, 1]

    scores = heatmap_scores[ys, xs, parts]
    offset_y = offsets[ys, xs, parts]
    offset_x = offsets[ys, xs, parts + NUM_KEYPOINTS]

    pos_y = ys * output_stride + offset_y
    pos_x = xs * output_stride + offset_x

    if not (np.all(np.isfinite(pos_x)) and np.all(np.isfinite(pos_y)) and np.all(np.isfinite(scores))):
        raise InferenceError("Model produced non-finite keypoints")

    if input_size is not None:
        width, height = input_size
        pos_x = np.clip(pos_x, 0, width - 1)
        pos_y = np.clip(pos_y, 0, height - 1)
        if flip_horizontal:
            pos_x = (width - 1) - pos_x

    keypoints = [
        Keypoint(
            part=PART_NAMES[i],
            x=float(pos_x[i]),
            y=float(pos_y[i]),
            score=float(scores[i]),
            index=i,
        )
        for i in range(NUM_KEYPOINTS)
    ]
    return Pose.from_keypoints(keypoints)
