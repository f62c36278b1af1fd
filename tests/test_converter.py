"""Tests for frame to tensor conversion and tensor lifecycle."""

import numpy as np
import pytest

from live_pose.camera.frame_source import Frame
from live_pose.errors import ConversionError, TensorReleasedError
from live_pose.tensor.converter import InputTensor, TensorConverter, TensorTracker


def test_convert_camera_texture_to_model_shape(converter, tracker):
    image = np.random.default_rng(0).integers(0, 256, size=(1920, 1080, 3), dtype=np.uint8)

    tensor = converter.convert(image)

    assert tensor.shape == (200, 152, 3)
    assert tensor.data.shape == (200, 152, 3)
    assert tensor.data.dtype == np.int32
    assert tracker.created == 1
    assert tracker.live == 1
    tensor.release()
    assert tracker.live == 0


@pytest.mark.parametrize("size", [(240, 320), (200, 152), (10, 10), (1080, 1920)])
def test_any_valid_frame_size_gives_fixed_shape(converter, size):
    frame = Frame(image=np.zeros((*size, 3), dtype=np.uint8))

    tensor = converter.convert(frame)

    assert tensor.shape == converter.shape == (200, 152, 3)
    tensor.release()


def test_convert_swaps_bgr_to_rgb(converter):
    image = np.zeros((100, 100, 3), dtype=np.uint8)
    image[..., 0] = 255  # blue in BGR

    tensor = converter.convert(image)

    assert np.all(tensor.data[..., 2] == 255)
    assert np.all(tensor.data[..., 0] == 0)
    tensor.release()


@pytest.mark.parametrize(
    "image",
    [
        None,
        np.zeros((100, 100), dtype=np.uint8),
        np.zeros((100, 100, 4), dtype=np.uint8),
        np.zeros((100, 100, 1), dtype=np.uint8),
        np.zeros((0, 100, 3), dtype=np.uint8),
        np.zeros((100, 0, 3), dtype=np.uint8),
    ],
    ids=["none", "grayscale", "rgba", "single-channel", "zero-height", "zero-width"],
)
def test_malformed_frame_raises_without_allocating(converter, tracker, image):
    with pytest.raises(ConversionError):
        converter.convert(image)

    assert tracker.created == 0
    assert tracker.live == 0


def test_crop_to_aspect_keeps_center(tracker):
    converter = TensorConverter(crop_to_aspect=True, tracker=tracker)
    image = np.full((200, 400, 3), 255, dtype=np.uint8)
    # 200 * 152 / 200 = 152 columns survive the crop, centered
    image[:, 124:276] = 0

    tensor = converter.convert(image)

    assert tensor.data.max() == 0
    tensor.release()


@pytest.mark.parametrize("crop,frame_size,box", [
    (False, (400, 200), (0, 0, 400, 200)),
    (True, (400, 200), (124, 0, 152, 200)),
    (True, (1080, 1920), (0, 249, 1080, 1421)),
    (True, (152, 200), (0, 0, 152, 200)),
])
def test_crop_box(crop, frame_size, box):
    converter = TensorConverter(crop_to_aspect=crop)

    assert converter.crop_box(*frame_size) == box


def test_release_twice_raises(tracker):
    tensor = InputTensor(np.zeros((200, 152, 3), dtype=np.int32), tracker=tracker)
    tensor.release()

    with pytest.raises(TensorReleasedError):
        tensor.release()
    assert tracker.released == 1


def test_use_after_release_raises():
    tensor = InputTensor(np.zeros((2, 2, 3), dtype=np.int32))
    tensor.release()

    assert tensor.released
    with pytest.raises(TensorReleasedError):
        tensor.data


def test_tracker_counts_and_reset():
    tracker = TensorTracker()
    tensors = [InputTensor(np.zeros((1, 1, 3)), tracker=tracker) for _ in range(3)]
    tensors[0].release()

    assert (tracker.created, tracker.released, tracker.live) == (3, 1, 2)

    tracker.reset()
    assert tracker.live == 0
