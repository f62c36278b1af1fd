"""Tests for the command-line interface."""

import json
import logging

import cv2
import numpy as np
import pytest
from click.testing import CliRunner

from cli import _apply_overrides, cli
from conftest import FakePoseModel, make_pose
from live_pose import __version__
from live_pose.config import AppConfig, CameraFacing


@pytest.fixture(autouse=True)
def restore_root_logging():
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture
def no_config(tmp_path):
    return str(tmp_path / "none.yaml")


def test_version(runner, no_config):
    result = runner.invoke(cli, ["-c", no_config, "version"])

    assert result.exit_code == 0
    assert __version__ in result.output


def test_info_prints_config(runner, tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text("render:\n  min_score: 0.4\n")

    result = runner.invoke(cli, ["-c", str(path), "info"])

    assert result.exit_code == 0
    data = json.loads(result.output)
    assert data["render"]["min_score"] == 0.4
    assert data["camera"]["facing"] == "front"


def test_invalid_config_is_reported(runner, tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text("model:\n  output_stride: 7\n")

    result = runner.invoke(cli, ["-c", str(path), "info"])

    assert result.exit_code != 0
    assert "output stride" in result.output


def test_overrides():
    config = _apply_overrides(AppConfig(), backend="mediapipe", facing="back", min_score=0.5)

    assert config.model.backend == "mediapipe"
    assert config.camera.facing is CameraFacing.BACK
    assert config.render.min_score == 0.5
    assert config.model.model_path is None


def test_image_writes_overlay(runner, tmp_path, no_config, monkeypatch):
    model = FakePoseModel(pose=make_pose({"leftKnee": 0.2}))
    monkeypatch.setattr("live_pose.pipeline.session.create_pose_model", lambda config: model)
    image_path = tmp_path / "person.png"
    cv2.imwrite(str(image_path), np.zeros((400, 304, 3), dtype=np.uint8))

    result = runner.invoke(cli, ["-c", no_config, "image", str(image_path), "--json"])

    assert result.exit_code == 0, result.output
    output_path = tmp_path / "person_pose.png"
    assert output_path.exists()
    assert cv2.imread(str(output_path)).any()
    assert "16 keypoints" in result.output
    assert '"leftKnee"' in result.output


def test_image_unreadable(runner, tmp_path, no_config):
    image_path = tmp_path / "broken.png"
    image_path.write_bytes(b"not an image")

    result = runner.invoke(cli, ["-c", no_config, "image", str(image_path)])

    assert result.exit_code == 1
    assert "Could not read image" in result.output
