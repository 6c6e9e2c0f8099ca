"""Shared test fixtures for reelcompose tests."""

import subprocess

import pytest
import imageio_ffmpeg
import yaml

_FFMPEG = imageio_ffmpeg.get_ffmpeg_exe()


def _render(out, video_src, audio=True):
    args = [_FFMPEG, "-y", "-f", "lavfi", "-i", video_src]
    if audio:
        args += ["-f", "lavfi", "-i", "anullsrc=r=44100:cl=mono", "-shortest"]
    args += ["-c:v", "libx264", "-crf", "28", "-pix_fmt", "yuv420p"]
    if audio:
        args += ["-c:a", "aac", "-b:a", "32k"]
    subprocess.run([*args, str(out)], check=True, capture_output=True)
    return out


@pytest.fixture
def source_video(tmp_path):
    """2-second landscape test video (320x240, 10fps) with audio."""
    return _render(tmp_path / "source.mp4", "color=c=blue:s=320x240:d=2:r=10")


@pytest.fixture
def silent_video(tmp_path):
    """2-second test video without an audio stream."""
    return _render(tmp_path / "silent.mp4", "color=c=green:s=320x240:d=2:r=10", audio=False)


@pytest.fixture
def portrait_video(tmp_path):
    """2-second portrait test video (240x426) with audio, like a phone recording."""
    return _render(tmp_path / "portrait.mp4", "color=c=red:s=240x426:d=2:r=10")


@pytest.fixture
def workspace(tmp_path):
    from reelcompose.workspace import RunWorkspace

    with RunWorkspace(tmp_path / "work", "run_test") as ws:
        yield ws


@pytest.fixture
def write_records(tmp_path):
    """Write a records YAML file from a dict and return its path."""
    def _write(data, name="records.yaml"):
        path = tmp_path / name
        path.write_text(yaml.safe_dump(data, sort_keys=False))
        return path
    return _write


@pytest.fixture
def write_settings(tmp_path):
    """Write a settings YAML file from a dict and return its path."""
    def _write(data, name="settings.yaml"):
        path = tmp_path / name
        path.write_text(yaml.safe_dump(data, sort_keys=False))
        return path
    return _write
