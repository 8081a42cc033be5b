"""
Tests for the host image resize path with watermarking.

Run with: python -m pytest tests/test_processing.py -v
"""

import io
import sys
from pathlib import Path

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

import numpy as np
import pytest
from PIL import Image

from imgwm import config
from imgwm.core.engine import WorkingImage
from imgwm.core.imagedata import ImageData, set_watermark
from imgwm.core.options import (
    GravityOptions, GravityType, ImageType, ProcessingOptions, ResizeType, WatermarkOptions
)
from imgwm.core.processing import frame_pipeline, main_pipeline, process_image
from imgwm.core.watermark import watermark
from imgwm.errors import LoadError

RED = (255, 0, 0)
FRAME_COLORS = [(0, 255, 0), (0, 0, 255), (255, 255, 0)]


def encode(img: Image.Image, fmt: str = "PNG") -> ImageData:
    buffer = io.BytesIO()
    img.save(buffer, format=fmt)
    return ImageData.from_bytes(buffer.getvalue())


def create_animated_gif(colors, width: int = 40, height: int = 30) -> ImageData:
    frames = [Image.new("RGB", (width, height), color) for color in colors]
    buffer = io.BytesIO()
    frames[0].save(buffer, format="GIF", save_all=True, append_images=frames[1:],
                   duration=80, loop=0)
    return ImageData.from_bytes(buffer.getvalue())


def north_west_watermark(**kwargs) -> WatermarkOptions:
    return WatermarkOptions(enabled=True, gravity=GravityOptions(GravityType.NORTH_WEST), **kwargs)


@pytest.fixture(autouse=True)
def reset_state():
    config.reset()
    set_watermark(encode(Image.new("RGBA", (10, 10), (*RED, 255))))
    yield
    config.reset()
    set_watermark(None)


def test_main_pipeline_ends_with_watermark():
    stages = list(main_pipeline)
    assert stages[-1] is watermark
    assert watermark not in list(frame_pipeline)


def test_still_image_is_resized_then_watermarked():
    data = encode(Image.new("RGB", (400, 300), (0, 0, 0)))
    po = ProcessingOptions(width=200, height=150, watermark=north_west_watermark())

    with process_image(data, po) as img:
        assert (img.width(), img.height()) == (200, 150)
        arr = np.asarray(img.image)
        assert tuple(arr[0, 0]) == RED
        assert tuple(arr[9, 9]) == RED
        assert tuple(arr[10, 10]) == (0, 0, 0)


def test_fill_resize_crops_to_target():
    data = encode(Image.new("RGB", (400, 200), (10, 10, 10)), "JPEG")
    po = ProcessingOptions(width=100, height=100, resizing_type=ResizeType.FILL)

    with process_image(data, po) as img:
        assert (img.width(), img.height()) == (100, 100)


def test_animated_image_watermarks_every_frame():
    data = create_animated_gif(FRAME_COLORS)
    po = ProcessingOptions(watermark=north_west_watermark())

    with process_image(data, po) as img:
        assert img.frames_count() == 3
        assert (img.width(), img.height()) == (40, 90)

        arr = np.asarray(img.image)
        for index, color in enumerate(FRAME_COLORS):
            top = index * 30
            assert tuple(arr[top, 0, :3]) == RED
            assert tuple(arr[top + 29, 39, :3]) == color


def test_animated_image_resizes_each_frame():
    data = create_animated_gif(FRAME_COLORS)
    po = ProcessingOptions(width=20)

    with process_image(data, po) as img:
        assert img.frames_count() == 3
        assert (img.width(), img.height()) == (20, 45)
        assert img.frame_height() == 15


def test_animated_replicated_watermark_blends_once(monkeypatch):
    calls = []
    original = WorkingImage.apply_watermark

    def recording(self, wm, left, top, opacity):
        calls.append((left, top, wm.width(), wm.height()))
        return original(self, wm, left, top, opacity)

    monkeypatch.setattr(WorkingImage, "apply_watermark", recording)

    data = create_animated_gif(FRAME_COLORS)
    po = ProcessingOptions(watermark=WatermarkOptions(enabled=True, replicate=True))

    with process_image(data, po) as img:
        assert calls == [(0, 0, 40, 90)]
        arr = np.asarray(img.image)
        assert (arr[..., 0] == 255).all()
        assert (arr[..., 1] == 0).all()


def test_animated_output_encodes_as_animation():
    data = create_animated_gif(FRAME_COLORS)
    po = ProcessingOptions(watermark=north_west_watermark())

    with process_image(data, po) as img:
        encoded = img.save(ImageType.GIF)

    with Image.open(io.BytesIO(encoded)) as decoded:
        assert decoded.n_frames == 3


def test_undecodable_host_raises_load_error():
    with pytest.raises(LoadError):
        process_image(ImageData(b"garbage", ImageType.JPEG), ProcessingOptions())
