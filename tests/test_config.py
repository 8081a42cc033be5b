"""
Tests for configuration and the process-wide watermark source.

Run with: python -m pytest tests/test_config.py -v
"""

import base64
import io
import sys
from pathlib import Path

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

import pytest
from PIL import Image

from imgwm import config
from imgwm.core import imagedata
from imgwm.core.options import ImageType
from imgwm.errors import ConfigError, LoadError


def create_png_bytes() -> bytes:
    buffer = io.BytesIO()
    Image.new("RGBA", (8, 8), (255, 0, 0, 128)).save(buffer, format="PNG")
    return buffer.getvalue()


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ("IMGWM_WATERMARK_OPACITY", "IMGWM_WATERMARK_DATA",
                 "IMGWM_WATERMARK_PATH", "IMGWM_DISABLE_SHRINK_ON_LOAD"):
        monkeypatch.delenv(name, raising=False)
    config.reset()
    imagedata.set_watermark(None)
    yield
    config.reset()
    imagedata.set_watermark(None)


def test_defaults():
    config.configure()
    assert config.WATERMARK_OPACITY == 1.0
    assert config.DISABLE_SHRINK_ON_LOAD is False
    assert imagedata.init_watermark() is None


def test_opacity_from_environment(monkeypatch):
    monkeypatch.setenv("IMGWM_WATERMARK_OPACITY", "0.4")
    config.configure()
    assert config.WATERMARK_OPACITY == 0.4


@pytest.mark.parametrize("value", ["0", "-0.5", "1.5", "not-a-number"])
def test_invalid_opacity_is_rejected(monkeypatch, value):
    monkeypatch.setenv("IMGWM_WATERMARK_OPACITY", value)
    with pytest.raises(ConfigError):
        config.configure()
    assert config.WATERMARK_OPACITY == 1.0


def test_shrink_on_load_flag(monkeypatch):
    monkeypatch.setenv("IMGWM_DISABLE_SHRINK_ON_LOAD", "true")
    config.configure()
    assert config.DISABLE_SHRINK_ON_LOAD is True


def test_watermark_from_path(monkeypatch, tmp_path: Path):
    path = tmp_path / "mark.png"
    path.write_bytes(create_png_bytes())
    monkeypatch.setenv("IMGWM_WATERMARK_PATH", str(path))

    config.configure()
    loaded = imagedata.init_watermark()

    assert loaded is not None
    assert loaded.type == ImageType.PNG
    assert imagedata.get_watermark() is loaded


def test_inline_watermark_takes_precedence(monkeypatch, tmp_path: Path):
    monkeypatch.setenv("IMGWM_WATERMARK_DATA", base64.b64encode(create_png_bytes()).decode())
    monkeypatch.setenv("IMGWM_WATERMARK_PATH", str(tmp_path / "missing.png"))

    config.configure()
    loaded = imagedata.init_watermark()

    assert loaded is not None
    assert loaded.data == create_png_bytes()


def test_missing_watermark_file_fails(monkeypatch, tmp_path: Path):
    monkeypatch.setenv("IMGWM_WATERMARK_PATH", str(tmp_path / "missing.png"))
    config.configure()

    with pytest.raises(LoadError):
        imagedata.init_watermark()


def test_invalid_inline_watermark_fails(monkeypatch):
    monkeypatch.setenv("IMGWM_WATERMARK_DATA", "!!! not base64 !!!")
    config.configure()

    with pytest.raises(LoadError):
        imagedata.init_watermark()
