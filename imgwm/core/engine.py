"""
Image Engine V1.0
=================
Pillow-backed working image used by every processing stage.

Technical Notes:
- WorkingImage is a mutable handle: every operation replaces the wrapped
  PIL image in place, so stages can be chained over a single object
- Animated images are held as vertically stacked frames of equal height
- A freshly decoded image is SEQUENTIAL: as an overlay it may be read only
  once. copy_memory() makes it random-access for tiling or repeated blends
- Blending is Pillow alpha compositing with the overlay alpha scaled by
  the requested opacity
- Use as a context manager (or call clear()) to release pixel memory on
  every exit path
"""

import io
import logging
import math
from typing import List, Optional

from PIL import Image, ImageCms, ImageSequence, UnidentifiedImageError

from ..errors import BlendError, LoadError, ReplicationError, TransformError, WatermarkError
from .imagedata import ImageData
from .options import ImageType

logger = logging.getLogger(__name__)

ORIENTATION_TAG = 0x0112

# Modes convertible without losing transparency
_ALPHA_MODES = ("RGBA", "LA", "PA", "RGBa", "La")

# Clockwise angle -> Pillow transpose (Pillow rotates counter-clockwise)
_ROTATIONS = {
    90: Image.Transpose.ROTATE_270,
    180: Image.Transpose.ROTATE_180,
    270: Image.Transpose.ROTATE_90,
}


def _has_alpha(image: Image.Image) -> bool:
    if image.mode in _ALPHA_MODES:
        return True
    # Palette, grey and RGB images may carry a transparent colour key (tRNS)
    return "transparency" in image.info


def _to_rgb_family(image: Image.Image) -> Image.Image:
    if image.mode == "RGBA" or (image.mode == "RGB" and not _has_alpha(image)):
        return image
    return image.convert("RGBA" if _has_alpha(image) else "RGB")


class WorkingImage:
    """
    A decoded image being transformed by the processing pipeline.

    The handle owns its pixel data; callers release it with clear() or by
    using the handle as a context manager.
    """

    def __init__(self, image: Optional[Image.Image] = None, frames: int = 1):
        """
        Initialize the working image.

        Args:
            image: Optional already-decoded PIL image to wrap. Wrapped images
                   are treated as random-access.
            frames: Number of vertically stacked frames in `image`.
        """
        self._image = image
        self._frames = frames
        self._delays: List[int] = []
        self._loop = 0
        self._icc_imported = False
        self._random_access = image is not None
        self._reads = 0

    def __enter__(self) -> "WorkingImage":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.clear()

    @property
    def image(self) -> Image.Image:
        if self._image is None:
            raise WatermarkError("Working image is not loaded")
        return self._image

    # ===== Loading =====

    def load(self, image_data: ImageData, shrink: int = 1, pages: int = 1, page: int = 0) -> None:
        """
        Decode image data into this handle, replacing any previous content.

        Args:
            image_data: Encoded image bytes.
            shrink: Decode-time downscale factor (JPEG only: 2, 4 or 8).
            pages: Number of frames to load; -1 loads all remaining frames.
            page: Index of the first frame to load.

        Raises:
            LoadError: If the data cannot be decoded.
        """
        self.clear()

        try:
            source = Image.open(io.BytesIO(image_data.data))

            if shrink > 1 and source.format == "JPEG":
                source.draft(
                    source.mode,
                    (math.ceil(source.width / shrink), math.ceil(source.height / shrink))
                )

            total = getattr(source, "n_frames", 1)
            if page >= total:
                raise LoadError(f"Page {page} is out of range, image has {total} frames")

            count = total - page if pages < 0 else min(pages, total - page)

            if count <= 1:
                if page:
                    source.seek(page)
                source.load()
                self._image = source
                self._frames = 1
            else:
                self._image = self._stack_frames(source, page, count)
                self._frames = count
                source.close()

        except (UnidentifiedImageError, Image.DecompressionBombError, OSError, EOFError, ValueError) as e:
            self.clear()
            raise LoadError(f"Cannot load {image_data.type.value} image: {e}") from e

        self._random_access = False
        self._reads = 0
        self._icc_imported = False

        logger.debug("Loaded %s image %dx%d with %d frame(s)",
                     image_data.type.value, self._image.width, self._image.height, self._frames)

    def _stack_frames(self, source: Image.Image, page: int, count: int) -> Image.Image:
        frames = []
        self._delays = []
        for index, frame in enumerate(ImageSequence.Iterator(source)):
            if index < page:
                continue
            if len(frames) == count:
                break
            self._delays.append(int(frame.info.get("duration", 0)))
            frames.append(frame.convert("RGBA"))

        self._loop = int(source.info.get("loop", 0))

        width, height = frames[0].size
        stacked = Image.new("RGBA", (width, height * len(frames)), (0, 0, 0, 0))
        for index, frame in enumerate(frames):
            stacked.paste(frame, (0, index * height))
            frame.close()

        stacked.info = {
            key: value for key, value in source.info.items()
            if key in ("icc_profile", "exif")
        }
        return stacked

    # ===== Introspection =====

    def width(self) -> int:
        return self.image.width

    def height(self) -> int:
        return self.image.height

    def frames_count(self) -> int:
        return self._frames

    def frame_height(self) -> int:
        return self.image.height // self._frames

    def has_alpha(self) -> bool:
        return _has_alpha(self.image)

    def is_random_access(self) -> bool:
        return self._random_access

    def colour_profile_imported(self) -> bool:
        return self._icc_imported

    def orientation(self) -> int:
        """EXIF orientation value (1-8), 1 when absent."""
        value = self.image.getexif().get(ORIENTATION_TAG, 1)
        return value if isinstance(value, int) and 1 <= value <= 8 else 1

    # ===== Geometry =====

    def resize(self, wscale: float, hscale: float) -> None:
        """Resample by independent horizontal and vertical factors."""
        img = self.image
        new_size = (
            max(1, round(img.width * wscale)),
            max(1, round(img.height * hscale)),
        )
        if new_size == img.size:
            return

        try:
            if img.mode not in ("RGB", "RGBA", "L", "LA"):
                img = _to_rgb_family(img)
            resized = img.resize(new_size, Image.Resampling.LANCZOS)
        except (ValueError, OSError) as e:
            raise TransformError(f"Cannot resize image to {new_size}: {e}") from e

        resized.info = dict(self.image.info)
        self._replace(resized)

    def rotate(self, angle: int) -> None:
        """Rotate clockwise by a multiple of 90 degrees."""
        angle %= 360
        if angle == 0:
            return
        if angle not in _ROTATIONS:
            raise TransformError(f"Unsupported rotation angle: {angle}")
        self._replace(self.image.transpose(_ROTATIONS[angle]))

    def flip(self) -> None:
        self._replace(self.image.transpose(Image.Transpose.FLIP_LEFT_RIGHT))

    def reset_orientation(self) -> None:
        """Drop the EXIF orientation tag once pixels are upright."""
        img = self.image
        exif = img.getexif()
        if ORIENTATION_TAG in exif:
            del exif[ORIENTATION_TAG]
            img.info["exif"] = exif.tobytes()

    def crop(self, left: int, top: int, width: int, height: int) -> None:
        if width <= 0 or height <= 0:
            raise TransformError(f"Cannot crop to empty area {width}x{height}")
        cropped = self.image.crop((left, top, left + width, top + height))
        cropped.info = dict(self.image.info)
        self._replace(cropped)

    def embed(self, width: int, height: int, left: int, top: int) -> None:
        """
        Place the image on a transparent canvas of `width` x `height`.

        Raises:
            TransformError: If the canvas is empty.
        """
        if width <= 0 or height <= 0:
            raise TransformError(f"Cannot embed into empty canvas {width}x{height}")

        img = self.image
        canvas = Image.new("RGBA", (width, height), (0, 0, 0, 0))
        canvas.paste(img.convert("RGBA"), (left, top))
        canvas.info = dict(img.info)
        self._replace(canvas)

    # ===== Colour =====

    def import_colour_profile(self) -> None:
        """
        Convert pixels from the embedded ICC profile into sRGB.

        Calling this on an image whose profile is already imported is a no-op.

        Raises:
            TransformError: If the profile cannot be applied.
        """
        if self._icc_imported:
            return

        img = self.image
        icc = img.info.get("icc_profile")

        try:
            if icc:
                alpha = img.getchannel("A") if img.mode in _ALPHA_MODES else None
                base = img
                if img.mode in ("P", "PA") or "transparency" in img.info:
                    base = _to_rgb_family(img)
                    alpha = base.getchannel("A") if base.mode == "RGBA" else None
                if base.mode in _ALPHA_MODES:
                    base = base.convert("RGB" if base.mode.startswith("RGB") else "L")

                converted = ImageCms.profileToProfile(
                    base,
                    ImageCms.ImageCmsProfile(io.BytesIO(icc)),
                    ImageCms.createProfile("sRGB"),
                    outputMode="RGB",
                )
                if alpha is not None:
                    converted.putalpha(alpha)

                converted.info = {k: v for k, v in img.info.items() if k not in ("icc_profile", "transparency")}
                self._replace(converted)
            elif img.mode == "CMYK":
                self._replace(img.convert("RGB"))
        except (ImageCms.PyCMSError, OSError, ValueError) as e:
            raise TransformError(f"Cannot import colour profile: {e}") from e

        self._icc_imported = True

    def rgb_colourspace(self) -> None:
        """Convert to RGB (or RGBA when the image has transparency)."""
        img = self.image
        if img.mode in ("RGB", "RGBA"):
            return
        try:
            converted = _to_rgb_family(img)
        except ValueError as e:
            raise TransformError(f"Cannot convert {img.mode} image to RGB: {e}") from e
        converted.info = dict(img.info)
        self._replace(converted)

    # ===== Memory and metadata =====

    def copy_memory(self) -> None:
        """Materialize pixels so the image can be read any number of times."""
        img = self.image
        img.load()
        copied = img.copy()
        self._replace(copied)
        self._random_access = True

    def strip_all(self) -> None:
        """Remove every metadata entry (EXIF, ICC, XMP, comments...)."""
        img = self.image
        # The transparent colour key lives in info, so bake it into alpha first
        stripped = _to_rgb_family(img) if _has_alpha(img) else img
        if stripped is img:
            stripped = img.copy()
        stripped.info = {}
        self._replace(stripped)

    # ===== Compositing =====

    def replicate(self, width: int, height: int) -> None:
        """
        Tile the image from the top-left corner to exactly fill `width` x `height`.

        Raises:
            ReplicationError: If the tile or the canvas is empty, or the image
                              was not copied to memory first.
        """
        tile = self.image
        if tile.width <= 0 or tile.height <= 0:
            raise ReplicationError(f"Cannot replicate empty tile {tile.width}x{tile.height}")
        if width <= 0 or height <= 0:
            raise ReplicationError(f"Cannot replicate into empty canvas {width}x{height}")
        if not self._random_access:
            raise ReplicationError("Image must be copied to memory before replication")

        if tile.mode == "P":
            tile = _to_rgb_family(tile)

        canvas = Image.new(tile.mode, (width, height))
        for y in range(0, height, tile.height):
            for x in range(0, width, tile.width):
                canvas.paste(tile, (x, y))

        canvas.info = dict(self.image.info)
        self._replace(canvas)

        logger.debug("Replicated %dx%d tile to %dx%d", tile.width, tile.height, width, height)

    def _read_as_overlay(self) -> Image.Image:
        if not self._random_access and self._reads > 0:
            raise BlendError("Sequential image cannot be read more than once; copy it to memory first")
        self._reads += 1
        img = self.image
        return img if img.mode == "RGBA" else img.convert("RGBA")

    def apply_watermark(self, wm: "WorkingImage", left: int, top: int, opacity: float) -> None:
        """
        Composite `wm` over this image at (`left`, `top`).

        The watermark's alpha is multiplied by `opacity`. Parts hanging over
        the edges are clipped.

        Raises:
            BlendError: If this image is not in an RGB colour space or the
                        watermark cannot be read.
        """
        base = self.image
        if base.mode not in ("RGB", "RGBA"):
            raise BlendError(f"Cannot blend onto {base.mode} image, convert to RGB first")

        overlay = wm._read_as_overlay()

        x0, y0 = max(left, 0), max(top, 0)
        x1 = min(left + overlay.width, base.width)
        y1 = min(top + overlay.height, base.height)
        if x0 >= x1 or y0 >= y1:
            return

        region = overlay.crop((x0 - left, y0 - top, x1 - left, y1 - top))
        if opacity != 1.0:
            alpha = region.getchannel("A").point(lambda a: max(0, min(255, round(a * opacity))))
            region.putalpha(alpha)

        if base.mode == "RGBA":
            base.alpha_composite(region, dest=(x0, y0))
        else:
            patch = base.crop((x0, y0, x1, y1)).convert("RGBA")
            base.paste(Image.alpha_composite(patch, region).convert("RGB"), (x0, y0))

    # ===== Frames =====

    def _frame_bands(self) -> List[Image.Image]:
        img = self.image
        if self._frames == 1:
            return [img]
        height = self.frame_height()
        bands = []
        for index in range(self._frames):
            band = img.crop((0, index * height, img.width, (index + 1) * height))
            band.info = dict(img.info)
            bands.append(band)
        return bands

    def extract_frames(self) -> List["WorkingImage"]:
        """Split stacked frames into independent random-access images."""
        frames = []
        for band in self._frame_bands():
            if band is self._image:
                band = band.copy()
            frame = WorkingImage(band)
            frame._icc_imported = self._icc_imported
            frames.append(frame)
        return frames

    @classmethod
    def join(cls, frames: List["WorkingImage"], like: Optional["WorkingImage"] = None) -> "WorkingImage":
        """
        Stack frames vertically into one animated image.

        Args:
            frames: Frames of identical size.
            like: Image to copy animation timing from.
        """
        if not frames:
            raise TransformError("Cannot join an empty frame list")

        width, height = frames[0].width(), frames[0].height()
        stacked = Image.new("RGBA", (width, height * len(frames)), (0, 0, 0, 0))
        for index, frame in enumerate(frames):
            if frame.width() != width or frame.height() != height:
                raise TransformError("Cannot join frames of different sizes")
            stacked.paste(frame.image.convert("RGBA"), (0, index * height))

        stacked.info = dict(frames[0].image.info)

        joined = cls(stacked, frames=len(frames))
        joined._icc_imported = all(f.colour_profile_imported() for f in frames)
        if like is not None:
            joined._delays = list(like._delays)
            joined._loop = like._loop
        return joined

    # ===== Output =====

    def save(self, image_type: ImageType, quality: int = 90) -> bytes:
        """
        Encode the image.

        Multi-frame images are written as animations when the format allows,
        otherwise only the first frame is written. Transparency is flattened
        onto white for formats without alpha.
        """
        frames = self._frame_bands()

        if not image_type.supports_animation:
            frames = frames[:1]

        if not image_type.supports_alpha:
            flattened = []
            for frame in frames:
                frame = _to_rgb_family(frame)
                if frame.mode == "RGBA":
                    rgb = Image.new("RGB", frame.size, (255, 255, 255))
                    rgb.paste(frame, mask=frame.split()[3])
                    frame = rgb
                flattened.append(frame)
            frames = flattened

        params = {}
        if image_type == ImageType.JPEG:
            params["quality"] = quality
        if "icc_profile" in self.image.info:
            params["icc_profile"] = self.image.info["icc_profile"]
        if len(frames) > 1:
            params.update(
                save_all=True,
                append_images=frames[1:],
                duration=self._delays or 100,
                loop=self._loop,
            )

        buffer = io.BytesIO()
        try:
            frames[0].save(buffer, format=image_type.value, **params)
        except (OSError, ValueError, KeyError) as e:
            raise TransformError(f"Cannot save image as {image_type.value}: {e}") from e
        return buffer.getvalue()

    # ===== Lifecycle =====

    def _replace(self, image: Image.Image) -> None:
        if self._image is not None and self._image is not image:
            self._image.close()
        self._image = image

    def clear(self) -> None:
        """Release the wrapped image."""
        if self._image is not None:
            self._image.close()
            self._image = None
        self._frames = 1
        self._reads = 0
        self._random_access = False
        self._icc_imported = False
