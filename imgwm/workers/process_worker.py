"""
Process Worker - Async Batch Processing
=======================================
QThread worker that runs host image files through the processing
pipeline, including the process-wide watermark.

Workflow:
1. For each image in the queue:
   a. Read and identify the file
   b. Run process_image() with the batch processing options
   c. Encode and save to the output directory
2. Emit progress signals during processing
3. Emit finished signal with results

Naming Convention:
- Watermarked: filename_watermarked.{ext}
- Not watermarked: filename_processed.{ext}

Each image owns its working images for the duration of its own call, so a
failing image is recorded on its result and the batch continues.
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

from PyQt6.QtCore import QThread, pyqtSignal

from imgwm.core.imagedata import ImageData, get_watermark
from imgwm.core.options import ImageType, ProcessingOptions
from imgwm.core.processing import process_image
from imgwm.errors import WatermarkError

logger = logging.getLogger(__name__)


@dataclass
class BatchConfig:
    """Complete configuration for a processing batch."""
    image_paths: List[Path] = field(default_factory=list)
    output_dir: Path = field(default_factory=lambda: Path.cwd() / "output")
    processing: ProcessingOptions = field(default_factory=ProcessingOptions)
    quality: int = 90


@dataclass
class ProcessResult:
    """Result of processing a single image."""
    source_path: Path
    output_path: Optional[Path] = None
    width: int = 0
    height: int = 0
    frames: int = 0
    success: bool = False
    error_message: str = ""


class ProcessWorker(QThread):
    """
    Worker thread for processing and watermarking images.

    Signals:
        progress(int, int, str): (current, total, current_file_name)
        image_completed(ProcessResult): Emitted when each image is processed
        finished_all(list[ProcessResult]): Emitted when all images are done
        error(str): Emitted on critical errors
    """

    progress = pyqtSignal(int, int, str)  # current, total, filename
    image_completed = pyqtSignal(object)  # ProcessResult
    finished_all = pyqtSignal(list)  # List[ProcessResult]
    error = pyqtSignal(str)  # Error message

    def __init__(self, config: BatchConfig, parent=None):
        """
        Initialize the process worker.

        Args:
            config: BatchConfig with input files and processing options.
            parent: Optional parent QObject.
        """
        super().__init__(parent)
        self.config = config
        self._is_cancelled = False

    def cancel(self):
        """Request cancellation of the worker."""
        self._is_cancelled = True

    def _generate_output_filename(self, source_path: Path, image_type: ImageType) -> str:
        po = self.config.processing
        watermarked = po.watermark.enabled and get_watermark() is not None
        suffix = "jpg" if image_type == ImageType.JPEG else image_type.value.lower()
        tag = "watermarked" if watermarked else "processed"
        return f"{source_path.stem}_{tag}.{suffix}"

    def process_single_image(self, image_path: Path) -> ProcessResult:
        """
        Process a single image file.

        Args:
            image_path: Path to the source image.

        Returns:
            ProcessResult with processing outcome.
        """
        result = ProcessResult(source_path=image_path)

        try:
            image_data = ImageData.from_file(image_path)
            output_type = self.config.processing.format or image_data.type

            img = process_image(image_data, self.config.processing)
            with img:
                result.width = img.width()
                result.height = img.frame_height()
                result.frames = img.frames_count()
                encoded = img.save(output_type, quality=self.config.quality)

            self.config.output_dir.mkdir(parents=True, exist_ok=True)
            output_path = self.config.output_dir / self._generate_output_filename(
                image_path, output_type
            )
            output_path.write_bytes(encoded)

            result.output_path = output_path
            result.success = True

        except (WatermarkError, OSError) as e:
            result.success = False
            result.error_message = str(e)
            logger.exception("Failed to process %s", image_path)

        return result

    def run(self):
        """
        Main worker execution.

        Processes all images in the config and emits progress signals.
        """
        results: List[ProcessResult] = []
        total = len(self.config.image_paths)

        if total == 0:
            self.error.emit("No images to process")
            self.finished_all.emit(results)
            return

        try:
            for idx, image_path in enumerate(self.config.image_paths):
                if self._is_cancelled:
                    logger.info("Batch cancelled after %d of %d images", idx, total)
                    break

                self.progress.emit(idx + 1, total, image_path.name)

                result = self.process_single_image(image_path)
                results.append(result)

                self.image_completed.emit(result)

        except Exception as e:
            logger.exception("Critical error while processing batch")
            self.error.emit(f"Critical error: {str(e)}")

        self.finished_all.emit(results)
