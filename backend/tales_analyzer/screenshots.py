"""
Full-page screenshots, one file per visited URL, inside a per-run
directory that is deleted as a whole when the run ends.
"""

import logging
import os
import shutil
import tempfile
import uuid

from tales_analyzer.errors import ScreenshotStorageError
from tales_analyzer.models import ScreenshotRecord

logger = logging.getLogger(__name__)

SCREENSHOT_DIR_NAME = "tales-analyzer-screenshots"


def default_base_dir(configured: str = "") -> str:
    return configured or os.path.join(tempfile.gettempdir(), SCREENSHOT_DIR_NAME)


def ensure_output_dir(output_dir: str) -> str:
    """Create output_dir if missing. Fatal if it can't be created."""
    try:
        os.makedirs(output_dir, exist_ok=True)
    except OSError as e:
        raise ScreenshotStorageError(f"Cannot create screenshot directory {output_dir}: {e}") from e
    return output_dir


def create_run_dir(base_dir: str, run_id: str | None = None) -> str:
    """Unique subdirectory for one run, so concurrent runs never share files."""
    ensure_output_dir(base_dir)
    try:
        return tempfile.mkdtemp(prefix=f"run-{run_id or uuid.uuid4().hex[:8]}-", dir=base_dir)
    except OSError as e:
        raise ScreenshotStorageError(f"Cannot create run directory in {base_dir}: {e}") from e


def cleanup_run_dir(run_dir: str | None, logger=logger) -> int:
    """Delete every file in run_dir and the directory itself. Returns files removed."""
    if not run_dir or not os.path.isdir(run_dir):
        return 0
    removed = 0
    try:
        for name in os.listdir(run_dir):
            path = os.path.join(run_dir, name)
            if os.path.isdir(path):
                shutil.rmtree(path)
            else:
                os.unlink(path)
            removed += 1
        os.rmdir(run_dir)
        logger.info(f"Temporary files cleaned up ({removed} removed) in {run_dir}")
    except OSError as e:
        logger.error(f"Error cleaning up temporary files in {run_dir}: {e}")
    return removed


class ScreenshotCapture:
    def __init__(self, logger=logger):
        self.log = logger

    async def capture(self, page, url: str, output_dir: str) -> ScreenshotRecord | None:
        """
        Write a full-page PNG named by a fresh uuid. Returns None (and logs)
        if the capture itself fails; raises only if output_dir is unusable.
        """
        ensure_output_dir(output_dir)
        file_path = os.path.join(output_dir, f"{uuid.uuid4().hex}.png")
        try:
            await page.screenshot(path=file_path, full_page=True, type="png")
        except Exception as e:
            self.log.warning(f"Screenshot failed for {url}: {e}")
            return None
        return ScreenshotRecord(url=url, file_path=file_path)
