"""
Filesystem primitives used by the archive pass.

Both operations report success as a boolean and never raise, so a failed
copy or delete is simply retried on a later pass.
"""

import asyncio
import os
import shutil
from pathlib import Path

from loguru import logger


class FileOperations:
    """Move and remove single files off the event loop."""

    async def move(self, file_path: str, destination_dir: str) -> bool:
        """
        Copy a file into a directory, then delete the original.

        Args:
            file_path: File to archive
            destination_dir: Directory to copy into (created if missing)

        Returns:
            True if the file was copied and the source deleted
        """
        logger.debug(f"Moving {file_path} to {destination_dir}")
        destination = Path(destination_dir)

        try:
            await asyncio.to_thread(destination.mkdir, parents=True, exist_ok=True)
        except OSError as e:
            logger.warning(f"Unable to create destination folder {destination}: {e}")
            return False

        try:
            await asyncio.to_thread(shutil.copy2, file_path, destination / Path(file_path).name)
        except OSError as e:
            logger.warning(f"Unable to copy {file_path} to {destination}: {e}")
            return False

        return await self.remove(file_path)

    async def remove(self, file_path: str) -> bool:
        """
        Delete a file.

        Args:
            file_path: File to delete

        Returns:
            True if the file was deleted
        """
        logger.debug(f"Removing {file_path}")
        try:
            await asyncio.to_thread(os.unlink, file_path)
        except OSError as e:
            logger.warning(f"Unable to remove {file_path}: {e}")
            return False

        return True
