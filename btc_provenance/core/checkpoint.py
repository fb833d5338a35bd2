"""Persistent checkpoint of the last fully ingested block height."""

import os
from pathlib import Path
from typing import Optional
import structlog

logger = structlog.get_logger(__name__)


class CheckpointStore:
    """
    Stores a single non-negative height in a plain-text file.

    Unreadable or unparseable content reads as "no checkpoint", and failed
    writes are logged without raising, so ingestion keeps going.
    """

    def __init__(self, path: str):
        self.path = Path(path)
        self.logger = logger.bind(component="checkpoint_store", path=str(self.path))

    def get(self) -> Optional[int]:
        """Get the last checkpointed height, or None if there is none."""
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self.path.touch(exist_ok=True)
            contents = self.path.read_text().strip()
        except (OSError, UnicodeDecodeError) as e:
            self.logger.warning("Checkpoint unreadable, starting without one", error=str(e))
            return None

        if not contents:
            return None

        try:
            height = int(contents)
        except ValueError:
            self.logger.warning("Checkpoint content is not an integer, ignoring it",
                                content=contents[:64])
            return None

        if height < 0:
            self.logger.warning("Checkpoint is negative, ignoring it", height=height)
            return None

        return height

    def set(self, height: int) -> bool:
        """
        Durably replace the checkpoint with ``height``.

        Returns:
            True if the write succeeded.
        """
        tmp_path = self.path.with_name(self.path.name + ".tmp")
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with open(tmp_path, "w") as f:
                f.write(f"{height}\n")
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_path, self.path)
            return True
        except OSError as e:
            self.logger.error("Failed to write checkpoint", height=height, error=str(e))
            return False

    def reset(self) -> bool:
        """Clear the checkpoint so the next run starts from genesis."""
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self.path.write_text("")
            return True
        except OSError as e:
            self.logger.error("Failed to reset checkpoint", error=str(e))
            return False
