"""Automated backup destination on the local filesystem."""

import os
from pathlib import Path
from typing import Final

from ..domain.entities import AutoBackupEntry, is_backup_archive
from ..logging_config import get_logger

logger: Final = get_logger(__name__)


class LocalBackupDirectory:
    """Backup archives written by the automated backup task.

    Only names directly inside ``root`` are addressed; callers are expected to
    pass plain file names.
    """

    def __init__(self, root: str | Path):
        self.root = Path(root)

    def _path(self, filename: str) -> Path:
        path = self.root / filename
        if path.parent != self.root:
            raise ValueError(f"Not a plain file name: {filename!r}")
        return path

    def list_backups(self) -> list[AutoBackupEntry]:
        if not self.root.is_dir():
            logger.warning("Automated backup destination missing", path=str(self.root))
            return []

        entries = []
        for path in self.root.iterdir():
            if not is_backup_archive(path.name) or not path.is_file():
                continue
            stat = path.stat()
            entries.append(
                AutoBackupEntry(
                    filename=path.name,
                    timecreated=int(stat.st_mtime),
                    filesize=stat.st_size,
                )
            )
        return entries

    def is_readable(self, filename: str) -> bool:
        try:
            path = self._path(filename)
        except ValueError:
            return False
        return path.is_file() and os.access(path, os.R_OK)

    def delete(self, filename: str) -> None:
        self._path(filename).unlink()
        logger.info("Automated backup removed", filename=filename, path=str(self.root))
