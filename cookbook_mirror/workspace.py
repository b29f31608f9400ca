"""
Scratch directories and temporary files with guaranteed cleanup.
"""

import logging
import os
import shutil
import tempfile
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator

logger = logging.getLogger(__name__)


@contextmanager
def scratch_directory(prefix: str = "cookbook-mirror-") -> Iterator[Path]:
    """Create an empty, exclusively owned directory and remove it on exit.

    The directory and everything in it is removed whether the body finishes
    or raises.
    """
    path = Path(tempfile.mkdtemp(prefix=prefix))
    logger.debug(f"Created scratch directory {path}")
    try:
        yield path
    finally:
        shutil.rmtree(path, ignore_errors=True)
        if path.exists():
            logger.warning(f"Scratch directory {path} could not be fully removed")
        else:
            logger.debug(f"Removed scratch directory {path}")


@contextmanager
def temporary_message_file(text: str) -> Iterator[Path]:
    """Write text to a temporary file, yield its path, then delete it."""
    fd, name = tempfile.mkstemp(prefix="commit_msg")
    path = Path(name)
    try:
        with os.fdopen(fd, 'w', encoding='utf-8') as f:
            f.write(text)
        yield path
    finally:
        try:
            path.unlink()
        except FileNotFoundError:
            pass
