import logging
import os
import tempfile
from pathlib import Path
from typing import Union

logger = logging.getLogger(__name__)


def write_text(path: Union[str, Path], content: str) -> bool:
    """
    Replaces the file at ``path`` with ``content``.

    The text goes to a temporary file in the same directory which is then
    renamed over the destination, so readers see either the old or the new
    file, never a truncated one. Failures are logged and reported through
    the return value.
    """
    destination = Path(path)
    tmp_path = None
    try:
        destination.parent.mkdir(parents=True, exist_ok=True)
        with tempfile.NamedTemporaryFile(
            "w",
            encoding="utf-8",
            dir=destination.parent,
            prefix=f".{destination.name}.",
            suffix=".tmp",
            delete=False,
        ) as handle:
            tmp_path = handle.name
            handle.write(content)
            handle.flush()
            os.fsync(handle.fileno())
        os.replace(tmp_path, destination)
    except (OSError, ValueError) as e:
        logger.error(f"Error writing {destination}: {e}")
        if tmp_path and os.path.exists(tmp_path):
            os.unlink(tmp_path)
        return False

    logger.info(f"Content written to {destination}")
    return True
