"""Kubernetes Downward API volume dump."""

import logging
from pathlib import Path

logger = logging.getLogger(__name__)


def read_downward_info(directory: Path | str) -> dict[str, str]:
    """
    Map every regular file below ``directory`` to its trimmed content.

    Keys are paths relative to the directory with ``/`` separators. The
    ``..data`` symlink farm kubelet creates is skipped; the visible symlinks
    resolve to the same files. A missing directory yields no entries.
    """
    root = Path(directory)
    if not root.is_dir():
        return {}

    info: dict[str, str] = {}
    for path in sorted(root.rglob("*")):
        rel = path.relative_to(root)
        if rel.parts[0].startswith(".."):
            continue
        if not path.is_file():
            continue
        try:
            value = path.read_text(errors="replace").strip()
        except OSError as exc:
            logger.warning("could not read downward api file %s: %s", path, exc)
            value = ""
        info[rel.as_posix()] = value
    return info
