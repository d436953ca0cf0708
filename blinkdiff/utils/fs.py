"""File output for diff images and reports, plus YAML config reading.

Diff images and YAML reports are usually collected by CI artifact steps or
picked up by file watchers while the comparison may still be running, so
every write goes through a uniquely named sibling file that is renamed
over the target once complete. Readers see the previous file or the new
one, never a truncated PNG.

Provides:
    - atomic_write_bytes / atomic_write_text: sibling temp file → fsync → rename
    - atomic_yaml_dump: report serialization (key order preserved)
    - load_yaml: config reading with the file path in parse errors
    - ensure_dir: mkdir -p

Usage:
    from blinkdiff.utils import fs
    fs.atomic_write_bytes(out_dir / "diff.png", image.to_bytes())
    fs.atomic_yaml_dump(result.to_dict(), out_dir / "report.yaml")
"""

import os
import tempfile
from pathlib import Path
from typing import Any, Union

import yaml

PathLike = Union[str, Path]


def ensure_dir(p: PathLike) -> Path:
    """mkdir -p; returns the directory as a Path."""
    p = Path(p)
    p.mkdir(parents=True, exist_ok=True)
    return p


def atomic_write_bytes(path: PathLike, data: bytes) -> None:
    """Replace path with data in one rename.

    The temporary file lives next to the target (same filesystem) and is
    named ``.<name>.<random>.part``, so concurrent writers to different
    targets in one directory never collide.

    Parameters
    ----------
    path : str | Path
        Target file; missing parent directories are created
    data : bytes
        Complete file content

    Raises
    ------
    OSError
        If the directory cannot be created or the file cannot be written
        or renamed; the temporary file is removed before re-raising
    """
    path = Path(path)
    directory = ensure_dir(path.parent)

    fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".part", dir=directory)
    tmp_path = Path(tmp_name)
    try:
        with os.fdopen(fd, "wb") as f:
            f.write(data)
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp_path, path)
    except OSError:
        tmp_path.unlink(missing_ok=True)
        raise


def atomic_write_text(path: PathLike, text: str, encoding: str = "utf-8") -> None:
    atomic_write_bytes(path, text.encode(encoding))


def atomic_yaml_dump(obj: Any, path: PathLike) -> None:
    """Write obj as block-style YAML, keeping dict insertion order."""
    text = yaml.safe_dump(obj, default_flow_style=False, sort_keys=False, allow_unicode=True)
    atomic_write_text(path, text)


def load_yaml(path: PathLike) -> Any:
    """Parse a YAML file; an empty file yields None.

    Raises
    ------
    FileNotFoundError
        If path doesn't exist
    yaml.YAMLError
        If the content is not valid YAML (message names the file)
    """
    path = Path(path)
    if not path.is_file():
        raise FileNotFoundError(f"YAML file not found: {path}")

    text = path.read_text(encoding="utf-8")
    try:
        return yaml.safe_load(text)
    except yaml.YAMLError as e:
        raise yaml.YAMLError(f"Failed to parse YAML file {path}: {e}") from e
