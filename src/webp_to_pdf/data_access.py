from __future__ import annotations

import fnmatch
import hashlib
from pathlib import Path

from .contracts import InputNotFoundError, NoImagesFoundError, SourceImage, WriteError


def resolve_input_dir(input_dir: Path) -> Path:
    """
    Resolve the input directory; it must exist and be a directory.
    """
    root = input_dir.expanduser().resolve()
    if not root.is_dir():
        raise InputNotFoundError(f"Input directory not found: {root}")
    return root


def resolve_output_path(*, input_dir: Path, output_name: str | Path) -> Path:
    """
    Output files are resolved against the input directory (absolute names are kept).
    """
    out = Path(output_name).expanduser()
    if not out.is_absolute():
        out = input_dir / out
    return out.resolve()


def relpath_for(path: Path, *, root: Path) -> str:
    try:
        return path.relative_to(root).as_posix()
    except ValueError:
        return path.as_posix()


def scan_image_files(
    input_dir: Path,
    *,
    pattern: str = "*.webp",
    recursive: bool = True,
    exclude: Path | None = None,
) -> list[Path]:
    """
    List files under `input_dir` whose name matches `pattern` (case-insensitive).

    Ordering is lexicographic by input-dir-relative POSIX path, independent of
    the filesystem listing order.
    """

    candidates = input_dir.rglob("*") if recursive else input_dir.glob("*")
    pat = pattern.lower()
    excluded = exclude.resolve() if exclude is not None else None

    files = [
        p
        for p in candidates
        if p.is_file() and fnmatch.fnmatchcase(p.name.lower(), pat) and p.resolve() != excluded
    ]
    files.sort(key=lambda p: relpath_for(p, root=input_dir))

    if not files:
        raise NoImagesFoundError(f"No files matching {pattern!r} under {input_dir}")
    return files


def read_source_image(path: Path, *, root: Path) -> SourceImage:
    return SourceImage(source_path=relpath_for(path, root=root), data=path.read_bytes())


def write_output_bytes(path: Path, data: bytes) -> None:
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(data)
    except OSError as e:
        raise WriteError(f"Failed to write {path}: {e.strerror or e}") from e


def sha256_bytes(data: bytes) -> str:
    return hashlib.sha256(data).hexdigest()
