"""Deterministic zip archives of a working copy's tracked files."""

from __future__ import annotations

import os
import stat
import tempfile
import zipfile
from collections.abc import Iterable
from pathlib import Path, PurePosixPath

import structlog

from cloudsmith_sync.core.errors import PackagingError

log = structlog.get_logger("cloudsmith_sync.artifact")

# Earliest timestamp the zip format can represent.
_FIXED_DATE_TIME = (1980, 1, 1, 0, 0, 0)


def artifact_name(namespace: str, name: str, commit: str) -> str:
    return f"{namespace}-{name}-{commit}.zip"


def pack(repo_path: Path, files: Iterable[str], destination: Path) -> Path:
    """Write *files* (paths relative to *repo_path*) into a zip at *destination*.

    Entries are sorted and stamped with a fixed date and normalized mode, so
    the same tree always yields byte-identical archives.  VCS metadata and
    anything that is not a regular file are skipped.
    """
    entries = sorted({f for f in files if _is_packable(f)})
    tmp_name: str | None = None
    try:
        destination.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(
            prefix=".tmp-", suffix=".zip", dir=destination.parent
        )
        count = 0
        with os.fdopen(fd, "wb") as fh, zipfile.ZipFile(fh, "w") as zf:
            for rel in entries:
                src = repo_path / rel
                if src.is_symlink() or not src.is_file():
                    continue
                info = zipfile.ZipInfo(rel, date_time=_FIXED_DATE_TIME)
                info.compress_type = zipfile.ZIP_DEFLATED
                info.create_system = 3  # unix, so external_attr holds the mode
                mode = 0o755 if src.stat().st_mode & stat.S_IXUSR else 0o644
                info.external_attr = (stat.S_IFREG | mode) << 16
                zf.writestr(info, src.read_bytes())
                count += 1
        os.replace(tmp_name, destination)
        tmp_name = None
    except OSError as exc:
        raise PackagingError(f"cannot create artifact {destination}: {exc}") from exc
    finally:
        if tmp_name is not None:
            Path(tmp_name).unlink(missing_ok=True)

    log.info("artifact.packed", path=str(destination), files=count)
    return destination


def _is_packable(rel: str) -> bool:
    parts = PurePosixPath(rel).parts
    return bool(parts) and ".git" not in parts and ".." not in parts and parts[0] != "/"
