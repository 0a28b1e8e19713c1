from __future__ import annotations

import csv
import json
import os
import shutil
import tempfile
from pathlib import Path
from typing import List

from .models import GlossaryEntry


class FileReadError(RuntimeError):
    pass


def read_text(path: Path) -> str:
    try:
        data = path.read_bytes()
    except OSError as exc:  # pragma: no cover - depends on filesystem
        raise FileReadError(f"Failed to read {path}: {exc}") from exc
    if b"\0" in data:
        raise FileReadError(f"{path} appears to be a binary file")
    try:
        return data.decode("utf-8")
    except UnicodeDecodeError as exc:
        raise FileReadError(f"{path} is not valid UTF-8: {exc}") from exc


def ensure_parent(path: Path) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)


def atomic_write(
    path: Path,
    content: str,
    *,
    backup: bool = False,
    encoding: str = "utf-8",
) -> None:
    ensure_parent(path)
    tmp_fd, tmp_path = tempfile.mkstemp(prefix=path.name, dir=path.parent)
    try:
        with os.fdopen(tmp_fd, "w", encoding=encoding, newline="") as handle:
            handle.write(content)
        if backup and path.exists():
            backup_path = path.with_suffix(path.suffix + ".bak")
            shutil.copy2(path, backup_path)
        os.replace(tmp_path, path)
    except Exception:
        try:
            os.unlink(tmp_path)
        except OSError:
            pass
        raise


def read_glossary(path: Path) -> List[GlossaryEntry]:
    """Read glossary entries from JSON or CSV.

    JSON may be a ``{source: target}`` mapping or a list of
    ``{"source": ..., "target": ...}`` objects; CSV rows are ``source,target``.
    """

    suffix = path.suffix.lower()
    if suffix == ".json":
        data = json.loads(path.read_text(encoding="utf-8"))
        if isinstance(data, dict):
            return [GlossaryEntry(str(src), str(dst)) for src, dst in data.items()]
        if isinstance(data, list):
            return [
                GlossaryEntry(str(item["source"]), str(item["target"]))
                for item in data
                if isinstance(item, dict) and item.get("source") and item.get("target")
            ]
        raise ValueError(f"Unsupported glossary structure in {path}")
    if suffix == ".csv":
        entries: List[GlossaryEntry] = []
        with path.open("r", encoding="utf-8", newline="") as handle:
            reader = csv.reader(handle)
            for row in reader:
                if len(row) >= 2 and row[0].strip() and row[1].strip():
                    entries.append(GlossaryEntry(row[0].strip(), row[1].strip()))
        return entries
    raise ValueError(f"Unsupported glossary format: {path.suffix}")


__all__ = ["FileReadError", "atomic_write", "ensure_parent", "read_glossary", "read_text"]
