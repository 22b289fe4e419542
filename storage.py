from __future__ import annotations
import json
import os
import sys
from pathlib import Path
from typing import Any
from loguru import logger


APP_NAME = "StudyFlow"


def data_dir() -> Path:
    """
    STUDYFLOW_DATA_DIR when set, otherwise the platform's per-user data folder.
    """
    override = os.environ.get("STUDYFLOW_DATA_DIR")
    if override:
        base = Path(override).expanduser()
    elif sys.platform == "darwin":
        base = Path.home() / "Library" / "Application Support" / APP_NAME
    elif sys.platform.startswith("win"):
        base = Path(os.environ.get("APPDATA") or Path.home() / "AppData" / "Roaming") / APP_NAME
    else:
        base = Path(os.environ.get("XDG_DATA_HOME") or Path.home() / ".local" / "share") / "studyflow"

    base.mkdir(parents=True, exist_ok=True)
    return base


def data_path(filename: str | Path) -> Path:
    return data_dir() / Path(filename)


def _backup_file(path: Path, content: str) -> None:
    backup = path.with_suffix(path.suffix + ".bak")
    try:
        backup.write_text(content, encoding="utf-8")
    except OSError as e:
        # A failed backup does not stop the reset
        logger.warning(f"Could not back up {path.name}: {e}")


def load_json(path: Path | str, default: Any = None) -> Any:
    """
    Load JSON from path with safety:
    - If missing: return default
    - If empty or invalid: write .bak, reset the file to default and return it
    """
    path = Path(path)
    default = {} if default is None else default

    if not path.exists():
        return default

    try:
        raw_text = path.read_text(encoding="utf-8")
    except OSError as e:
        logger.warning(f"Could not read {path}: {e}")
        return default

    text = raw_text.strip()
    if not text:
        _backup_file(path, raw_text)
        save_json(path, default)
        return default

    try:
        return json.loads(text)
    except json.JSONDecodeError:
        logger.warning(f"{path.name} is not valid JSON; backed up and reset")
        _backup_file(path, raw_text)
        save_json(path, default)
        return default


def save_json(path: Path | str, payload: Any) -> None:
    """
    Atomic JSON write: write to temp file then replace target.
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    temp = path.with_suffix(path.suffix + ".tmp")
    temp.write_text(
        json.dumps(payload, ensure_ascii=False, indent=2),
        encoding="utf-8",
    )
    temp.replace(path)
