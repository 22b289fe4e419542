from __future__ import annotations
import re
from pathlib import Path
from typing import List
from loguru import logger
from pydantic import ValidationError
from errors import InvalidInputError
from models import AppState
from storage import data_path, load_json, save_json

DEFAULT_PROFILE = "default"
INDEX_FILE = "profiles.json"
STATE_PREFIX = "state__"


def _file_stem(name: str) -> str:
    stem = re.sub(r"[^A-Za-z0-9_-]+", "_", name.strip()).strip("_")
    return (stem or DEFAULT_PROFILE)[:80]


def _state_file(name: str) -> Path:
    return data_path(f"{STATE_PREFIX}{_file_stem(name)}.json")


def _read_index() -> List[str]:
    raw = load_json(data_path(INDEX_FILE), {"profiles": []})
    return [p for p in raw.get("profiles", []) if isinstance(p, str) and p]


def _write_index(names: List[str]) -> None:
    save_json(data_path(INDEX_FILE), {"profiles": names})


def _register(name: str) -> None:
    names = _read_index()
    if name not in names:
        _write_index(names + [name])


def list_profiles() -> List[str]:
    """
    Profile names from the index, followed by any state files on disk the
    index does not know about. An empty data folder yields the default
    profile.
    """
    names = _read_index()
    known_stems = {_file_stem(n) for n in names}
    for path in sorted(data_path("").glob(f"{STATE_PREFIX}*.json")):
        stem = path.stem[len(STATE_PREFIX):]
        if stem not in known_stems:
            known_stems.add(stem)
            names.append(stem.replace("_", " ").strip() or DEFAULT_PROFILE)

    names = list(dict.fromkeys(names))
    if not names:
        names = [DEFAULT_PROFILE]
        _write_index(names)
    return names


def load_profile(name: str) -> AppState:
    fresh = AppState(profile=name)
    raw = load_json(_state_file(name), fresh.model_dump(mode="json"))
    try:
        state = AppState.model_validate(raw)
    except ValidationError as e:
        logger.warning(f"Profile '{name}' could not be read, starting fresh: {e}")
        state = fresh
        save_profile(name, state)
    state.profile = name
    _register(name)
    return state


def save_profile(name: str, state: AppState) -> None:
    state.profile = name
    save_json(_state_file(name), state.model_dump(mode="json"))
    _register(name)


def create_profile(name: str) -> AppState:
    name = name.strip()
    if not name:
        raise InvalidInputError("Profile name cannot be empty.")
    if any(p.lower() == name.lower() for p in list_profiles()):
        raise InvalidInputError("Profile already exists.")
    if _state_file(name).exists():
        raise InvalidInputError("A profile with that name already exists on disk.")

    state = AppState(profile=name)
    save_profile(name, state)
    logger.info(f"Created profile '{name}'")
    return state


def delete_profile(name: str) -> None:
    _state_file(name).unlink(missing_ok=True)

    remaining = [p for p in list_profiles() if p != name]
    if not remaining:
        remaining = [DEFAULT_PROFILE]
        save_json(_state_file(DEFAULT_PROFILE), AppState(profile=DEFAULT_PROFILE).model_dump(mode="json"))
    _write_index(remaining)
    logger.info(f"Deleted profile '{name}'")
