"""Conversion of old flat effects.ini files to the sectioned version 2 layout."""

from __future__ import annotations

import configparser
import re
from collections.abc import Mapping
from pathlib import Path

PROPERTIES = ("sound", "scaling", "stretch", "ignore_offset", "under_chatbox")

_PROPERTY_REPLACEMENTS = {
    "under_chatbox": ("layer", "character"),
}

_PROPERTY_KEY = re.compile(r"(\w+)_(%s)$" % "|".join(PROPERTIES))


def migrate_effects(effects: Mapping[str, str]) -> dict[str, dict[str, str]]:
    """Turn flat ``name=sound`` / ``name_property=value`` pairs into sections."""
    result: dict[str, dict[str, str]] = {"version": {"major": "2"}}

    names = [key for key in sorted(effects) if not _PROPERTY_KEY.search(key)]
    for index, name in enumerate(names):
        section = {
            "name": name,
            "sound": effects.get(name, ""),
            "cull": "true",
            "layer": "character",
        }
        if name == "realization":
            section["stretch"] = "true"
            section["layer"] = "chat"

        for prop in PROPERTIES:
            property_key = f"{name}_{prop}"
            if property_key in effects:
                key, value = _PROPERTY_REPLACEMENTS.get(prop, (prop, effects[property_key]))
                section[key] = value

        result[str(index)] = section
    return result


def _unquote(value: str) -> str:
    if len(value) >= 2 and value[0] == value[-1] == '"':
        return value[1:-1]
    return value


def _read_flat_keys(text: str) -> dict[str, str]:
    keys: dict[str, str] = {}
    section: str | None = None
    for line in text.splitlines():
        line = line.strip()
        if not line or line[0] in ";#":
            continue
        if line.startswith("[") and line.endswith("]"):
            section = line[1:-1].strip()
            continue
        if section not in (None, "General") or "=" not in line:
            continue
        key, _, value = line.partition("=")
        keys[key.strip()] = _unquote(value.strip())
    return keys


def migrate_effects_file(path: str | Path) -> dict[str, dict[str, str]]:
    """Rewrite an old effects.ini in place and return the new sections."""
    path = Path(path)
    effects = _read_flat_keys(path.read_text(encoding="utf-8"))
    sections = migrate_effects(effects)

    parser = configparser.ConfigParser(interpolation=None)
    parser.optionxform = str  # type: ignore[assignment]
    for name, values in sections.items():
        parser[name] = values
    with path.open("w", encoding="utf-8") as handle:
        parser.write(handle, space_around_delimiters=False)
    return sections