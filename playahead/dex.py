from typing import Dict, Optional
import copy
import json
import logging
import os
import re

DATA_DIR = os.environ.get(
    "PLAYAHEAD_DATA_DIR",
    os.path.join(os.path.dirname(os.path.abspath(__file__)), "data"),
)
MECHANICS_FILE = os.path.join(DATA_DIR, "mechanics.json")


def to_slug(name) -> str:
    return (
        str(name)
        .lower()
        .replace(" ", "")
        .replace("-", "")
        .replace("'", "")
        .replace(".", "")
    )


def format_gen(fmt) -> Optional[str]:
    """'gen4ou' -> 'gen4', 8 -> 'gen8', None -> None."""
    if fmt is None:
        return None
    if isinstance(fmt, int):
        return f"gen{fmt}"
    m = re.match(r"gen(\d+)", str(fmt).lower())
    return f"gen{m.group(1)}" if m else None


def load_mechanics(path=MECHANICS_FILE) -> Dict:
    try:
        with open(path, "r", encoding="utf-8") as f:
            return json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        logging.warning(f"Failed to load {path}: {e}")
        return {}


class Dex:
    """
    Move/item/ability metadata lookup.

    Entries use Showdown's field names (priority, category, recoil, drain,
    boosts, secondary, multihit, selfSwitch, ...). Anything missing from an
    entry means "no effect"; a missing entry means the name is unknown.
    Per-generation overrides live under rich_data["formats"][genN].
    """

    def __init__(self, rich_data=None):
        if rich_data is None:
            rich_data = load_mechanics()
        self.rich_data = rich_data
        for key in ("moves", "items", "abilities", "formats"):
            self.rich_data.setdefault(key, {})

    @classmethod
    def from_file(cls, path):
        return cls(load_mechanics(path))

    def _lookup(self, category, name, fmt=None) -> Optional[Dict]:
        if not name:
            return None
        slug = to_slug(name)
        entry = self.rich_data[category].get(slug)
        if entry is None:
            return None
        entry = copy.deepcopy(entry)
        gen = format_gen(fmt)
        if gen:
            override = self.rich_data["formats"].get(gen, {}).get(category, {}).get(slug)
            if override:
                entry.update(copy.deepcopy(override))
        entry.setdefault("name", name)
        return entry

    def get_move(self, name, fmt=None) -> Optional[Dict]:
        return self._lookup("moves", name, fmt)

    def has_move(self, name, fmt=None) -> bool:
        return self.get_move(name, fmt) is not None

    def get_move_priority(self, name, fmt=None) -> int:
        move = self.get_move(name, fmt)
        if not move:
            return 0
        try:
            return int(move.get("priority") or 0)
        except (TypeError, ValueError):
            return 0

    def get_item(self, name, fmt=None) -> Optional[Dict]:
        return self._lookup("items", name, fmt)

    def get_ability(self, name, fmt=None) -> Optional[Dict]:
        return self._lookup("abilities", name, fmt)

    def add_move(self, name, category="Physical", effect=None, **data):
        """Registers a move. Keys that clash with Python names (e.g. "self") go in `effect`."""
        entry = {"name": name, "category": category}
        entry.update(data)
        entry.update(effect or {})
        self.rich_data["moves"][to_slug(name)] = entry
        return entry

    def add_item(self, name, **data):
        entry = {"name": name}
        entry.update(data)
        self.rich_data["items"][to_slug(name)] = entry
        return entry

    def add_ability(self, name, **data):
        entry = {"name": name}
        entry.update(data)
        self.rich_data["abilities"][to_slug(name)] = entry
        return entry
