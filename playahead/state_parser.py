import json
import logging
import re
import time

from playahead.battle_engine.state import BattleState

# Keys whose values are free-form maps keyed by game ids and must keep their keys
PRESERVED_KEYS = ["sides", "stat_stages", "boosts"]


def to_snake_case(name):
    s1 = re.sub('(.)([A-Z][a-z]+)', r'\1_\2', name)
    return re.sub('([a-z0-9])([A-Z])', r'\1_\2', s1).lower()


def normalize_keys(obj):
    if isinstance(obj, dict):
        new_obj = {}
        for k, v in obj.items():
            new_k = to_snake_case(k) if isinstance(k, str) else k
            if new_k in PRESERVED_KEYS and isinstance(v, dict):
                new_obj[new_k] = {sk: normalize_keys(sv) for sk, sv in v.items()}
            else:
                new_obj[new_k] = normalize_keys(v)
        return new_obj
    elif isinstance(obj, list):
        return [normalize_keys(i) for i in obj]
    else:
        return obj


def _parse_mon(mon):
    mon = dict(mon)
    if "current_hp" not in mon and "hp" in mon:
        mon["current_hp"] = mon.pop("hp")
    if "max_hp" not in mon and "maxhp" in mon:
        mon["max_hp"] = mon.pop("maxhp")
    if not mon.get("name"):
        mon["name"] = mon.get("species")
    if "boosts" in mon and "stat_stages" not in mon:
        mon["stat_stages"] = mon.pop("boosts")
    return mon


def parse_snapshot(data) -> BattleState:
    """
    Builds a BattleState from a live-battle snapshot.

    Accepts camelCase or snake_case keys. Sides come either from a "sides"
    map or from top-level "p1"/"p2" entries; a side's "active" index is
    read as its active_index.
    """
    if isinstance(data, BattleState):
        return data.deep_copy()
    data = normalize_keys(data or {})

    raw_sides = data.get("sides")
    if not raw_sides:
        raw_sides = {k: data[k] for k in ("p1", "p2") if k in data}

    sides = {}
    for key, side in raw_sides.items():
        side = dict(side)
        if "active_index" not in side and isinstance(side.get("active"), int):
            side["active_index"] = side.pop("active")
        side["party"] = [_parse_mon(m) for m in side.get("party", [])]
        side.setdefault("name", key)
        sides[key] = side

    fields = data.get("fields", data.get("field", {})) or {}
    return BattleState(
        sides=sides,
        fields=dict(fields),
        format=data.get("format", "gen9"),
        battle_id=data.get("battle_id"),
    )


def parse_state(file_path, retries=3):
    """
    Reads a snapshot JSON file written by the live client.
    The client may be mid-write, so empty or partial files are retried.
    """
    data = None
    for attempt in range(retries):
        try:
            with open(file_path, 'r') as f:
                content = f.read().strip()
                if not content:
                    raise ValueError("Empty file")
                data = json.loads(content)
                break
        except (json.JSONDecodeError, ValueError, IOError) as e:
            logging.debug(f"Reading {file_path} failed (attempt {attempt + 1}): {e}")
            time.sleep(0.1)

    if data:
        return parse_snapshot(data)
    logging.warning(f"Could not read battle snapshot from {file_path}")
    return None
