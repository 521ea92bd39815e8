import math


# Standard Gen 6+ Type Chart (attacking type -> defending type -> multiplier)
TYPE_CHART = {
    "Normal": {"Rock": 0.5, "Ghost": 0.0, "Steel": 0.5},
    "Fire": {"Fire": 0.5, "Water": 0.5, "Grass": 2.0, "Ice": 2.0, "Bug": 2.0, "Rock": 0.5, "Dragon": 0.5, "Steel": 2.0},
    "Water": {"Fire": 2.0, "Water": 0.5, "Grass": 0.5, "Ground": 2.0, "Rock": 2.0, "Dragon": 0.5},
    "Electric": {"Water": 2.0, "Electric": 0.5, "Grass": 0.5, "Ground": 0.0, "Flying": 2.0, "Dragon": 0.5},
    "Grass": {
        "Fire": 0.5, "Water": 2.0, "Grass": 0.5, "Poison": 0.5, "Ground": 2.0,
        "Flying": 0.5, "Bug": 0.5, "Rock": 2.0, "Dragon": 0.5, "Steel": 0.5,
    },
    "Ice": {"Fire": 0.5, "Water": 0.5, "Grass": 2.0, "Ice": 0.5, "Ground": 2.0, "Flying": 2.0, "Dragon": 2.0, "Steel": 0.5},
    "Fighting": {
        "Normal": 2.0, "Ice": 2.0, "Poison": 0.5, "Flying": 0.5, "Psychic": 0.5, "Bug": 0.5,
        "Rock": 2.0, "Ghost": 0.0, "Dark": 2.0, "Steel": 2.0, "Fairy": 0.5,
    },
    "Poison": {"Grass": 2.0, "Poison": 0.5, "Ground": 0.5, "Rock": 0.5, "Ghost": 0.5, "Steel": 0.0, "Fairy": 2.0},
    "Ground": {"Fire": 2.0, "Electric": 2.0, "Grass": 0.5, "Poison": 2.0, "Flying": 0.0, "Bug": 0.5, "Rock": 2.0, "Steel": 2.0},
    "Flying": {"Electric": 0.5, "Grass": 2.0, "Fighting": 2.0, "Bug": 2.0, "Rock": 0.5, "Steel": 0.5},
    "Psychic": {"Fighting": 2.0, "Poison": 2.0, "Psychic": 0.5, "Dark": 0.0, "Steel": 0.5},
    "Bug": {
        "Fire": 0.5, "Grass": 2.0, "Fighting": 0.5, "Poison": 0.5, "Flying": 0.5,
        "Psychic": 2.0, "Ghost": 0.5, "Dark": 2.0, "Steel": 0.5, "Fairy": 0.5,
    },
    "Rock": {"Fire": 2.0, "Ice": 2.0, "Fighting": 0.5, "Ground": 0.5, "Flying": 2.0, "Bug": 2.0, "Steel": 0.5},
    "Ghost": {"Normal": 0.0, "Psychic": 2.0, "Ghost": 2.0, "Dark": 0.5},
    "Dragon": {"Dragon": 2.0, "Steel": 0.5, "Fairy": 0.0},
    "Dark": {"Fighting": 0.5, "Psychic": 2.0, "Ghost": 2.0, "Dark": 0.5, "Fairy": 0.5},
    "Steel": {"Fire": 0.5, "Water": 0.5, "Electric": 0.5, "Ice": 2.0, "Rock": 2.0, "Steel": 0.5, "Fairy": 2.0},
    "Fairy": {"Fire": 0.5, "Fighting": 2.0, "Poison": 0.5, "Dragon": 2.0, "Dark": 2.0, "Steel": 0.5},
}

STAT_NAMES = ["atk", "def", "spa", "spd", "spe"]

SPEED_WEATHER_ABILITIES = {
    "Swift Swim": ["RainDance", "Rain", "PrimordialSea"],
    "Chlorophyll": ["SunnyDay", "Sun", "DesolateLand"],
    "Sand Rush": ["Sandstorm", "Sand"],
    "Slush Rush": ["Hail", "Snow", "Snowscape"],
}

WEIGHT_ITEMS = ["Iron Ball", "Macho Brace", "Power Bracer", "Power Belt", "Power Lens", "Power Band", "Power Anklet", "Power Weight"]

# Types that can never receive a status
STATUS_TYPE_IMMUNITY = {
    "brn": ["Fire"],
    "par": ["Electric"],
    "psn": ["Poison", "Steel"],
    "tox": ["Poison", "Steel"],
    "frz": ["Ice"],
}

STATUS_NAMES = {
    "brn": "burned",
    "par": "paralyzed",
    "psn": "poisoned",
    "tox": "badly poisoned",
    "slp": "put to sleep",
    "frz": "frozen",
}


def _gen_number(fmt):
    if fmt is None:
        return 9
    if isinstance(fmt, int):
        return fmt
    digits = "".join(c for c in str(fmt)[3:5] if c.isdigit()) if str(fmt).lower().startswith("gen") else ""
    return int(digits) if digits else 9


class Mechanics:
    @staticmethod
    def get_stage_multiplier(stat_name, stage):
        if stat_name in ["acc", "eva", "accuracy", "evasion"]:
            if stage >= 0:
                return (3 + min(6, stage)) / 3.0
            return 3.0 / (3 + min(6, abs(stage)))
        if stage >= 0:
            return (2 + min(6, stage)) / 2.0
        return 2.0 / (2 + min(6, abs(stage)))

    @staticmethod
    def get_effective_stat(mon, stat_name, field=None):
        """
        Calculates effective stat including stages, held items, abilities and burn.
        """
        base = mon.get("stats", {}).get(stat_name, 0)
        stage = mon.get("stat_stages", {}).get(stat_name, 0)
        val = base * Mechanics.get_stage_multiplier(stat_name, stage)

        ability = mon.get("ability")
        item = mon.get("item") or ""

        if stat_name == "atk" and ability in ["Huge Power", "Pure Power"]:
            val *= 2

        if stat_name == "spe":
            weather = field.get("weather") if field else None
            if weather and weather in SPEED_WEATHER_ABILITIES.get(ability, []):
                val *= 2
            terrain = field.get("terrain") if field else None
            if terrain in ["electricterrain", "Electric"] and ability == "Surge Surfer":
                val *= 2
            if ability == "Quick Feet" and mon.get("status"):
                val *= 1.5
            if item == "Choice Scarf":
                val *= 1.5
            elif item in WEIGHT_ITEMS:
                val *= 0.5
        elif stat_name == "atk" and item == "Choice Band":
            val *= 1.5
        elif stat_name == "spa" and item == "Choice Specs":
            val *= 1.5
        elif stat_name == "spd" and item == "Assault Vest":
            val *= 1.5

        if stat_name == "atk" and mon.get("status") == "brn" and ability != "Guts":
            val *= 0.5

        return int(math.floor(val))

    @staticmethod
    def get_effective_speed(mon, field=None, side_conditions=None, fmt=None):
        val = Mechanics.get_effective_stat(mon, "spe", field)

        # Paralysis quartered speed before Gen 7
        if mon.get("status") == "par" and mon.get("ability") != "Quick Feet":
            val *= 0.5 if _gen_number(fmt) >= 7 else 0.25

        if side_conditions and side_conditions.get("tailwind", 0) > 0:
            val *= 2

        return int(math.floor(val))

    @staticmethod
    def get_type_effectiveness(move_type, defender_types):
        effectiveness = 1.0
        for def_type in defender_types or []:
            effectiveness *= TYPE_CHART.get(move_type, {}).get(def_type, 1.0)
        return effectiveness

    @staticmethod
    def is_status_immune(mon, status, field=None):
        if mon.get("status"):
            return True
        types = mon.get("types", [])
        if any(t in types for t in STATUS_TYPE_IMMUNITY.get(status, [])):
            return True
        if status == "slp" and field and field.get("terrain") == "electricterrain" and "Flying" not in types:
            return True
        if status == "par" and mon.get("ability") == "Limber":
            return True
        if status == "slp" and mon.get("ability") in ["Insomnia", "Vital Spirit"]:
            return True
        return False

    @staticmethod
    def apply_boosts(mon, boosts, log, source_name=None):
        """
        Applies a boosts dictionary (e.g. {'atk': 1, 'def': -1}) to a mon.
        Stages are capped at -6/+6.
        """
        if not boosts:
            return
        stages = mon.setdefault("stat_stages", {})
        name = mon.get("name") or mon.get("species")
        source_str = f" from {source_name}" if source_name else ""

        for stat, amount in boosts.items():
            current = stages.get(stat, 0)
            new_stage = max(-6, min(6, current + amount))
            if new_stage != current:
                stages[stat] = new_stage
                diff = new_stage - current
                direction = "rose" if diff > 0 else "fell"
                severity = ""
                if abs(diff) == 2:
                    severity = " sharply"
                elif abs(diff) >= 3:
                    severity = " drastically"
                log.append(f"{name}'s {stat.upper()}{severity} {direction}{source_str}!")
            elif amount > 0:
                log.append(f"{name}'s {stat.upper()} won't go any higher!")
            elif amount < 0:
                log.append(f"{name}'s {stat.upper()} won't go any lower!")
