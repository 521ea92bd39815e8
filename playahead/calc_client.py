import logging
import os

import requests

CALC_SERVICE_URL = os.environ.get(
    "PLAYAHEAD_CALC_URL", "http://127.0.0.1:3000/batch-calculate"
)
CALC_TIMEOUT = float(os.environ.get("PLAYAHEAD_CALC_TIMEOUT", "5"))


def get_damage_rolls(attacker, defender, moves, field_conditions, fmt=None):
    """
    Sends a request to the damage calc service.
    Returns one result dict per move, or [] when the service is unavailable.
    """
    payload = {
        "attacker": attacker,
        "defender": defender,
        "moves": moves,
        "field": field_conditions,
    }
    if fmt:
        payload["format"] = fmt

    try:
        response = requests.post(CALC_SERVICE_URL, json=payload, timeout=CALC_TIMEOUT)
        if response.status_code != 200:
            logging.warning(
                f"Error calling calc service: {response.status_code} - {response.text}"
            )
            return []
        return response.json()
    except (requests.RequestException, ValueError) as e:
        logging.warning(f"Error calling calc service: {e}")
        return []


def calc_damage(attacker, defender, move_name, field_conditions, fmt=None):
    results = get_damage_rolls(attacker, defender, [move_name], field_conditions, fmt)
    if not results:
        return None
    return results[0]
