# ===============================================================
# utils/templates.py
# ===============================================================
import re
from typing import Mapping

PLACEHOLDER = re.compile(r"\{\{\s*(\w+)\s*\}\}")

WINNER_MESSAGE = (
    "Congratulations! You are winner #{{position}} and will receive "
    "{{amount}} via {{provider}}."
)
SLOTS_TAKEN_MESSAGE = "Correct answer, but all {{max_winners}} winner slots have been taken."


def render_template(template: str, values: Mapping[str, object]) -> str:
    """Replace {{key}} placeholders; unknown keys are left untouched."""

    def _sub(match):
        key = match.group(1)
        if key in values and values[key] is not None:
            return str(values[key])
        return match.group(0)

    return PLACEHOLDER.sub(_sub, template or "")
