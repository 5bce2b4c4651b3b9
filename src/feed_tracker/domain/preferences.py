"""Pydantic models for user preferences."""

from enum import StrEnum

from pydantic import BaseModel, Field

DEFAULT_SPREADSHEET_NAME = "Untitled Sheet"
DEFAULT_DAILY_VOLUME_GOAL = 1000
DEFAULT_FORMULA_TYPES = "Breast milk,Similac 360,Emfamil Neuropro"
DEFAULT_QUICK_VOLUMES = "40,60,130,150"


class DragSpeed(StrEnum):
    """How fast dragging changes the selected volume."""

    SLOW = "Slow"
    DEFAULT = "Default"
    FAST = "Fast"

    @property
    def sensitivity(self) -> float:
        return _SENSITIVITY[self]


_SENSITIVITY = {
    DragSpeed.SLOW: -3.0,
    DragSpeed.DEFAULT: -2.25,
    DragSpeed.FAST: -1.5,
}


class Preferences(BaseModel):
    """Persisted user settings.

    List-valued settings are stored comma-joined, the same way the sheet
    picker and editors write them.
    """

    spreadsheet_id: str | None = None
    spreadsheet_name: str = DEFAULT_SPREADSHEET_NAME
    daily_volume_goal: int = Field(default=DEFAULT_DAILY_VOLUME_GOAL, ge=0)
    formula_types: str = DEFAULT_FORMULA_TYPES
    feed_quick_volumes: str = DEFAULT_QUICK_VOLUMES
    pumping_quick_volumes: str = DEFAULT_QUICK_VOLUMES
    haptic_feedback_enabled: bool = True
    drag_speed: DragSpeed = DragSpeed.DEFAULT
    last_used_formula_type: str | None = None
