from typing import Optional

import config as cfg
from models.schemas import PostureCategory

# Neutral head position. Deviation is measured from here.
TARGET_PITCH = 0.0
TARGET_ROLL = 0.0


def classify(pitch: float, roll: float, tunables: Optional[cfg.Tunables] = None) -> PostureCategory:
    """
    Map a head attitude (radians) to a posture category.

    A lean on both axes is POOR_POSTURE. Never returns UNKNOWN; that state
    belongs to callers that have no sample.
    """
    t = tunables or cfg.DEFAULT_TUNABLES
    forward = abs(pitch - TARGET_PITCH) > t.threshold_pitch
    sideways = abs(roll - TARGET_ROLL) > t.threshold_roll

    if forward and sideways:
        return PostureCategory.POOR_POSTURE
    if forward:
        return PostureCategory.FORWARD_LEAN
    if sideways:
        return PostureCategory.SIDEWAYS_LEAN
    return PostureCategory.GOOD
