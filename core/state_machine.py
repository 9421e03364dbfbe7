from datetime import datetime
from typing import Optional

from pydantic import ValidationError

import config as cfg
from core.events import EventChannel
from core.posture_classifier import classify
from models.schemas import OrientationSample, PostureCategory, PostureEvent, StatusSnapshot


class PostureStateMachine:
    """
    Holds the current posture category and reports Good/not-Good transitions.

    Transitions are published on `events` as PostureEvent values:
      GOOD -> any bad category     BAD_POSTURE_ONSET
      anything else -> GOOD        POSTURE_RECOVERED
    Moves between bad categories, or from UNKNOWN to a bad category, are
    silent. Connectivity arrives on the `connectivity` channel (True/False).
    """

    def __init__(self, tunables: Optional[cfg.Tunables] = None,
                 connectivity: Optional[EventChannel] = None):
        self.tunables = tunables or cfg.DEFAULT_TUNABLES
        self.events = EventChannel("posture")
        self.connectivity = connectivity or EventChannel("connectivity")
        self._unsubscribe = self.connectivity.subscribe(self._on_connectivity)

        self.category = PostureCategory.UNKNOWN
        self.pitch = 0.0
        self.roll = 0.0
        self.is_connected = False
        self.updated_at: Optional[datetime] = None

    def _on_connectivity(self, connected: bool):
        self.is_connected = bool(connected)

    def process_sample(self, pitch, roll) -> Optional[PostureCategory]:
        """
        Classify one sample and publish any transition event.
        Malformed samples count as "no data". Returns the new category, or None
        if the sample was dropped.
        """
        try:
            sample = OrientationSample(pitch=pitch, roll=roll)
        except ValidationError:
            self.mark_unavailable()
            return None

        if not self.is_connected:
            self.connectivity.publish(True)

        self.pitch = sample.pitch
        self.roll = sample.roll
        self.updated_at = sample.timestamp

        previous = self.category
        self.category = classify(sample.pitch, sample.roll, self.tunables)

        if previous == PostureCategory.GOOD and self.category != PostureCategory.GOOD:
            self.events.publish(PostureEvent.BAD_POSTURE_ONSET, previous, self.category)
        elif previous != PostureCategory.GOOD and self.category == PostureCategory.GOOD:
            self.events.publish(PostureEvent.POSTURE_RECOVERED, previous, self.category)

        return self.category

    def mark_unavailable(self):
        """Sample source produced nothing or an error. Category is kept."""
        if self.is_connected:
            self.connectivity.publish(False)
        self.is_connected = False

    def reset(self):
        self.category = PostureCategory.UNKNOWN
        self.pitch = 0.0
        self.roll = 0.0
        self.updated_at = None
        if self.is_connected:
            self.connectivity.publish(False)
        self.is_connected = False

    def close(self):
        self._unsubscribe()

    def snapshot(self) -> StatusSnapshot:
        return StatusSnapshot(
            status=self.category.description,
            category=self.category,
            pitch=self.pitch,
            roll=self.roll,
            timestamp=self.updated_at or datetime.now(),
            is_connected=self.is_connected,
        )
