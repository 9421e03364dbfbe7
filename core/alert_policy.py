import time
from typing import Callable, Optional

import config as cfg
from core.scheduler import Scheduler, TimerHandle
from models.schemas import PostureEvent
from utils.debug import debug_log


def _debug_log(message: str):
    debug_log(message, tag="ALERT")


class AlertSink:
    """
    Commands to the alerting collaborators. Delivery is someone else's job;
    the default implementation does nothing.
    """

    def play_sound(self) -> None:
        pass

    def post_notification(self, title: str, body: str) -> None:
        pass

    def withdraw_notification(self) -> None:
        pass


class AlertPolicy:
    """
    Debounced alerting for bad posture.

    An onset arms a confirmation timer; recovering before it fires cancels it.
    When it fires with posture still bad, one alert goes out: the counter
    callback always runs, sound and notification only if enabled, and the
    notification is additionally gated by a cooldown between deliveries.
    """

    def __init__(
        self,
        scheduler: Scheduler,
        sink: Optional[AlertSink] = None,
        is_posture_bad: Optional[Callable[[], bool]] = None,
        on_alert: Optional[Callable[[], None]] = None,
        on_notification_suppressed: Optional[Callable[[], None]] = None,
        tunables: Optional[cfg.Tunables] = None,
        clock: Callable[[], float] = time.monotonic,
        sound_enabled: bool = cfg.SOUND_ENABLED_DEFAULT,
        notifications_enabled: bool = cfg.NOTIFICATIONS_ENABLED_DEFAULT,
    ):
        self.scheduler = scheduler
        self.sink = sink or AlertSink()
        self.is_posture_bad = is_posture_bad or (lambda: True)
        self.on_alert = on_alert
        self.on_notification_suppressed = on_notification_suppressed
        self.tunables = tunables or cfg.DEFAULT_TUNABLES
        self.clock = clock
        self.sound_enabled = sound_enabled
        self.notifications_enabled = notifications_enabled

        self._timer: Optional[TimerHandle] = None
        self.last_notification_time: Optional[float] = None
        self.notification_outstanding = False

    @property
    def is_armed(self) -> bool:
        return self._timer is not None

    def handle_event(self, event: PostureEvent, *_):
        """Subscriber for the state machine's event channel."""
        if event == PostureEvent.BAD_POSTURE_ONSET:
            self.on_bad_posture_onset()
        elif event == PostureEvent.POSTURE_RECOVERED:
            self.on_posture_recovered()

    def on_bad_posture_onset(self):
        self._cancel_timer()
        self._timer = self.scheduler.call_later(self.tunables.confirm_delay, self._on_confirm_elapsed)
        _debug_log(f"Armed, confirming in {self.tunables.confirm_delay}s")

    def on_posture_recovered(self):
        if self._cancel_timer():
            _debug_log("Recovered before confirmation, no alert")
        self.clear_indications()

    def clear_indications(self):
        """Withdraw a delivered notification, if any. Safe to call repeatedly."""
        if not self.notification_outstanding:
            return
        self.notification_outstanding = False
        self.sink.withdraw_notification()

    def cancel(self):
        """Session is ending: drop the pending timer and any visible alert."""
        self._cancel_timer()
        self.clear_indications()

    def _cancel_timer(self) -> bool:
        if self._timer is None:
            return False
        self._timer.cancel()
        self._timer = None
        return True

    def _on_confirm_elapsed(self):
        self._timer = None
        if not self.is_posture_bad():
            return
        self._fire()

    def _fire(self):
        if self.on_alert:
            self.on_alert()

        if self.sound_enabled:
            self.sink.play_sound()

        if not self.notifications_enabled:
            return

        now = self.clock()
        if self.last_notification_time is not None and \
                now - self.last_notification_time < self.tunables.cooldown:
            _debug_log("Notification suppressed by cooldown")
            if self.on_notification_suppressed:
                self.on_notification_suppressed()
            return

        self.last_notification_time = now
        self.notification_outstanding = True
        self.sink.post_notification(cfg.NOTIFICATION_TITLE, cfg.NOTIFICATION_BODY)
        _debug_log("Notification posted")
