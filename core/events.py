from typing import Any, Callable, List


class EventChannel:
    """
    Minimal synchronous publish/subscribe channel.

    Publishers never hold a reference to their subscribers' owners, only to
    the channel, so a connectivity source and the state machine can live and
    die independently.
    """

    def __init__(self, name: str = ""):
        self.name = name
        self._handlers: List[Callable[..., Any]] = []

    def subscribe(self, handler: Callable[..., Any]) -> Callable[[], None]:
        """Register a handler. Returns a callable that unsubscribes it."""
        self._handlers.append(handler)

        def unsubscribe():
            if handler in self._handlers:
                self._handlers.remove(handler)

        return unsubscribe

    def publish(self, *args: Any) -> None:
        # Copy so a handler may unsubscribe while being called
        for handler in list(self._handlers):
            handler(*args)
