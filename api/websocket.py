from fastapi import APIRouter, WebSocket, WebSocketDisconnect
import asyncio
import json
import time
from typing import Dict
from pydantic import ValidationError
from core.alert_policy import AlertSink
from core.scheduler import LoopScheduler
from models.schemas import OrientationSample
from services.posture_monitor import PostureMonitor
from utils.debug import debug_log
from utils.network import get_client_ip
import config as cfg

router = APIRouter()

MAX_ACTION_LENGTH = 50


def _debug_log(message: str):
    debug_log(message, tag="WS")


# === RATE LIMITER ===

class RateLimiter:
    """Sliding one-second window over incoming messages."""
    def __init__(self, max_messages: int = 10, window_seconds: float = 1.0):
        self.max_messages = max_messages
        self.window_seconds = window_seconds
        self.messages: list = []

    def is_allowed(self) -> bool:
        """Returns True if message is allowed, False if rate limited."""
        now = time.monotonic()
        self.messages = [t for t in self.messages if now - t < self.window_seconds]

        if len(self.messages) >= self.max_messages:
            return False

        self.messages.append(now)
        return True


# === CONNECTION LIMITER ===

class ConnectionLimiter:
    """Limits concurrent monitor connections per IP."""

    def __init__(self, max_per_ip: int = 5):
        self.max_per_ip = max_per_ip
        self.connections: Dict[str, int] = {}

    def can_connect(self, ip: str) -> bool:
        return self.connections.get(ip, 0) < self.max_per_ip

    def add_connection(self, ip: str):
        self.connections[ip] = self.connections.get(ip, 0) + 1

    def remove_connection(self, ip: str):
        if ip in self.connections:
            self.connections[ip] -= 1
            if self.connections[ip] <= 0:
                del self.connections[ip]


connection_limiter = ConnectionLimiter(max_per_ip=cfg.MAX_CONNECTIONS_PER_IP)


# === ALERT DELIVERY ===

class WebSocketAlertSink(AlertSink):
    """
    Turns alert commands into outbound messages. Commands are queued, not
    sent, because they are issued from timer callbacks; the connection's
    writer task drains the queue.
    """

    def __init__(self, outbox: asyncio.Queue):
        self.outbox = outbox

    def play_sound(self):
        self.outbox.put_nowait({"type": "play_sound", "data": {}})

    def post_notification(self, title: str, body: str):
        self.outbox.put_nowait({"type": "post_notification", "data": {"title": title, "body": body}})

    def withdraw_notification(self):
        self.outbox.put_nowait({"type": "withdraw_notification", "data": {}})


async def _drain_outbox(websocket: WebSocket, outbox: asyncio.Queue):
    while True:
        message = await outbox.get()
        await websocket.send_json(message)


async def _close_after_writer_failure(websocket: WebSocket):
    try:
        await websocket.close(code=1011)
    except RuntimeError as e:
        # Already closed by the other side
        _debug_log(f"Close after writer failure: {e}")


def start_writer(websocket: WebSocket, outbox: asyncio.Queue) -> asyncio.Task:
    """
    Run the outbox writer. If a send fails the socket is closed, which ends
    the receive loop and lets the endpoint stop the session, instead of alert
    commands piling up for a client that never gets them.
    """
    writer = asyncio.create_task(_drain_outbox(websocket, outbox))
    closers = set()

    def on_done(task: asyncio.Task):
        if task.cancelled() or task.exception() is None:
            return
        _debug_log(f"Writer failed, closing connection: {task.exception()}")
        closer = asyncio.ensure_future(_close_after_writer_failure(websocket))
        closers.add(closer)
        closer.add_done_callback(closers.discard)

    writer.add_done_callback(on_done)
    return writer


def get_store(websocket: WebSocket):
    return websocket.app.state.history_store


# === WEBSOCKET ENDPOINT ===

@router.websocket("/ws")
async def websocket_endpoint(websocket: WebSocket):
    client_ip = get_client_ip(websocket)
    if not connection_limiter.can_connect(client_ip):
        await websocket.close(code=4000, reason="Connection rejected")
        return

    await websocket.accept()
    connection_limiter.add_connection(client_ip)

    outbox: asyncio.Queue = asyncio.Queue()
    monitor = PostureMonitor(
        get_store(websocket),
        LoopScheduler(),
        sink=WebSocketAlertSink(outbox),
    )
    writer = start_writer(websocket, outbox)
    rate_limiter = RateLimiter(max_messages=cfg.MAX_SAMPLES_PER_SECOND, window_seconds=1.0)

    try:
        while True:
            try:
                data = await asyncio.wait_for(
                    websocket.receive_text(),
                    timeout=cfg.WEBSOCKET_TIMEOUT
                )
            except asyncio.TimeoutError:
                # Silence is "no data" from the sample source
                monitor.handle_unavailable()
                outbox.put_nowait({"type": "ping"})
                continue

            if len(data) > cfg.MAX_MESSAGE_SIZE:
                continue

            try:
                message = json.loads(data)
            except json.JSONDecodeError:
                continue
            if not isinstance(message, dict):
                continue

            action = message.get('action')
            if not action or not isinstance(action, str) or len(action) > MAX_ACTION_LENGTH:
                continue

            if action == 'sample':
                # Excess samples are dropped; accounting measures real elapsed time
                if not rate_limiter.is_allowed():
                    continue
                try:
                    sample = OrientationSample.model_validate(
                        {"pitch": message.get('pitch'), "roll": message.get('roll')}
                    )
                except ValidationError:
                    monitor.handle_unavailable()
                    continue
                previous = monitor.state.category
                category = monitor.handle_sample(sample.pitch, sample.roll)
                if category is not None and category != previous:
                    outbox.put_nowait({"type": "status", "data": monitor.status()})

            elif action == 'unavailable':
                monitor.handle_unavailable()
                outbox.put_nowait({"type": "status", "data": monitor.status()})

            elif action == 'start_session':
                session_id = monitor.start_monitoring()
                if session_id is None:
                    outbox.put_nowait({"type": "session_started", "data": {"already_running": True}})
                else:
                    outbox.put_nowait({"type": "session_started", "data": {"session_id": session_id}})

            elif action == 'stop_session':
                summary = monitor.stop_monitoring()
                outbox.put_nowait({"type": "session_stopped", "data": summary or {"already_stopped": True}})

            elif action == 'toggle_sound':
                monitor.set_sound_enabled(message.get('enabled', True) is True)

            elif action == 'toggle_notifications':
                monitor.set_notifications_enabled(message.get('enabled', True) is True)

            elif action == 'get_status':
                outbox.put_nowait({"type": "status", "data": monitor.status()})

            elif action == 'pong':
                pass

    except WebSocketDisconnect:
        _debug_log("Client disconnected")
    except Exception as e:
        _debug_log(f"Connection error: {e}")
    finally:
        connection_limiter.remove_connection(client_ip)
        # Flush whatever the session buffered before the timers go away
        summary = monitor.stop_monitoring()
        if summary is not None:
            _debug_log(f"Auto-stopped {summary['session_id']} (flushed={summary['flushed']})")
        monitor.close()
        writer.cancel()
        try:
            await writer
        except asyncio.CancelledError:
            pass
        except Exception as e:
            _debug_log(f"Writer stopped with error: {e}")
