import atexit
import threading

from haygame import socketio
from .registry import current_services


_stop_event = threading.Event()
_started_apps = set()


def run_liveness_sweep(app) -> list:
    """End idle play sessions, purge expired challenges and notify clients."""
    with app.app_context():
        services = current_services()
        grace_ms = int(app.config.get('LIVENESS_GRACE_SEC', 30)) * 1000
        ended = services.sessions.sweep_stale_sessions(grace_ms)
        services.authenticator.purge_expired_challenges()
        for session_id in ended:
            socketio.emit('session_ended', {'sessionId': session_id}, to=f"session:{session_id}", namespace='/ws')
        return ended


def run_notification_retry(app) -> int:
    with app.app_context():
        return current_services().outbox.deliver_pending()


def _loop(app, name, interval, job):
    app.logger.info(f"[timer-set] task={name} every={interval}s")
    while not _stop_event.is_set():
        socketio.sleep(interval)
        if _stop_event.is_set():
            break
        try:
            job(app)
        except Exception:
            # Keep the loop alive; the failure is logged with its traceback
            app.logger.exception(f"[timer-fail] task={name}")
    app.logger.info(f"[timer-stop] task={name}")


def start_background_tasks(app) -> None:
    """Start the liveness sweep and notification retry loops.

    - No-ops in TESTING mode unless ENABLE_SCHEDULER_IN_TESTS is set
    - Starts at most once per app
    - Loops exit when stop_background_tasks() runs (registered at exit)
    """
    if app.config.get('TESTING') and not app.config.get('ENABLE_SCHEDULER_IN_TESTS'):
        return
    if id(app) in _started_apps:
        app.logger.info("[timer-skip] background tasks already running")
        return
    _started_apps.add(id(app))
    _stop_event.clear()
    sweep_every = int(app.config.get('LIVENESS_SWEEP_SEC', 10))
    retry_every = int(app.config.get('NOTIFICATION_RETRY_SEC', 60))
    socketio.start_background_task(_loop, app, 'liveness-sweep', sweep_every, run_liveness_sweep)
    socketio.start_background_task(_loop, app, 'notification-retry', retry_every, run_notification_retry)


def stop_background_tasks() -> None:
    _stop_event.set()
    _started_apps.clear()


atexit.register(stop_background_tasks)
