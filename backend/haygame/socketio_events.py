from flask_socketio import join_room, leave_room, emit
from haygame import socketio


def handle_connect():
    emit('connected', {'message': 'Connected to /ws'})


def handle_join_session(data):
    session_id = (data or {}).get('sessionId')
    if not session_id:
        emit('error', {'message': 'sessionId is required'})
        return
    room = f"session:{session_id}"
    join_room(room)
    emit('joined', {'room': room})


def handle_leave_session(data):
    session_id = (data or {}).get('sessionId')
    if not session_id:
        emit('error', {'message': 'sessionId is required'})
        return
    room = f"session:{session_id}"
    leave_room(room)
    emit('left', {'room': room})


def handle_join_leaderboard(data=None):
    join_room('leaderboard')
    emit('joined', {'room': 'leaderboard'})


def handle_ping(data):
    emit('pong', data or {})


def push_user_update(session_id, user) -> None:
    """Push fresh user state to every socket watching the session."""
    if user is None:
        return
    socketio.emit('user_update', {'user': user.to_dict()}, to=f"session:{session_id}", namespace='/ws')


def push_leaderboard(players) -> None:
    socketio.emit('leaderboard_update', {'players': players}, to='leaderboard', namespace='/ws')


def register_socketio_handlers(testing: bool = False) -> None:
    """Register Socket.IO event handlers.

    Always register on namespace '/ws'. When testing is True, also mirror
    handlers on the default namespace '/' to accommodate the test harness.
    """
    handlers = {
        'connect': handle_connect,
        'join_session': handle_join_session,
        'leave_session': handle_leave_session,
        'join_leaderboard': handle_join_leaderboard,
        'ping': handle_ping,
    }
    namespaces = ['/ws', '/'] if testing else ['/ws']
    for namespace in namespaces:
        for event, handler in handlers.items():
            socketio.on_event(event, handler, namespace=namespace)
