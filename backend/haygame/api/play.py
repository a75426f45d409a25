import math

from flask import Blueprint, jsonify, request, current_app
from haygame.errors import ValidationError
from haygame.services.auth import LoginProof
from haygame.services.ledger import MAX_QUANTITY
from haygame.services.registry import current_services
from haygame.socketio_events import push_leaderboard, push_user_update


play = Blueprint('play', __name__)


def _body() -> dict:
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else {}


def _session_id(data: dict) -> str:
    session_id = data.get('sessionId')
    if not session_id or not isinstance(session_id, str):
        raise ValidationError('Missing sessionId')
    return session_id


def _is_number(value) -> bool:
    """JSON numbers only; NaN and +/-Infinity are rejected."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    return not isinstance(value, float) or math.isfinite(value)


def _floored_count(value, message: str, minimum: int = 1) -> int:
    """Client-reported game counters: any number in range, floored."""
    if not _is_number(value) or value > MAX_QUANTITY:
        raise ValidationError(message)
    count = math.floor(value)
    if count < minimum:
        raise ValidationError(message)
    return count


def _whole_number(value, message: str) -> int:
    """Token quantities: must be integral; 2.0 is accepted as 2."""
    if not _is_number(value) or (isinstance(value, float) and not value.is_integer()):
        raise ValidationError(message)
    if value > MAX_QUANTITY:
        raise ValidationError(message)
    return int(value)


def _user_payload(user):
    return user.to_dict() if user is not None else None


@play.route('/nonce', methods=['GET'])
def issue_nonce():
    challenge = current_services().authenticator.issue_challenge()
    return jsonify({'nonce': challenge.id, 'message': challenge.message})


@play.route('/connect', methods=['POST'])
def connect_wallet():
    data = _body()
    wallet_address = data.get('walletAddress')
    nonce = data.get('nonce')
    if not wallet_address or not nonce or not isinstance(wallet_address, str) or not isinstance(nonce, str):
        current_app.logger.warning(f"[connect] missing parameters wallet={bool(wallet_address)} nonce={bool(nonce)}")
        raise ValidationError('Missing walletAddress or nonce')
    proof = LoginProof(
        wallet_address=wallet_address,
        signed=bool(data.get('signed')),
        signature=data.get('signature'),
    )
    session, user = current_services().sessions.login(nonce, proof)
    return jsonify({'sessionId': session.id, 'user': user.to_dict()})


@play.route('/update-wallet', methods=['POST'])
def update_wallet():
    data = _body()
    session_id = data.get('sessionId')
    new_wallet_address = data.get('newWalletAddress')
    if not session_id or not new_wallet_address:
        raise ValidationError('Missing sessionId or newWalletAddress')
    session, user = current_services().sessions.update_user_wallet(session_id, new_wallet_address)
    push_user_update(session_id, user)
    return jsonify({'sessionId': session_id, 'user': user.to_dict()})


@play.route('/heartbeat', methods=['POST'])
def heartbeat():
    session_id = _session_id(_body())
    result = current_services().sessions.heartbeat(session_id)
    payload = {'status': result.status, 'elapsedMs': result.elapsed_ms}
    if result.alive:
        payload['points'] = result.points
        payload['user'] = _user_payload(result.user)
    return jsonify(payload)


@play.route('/progress', methods=['POST'])
def report_progress():
    data = _body()
    session_id = _session_id(data)
    passed = _floored_count(data.get('passed', 0), 'Missing sessionId or invalid passed count')
    result = current_services().ledger.report_progress(session_id, passed)
    if result.credited:
        push_user_update(session_id, result.user)
    return jsonify({
        'ok': True,
        'points': result.points,
        'savedPointsTotal': result.saved_points_total,
        'user': result.user.to_dict(),
    })


@play.route('/gameover', methods=['POST'])
def game_over():
    session_id = _session_id(_body())
    user = current_services().sessions.end_round(session_id, remove=False)
    push_user_update(session_id, user)
    return jsonify({'ok': True, 'user': _user_payload(user)})


@play.route('/disconnect', methods=['POST'])
def disconnect():
    session_id = _session_id(_body())
    user = current_services().sessions.end_round(session_id, remove=True)
    return jsonify({'ok': True, 'user': _user_payload(user)})


@play.route('/save-score', methods=['POST'])
def save_score():
    data = _body()
    session_id = _session_id(data)
    score = _floored_count(data.get('score'), 'Missing sessionId or invalid score', minimum=0)
    services = current_services()
    user = services.leaderboard.record_session_score(session_id, score)
    push_leaderboard(services.leaderboard.top())
    return jsonify({'ok': True, 'user': user.to_dict()})


@play.route('/leaderboard', methods=['GET'])
def leaderboard():
    return jsonify({'players': current_services().leaderboard.top()})


@play.route('/user/<string:wallet_address>', methods=['GET'])
def get_user(wallet_address):
    return jsonify(current_services().ledger.get_user(wallet_address).to_dict())


@play.route('/user-by-session', methods=['POST'])
def user_by_session():
    session_id = _session_id(_body())
    user = current_services().sessions.session_user(session_id)
    return jsonify({'user': user.to_dict(), 'sessionId': session_id})


@play.route('/convert', methods=['POST'])
def convert_points():
    data = _body()
    wallet_address = data.get('walletAddress')
    if not wallet_address:
        raise ValidationError('Missing walletAddress')
    tokens = _whole_number(data.get('tokens', 1), 'Invalid tokens value')
    user = current_services().ledger.convert(wallet_address, tokens)
    return jsonify({'ok': True, 'user': user.to_dict()})


@play.route('/withdraw', methods=['POST'])
def withdraw():
    data = _body()
    wallet_address = data.get('walletAddress')
    if not wallet_address or not _is_number(data.get('amount')):
        raise ValidationError('Missing walletAddress or amount')
    amount = _whole_number(data.get('amount'), 'Withdrawal amount must be a whole number of HAY')
    result = current_services().ledger.withdraw(wallet_address, amount)
    return jsonify({
        'ok': True,
        'user': result.user.to_dict(),
        'notification': result.notification.status,
    })
