from haygame.services.scheduler import run_liveness_sweep, start_background_tasks

WALLET = 'HayWallet1111111111111111111111111111111111'


def _login(client):
    nonce = client.get('/api/nonce').get_json()['nonce']
    res = client.post('/api/connect', json={'walletAddress': WALLET, 'nonce': nonce, 'signed': True})
    return res.get_json()['sessionId']


def _events(sio_client, name):
    return [pkt for pkt in sio_client.get_received('/ws') if pkt['name'] == name]


def test_socket_connect_and_join(sio_client):
    if not sio_client.is_connected('/ws'):
        sio_client.connect(namespace='/ws')
    assert sio_client.is_connected('/ws')
    sio_client.get_received('/ws')

    sio_client.emit('join_session', {'sessionId': 'abc'}, namespace='/ws')
    joined = _events(sio_client, 'joined')
    assert joined and joined[0]['args'][0] == {'room': 'session:abc'}

    sio_client.emit('join_session', {}, namespace='/ws')
    assert _events(sio_client, 'error')


def test_ping_echoes_payload(sio_client):
    sio_client.get_received('/ws')
    sio_client.emit('ping', {'t': 1}, namespace='/ws')
    assert _events(sio_client, 'pong')[0]['args'][0] == {'t': 1}


def test_user_update_pushed_when_quantum_is_credited(sio_client, client):
    session_id = _login(client)
    sio_client.emit('join_session', {'sessionId': session_id}, namespace='/ws')
    sio_client.get_received('/ws')

    client.post('/api/progress', json={'sessionId': session_id, 'passed': 7})
    assert _events(sio_client, 'user_update') == []

    client.post('/api/progress', json={'sessionId': session_id, 'passed': 8})
    updates = _events(sio_client, 'user_update')
    assert len(updates) == 1
    assert updates[0]['args'][0]['user']['savedPointsTotal'] == 15


def test_leaderboard_update_after_save_score(sio_client, client):
    session_id = _login(client)
    sio_client.emit('join_leaderboard', namespace='/ws')
    sio_client.get_received('/ws')

    client.post('/api/save-score', json={'sessionId': session_id, 'score': 33})
    updates = _events(sio_client, 'leaderboard_update')
    assert updates[0]['args'][0] == {'players': [{'walletAddress': WALLET, 'bestScore': 33}]}


def test_liveness_sweep_ends_idle_session(flask_app, sio_client, client, clock):
    session_id = _login(client)
    sio_client.emit('join_session', {'sessionId': session_id}, namespace='/ws')
    client.post('/api/progress', json={'sessionId': session_id, 'passed': 20})
    sio_client.get_received('/ws')

    clock.advance(10_000)
    assert run_liveness_sweep(flask_app) == []

    clock.advance(31_000)
    assert run_liveness_sweep(flask_app) == [session_id]
    ended = _events(sio_client, 'session_ended')
    assert ended[0]['args'][0] == {'sessionId': session_id}

    beat = client.post('/api/heartbeat', json={'sessionId': session_id}).get_json()
    assert beat['status'] == 'dead'
    user = client.get(f'/api/user/{WALLET}').get_json()
    assert user['savedPointsTotal'] == 15


def test_background_tasks_do_not_start_in_testing(flask_app, monkeypatch):
    from haygame import socketio
    started = []
    monkeypatch.setattr(socketio, 'start_background_task', lambda *args: started.append(args))
    start_background_tasks(flask_app)
    assert started == []
