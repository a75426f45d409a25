import pytest

from haygame import db
from haygame.errors import UserNotFound, ValidationError
from haygame.models import User


def _seed(clock, scores):
    for index, score in enumerate(scores):
        clock.advance(1)
        db.session.add(User(wallet_address=f'wallet-{index:02d}', best_score=score))
    db.session.commit()


def test_top_sorts_descending_and_skips_zero_scores(services, clock):
    _seed(clock, [5, 0, 42, 17, 0, 42, 3])
    players = services.leaderboard.top()
    assert [p['bestScore'] for p in players] == [42, 42, 17, 5, 3]
    # ties keep insertion order
    assert [p['walletAddress'] for p in players[:2]] == ['wallet-02', 'wallet-05']


def test_top_truncates_to_ten(services, clock):
    _seed(clock, list(range(1, 16)))
    players = services.leaderboard.top()
    assert len(players) == 10
    assert players[0] == {'walletAddress': 'wallet-14', 'bestScore': 15}
    assert services.leaderboard.top(3) == players[:3]
    assert services.leaderboard.top(0) == []


def test_top_is_a_pure_read(services, clock):
    _seed(clock, [9, 4])
    assert services.leaderboard.top() == services.leaderboard.top()
    assert db.session.get(User, 'wallet-00').current_score == 0


def test_record_score_keeps_high_water_mark(services):
    db.session.add(User(wallet_address='w'))
    db.session.commit()
    user = services.leaderboard.record_score('w', 120)
    assert (user.current_score, user.best_score) == (120, 120)
    user = services.leaderboard.record_score('w', 80)
    assert (user.current_score, user.best_score) == (80, 120)


def test_record_score_validation(services):
    with pytest.raises(ValidationError):
        services.leaderboard.record_score('w', -1)
    with pytest.raises(UserNotFound):
        services.leaderboard.record_score('w', 1)


def test_record_session_score_uses_session_owner(services):
    session = services.sessions.start_session('HayWallet1111111111111111111111111111111111')
    user = services.leaderboard.record_session_score(session.id, 64)
    assert user.best_score == 64
    assert services.leaderboard.top() == [
        {'walletAddress': 'HayWallet1111111111111111111111111111111111', 'bestScore': 64}
    ]
