from dataclasses import dataclass

from flask import current_app

from .auth import NonceAuthenticator, make_verifier
from .leaderboard import LeaderboardIndex
from .ledger import PointsLedger
from .notifications import NotificationOutbox, make_notifier
from .sessions import SessionManager

EXTENSION_KEY = 'haygame'


@dataclass
class GameServices:
    authenticator: NonceAuthenticator
    sessions: SessionManager
    ledger: PointsLedger
    leaderboard: LeaderboardIndex
    outbox: NotificationOutbox


def build_services(config, store) -> GameServices:
    """Wire the services for one app from its config."""
    authenticator = NonceAuthenticator(
        store,
        make_verifier(config.get('SIGNATURE_VERIFIER', 'ed25519')),
        ttl_ms=int(config.get('NONCE_TTL_SEC', 300)) * 1000,
    )
    outbox = NotificationOutbox(store, config.get('WITHDRAWAL_NOTIFIER') or make_notifier(config))
    ledger = PointsLedger(store, outbox=outbox)
    sessions = SessionManager(
        store,
        ledger,
        authenticator=authenticator,
        max_heartbeat_delta_ms=int(config.get('HEARTBEAT_MAX_DELTA_MS', 5000)),
    )
    leaderboard = LeaderboardIndex(store, size=int(config.get('LEADERBOARD_SIZE', 10)))
    return GameServices(
        authenticator=authenticator,
        sessions=sessions,
        ledger=ledger,
        leaderboard=leaderboard,
        outbox=outbox,
    )


def current_services() -> GameServices:
    return current_app.extensions[EXTENSION_KEY]
