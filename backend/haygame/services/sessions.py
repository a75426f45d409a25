"""Play session lifecycle: login, heartbeats, wallet switch, round end, sweep."""

import uuid
from dataclasses import dataclass
from typing import List, Optional, Tuple

from flask import current_app

from haygame import db
from haygame.errors import SessionNotAlive, UserNotFound, ValidationError
from haygame.models import PlaySession, User
from haygame.services import clock
from haygame.store import retry_on_conflict

MIN_WALLET_LENGTH = 32


@dataclass
class HeartbeatResult:
    status: str
    elapsed_ms: int
    points: Optional[int] = None
    user: Optional[User] = None

    @property
    def alive(self) -> bool:
        return self.status == 'alive'


def validate_wallet_address(wallet_address) -> str:
    if not isinstance(wallet_address, str) or len(wallet_address) < MIN_WALLET_LENGTH:
        raise ValidationError('Invalid wallet address')
    return wallet_address


def _ensure_user(uow, wallet_address: str, user: Optional[User]) -> User:
    if user is None:
        user = User(wallet_address=wallet_address)
        uow.add(user)
        current_app.logger.info(f"[user-create] wallet={wallet_address}")
    return user


class SessionManager:
    def __init__(self, store, ledger, authenticator=None, max_heartbeat_delta_ms: int = 5000):
        self.store = store
        self.ledger = ledger
        self.authenticator = authenticator
        self.max_heartbeat_delta_ms = max_heartbeat_delta_ms

    def _open_session(self, uow, wallet_address: str) -> Tuple[PlaySession, User]:
        user = _ensure_user(uow, wallet_address, uow.lock_user(wallet_address))
        now = clock.now_ms()
        session = PlaySession(
            id=str(uuid.uuid4()),
            created_at=now,
            wallet_address=wallet_address,
            started_at=now,
            last_heartbeat_at=now,
            elapsed_ms=0,
            is_alive=True,
            points=0,
            points_awarded=0,
        )
        uow.add(session)
        return session, user

    @retry_on_conflict
    def start_session(self, wallet_address: str) -> PlaySession:
        with self.store.transaction() as uow:
            session, _ = self._open_session(uow, wallet_address)
        current_app.logger.info(f"[session-start] session={session.id} wallet={wallet_address}")
        return session

    @retry_on_conflict
    def login(self, challenge_id: str, proof) -> Tuple[PlaySession, User]:
        """Redeem a challenge and open a play session in one transaction."""
        with self.store.transaction() as uow:
            wallet_address = self.authenticator.consume_in(uow, challenge_id, proof)
            session, user = self._open_session(uow, wallet_address)
        current_app.logger.info(f"[connect] session={session.id} wallet={wallet_address}")
        return session, user

    def session_user(self, session_id: str) -> User:
        with self.store.transaction() as uow:
            session = uow.lock_play_session(session_id)
            user = db.session.get(User, session.wallet_address)
            if user is None:
                raise UserNotFound()
        return user

    @retry_on_conflict
    def heartbeat(self, session_id: str) -> HeartbeatResult:
        with self.store.transaction() as uow:
            session = uow.lock_play_session(session_id)
            if not session.is_alive:
                return HeartbeatResult(status='dead', elapsed_ms=session.elapsed_ms)
            now = clock.now_ms()
            delta = min(self.max_heartbeat_delta_ms, max(0, now - session.last_heartbeat_at))
            session.last_heartbeat_at = now
            session.elapsed_ms += delta
            result = HeartbeatResult(
                status='alive',
                elapsed_ms=session.elapsed_ms,
                points=session.points,
                user=db.session.get(User, session.wallet_address),
            )
        return result

    @retry_on_conflict
    def update_user_wallet(self, session_id: str, new_wallet_address) -> Tuple[PlaySession, User]:
        """Rebind an alive session to another wallet.

        Quanta already credited stay with the previous owner; the watermark
        is kept, so the new owner only earns quanta crossed from now on.
        """
        with self.store.transaction() as uow:
            session = uow.lock_play_session(session_id)
            validate_wallet_address(new_wallet_address)
            if not session.is_alive:
                raise SessionNotAlive()
            old_wallet = session.wallet_address
            users = uow.lock_users(old_wallet, new_wallet_address)
            user = _ensure_user(uow, new_wallet_address, users[new_wallet_address])
            if old_wallet != new_wallet_address:
                session.wallet_address = new_wallet_address
                current_app.logger.info(
                    f"[wallet-switch] session={session_id} {old_wallet} -> {new_wallet_address} "
                    f"points={session.points} awarded={session.points_awarded}"
                )
        return session, user

    def _finish(self, uow, session: PlaySession, remove: bool) -> Optional[User]:
        user = uow.lock_user(session.wallet_address)
        if session.is_alive:
            credited = self.ledger.flush_round(session, user)
            session.is_alive = False
            session.ended_at = clock.now_ms()
            session.points = 0
            session.points_awarded = 0
            current_app.logger.info(
                f"[round-end] session={session.id} wallet={session.wallet_address} flushed={credited} remove={remove}"
            )
        if remove:
            uow.delete(session)
        return user

    @retry_on_conflict
    def end_round(self, session_id: str, remove: bool = False) -> Optional[User]:
        """End a round once; later calls only return the user (and remove if asked)."""
        with self.store.transaction() as uow:
            session = uow.lock_play_session(session_id)
            user = self._finish(uow, session, remove)
        return user

    def sweep_stale_sessions(self, grace_ms: int) -> List[str]:
        """End alive sessions whose last heartbeat is older than ``grace_ms``."""
        cutoff = clock.now_ms() - grace_ms
        candidates = [
            s.id for s in PlaySession.query.filter(
                PlaySession.is_alive.is_(True),
                PlaySession.last_heartbeat_at < cutoff,
            ).all()
        ]
        ended = [session_id for session_id in candidates if self._end_if_idle(session_id, cutoff)]
        if ended:
            current_app.logger.info(f"[sweep] ended {len(ended)} idle sessions")
        return ended

    @retry_on_conflict
    def _end_if_idle(self, session_id: str, cutoff: int) -> bool:
        with self.store.transaction() as uow:
            session = uow.lock_session(session_id)
            if not isinstance(session, PlaySession) or not session.is_alive:
                return False
            if session.last_heartbeat_at >= cutoff:
                return False
            self._finish(uow, session, remove=False)
        return True
