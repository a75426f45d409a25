from typing import Dict, List

from flask import current_app

from haygame.errors import UserNotFound, ValidationError
from haygame.models import User
from haygame.services.ledger import MAX_QUANTITY
from haygame.store import retry_on_conflict


class LeaderboardIndex:
    """Ranking derived from user best scores. Owns no state of its own."""

    def __init__(self, store, size: int = 10):
        self.store = store
        self.size = size

    def top(self, n: int = None) -> List[Dict[str, object]]:
        limit = self.size if n is None else n
        if limit <= 0:
            return []
        users = (
            User.query
            .filter(User.best_score > 0)
            .order_by(User.best_score.desc(), User.created_at.asc(), User.wallet_address.asc())
            .limit(limit)
            .all()
        )
        return [{'walletAddress': u.wallet_address, 'bestScore': u.best_score} for u in users]

    @staticmethod
    def _apply(user: User, score: int) -> None:
        user.current_score = score
        if score > user.best_score:
            current_app.logger.info(f"[best-score] wallet={user.wallet_address} {user.best_score} -> {score}")
            user.best_score = score

    @retry_on_conflict
    def record_score(self, wallet_address: str, score: int) -> User:
        _validate_score(score)
        with self.store.transaction() as uow:
            user = uow.lock_user(wallet_address)
            if user is None:
                raise UserNotFound()
            self._apply(user, score)
        return user

    @retry_on_conflict
    def record_session_score(self, session_id: str, score: int) -> User:
        """Record a score for whichever user the play session is bound to."""
        _validate_score(score)
        with self.store.transaction() as uow:
            session = uow.lock_play_session(session_id)
            user = uow.lock_user(session.wallet_address)
            if user is None:
                raise UserNotFound()
            self._apply(user, score)
        return user


def _validate_score(score) -> None:
    if isinstance(score, bool) or not isinstance(score, int) or not 0 <= score <= MAX_QUANTITY:
        raise ValidationError('Missing sessionId or invalid score')
