"""Points ledger: quantized crediting, conversion to HAY and withdrawals.

Credit is driven by a per-session watermark: ``points_awarded`` is the
highest multiple of ``QUANTUM`` already added to the user's
``saved_points_total``, so the award depends only on cumulative points and
repeated or re-chunked reports never credit a quantum twice.
"""

from dataclasses import dataclass
from typing import Optional

from flask import current_app

from haygame import db
from haygame.errors import (
    BelowMinimum,
    InsufficientBalance,
    InsufficientPoints,
    SessionNotAlive,
    UserNotFound,
    ValidationError,
)
from haygame.models import PlaySession, User, WithdrawalNotification
from haygame.services import clock
from haygame.store import retry_on_conflict

QUANTUM = 15
POINTS_PER_TOKEN = 1000
MIN_WITHDRAWAL = 100
# Largest single report, conversion or withdrawal accepted
MAX_QUANTITY = 2 ** 31 - 1


@dataclass
class ProgressResult:
    points: int
    saved_points_total: int
    credited: int
    user: User


@dataclass
class WithdrawalResult:
    user: User
    notification: WithdrawalNotification
    delivered: bool


def eligible_points(points: int, quantum: int = QUANTUM) -> int:
    return (points // quantum) * quantum


def _in_range(value, minimum: Optional[int], maximum: int = MAX_QUANTITY) -> bool:
    if isinstance(value, bool) or not isinstance(value, int) or value > maximum:
        return False
    return minimum is None or value >= minimum


class PointsLedger:
    def __init__(self, store, outbox=None, quantum=QUANTUM, points_per_token=POINTS_PER_TOKEN,
                 min_withdrawal=MIN_WITHDRAWAL):
        self.store = store
        self.outbox = outbox
        self.quantum = quantum
        self.points_per_token = points_per_token
        self.min_withdrawal = min_withdrawal

    def get_user(self, wallet_address: str) -> User:
        user = db.session.get(User, wallet_address)
        if user is None:
            raise UserNotFound()
        return user

    @retry_on_conflict
    def report_progress(self, session_id: str, passed: int) -> ProgressResult:
        if not _in_range(passed, 1):
            raise ValidationError('Missing sessionId or invalid passed count')
        with self.store.transaction() as uow:
            session = uow.lock_play_session(session_id)
            if not session.is_alive:
                raise SessionNotAlive()
            user = uow.lock_user(session.wallet_address)
            if user is None:
                raise UserNotFound()
            session.points += passed
            credited = self.award(session, user)
            user.total_achievements += passed
            result = ProgressResult(
                points=session.points,
                saved_points_total=user.saved_points_total,
                credited=credited,
                user=user,
            )
        return result

    def award(self, session: PlaySession, user: Optional[User]) -> int:
        """Credit every whole quantum above the session watermark."""
        eligible = eligible_points(session.points, self.quantum)
        credit = eligible - session.points_awarded
        if credit <= 0 or user is None:
            return 0
        user.saved_points_total += credit
        session.points_awarded = eligible
        current_app.logger.info(
            f"[award] session={session.id} wallet={user.wallet_address} +{credit} total={user.saved_points_total}"
        )
        return credit

    def flush_round(self, session: PlaySession, user: Optional[User]) -> int:
        """Final award at round end. A remainder below one quantum is forfeited."""
        credited = self.award(session, user)
        forfeited = session.points - eligible_points(session.points, self.quantum)
        if forfeited:
            current_app.logger.info(f"[round-end] session={session.id} forfeits {forfeited} sub-quantum points")
        return credited

    @retry_on_conflict
    def convert(self, wallet_address: str, tokens: int) -> User:
        if not _in_range(tokens, 1):
            raise ValidationError('Invalid tokens value')
        needed = tokens * self.points_per_token
        with self.store.transaction() as uow:
            user = uow.lock_user(wallet_address)
            if user is None:
                raise UserNotFound()
            available = user.saved_points_total
            if available < needed:
                raise InsufficientPoints(available, needed)
            user.saved_points_total = available - needed
            user.hay_balance += tokens
            current_app.logger.info(
                f"[convert] wallet={wallet_address} -{needed} points +{tokens} HAY balance={user.hay_balance}"
            )
        return user

    @retry_on_conflict
    def withdraw(self, wallet_address: str, amount: int) -> WithdrawalResult:
        if not _in_range(amount, None):
            raise ValidationError('Missing walletAddress or amount')
        if amount < self.min_withdrawal:
            raise BelowMinimum(self.min_withdrawal)
        with self.store.transaction() as uow:
            user = uow.lock_user(wallet_address)
            if user is None:
                raise UserNotFound()
            if user.hay_balance < amount:
                raise InsufficientBalance(user.hay_balance, amount)
            now = clock.utcnow()
            user.hay_balance -= amount
            user.last_withdrawal_at = now
            notification = WithdrawalNotification(
                wallet_address=wallet_address,
                amount=amount,
                requested_at=now,
                status=WithdrawalNotification.PENDING,
                attempts=0,
            )
            uow.add(notification)
        current_app.logger.info(f"[withdraw] wallet={wallet_address} amount={amount} notification={notification.id}")
        delivered = self.outbox.deliver(notification.id) if self.outbox is not None else False
        return WithdrawalResult(user=user, notification=notification, delivered=delivered)
