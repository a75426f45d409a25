from haygame import db
from haygame.services import clock


def _iso(value):
    return value.isoformat() if value else None


class User(db.Model):
    __tablename__ = 'user'
    wallet_address = db.Column(db.String(128), primary_key=True)
    best_score = db.Column(db.BigInteger, default=0, nullable=False)
    current_score = db.Column(db.BigInteger, default=0, nullable=False)
    saved_points_total = db.Column(db.BigInteger, default=0, nullable=False)
    hay_balance = db.Column(db.BigInteger, default=0, nullable=False)
    total_achievements = db.Column(db.BigInteger, default=0, nullable=False)
    last_withdrawal_at = db.Column(db.DateTime(timezone=True), nullable=True)
    created_at = db.Column(db.BigInteger, nullable=False, index=True)
    # Bumped on every UPDATE; a write against a stale version raises StaleDataError
    row_version = db.Column(db.Integer, nullable=False)

    __mapper_args__ = {'version_id_col': row_version}

    def __init__(self, **kwargs):
        kwargs.setdefault('best_score', 0)
        kwargs.setdefault('current_score', 0)
        kwargs.setdefault('saved_points_total', 0)
        kwargs.setdefault('hay_balance', 0)
        kwargs.setdefault('total_achievements', 0)
        kwargs.setdefault('created_at', clock.now_ms())
        super(User, self).__init__(**kwargs)

    def to_dict(self):
        return {
            'userId': self.wallet_address,
            'walletAddress': self.wallet_address,
            'bestScore': self.best_score,
            'currentScore': self.current_score,
            'hayBalance': self.hay_balance,
            'totalAchievements': self.total_achievements,
            'savedPointsTotal': self.saved_points_total,
            'lastWithdrawalAt': _iso(self.last_withdrawal_at),
        }

    def to_record(self):
        record = self.to_dict()
        record['createdAt'] = self.created_at
        return record

    @classmethod
    def from_record(cls, wallet_address, record):
        last = record.get('lastWithdrawalAt')
        return cls(
            wallet_address=wallet_address,
            best_score=int(record.get('bestScore') or 0),
            current_score=int(record.get('currentScore') or 0),
            saved_points_total=int(record.get('savedPointsTotal') or 0),
            hay_balance=int(record.get('hayBalance') or 0),
            total_achievements=int(record.get('totalAchievements') or 0),
            last_withdrawal_at=clock.parse_iso(last) if last else None,
            created_at=int(record.get('createdAt') or clock.now_ms()),
        )


class SessionRecord(db.Model):
    """Row of the session table: either a login challenge or a play session."""
    __tablename__ = 'session'
    id = db.Column(db.String(36), primary_key=True)
    type = db.Column(db.String(16), nullable=False, index=True)
    created_at = db.Column(db.BigInteger, nullable=False)
    row_version = db.Column(db.Integer, nullable=False)

    __mapper_args__ = {
        'polymorphic_on': type,
        'polymorphic_identity': 'session',
        'version_id_col': row_version,
    }

    @classmethod
    def from_record(cls, session_id, record):
        kind = record.get('type')
        for variant in (Challenge, PlaySession):
            if variant.__mapper_args__['polymorphic_identity'] == kind:
                return variant.from_record(session_id, record)
        raise ValueError(f'Unknown session type {kind!r} for {session_id}')


class Challenge(SessionRecord):
    expires_at = db.Column(db.BigInteger, nullable=True)

    __mapper_args__ = {'polymorphic_identity': 'nonce'}

    @property
    def message(self):
        return f'Sign to login: {self.id}'

    def is_expired(self, now_ms):
        return now_ms > self.expires_at

    def to_record(self):
        return {'type': 'nonce', 'createdAt': self.created_at, 'expiresAt': self.expires_at}

    @classmethod
    def from_record(cls, session_id, record):
        return cls(
            id=session_id,
            created_at=int(record.get('createdAt') or record['expiresAt']),
            expires_at=int(record['expiresAt']),
        )


class PlaySession(SessionRecord):
    wallet_address = db.Column(db.String(128), db.ForeignKey('user.wallet_address'), nullable=True, index=True)
    started_at = db.Column(db.BigInteger, nullable=True)
    last_heartbeat_at = db.Column(db.BigInteger, nullable=True, index=True)
    elapsed_ms = db.Column(db.BigInteger, default=0)
    is_alive = db.Column(db.Boolean, default=True)
    points = db.Column(db.BigInteger, default=0)
    points_awarded = db.Column(db.BigInteger, default=0)
    ended_at = db.Column(db.BigInteger, nullable=True)

    user = db.relationship('User', foreign_keys=[wallet_address])

    __mapper_args__ = {'polymorphic_identity': 'game'}

    def to_dict(self):
        return {
            'sessionId': self.id,
            'walletAddress': self.wallet_address,
            'startedAt': self.started_at,
            'lastHeartbeatAt': self.last_heartbeat_at,
            'elapsedServerMs': self.elapsed_ms,
            'isAlive': self.is_alive,
            'points': self.points,
            'pointsAwarded': self.points_awarded,
            'endedAt': self.ended_at,
        }

    def to_record(self):
        record = self.to_dict()
        record.pop('sessionId')
        record['type'] = 'game'
        record['createdAt'] = self.created_at
        return record

    @classmethod
    def from_record(cls, session_id, record):
        return cls(
            id=session_id,
            created_at=int(record.get('createdAt') or record['startedAt']),
            wallet_address=record['walletAddress'],
            started_at=int(record['startedAt']),
            last_heartbeat_at=int(record['lastHeartbeatAt']),
            elapsed_ms=int(record.get('elapsedServerMs') or 0),
            is_alive=bool(record.get('isAlive')),
            points=int(record.get('points') or 0),
            points_awarded=int(record.get('pointsAwarded') or 0),
            ended_at=record.get('endedAt'),
        )


class WithdrawalNotification(db.Model):
    """Outbox row written in the same transaction as a withdrawal debit."""
    __tablename__ = 'withdrawal_notification'
    PENDING = 'pending'
    SENT = 'sent'

    id = db.Column(db.Integer, primary_key=True)
    wallet_address = db.Column(db.String(128), db.ForeignKey('user.wallet_address'), nullable=False, index=True)
    amount = db.Column(db.Integer, nullable=False)
    requested_at = db.Column(db.DateTime(timezone=True), nullable=False)
    status = db.Column(db.String(16), default=PENDING, nullable=False, index=True)
    attempts = db.Column(db.Integer, default=0, nullable=False)
    last_error = db.Column(db.Text, nullable=True)
    claimed_at = db.Column(db.BigInteger, nullable=True)
    sent_at = db.Column(db.DateTime(timezone=True), nullable=True)

    def to_dict(self):
        return {
            'id': self.id,
            'walletAddress': self.wallet_address,
            'amount': self.amount,
            'requestedAt': _iso(self.requested_at),
            'status': self.status,
            'attempts': self.attempts,
            'lastError': self.last_error,
            'sentAt': _iso(self.sent_at),
        }
