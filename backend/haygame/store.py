"""Durable storage of users and sessions.

All mutations go through :meth:`PersistenceStore.transaction`, a unit of
work that holds per-key locks for the records it touches and commits once.
Lock order is fixed: session keys, then user keys, then notification keys,
each group in sorted order. ``load``/``save`` expose the whole state as a
versioned snapshot document.

Key locks only serialize writers inside one process. Across processes
(several workers on one database, where SQLite ignores ``FOR UPDATE``)
users and sessions carry a ``row_version`` column: an UPDATE or DELETE
against a row another writer already changed raises ``ConflictError`` and
the whole transaction is discarded. Service calls wrapped in
:func:`retry_on_conflict` re-run from a fresh read.
"""

import functools
import json
import os
import tempfile
import threading
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm.exc import StaleDataError

from haygame.errors import ConflictError, SessionNotFound, StoreError

SNAPSHOT_VERSION = 1

_KEY_RANKS = {'session': 0, 'user': 1, 'notification': 2}


@dataclass
class Snapshot:
    users: Dict[str, dict] = field(default_factory=dict)
    sessions: Dict[str, dict] = field(default_factory=dict)
    version: int = SNAPSHOT_VERSION

    def to_document(self) -> dict:
        return {'version': self.version, 'users': self.users, 'sessions': self.sessions}

    @classmethod
    def from_document(cls, document: dict) -> 'Snapshot':
        version = int(document.get('version', SNAPSHOT_VERSION))
        if version > SNAPSHOT_VERSION:
            raise ValueError(f'Snapshot version {version} is newer than supported {SNAPSHOT_VERSION}')
        return cls(
            users=dict(document.get('users') or {}),
            sessions=dict(document.get('sessions') or {}),
            version=SNAPSHOT_VERSION,
        )


class KeyedLocks:
    """Process-local mutexes keyed by string.

    Entries are reference counted and dropped once no thread holds or waits
    on them, so the table only grows with concurrent activity.
    """

    def __init__(self):
        self._guard = threading.Lock()
        self._entries: Dict[str, list] = {}

    def acquire(self, key: str, timeout: float) -> bool:
        with self._guard:
            entry = self._entries.setdefault(key, [threading.Lock(), 0])
            entry[1] += 1
        if entry[0].acquire(timeout=timeout):
            return True
        self._drop_ref(key)
        return False

    def release(self, key: str) -> None:
        with self._guard:
            entry = self._entries[key]
            entry[0].release()
            entry[1] -= 1
            if entry[1] == 0:
                del self._entries[key]

    def _drop_ref(self, key: str) -> None:
        with self._guard:
            entry = self._entries[key]
            entry[1] -= 1
            if entry[1] == 0:
                del self._entries[key]

    def __len__(self) -> int:
        with self._guard:
            return len(self._entries)


class UnitOfWork:
    """Lock holder for one transaction. Created by ``PersistenceStore.transaction``."""

    def __init__(self, db, locks: KeyedLocks, timeout: float):
        self._db = db
        self._locks = locks
        self._timeout = timeout
        self._held: List[str] = []
        self._highest: Optional[tuple] = None

    def _acquire(self, kind: str, ident: str) -> None:
        key = f'{kind}:{ident}'
        if key in self._held:
            return
        order = (_KEY_RANKS[kind], ident)
        if self._highest is not None and order < self._highest:
            raise RuntimeError(f'Lock {key} requested out of order after {self._held[-1]}')
        if not self._locks.acquire(key, self._timeout):
            raise StoreError(f'Timed out waiting for {key}')
        self._held.append(key)
        self._highest = order

    def lock_session(self, session_id: str):
        """Lock a session key and return its record (any variant) or None."""
        from haygame.models import SessionRecord
        self._acquire('session', session_id)
        return self._db.session.get(SessionRecord, session_id, with_for_update=True)

    def lock_play_session(self, session_id: str):
        from haygame.models import PlaySession
        record = self.lock_session(session_id)
        if record is None:
            raise SessionNotFound()
        if not isinstance(record, PlaySession):
            raise SessionNotFound('wrong_variant')
        return record

    def lock_users(self, *wallet_addresses: str) -> Dict[str, object]:
        """Lock several users in sorted order; missing users map to None."""
        from haygame.models import User
        found = {}
        for wallet in sorted(set(wallet_addresses)):
            self._acquire('user', wallet)
            found[wallet] = self._db.session.get(User, wallet, with_for_update=True)
        return found

    def lock_user(self, wallet_address: str):
        return self.lock_users(wallet_address)[wallet_address]

    def lock_notification(self, notification_id: int):
        from haygame.models import WithdrawalNotification
        self._acquire('notification', f'{notification_id:012d}')
        return self._db.session.get(WithdrawalNotification, notification_id, with_for_update=True)

    def add(self, instance) -> None:
        self._db.session.add(instance)

    def delete(self, instance) -> None:
        self._db.session.delete(instance)

    def release(self) -> None:
        while self._held:
            self._locks.release(self._held.pop())
        self._highest = None


def retry_on_conflict(func=None, attempts: int = 3):
    """Re-run a service call whose transaction lost a version race."""
    if func is None:
        return functools.partial(retry_on_conflict, attempts=attempts)

    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        for attempt in range(1, attempts + 1):
            try:
                return func(*args, **kwargs)
            except ConflictError:
                if attempt == attempts:
                    raise
                current_app.logger.info(f"[store] retrying {func.__name__} after conflict attempt={attempt}")
    return wrapper


class PersistenceStore:
    def __init__(self, db):
        self.db = db
        self.locks = KeyedLocks()
        self.lock_timeout = 10.0

    def init_app(self, app) -> None:
        self.lock_timeout = float(app.config.get('LOCK_TIMEOUT_SEC', 10))

    @contextmanager
    def transaction(self):
        uow = UnitOfWork(self.db, self.locks, self.lock_timeout)
        try:
            yield uow
            self.db.session.commit()
        except StaleDataError as exc:
            self.db.session.rollback()
            current_app.logger.warning(f"[store] stale write rolled back: {exc}")
            raise ConflictError() from exc
        except SQLAlchemyError as exc:
            self.db.session.rollback()
            current_app.logger.error(f"[store] transaction rolled back: {exc}")
            raise StoreError('Storage failure; changes were discarded') from exc
        except BaseException:
            self.db.session.rollback()
            raise
        finally:
            uow.release()

    def load(self) -> Snapshot:
        from haygame.models import SessionRecord, User
        try:
            users = {u.wallet_address: u.to_record() for u in User.query.order_by(User.created_at).all()}
            sessions = {s.id: s.to_record() for s in SessionRecord.query.order_by(SessionRecord.created_at).all()}
        except SQLAlchemyError as exc:
            self.db.session.rollback()
            raise StoreError('Storage failure while loading snapshot') from exc
        return Snapshot(users=users, sessions=sessions)

    def save(self, snapshot: Snapshot) -> None:
        """Replace every user and session with the snapshot in one transaction."""
        from haygame.models import SessionRecord, User, WithdrawalNotification
        with self.transaction() as uow:
            for record in SessionRecord.query.all():
                uow.delete(record)
            kept = set(snapshot.users)
            for notification in WithdrawalNotification.query.all():
                if notification.wallet_address not in kept:
                    uow.delete(notification)
            for user in User.query.all():
                if user.wallet_address not in kept:
                    uow.delete(user)
            self.db.session.flush()
            for wallet, record in snapshot.users.items():
                self.db.session.merge(User.from_record(wallet, record))
            for session_id, record in snapshot.sessions.items():
                uow.add(SessionRecord.from_record(session_id, record))
        current_app.logger.info(
            f"[store] snapshot saved users={len(snapshot.users)} sessions={len(snapshot.sessions)}"
        )


def write_snapshot_file(path: str, snapshot: Snapshot) -> None:
    """Write the snapshot document next to ``path`` and rename it into place."""
    directory = os.path.dirname(os.path.abspath(path))
    os.makedirs(directory, exist_ok=True)
    fd, tmp_path = tempfile.mkstemp(prefix='.snapshot-', suffix='.tmp', dir=directory)
    try:
        with os.fdopen(fd, 'w', encoding='utf-8') as fh:
            json.dump(snapshot.to_document(), fh, indent=2)
            fh.flush()
            os.fsync(fh.fileno())
        os.replace(tmp_path, path)
    except BaseException:
        if os.path.exists(tmp_path):
            os.remove(tmp_path)
        raise


def read_snapshot_file(path: str) -> Snapshot:
    with open(path, encoding='utf-8') as fh:
        return Snapshot.from_document(json.load(fh))
