"""Withdrawal alerts.

A withdrawal writes a pending ``WithdrawalNotification`` together with the
balance debit. Delivery happens after commit: success marks the row sent,
failure records the error and leaves it pending for the retry loop, so a
debit is never left without an eventual alert.
"""

import json
import os
import smtplib
from email.message import EmailMessage

from flask import current_app

from haygame.models import WithdrawalNotification
from haygame.services import clock

CLAIM_LEASE_MS = 5 * 60 * 1000


class NotificationError(Exception):
    pass


def render_message(notification):
    return (
        f"User ID: {notification.wallet_address}\n"
        f"Wallet: {notification.wallet_address}\n"
        f"Amount: {notification.amount} HAY\n"
        f"At: {notification.requested_at.isoformat()}"
    )


class LogFileNotifier:
    """Appends one JSON line per withdrawal; used when no SMTP host is set."""

    def __init__(self, path):
        self.path = path

    def send(self, notification):
        entry = {
            'subject': 'HAY Withdrawal Request',
            'text': render_message(notification),
            'notification': notification.to_dict(),
        }
        try:
            directory = os.path.dirname(os.path.abspath(self.path))
            os.makedirs(directory, exist_ok=True)
            with open(self.path, 'a', encoding='utf-8') as fh:
                fh.write(f"[NO SMTP] {json.dumps(entry)}\n")
        except OSError as exc:
            raise NotificationError(f'Could not write withdrawal log: {exc}') from exc


class SmtpNotifier:
    def __init__(self, host, port=587, secure=False, username=None, password=None,
                 sender='no-reply@haygame.local', recipient=None, timeout=10):
        self.host = host
        self.port = port
        self.secure = secure
        self.username = username
        self.password = password
        self.sender = sender
        self.recipient = recipient
        self.timeout = timeout

    def send(self, notification):
        message = EmailMessage()
        message['From'] = self.sender
        message['To'] = self.recipient
        message['Subject'] = 'HAY Withdrawal Request'
        message.set_content(render_message(notification))
        smtp_cls = smtplib.SMTP_SSL if self.secure else smtplib.SMTP
        try:
            with smtp_cls(self.host, self.port, timeout=self.timeout) as smtp:
                if self.username and self.password:
                    smtp.login(self.username, self.password)
                smtp.send_message(message)
        except (smtplib.SMTPException, OSError) as exc:
            raise NotificationError(f'SMTP delivery failed: {exc}') from exc


def make_notifier(config):
    if config.get('SMTP_HOST'):
        return SmtpNotifier(
            host=config['SMTP_HOST'],
            port=int(config.get('SMTP_PORT', 587)),
            secure=bool(config.get('SMTP_SECURE')),
            username=config.get('SMTP_USER'),
            password=config.get('SMTP_PASS'),
            sender=config.get('MAIL_FROM', 'no-reply@haygame.local'),
            recipient=config.get('WITHDRAW_ALERT_EMAIL'),
        )
    return LogFileNotifier(config.get('WITHDRAWAL_LOG_PATH', os.path.join('data', 'withdrawals.log')))


class NotificationOutbox:
    def __init__(self, store, notifier):
        self.store = store
        self.notifier = notifier

    def _claim(self, notification_id):
        now = clock.now_ms()
        with self.store.transaction() as uow:
            notification = uow.lock_notification(notification_id)
            if notification is None or notification.status != WithdrawalNotification.PENDING:
                return None
            if notification.claimed_at and now - notification.claimed_at < CLAIM_LEASE_MS:
                return None
            notification.claimed_at = now
            notification.attempts += 1
        return notification

    def deliver(self, notification_id) -> bool:
        """Try to send one pending alert. Returns True when it is marked sent."""
        notification = self._claim(notification_id)
        if notification is None:
            return False
        error = None
        try:
            self.notifier.send(notification)
        except NotificationError as exc:
            error = str(exc)
        with self.store.transaction() as uow:
            notification = uow.lock_notification(notification_id)
            notification.claimed_at = None
            if error is None:
                notification.status = WithdrawalNotification.SENT
                notification.sent_at = clock.utcnow()
                notification.last_error = None
            else:
                notification.last_error = error
        if error is None:
            current_app.logger.info(f"[notify] withdrawal={notification_id} sent")
            return True
        current_app.logger.warning(
            f"[notify] withdrawal={notification_id} failed attempt={notification.attempts}: {error}"
        )
        return False

    def deliver_pending(self, limit=50) -> int:
        pending = (
            WithdrawalNotification.query
            .filter_by(status=WithdrawalNotification.PENDING)
            .order_by(WithdrawalNotification.id)
            .limit(limit)
            .all()
        )
        ids = [n.id for n in pending]
        return sum(1 for notification_id in ids if self.deliver(notification_id))
