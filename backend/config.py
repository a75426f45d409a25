import os

class Config:
    SECRET_KEY = os.environ.get('SECRET_KEY') or 'you-will-never-guess'
    SQLALCHEMY_DATABASE_URI = os.environ.get('DATABASE_URL') or 'sqlite:///haygame.db'
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    CORS_ORIGINS = os.environ.get('CORS_ORIGINS', 'http://localhost:3000,http://127.0.0.1:3000').split(',')
    # Login challenge lifetime (seconds)
    NONCE_TTL_SEC = int(os.environ.get('NONCE_TTL_SEC', '300'))
    # One of: ed25519, attestation, accept_all
    SIGNATURE_VERIFIER = os.environ.get('SIGNATURE_VERIFIER', 'ed25519')
    # Upper bound credited per heartbeat (ms)
    HEARTBEAT_MAX_DELTA_MS = int(os.environ.get('HEARTBEAT_MAX_DELTA_MS', '5000'))
    # Sessions without a heartbeat for this long are ended by the sweep (sec)
    LIVENESS_GRACE_SEC = int(os.environ.get('LIVENESS_GRACE_SEC', '30'))
    LIVENESS_SWEEP_SEC = int(os.environ.get('LIVENESS_SWEEP_SEC', '10'))
    NOTIFICATION_RETRY_SEC = int(os.environ.get('NOTIFICATION_RETRY_SEC', '60'))
    # Per-key lock wait before a request gives up (sec)
    LOCK_TIMEOUT_SEC = float(os.environ.get('LOCK_TIMEOUT_SEC', '10'))
    LEADERBOARD_SIZE = int(os.environ.get('LEADERBOARD_SIZE', '10'))
    # Token bucket per client address
    RATE_LIMIT_ENABLED = os.environ.get('RATE_LIMIT_ENABLED', 'true') == 'true'
    RATE_LIMIT_POINTS = int(os.environ.get('RATE_LIMIT_POINTS', '100'))
    RATE_LIMIT_WINDOW_SEC = int(os.environ.get('RATE_LIMIT_WINDOW_SEC', '60'))
    RATE_LIMIT_MAX_KEYS = int(os.environ.get('RATE_LIMIT_MAX_KEYS', '10000'))
    # Reverse proxies trusted for X-Forwarded-* (0 disables)
    TRUST_PROXY_HOPS = int(os.environ.get('TRUST_PROXY_HOPS', '1'))
    FORCE_HTTPS = os.environ.get('FORCE_HTTPS') == 'true'
    SECURITY_HEADERS_ENABLED = os.environ.get('SECURITY_HEADERS_ENABLED', 'true') == 'true'
    ACCESS_LOG_ENABLED = os.environ.get('ACCESS_LOG_ENABLED', 'true') == 'true'
    # Serve TLS directly when both files exist
    SSL_KEY_PATH = os.environ.get('SSL_KEY_PATH')
    SSL_CERT_PATH = os.environ.get('SSL_CERT_PATH')
    # Withdrawal alerts: SMTP when SMTP_HOST is set, otherwise a log file
    SMTP_HOST = os.environ.get('SMTP_HOST')
    SMTP_PORT = int(os.environ.get('SMTP_PORT', '587'))
    SMTP_SECURE = os.environ.get('SMTP_SECURE') == 'true'
    SMTP_USER = os.environ.get('SMTP_USER')
    SMTP_PASS = os.environ.get('SMTP_PASS')
    MAIL_FROM = os.environ.get('MAIL_FROM', 'no-reply@haygame.local')
    WITHDRAW_ALERT_EMAIL = os.environ.get('WITHDRAW_ALERT_EMAIL', 'withdrawals@haygame.local')
    WITHDRAWAL_LOG_PATH = os.environ.get('WITHDRAWAL_LOG_PATH', os.path.join('data', 'withdrawals.log'))
