"""Transport hardening and access logging for every HTTP response."""

import os
import time

from flask import g, redirect, request
from werkzeug.middleware.proxy_fix import ProxyFix

CONTENT_SECURITY_POLICY = '; '.join([
    "default-src 'self'",
    "script-src 'self' 'unsafe-inline'",
    "style-src 'self' 'unsafe-inline'",
    "img-src 'self'",
    "connect-src 'self'",
    "frame-ancestors 'none'",
    "base-uri 'self'",
    "object-src 'none'",
])

SECURITY_HEADERS = {
    'Content-Security-Policy': CONTENT_SECURITY_POLICY,
    'X-Content-Type-Options': 'nosniff',
    'X-Frame-Options': 'DENY',
    'Referrer-Policy': 'no-referrer',
    'Cross-Origin-Opener-Policy': 'same-origin',
    'X-DNS-Prefetch-Control': 'off',
}


def init_app(app) -> None:
    hops = int(app.config.get('TRUST_PROXY_HOPS', 1))
    if hops > 0:
        app.wsgi_app = ProxyFix(app.wsgi_app, x_for=hops, x_proto=hops, x_host=hops)

    if app.config.get('FORCE_HTTPS'):
        @app.before_request
        def _force_https():
            if request.is_secure:
                return None
            return redirect(request.url.replace('http://', 'https://', 1), code=302)

    if app.config.get('SECURITY_HEADERS_ENABLED', True):
        @app.after_request
        def _security_headers(response):
            for name, value in SECURITY_HEADERS.items():
                response.headers.setdefault(name, value)
            if request.is_secure:
                response.headers.setdefault('Strict-Transport-Security', 'max-age=15552000; includeSubDomains')
            return response

    if app.config.get('ACCESS_LOG_ENABLED', True):
        @app.before_request
        def _start_timer():
            g.request_started = time.perf_counter()

        @app.after_request
        def _access_log(response):
            started = g.get('request_started')
            elapsed = (time.perf_counter() - started) * 1000 if started is not None else 0.0
            app.logger.info(
                f"[access] {request.method} {request.full_path.rstrip('?')} {response.status_code} "
                f"{response.calculate_content_length() or '-'} - {elapsed:.3f} ms"
            )
            return response


def ssl_options(config) -> dict:
    """Keyword arguments for ``socketio.run`` when both TLS files exist."""
    key_path = config.get('SSL_KEY_PATH')
    cert_path = config.get('SSL_CERT_PATH')
    if key_path and cert_path and os.path.exists(key_path) and os.path.exists(cert_path):
        return {'ssl_context': (cert_path, key_path)}
    return {}
