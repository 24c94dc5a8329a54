"""
Request-level security for the Flask app: rate limiting, header validation,
CSRF origin checks and security headers.
"""
import logging
import os
import time
from typing import List, Optional

from dotenv import load_dotenv
from flask import Flask, g, jsonify, request
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address
from werkzeug.middleware.proxy_fix import ProxyFix

load_dotenv()

logger = logging.getLogger(__name__)

RATE_LIMIT_MAX_REQUESTS = int(os.getenv("RATE_LIMIT_MAX_REQUESTS", "100"))
RATE_LIMIT_WINDOW_SECONDS = int(os.getenv("RATE_LIMIT_WINDOW_SECONDS", "60"))
RATE_LIMIT_STORAGE_URI = os.getenv("RATE_LIMIT_STORAGE_URI", "memory://")
MAX_HEADER_LENGTH = 8192

RATE_LIMIT_EXCLUDED_PATHS = ("/static", "/favicon.ico")
CSRF_EXEMPT_PATHS = ("/api/pila/",)
STATE_CHANGING_METHODS = ("POST", "PUT", "DELETE", "PATCH")

SECURITY_HEADERS = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "DENY",
    "X-XSS-Protection": "1; mode=block",
    "Referrer-Policy": "strict-origin-when-cross-origin",
    "Permissions-Policy": "camera=(), microphone=(), geolocation=()",
}

API_NO_CACHE_HEADERS = {
    "Cache-Control": "no-store, no-cache, must-revalidate, proxy-revalidate",
    "Pragma": "no-cache",
    "Expires": "0",
    "Surrogate-Control": "no-store",
}


def is_production() -> bool:
    return os.getenv("APP_ENV", "development") == "production"


def default_rate_limits() -> List[str]:
    return [f"{RATE_LIMIT_MAX_REQUESTS} per {RATE_LIMIT_WINDOW_SECONDS} seconds"]


def trusted_proxy_count() -> int:
    """Number of reverse proxies whose X-Forwarded-For hop is trusted (0 = none)"""
    return int(os.getenv("TRUSTED_PROXY_COUNT", "0"))


def validate_request_headers() -> bool:
    """Reject oversized header values and values carrying control characters"""
    for name, value in request.headers.items():
        if len(value) > MAX_HEADER_LENGTH:
            logger.warning("Header %s too long (%d chars)", name, len(value))
            return False
        if any(ord(ch) < 32 and ch != "\t" for ch in value):
            logger.warning("Header %s contains control characters", name)
            return False
    return True


def expected_origins(host: str):
    origins = [f"https://{host}", f"http://{host}", os.getenv("APP_URL")]
    if not is_production():
        origins.append("http://localhost:3000")
    return [o.rstrip("/") for o in origins if o]


def check_csrf_origin() -> bool:
    """True unless a state-changing request carries an Origin foreign to the Host"""
    path = request.path
    if request.method not in STATE_CHANGING_METHODS or path.startswith(CSRF_EXEMPT_PATHS):
        return True

    origin = request.headers.get("Origin")
    host = request.headers.get("Host")
    if not origin or not host:
        return True

    if origin in expected_origins(host):
        return True

    logger.warning("CSRF protection: invalid origin %s for host %s on path %s", origin, host, path)
    # Only enforced in production
    return not is_production()


def _error(message: str, status: int, retry_after: Optional[int] = None):
    response = jsonify({"error": message})
    response.status_code = status
    if retry_after is not None:
        response.headers["Retry-After"] = str(retry_after)
    return response


def init_security(app: Flask, default_limits: Optional[List[str]] = None) -> Limiter:
    """Register the security hooks on a Flask app and return its rate limiter"""
    proxies = trusted_proxy_count()
    if proxies > 0:
        # remote_addr then comes from the trusted X-Forwarded-For hop
        app.wsgi_app = ProxyFix(app.wsgi_app, x_for=proxies, x_proto=proxies)

    limiter = Limiter(
        get_remote_address,
        app=app,
        default_limits=default_limits or default_rate_limits(),
        storage_uri=RATE_LIMIT_STORAGE_URI,
    )

    @limiter.request_filter
    def skip_excluded_paths():
        return request.path.startswith(RATE_LIMIT_EXCLUDED_PATHS)

    @app.errorhandler(429)
    def too_many_requests(e):
        logger.warning("Rate limit exceeded for %s on %s", get_remote_address(), request.path)
        return _error("Too many requests. Please try again later.", 429, retry_after=RATE_LIMIT_WINDOW_SECONDS)

    @app.before_request
    def enforce_request_security():
        g.request_started = time.monotonic()

        if not validate_request_headers():
            return _error("Invalid request", 400)

        if not check_csrf_origin():
            return _error("Invalid request origin", 403)

        return None

    @app.after_request
    def apply_security_headers(response):
        for name, value in SECURITY_HEADERS.items():
            response.headers.setdefault(name, value)
        if is_production():
            response.headers.setdefault("Strict-Transport-Security", "max-age=31536000; includeSubDomains")

        if request.path.startswith("/api/"):
            for name, value in API_NO_CACHE_HEADERS.items():
                response.headers[name] = value

            if is_production():
                logger.info(
                    "%s %s status=%s ip=%s ua=%.50s elapsed_ms=%.1f",
                    request.method,
                    request.path,
                    response.status_code,
                    get_remote_address(),
                    request.headers.get("User-Agent", ""),
                    (time.monotonic() - g.get("request_started", time.monotonic())) * 1000,
                )
        return response

    app.extensions["rate_limiter"] = limiter
    return limiter
