"""
Authentication service for reCAPTCHA verification and password reset.
All reCAPTCHA and reset-backend details are isolated here.
"""
import logging
import os
import random
import re
import time
from typing import Any, Dict, Optional
from urllib.parse import urlparse

import requests
from dotenv import load_dotenv

import upstream_service

load_dotenv()

logger = logging.getLogger(__name__)

RECAPTCHA_VERIFY_URL = "https://www.google.com/recaptcha/api/siteverify"
RESET_SUCCESS_MESSAGE = "El correo electrónico ha sido enviado correctamente"
MAX_ID_NIT_LENGTH = 100

_TOKEN_PATTERN = re.compile(r"^[A-Za-z0-9_-]+$")


class ResetPasswordError(ValueError):
    """A password reset request was rejected"""

    def __init__(self, message: str, status_code: int = 400):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


def is_development() -> bool:
    return os.getenv("APP_ENV", "development") == "development"


def get_recaptcha_config() -> Dict[str, Any]:
    """reCAPTCHA settings for the current environment"""
    return {
        "siteKey": os.getenv("RECAPTCHA_SITE_KEY", ""),
        "secretKey": os.getenv("RECAPTCHA_SECRET_KEY", ""),
        "timeout": float(os.getenv("RECAPTCHA_TIMEOUT", "10" if is_development() else "5")),
        "actions": {"login": "login", "register": "register", "submit": "submit"},
    }


def is_recaptcha_configured() -> bool:
    config = get_recaptcha_config()
    return bool(config["siteKey"] and config["secretKey"])


# ==================== RECAPTCHA ====================

def is_valid_recaptcha_token(token) -> bool:
    """reCAPTCHA v3 tokens are long strings of [A-Za-z0-9_-]"""
    if not token or not isinstance(token, str):
        return False
    if len(token) < 20 or len(token) > 2000:
        return False
    return bool(_TOKEN_PATTERN.match(token))


def is_valid_hostname(hostname: Optional[str]) -> bool:
    """Check the hostname reported by reCAPTCHA against the application's domains"""
    if not hostname:
        return False

    if is_development() and hostname == "localhost":
        return True

    valid_hostnames = ["localhost", os.getenv("APP_DOMAIN")]
    app_url = os.getenv("APP_URL")
    if app_url:
        valid_hostnames.append(urlparse(app_url).hostname)

    return any(
        hostname == valid or hostname.endswith(f".{valid}")
        for valid in valid_hostnames
        if valid
    )


def verify_recaptcha_token(token: str, secret_key: Optional[str] = None) -> Dict[str, Any]:
    """
    Verify a reCAPTCHA v3 token with Google's siteverify API.

    Args:
        token: Token generated by reCAPTCHA on the client
        secret_key: Secret key (defaults to RECAPTCHA_SECRET_KEY)

    Returns:
        Normalized verification response; failures are reported with
        success=False and an error_codes list, never raised
    """
    if not token:
        logger.error("No token provided for reCAPTCHA verification")
        return {"success": False, "error_codes": ["missing-token"]}

    config = get_recaptcha_config()
    secret_key = secret_key or config["secretKey"]
    if not secret_key:
        logger.error("No secret key configured for reCAPTCHA")
        return {"success": False, "error_codes": ["missing-secret-key"]}

    try:
        response = requests.post(
            RECAPTCHA_VERIFY_URL,
            data={"secret": secret_key, "response": token},
            headers={"User-Agent": upstream_service.USER_AGENT},
            timeout=config["timeout"],
        )
        response.raise_for_status()
        data = response.json()
    except requests.Timeout:
        logger.error("Timeout calling Google reCAPTCHA API")
        return {"success": False, "error_codes": ["timeout"]}
    except (requests.RequestException, ValueError):
        logger.exception("Error contacting reCAPTCHA API")
        return {"success": False, "error_codes": ["server_error"]}

    # Google answers with 'error-codes'
    if "error_codes" not in data and "error-codes" in data:
        data["error_codes"] = data.pop("error-codes")

    logger.info(
        "reCAPTCHA API response: success=%s score=%s action=%s hostname=%s error_codes=%s",
        data.get("success"),
        data.get("score"),
        data.get("action"),
        data.get("hostname"),
        data.get("error_codes"),
    )

    return {
        "success": bool(data.get("success")),
        "score": data.get("score"),
        "action": data.get("action"),
        "hostname": data.get("hostname"),
        "challenge_ts": data.get("challenge_ts"),
        "error_codes": data.get("error_codes", []),
        "hostname_valid": is_valid_hostname(data.get("hostname")),
    }


# ==================== PASSWORD RESET ====================

def add_random_delay(min_ms: int = 50, max_ms: int = 150) -> None:
    """Sleep a random 50-150 ms so response times do not leak user existence"""
    time.sleep(random.randint(min_ms, max_ms) / 1000)


def request_password_reset(id_nit) -> Dict[str, Any]:
    """
    Request a password reset email for a user.

    Args:
        id_nit: User identifier (ID or NIT)

    Returns:
        Dictionary with success, message and the masked emails when available

    Raises:
        ResetPasswordError: If the input or the upstream answer is rejected
        UpstreamError: If the upstream backend cannot be reached
    """
    if not id_nit:
        logger.info("Password reset without ID/NIT")
        raise ResetPasswordError("Usuario (ID/NIT) es requerido")

    id_nit = str(id_nit).strip()
    if not id_nit or len(id_nit) > MAX_ID_NIT_LENGTH:
        logger.warning("ID/NIT too long or empty, possible attack")
        raise ResetPasswordError("ID/NIT inválido")

    logger.info("Password reset attempt for user: %s***", id_nit[:3])

    status_code, data = upstream_service.post_password_reset(id_nit)

    if status_code >= 400:
        logger.info("Reset password failed with status %s", status_code)
        if status_code == 404:
            message = "Usuario no encontrado"
        elif status_code == 400:
            message = "Datos inválidos"
        else:
            message = "Error en la solicitud de recuperación"
        raise ResetPasswordError(message, status_code)

    if isinstance(data, dict) and data.get("Correcto") == RESET_SUCCESS_MESSAGE:
        logger.info("Password reset successful")
        result = {"success": True, "message": RESET_SUCCESS_MESSAGE}
        if data.get("Correos"):
            result["emails"] = data["Correos"]
        return result

    if isinstance(data, dict) and data.get("success") is True:
        return {
            "success": True,
            "message": data.get("message") or RESET_SUCCESS_MESSAGE,
            "emails": data.get("Correos") or data.get("emails"),
        }

    logger.info("Unexpected reset password response format")
    raise ResetPasswordError("Este nit no es válido", 502)
