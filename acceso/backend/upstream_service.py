"""
Upstream service layer for calls to the external solicitud and auth backends.
Handles credentials lookup and raw HTTP requests using requests.
"""
import logging
import os
import uuid
from typing import Any, Dict, Optional, Tuple

import requests
from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, Field

load_dotenv()

logger = logging.getLogger(__name__)

USER_AGENT = "ControlAcceso/1.0"
SOLICITUD_TIMEOUT = float(os.getenv("SOLICITUD_TIMEOUT", "15"))
RESET_PASSWORD_TIMEOUT = float(os.getenv("RESET_PASSWORD_TIMEOUT", "15"))


class UpstreamError(Exception):
    """An upstream backend failed or answered with an unusable payload"""

    def __init__(self, message: str, status_code: int = 502):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class SolicitudData(BaseModel):
    """The fields of a solicitud record needed for PILA dates"""
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    nit: Optional[str] = Field(default=None, alias="NIT_CED")
    fecha_inicio: Optional[str] = Field(default=None, alias="Fechainicio")
    fecha_fin: Optional[str] = Field(default=None, alias="Fechafin")


def get_server_api_credentials(service: str) -> Tuple[Optional[str], Optional[str]]:
    """Return (url, token) for a named upstream service, e.g. 'SOLICITUD'"""
    return os.getenv(f"{service}_API_URL"), os.getenv(f"{service}_API_TOKEN")


# ==================== SOLICITUD OPERATIONS ====================

def fetch_solicitud(id_solicitud: str) -> SolicitudData:
    """
    Fetch a solicitud record from the upstream backend.

    Args:
        id_solicitud: Identifier of the access request

    Returns:
        Parsed solicitud data (fields may be missing)

    Raises:
        UpstreamError: If credentials are missing or the backend fails
    """
    url, token = get_server_api_credentials("SOLICITUD")
    if not url or not token:
        logger.error("Solicitud API credentials not configured")
        raise UpstreamError("Error de configuración del servidor", 500)

    try:
        response = requests.post(
            url,
            json={"id_solicitud": id_solicitud},
            headers={"x-auth-token": token, "User-Agent": USER_AGENT},
            timeout=SOLICITUD_TIMEOUT,
        )
    except requests.RequestException:
        logger.exception("Error calling solicitud service")
        raise UpstreamError("Error al consultar solicitud", 502)

    try:
        payload = response.json()
    except ValueError:
        payload = {}

    datos = payload.get("Datos") if isinstance(payload, dict) else None
    if not response.ok or not datos:
        message = payload.get("mensaje") if isinstance(payload, dict) else None
        logger.warning("Solicitud lookup failed with status %s", response.status_code)
        raise UpstreamError(message or "Error al consultar solicitud", response.status_code if not response.ok else 500)

    return SolicitudData.model_validate(_stringify(datos[0]))


def _stringify(record: Dict[str, Any]) -> Dict[str, Any]:
    # NIT_CED may come back as a number
    return {k: str(v) if v is not None and not isinstance(v, str) else v for k, v in record.items()}


# ==================== PASSWORD RESET OPERATIONS ====================

def post_password_reset(id_nit: str) -> Tuple[int, Any]:
    """
    Ask the upstream auth backend to send a password reset email.

    Returns:
        Tuple of (HTTP status, decoded JSON body)

    Raises:
        UpstreamError: On missing credentials, timeout, connection failure or non-JSON body
    """
    url, token = get_server_api_credentials("AUTH_TOKEN_RESET_PSW")
    if not url or not token:
        logger.error("Reset password API credentials not configured")
        raise UpstreamError("Error de configuración del servidor", 500)

    logger.info("Calling external reset password service")
    try:
        response = requests.post(
            url,
            json={"id_nit": id_nit},
            headers={
                "Accept": "application/json",
                "x-auth-token": token,
                "User-Agent": USER_AGENT,
                "X-Request-ID": str(uuid.uuid4()),
            },
            timeout=RESET_PASSWORD_TIMEOUT,
        )
    except requests.Timeout:
        logger.error("External reset password service timeout")
        raise UpstreamError("El servicio de recuperación no responde. Intente más tarde.", 504)
    except requests.RequestException:
        logger.exception("Error calling external reset password service")
        raise UpstreamError("Error al conectar con el servicio de recuperación", 502)

    try:
        data = response.json()
    except ValueError:
        logger.error("Reset password service returned a non-JSON body: %.200s", response.text)
        raise UpstreamError("Respuesta inválida del servicio de recuperación", 502)

    return response.status_code, data
