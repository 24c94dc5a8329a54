"""
Tests for the Flask routes.
"""

from datetime import date

import pytest

import authnz_service
import flask_main
import pila_service
import upstream_service
from upstream_service import SolicitudData, UpstreamError


@pytest.fixture
def solicitud(monkeypatch):
    data = SolicitudData(nit="900123400", fecha_inicio="2025-01-01", fecha_fin="2025-03-31")
    monkeypatch.setattr(upstream_service, "fetch_solicitud", lambda id_solicitud: data)
    return data


class TestRoot:

    def test_root(self, client) -> None:
        response = client.get("/")
        assert response.status_code == 200
        assert response.get_json() == {"message": "Control de acceso a plantas API"}


# =============================================================================
# TEST: PILA endpoints
# =============================================================================

class TestFechasCorte:

    def test_missing_id(self, client) -> None:
        response = client.get("/api/pila/fechas-corte")
        assert response.status_code == 400
        assert response.get_json() == {"error": True, "message": "ID de solicitud es requerido"}

    def test_due_dates(self, client, solicitud) -> None:
        response = client.get("/api/pila/fechas-corte?id_solicitud=42")
        assert response.status_code == 200

        body = response.get_json()
        assert body["success"] is True
        assert [f["fecha"] for f in body["fechas"]] == ["03/01/2025", "04/02/2025", "04/03/2025"]
        # The whole period is in the past
        assert all(f["estado"] == "normal" and f["diasRestantes"] < 0 for f in body["fechas"])
        assert body["metadata"] == {
            "nit": "00",
            "fechaInicio": "2025-01-01",
            "fechaFin": "2025-03-31",
            "totalFechas": 3,
            "diasHabiles": 2,
        }

    def test_field_order(self, client, solicitud) -> None:
        body = client.get("/api/pila/fechas-corte?id_solicitud=42").get_json()
        assert list(body["fechas"][0]) == ["id", "fecha", "estado", "mesTexto", "diasRestantes"]

    def test_upstream_error(self, client, monkeypatch) -> None:
        def fail(id_solicitud):
            raise UpstreamError("No existe la solicitud", 404)

        monkeypatch.setattr(upstream_service, "fetch_solicitud", fail)
        response = client.get("/api/pila/fechas-corte?id_solicitud=42")
        assert response.status_code == 404
        assert response.get_json() == {"error": True, "message": "No existe la solicitud"}

    def test_invalid_period(self, client, monkeypatch) -> None:
        data = SolicitudData(nit="900123400", fecha_inicio="2025-03-31", fecha_fin="2025-01-01")
        monkeypatch.setattr(upstream_service, "fetch_solicitud", lambda id_solicitud: data)

        response = client.get("/api/pila/fechas-corte?id_solicitud=42")
        assert response.status_code == 400
        assert response.get_json()["message"] == "La fecha de inicio debe ser anterior a la fecha de fin"

    def test_incomplete_solicitud(self, client, monkeypatch) -> None:
        monkeypatch.setattr(upstream_service, "fetch_solicitud", lambda id_solicitud: SolicitudData())
        response = client.get("/api/pila/fechas-corte?id_solicitud=42")
        assert response.status_code == 400
        assert response.get_json()["message"].startswith("Datos insuficientes")

    def test_unexpected_error(self, client, monkeypatch) -> None:
        def boom(id_solicitud):
            raise RuntimeError("boom")

        monkeypatch.setattr(pila_service, "get_pila_due_dates_for_solicitud", boom)
        response = client.get("/api/pila/fechas-corte?id_solicitud=42")
        assert response.status_code == 500
        assert response.get_json() == {"error": True, "message": "Error interno del servidor", "details": "boom"}


class TestDiasHabiles:

    def test_lookup(self, client) -> None:
        response = client.get("/api/pila/dias-habiles?nit=900123456")
        assert response.status_code == 200
        assert response.get_json() == {
            "nit": "900123456",
            "digitos": "56",
            "diasHabiles": 9,
            "valorPorDefecto": False,
            "nitValido": True,
        }

    def test_missing_nit(self, client) -> None:
        assert client.get("/api/pila/dias-habiles").status_code == 400


class TestEstadoFecha:

    def test_past_date(self, client) -> None:
        body = client.get("/api/pila/estado-fecha?fecha=03/01/2025").get_json()
        assert body["estado"] == "overdue"
        assert body["diasRestantes"] < 0
        assert body["mensaje"].startswith("Vencida hace")

    def test_date_due_today(self, client) -> None:
        today = date.today().strftime("%d/%m/%Y")
        body = client.get(f"/api/pila/estado-fecha?fecha={today}").get_json()
        assert body == {"estado": "warning", "mensaje": "Vence hoy", "diasRestantes": 0}

    @pytest.mark.parametrize("query", ["", "?fecha=2025-01-03", "?fecha=31/02/2025"])
    def test_invalid_date(self, client, query: str) -> None:
        response = client.get(f"/api/pila/estado-fecha{query}")
        assert response.status_code == 400
        assert response.get_json()["error"] is True


# =============================================================================
# TEST: Holiday endpoints
# =============================================================================

class TestHolidays:

    def test_holidays_for_year(self, client) -> None:
        body = client.get("/api/holidays?year=2025").get_json()
        assert len(body) == 19
        assert body[0] == {"date": "2025-01-01", "name": "Año Nuevo", "type": "fixed"}
        assert body[-1]["date"] == "2025-12-25"

    def test_defaults_to_current_year(self, client) -> None:
        body = client.get("/api/holidays").get_json()
        assert len(body) == 19
        assert all(h["date"].startswith(str(date.today().year)) for h in body)

    def test_invalid_year_defaults_to_current_year(self, client) -> None:
        body = client.get("/api/holidays?year=abc").get_json()
        assert body[0]["date"] == f"{date.today().year}-01-01"

    @pytest.mark.parametrize("year", ["10000", "-5"])
    def test_out_of_range_year(self, client, year: str) -> None:
        response = client.get(f"/api/holidays?year={year}")
        assert response.status_code == 400
        assert "error" in response.get_json()


class TestBusinessDaysCalculate:

    def test_calculate(self, client) -> None:
        response = client.post("/api/business-days/calculate", json={
            "start_date": "2025-01-01",
            "end_date": "2025-01-31",
        })
        assert response.status_code == 200
        body = response.get_json()
        assert body["business_days"] == 21
        assert [h["date"] for h in body["holidays_in_range"]] == ["2025-01-01", "2025-01-06"]

    @pytest.mark.parametrize("payload", [
        {},
        {"start_date": "01/01/2025", "end_date": "2025-01-31"},
        {"start_date": "2025-01-01", "end_date": None},
        [1, 2],
    ])
    def test_invalid_dates(self, client, payload) -> None:
        response = client.post("/api/business-days/calculate", json=payload)
        assert response.status_code == 400

    def test_reversed_range(self, client) -> None:
        response = client.post("/api/business-days/calculate", json={
            "start_date": "2025-02-01",
            "end_date": "2025-01-01",
        })
        assert response.status_code == 400
        assert response.get_json() == {"error": "Start date must be before end date"}


# =============================================================================
# TEST: Auth endpoints
# =============================================================================

class TestRecaptchaEndpoints:

    def test_config(self, client, monkeypatch) -> None:
        monkeypatch.setenv("RECAPTCHA_SITE_KEY", "site-key")
        monkeypatch.setenv("RECAPTCHA_SECRET_KEY", "secret-key")
        body = client.get("/api/auth/recaptcha-config").get_json()
        assert body["siteKey"] == "site-key"
        assert body["configured"] is True
        assert "secretKey" not in body

    def test_invalid_token(self, client) -> None:
        response = client.post("/api/auth/verify-recaptcha", json={"token": "short"})
        assert response.status_code == 400
        assert response.get_json() == {"success": False, "error_codes": ["invalid-input-response"]}

    def test_verify(self, client, monkeypatch) -> None:
        token = "t" * 40
        monkeypatch.setattr(authnz_service, "verify_recaptcha_token", lambda t: {"success": True, "score": 0.8, "token": t})
        response = client.post("/api/auth/verify-recaptcha", json={"token": token})
        assert response.status_code == 200
        assert response.get_json() == {"success": True, "score": 0.8, "token": token}


@pytest.mark.usefixtures("no_delay")
class TestResetPassword:

    def test_success(self, client, monkeypatch) -> None:
        monkeypatch.setattr(upstream_service, "post_password_reset", lambda id_nit: (200, {
            "Correcto": authnz_service.RESET_SUCCESS_MESSAGE,
            "Correos": ["j***@example.com"],
        }))
        response = client.post("/api/auth/reset-password", json={"id_nit": "900123456"})
        assert response.status_code == 200
        assert response.get_json() == {
            "success": True,
            "message": authnz_service.RESET_SUCCESS_MESSAGE,
            "emails": ["j***@example.com"],
        }

    def test_requires_json(self, client) -> None:
        response = client.post("/api/auth/reset-password", data="id_nit=1")
        assert response.status_code == 400
        assert response.get_json() == {"success": False, "message": "Invalid Content-Type"}

    def test_invalid_body(self, client) -> None:
        response = client.post("/api/auth/reset-password", json=["900123456"])
        assert response.status_code == 400
        assert response.get_json() == {"success": False, "message": "Invalid request body"}

    def test_missing_id(self, client) -> None:
        response = client.post("/api/auth/reset-password", json={})
        assert response.status_code == 400
        assert response.get_json() == {"success": False, "message": "Usuario (ID/NIT) es requerido"}

    def test_user_not_found(self, client, monkeypatch) -> None:
        monkeypatch.setattr(upstream_service, "post_password_reset", lambda id_nit: (404, {}))
        response = client.post("/api/auth/reset-password", json={"id_nit": "900123456"})
        assert response.status_code == 404
        assert response.get_json() == {"success": False, "message": "Usuario no encontrado"}

    def test_upstream_timeout(self, client, monkeypatch) -> None:
        def timeout(id_nit):
            raise UpstreamError("El servicio de recuperación no responde. Intente más tarde.", 504)

        monkeypatch.setattr(upstream_service, "post_password_reset", timeout)
        response = client.post("/api/auth/reset-password", json={"id_nit": "900123456"})
        assert response.status_code == 504
        assert response.get_json()["success"] is False

    def test_unexpected_error(self, client, monkeypatch) -> None:
        def boom(id_nit):
            raise RuntimeError("boom")

        monkeypatch.setattr(upstream_service, "post_password_reset", boom)
        response = client.post("/api/auth/reset-password", json={"id_nit": "900123456"})
        assert response.status_code == 500
        assert "boom" not in response.get_data(as_text=True)


# =============================================================================
# TEST: Cross-cutting behavior
# =============================================================================

class TestAppWiring:

    def test_api_security_headers(self, client) -> None:
        response = client.get("/api/pila/dias-habiles?nit=1")
        assert response.headers["X-Content-Type-Options"] == "nosniff"
        assert response.headers["X-Frame-Options"] == "DENY"
        assert response.headers["Cache-Control"].startswith("no-store")

    def test_cors_for_frontend(self, client) -> None:
        response = client.get("/api/holidays?year=2025", headers={"Origin": flask_main.FRONTEND_URL})
        assert response.headers["Access-Control-Allow-Origin"] == flask_main.FRONTEND_URL

    def test_csrf_enforced_on_auth_in_production(self, client, monkeypatch) -> None:
        monkeypatch.setenv("APP_ENV", "production")
        response = client.post(
            "/api/auth/verify-recaptcha",
            json={"token": "t" * 40},
            headers={"Origin": "https://evil.com"},
        )
        assert response.status_code == 403
