"""
Main Flask application - Controller layer.
Handles routes, request validation, and delegates to service layers.
"""
import os
import logging
from dotenv import load_dotenv
from datetime import date, datetime
from flask import Flask, request, jsonify
from flask.json.provider import DefaultJSONProvider
from flask_cors import CORS

# Import our service layers
import authnz_service
import pila_service
from colombia_holidays import count_business_days, holidays_for_year, holidays_in_range
from pila_utils import describe_due_date
from security_middleware import init_security
from upstream_service import UpstreamError

load_dotenv()

# Logging (stdlib only)
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
if not logging.getLogger().handlers:
    logging.basicConfig(
        level=LOG_LEVEL,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s"
    )
logger = logging.getLogger(__name__)

# Configuration
FRONTEND_URL = os.getenv("FRONTEND_URL", "http://localhost:3000")
PORT = int(os.getenv("FLASK_MAIN_PORT", "5000"))

# Custom JSON encoder to handle date objects
class CustomJSONProvider(DefaultJSONProvider):
    sort_keys = False

    def default(self, obj):
        if isinstance(obj, date):
            return obj.isoformat()
        return super().default(obj)

app = Flask(__name__)
app.json = CustomJSONProvider(app)

CORS(app,
     resources={r"/api/*": {"origins": FRONTEND_URL}},
     supports_credentials=True,
     methods=["GET", "POST", "OPTIONS"],
     allow_headers=["Content-Type"],
     max_age=86400)

init_security(app)


def holiday_to_dict(holiday):
    return {"date": holiday.date, "name": holiday.name, "type": holiday.type}

# ==================== API ENDPOINTS ====================

@app.route("/")
def root():
    return jsonify({"message": "Control de acceso a plantas API"})

# ==================== PILA ENDPOINTS ====================

@app.route("/api/pila/fechas-corte")
def get_fechas_corte():
    """Calculate PILA payment dates for a solicitud"""
    id_solicitud = request.args.get("id_solicitud")
    if not id_solicitud:
        return jsonify({"error": True, "message": "ID de solicitud es requerido"}), 400

    try:
        result = pila_service.get_pila_due_dates_for_solicitud(id_solicitud)
        return jsonify(result)
    except UpstreamError as e:
        return jsonify({"error": True, "message": e.message}), e.status_code
    except ValueError as e:
        return jsonify({"error": True, "message": str(e)}), 400
    except Exception as e:
        logger.exception("Error in fechas-corte endpoint")
        return jsonify({
            "error": True,
            "message": "Error interno del servidor",
            "details": str(e)
        }), 500

@app.route("/api/pila/dias-habiles")
def get_dias_habiles():
    """Business days allowed for a NIT's PILA payment"""
    nit = request.args.get("nit")
    if not nit:
        return jsonify({"error": True, "message": "NIT es requerido"}), 400
    return jsonify(pila_service.get_payment_business_days(nit))

@app.route("/api/pila/estado-fecha")
def get_estado_fecha():
    """Status and message for a single PILA payment date (DD/MM/YYYY)"""
    fecha = request.args.get("fecha")
    if not fecha:
        return jsonify({"error": True, "message": "Fecha es requerida"}), 400

    try:
        return jsonify(describe_due_date(fecha))
    except ValueError:
        return jsonify({"error": True, "message": "La fecha debe tener el formato DD/MM/YYYY"}), 400

# ==================== HOLIDAY ENDPOINTS ====================

@app.route("/api/holidays")
def get_holidays():
    """Get Colombian holidays for a year"""
    year = request.args.get("year", type=int) or date.today().year
    try:
        holidays = holidays_for_year(year)
    except ValueError as e:
        return jsonify({"error": str(e)}), 400
    return jsonify([holiday_to_dict(h) for h in holidays])

@app.route("/api/business-days/calculate", methods=["POST"])
def calculate_days():
    """Calculate business days between two dates"""
    body = request.get_json(silent=True)
    if not isinstance(body, dict):
        body = {}

    try:
        start_date = datetime.strptime(body.get("start_date", ""), "%Y-%m-%d").date()
        end_date = datetime.strptime(body.get("end_date", ""), "%Y-%m-%d").date()
    except (TypeError, ValueError):
        return jsonify({"error": "start_date and end_date must be YYYY-MM-DD"}), 400

    if start_date > end_date:
        return jsonify({"error": "Start date must be before end date"}), 400

    return jsonify({
        "start_date": start_date.isoformat(),
        "end_date": end_date.isoformat(),
        "business_days": count_business_days(start_date, end_date),
        "holidays_in_range": [holiday_to_dict(h) for h in holidays_in_range(start_date, end_date)]
    })

# ==================== AUTH ENDPOINTS ====================

@app.route("/api/auth/recaptcha-config")
def recaptcha_config():
    """Public reCAPTCHA settings for the login page"""
    config = authnz_service.get_recaptcha_config()
    return jsonify({
        "siteKey": config["siteKey"],
        "configured": authnz_service.is_recaptcha_configured(),
        "actions": config["actions"]
    })

@app.route("/api/auth/verify-recaptcha", methods=["POST"])
def verify_recaptcha():
    """Verify a reCAPTCHA v3 token server side"""
    body = request.get_json(silent=True)
    if not isinstance(body, dict):
        body = {}
    token = body.get("token")

    if not authnz_service.is_valid_recaptcha_token(token):
        return jsonify({"success": False, "error_codes": ["invalid-input-response"]}), 400

    return jsonify(authnz_service.verify_recaptcha_token(token))

@app.route("/api/auth/reset-password", methods=["POST"])
def reset_password():
    """Request a password reset email through the auth backend"""
    authnz_service.add_random_delay()

    if not request.is_json:
        return jsonify({"success": False, "message": "Invalid Content-Type"}), 400

    body = request.get_json(silent=True)
    if not isinstance(body, dict):
        return jsonify({"success": False, "message": "Invalid request body"}), 400

    try:
        result = authnz_service.request_password_reset(body.get("id_nit"))
    except authnz_service.ResetPasswordError as e:
        return jsonify({"success": False, "message": e.message}), e.status_code
    except UpstreamError as e:
        return jsonify({"success": False, "message": e.message}), e.status_code
    except Exception:
        logger.exception("Unexpected error in reset password endpoint")
        return jsonify({
            "success": False,
            "message": "Error interno del servidor. Por favor, intente más tarde."
        }), 500

    return jsonify(result)

if __name__ == "__main__":
    app.run(host="0.0.0.0", port=PORT, debug=os.getenv("APP_ENV", "development") == "development")
