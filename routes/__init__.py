from routes.health import health_bp
from routes.auth import auth_bp
from routes.booking import booking_bp
from routes.payments import payments_bp
from routes.wallet import wallet_bp
from routes.admin import admin_bp
from routes.audit_logs import audit_bp
