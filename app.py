import logging

from flask import Flask, jsonify
from config import Config
from routes import health_bp, auth_bp, booking_bp, payments_bp, wallet_bp, admin_bp, audit_bp

from models import db
from flask_migrate import Migrate
from services.engine import BookingEngine
from services.errors import BookingError
from utils.auth_context import load_current_user
from security.csrf import csrf_protect

log = logging.getLogger(__name__)


def create_app(config_object=None, engine=None):
    app = Flask(__name__)
    app.config.from_object(config_object or Config)

    # Register routes
    app.register_blueprint(health_bp)
    app.register_blueprint(auth_bp)
    app.register_blueprint(booking_bp)
    app.register_blueprint(payments_bp)
    app.register_blueprint(wallet_bp)
    app.register_blueprint(admin_bp)
    app.register_blueprint(audit_bp)

    # Database init
    db.init_app(app)

    # Migrations
    Migrate(app, db)

    # Calendar / gateway / identity collaborators (tests pass fakes in)
    (engine or BookingEngine()).init_app(app)

    @app.before_request
    def _load_user():
        load_current_user()

    @app.before_request
    def _csrf_protect():
        return csrf_protect()

    @app.errorhandler(BookingError)
    def _booking_error(exc):
        if exc.status_code >= 500:
            log.warning("%s: %s", exc.code, exc.message)
        return jsonify(exc.to_dict()), exc.status_code

    @app.after_request
    def add_security_headers(resp):
        resp.headers["X-Content-Type-Options"] = "nosniff"
        resp.headers["X-Frame-Options"] = "DENY"
        resp.headers["Referrer-Policy"] = "no-referrer"
        resp.headers["Permissions-Policy"] = "geolocation=(), microphone=(), camera=()"
        resp.headers["Content-Security-Policy"] = "default-src 'none'; frame-ancestors 'none';"
        return resp

    register_cli(app)

    return app

#-------------------------
import click
from models.user import User, ROLE_ADMIN
from utils.seed import normalize_email, promote_admins

def register_cli(app):
    @app.cli.command("make-admin")
    @click.argument("email")
    def make_admin(email):
        """Promote a user to admin by email (bootstrap)."""
        user = User.query.filter_by(email=normalize_email(email)).first()
        if not user:
            click.echo("User not found")
            return

        if user.role != ROLE_ADMIN:
            user.role = ROLE_ADMIN
            db.session.commit()

        click.echo(f"{user.email} promoted to admin")

    @app.cli.command("promote-admins")
    def promote_configured_admins():
        """Give the admin role to every ADMIN_EMAILS account that already exists."""
        count = promote_admins()
        click.echo(f"{count} user(s) promoted to admin")

#-------------------------


if __name__ == "__main__":
    app = create_app()
    # Run locally
    app.run(host="127.0.0.1", port=5002)
