import os

BASE_DIR = os.path.abspath(os.path.dirname(__file__))


def _csv(value: str) -> list:
    return [part.strip() for part in (value or "").split(",") if part.strip()]


class Config:
    # Secrets
    SECRET_KEY = os.getenv("SECRET_KEY", "dev-only-change-me")

    # SQLite database file stored next to the app as consultations.db
    SQLALCHEMY_DATABASE_URI = os.getenv(
        "DATABASE_URL",
        "sqlite:///" + os.path.join(BASE_DIR, "consultations.db")
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Session cookie name for our auth token
    AUTH_COOKIE_NAME = "consult_session"

    # 7 days session lifetime
    SESSION_LIFETIME_SECONDS = 7 * 24 * 60 * 60

    # Idle timeout: 2 hours
    IDLE_TIMEOUT_SECONDS = 2 * 60 * 60

    # Session/cookie security defaults
    SESSION_COOKIE_HTTPONLY = True
    SESSION_COOKIE_SAMESITE = "Lax"
    SESSION_COOKIE_SECURE = os.getenv("SESSION_COOKIE_SECURE", "false").lower() == "true"

    # Cancellation policy: must be strictly more than this many days before the session ends
    CANCEL_MIN_DAYS = int(os.getenv("CANCEL_MIN_DAYS", "7"))

    # Working hours used when no settings row has been saved yet
    DEFAULT_WORK_DAYS = [1, 2, 3, 4, 5]  # Monday..Friday (0 = Sunday)
    DEFAULT_WORK_START = 9
    DEFAULT_WORK_END = 17
    DEFAULT_BUFFER_MINUTES = 60

    # Accounts promoted to admin when they sign in
    ADMIN_EMAILS = _csv(os.getenv("ADMIN_EMAILS", ""))

    # Google sign-in
    GOOGLE_CLIENT_ID = os.getenv("GOOGLE_CLIENT_ID")

    # Google Calendar (meeting links)
    GOOGLE_CALENDAR_ENABLED = os.getenv("GOOGLE_CALENDAR_ENABLED", "false").lower() == "true"
    GOOGLE_CALENDAR_ID = os.getenv("GOOGLE_CALENDAR_ID", "primary")
    GOOGLE_SERVICE_ACCOUNT_FILE = os.getenv("GOOGLE_SERVICE_ACCOUNT_FILE")
    GOOGLE_CALENDAR_DELEGATE = os.getenv("GOOGLE_CALENDAR_DELEGATE")
    CALENDAR_TIMEOUT_SECONDS = int(os.getenv("CALENDAR_TIMEOUT_SECONDS", "10"))
    CALENDAR_TIME_ZONE = os.getenv("CALENDAR_TIME_ZONE", "UTC")

    # Stripe
    STRIPE_SECRET_KEY = os.getenv("STRIPE_SECRET_KEY")
    STRIPE_WEBHOOK_SECRET = os.getenv("STRIPE_WEBHOOK_SECRET")
    STRIPE_MAX_NETWORK_RETRIES = int(os.getenv("STRIPE_MAX_NETWORK_RETRIES", "2"))
    PAYMENT_CURRENCY = os.getenv("PAYMENT_CURRENCY", "usd")

    # Where the gateway sends the payer back after checkout
    FRONTEND_BASE_URL = os.getenv("FRONTEND_BASE_URL", "http://localhost:8080")

    # Basic app settings
    DEBUG = False
