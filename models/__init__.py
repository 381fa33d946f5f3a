from .db import db
from .user import User
from .audit_log import AuditLog
from .session import Session
from .booking import Booking, BookingComment
from .settings import SettingsVersion, CurrentSettings
from .wallet import Wallet, WalletTransaction
