import os
from dotenv import load_dotenv

load_dotenv()


class Settings:
    """Runtime settings read from the environment (and a local .env file)."""

    def __init__(self):
        self.database_url = os.getenv("DATABASE_URL", "sqlite:///./parking.db")
        # How long a pending-payment booking may hold its slot before it expires
        self.payment_wait_minutes = int(os.getenv("PAYMENT_WAIT_MINUTES", "15"))
        # Requester/owner cancellation of a confirmed booking closes this long before start
        self.cancellation_grace_minutes = int(os.getenv("CANCELLATION_GRACE_MINUTES", "60"))
        self.default_spot_timezone = os.getenv("DEFAULT_SPOT_TIMEZONE", "UTC")
        self.log_level = os.getenv("LOG_LEVEL", "INFO").upper()


settings = Settings()
