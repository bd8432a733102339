"""
Configuration management for the QBWC time bridge
"""
import os
from dataclasses import dataclass

from dotenv import load_dotenv

# Load environment variables from a project .env when present
load_dotenv()


@dataclass
class QBWCConfig:
    """Web Connector credentials and protocol settings"""
    username: str
    password: str = ""
    password_hash: str = ""
    app_name: str = "QBWC Time Sync"
    app_description: str = "Syncs employee time entries into QuickBooks Desktop"
    server_version: str = "1.0.0"
    session_timeout_minutes: int = 30
    soap_address: str = ""
    default_customer: str = "Shop"


@dataclass
class TimesheetStoreConfig:
    """Timesheet store (Apps Script web app) configuration"""
    url: str
    api_secret: str
    timeout: int = 30


@dataclass
class DatabaseConfig:
    """Audit database configuration"""
    url: str = ""

    @property
    def enabled(self) -> bool:
        return bool(self.url)


@dataclass
class AppConfig:
    """Application configuration"""
    debug: bool = False
    log_level: str = "INFO"
    timezone: str = "UTC"
    host: str = "0.0.0.0"
    port: int = 3000


class Config:
    """Main configuration class"""

    def __init__(self):
        self.qbwc = QBWCConfig(
            username=os.getenv("QBWC_USERNAME", "qbwc"),
            password=os.getenv("QBWC_PASSWORD", ""),
            password_hash=os.getenv("QBWC_PASSWORD_HASH", ""),
            app_name=os.getenv("QBWC_APP_NAME", "QBWC Time Sync"),
            app_description=os.getenv(
                "QBWC_APP_DESCRIPTION",
                "Syncs employee time entries into QuickBooks Desktop",
            ),
            server_version=os.getenv("QBWC_SERVER_VERSION", "1.0.0"),
            session_timeout_minutes=int(os.getenv("QBWC_SESSION_TIMEOUT_MINUTES", "30")),
            soap_address=os.getenv("QBWC_SOAP_ADDRESS", ""),
            default_customer=os.getenv("QBWC_DEFAULT_CUSTOMER", "Shop"),
        )

        self.timesheets = TimesheetStoreConfig(
            url=os.getenv("APPS_SCRIPT_URL", ""),
            api_secret=os.getenv("QBWC_API_SECRET", ""),
            timeout=int(os.getenv("APPS_SCRIPT_TIMEOUT", "30")),
        )

        self.database = DatabaseConfig(
            url=os.getenv("QBWC_AUDIT_DATABASE_URL", ""),
        )

        self.app = AppConfig(
            debug=os.getenv("DEBUG", "false").lower() == "true",
            log_level=os.getenv("LOG_LEVEL", "INFO"),
            timezone=os.getenv("TIMEZONE", "UTC"),
            host=os.getenv("HOST", "0.0.0.0"),
            port=int(os.getenv("PORT", "3000")),
        )

    def validate(self) -> None:
        """Validate required configuration"""
        if not self.qbwc.username:
            raise ValueError("QBWC_USERNAME is required")

        if not self.qbwc.password and not self.qbwc.password_hash:
            raise ValueError("QBWC_PASSWORD or QBWC_PASSWORD_HASH is required")

        if not self.timesheets.url:
            raise ValueError("APPS_SCRIPT_URL is required")

        if not self.timesheets.api_secret:
            raise ValueError("QBWC_API_SECRET is required")

        if self.qbwc.session_timeout_minutes <= 0:
            raise ValueError("QBWC_SESSION_TIMEOUT_MINUTES must be positive")


# Global config instance
config = Config()
