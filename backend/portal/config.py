import logging
import logging.handlers
from pathlib import Path

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    database_url: str = "postgresql://portal:portal@db:5432/portal"
    redis_url: str = "redis://redis:6379/0"
    secret_key: str = "change-me"

    # Access
    admin_token: str = ""
    cron_secret: str = ""
    cors_origins: str = "*"
    cors_allow_credentials: bool = False
    trusted_hosts: str = "*"
    rate_limit_trigger: str = "10/minute"

    # Organisation / links used in message templates
    org_name: str = "Health Matters Clinic"
    portal_url: str = "https://portal.example.org"

    # Email (SMTP password may be Fernet-encrypted, see notifications.providers)
    smtp_host: str = "smtp.gmail.com"
    smtp_port: int = 587
    smtp_user: str = ""
    smtp_password: str = ""
    email_from_name: str = "Health Matters Clinic"

    # SMS (Twilio)
    twilio_account_sid: str = ""
    twilio_auth_token: str = ""
    twilio_from_number: str = ""

    dispatch_timeout_seconds: float = 15.0

    # Civil timezone for all day-granularity cadences
    timezone: str = "America/Los_Angeles"

    # Scheduler
    scheduler_enabled: bool = True
    daily_run_hour: int = 9
    scheduled_run_hour: int = 10
    sms_interval_hours: int = 3
    debrief_interval_minutes: int = 10
    startup_catchup_delay_seconds: int = 30

    # Cadences
    event_lookahead_days: int = 8
    compliance_lookahead_days: int = 30
    opportunity_alert_lookback_hours: int = 24
    debrief_delay_minutes: int = 15
    debrief_window_minutes: int = 60
    birthday_bonus_xp: int = 100
    workflow_config_cache_ttl: int = 60

    # SMO monthly cycle
    smo_capacity: int = 20
    smo_creation_window_days: int = 30
    smo_enforcement_hour: int = 23
    smo_training_start: str = "18:00"
    smo_training_end: str = "20:00"
    smo_service_start: str = "08:00"
    smo_service_end: str = "12:00"
    smo_location: str = "Skid Row"

    # Logging
    log_level: str = "INFO"
    log_dir: str = "logs"
    log_max_bytes: int = 10_485_760  # 10 MB
    log_backup_count: int = 5

    model_config = {"env_file": ".env"}

    @property
    def effective_database_url(self) -> str:
        # Managed hosts hand out postgres:// URLs, SQLAlchemy wants postgresql://
        if self.database_url.startswith("postgres://"):
            return "postgresql://" + self.database_url[len("postgres://") :]
        return self.database_url

    @property
    def cors_origins_list(self) -> list[str]:
        return [o.strip() for o in self.cors_origins.split(",") if o.strip()]

    @property
    def trusted_hosts_list(self) -> list[str]:
        return [h.strip() for h in self.trusted_hosts.split(",") if h.strip()]


settings = Settings()


def setup_logging() -> None:
    """Configure application-wide logging with rotating file handlers.

    Creates three handlers:
    - Console: INFO+ with brief format (for container logs)
    - app.log: DEBUG+ with detailed format, rotated at 10 MB x 5 backups
    - error.log: ERROR+ only, rotated at 10 MB x 5 backups
    """
    log_dir = Path(settings.log_dir)
    log_dir.mkdir(parents=True, exist_ok=True)

    level = getattr(logging, settings.log_level.upper(), logging.INFO)

    root = logging.getLogger()
    root.setLevel(level)
    root.handlers.clear()

    # --- Console handler (brief, for container logs / stdout) ---
    console = logging.StreamHandler()
    console.setLevel(logging.INFO)
    console.setFormatter(logging.Formatter(
        "%(asctime)s %(levelname)-8s %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    ))
    root.addHandler(console)

    # --- Rotating file handler (detailed, all levels) ---
    detail_fmt = logging.Formatter(
        "%(asctime)s %(levelname)-8s [%(name)s:%(funcName)s:%(lineno)d] %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    app_handler = logging.handlers.RotatingFileHandler(
        log_dir / "app.log",
        maxBytes=settings.log_max_bytes,
        backupCount=settings.log_backup_count,
        encoding="utf-8",
    )
    app_handler.setLevel(logging.DEBUG)
    app_handler.setFormatter(detail_fmt)
    root.addHandler(app_handler)

    # --- Rotating error-only file handler ---
    err_handler = logging.handlers.RotatingFileHandler(
        log_dir / "error.log",
        maxBytes=settings.log_max_bytes,
        backupCount=settings.log_backup_count,
        encoding="utf-8",
    )
    err_handler.setLevel(logging.ERROR)
    err_handler.setFormatter(detail_fmt)
    root.addHandler(err_handler)

    # --- Quiet noisy third-party loggers ---
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("apscheduler").setLevel(logging.WARNING)

    logging.getLogger(__name__).info(
        "Logging configured: level=%s, dir=%s, max=%s MB x %d backups",
        settings.log_level, log_dir, settings.log_max_bytes // 1_048_576, settings.log_backup_count,
    )
