import os
from decimal import Decimal, InvalidOperation
from typing import List


def _env_int(name: str, default: int) -> int:
    raw = (os.getenv(name) or "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _env_decimal(name: str, default: str) -> Decimal:
    raw = (os.getenv(name) or "").strip()
    try:
        return Decimal(raw or default)
    except InvalidOperation:
        return Decimal(default)


class Settings:
    def _split_csv(self, raw: str, *, default: List[str]) -> List[str]:
        parts = [p.strip() for p in (raw or "").split(",")]
        return [p for p in parts if p] or default

    def __init__(self) -> None:
        self.env = os.getenv('APP_ENV', 'local')
        self.db_url = os.getenv('DATABASE_URL', 'postgresql://localhost/healthtrack')
        self.db_pool_min_size = _env_int("DB_POOL_MIN_SIZE", 1)
        self.db_pool_max_size = _env_int("DB_POOL_MAX_SIZE", 10)
        # Upper bound for a single stored-procedure call. Calls are never retried.
        self.procedure_timeout_ms = _env_int("PROCEDURE_TIMEOUT_MS", 15000)
        self.session_minutes = _env_int("SESSION_MINUTES", 30)
        self.cors_origins = self._split_csv(
            os.getenv("CORS_ORIGINS", "").strip(),
            default=["http://localhost:3000", "http://127.0.0.1:3000"],
        )
        self.api_version = os.getenv("APP_VERSION", "0.1.0").strip() or "0.1.0"

        # Point-of-sale defaults.
        self.tax_rate = _env_decimal("TAX_RATE", "0.13")
        self.currency_code = os.getenv("CURRENCY_CODE", "CRC").strip() or "CRC"
        self.default_warehouse_id = _env_int("DEFAULT_WAREHOUSE_ID", 1)
        self.inventory_adjust_roles = self._split_csv(
            os.getenv("INVENTORY_ADJUST_ROLES", "").strip(),
            default=["Administrator", "Pharmacist"],
        )
        self.user_admin_roles = self._split_csv(
            os.getenv("USER_ADMIN_ROLES", "").strip(),
            default=["Administrator"],
        )

        # Invoice document branding.
        self.pdf_company_name = os.getenv("PDF_COMPANY_NAME", "HealthTrack Systems")
        self.pdf_tagline = os.getenv("PDF_TAGLINE", "Control, precision and wellbeing")
        self.pdf_phone = os.getenv("PDF_PHONE", "Tel: +506 2222-3333")
        self.pdf_email = os.getenv("PDF_EMAIL", "info@healthtrack.cr")
        self.pdf_logo_path = (os.getenv("PDF_LOGO_PATH") or "").strip() or None

    @property
    def is_dev(self) -> bool:
        return self.env in {"local", "dev"}


settings = Settings()
