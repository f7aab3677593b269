from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import List

class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=True,
        extra="ignore",
    )

    APP_ENV: str = "local"
    APP_NAME: str = "tenant-admin"
    APP_URL: str = "http://localhost:8000"
    LOG_LEVEL: str = "INFO"

    JWT_SECRET: str = "change_me_jwt"
    JWT_TTL_MINUTES: int = 240
    AUTH_COOKIE_NAME: str = "tenant_admin_token"
    SESSION_COOKIE_NAME: str = "tenant_admin_session"
    FLASH_COOKIE_NAME: str = "tenant_admin_flash"
    PREFERENCES_COOKIE_NAME: str = "tenant_admin_preferences"
    SESSION_TTL_DAYS: int = 30

    CORS_ORIGINS: str = "http://localhost:3000,http://localhost:5173"

    DATABASE_URL: str
    REDIS_URL: str

    # Compatibility bypass: this user id passes every policy check even without the super_admin role.
    SUPER_ADMIN_USER_ID: int = 1
    SUPER_ADMIN_ROLE: str = "super_admin"

    BROADCAST_DRIVER: str = "redis"  # redis | log | null
    BROADCAST_PREFIX: str = "broadcast:"
    BROADCAST_AUTH_SECRET: str = "change_me_broadcast"

    DEFAULT_LOCALE: str = "en_US"
    DEFAULT_TIMEZONE: str = "UTC"
    DEFAULT_THEME: str = "light"
    THEMES: str = "light,dark"

    DATATABLE_DEFAULT_PER_PAGE: int = 15
    DATATABLE_MAX_PER_PAGE: int = 100

    NOTIFICATIONS_PAGE_SIZE: int = 10
    NOTIFICATIONS_PRUNE_READ_DAYS: int = 30

    EMAIL_CHANGE_TTL_HOURS: int = 168
    EMAIL_PROVIDER: str = "dummy"  # dummy | smtp | relay
    EMAIL_RELAY_URL: str = "http://mail-relay:8010"
    INTERNAL_SERVICE_TOKEN: str = "change_me_internal_service_token"
    SMTP_HOST: str = ""
    SMTP_PORT: int = 587
    SMTP_USER: str = ""
    SMTP_PASSWORD: str = ""
    SMTP_USE_TLS: bool = True
    SMTP_USE_SSL: bool = False
    MAIL_FROM_ADDRESS: str = "no-reply@example.com"
    MAIL_FROM_NAME: str = "Support"

    BOOTSTRAP_ADMIN_ENABLED: bool = True
    BOOTSTRAP_ADMIN_EMAIL: str = "admin@example.com"
    BOOTSTRAP_ADMIN_PASSWORD: str = "admin123"
    BOOTSTRAP_ADMIN_NAME: str = "Super Admin"

    @property
    def cors_origins_list(self) -> List[str]:
        return [o.strip() for o in self.CORS_ORIGINS.split(",") if o.strip()]

    @property
    def themes_list(self) -> List[str]:
        return [t.strip() for t in self.THEMES.split(",") if t.strip()]

settings = Settings()
