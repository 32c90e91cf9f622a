import logging
from typing import List, Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Process-wide configuration, read from the environment (or .env) once at startup."""

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    # Auth
    jwt_secret: str
    token_ttl_days: int = 7
    admin_username: str = "admin"
    admin_password_hash: str = ""
    editor_username: Optional[str] = None
    editor_password_hash: Optional[str] = None

    # HTTP
    cors_origins: str = ""

    # Storage
    database_url: str = "sqlite:///pebble.db"
    s3_bucket: Optional[str] = None
    s3_endpoint_url: Optional[str] = None
    s3_region: str = "auto"
    s3_access_key_id: Optional[str] = None
    s3_secret_access_key: Optional[str] = None
    public_base_url: str = ""

    # Publish webhook
    deploy_webhook_url: Optional[str] = None
    webhook_timeout: float = 10.0

    log_level: str = "INFO"

    @property
    def allowed_origins(self) -> List[str]:
        return [o.strip() for o in self.cors_origins.split(",") if o.strip()]


def configure_logging(settings: Settings) -> None:
    logging.basicConfig(
        level=settings.log_level.upper(),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )
