from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application configuration loaded from environment variables.

    Secrets and endpoints without defaults are required: constructing Settings
    without them raises a ValidationError, so the process refuses to start.
    """

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    app_env: str = "dev"
    log_level: str = "INFO"

    api_host: str = "0.0.0.0"
    api_port: int = 3000
    cors_allow_origins: list[str] = ["*"]
    rate_limit_enabled: bool = True
    rate_limit_requests: int = 20
    rate_limit_window_seconds: int = 15 * 60
    disconnect_poll_seconds: float = 0.5

    db_host: str = "host.docker.internal"
    db_port: int = 5432
    db_database: str = "medchain"
    db_username: str = "medchain"
    db_password: str = "secret"
    db_connect_timeout_seconds: int = 10
    db_statement_timeout_seconds: int = 15

    encryption_secret: str = Field(min_length=1)

    ipfs_api_url: str = Field(min_length=1)
    store_timeout_seconds: float = 30.0
    store_retry_attempts: int = 3
    store_retry_base_seconds: float = 0.2
    store_retry_factor: float = 2.0

    ledger_rpc_url: str = Field(min_length=1)
    ledger_private_key: str = Field(min_length=1)
    ledger_contract_address: str = Field(min_length=1)
    ledger_uploader_role: str = "UPLOADER_ROLE"
    permission_timeout_seconds: float = 5.0
    anchor_timeout_seconds: float = 30.0
    anchor_receipt_timeout_seconds: float = 120.0

    pdf_engine: str = "pdfplumber"
    extraction_timeout_seconds: float = 60.0
    max_upload_bytes: int = 5 * 1024 * 1024

    canonical_lowercase: bool = True

    max_resume_attempts: int = 3
    resume_poll_interval_seconds: int = 5
