from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application configuration loaded from environment variables."""

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    app_env: str = "dev"
    log_level: str = "INFO"

    recognition_engine: str = "http"
    recognition_base_url: str = "http://localhost:5000"
    recognition_analyze_path: str = "/api/ocr/analyze"
    recognition_template_path: str = "/api/manufacturing/quality/template"
    recognition_timeout_seconds: int = 120

    max_upload_size_bytes: int = 10 * 1024 * 1024
    progress_tick_ms: int = 800
    completion_grace_ms: int = 500

    message_bus: str = "memory"
    db_host: str = "host.docker.internal"
    db_port: int = 5432
    db_database: str = "inspections"
    db_username: str = "inspections"
    db_password: str = "secret"

    record_request_topic: str = "quality_inspection_create"
    record_reply_topic: str = "quality_inspection_created"
    handshake_timeout_ms: int = 5000

    default_inspection_type: str = "final-qc"
