from pydantic import Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    model_config = {"env_prefix": "TI_", "env_file": ".env", "env_file_encoding": "utf-8"}

    db_path: str = Field(default="tracked_import.db")
    log_level: str = Field(default="INFO")
    log_json: bool = Field(default=False)

    # Import engine
    batch_size: int = Field(default=1000, ge=1)
    bulk_insert_timeout_seconds: float = Field(default=30.0, gt=0)
    max_recorded_errors: int = Field(default=1000, ge=0)
    error_report_limit: int = Field(default=10, ge=0)

    # Admin API. The operator may run and clear imports; the viewer only reads.
    auth_username: str = Field(default="admin")
    auth_password: str = Field(default="")
    viewer_username: str = Field(default="viewer")
    viewer_password: str = Field(default="")
    # Files submitted over HTTP must live under this directory.
    import_dir: str = Field(default="imports")
    jwt_secret: str = Field(default="")
    jwt_expire_minutes: int = Field(default=1440)
    cors_origins: str = Field(default="http://localhost:3000")


settings = Settings()
