from pydantic import Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    model_config = {"env_prefix": "CI_", "env_file": ".env", "env_file_encoding": "utf-8"}

    db_path: str = Field(default="customers.db")
    db_busy_timeout: float = Field(default=5.0, gt=0)
    log_level: str = Field(default="INFO")
    log_format: str = Field(default="console", pattern=r"^(console|json)$")
    cors_origins: str = Field(default="http://localhost:3000")

    # Import pipeline
    import_batch_size: int = Field(default=100, ge=1)
    import_persistence_policy: str = Field(default="per_row", pattern=r"^(per_row|per_batch)$")
    max_upload_bytes: int = Field(default=5 * 1024 * 1024, ge=1)
    allowed_extensions: str = Field(default="csv,txt")

    customers_max_page_size: int = Field(default=50, ge=1)

    @property
    def allowed_extension_set(self) -> set[str]:
        return {ext.strip().lower().lstrip(".") for ext in self.allowed_extensions.split(",") if ext.strip()}

    @property
    def cors_origin_list(self) -> list[str]:
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]


settings = Settings()
