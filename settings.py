from typing import List, Optional

from pydantic import Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_SECRET = "default_secret"


class Settings(BaseSettings):
    # Server
    port: int = 4000
    public_base_url: Optional[str] = None
    cors_origins: List[str] = Field(default_factory=lambda: ["*"])
    log_level: str = "INFO"

    # Store
    mongo_url: str = "mongodb://localhost:27017"
    database_name: str = "shop"

    # Auth
    secret_key: SecretStr = SecretStr(DEFAULT_SECRET)

    # Uploaded product images
    upload_dir: str = "upload/images"

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    @property
    def base_url(self) -> str:
        return self.public_base_url or f"http://localhost:{self.port}"

    @property
    def uses_default_secret(self) -> bool:
        return self.secret_key.get_secret_value() == DEFAULT_SECRET
