import os
from pydantic_settings import BaseSettings
from dotenv import load_dotenv

# Explicitly load .env file before defining Settings
env_path = os.path.join(os.path.dirname(os.path.dirname(os.path.abspath(__file__))), ".env")
load_dotenv(env_path)

# Below this a token no longer carries 128 bits of randomness
MIN_TOKEN_BYTES = 16

# Upper bound on max_downloads; fits a 32-bit INTEGER column
MAX_DOWNLOADS_CAP = 2**31 - 1
# Keeps created_at +/- ttl inside the datetime range
MAX_TTL_SECONDS = 100 * 365 * 24 * 3600


class Settings(BaseSettings):
    PROJECT_NAME: str = "ShareVault"
    API_V1_STR: str = "/api/v1"

    # Server
    HOST: str = "127.0.0.1"
    PORT: int = 8899
    # Public origin used to build share URLs: <BASE_URL>/download/<token>
    BASE_URL: str = "http://127.0.0.1:8899"

    # Database
    SQLALCHEMY_DATABASE_URI: str = "sqlite:///./sharevault.db"

    # Share links
    TOKEN_BYTES: int = 32
    TRANSIENT_RETRY_ATTEMPTS: int = 3

    # Storage
    UPLOAD_DIR: str = os.path.join(os.getcwd(), "upload_storage")
    MAX_UPLOAD_BYTES: int = 100 * 1024 * 1024

    # Logging
    LOG_LEVEL: str = "INFO"

    @property
    def token_bytes(self) -> int:
        return max(self.TOKEN_BYTES, MIN_TOKEN_BYTES)

    class Config:
        case_sensitive = True


settings = Settings()
