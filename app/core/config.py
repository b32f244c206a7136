# backend-server/app/core/config.py
from typing import List
from pydantic_settings import BaseSettings; from dotenv import load_dotenv
load_dotenv()
class Settings(BaseSettings):
    DATABASE_URL: str; JWT_SECRET_KEY: str; JWT_ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60 * 24
    # Relative template references resolve against this directory
    TEMPLATE_DIR: str = "templates"
    TEMPLATE_MIN_BYTES: int = 100; TEMPLATE_FETCH_TIMEOUT: float = 30
    # Hosts (and their subdomains) templates may be fetched from; empty disables URL templates
    TEMPLATE_ALLOWED_HOSTS: List[str] = []
    SIGNATURE_TEXT_MAX_CHARS: int = 100; SIGNATURE_IMAGE_MAX_CHARS: int = 500_000
    LOG_LEVEL: str = "INFO"
settings = Settings()
