from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    github_token: Optional[str] = None
    github_api_url: str = "https://api.github.com/graphql"
    goodreads_token: Optional[str] = None
    goodreads_user_id: Optional[str] = None
    goodreads_api_url: str = "https://www.goodreads.com"
    literal_email: Optional[str] = None
    literal_password: Optional[str] = None
    literal_api_url: str = "https://literal.club/graphql/"
    request_timeout: float = 30.0  # seconds, per request
    log_level: str = "WARNING"

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")
