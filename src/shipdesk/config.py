"""Shipdesk configuration."""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class ShipdeskConfig(BaseSettings):
    """Runtime config for the logistics back-office."""

    model_config = SettingsConfigDict(env_prefix="SHIPDESK_")

    # Base URL of the web app serving /verify/{token}. Derived from the
    # request origin when unset.
    public_base_url: str | None = None
    dev_api_origin: str = "http://localhost:8787"
    dev_web_origin: str = "http://localhost:5173"

    allowed_origins: list[str] = Field(
        default_factory=lambda: ["http://localhost:5173"]
    )
    allowed_origin_regex: str | None = None

    database_url: str = "sqlite+aiosqlite:///./shipdesk.db"
    storage_root: str = "./storage"

    session_cookie_name: str = "session_token"

    stamp_caption: str = "Verified by OpexIO"
    stamp_size: float = 80.0
    stamp_margin: float = 20.0

    invoice_allowed_content_types: list[str] = Field(
        default_factory=lambda: [
            "application/pdf",
            "image/png",
            "image/jpeg",
            "image/jpg",
        ]
    )
    invoice_max_file_size: int = 5 * 1024 * 1024
