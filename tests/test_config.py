"""Configuration tests."""

from shipdesk.config import ShipdeskConfig


def test_defaults() -> None:
    config = ShipdeskConfig()
    assert config.public_base_url is None
    assert config.allowed_origins == ["http://localhost:5173"]
    assert config.session_cookie_name == "session_token"
    assert config.stamp_caption == "Verified by OpexIO"
    assert config.stamp_size == 80
    assert config.stamp_margin == 20
    assert config.invoice_max_file_size == 5 * 1024 * 1024


def test_env_prefix(monkeypatch) -> None:
    monkeypatch.setenv("SHIPDESK_PUBLIC_BASE_URL", "https://portal.example.com")
    monkeypatch.setenv("SHIPDESK_STAMP_SIZE", "96")
    monkeypatch.setenv(
        "SHIPDESK_ALLOWED_ORIGINS",
        '["https://portal.example.com", "https://admin.example.com"]',
    )

    config = ShipdeskConfig()
    assert config.public_base_url == "https://portal.example.com"
    assert config.stamp_size == 96
    assert config.allowed_origins == [
        "https://portal.example.com",
        "https://admin.example.com",
    ]


def test_invoice_types_default_to_documents_and_images() -> None:
    config = ShipdeskConfig()
    assert set(config.invoice_allowed_content_types) == {
        "application/pdf",
        "image/png",
        "image/jpeg",
        "image/jpg",
    }
