from pydantic_settings import BaseSettings

APP_VERSION = "0.1.0"
DEFAULT_BASE_URL = "https://siterecap.com"


class Settings(BaseSettings):
    model_config = {
        "env_file": ".env",
        "extra": "ignore",
        "env_prefix": "",
        "case_sensitive": False,
    }

    # Public URLs (names kept compatible with the web frontend's .env)
    next_public_base_url: str = ""
    next_public_site_url: str = ""
    nextauth_url: str = ""

    # Supabase
    next_public_supabase_url: str = ""
    next_public_supabase_anon_key: str = ""
    supabase_service_key: str = ""
    supabase_storage_access_key_id: str = ""
    supabase_storage_secret_access_key: str = ""
    supabase_storage_region: str = "us-east-1"
    photos_bucket: str = "photos"

    # Database (empty = in-memory store)
    database_url: str = ""

    # Email
    resend_api_key: str = ""
    email_from: str = "support@siterecap.com"

    # AI
    gemini_api_key: str = ""
    gemini_model: str = "gemini-2.0-flash-exp"
    llm_cache_dir: str = ""

    # App
    environment: str = "development"
    log_level: str = "INFO"
    log_file: str = ""
    demo_mode: bool = True
    use_mock_ai: bool = True
    auto_close_days: int = 30
    http_timeout_seconds: float = 10.0

    @property
    def base_url(self) -> str:
        """Canonical public origin for every redirect and emailed link."""
        url = self.next_public_base_url or self.next_public_site_url or DEFAULT_BASE_URL
        return url.rstrip("/")

    @property
    def auth_callback_url(self) -> str:
        return f"{self.base_url}/auth/callback"

    @property
    def supabase_configured(self) -> bool:
        return bool(self.next_public_supabase_url and self.next_public_supabase_anon_key)

    @property
    def storage_configured(self) -> bool:
        return bool(
            self.next_public_supabase_url
            and self.supabase_storage_access_key_id
            and self.supabase_storage_secret_access_key
        )


settings = Settings()
