"""
Configuración centralizada de la aplicación
"""
from pydantic_settings import BaseSettings
from typing import List, Optional


class Settings(BaseSettings):
    """Configuración de la aplicación"""

    # API Settings
    API_TITLE: str = "BR Steel API"
    API_VERSION: str = "1.0.0"
    API_DESCRIPTION: str = "Sincronização de pedidos, webhooks e demanda de produção"
    LOG_LEVEL: str = "INFO"

    # Document store: "postgres" (JSONB documents table) or "memory"
    DOCUMENT_STORE: str = "postgres"
    DATABASE_URL: Optional[str] = None

    # CORS - Can be string (comma-separated) or JSON array
    # Example: "http://localhost:3000,https://yourdomain.com" or '["http://localhost:3000"]'
    ALLOWED_ORIGINS: Optional[str] = "http://localhost:3000,http://localhost:9002"

    def get_allowed_origins(self) -> List[str]:
        """Parse ALLOWED_ORIGINS string into list"""
        if not self.ALLOWED_ORIGINS:
            return ["http://localhost:3000"]

        # Try JSON parse first (for array format)
        import json
        try:
            origins = json.loads(self.ALLOWED_ORIGINS)
            if isinstance(origins, list):
                return origins
        except (json.JSONDecodeError, ValueError):
            pass

        # Fall back to comma-separated string
        return [origin.strip() for origin in self.ALLOWED_ORIGINS.split(",")]

    # Bling ERP
    BLING_CLIENT_ID: str = ""
    BLING_CLIENT_SECRET: str = ""
    BLING_WEBHOOK_SECRET: str = ""
    # When True, a request without any signature header is rejected (401)
    BLING_WEBHOOK_REQUIRE_SIGNATURE: bool = False
    BLING_API_BASE: str = "https://api.bling.com.br/Api/v3"
    BLING_OAUTH_URL: str = "https://www.bling.com.br/Api/v3/oauth"

    # Mercado Livre
    MERCADOLIVRE_APP_ID: str = ""
    MERCADOLIVRE_CLIENT_SECRET: str = ""
    MERCADOLIVRE_REDIRECT_URI: str = ""

    # OAuth state signing (falls back to an ephemeral key when empty)
    OAUTH_STATE_SECRET: str = ""
    OAUTH_STATE_TTL_SECONDS: int = 600

    # Sync endpoints
    SYNC_API_KEY: str = ""
    SYNC_DEFAULT_LOOKBACK_DAYS: int = 30
    SYNC_DETAIL_CONCURRENCY: int = 1

    # Outbound HTTP
    TOKEN_REFRESH_SKEW_SECONDS: int = 60
    HTTP_TIMEOUT_SECONDS: float = 30.0

    # Stock aggregate view cache
    STOCK_CACHE_TTL_SECONDS: int = 300

    class Config:
        env_file = ".env"
        case_sensitive = True
        extra = "ignore"


settings = Settings()
