"""
Configuração centralizada da biblioteca via Pydantic Settings.

Carrega variáveis de ambiente do arquivo .env e valida tipos automaticamente.
A aplicação hospedeira pode sobrescrever qualquer valor passando uma instância
própria de Settings para os componentes.
"""

from functools import lru_cache
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Configurações carregadas de variáveis de ambiente.

    Attributes:
        APP_NAME: Nome exibido nos logs
        API_BASE_URL: Origem do backend da biblioteca
        API_PREFIX: Prefixo das rotas REST
        HTTP_TIMEOUT_SECONDS: Timeout por requisição (delegado ao httpx)
        HTTP_MAX_RETRIES: Tentativas extras para 502/503/timeout
        HTTP_RETRY_DELAY_SECONDS: Atraso base entre tentativas
        SYNC_INTERVAL_SECONDS: Intervalo fixo entre passes de sincronização
        CATALOG_CACHE_ENABLED: Habilita o cache do catálogo
        CATALOG_CACHE_TTL_SECONDS: TTL do cache do catálogo
        STORAGE_BACKEND: memory, file ou redis
        STORAGE_PATH: Arquivo JSON usado pelo backend file
        REDIS_URL: URL de conexão Redis (backend redis)
        AUTH_TOKEN_KEY: Chave onde o app hospedeiro grava o token
        USER_DATA_KEY: Chave onde o app hospedeiro grava os dados do usuário
        LOG_LEVEL: Nível de logging (DEBUG, INFO, WARNING, ERROR, CRITICAL)
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )

    # Application
    APP_NAME: str = "library-sync"

    # Backend
    API_BASE_URL: str = "http://localhost:3000"
    API_PREFIX: str = "/api"
    HTTP_TIMEOUT_SECONDS: float = 10.0
    HTTP_MAX_RETRIES: int = 2
    HTTP_RETRY_DELAY_SECONDS: float = 0.5

    # Sync
    SYNC_INTERVAL_SECONDS: float = 10.0

    # Catalog cache
    CATALOG_CACHE_ENABLED: bool = True
    CATALOG_CACHE_TTL_SECONDS: int = 300

    # Local storage
    STORAGE_BACKEND: str = "file"
    STORAGE_PATH: str = ".library_sync/storage.json"
    REDIS_URL: str = "redis://localhost:6379/0"

    # Keys written by the host app
    AUTH_TOKEN_KEY: str = "authToken"
    USER_DATA_KEY: str = "userData"

    # Logging
    LOG_LEVEL: str = "INFO"

    @property
    def api_root(self) -> str:
        """Retorna a URL base completa, sem barra final."""
        prefix = "/" + self.API_PREFIX.strip("/") if self.API_PREFIX.strip("/") else ""
        return f"{self.API_BASE_URL.rstrip('/')}{prefix}"


@lru_cache
def get_settings() -> Settings:
    """
    Retorna instância cacheada das configurações.

    Usa lru_cache para evitar recarregar .env em cada chamada.
    """
    return Settings()
