from pydantic_settings import BaseSettings, SettingsConfigDict


INSECURE_JWT_SECRET = "change-me"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env")

    APP_NAME: str = "FarmHub Core"
    ENVIRONMENT: str = "development"
    JWT_SECRET: str = INSECURE_JWT_SECRET
    JWT_ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60
    REFRESH_TOKEN_EXPIRE_DAYS: int = 7
    REGISTRATION_ENABLED: bool = True
    DATABASE_URL: str = "sqlite+pysqlite:///./farmhub_global.db"
    # "{schema}" selects database-per-tenant; without it every tenant shares
    # one server and is isolated by schema.
    TENANT_DATABASE_URL: str = "sqlite+pysqlite:///./tenant_{schema}.db"
    TENANT_DB_POOL_SIZE: int = 5
    TENANT_DB_MAX_OVERFLOW: int = 10
    TENANT_DB_POOL_TIMEOUT_SEC: int = 10
    TENANT_DB_CONNECT_TIMEOUT_SEC: int = 5
    TENANT_DB_ACQUIRE_TIMEOUT_SEC: float = 30.0
    TENANT_MAX_CACHED_CONNECTIONS: int = 50
    TENANT_IDLE_TIMEOUT_SEC: int = 30 * 60
    TENANT_CLEANUP_INTERVAL_SEC: int = 5 * 60
    TENANT_AUTO_CREATE_SCHEMA: bool = True
    METRICS_ENABLED: bool = True
    SUPERADMIN_USERNAME: str = "superadmin"
    SUPERADMIN_EMAIL: str = "superadmin@example.com"
    # Empty disables the bootstrap superadmin.
    SUPERADMIN_PASSWORD: str = ""

    @property
    def is_production(self) -> bool:
        return self.ENVIRONMENT.lower() == "production"


settings = Settings()
