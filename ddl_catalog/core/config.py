from pydantic_settings import BaseSettings, SettingsConfigDict

class Settings(BaseSettings):
    databaseUrl: str = "sqlite+aiosqlite:///./catalog.db"
    warehousePath: str = "./warehouse"
    defaultDatabase: str = "default"
    logLevel: str = "INFO"

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

settings = Settings()
