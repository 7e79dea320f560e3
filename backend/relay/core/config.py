from pydantic_settings import BaseSettings
from typing import List


class Settings(BaseSettings):
    # Application
    APP_NAME: str = "trip-relay"
    APP_ENV: str = "production"
    LOG_LEVEL: str = "INFO"

    # Server (PORT is mandatory, the process refuses to start without it)
    HOST: str = "0.0.0.0"
    PORT: int

    # Service-to-service trust boundary for the control API
    INTERNAL_SECRET: str
    INTERNAL_SECRET_HEADER: str = "X-Internal-Secret"

    # Identity backend (Sanctum token validation)
    AUTH_API_URL: str
    AUTH_VALIDATE_PATH: str = "/api/v1/socket-auth/validate"
    AUTH_TIMEOUT_SECONDS: float = 5.0

    # CORS, shared by the HTTP surface and the Socket.IO server
    CORS_ORIGINS: List[str] = ["*"]

    # Static assets (log viewer page etc.), mounted only if the directory exists
    STATIC_DIR: str = "public"

    @property
    def is_development(self) -> bool:
        return self.APP_ENV.lower() == "development"

    @property
    def auth_validate_url(self) -> str:
        return f"{self.AUTH_API_URL.rstrip('/')}{self.AUTH_VALIDATE_PATH}"

    class Config:
        env_file = ".env"


settings = Settings()
