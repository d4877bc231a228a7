from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # Server
    HOST: str = "0.0.0.0"
    PORT: int = 8787
    LOG_LEVEL: str = "INFO"
    STATIC_DIR: str = "static"

    # Database
    DATABASE_PATH: str = "stickyboard.db"
    DATABASE_ECHO: bool = False

    # Room
    ROOM_NAME: str = "main-room"
    MAX_MESSAGE_BYTES: int = 64 * 1024
    SEND_TIMEOUT_SECONDS: float = 10.0
    # 存储失败时是否回执给发送方（默认保持静默丢弃）
    ROOM_ERROR_ACKS: bool = False

    # Auth
    AUTH_REQUIRED: bool = False
    AUTH_JWT_SECRET: str = ""
    AUTH_JWT_ALGORITHM: str = "HS256"
    AUTH_USER_HEADERS: str = "x-user-id,x-userid"
    AUTH_TOKEN_HEADERS: str = "authorization,x-auth-token"
    SESSION_COOKIE_NAME: str = "user_session"
    SESSION_TTL_SECONDS: int = 7 * 24 * 3600
    GOOGLE_CLIENT_ID: str = ""
    GOOGLE_CLIENT_SECRET: str = ""

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")


settings = Settings()
