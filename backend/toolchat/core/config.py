from typing import Optional, List

from pydantic import Field, AliasChoices, computed_field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


_INSECURE_DB_PASSWORDS = {
    "postgres",
    "password",
    "changeme",
}

_INSECURE_ALLOWED_ORIGINS_DEFAULTS = {
    "http://localhost:3000",
    "http://localhost:5000",
    "http://127.0.0.1:3000",
    "http://127.0.0.1:5000",
}


class Settings(BaseSettings):
    # Allow comma-separated env vars for list fields like ALLOWED_ORIGINS
    model_config = SettingsConfigDict(env_file=".env", env_parse_delimiter=",", extra="ignore")
    PROJECT_NAME: str = "ToolChat"
    API_V1_STR: str = "/api"
    ENVIRONMENT: str = "development"
    DEBUG: bool = True
    VERSION: str = "1.0.0"

    # CORS
    ALLOWED_ORIGINS: List[str] | str = Field(
        default_factory=lambda: ["http://localhost:3000", "http://localhost:5000"],
        validation_alias=AliasChoices("ALLOWED_ORIGINS", "BACKEND_CORS_ORIGINS"),
    )

    # Database settings. When POSTGRES_SERVER is unset we fall back to a local SQLite file.
    POSTGRES_USER: str = "postgres"
    POSTGRES_PASSWORD: str = "postgres"
    POSTGRES_SERVER: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("POSTGRES_SERVER", "POSTGRES_HOST", "PGHOST"),
    )
    POSTGRES_PORT: int = 5432
    POSTGRES_DB: str = "toolchat"
    SQLITE_PATH: str = "./toolchat.db"

    DB_POOL_SIZE: int = Field(default=10, description="Number of persistent DB connections")
    DB_MAX_OVERFLOW: int = Field(default=20, description="Max additional connections under load")

    DATABASE_URL: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("DATABASE_URL", "SQLALCHEMY_DATABASE_URI"),
    )

    SQLALCHEMY_ECHO: bool = False

    # LLM completion provider (OpenAI-compatible endpoint, DeepSeek by default)
    LLM_PROVIDER: str = "deepseek"  # 'openai', 'deepseek' use native tools; 'ollama', 'qwen' use text markers
    OPENAI_API_KEY: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("OPENAI_API_KEY", "DEEPSEEK_API_KEY", "LLM_API_KEY"),
    )
    OPENAI_BASE_URL: Optional[str] = "https://api.deepseek.com/v1"
    LLM_MODEL: str = "deepseek-chat"
    LLM_TEMPERATURE: float = 0.7
    LLM_REQUEST_TIMEOUT: float = 60.0  # seconds

    # Remote search tool. The tool is only advertised when the key is present.
    TAVILY_API_KEY: Optional[str] = None
    TAVILY_BASE_URL: str = "https://api.tavily.com"
    TOOL_EXECUTION_TIMEOUT: float = 30.0  # seconds

    # Demo bootstrap (single mock user, no authentication)
    MOCK_USER_ID: int = 1
    DEMO_USERNAME: str = "demo_user"
    DEMO_PASSWORD: str = "password123"

    CHATBOT_MAX_HISTORY: int = 50  # Maximum number of previous messages sent to the model
    CHATBOT_SYSTEM_PROMPT: str = "你是一个有用的AI助手，你可以使用提供的工具来回答用户的问题。"

    @computed_field
    @property
    def SEARCH_ENABLED(self) -> bool:
        return bool(self.TAVILY_API_KEY)

    def model_post_init(self, __context):
        """
        Validate configuration on startup. In production, fail hard if insecure defaults are detected.
        """
        if not self.DATABASE_URL:
            if self.POSTGRES_SERVER:
                self.DATABASE_URL = (
                    f"postgresql+asyncpg://{self.POSTGRES_USER}:{self.POSTGRES_PASSWORD}"
                    f"@{self.POSTGRES_SERVER}:{self.POSTGRES_PORT}/{self.POSTGRES_DB}"
                )
            else:
                self.DATABASE_URL = f"sqlite+aiosqlite:///{self.SQLITE_PATH}"

        is_prod = self.ENVIRONMENT.lower() == "production"
        if not is_prod:
            return

        errors = []

        if self.DATABASE_URL.startswith("postgresql") and self.POSTGRES_PASSWORD in _INSECURE_DB_PASSWORDS:
            errors.append("POSTGRES_PASSWORD is insecure. Set a strong password in your environment.")

        if not self.OPENAI_API_KEY:
            errors.append("OPENAI_API_KEY (or DEEPSEEK_API_KEY) is required in production.")

        if not self.ALLOWED_ORIGINS or set(self.ALLOWED_ORIGINS).issubset(_INSECURE_ALLOWED_ORIGINS_DEFAULTS):
            errors.append(
                "ALLOWED_ORIGINS must be set to your domain(s) in production (not localhost defaults)."
            )

        if self.DEBUG:
            errors.append("DEBUG must be False in production.")

        if errors:
            error_msg = "Production configuration errors:\n" + "\n".join(f"  - {e}" for e in errors)
            raise ValueError(error_msg)

    @field_validator("ALLOWED_ORIGINS", mode="before")
    @classmethod
    def _split_origins(cls, value):
        if isinstance(value, str):
            return [v.strip() for v in value.split(",") if v.strip()]
        return value


settings = Settings()
