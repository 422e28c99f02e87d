from pathlib import Path
from typing import List, Literal, Optional

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


DEFAULT_INSTRUCTIONS = (
    "You are a helpful assistant that can help with email management. "
    "Display all outputs nicely formatted in markdown format."
)


class Settings(BaseSettings):

    ROOT_DIR: Path = Path(__file__).parent.parent.parent.parent
    OPENAI_API_KEY: str = ""
    LLM_MODEL: str = "gpt-5-nano"

    APP_NAME: str = "agent-gateway"
    APP_VERSION: str = "1.0.0"

    # HTTP server
    HOST: str = "0.0.0.0"
    PORT: int = 3001
    SERVER_URL: str = "http://localhost:3001"
    CORS_ORIGINS: List[str] = ["*"]

    # Tool provider the engine connects to (defaults to our own /mcp endpoint)
    MCP_SERVER_URL: Optional[str] = None
    MCP_TRANSPORT: Literal["streamable_http", "sse"] = "streamable_http"

    # Execution engine
    ENGINE_INIT_TIMEOUT: float = 30.0  # seconds a caller may wait for construction
    TOOL_TIMEOUT: float = 30.0
    MAX_ITERATIONS: int = 10
    SYSTEM_INSTRUCTIONS: str = DEFAULT_INSTRUCTIONS

    # Identity boundary (credential flows live outside this service)
    AUTHENTICATED: bool = True
    USER_EMAIL: Optional[str] = None

    # Observability
    LOG_LEVEL: str = "INFO"
    SERVICE_NAME: str = "agent-gateway"
    OTLP_TRACE_ENDPOINT: Optional[str] = None

    model_config = SettingsConfigDict(
        env_file=ROOT_DIR / ".env",
        env_file_encoding="utf-8",
        extra="ignore",
        case_sensitive=True,
    )

    @model_validator(mode="after")
    def _default_mcp_url(self) -> "Settings":
        if not self.MCP_SERVER_URL:
            self.MCP_SERVER_URL = f"{self.SERVER_URL.rstrip('/')}/mcp"
        return self


settings = Settings()
if __name__ == "__main__":
    settings = Settings()
    print(settings.model_dump_json())
