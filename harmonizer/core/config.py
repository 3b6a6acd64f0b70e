from pydantic_settings import BaseSettings

class Settings(BaseSettings):
    PROJECT_NAME: str = "Harmonizer Decision Hub"

    # Workflow backend (n8n webhooks, usually behind an ngrok tunnel)
    BACKEND_URL: str = "http://localhost:5678"
    # "/webhook-test" while clicking "Test Workflow" in n8n, "/webhook" once active
    WEBHOOK_PREFIX: str = "/webhook"
    # Value for the ngrok-skip-browser-warning header; empty disables it
    TUNNEL_SKIP_HEADER_VALUE: str = "69420"
    HTTP_TIMEOUT_SECONDS: float = 30.0

    # Simulated audit stage durations
    EXTRACTION_DELAY_SECONDS: float = 1.5
    MATCHING_DELAY_SECONDS: float = 1.5

    REFRESH_ON_STARTUP: bool = True
    LOG_LEVEL: str = "INFO"

    class Config:
        case_sensitive = True

settings = Settings()
