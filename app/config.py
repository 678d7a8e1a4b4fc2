from typing import Optional

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    database_url: str = "sqlite:///./tickets.db"
    log_level: str = "INFO"
    port: int = 3005
    cors_allow_origins: str = "*"

    # WhatsApp Cloud API
    whatsapp_verify_token: Optional[str] = None
    whatsapp_allowed_senders: str = ""
    meta_wa_token: Optional[str] = None
    meta_wa_phone_number_id: Optional[str] = None
    meta_graph_base: str = "https://graph.facebook.com/v18.0"
    whatsapp_timeout_seconds: float = 15.0

    # Language model
    llm_provider: str = "gemini"
    gemini_api_key: Optional[str] = None
    openai_api_key: Optional[str] = None
    llm_model: Optional[str] = None
    llm_timeout_seconds: float = 15.0

    # Provider directory / geocoding
    provider_service_url: Optional[str] = None
    api_gateway_url: Optional[str] = None
    provider_timeout_seconds: float = 7.0
    geocoding_service_url: Optional[str] = None
    geocoding_timeout_seconds: float = 4.0
    matchmaking_radius_km: float = 40.0
    category_synonyms_path: Optional[str] = None

    # Outbound copy
    frontend_url: str = "https://miservicio.ar"
    terms_version: str = "1.1"
    terms_url: str = "www.miservicio.ar/legal"
    worker_locality: str = "San Rafael"

    class Config:
        env_file = ".env"
        extra = "ignore"

    @property
    def allowed_senders(self) -> list[str]:
        return [item.strip() for item in self.whatsapp_allowed_senders.split(",") if item.strip()]


settings = Settings()
