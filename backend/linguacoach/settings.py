from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field

class Settings(BaseSettings):
	# "development" exposes technical error detail and crashes on unhandled faults
	environment: str = Field(default="production", validation_alias="ENVIRONMENT")
	port: int = Field(default=5000, validation_alias="PORT")
	log_level: str | None = Field(default=None, validation_alias="LOG_LEVEL")

	# OpenRouter (OpenAI-compatible streaming chat API)
	openrouter_api_key: str | None = Field(default=None, validation_alias="OPENROUTER_API_KEY")
	# Legacy variable name still honoured when OPENROUTER_API_KEY is unset
	gemini_api_key: str | None = Field(default=None, validation_alias="GEMINI_API_KEY")
	openrouter_model: str = Field(default="google/gemini-2.5-flash-lite-preview-09-2025", validation_alias="OPENROUTER_MODEL")
	openrouter_base_url: str = Field(default="https://openrouter.ai/api/v1/chat/completions", validation_alias="OPENROUTER_BASE_URL")
	openrouter_referer: str = Field(default="http://localhost:5173", validation_alias="OPENROUTER_HTTP_REFERER")
	openrouter_title: str = Field(default="LinguaCoach", validation_alias="OPENROUTER_TITLE")
	ai_timeout_seconds: float = Field(default=60.0, validation_alias="AI_TIMEOUT_SECONDS")
	ai_max_retries: int = Field(default=2, validation_alias="AI_MAX_RETRIES")
	ai_retry_base_seconds: float = Field(default=1.0, validation_alias="AI_RETRY_BASE_SECONDS")

	# Auth configuration
	jwt_secret_key: str = Field(default="change-me", validation_alias="JWT_SECRET_KEY")
	jwt_algorithm: str = Field(default="HS256", validation_alias="JWT_ALGORITHM")
	access_token_expire_minutes: int = Field(default=7 * 24 * 60, validation_alias="ACCESS_TOKEN_EXPIRE_MINUTES")
	reset_token_expire_minutes: int = Field(default=60, validation_alias="RESET_TOKEN_EXPIRE_MINUTES")

	# Google sign-in
	google_client_id: str | None = Field(default=None, validation_alias="GOOGLE_CLIENT_ID")
	google_client_secret: str | None = Field(default=None, validation_alias="GOOGLE_CLIENT_SECRET")
	google_callback_url: str = Field(default="http://localhost:5000/api/auth/google/callback", validation_alias="GOOGLE_CALLBACK_URL")

	# Browser origins
	client_url: str = Field(default="http://localhost:5173", validation_alias="CLIENT_URL")
	allowed_origins: str = Field(default="http://localhost:3000", validation_alias="ALLOWED_ORIGINS")

	# Daily AI request allowance per user
	daily_quota_limit: int = Field(default=100, validation_alias="DAILY_QUOTA_LIMIT")

	# Database
	database_url: str | None = Field(default=None, validation_alias="DATABASE_URL")
	db_connect_retries: int = Field(default=5, validation_alias="DB_CONNECT_RETRIES")
	db_connect_retry_seconds: float = Field(default=1.0, validation_alias="DB_CONNECT_RETRY_SECONDS")

	# pydantic-settings v2 style config
	model_config = SettingsConfigDict(env_file=".env", extra="ignore")

	@property
	def is_development(self) -> bool:
		return self.environment.strip().lower() == "development"

	@property
	def is_production(self) -> bool:
		return self.environment.strip().lower() == "production"

	@property
	def llm_api_key(self) -> str | None:
		return self.openrouter_api_key or self.gemini_api_key

	@property
	def cors_origins(self) -> list[str]:
		extra = [o.strip() for o in self.allowed_origins.split(",") if o.strip()]
		return [self.client_url, *[o for o in extra if o != self.client_url]]

settings = Settings()
