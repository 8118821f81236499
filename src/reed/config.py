from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    APP_ENV: str = "development"
    SITE_URL: str = "https://usereed.com"
    REDIS_URL: str = "redis://redis:6379/0"
    HTTP_TIMEOUT_SECONDS: float = 15.0

    COINBASE_API_KEY: str = ""
    COINBASE_WEBHOOK_SECRET: str = ""
    COINBASE_API_URL: str = "https://api.commerce.coinbase.com"

    SUPABASE_URL: str = ""
    SUPABASE_SERVICE_KEY: str = ""

    AIRTABLE_API_TOKEN: str = ""
    AIRTABLE_BASE_ID: str = ""
    AIRTABLE_API_URL: str = "https://api.airtable.com/v0"

    SENDGRID_API_KEY: str = ""
    SENDGRID_FROM_EMAIL: str = "noreply@usered.com"
    SENDGRID_API_URL: str = "https://api.sendgrid.com/v3"

    GEMINI_API_KEY: str = ""
    ADMIN_TOKEN: str = ""

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}


settings = Settings()
