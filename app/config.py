from pydantic_settings import BaseSettings
from pydantic import Field
from typing import Optional

class Settings(BaseSettings):
    # Database
    database_url: str = Field(default="postgresql://localhost:5432/gladiatorrx", alias='DATABASE_URL')
    db_user: str = Field(default="postgres", alias='DB_USER')
    db_host: str = Field(default="localhost", alias='DB_HOST')
    db_password: str = Field(default="", alias='DB_PASSWORD')
    db_port: int = Field(default=5432, alias='DB_PORT')
    db_name: str = Field(default="gladiatorrx", alias='DB_NAME')

    # AWS SES (transactional email)
    aws_access_key_id: Optional[str] = Field(default=None, alias='AWS_ACCESS_KEY_ID')
    aws_secret_access_key: Optional[str] = Field(default=None, alias='AWS_SECRET_ACCESS_KEY')
    aws_region: Optional[str] = Field(default="us-east-1", alias='AWS_REGION')
    aws_ses_from_email: Optional[str] = Field(default="onboarding@gladiatorrx.com", alias='AWS_SES_FROM_EMAIL')
    aws_ses_from_name: str = Field(default="GladiatorRX", alias='AWS_SES_FROM_NAME')

    # Stripe - subscription billing
    stripe_secret_key: Optional[str] = Field(default=None, alias='STRIPE_SECRET_KEY')
    stripe_webhook_secret: Optional[str] = Field(default=None, alias='STRIPE_WEBHOOK_SECRET')
    stripe_api_base: str = Field(default="https://api.stripe.com/v1", alias='STRIPE_API_BASE')
    stripe_webhook_tolerance_seconds: int = Field(default=300, alias='STRIPE_WEBHOOK_TOLERANCE')
    stripe_starter_monthly_price_id: Optional[str] = Field(default=None, alias='STRIPE_STARTER_MONTHLY_PRICE_ID')
    stripe_starter_yearly_price_id: Optional[str] = Field(default=None, alias='STRIPE_STARTER_YEARLY_PRICE_ID')
    stripe_professional_monthly_price_id: Optional[str] = Field(default=None, alias='STRIPE_PROFESSIONAL_MONTHLY_PRICE_ID')
    stripe_professional_yearly_price_id: Optional[str] = Field(default=None, alias='STRIPE_PROFESSIONAL_YEARLY_PRICE_ID')
    stripe_enterprise_monthly_price_id: Optional[str] = Field(default=None, alias='STRIPE_ENTERPRISE_MONTHLY_PRICE_ID')
    stripe_enterprise_yearly_price_id: Optional[str] = Field(default=None, alias='STRIPE_ENTERPRISE_YEARLY_PRICE_ID')

    # App settings
    app_env: str = Field(default="development", alias='APP_ENV')
    app_url: str = Field(default="http://localhost:3000", alias='APP_URL')
    session_max_age_days: int = Field(default=30, alias='SESSION_MAX_AGE_DAYS')

    # FastAPI specific
    port: int = Field(default=8000, alias='FASTAPI_PORT')
    host: str = Field(default="0.0.0.0", alias='FASTAPI_HOST')
    debug: bool = Field(default=False, alias='DEBUG')

    # CORS configuration
    cors_origins: str = Field(default="http://localhost:3000", alias='CORS_ORIGINS')

    class Config:
        env_file = ".env"
        extra = "ignore"

    @property
    def db_connection_params(self) -> dict:
        return {
            "host": self.db_host,
            "port": self.db_port,
            "user": self.db_user,
            "password": self.db_password,
            "database": self.db_name,
        }

    @property
    def is_development(self) -> bool:
        return self.app_env == "development"

    def stripe_price_id(self, plan: str, interval: str) -> Optional[str]:
        """Price id configured for a plan/interval pair, e.g. ('STARTER', 'MONTHLY')"""
        return getattr(self, f"stripe_{plan.lower()}_{interval.lower()}_price_id", None)

settings = Settings()
