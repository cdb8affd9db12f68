"""Application configuration via environment variables."""

from pydantic import BaseModel
from pydantic_settings import BaseSettings


class PayPalSettings(BaseModel):
    base_uri: str = "https://api.sandbox.paypal.com"
    client_id: str = ""
    client_secret: str = ""
    brand_name: str = "Paylink"


class StripeSettings(BaseModel):
    base_uri: str = "https://api.stripe.com"
    key: str = ""
    secret: str = ""


class SampleSettings(BaseModel):
    base_uri: str = "https://example.com/payment/"


class ApiToken(BaseModel):
    owner_id: str
    scopes: list[str] = []


class Settings(BaseSettings):
    database_url: str = "sqlite+aiosqlite:///./paylink.db"
    log_level: str = "INFO"
    provider_timeout_seconds: float = 10.0  # Upper bound for a single gateway call
    approval_lease_seconds: float = 120.0  # An approval claim older than this can be taken over
    enabled_providers: list[str] = ["paypal", "stripe", "sample"]

    # {provider} is replaced with the registry name of the adapter
    return_url: str = "http://localhost:8000/payments/{provider}/approval"
    cancel_url: str = "http://localhost:8000/payments/{provider}/cancelled"

    # Bearer token -> owner and scopes. Empty disables authentication.
    api_tokens: dict[str, ApiToken] = {}

    paypal: PayPalSettings = PayPalSettings()
    stripe: StripeSettings = StripeSettings()
    sample: SampleSettings = SampleSettings()

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "env_nested_delimiter": "__",
    }


settings = Settings()
