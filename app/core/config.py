"""
Application configuration.
All settings are loaded from environment variables (or .env).
Use env.example as a reference for required variables.
"""
from pydantic import field_validator
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    RPC_URL, CONTRACT_ADDRESS and PAY_TO have no usable defaults: the app starts
    without them (with a warning) but /verifyOwnership answers 500 until they are set.
    """

    # ===========================================
    # APPLICATION
    # ===========================================
    app_env: str = "local"
    port: int = 3000
    # Base URL used in the x402 resource descriptor. Empty = https://{Host header}.
    public_url: str = ""
    # CORS: comma-separated origins, "*" = any origin.
    cors_origins: str = "*"

    # ===========================================
    # BLOCKCHAIN (JSON-RPC)
    # ===========================================
    rpc_url: str = ""
    contract_address: str = ""
    rpc_timeout_seconds: float = 10.0

    # ===========================================
    # X402 FACILITATOR
    # ===========================================
    x402_api: str = ""  # e.g. https://x402.dev/api/checkPayment
    x402_api_key: str = ""
    facilitator_timeout_seconds: float = 10.0

    # ===========================================
    # RESOURCE DESCRIPTOR (x402 "accepts" entry)
    # ===========================================
    pay_to: str = ""
    resource_network: str = "base"
    resource_asset: str = "USDC"
    resource_max_amount_required: str = "2"
    resource_max_timeout_seconds: int = 10
    resource_description: str = "Verify ownership of GENGE NFT or payment transaction"
    resource_provider: str = "GENGE"
    resource_category: str = "Verification"

    # ===========================================
    # REPLAY GUARD
    # ===========================================
    # Empty = process-local set (lost on restart, not shared between instances).
    redis_url: str = ""
    # 0 = consumed transaction ids never expire.
    replay_ttl_seconds: int = 0

    # ===========================================
    # CIRCUIT BREAKER
    # ===========================================
    cb_failure_threshold: int = 5
    cb_open_seconds: int = 30

    # ===========================================
    # LOGGING
    # ===========================================
    log_level: str = "INFO"
    request_id_header: str = "X-Request-Id"
    log_file: str | None = None
    log_max_bytes: int = 10_000_000
    log_backup_count: int = 5

    @field_validator("rpc_url", "contract_address", "pay_to", "x402_api", "x402_api_key", "public_url")
    @classmethod
    def strip_value(cls, v: str) -> str:
        return v.strip()

    @field_validator("public_url")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        return v.rstrip("/")

    @field_validator("log_level")
    @classmethod
    def normalize_log_level(cls, v: str) -> str:
        return v.strip().upper() or "INFO"

    @property
    def cors_origins_list(self) -> list[str]:
        """Get CORS origins as a list."""
        return [o.strip() for o in self.cors_origins.split(",") if o.strip()]

    def missing_required(self) -> list[str]:
        """Names of mandatory settings that are not set."""
        required = {
            "RPC_URL": self.rpc_url,
            "CONTRACT_ADDRESS": self.contract_address,
            "PAY_TO": self.pay_to,
        }
        return [name for name, value in required.items() if not value]

    class Config:
        env_file = ".env"
        case_sensitive = False
        extra = "ignore"


settings = Settings()
