"""
WebAudit — Configuration via environment variables.
"""

from pydantic_settings import BaseSettings
from pydantic import Field


class Settings(BaseSettings):
    """All settings read from env / .env file."""

    # Database
    database_url: str = Field(
        default="sqlite+aiosqlite:///./webaudit.db",
        description="Async SQLAlchemy DB URL",
    )

    # AI: multi-provider support ("anthropic" or "github-models")
    ai_provider: str = Field(
        default="anthropic",
        description="AI provider: 'anthropic' (Claude) or 'github-models' (OpenAI-compatible)",
    )
    anthropic_api_key: str = Field(default="", description="Anthropic API key for Claude models")
    ai_token: str = Field(default="", description="Bearer token for OpenAI-compatible providers")
    ai_api_url: str = Field(
        default="",
        description="Override AI API URL (auto-set per provider if blank)",
    )
    ai_model: str = Field(default="")
    ai_timeout_secs: int = Field(default=60, description="Per-request timeout for model calls")

    @property
    def ai_effective_url(self) -> str:
        """Resolve API URL based on provider."""
        if self.ai_api_url:
            return self.ai_api_url
        if self.ai_provider == "anthropic":
            return "https://api.anthropic.com/v1/messages"
        return "https://models.inference.ai.azure.com/chat/completions"

    @property
    def ai_effective_model(self) -> str:
        """Resolve model name based on provider."""
        if self.ai_model:
            return self.ai_model
        if self.ai_provider == "anthropic":
            return "claude-sonnet-4-20250514"
        return "gpt-4o"

    @property
    def ai_auth_token(self) -> str:
        """Token for AI API calls — provider-specific."""
        if self.ai_provider == "anthropic":
            return self.anthropic_api_key
        return self.ai_token

    # Rate-limit retry
    ai_max_retries: int = Field(default=3)
    ai_retry_base_delay_secs: float = Field(default=2.0)

    # Generation budgets (max output tokens per call site)
    category_max_tokens: int = Field(default=1500)
    brief_max_tokens: int = Field(default=500)
    summary_max_tokens: int = Field(default=300)

    # Pricing, USD per million tokens
    input_token_price: float = Field(default=3.0)
    output_token_price: float = Field(default=15.0)

    # Orchestration
    scrape_timeout_secs: float = Field(default=60.0, description="Hard deadline for the full scrape")
    probe_timeout_secs: float = Field(default=5.0, description="Quick reachability probe timeout")
    analysis_batch_size: int = Field(default=3, description="Concurrent category analyses per batch")
    analysis_batch_delay_secs: float = Field(default=0.3, description="Pause between batches")

    # Streaming
    stream_first_event_timeout_secs: float = Field(default=15.0)
    stream_run_timeout_secs: float = Field(default=300.0)
    stream_cancel_on_disconnect: bool = Field(
        default=False,
        description="Cancel the run when the client disconnects (default: finish for persistence)",
    )

    # Entitlement
    entitlement_fail_open: bool = Field(
        default=True,
        description="Continue without enforcement when the usage lookup itself errors",
    )
    admin_token: str = Field(
        default="", description="If set, admin=true requires a matching X-Admin-Token header"
    )
    upgrade_url: str = Field(default="/pricing")

    # PageSpeed Insights (optional, no-op without a key)
    pagespeed_api_key: str = Field(default="", description="Google PageSpeed Insights API key")
    pagespeed_timeout_secs: int = Field(default=30)

    # Collectors
    scraper_user_agent: str = Field(
        default=(
            "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
            "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
        )
    )
    scraper_timeout_secs: int = Field(default=30)
    max_page_bytes: int = Field(default=2_000_000)

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8", "extra": "ignore"}


settings = Settings()
