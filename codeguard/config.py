"""
CodeGuard Configuration — pydantic-settings based.

All settings are read from environment variables or .env file.
The Groq key is optional: without it the pipeline runs Tier 1 only and
skips LLM verification.
"""

from pydantic_settings import BaseSettings
from pydantic import Field


class Settings(BaseSettings):
    """Application-wide settings sourced from environment variables."""

    # ── LLM ──
    groq_api_key: str = Field(default="", description="Groq API key for the LLM gateway")
    codeguard_model: str = Field(
        default="moonshotai/kimi-k2-instruct-0905",
        description="Model identifier for Groq completions",
    )
    llm_timeout: int = Field(default=30, description="LLM request timeout in seconds")
    llm_max_retries: int = Field(default=3, description="Max LLM retry attempts")
    llm_temperature: float = Field(default=0.1, description="Default LLM temperature")
    llm_max_tokens: int = Field(default=2000, description="Default max tokens per completion")

    # ── Tier 2 tagging ──
    tier2_enabled: bool = Field(
        default=True, description="Escalate undecided semantic tags to the LLM"
    )
    tier2_temperature: float = Field(default=0.0, description="Tier 2 temperature (deterministic)")
    tier2_max_tokens: int = Field(default=1000, description="Tier 2 max tokens")
    tier2_max_code_chars: int = Field(
        default=3000, description="Source characters sent in the Tier 2 prompt"
    )

    # ── LLM verification ──
    verification_enabled: bool = Field(
        default=True, description="Ask the LLM to confirm matched rules against the source"
    )
    verification_temperature: float = Field(default=0.1)
    verification_max_tokens: int = Field(default=2000)
    verification_max_code_chars: int = Field(
        default=6000, description="Source characters sent in the verification prompt"
    )

    # ── Definitions / weights ──
    tag_definitions_path: str | None = Field(
        default=None, description="JSON tag definition set; built-in table when unset"
    )
    risk_weights_path: str | None = Field(
        default=None, description="JSON risk weight table; built-in weights when unset"
    )
    priority_weights_path: str | None = Field(
        default=None, description="JSON rule priority table; built-in weights when unset"
    )
    rules_path: str | None = Field(
        default=None, description="JSON rule catalog; built-in default rules when unset"
    )

    # ── Matching ──
    expression_cache_size: int = Field(
        default=1000, description="Max cached tag-expression evaluations"
    )
    match_skip_untagged: bool = Field(default=True)
    match_min_priority: int = Field(default=0)
    match_max_results: int = Field(default=100)

    # ── Input ──
    max_source_bytes: int = Field(
        default=500_000, description="Max Java source size to accept (bytes)"
    )

    # ── Server ──
    port: int = Field(default=5001, description="Server port")
    host: str = Field(default="0.0.0.0", description="Server bind host")
    cors_origins: list[str] = Field(
        default=["*"], description="Allowed CORS origins"
    )

    # ── Audit ──
    audit_log_path: str = Field(
        default="audit.jsonl", description="Path to JSON-lines audit log file"
    )

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "case_sensitive": False,
    }


# Module-level singleton
settings = Settings()
