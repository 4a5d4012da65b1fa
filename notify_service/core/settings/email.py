"""Email channel settings.

Environment variables use EMAIL_ prefix.
Example: EMAIL_PROVIDER=resend, EMAIL_RESEND_API_KEY=re_xxx
"""

from __future__ import annotations

from typing import Literal

from pydantic import EmailStr, Field, SecretStr, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class EmailSettings(BaseSettings):
    """Email provider configuration.

    Supports multiple backends:
    - resend: Resend HTTP API
    - smtp: Standard SMTP/SMTPS delivery
    - console: Log emails to console (development)
    - none: Email channel disabled
    """

    provider: Literal["resend", "smtp", "console", "none"] = Field(
        default="none",
        description="Email backend: resend, smtp, console (dev) or none (disabled)",
    )

    # Sender Configuration
    from_address: EmailStr | None = Field(
        default="noreply@example.com",
        description="Default sender address used when a payload has none",
    )
    from_name: str | None = Field(default=None, max_length=255)

    # Resend
    resend_api_key: SecretStr | None = Field(default=None)
    resend_api_url: str = Field(default="https://api.resend.com")

    # SMTP Configuration
    smtp_host: str | None = Field(default=None, max_length=255)
    smtp_port: int = Field(
        default=587,
        ge=1,
        le=65535,
        description="SMTP server port (587 for STARTTLS, 465 for SSL, 25 for plain)",
    )
    smtp_username: str | None = Field(default=None, max_length=255)
    smtp_password: SecretStr | None = Field(default=None)
    use_tls: bool = Field(
        default=False,
        description="Use implicit SSL/TLS (port 465). Mutually exclusive with start_tls",
    )
    start_tls: bool = Field(default=True, description="Upgrade with STARTTLS (port 587)")

    timeout: float = Field(default=30.0, ge=1.0, le=300.0)

    model_config = SettingsConfigDict(
        env_prefix="EMAIL_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        frozen=True,
        extra="ignore",
        env_ignore_empty=True,
    )

    @model_validator(mode="after")
    def validate_tls_exclusive(self) -> EmailSettings:
        """Ensure implicit TLS and STARTTLS are mutually exclusive."""
        if self.use_tls and self.start_tls:
            msg = "use_tls and start_tls are mutually exclusive"
            raise ValueError(msg)
        return self

    @model_validator(mode="after")
    def validate_smtp_auth(self) -> EmailSettings:
        """Require username and password together."""
        if (self.smtp_username is None) != (self.smtp_password is None):
            msg = "Both smtp_username and smtp_password must be provided together"
            raise ValueError(msg)
        return self

    @property
    def is_configured(self) -> bool:
        """Check if the selected backend has the credentials it needs."""
        if self.provider == "resend":
            return self.resend_api_key is not None
        if self.provider == "smtp":
            return bool(self.smtp_host)
        return self.provider == "console"

    @property
    def requires_auth(self) -> bool:
        """Check if SMTP authentication is configured."""
        return self.smtp_username is not None and self.smtp_password is not None
