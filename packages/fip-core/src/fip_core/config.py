"""
Environment-based configuration for the floating IP controller.

Settings are loaded once at startup and frozen. The reconciler only ever
sees ReconcilerConfig, the immutable subset it needs.

All settings can be overridden via environment variables with the FIP_
prefix, or from a .env file in the working directory. For example:
    FIP_HCLOUD_TOKEN=...
    FIP_FLOATING_IPS=["1234", "203.0.113.7"]
    FIP_REDIS_URL=redis://redis:6379/0
"""

import socket
from dataclasses import dataclass

from pydantic import Field, SecretStr, ValidationError, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from fip_core.retry import RetryConfig
from fip_protocols import ConfigurationError


class Settings(BaseSettings):
    """Floating IP controller configuration."""

    # Hetzner Cloud API
    hcloud_token: SecretStr | None = None
    hcloud_endpoint: str = "https://api.hetzner.cloud/v1"

    # Floating IPs to reconcile: provider ids or IP addresses
    floating_ips: list[str] = Field(default_factory=list)

    # Replica identity for leader election
    identity: str = Field(default_factory=socket.gethostname)

    # Loop cadence
    poll_interval_seconds: float = Field(default=15.0, gt=0)
    debounce_seconds: float = Field(default=2.0, ge=0)
    call_timeout_seconds: float = Field(default=10.0, gt=0)

    # Leader lease
    lease_name: str = "fip-controller"
    lease_duration_seconds: float = Field(default=15.0, gt=0)
    lease_renew_interval_seconds: float | None = None
    redis_url: str | None = None

    # Retry budget for cloud calls
    retry_max_attempts: int = Field(default=5, ge=0)
    retry_min_wait_seconds: float = Field(default=1.0, gt=0)
    retry_max_wait_seconds: float = Field(default=30.0, gt=0)
    retry_jitter_fraction: float = Field(default=0.1, ge=0, le=1)

    # Cluster state source
    watch: bool = True
    max_staleness_seconds: float = Field(default=120.0, gt=0)
    exclude_label: str = "fip-controller.io/exclude"
    node_selector: dict[str, str] = Field(default_factory=dict)

    # Ambient
    metrics_port: int | None = None

    model_config = SettingsConfigDict(
        env_prefix="FIP_",
        env_file=".env",
        extra="ignore",
        frozen=True,
    )

    @model_validator(mode="after")
    def _check_lease_timing(self) -> "Settings":
        renew = self.renew_interval
        if renew >= self.lease_duration_seconds:
            raise ValueError(
                f"lease_renew_interval_seconds ({renew}) must be smaller than "
                f"lease_duration_seconds ({self.lease_duration_seconds})"
            )
        if self.retry_min_wait_seconds > self.retry_max_wait_seconds:
            raise ValueError("retry_min_wait_seconds must not exceed retry_max_wait_seconds")
        return self

    @property
    def renew_interval(self) -> float:
        """Lease renewal interval, one third of the lease by default."""
        if self.lease_renew_interval_seconds is not None:
            return self.lease_renew_interval_seconds
        return self.lease_duration_seconds / 3

    def retry_config(self) -> RetryConfig:
        """Build the RetryConfig for cloud calls."""
        return RetryConfig(
            max_attempts=self.retry_max_attempts,
            min_wait_seconds=self.retry_min_wait_seconds,
            max_wait_seconds=self.retry_max_wait_seconds,
            jitter_fraction=self.retry_jitter_fraction,
        )

    def reconciler_config(self) -> "ReconcilerConfig":
        """Build the immutable config handed to the Reconciler."""
        return ReconcilerConfig(
            floating_ips=tuple(self.floating_ips),
            poll_interval_seconds=self.poll_interval_seconds,
            debounce_seconds=self.debounce_seconds,
            call_timeout_seconds=self.call_timeout_seconds,
            retry=self.retry_config(),
        )


@dataclass(frozen=True)
class ReconcilerConfig:
    """
    Immutable configuration for the Reconciler.

    Attributes:
        floating_ips: Provider ids of the floating IPs to reconcile
        poll_interval_seconds: Seconds between regular cycles
        debounce_seconds: Quiet period before a watch-triggered cycle
        call_timeout_seconds: Deadline for every external call
        retry: Backoff policy for retryable cloud errors
    """

    floating_ips: tuple[str, ...]
    poll_interval_seconds: float = 15.0
    debounce_seconds: float = 2.0
    call_timeout_seconds: float = 10.0
    retry: RetryConfig = RetryConfig()


def load_settings(**overrides) -> Settings:
    """
    Load settings from the environment, applying explicit overrides.

    Raises:
        ConfigurationError: If the settings are invalid or incomplete.
    """
    try:
        settings = Settings(**{k: v for k, v in overrides.items() if v is not None})
    except ValidationError as e:
        raise ConfigurationError(f"Invalid configuration: {e}") from e

    if not settings.floating_ips:
        raise ConfigurationError("No floating IPs configured (set FIP_FLOATING_IPS)")
    return settings
