"""DIDConfig — explicit configuration passed to every service operation.

Nothing in the library reads process-wide state. The CLI builds one
:class:`DIDConfig` from its flags and environment, then hands it down.

Environment variables read by :meth:`DIDConfig.from_env`
------------------------------------------------------
``WEB3_RPC_URL``
    Chain JSON-RPC endpoint.
``WEB3_DID_REGISTRY``
    Address of the DID registry contract.
``WEB3_IPFS_URL``
    Base URL of the IPFS HTTP API.
"""
from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, replace

from did_anchor.errors import ValidationError

DEFAULT_IPFS_API_URL = "https://ipfs.infura.io:5001"

MIN_CONFIRMATION_TIMEOUT = 10.0
MAX_CONFIRMATION_TIMEOUT = 60.0

_OUTPUT_FORMATS = frozenset({"text", "json"})


@dataclass(frozen=True)
class DIDConfig:
    """Connection and presentation settings for did-anchor.

    Parameters
    ----------
    rpc_url:
        JSON-RPC endpoint of the chain hosting the registry.
    registry_address:
        Hex address of the DID registry contract.
    ipfs_api_url:
        Base URL of the IPFS HTTP API (``/api/v0`` is appended).
    confirmation_timeout:
        Seconds to wait for a registration receipt. Must lie within
        10 to 60 seconds.
    poll_interval:
        Seconds between receipt polls.
    request_timeout:
        Upper bound in seconds for a single RPC or HTTP request.
    output_format:
        ``"text"`` for human-readable output, ``"json"`` for machine output.
    verbose:
        Enable debug logging at the CLI boundary.
    """

    rpc_url: str = ""
    registry_address: str = ""
    ipfs_api_url: str = DEFAULT_IPFS_API_URL
    confirmation_timeout: float = MIN_CONFIRMATION_TIMEOUT
    poll_interval: float = 0.5
    request_timeout: float = 30.0
    output_format: str = "text"
    verbose: bool = False

    def __post_init__(self) -> None:
        if not MIN_CONFIRMATION_TIMEOUT <= self.confirmation_timeout <= MAX_CONFIRMATION_TIMEOUT:
            raise ValidationError(
                f"confirmation_timeout must be between {MIN_CONFIRMATION_TIMEOUT:g} and "
                f"{MAX_CONFIRMATION_TIMEOUT:g} seconds, got {self.confirmation_timeout:g}."
            )
        if self.poll_interval <= 0:
            raise ValidationError("poll_interval must be positive.")
        if self.request_timeout <= 0:
            raise ValidationError("request_timeout must be positive.")
        if self.output_format not in _OUTPUT_FORMATS:
            raise ValidationError(
                f"Unsupported output format {self.output_format!r}. "
                f"Allowed: {sorted(_OUTPUT_FORMATS)}"
            )

    @classmethod
    def from_env(cls, environ: Mapping[str, str], **overrides: object) -> "DIDConfig":
        """Build a config from an environment mapping plus explicit overrides.

        Overrides whose value is ``None`` are ignored so CLI options that
        were not given fall back to the environment.
        """
        values: dict[str, object] = {
            "rpc_url": environ.get("WEB3_RPC_URL", ""),
            "registry_address": environ.get("WEB3_DID_REGISTRY", ""),
            "ipfs_api_url": environ.get("WEB3_IPFS_URL", DEFAULT_IPFS_API_URL),
        }
        values.update({key: value for key, value in overrides.items() if value is not None})
        return cls(**values)  # type: ignore[arg-type]

    def with_registry(self, registry_address: str | None) -> "DIDConfig":
        """Return a copy using *registry_address* when one is given."""
        if not registry_address:
            return self
        return replace(self, registry_address=registry_address)

    def require_chain(self) -> None:
        """Raise unless both the RPC URL and registry address are set."""
        if not self.registry_address:
            raise ValidationError("Registry contract address required.")
        if not self.rpc_url:
            raise ValidationError("RPC URL required.")


__all__ = [
    "DEFAULT_IPFS_API_URL",
    "DIDConfig",
    "MAX_CONFIRMATION_TIMEOUT",
    "MIN_CONFIRMATION_TIMEOUT",
]
