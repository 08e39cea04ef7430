"""
Configuration management for provisioner-ipxe.

Loads configuration from environment variables with validation.
Read once at startup and treated as immutable afterwards.
"""

from dataclasses import dataclass
from pathlib import Path
from typing import Optional
from decouple import config


@dataclass(slots=True)
class ProvisionerConfig:
    """Provisioner configuration."""

    # Boot server identity
    server_ip: str

    # Filesystem layout
    state_file: str
    config_dir: str
    session_dir: str
    default_template: str = "default"

    # Install media
    iso_base_url: Optional[str] = None
    iso_name: str = "ubuntu-24.04.2-live-server-amd64.iso"
    kernel_extra_params: str = "modprobe.blacklist=nvme"

    # Seed sessions
    seed_base_url: Optional[str] = None
    mac_placeholder: str = "__MAC_ADDRESS__"
    strict_artifacts: bool = False

    # State store
    lock_timeout: float = 10.0  # seconds

    # HTTP server
    http_host: str = "0.0.0.0"
    http_port: int = 8080
    serve_sessions: bool = False

    # Logging
    log_level: str = "INFO"

    # Metrics
    metrics_enabled: bool = True
    metrics_port: int = 9090

    @classmethod
    def from_env(cls) -> "ProvisionerConfig":
        """Load configuration from environment variables."""

        server_ip = config("SERVER_IP", default="10.10.1.1")

        # Filesystem layout
        state_file = config("STATE_FILE", default="/srv/http/state.json")
        config_dir = config("CONFIG_DIR", default="/srv/http/autoinstall_configs")
        session_dir = config("SESSION_DIR", default="/srv/http/sessions")
        default_template = config("DEFAULT_TEMPLATE", default="default")
        if not default_template or "/" in default_template:
            raise ValueError(f"Invalid DEFAULT_TEMPLATE: {default_template!r}")

        # Install media
        iso_base_url = config("ISO_BASE_URL", default=None)
        iso_name = config("ISO_NAME", default="ubuntu-24.04.2-live-server-amd64.iso")
        kernel_extra_params = config("KERNEL_EXTRA_PARAMS", default="modprobe.blacklist=nvme")

        # Seed sessions
        seed_base_url = config("SEED_BASE_URL", default=None)
        mac_placeholder = config("MAC_PLACEHOLDER", default="__MAC_ADDRESS__")
        if not mac_placeholder:
            raise ValueError("MAC_PLACEHOLDER must not be empty.")
        strict_artifacts = config("STRICT_ARTIFACTS", default=False, cast=bool)

        lock_timeout = config("LOCK_TIMEOUT", default=10.0, cast=float)
        if lock_timeout <= 0:
            raise ValueError(f"Invalid LOCK_TIMEOUT: {lock_timeout}. Must be positive.")

        # HTTP server
        http_host = config("HTTP_HOST", default="0.0.0.0")
        http_port = config("HTTP_PORT", default=8080, cast=int)
        serve_sessions = config("SERVE_SESSIONS", default=False, cast=bool)

        # Logging
        log_level = config("LOG_LEVEL", default="INFO")

        # Metrics
        metrics_enabled = config("METRICS_ENABLED", default=True, cast=bool)
        metrics_port = config("METRICS_PORT", default=9090, cast=int)

        return cls(
            server_ip=server_ip,
            state_file=state_file,
            config_dir=config_dir,
            session_dir=session_dir,
            default_template=default_template,
            iso_base_url=iso_base_url,
            iso_name=iso_name,
            kernel_extra_params=kernel_extra_params,
            seed_base_url=seed_base_url,
            mac_placeholder=mac_placeholder,
            strict_artifacts=strict_artifacts,
            lock_timeout=lock_timeout,
            http_host=http_host,
            http_port=http_port,
            serve_sessions=serve_sessions,
            log_level=log_level,
            metrics_enabled=metrics_enabled,
            metrics_port=metrics_port,
        )

    def get_iso_base_url(self) -> str:
        """Get the base URL of the extracted install media."""
        if self.iso_base_url:
            return self.iso_base_url.rstrip("/")
        return f"http://{self.server_ip}/provisioning/ubuntu24.04"

    def get_seed_base_url(self) -> str:
        """Get the URL prefix under which session directories are served."""
        if self.seed_base_url:
            return self.seed_base_url.rstrip("/")
        if self.serve_sessions:
            return f"http://{self.server_ip}:{self.http_port}/sessions"
        return f"http://{self.server_ip}/sessions"

    @property
    def state_path(self) -> Path:
        return Path(self.state_file)

    @property
    def config_path(self) -> Path:
        return Path(self.config_dir)

    @property
    def session_path(self) -> Path:
        return Path(self.session_dir)
