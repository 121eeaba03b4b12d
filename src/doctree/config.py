"""Configuration module for doctree.

Loads configuration from environment variables with sensible defaults.
"""

import os
from dataclasses import dataclass
from pathlib import Path


@dataclass
class Config:
    """Application configuration."""

    data_dir: Path
    index_db: Path
    port: int
    auth_token: str | None
    read_only: bool
    workers: int

    @classmethod
    def from_env(cls, read_only_override: bool | None = None) -> "Config":
        """Load configuration from environment variables.

        Args:
            read_only_override: If provided, overrides the DOCTREE_READ_ONLY env var.
        """
        default_dir = str(Path.home() / ".doctree")
        data_dir = Path(os.getenv("DOCTREE_DATA_DIR", default_dir)).expanduser()

        default_db = str(data_dir / "index.db")
        index_db = Path(os.getenv("DOCTREE_DB", default_db)).expanduser()

        port_str = os.getenv("DOCTREE_PORT", "3333")
        try:
            port = int(port_str)
            if not 1 <= port <= 65535:
                raise ValueError(f"Port must be between 1 and 65535, got {port}")
        except ValueError as e:
            raise ValueError(f"Invalid DOCTREE_PORT value '{port_str}': {e}") from e

        # Auth token - must be at least 32 bytes if set
        auth_token = os.getenv("DOCTREE_AUTH_TOKEN")
        if auth_token is not None:
            if len(auth_token) < 32:
                raise ValueError(
                    "DOCTREE_AUTH_TOKEN must be at least 32 characters for security"
                )

        # Read-only mode - CLI flag takes precedence over env var
        if read_only_override is not None:
            read_only = read_only_override
        else:
            read_only = os.getenv("DOCTREE_READ_ONLY", "").lower() in ("1", "true", "yes")

        workers_str = os.getenv("DOCTREE_WORKERS", "4")
        try:
            workers = int(workers_str)
            if workers < 1:
                raise ValueError(f"Workers must be >= 1, got {workers}")
        except ValueError as e:
            raise ValueError(f"Invalid DOCTREE_WORKERS value '{workers_str}': {e}") from e

        return cls(
            data_dir=data_dir,
            index_db=index_db,
            port=port,
            auth_token=auth_token,
            read_only=read_only,
            workers=workers,
        )
