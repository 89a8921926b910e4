"""
Server Configuration Management for the model repository server.

Handles server configuration creation, validation, environment variable
overrides, and persistence of the repository definitions the server manages.
"""

import json
import logging
import os
from dataclasses import dataclass, asdict, field
from pathlib import Path
from typing import List, Optional

from ..logging_utils import format_error_log, get_log_extra

VALID_LOG_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}


@dataclass
class GitTimeoutsConfig:
    """
    Git operation timeouts configuration.

    Local commands (status, checkout, commit) use git_local_timeout; commands
    that talk to a remote (push, pull, clone) use git_remote_timeout.
    """

    git_local_timeout: int = 30
    git_remote_timeout: int = 300


@dataclass
class RepositoryConfig:
    """One managed repository as stored in the configuration file."""

    name: str
    project_code: str
    path: str
    type: str = "git"
    remote_url: Optional[str] = None
    username: Optional[str] = None
    password: Optional[str] = None
    token: Optional[str] = None
    main_branch: str = "main"
    default_commit_user: str = "Business Modeler Admin"


@dataclass
class ServerConfig:
    """Model repository server configuration."""

    server_dir: str
    host: str = "127.0.0.1"
    port: int = 8090
    log_level: str = "INFO"
    lock_timeout_seconds: int = 120
    git_timeouts_config: Optional[GitTimeoutsConfig] = None
    repositories: List[RepositoryConfig] = field(default_factory=list)

    def __post_init__(self):
        if self.git_timeouts_config is None:
            self.git_timeouts_config = GitTimeoutsConfig()


class ServerConfigManager:
    """
    Manages model repository server configuration.

    Handles configuration creation, validation, file persistence,
    environment variable overrides, and server directory setup.
    """

    def __init__(self, server_dir_path: Optional[str] = None):
        """
        Initialize server configuration manager.

        Args:
            server_dir_path: Path to server directory (defaults to MODEL_REPO_SERVER_DIR env var or ~/.model-repo-server)
        """
        if server_dir_path:
            self.server_dir = Path(server_dir_path)
        else:
            default_dir = os.environ.get(
                "MODEL_REPO_SERVER_DIR", str(Path.home() / ".model-repo-server")
            )
            self.server_dir = Path(default_dir)

        self.config_file_path = self.server_dir / "config.json"

    def create_default_config(self) -> ServerConfig:
        """
        Create default server configuration.

        Returns:
            ServerConfig with default values and no repositories
        """
        return ServerConfig(server_dir=str(self.server_dir))

    def save_config(self, config: ServerConfig) -> None:
        """
        Save configuration to file.

        Args:
            config: ServerConfig object to save
        """
        self.server_dir.mkdir(parents=True, exist_ok=True)

        config_dict = asdict(config)

        with open(self.config_file_path, "w") as f:
            json.dump(config_dict, f, indent=2)

    def load_config(self) -> Optional[ServerConfig]:
        """
        Load configuration from file.

        Returns:
            ServerConfig if file exists and is valid, None otherwise

        Raises:
            ValueError: If configuration file is malformed
        """
        if not self.config_file_path.exists():
            return None

        try:
            with open(self.config_file_path, "r") as f:
                config_dict = json.load(f)

            if not isinstance(config_dict, dict):
                raise ValueError("top-level value must be an object")

            # Ensure server_dir is set if missing from file
            if "server_dir" not in config_dict:
                config_dict["server_dir"] = str(self.server_dir)

            # Convert nested git_timeouts_config dict to GitTimeoutsConfig
            if "git_timeouts_config" in config_dict and isinstance(
                config_dict["git_timeouts_config"], dict
            ):
                config_dict["git_timeouts_config"] = GitTimeoutsConfig(
                    **config_dict["git_timeouts_config"]
                )

            # Convert repository dicts to RepositoryConfig
            repositories = config_dict.get("repositories") or []
            if not isinstance(repositories, list):
                raise ValueError("'repositories' must be a list")
            config_dict["repositories"] = [
                RepositoryConfig(**repo) if isinstance(repo, dict) else repo
                for repo in repositories
            ]

            return ServerConfig(**config_dict)

        except (json.JSONDecodeError, TypeError, ValueError) as e:
            raise ValueError(
                f"Failed to parse configuration file {self.config_file_path}: {e}"
            ) from e

    def apply_env_overrides(self, config: ServerConfig) -> ServerConfig:
        """
        Apply environment variable overrides to configuration.

        Supported environment variables:
        - MODEL_REPO_SERVER_HOST: Override host setting
        - MODEL_REPO_SERVER_PORT: Override port setting
        - MODEL_REPO_LOG_LEVEL: Override log level
        - MODEL_REPO_LOCK_TIMEOUT_SECONDS: Override repository lock timeout

        Args:
            config: Base configuration to apply overrides to

        Returns:
            Updated configuration with environment overrides
        """
        if host_env := os.environ.get("MODEL_REPO_SERVER_HOST"):
            config.host = host_env

        if port_env := os.environ.get("MODEL_REPO_SERVER_PORT"):
            try:
                config.port = int(port_env)
            except ValueError:
                logging.warning(
                    format_error_log(
                        "REPO-CONFIG-001",
                        f"Invalid MODEL_REPO_SERVER_PORT environment variable value '{port_env}'. Using default port {config.port}",
                    ),
                    extra=get_log_extra("REPO-CONFIG-001"),
                )

        if log_level_env := os.environ.get("MODEL_REPO_LOG_LEVEL"):
            config.log_level = log_level_env.upper()

        if lock_timeout_env := os.environ.get("MODEL_REPO_LOCK_TIMEOUT_SECONDS"):
            try:
                config.lock_timeout_seconds = int(lock_timeout_env)
            except ValueError:
                logging.warning(
                    format_error_log(
                        "REPO-CONFIG-001",
                        f"Invalid MODEL_REPO_LOCK_TIMEOUT_SECONDS environment variable value '{lock_timeout_env}'. Using default {config.lock_timeout_seconds} seconds",
                    ),
                    extra=get_log_extra("REPO-CONFIG-001"),
                )

        return config

    def validate_config(self, config: ServerConfig) -> None:
        """
        Validate configuration settings.

        Args:
            config: Configuration to validate

        Raises:
            ValueError: If configuration is invalid
        """
        if not (1 <= config.port <= 65535):
            raise ValueError(f"Port must be between 1 and 65535, got {config.port}")

        if config.log_level.upper() not in VALID_LOG_LEVELS:
            raise ValueError(
                f"Log level must be one of {sorted(VALID_LOG_LEVELS)}, got {config.log_level}"
            )

        if config.lock_timeout_seconds <= 0:
            raise ValueError(
                f"lock_timeout_seconds must be positive, got {config.lock_timeout_seconds}"
            )

        timeouts = config.git_timeouts_config
        assert timeouts is not None  # Guaranteed by __post_init__
        if timeouts.git_local_timeout <= 0 or timeouts.git_remote_timeout <= 0:
            raise ValueError("Git timeouts must be positive")

        seen = set()
        for repo in config.repositories:
            if not repo.name or not repo.name.strip():
                raise ValueError("Repository name must not be blank")
            if not repo.project_code or not repo.project_code.strip():
                raise ValueError(f"Repository '{repo.name}' has a blank project_code")
            if not repo.path or not repo.path.strip():
                raise ValueError(f"Repository '{repo.name}' has a blank path")
            if not repo.main_branch or not repo.main_branch.strip():
                raise ValueError(f"Repository '{repo.name}' has a blank main_branch")

            key = (repo.project_code.lower(), repo.name.lower())
            if key in seen:
                raise ValueError(
                    f"Duplicate repository '{repo.project_code}/{repo.name}'"
                )
            seen.add(key)

    def load_or_default(self) -> ServerConfig:
        """
        Load the config file (or defaults), apply env overrides and validate.

        Raises:
            ValueError: If the resulting configuration is invalid
        """
        config = self.load_config()
        if config is None:
            config = self.create_default_config()
        config = self.apply_env_overrides(config)
        self.validate_config(config)
        return config
