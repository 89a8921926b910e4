"""
FastAPI application factory for the model repository server.

create_app() wires the configuration, the repository registry, the lock
manager and the repository manager into app.state, where the routers
pick them up through their dependency getters.
"""

import logging
from typing import Dict, Optional

from fastapi import FastAPI

from model_repository import __version__
from model_repository.server.logging_utils import configure_logging
from model_repository.server.middleware import CorrelationIdMiddleware
from model_repository.server.routers.repository_management import router as repository_management_router
from model_repository.server.services.repository_lock_manager import RepositoryLockManager
from model_repository.server.services.repository_manager import RepositoryManager
from model_repository.server.services.repository_registry import RepositoryRegistry
from model_repository.server.utils.config_manager import ServerConfig, ServerConfigManager

logger = logging.getLogger(__name__)


def create_app(
    config: Optional[ServerConfig] = None,
    registry: Optional[RepositoryRegistry] = None,
) -> FastAPI:
    """
    Build the FastAPI application.

    Args:
        config: Server configuration; loaded from MODEL_REPO_SERVER_DIR when None
        registry: Repository registry; built from config.repositories when None

    Returns:
        Configured FastAPI application
    """
    if config is None:
        config = ServerConfigManager().load_or_default()

    configure_logging(config.log_level)

    if registry is None:
        registry = RepositoryRegistry.from_configs(config.repositories)

    timeouts = config.git_timeouts_config
    assert timeouts is not None  # Guaranteed by ServerConfig.__post_init__

    lock_manager = RepositoryLockManager(timeout_seconds=config.lock_timeout_seconds)
    repository_manager = RepositoryManager(
        lock_manager=lock_manager,
        git_local_timeout=timeouts.git_local_timeout,
        git_remote_timeout=timeouts.git_remote_timeout,
    )

    app = FastAPI(
        title="Model Repository Server",
        description="File management for server-resident git repositories",
        version=__version__,
    )

    app.state.config = config
    app.state.repository_registry = registry
    app.state.repository_manager = repository_manager

    app.add_middleware(CorrelationIdMiddleware)
    app.include_router(repository_management_router)

    @app.get("/health")
    def health() -> Dict[str, object]:
        """Liveness probe with the number of registered repositories."""
        return {
            "status": "ok",
            "version": __version__,
            "repositories": len(app.state.repository_registry),
        }

    logger.info(f"Model repository server initialized with {len(registry)} repositories")
    return app
