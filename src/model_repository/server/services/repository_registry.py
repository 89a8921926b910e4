"""
Repository registry - lookup of managed repositories by project code and name.

Built once at startup from the server configuration and never mutated
afterwards; the app injects it into request handlers.
"""

import logging
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Iterable, Mapping, Optional, Tuple

from model_repository.git import Credentials
from model_repository.server.utils.config_manager import RepositoryConfig

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RepositoryDescriptor:
    """Static description of one managed repository."""

    name: str
    project_code: str
    path: str
    type: str = "git"
    remote_url: Optional[str] = None
    username: Optional[str] = None
    password: Optional[str] = field(default=None, repr=False)
    token: Optional[str] = field(default=None, repr=False)
    main_branch: str = "main"
    default_commit_user: str = "Business Modeler Admin"

    @classmethod
    def from_config(cls, config: RepositoryConfig) -> "RepositoryDescriptor":
        return cls(
            name=config.name,
            project_code=config.project_code,
            path=config.path,
            type=config.type,
            remote_url=config.remote_url,
            username=config.username,
            password=config.password,
            token=config.token,
            main_branch=config.main_branch,
            default_commit_user=config.default_commit_user,
        )

    def credentials(self) -> Optional[Credentials]:
        """
        Credentials for pushing to the remote.

        A username/password pair wins; a bare token authenticates as
        "oauth2" (accepted by GitLab, ignored by GitHub). No secret means
        an anonymous push.
        """
        if self.username and self.password:
            return Credentials(username=self.username, password=self.password)
        if self.token:
            return Credentials(username=self.username or "oauth2", password=self.token)
        return None


class RepositoryRegistry:
    """
    Immutable, case-insensitive (project_code, name) -> descriptor map.
    """

    def __init__(self, descriptors: Iterable[RepositoryDescriptor] = ()):
        entries = {}
        for descriptor in descriptors:
            key = self._key(descriptor.project_code, descriptor.name)
            if key in entries:
                raise ValueError(
                    f"Duplicate repository '{descriptor.project_code}/{descriptor.name}'"
                )
            entries[key] = descriptor

        self._entries: Mapping[Tuple[str, str], RepositoryDescriptor] = MappingProxyType(entries)
        self._ordered: Tuple[RepositoryDescriptor, ...] = tuple(entries.values())

    @classmethod
    def from_configs(cls, configs: Iterable[RepositoryConfig]) -> "RepositoryRegistry":
        registry = cls(RepositoryDescriptor.from_config(c) for c in configs)
        logger.info(f"Repository registry built with {len(registry)} repositories")
        return registry

    def find(self, project_code: Optional[str], name: Optional[str]) -> Optional[RepositoryDescriptor]:
        """
        Look up a repository by project code and name.

        Returns:
            Matching descriptor, or None when absent or either key is None
        """
        if project_code is None or name is None:
            return None
        return self._entries.get(self._key(project_code, name))

    def find_by_name(self, name: Optional[str]) -> Optional[RepositoryDescriptor]:
        """First repository with the given name in any project, or None."""
        if name is None:
            return None
        for descriptor in self._ordered:
            if descriptor.name.lower() == name.lower():
                return descriptor
        return None

    def descriptors(self) -> Tuple[RepositoryDescriptor, ...]:
        return self._ordered

    def __len__(self) -> int:
        return len(self._ordered)

    @staticmethod
    def _key(project_code: str, name: str) -> Tuple[str, str]:
        return project_code.lower(), name.lower()
