"""
Repository providers: where the list of modules to check comes from.
"""

from typing import Any, Dict, List, Mapping

from .interfaces import RepositoryProvider, RepositoryRef


class StaticRepositoryProvider(RepositoryProvider):
    """Provider over an in-memory mapping of module name to 'owner/repo'."""

    def __init__(self, repositories: Mapping[str, str]):
        # Insertion order of the mapping is the iteration order
        self._refs = [
            RepositoryRef(module_name=name, repository_id=repo)
            for name, repo in repositories.items()
        ]

    def get_all(self) -> List[RepositoryRef]:
        return list(self._refs)


class ConfigRepositoryProvider(StaticRepositoryProvider):
    """
    Provider reading the REPOSITORIES mapping from the loaded configuration.

    Entries keep the order they have in the YAML file.
    """

    def __init__(self, config: Dict[str, Any]):
        super().__init__(config.get("REPOSITORIES") or {})
