"""
Tests for repository providers.
"""

import pytest

from ghupgrade.upgrade.interfaces import RepositoryRef
from ghupgrade.upgrade.providers import ConfigRepositoryProvider, StaticRepositoryProvider

pytestmark = [pytest.mark.unit, pytest.mark.configuration]


class TestStaticRepositoryProvider:
    def test_preserves_insertion_order(self):
        provider = StaticRepositoryProvider({"shop": "acme/shop", "blog": "acme/blog"})
        assert provider.get_all() == [
            RepositoryRef("shop", "acme/shop"),
            RepositoryRef("blog", "acme/blog"),
        ]

    def test_returns_copies(self):
        provider = StaticRepositoryProvider({"blog": "acme/blog"})
        provider.get_all().clear()
        assert len(provider.get_all()) == 1


class TestConfigRepositoryProvider:
    def test_reads_repositories(self):
        provider = ConfigRepositoryProvider({"REPOSITORIES": {"blog": "acme/blog"}})
        assert provider.get_all() == [RepositoryRef("blog", "acme/blog")]

    @pytest.mark.parametrize("config", [{}, {"REPOSITORIES": None}])
    def test_missing_repositories(self, config):
        assert ConfigRepositoryProvider(config).get_all() == []
