import pytest

from migration.errors import CatalogResolutionError
from migration.models import SharedCatalogData
from migration.resolver import CatalogResolver


class FakeCatalog:
    def __init__(self, existing=None, fail_insert=False, fail_lookup=False):
        self.rows = dict(existing or {})
        self.fail_insert = fail_insert
        self.fail_lookup = fail_lookup
        self.lookups = []
        self.inserted = []

    def find_catalog_id_by_title(self, title):
        self.lookups.append(title)
        if self.fail_lookup:
            raise ConnectionError("store unreachable")
        key = " ".join(title.lower().split())
        for game_id, existing_title in self.rows.items():
            if " ".join(existing_title.lower().split()) == key:
                return game_id
        return None

    def insert_catalog_entry(self, data):
        if self.fail_insert:
            raise CatalogResolutionError(f'Failed to create shared game "{data.title}": boom')
        game_id = f"game-{len(self.rows) + 1}"
        self.rows[game_id] = data.title
        self.inserted.append(data)
        return game_id


def test_resolve_or_create_inserts_new_title():
    store = FakeCatalog()
    resolver = CatalogResolver(store)

    game_id, is_new = resolver.resolve_or_create(SharedCatalogData(title="Catan", year=1995))

    assert (game_id, is_new) == ("game-1", True)
    assert store.inserted[0].year == 1995


def test_resolve_or_create_uses_cache_for_equivalent_titles():
    store = FakeCatalog()
    resolver = CatalogResolver(store)

    first = resolver.resolve_or_create(SharedCatalogData(title="Catan"))
    second = resolver.resolve_or_create(SharedCatalogData(title="  CATAN "))

    assert first == ("game-1", True)
    assert second == ("game-1", False)
    assert store.lookups == ["Catan"]
    assert len(store.inserted) == 1


def test_resolve_or_create_reuses_rows_from_earlier_runs():
    store = FakeCatalog(existing={"existing-id": "Azul"})
    resolver = CatalogResolver(store)

    assert resolver.resolve_or_create(SharedCatalogData(title="azul")) == ("existing-id", False)
    assert store.inserted == []


def test_resolve_or_create_propagates_insert_failure_without_caching():
    store = FakeCatalog(fail_insert=True)
    resolver = CatalogResolver(store)

    with pytest.raises(CatalogResolutionError, match="Catan"):
        resolver.resolve_or_create(SharedCatalogData(title="Catan"))

    store.fail_insert = False
    assert resolver.resolve_or_create(SharedCatalogData(title="Catan")) == ("game-1", True)


def test_resolve_or_create_wraps_unexpected_lookup_errors():
    resolver = CatalogResolver(FakeCatalog(fail_lookup=True))

    with pytest.raises(CatalogResolutionError, match="store unreachable"):
        resolver.resolve_or_create(SharedCatalogData(title="Catan"))
