"""Tests for the in-memory store repository."""

import pytest

from storecache.domain import Store
from storecache.persistence.repositories import InMemoryStoreRepository, StoreRepository


@pytest.fixture
def repository(store_a: Store, store_b: Store) -> InMemoryStoreRepository:
    return InMemoryStoreRepository([store_a, store_b])


class TestInMemoryStoreRepository:
    """Test repository CRUD behaviour."""

    def test_satisfies_protocol(self, repository: InMemoryStoreRepository) -> None:
        """The in-memory repository is a StoreRepository."""
        assert isinstance(repository, StoreRepository)

    async def test_find_all(self, repository: InMemoryStoreRepository) -> None:
        """All stores are returned."""
        stores = await repository.find_all()

        assert sorted(store.id for store in stores) == ["a", "b"]

    async def test_find_by_id(self, repository: InMemoryStoreRepository) -> None:
        """Known ids are found and unknown ids give None."""
        assert (await repository.find_by_id("a")).name == "Main store"
        assert await repository.find_by_id("missing") is None

    async def test_returned_copies_are_detached(
        self, repository: InMemoryStoreRepository
    ) -> None:
        """Mutating a returned store doesn't change persisted state."""
        store = await repository.find_by_id("a")
        store.name = "Changed locally"

        assert (await repository.find_by_id("a")).name == "Main store"

    async def test_insert(self, repository: InMemoryStoreRepository) -> None:
        """Inserted stores become visible."""
        await repository.insert(Store(id="c", name="Pop-up", display_order=3))

        assert len(repository) == 3
        assert (await repository.find_by_id("c")).name == "Pop-up"

    async def test_insert_duplicate_rejected(
        self, repository: InMemoryStoreRepository, store_a: Store
    ) -> None:
        """Inserting an existing id raises KeyError."""
        with pytest.raises(KeyError):
            await repository.insert(store_a)

    async def test_update(self, repository: InMemoryStoreRepository, store_a: Store) -> None:
        """Updates replace the stored record."""
        store_a.name = "Flagship"
        await repository.update(store_a)

        assert (await repository.find_by_id("a")).name == "Flagship"

    async def test_update_unknown_rejected(self, repository: InMemoryStoreRepository) -> None:
        """Updating an unknown id raises KeyError."""
        with pytest.raises(KeyError):
            await repository.update(Store(id="missing", name="Ghost"))

    async def test_delete(self, repository: InMemoryStoreRepository, store_b: Store) -> None:
        """Deleted stores are gone."""
        await repository.delete(store_b)

        assert len(repository) == 1
        assert await repository.find_by_id("b") is None

    async def test_delete_unknown_rejected(self, repository: InMemoryStoreRepository) -> None:
        """Deleting an unknown id raises KeyError."""
        with pytest.raises(KeyError):
            await repository.delete(Store(id="missing", name="Ghost"))
