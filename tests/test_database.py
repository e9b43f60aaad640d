import json
from concurrent.futures import ThreadPoolExecutor

import pytest

from database import SEED_PRODUCTS, DocumentStore, new_id
from errors import StorageFailure


def test_first_load_writes_seed(store):
    assert not store.path.exists()
    db = store.load()
    assert store.path.exists()
    assert [p["name"] for p in db["products"]] == [p["name"] for p in SEED_PRODUCTS]
    assert db["users"] == [] and db["orders"] == [] and db["reviews"] == []
    assert json.loads(store.path.read_text()) == db


def test_seed_products_have_stable_fields(store):
    for product in store.load()["products"]:
        assert set(product) == {"id", "name", "description", "price", "image", "featured"}
    assert [p["featured"] for p in store.load()["products"]] == [True, True, True, False, True]


def test_legacy_document_without_reviews(tmp_path):
    path = tmp_path / "legacy.json"
    path.write_text(json.dumps({"products": [], "users": [], "orders": []}))
    db = DocumentStore(path).load()
    assert db["reviews"] == []


@pytest.mark.parametrize("content", ["{not json", "[]", '{"products": {}}'])
def test_corrupt_document_is_fatal(tmp_path, content):
    path = tmp_path / "broken.json"
    path.write_text(content)
    with pytest.raises(StorageFailure):
        DocumentStore(path).load()
    # nothing was thrown away
    assert path.read_text() == content


def test_transaction_saves_once_on_success(store):
    with store.transaction() as db:
        db["orders"].append({"id": "o1"})
    assert store.load()["orders"] == [{"id": "o1"}]


def test_transaction_discards_changes_on_error(store):
    store.load()
    with pytest.raises(RuntimeError):
        with store.transaction() as db:
            db["orders"].append({"id": "o1"})
            raise RuntimeError("boom")
    assert store.load()["orders"] == []


def test_save_leaves_no_temp_files(store, tmp_path):
    store.save({"products": [], "users": [], "orders": [], "reviews": []})
    assert [p.name for p in tmp_path.iterdir()] == ["database.json"]


def test_loads_are_independent_copies(store):
    first = store.load()
    first["products"].clear()
    assert len(store.load()["products"]) == 5


def test_new_ids_are_unique():
    ids = {new_id() for _ in range(1000)}
    assert len(ids) == 1000


def test_null_collection_treated_as_empty(tmp_path):
    path = tmp_path / "legacy.json"
    path.write_text(json.dumps({"products": [], "users": [], "orders": [], "reviews": None}))
    assert DocumentStore(path).load()["reviews"] == []


def test_concurrent_transactions_keep_every_write(store):
    store.load()

    def append(n):
        with store.transaction() as db:
            db["orders"].append({"id": str(n)})

    with ThreadPoolExecutor(max_workers=8) as pool:
        list(pool.map(append, range(50)))

    assert sorted(int(o["id"]) for o in store.load()["orders"]) == list(range(50))
