# tests/test_crud.py
import asyncio

import pytest
from sqlalchemy.exc import OperationalError

from listing_pipeline import crud
from listing_pipeline.linker import PhotoLinker
from listing_pipeline.stores import SqlPhotoStore


def test_create_and_get_listing(db):
    payload = {"sku": "test123", "title": "Test Lamp", "price": 1000, "not_a_column": "x"}
    obj = crud.create_listing(db, "u1", payload)
    assert obj.id
    assert obj.status == "draft"
    assert crud.get_listing(db, "u1", obj.id).title == "Test Lamp"
    assert crud.get_listing(db, "u2", obj.id) is None


def test_update_and_delete_listing(db):
    obj = crud.create_listing(db, "u1", {"sku": "A-1", "title": "Old", "keywords": ["a"]})
    updated = crud.update_listing(db, "u1", obj.id, {"title": "New", "keywords": ["a", "b"]})
    assert updated.title == "New"
    assert updated.keywords == ["a", "b"]
    assert crud.update_listing(db, "u2", obj.id, {"title": "Hijack"}) is None

    assert not crud.delete_listing(db, "u2", obj.id)
    assert crud.delete_listing(db, "u1", obj.id)
    assert crud.get_listing(db, "u1", obj.id) is None


def test_photo_upload_order_is_per_user(db):
    a = crud.create_photo(db, "u1", "https://img.example/a.jpg", "a.jpg")
    b = crud.create_photo(db, "u1", "https://img.example/b.jpg", "b.jpg")
    c = crud.create_photo(db, "u2", "https://img.example/c.jpg", "c.jpg")
    explicit = crud.create_photo(db, "u1", "https://img.example/d.jpg", "d.jpg", upload_order=10)
    assert (a.upload_order, b.upload_order, c.upload_order, explicit.upload_order) == (1, 2, 1, 10)
    assert [p.filename for p in crud.list_photos(db, "u1")] == ["a.jpg", "b.jpg", "d.jpg"]
    assert crud.list_photos(db, "u1", status="assigned") == []


def test_link_and_reset_photos(db):
    listing = crud.create_listing(db, "u1", {"sku": "SHOE-1", "title": "Boots"})
    photos = [crud.create_photo(db, "u1", f"https://img.example/{i}.jpg", f"{i}.jpg") for i in range(3)]
    assert crud.assign_sku(db, "u1", [p.id for p in photos[:2]], "SHOE-1") == 2

    assert crud.link_photos(db, "u1", "SHOE-1", listing.id) == 2
    grouped = crud.list_grouped_photos(db, "u1")
    assert {p.status for p in grouped} == {"processed"}
    assert {p.assigned_item_id for p in grouped} == {listing.id}

    # linked photos can't be moved to another SKU
    assert crud.assign_sku(db, "u1", [photos[0].id], "OTHER-2") == 0

    assert crud.reset_photos(db, "u1", "SHOE-1") == 2
    assert crud.list_grouped_photos(db, "u1") == []
    assert {p.status for p in crud.list_photos(db, "u1")} == {"uploaded"}


def test_get_listings_by_ids(db):
    first = crud.create_listing(db, "u1", {"sku": "A-1", "title": "One"})
    second = crud.create_listing(db, "u1", {"sku": "B-2", "title": "Two"})
    foreign = crud.create_listing(db, "u2", {"sku": "C-3", "title": "Three"})
    found = crud.get_listings_by_ids(db, "u1", [first.id, second.id, foreign.id, None, "missing"])
    assert set(found) == {first.id, second.id}
    assert crud.get_listings_by_ids(db, "u1", []) == {}


def locked(*args, **kwargs):
    raise OperationalError("UPDATE uploaded_photos", {}, Exception("database is locked"))


def test_failed_statement_rolls_back_and_session_stays_usable(db, monkeypatch):
    photo = crud.create_photo(db, "u1", "https://img.example/a.jpg", "a.jpg")
    rollbacks = []
    real_rollback = db.rollback

    def counting_rollback():
        rollbacks.append(True)
        real_rollback()

    monkeypatch.setattr(db, "execute", locked)
    monkeypatch.setattr(db, "rollback", counting_rollback)
    with pytest.raises(OperationalError):
        crud.assign_sku(db, "u1", [photo.id], "SHOE-1")
    assert rollbacks == [True]

    monkeypatch.undo()
    assert crud.assign_sku(db, "u1", [photo.id], "SHOE-1") == 1
    assert [p.assigned_sku for p in crud.list_grouped_photos(db, "u1")] == ["SHOE-1"]


def test_link_retry_recovers_after_failed_statement(db, monkeypatch):
    listing = crud.create_listing(db, "u1", {"sku": "SHOE-1", "title": "Boots"})
    photo = crud.create_photo(db, "u1", "https://img.example/a.jpg", "a.jpg")
    crud.assign_sku(db, "u1", [photo.id], "SHOE-1")

    real_execute = db.execute
    attempts = []

    def flaky_execute(*args, **kwargs):
        attempts.append(True)
        if len(attempts) == 1:
            locked()
        return real_execute(*args, **kwargs)

    monkeypatch.setattr(db, "execute", flaky_execute)
    linker = PhotoLinker(SqlPhotoStore(db, "u1"), delay=0)
    assert asyncio.run(linker.link_photos("SHOE-1", listing.id)) == 1
    assert len(attempts) == 2

    monkeypatch.undo()
    assert {p.assigned_item_id for p in crud.list_grouped_photos(db, "u1")} == {listing.id}
