import json

import pytest
from pydantic import ValidationError

from backoffice.collection import EntityCollection
from backoffice.errors import NotFound, PersistenceFailure
from backoffice.models import Campaign, MailingList
from backoffice.persistence import JsonFileAdapter


CAMPAIGN = {
    "name": "Monthly Newsletter",
    "subject": "May Newsletter",
    "senderName": "Your Company",
    "replyToEmail": "info@example.com",
}


def make_lists(tmp_path, strict=False):
    adapter = JsonFileAdapter(tmp_path / "contact-lists-data.json", MailingList, strict=strict)
    collection = EntityCollection(adapter)
    collection.load()
    return collection


def read_file(path):
    return json.loads(path.read_text(encoding="utf-8"))


def test_ids_start_at_one_and_increase(tmp_path):
    lists = make_lists(tmp_path)

    ids = [lists.create({"name": f"List {n}"}).id for n in range(3)]

    assert ids == [1, 2, 3]
    assert lists.next_id() == 4


def test_ids_are_not_reused_after_delete(tmp_path):
    lists = make_lists(tmp_path)
    lists.create({"name": "A"})
    second = lists.create({"name": "B"})

    lists.delete(second.id)
    third = lists.create({"name": "C"})

    assert third.id == 3


def test_create_ignores_supplied_id_and_stamps_timestamps(tmp_path):
    lists = make_lists(tmp_path)

    created = lists.create({"id": 99, "name": "VIP", "description": "Premium customers"})

    assert created.id == 1
    assert created.created_at is not None
    assert created.updated_at == created.created_at
    assert lists.get(1) == created


def test_create_clears_sent_at_for_campaigns(tmp_path):
    campaigns = EntityCollection(JsonFileAdapter(tmp_path / "campaigns-data.json", Campaign))

    created = campaigns.create({**CAMPAIGN, "sentAt": "2024-01-01T00:00:00Z"})

    assert created.sent_at is None
    assert created.status == "draft"


def test_every_mutation_rewrites_the_file(tmp_path):
    lists = make_lists(tmp_path)
    path = tmp_path / "contact-lists-data.json"

    lists.create({"name": "A"})
    assert [item["name"] for item in read_file(path)] == ["A"]

    lists.update(1, {"name": "A2"})
    assert [item["name"] for item in read_file(path)] == ["A2"]

    lists.create({"name": "B"})
    lists.delete(1)
    assert [item["id"] for item in read_file(path)] == [2]


def test_get_missing_returns_none(tmp_path):
    assert make_lists(tmp_path).get(42) is None


def test_update_missing_raises_not_found(tmp_path):
    lists = make_lists(tmp_path)
    with pytest.raises(NotFound):
        lists.update(1, {"name": "nope"})


def test_delete_missing_raises_not_found(tmp_path):
    lists = make_lists(tmp_path)
    with pytest.raises(NotFound):
        lists.delete(1)


def test_update_merges_and_restamps(tmp_path):
    lists = make_lists(tmp_path)
    created = lists.create({"name": "VIP", "description": "Premium customers"})

    updated = lists.update(created.id, {"description": "Top spenders", "id": 50})

    assert updated.id == created.id
    assert updated.name == "VIP"
    assert updated.description == "Top spenders"
    assert updated.created_at == created.created_at
    assert updated.updated_at >= created.updated_at


def test_all_preserves_insertion_order(tmp_path):
    lists = make_lists(tmp_path)
    for name in ("C", "A", "B"):
        lists.create({"name": name})

    assert [item.name for item in lists.all()] == ["C", "A", "B"]


def test_delete_where_removes_matches_in_one_pass(tmp_path):
    lists = make_lists(tmp_path)
    for name in ("keep", "drop", "drop"):
        lists.create({"name": name})

    removed = lists.delete_where(lambda item: item.name == "drop")

    assert [item.id for item in removed] == [2, 3]
    assert [item["name"] for item in read_file(tmp_path / "contact-lists-data.json")] == ["keep"]
    assert lists.delete_where(lambda item: item.name == "drop") == []


def test_loaded_records_replace_defaults(tmp_path):
    first = make_lists(tmp_path)
    first.create({"name": "Saved"})
    first.create({"name": "Saved too"})
    first.delete(1)

    reopened = EntityCollection(JsonFileAdapter(tmp_path / "contact-lists-data.json", MailingList))
    count = reopened.load(defaults=[{"name": "Default"}])

    assert count == 1
    assert [item.name for item in reopened.all()] == ["Saved too"]
    assert reopened.next_id() == 3


def test_defaults_seed_an_empty_collection_without_writing(tmp_path):
    lists = EntityCollection(JsonFileAdapter(tmp_path / "contact-lists-data.json", MailingList))

    count = lists.load(defaults=[{"name": "Newsletter Subscribers"}, {"name": "VIP Members"}])

    assert count == 2
    assert lists.next_id() == 3
    assert not (tmp_path / "contact-lists-data.json").exists()


def test_failed_save_keeps_in_memory_mutation(tmp_path):
    lists = make_lists(tmp_path)
    (tmp_path / "contact-lists-data.json.tmp").mkdir()

    created = lists.create({"name": "Unsynced"})

    assert lists.get(created.id) == created


def test_strict_mode_rolls_back_failed_mutation(tmp_path):
    lists = make_lists(tmp_path, strict=True)
    kept = lists.create({"name": "Kept"})
    (tmp_path / "contact-lists-data.json.tmp").mkdir()

    with pytest.raises(PersistenceFailure):
        lists.create({"name": "Lost"})
    with pytest.raises(PersistenceFailure):
        lists.update(kept.id, {"name": "Renamed"})
    with pytest.raises(PersistenceFailure):
        lists.delete(kept.id)

    assert lists.all() == [kept]
    assert lists.next_id() == 2


def test_returned_records_cannot_be_modified_in_place(tmp_path):
    lists = make_lists(tmp_path)
    created = lists.create({"name": "Newsletter"})

    with pytest.raises(ValidationError):
        lists.get(created.id).name = "Renamed"

    assert lists.get(created.id).name == "Newsletter"
    assert lists.update(created.id, {"name": "Renamed"}).name == "Renamed"


def test_restore_puts_records_back_in_id_order(tmp_path):
    lists = make_lists(tmp_path)
    for name in ("A", "B", "C"):
        lists.create({"name": name})
    removed = lists.delete_where(lambda item: item.name in {"A", "C"})

    lists.restore(removed)

    assert [item.name for item in lists.all()] == ["A", "B", "C"]
    assert [item["id"] for item in read_file(tmp_path / "contact-lists-data.json")] == [1, 2, 3]
    assert lists.next_id() == 4
