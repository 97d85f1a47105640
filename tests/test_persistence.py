import json
from datetime import datetime, timezone

from backoffice.models import Campaign, Contact, EntityKind, MailingList
from backoffice.persistence import DATA_FILES, JsonFileAdapter, adapters_for


def make_campaign(record_id, **overrides):
    fields = {
        "id": record_id,
        "name": "Spring Sale",
        "subject": "25% Off Everything",
        "sender_name": "Your Company",
        "reply_to_email": "info@example.com",
        "created_at": datetime(2024, 3, 1, 9, 30, tzinfo=timezone.utc),
        "scheduled_at": datetime(2024, 3, 20, 9, tzinfo=timezone.utc),
    }
    fields.update(overrides)
    return Campaign(**fields)


def test_save_then_load_round_trips_timestamps(tmp_path):
    adapter = JsonFileAdapter(tmp_path / "campaigns-data.json", Campaign)
    records = {1: make_campaign(1), 4: make_campaign(4, name="Welcome Series", scheduled_at=None)}

    adapter.save(records.values())
    loaded = adapter.load()

    assert loaded == records
    assert isinstance(loaded[1].scheduled_at, datetime)
    assert loaded[4].scheduled_at is None
    assert loaded[1].sent_at is None


def test_file_uses_camel_case_keys_and_iso_timestamps(tmp_path):
    path = tmp_path / "campaigns-data.json"
    JsonFileAdapter(path, Campaign).save([make_campaign(1)])

    payload = json.loads(path.read_text(encoding="utf-8"))

    assert isinstance(payload, list)
    assert payload[0]["replyToEmail"] == "info@example.com"
    assert payload[0]["scheduledAt"].startswith("2024-03-20T09:00:00")
    assert payload[0]["sentAt"] is None


def test_save_overwrites_previous_snapshot(tmp_path):
    path = tmp_path / "lists.json"
    adapter = JsonFileAdapter(path, MailingList)
    adapter.save([MailingList(id=1, name="VIP"), MailingList(id=2, name="Newsletter")])
    adapter.save([MailingList(id=2, name="Newsletter")])

    assert list(adapter.load()) == [2]
    assert not (tmp_path / "lists.json.tmp").exists()


def test_load_accepts_snake_case_and_missing_timestamps(tmp_path):
    path = tmp_path / "contacts.json"
    path.write_text(
        json.dumps(
            [
                {"id": 7, "name": "Ada", "email": "ada@example.com", "createdAt": "2024-01-05T10:00:00.000Z"},
                {"id": 9, "name": "Bob", "email": "bob@example.com", "last_activity_at": None},
            ]
        ),
        encoding="utf-8",
    )

    loaded = JsonFileAdapter(path, Contact).load()

    assert loaded[7].created_at == datetime(2024, 1, 5, 10, tzinfo=timezone.utc)
    assert loaded[9].created_at is None
    assert loaded[9].last_activity_at is None


def test_missing_file_loads_empty(tmp_path):
    assert JsonFileAdapter(tmp_path / "absent.json", Contact).load() == {}


def test_unparsable_file_loads_empty(tmp_path):
    path = tmp_path / "contacts.json"
    path.write_text("{not json", encoding="utf-8")
    assert JsonFileAdapter(path, Contact).load() == {}


def test_non_array_payload_loads_empty(tmp_path):
    path = tmp_path / "contacts.json"
    path.write_text(json.dumps({"id": 1, "name": "Ada", "email": "ada@example.com"}), encoding="utf-8")
    assert JsonFileAdapter(path, Contact).load() == {}


def test_invalid_record_loads_empty(tmp_path):
    path = tmp_path / "contacts.json"
    path.write_text(json.dumps([{"id": 1, "name": "Ada"}]), encoding="utf-8")
    assert JsonFileAdapter(path, Contact).load() == {}


def test_save_failure_is_swallowed(tmp_path):
    path = tmp_path / "contacts.json"
    (tmp_path / "contacts.json.tmp").mkdir()
    adapter = JsonFileAdapter(path, Contact)

    adapter.save([Contact(id=1, name="Ada", email="ada@example.com")])

    assert not path.exists()


def test_next_id():
    assert JsonFileAdapter.next_id({}) == 1
    assert JsonFileAdapter.next_id({3: object(), 11: object(), 5: object()}) == 12


def test_adapters_cover_every_kind(tmp_path):
    adapters = adapters_for(tmp_path)

    assert set(adapters) == set(EntityKind)
    assert adapters[EntityKind.LIST_MEMBERSHIP].path == tmp_path / "contact-list-relations-data.json"
    assert {adapter.path.name for adapter in adapters.values()} == set(DATA_FILES.values())
