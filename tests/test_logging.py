import json
import logging

import pytest

from backoffice.config import Settings
from backoffice.logging_utils import REDACTED, RedactingJsonFormatter, configure_logging


def make_record(message, **extra):
    record = logging.LogRecord("backoffice.storage", logging.INFO, __file__, 1, message, None, None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


def test_email_addresses_are_redacted():
    formatter = RedactingJsonFormatter("%(levelname)s %(name)s %(message)s")
    record = make_record(
        "contact ada@example.com added",
        recipients=["bob@example.org", "no address here"],
        client={"email": "ops@acme.test", "credits": 200},
    )

    payload = json.loads(formatter.format(record))

    assert payload["message"] == f"contact {REDACTED} added"
    assert payload["recipients"] == [REDACTED, "no address here"]
    assert payload["client"] == {"email": REDACTED, "credits": 200}
    assert payload["levelname"] == "INFO"


@pytest.fixture
def restore_root_logger():
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield root
    root.handlers[:] = handlers
    root.setLevel(level)


def test_configure_logging_installs_json_handler(tmp_path, restore_root_logger):
    configure_logging(Settings(DATA_DIR=str(tmp_path), LOG_LEVEL="WARNING"))

    root = restore_root_logger
    assert root.level == logging.WARNING
    assert len(root.handlers) == 1
    assert isinstance(root.handlers[0].formatter, RedactingJsonFormatter)
