import io
import json
import sys
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from ticketvault.app import create_app
from ticketvault.config import DEFAULT_CONFIG
from ticketvault.services.tickets import _like_pattern, filename_matches


def _write_config(target: Path, data: dict) -> Path:
    target.write_text(json.dumps(data, indent=2))
    return target


def _default_config() -> dict:
    return json.loads(json.dumps(DEFAULT_CONFIG))


@pytest.fixture()
def client(tmp_path):
    config_data = _default_config()
    config_data["database"]["uri"] = f"sqlite:///{tmp_path / 'app.db'}"
    config_data["uploads"]["directory"] = str(tmp_path / "uploads")
    config_path = _write_config(tmp_path / "config.json", config_data)
    return create_app(config_path).test_client()


def _create(client, **overrides):
    payload = {
        "title": "Printer jam",
        "description": "paper stuck in tray two",
        "priority": "LOW",
        "owner": "alice",
    }
    payload.update(overrides)
    response = client.post("/tickets", json=payload)
    assert response.status_code == 201
    return response.get_json()


def _attach(client, ticket_id, filename, content=b"contents"):
    response = client.post(
        f"/tickets/{ticket_id}/attachments",
        data={"file": (io.BytesIO(content), filename)},
        content_type="multipart/form-data",
    )
    assert response.status_code == 201
    return response.get_json()


def _search(client, term):
    response = client.get("/tickets", query_string={"q": term})
    assert response.status_code == 200
    return response.get_json()["tickets"]


def test_filename_match_flags_only_matching_attachment(client):
    ticket = _create(client, title="Quarterly numbers", description="see files")
    _create(client, title="Unrelated", description="nothing here", owner="bob")
    report = _attach(client, ticket["id"], "report.pdf")
    notes = _attach(client, ticket["id"], "notes.txt")

    results = _search(client, "report")

    assert [item["id"] for item in results] == [ticket["id"]]
    attachments = {item["id"]: item for item in results[0]["attachments"]}
    assert set(attachments) == {report["id"], notes["id"]}
    assert attachments[report["id"]]["isMatch"] is True
    assert attachments[notes["id"]]["isMatch"] is False


def test_search_is_case_insensitive(client):
    ticket = _create(client, title="VPN outage")
    attachment = _attach(client, ticket["id"], "Screenshot.PNG")

    assert [item["id"] for item in _search(client, "vpn")] == [ticket["id"]]

    results = _search(client, "screenshot.png")
    assert [item["id"] for item in results] == [ticket["id"]]
    assert results[0]["attachments"][0]["id"] == attachment["id"]
    assert results[0]["attachments"][0]["isMatch"] is True


@pytest.mark.parametrize(
    ("term", "expected_title"),
    [
        ("Laptop", "Laptop will not boot"),
        ("carol", "Laptop will not boot"),
        ("Ticket-2", "Badge reader offline"),
        ("lobby door", "Badge reader offline"),
    ],
)
def test_search_matches_ticket_fields(client, term, expected_title):
    _create(client, title="Laptop will not boot", description="black screen", owner="carol")
    _create(client, title="Badge reader offline", description="lobby door", owner="dave")

    results = _search(client, term)

    assert [item["title"] for item in results] == [expected_title]
    assert results[0]["attachments"] == []


def test_field_match_leaves_attachments_unflagged(client):
    ticket = _create(client, title="Firewall rules")
    _attach(client, ticket["id"], "rules.csv")

    results = _search(client, "firewall")

    assert [item["id"] for item in results] == [ticket["id"]]
    assert results[0]["attachments"][0]["isMatch"] is False


def test_wildcard_characters_are_matched_literally(client):
    _create(client, title="Disk at 100% usage")
    _create(client, title="Disk at 100 usage")
    _create(client, title="file_name clash")
    _create(client, title="filename clash")

    assert [item["title"] for item in _search(client, "100%")] == ["Disk at 100% usage"]
    assert [item["title"] for item in _search(client, "file_name")] == ["file_name clash"]


def test_search_results_are_newest_first(client):
    older = _create(client, title="Mail bounce one")
    newer = _create(client, title="Mail bounce two")

    assert [item["id"] for item in _search(client, "mail")] == [newer["id"], older["id"]]


def test_listing_without_query_has_no_match_flags(client):
    ticket = _create(client)
    _attach(client, ticket["id"], "report.pdf")

    for term in (None, "", "   "):
        query = {} if term is None else {"q": term}
        response = client.get("/tickets", query_string=query)
        tickets = response.get_json()["tickets"]
        assert len(tickets) == 1
        assert "isMatch" not in tickets[0]["attachments"][0]


def test_search_without_matches_returns_empty_list(client):
    _create(client)

    assert _search(client, "nonexistent") == []


def test_like_pattern_escapes_wildcards():
    assert _like_pattern("50%") == "%50\\%%"
    assert _like_pattern("a_b") == "%a\\_b%"
    assert _like_pattern("c:\\tmp") == "%c:\\\\tmp%"


def test_filename_matches_ignores_case():
    assert filename_matches("Report.PDF", "report")
    assert not filename_matches("notes.txt", "report")
    assert not filename_matches(None, "report")


def test_search_folds_case_beyond_ascii(client):
    ticket = _create(client, title="Café menu", description="printer offline")
    uploaded = client.post(
        "/upload",
        data={"file": (io.BytesIO(b"contents"), "elan.txt")},
        content_type="multipart/form-data",
    ).get_json()
    attachment = client.post(
        f"/tickets/{ticket['id']}/attachments",
        json={"filename": "Élan.txt", "path": uploaded["path"]},
    ).get_json()
    _attach(client, ticket["id"], "notes.txt")

    assert [item["id"] for item in _search(client, "CAFÉ")] == [ticket["id"]]

    results = _search(client, "élan")
    assert [item["id"] for item in results] == [ticket["id"]]
    flags = {item["id"]: item["isMatch"] for item in results[0]["attachments"]}
    assert flags[attachment["id"]] is True
    assert list(flags.values()).count(True) == 1
