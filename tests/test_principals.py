from blackcat import principals
from blackcat.cache import ResultCache
from blackcat.errors import ApiRequestError
from blackcat.principals import resolve_principals, summarise_statuses


def test_types_and_names(fake_client):
    client = fake_client(objects={
        "u": {"@odata.type": "#microsoft.graph.user", "id": "u", "userPrincipalName": "alice@contoso.com",
              "displayName": "Alice"},
        "g": {"@odata.type": "#microsoft.graph.group", "id": "g", "displayName": "Admins"},
        "s": {"@odata.type": "#microsoft.graph.servicePrincipal", "id": "s", "appId": "app-guid"},
    })

    resolved = resolve_principals(client, ["u", "g", "s", "gone", None, "u"])

    assert resolved["u"] == {"type": "User", "name": "alice@contoso.com", "status": "resolved"}
    assert resolved["g"]["type"] == "Group"
    assert resolved["g"]["name"] == "Admins"
    assert resolved["s"]["name"] == "app-guid"
    assert resolved["gone"] == {"type": "Unknown", "name": None, "status": "unresolved"}
    assert None not in resolved
    assert len(client.calls) == 1


def test_ids_are_sent_in_chunks(fake_client, monkeypatch):
    monkeypatch.setattr(principals, "GET_BY_IDS_LIMIT", 2)
    client = fake_client()

    resolve_principals(client, ["a", "b", "c", "d", "e"])

    assert len(client.calls) == 3


def test_failed_lookup_leaves_ids_unresolved(fake_client):
    class FailingClient(fake_client):
        def post(self, url, json_body, params=None):
            raise ApiRequestError(403, url, "Insufficient privileges")

    cache = ResultCache()
    resolved = resolve_principals(FailingClient(), ["a"], cache=cache)

    assert resolved["a"]["status"] == "unresolved"
    assert cache.get("principals:a") is None


def test_no_ids_makes_no_calls(fake_client):
    client = fake_client()
    assert resolve_principals(client, []) == {}
    assert client.calls == []


def test_summarise_statuses():
    counts = summarise_statuses({
        "a": {"status": "resolved"},
        "b": {"status": "unresolved"},
        "c": {"status": "resolved"},
    })
    assert counts["resolved"] == 2
    assert counts["unresolved"] == 1


def test_resolution_status_is_summarised(fake_client, monkeypatch):
    summaries = []
    monkeypatch.setattr(principals, "summarise_statuses", summaries.append)
    client = fake_client(objects={"u": {"@odata.type": "#microsoft.graph.user", "id": "u", "displayName": "Alice"}})

    resolved = resolve_principals(client, ["u", "gone"])

    assert summaries == [resolved]
