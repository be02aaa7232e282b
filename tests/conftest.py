import pytest

from blackcat.client import AzureRestClient


class FakeClient:
    """Stands in for AzureRestClient, serving canned pages keyed by URL."""

    arm_url = AzureRestClient.arm_url
    graph_url = AzureRestClient.graph_url

    def __init__(self, pages=None, objects=None, documents=None):
        self.pages = pages or {}
        self.objects = objects or {}
        self.documents = documents or {}
        self.calls = []

    def get_paged(self, url, params=None, headers=None):
        key = url
        if params and "$filter" in params:
            key = f"{url}?{params['$filter']}"
        self.calls.append(key)
        value = self.pages.get(key, [])
        if isinstance(value, Exception):
            raise value
        return list(value)

    def get(self, url, params=None, headers=None):
        self.calls.append(url)
        return self.documents[url]

    def post(self, url, json_body, params=None):
        self.calls.append(url)
        return {"value": [self.objects[i] for i in json_body["ids"] if i in self.objects]}


ARM = "https://management.azure.com"
GRAPH = "https://graph.microsoft.com/v1.0"


def arm_role(guid, name, actions, not_actions=None, role_type="BuiltInRole", subscription="sub-1", data_actions=None):
    return {
        "id": f"/subscriptions/{subscription}/providers/Microsoft.Authorization/roleDefinitions/{guid}",
        "name": guid,
        "properties": {
            "roleName": name,
            "type": role_type,
            "permissions": [{
                "actions": actions,
                "notActions": not_actions or [],
                "dataActions": data_actions or [],
                "notDataActions": [],
            }],
        },
    }


def arm_assignment(assignment_id, role_guid, principal_id, principal_type="User", scope="/subscriptions/sub-1"):
    return {
        "id": f"{scope}/providers/Microsoft.Authorization/roleAssignments/{assignment_id}",
        "name": assignment_id,
        "properties": {
            "roleDefinitionId": f"/subscriptions/sub-1/providers/Microsoft.Authorization/roleDefinitions/{role_guid}",
            "principalId": principal_id,
            "principalType": principal_type,
            "scope": scope,
        },
    }


def role_definitions_url(subscription):
    return f"{ARM}/subscriptions/{subscription}/providers/Microsoft.Authorization/roleDefinitions"


def role_assignments_url(subscription):
    return f"{ARM}/subscriptions/{subscription}/providers/Microsoft.Authorization/roleAssignments"


@pytest.fixture
def fake_client():
    return FakeClient


@pytest.fixture
def arm():
    """Builders for ARM role definition / assignment payloads and their URLs."""
    class Builders:
        role = staticmethod(arm_role)
        assignment = staticmethod(arm_assignment)
        definitions_url = staticmethod(role_definitions_url)
        assignments_url = staticmethod(role_assignments_url)
        subscriptions_url = f"{ARM}/subscriptions"
        graph = GRAPH

    return Builders
