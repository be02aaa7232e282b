import pytest

from blackcat.entra import find_entra_permission_holders, get_entra_role_definitions

GLOBAL_ADMIN = "62e90394-69f5-4237-9190-012177145e10"
APP_ADMIN = "9b895d92-2cd3-44c7-9d02-a6ac2d5ea5c3"
READERS = "88d8e3e3-8f55-4a1e-953a-9b9898b8876b"


def _definition(role_id, name, allowed, excluded=None):
    return {
        "id": role_id,
        "displayName": name,
        "isBuiltIn": True,
        "rolePermissions": [{"allowedResourceActions": allowed, "excludedResourceActions": excluded or []}],
    }


@pytest.fixture
def directory(fake_client, arm):
    graph = arm.graph
    assignments = f"{graph}/roleManagement/directory/roleAssignments"
    eligible = f"{graph}/roleManagement/directory/roleEligibilitySchedules"
    return fake_client(
        pages={
            f"{graph}/roleManagement/directory/roleDefinitions": [
                _definition(GLOBAL_ADMIN, "Global Administrator", ["microsoft.directory/*"]),
                _definition(APP_ADMIN, "Application Administrator",
                            ["microsoft.directory/applications/allProperties/allTasks"]),
                _definition(READERS, "Directory Readers", ["microsoft.directory/applications/allProperties/read"]),
            ],
            f"{assignments}?roleDefinitionId eq '{GLOBAL_ADMIN}'": [
                {"id": "ra-1", "principalId": "user-1", "directoryScopeId": "/"},
            ],
            f"{assignments}?roleDefinitionId eq '{APP_ADMIN}'": [
                {"id": "ra-2", "principalId": "sp-1", "directoryScopeId": "/"},
            ],
            f"{eligible}?roleDefinitionId eq '{APP_ADMIN}'": [
                {"id": "es-1", "principalId": "user-2", "directoryScopeId": "/administrativeUnits/au-1"},
            ],
        },
        objects={
            "user-1": {"@odata.type": "#microsoft.graph.user", "id": "user-1", "userPrincipalName": "admin@contoso.com"},
            "user-2": {"@odata.type": "#microsoft.graph.user", "id": "user-2", "userPrincipalName": "bob@contoso.com"},
            "sp-1": {"@odata.type": "#microsoft.graph.servicePrincipal", "id": "sp-1", "displayName": "automation"},
        },
    )


def test_role_definitions(directory):
    roles = get_entra_role_definitions(directory)
    assert [r.name for r in roles] == ["Global Administrator", "Application Administrator", "Directory Readers"]


def test_application_update_holders(directory):
    records = find_entra_permission_holders(directory, "microsoft.directory/applications/allProperties/update")

    assert [(r["RoleName"], r["DisplayName"]) for r in records] == [
        ("Application Administrator", "automation"),
        ("Global Administrator", "admin@contoso.com"),
    ]
    assert records[0]["MatchedPermissions"] == ["microsoft.directory/applications/allProperties/allTasks"]
    assert records[1]["MatchedPermissions"] == ["microsoft.directory/*"]
    assert all(r["AssignmentType"] == "Active" for r in records)


def test_eligible_assignments_are_optional(directory):
    records = find_entra_permission_holders(
        directory, "microsoft.directory/applications/allProperties/update", include_eligible=True,
    )

    eligible = [r for r in records if r["AssignmentType"] == "Eligible"]
    assert len(eligible) == 1
    assert eligible[0]["DisplayName"] == "bob@contoso.com"
    assert eligible[0]["DirectoryScopeId"] == "/administrativeUnits/au-1"


def test_permissions_outside_the_directory_namespace(directory):
    assert find_entra_permission_holders(directory, "microsoft.azure.supportTickets/allEntities/allTasks") == []
