import pytest

from blackcat.matcher import AZURE_RBAC, ENTRA, matches, matches_either, split_on_last_slash


@pytest.mark.parametrize("permission", [
    "Microsoft.KeyVault/vaults/accessPolicies/write",
    "microsoft.directory/applications/create",
    "*",
    "plain",
])
def test_permission_matches_itself(permission):
    assert matches(permission, permission)
    assert matches(permission, permission, ENTRA)


def test_global_wildcard_matches_anything():
    assert matches("*", "Microsoft.Compute/virtualMachines/delete")
    assert matches("*", "microsoft.directory/users/password/update", ENTRA)
    assert matches("*", "whatever")


def test_entra_namespace_wildcard_is_scoped():
    assert matches("microsoft.directory/*", "microsoft.directory/users/create", ENTRA)
    assert not matches("microsoft.directory/*", "microsoft.azure.serviceHealth/allEntities/allTasks", ENTRA)
    assert not matches("microsoft.directory/*", "microsoft.directory", ENTRA)


def test_trailing_wildcard():
    assert matches("a/b/*", "a/b/c")
    assert matches("Microsoft.Compute/*", "Microsoft.Compute/virtualMachines/delete")
    assert not matches("a/b/*", "a/x/c")


def test_embedded_wildcard_is_segment_wise():
    assert matches("a/*/c", "a/x/c")
    assert not matches("a/*/c", "a/x/y/c")
    assert not matches("a/*/c", "a/x/d")
    assert matches("Microsoft.Storage/*/write", "Microsoft.Storage/storageAccounts/write")


def test_leading_wildcard_segment():
    assert matches("*/read", "Microsoft.Web/read")
    assert not matches("*/read", "Microsoft.Web/sites/read")


def test_partial_wildcard_in_last_segment_uses_regex():
    assert matches("Microsoft.Compute/virtualMachines/run*", "Microsoft.Compute/virtualMachines/runCommand")
    assert not matches("Microsoft.Compute/virtualMachines/run*", "Microsoft.Compute/virtualMachines/start")


def test_regex_metacharacters_are_literal():
    assert not matches("Microsoft.Web/sites.*", "MicrosoftXWeb/sites.config")
    assert matches("Microsoft.Web/sites.*", "Microsoft.Web/sites.config")


def test_prefix_rules_are_bidirectional():
    assert matches("a/b", "a/b/c")
    assert matches("a/b/c", "a/b")
    assert not matches("a/b", "a/bc")


def test_write_implies_read_but_not_the_reverse():
    assert matches("ns/res/write", "ns/res/read")
    assert not matches("ns/res/read", "ns/res/write")


def test_all_implies_every_mapped_action():
    for action in ("read", "write", "delete", "action"):
        assert matches("ns/res/all", f"ns/res/{action}")


def test_action_hierarchy_requires_same_base():
    assert not matches("ns/res/write", "ns/other/read")
    assert not matches("ns/Res/write", "ns/res/read")


def test_action_comparison_is_case_insensitive():
    assert matches("ns/res/Write", "ns/res/read")
    assert matches("ns/res/write", "ns/res/Write")
    assert matches("ns/res/WRITE", "ns/res/READ")


def test_exact_match_is_case_sensitive():
    assert not matches("Microsoft.Compute", "microsoft.compute")
    assert not matches("a/b", "A/b/c")


def test_rbac_does_not_know_entra_verbs():
    assert not matches("ns/res/manage", "ns/res/read")
    assert not matches("ns/res/allTasks", "ns/res/read")


def test_entra_action_hierarchy():
    base = "microsoft.directory/applications/credentials"
    assert matches(f"{base}/update", f"{base}/read", ENTRA)
    assert matches(f"{base}/manage", f"{base}/update", ENTRA)
    assert matches(f"{base}/allTasks", f"{base}/action", ENTRA)
    assert matches(f"{base}/alltasks", f"{base}/delete", ENTRA)
    assert not matches(f"{base}/manage", f"{base}/action", ENTRA)
    assert not matches(f"{base}/read", f"{base}/update", ENTRA)


def test_entra_literal_implication():
    all_tasks = "microsoft.directory/applications/allProperties/allTasks"
    assert matches(all_tasks, "microsoft.directory/applications/allProperties/read", ENTRA)
    assert matches(all_tasks, "microsoft.directory/applications/allProperties/update", ENTRA)
    # checked in the reverse direction as well
    assert matches("microsoft.directory/applications/allProperties/read", all_tasks, ENTRA)
    assert not matches("microsoft.directory/applications/allProperties/read", all_tasks, AZURE_RBAC)


def test_no_slash_skips_action_hierarchy():
    assert not matches("write", "read")
    assert not matches("ns/res/write", "read")


def test_empty_strings_never_match():
    assert not matches("", "a/b")
    assert not matches("a/b", "")


def test_matches_either_handles_wildcard_search_terms():
    assert not matches("Microsoft.Storage/storageAccounts/write", "Microsoft.Storage/*/write")
    assert matches_either("Microsoft.Storage/storageAccounts/write", "Microsoft.Storage/*/write")


def test_split_on_last_slash():
    assert split_on_last_slash("a/b/c") == ("a/b", "c")
    assert split_on_last_slash("nothing") is None
    assert split_on_last_slash("trailing/") is None
