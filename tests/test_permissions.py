import pytest

from condo.core.permissions import (
    NO_ACCESS,
    FullAccess,
    LimitedAccess,
    narrow_scope,
    normalize_allowed_condominiums,
    parse_permission_descriptor,
    resolve_scope,
)


@pytest.mark.parametrize(
    "raw, expected",
    [
        ([1, 2, 3], {1, 2, 3}),
        ('[1, "2", 3]', {1, 2, 3}),
        (["4", 5, "x", None], {4, 5}),
        ("7", {7}),
        (7, {7}),
        ("3,4", {3, 4}),
        ([2.0, 2.5], {2}),
        ([True, 8], {8}),
        (b"[9]", {9}),
        (None, set()),
        ("", set()),
        ("[]", set()),
        ("{", set()),
        ('{"a": 1}', set()),
        ({"a": 1}, set()),
        (object(), set()),
    ],
)
def test_normalize_allowed_condominiums(raw, expected):
    assert normalize_allowed_condominiums(raw) == frozenset(expected)


def test_normalize_never_raises_and_logs(caplog):
    assert normalize_allowed_condominiums(object()) == frozenset()
    assert "allowed_condominiums" in caplog.text


@pytest.mark.parametrize("allowed", [None, "", "[3]", "garbage{", [1, "x"], {"bad": True}])
@pytest.mark.parametrize("scope", ["full", "FULL", " Full "])
def test_full_scope_ignores_allow_list(scope, allowed):
    assert isinstance(resolve_scope(scope, allowed), FullAccess)


def test_limited_scope_uses_allow_list():
    access = resolve_scope("limited", "[3, 4]")
    assert access == LimitedAccess(frozenset({3, 4}))
    assert access.allows({4, 9})
    assert not access.allows({7})


def test_unknown_scope_is_limited():
    assert resolve_scope(None, [1]) == LimitedAccess(frozenset({1}))
    assert resolve_scope("admin", None) == NO_ACCESS


def test_empty_limited_allows_nothing():
    assert NO_ACCESS.is_empty
    assert not NO_ACCESS.allows({1})
    assert not NO_ACCESS.allows(set())
    assert NO_ACCESS.restrict({1, 2}) == frozenset()


def test_descriptor_missing_is_not_no_access():
    assert parse_permission_descriptor(None) is None
    assert parse_permission_descriptor("  ") is None


@pytest.mark.parametrize("raw", ["not json", "[1, 2]", '"full"', "42"])
def test_descriptor_malformed_is_no_access(raw):
    assert parse_permission_descriptor(raw) == NO_ACCESS


def test_descriptor_variants():
    assert isinstance(parse_permission_descriptor('{"scope": "full"}'), FullAccess)
    assert parse_permission_descriptor(
        '{"scope": "limited", "allowed_condominiums": "[3,4]"}'
    ) == LimitedAccess(frozenset({3, 4}))
    assert parse_permission_descriptor(
        {"scope": "limited", "allowedCondos": ["5"]}
    ) == LimitedAccess(frozenset({5}))


def test_narrow_scope_only_takes_access_away():
    stored = LimitedAccess(frozenset({3, 4}))
    assert narrow_scope(stored, None) == stored
    assert narrow_scope(stored, FullAccess()) == stored
    assert narrow_scope(stored, LimitedAccess(frozenset({4, 5}))) == LimitedAccess(frozenset({4}))
    assert narrow_scope(FullAccess(), LimitedAccess(frozenset({9}))) == LimitedAccess(frozenset({9}))
    assert isinstance(narrow_scope(FullAccess(), None), FullAccess)


def test_descriptor_round_trip_from_login_shape():
    assert FullAccess().as_descriptor() == {"scope": "full", "allowed_condominiums": []}
    limited = LimitedAccess(frozenset({4, 3}))
    assert limited.as_descriptor() == {"scope": "limited", "allowed_condominiums": [3, 4]}
    assert parse_permission_descriptor(limited.as_descriptor()) == limited
