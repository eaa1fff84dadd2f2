"""Tests du filtre de visibilité multi-communes et de la fenêtre d'affichage."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta

import pytest

from securidem.domain.entities import CallerIdentity, Role
from securidem.domain.errors import ScopeMissing
from securidem.domain.predicates import All
from securidem.domain.visibility import (
    ViewContext,
    is_window_active,
    panel_commune_filter,
    visibility_filter,
)

NOW = datetime(2025, 6, 1, 12, 0, tzinfo=UTC)
HOUR = timedelta(hours=1)

GLOBAL = {"visibility": "global"}
LOCAL_A = {"visibility": "local", "communeId": "dembeni"}
LOCAL_B = {"visibility": "local", "communeId": "sada"}
CUSTOM_AB = {"visibility": "custom", "audienceCommunes": ["dembeni", "sada"]}
CUSTOM_C = {"visibility": "custom", "audienceCommunes": ["acoua"]}
RECORDS = [GLOBAL, LOCAL_A, LOCAL_B, CUSTOM_AB, CUSTOM_C]


def _visible(keys, role=None, enforce_window=False):
    pred = visibility_filter(frozenset(keys), role, enforce_window=enforce_window, now=NOW)
    return [r for r in RECORDS if pred.matches(r)]


@pytest.mark.parametrize("role", [None, Role.USER, Role.ADMIN, Role.SUPERADMIN])
@pytest.mark.parametrize("keys", [set(), {"dembeni"}, {"nowhere"}])
def test_global_records_always_visible(role, keys):
    assert GLOBAL in _visible(keys, role)


def test_local_records_match_resolved_keys():
    assert LOCAL_A in _visible({"dembeni", "0123456789abcdef01234567"})
    assert LOCAL_B not in _visible({"dembeni"})


def test_local_match_is_case_insensitive_for_legacy_values():
    legacy = {"visibility": "local", "communeId": " Dembeni "}
    pred = visibility_filter(frozenset({"dembeni"}), None, enforce_window=False)
    assert pred.matches(legacy)


def test_custom_records_need_audience_intersection():
    assert _visible({"sada"}) == [GLOBAL, LOCAL_B, CUSTOM_AB]
    assert CUSTOM_C not in _visible({"dembeni"})


def test_no_context_sees_only_global():
    assert _visible(set()) == [GLOBAL]
    assert _visible(set(), Role.ADMIN) == [GLOBAL]


def test_superadmin_without_context_sees_everything():
    assert _visible(set(), Role.SUPERADMIN) == RECORDS
    assert isinstance(visibility_filter(frozenset(), Role.SUPERADMIN, enforce_window=False), All)


def test_superadmin_with_context_is_scoped():
    assert _visible({"acoua"}, Role.SUPERADMIN) == [GLOBAL, CUSTOM_C]


def test_future_start_excluded_until_reached():
    record = {**GLOBAL, "startAt": NOW + HOUR, "endAt": None}
    before = visibility_filter(frozenset(), None, enforce_window=True, now=NOW)
    after = visibility_filter(frozenset(), None, enforce_window=True, now=NOW + HOUR)
    assert not before.matches(record)
    assert after.matches(record)


def test_past_end_excluded():
    record = {**GLOBAL, "startAt": None, "endAt": NOW - HOUR}
    assert not visibility_filter(frozenset(), None, enforce_window=True, now=NOW).matches(record)
    assert visibility_filter(frozenset(), None, enforce_window=False, now=NOW).matches(record)


def test_window_bounds_are_inclusive():
    assert is_window_active(NOW, NOW, NOW)
    assert is_window_active(None, None, NOW)
    assert not is_window_active(NOW + HOUR, None, NOW)
    assert not is_window_active(None, NOW - HOUR, NOW)


def test_window_treats_naive_datetimes_as_utc():
    naive = datetime(2025, 6, 1, 11, 0)
    assert is_window_active(naive, None, NOW)


def _caller(role, commune=""):
    return CallerIdentity(id="a" * 24, email="x@y.fr", role=role, commune_id=commune)


def test_view_context_public_uses_hint_and_window(resolver, make_commune):
    make_commune("Dembéni", "dembeni")
    ctx = ViewContext.for_caller(None, "Dembéni", resolver, NOW)
    assert "dembeni" in ctx.keys
    assert ctx.enforce_window is True
    assert ctx.role is None


def test_view_context_admin_ignores_hint(resolver):
    ctx = ViewContext.for_caller(_caller(Role.ADMIN, "dembeni"), "sada", resolver, NOW)
    assert ctx.keys == {"dembeni"}
    assert ctx.enforce_window is False


def test_view_context_admin_without_commune_is_rejected(resolver):
    with pytest.raises(ScopeMissing):
        ViewContext.for_caller(_caller(Role.ADMIN), None, resolver, NOW)


def test_view_context_superadmin_hint_optional(resolver):
    everything = ViewContext.for_caller(_caller(Role.SUPERADMIN), None, resolver, NOW)
    scoped = ViewContext.for_caller(_caller(Role.SUPERADMIN), "sada", resolver, NOW)
    assert isinstance(everything.predicate(), All)
    assert scoped.can_view(LOCAL_B)
    assert not scoped.can_view(LOCAL_A)


def test_view_context_user_role_reads_like_public(resolver):
    ctx = ViewContext.for_caller(_caller(Role.USER, "sada"), "dembeni", resolver, NOW)
    assert ctx.keys == {"dembeni"}
    assert ctx.enforce_window is True


def test_panel_commune_filter(resolver):
    incident_a = {"communeId": "dembeni"}
    incident_b = {"communeId": "sada"}
    admin = panel_commune_filter(_caller(Role.ADMIN, "dembeni"), "sada", resolver)
    assert admin.matches(incident_a) and not admin.matches(incident_b)
    superadmin = panel_commune_filter(_caller(Role.SUPERADMIN), None, resolver)
    assert superadmin.matches(incident_a) and superadmin.matches(incident_b)
    with pytest.raises(ScopeMissing):
        panel_commune_filter(_caller(Role.ADMIN), None, resolver)
