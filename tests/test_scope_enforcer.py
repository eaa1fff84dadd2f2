"""Tests du contrôle de portée en écriture (création, modification, suppression)."""

from __future__ import annotations

import pytest

from securidem.domain.entities import CallerIdentity, Role, Visibility
from securidem.domain.errors import Forbidden, ScopeMissing
from securidem.domain.scope import Scope, ScopeEnforcer, ScopeRequest

ADMIN_ID = "a" * 24
OTHER_ID = "b" * 24


@pytest.fixture
def enforcer(resolver, make_commune):
    make_commune("Dembéni", "dembeni")
    make_commune("Sada", "sada")
    return ScopeEnforcer(resolver)


def _admin(commune="Dembéni", uid=ADMIN_ID):
    return CallerIdentity(id=uid, role=Role.ADMIN, commune_id=commune)


SUPER = CallerIdentity(id="c" * 24, role=Role.SUPERADMIN)


def test_admin_create_defaults_to_own_commune_slug(enforcer):
    scope = enforcer.resolve_create(_admin(), ScopeRequest())
    assert scope == Scope(Visibility.LOCAL, "dembeni")


def test_admin_may_name_own_commune_in_any_form(enforcer):
    scope = enforcer.resolve_create(_admin(), ScopeRequest(Visibility.LOCAL, "DEMBENI"))
    assert scope.commune_id == "dembeni"


def test_admin_cannot_target_foreign_commune(enforcer):
    with pytest.raises(Forbidden) as err:
        enforcer.resolve_create(_admin(), ScopeRequest(Visibility.LOCAL, "sada"))
    assert err.value.code == "commune_not_allowed"


@pytest.mark.parametrize("visibility", [Visibility.GLOBAL, Visibility.CUSTOM])
def test_admin_cannot_widen_visibility(enforcer, visibility):
    with pytest.raises(Forbidden) as err:
        enforcer.resolve_create(_admin(), ScopeRequest(visibility))
    assert err.value.code == "visibility_not_allowed"


def test_admin_cannot_set_audience(enforcer):
    with pytest.raises(Forbidden):
        enforcer.resolve_create(_admin(), ScopeRequest(audience_communes=("dembeni",)))


def test_admin_without_commune_is_scope_missing(enforcer):
    with pytest.raises(ScopeMissing):
        enforcer.resolve_create(_admin(commune=""), ScopeRequest())


def test_plain_user_cannot_write(enforcer):
    user = CallerIdentity(id=OTHER_ID, role=Role.USER, commune_id="dembeni")
    with pytest.raises(Forbidden):
        enforcer.resolve_create(user, ScopeRequest())


def test_superadmin_local_requires_commune(enforcer):
    with pytest.raises(ScopeMissing):
        enforcer.resolve_create(SUPER, ScopeRequest(Visibility.LOCAL))
    scope = enforcer.resolve_create(SUPER, ScopeRequest(Visibility.LOCAL, "Sada"))
    assert scope == Scope(Visibility.LOCAL, "sada")


def test_superadmin_custom_requires_audience(enforcer):
    with pytest.raises(ScopeMissing):
        enforcer.resolve_create(SUPER, ScopeRequest(Visibility.CUSTOM, audience_communes=()))
    scope = enforcer.resolve_create(
        SUPER, ScopeRequest(Visibility.CUSTOM, audience_communes=("Sada", "sada", "Dembéni"))
    )
    assert scope.audience_communes == ("sada", "dembeni")
    assert scope.commune_id == ""


def test_superadmin_global_clears_commune_and_audience(enforcer):
    scope = enforcer.resolve_create(
        SUPER, ScopeRequest(Visibility.GLOBAL, "sada", ("dembeni",))
    )
    assert scope.as_fields() == {"visibility": "global", "communeId": "", "audienceCommunes": []}


def _record(author=ADMIN_ID, commune="dembeni", visibility="local"):
    return {"id": "d" * 24, "authorId": author, "visibility": visibility, "communeId": commune}


def test_author_in_scope_may_mutate(enforcer):
    enforcer.ensure_can_mutate(_admin(), _record())


def test_non_author_cannot_mutate_even_in_scope(enforcer):
    with pytest.raises(Forbidden) as err:
        enforcer.ensure_can_mutate(_admin(), _record(author=OTHER_ID))
    assert err.value.code == "not_author"


def test_author_out_of_scope_cannot_mutate(enforcer):
    with pytest.raises(Forbidden) as err:
        enforcer.ensure_can_mutate(_admin(), _record(commune="sada"))
    assert err.value.code == "out_of_scope"


def test_superadmin_mutates_anything(enforcer):
    enforcer.ensure_can_mutate(SUPER, _record(author=OTHER_ID, commune="sada"))


def test_update_without_scope_fields_keeps_scope(enforcer):
    assert enforcer.resolve_update(_admin(), _record(), ScopeRequest()) is None


def test_admin_update_cannot_move_record(enforcer):
    with pytest.raises(Forbidden):
        enforcer.resolve_update(_admin(), _record(), ScopeRequest(commune_id="sada"))
    with pytest.raises(Forbidden):
        enforcer.resolve_update(_admin(), _record(), ScopeRequest(Visibility.GLOBAL))


def test_superadmin_update_switches_to_custom(enforcer):
    scope = enforcer.resolve_update(
        SUPER, _record(), ScopeRequest(Visibility.CUSTOM, audience_communes=("sada",))
    )
    assert scope == Scope(Visibility.CUSTOM, "", ("sada",))


def test_superadmin_update_keeps_existing_commune(enforcer):
    scope = enforcer.resolve_update(SUPER, _record(commune="sada"), ScopeRequest(Visibility.LOCAL))
    assert scope == Scope(Visibility.LOCAL, "sada")
