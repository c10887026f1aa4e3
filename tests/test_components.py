"""Salary component tests — rule resolution, set validation, the component
service and the /components API.
"""

from __future__ import annotations

from decimal import Decimal

import pytest

from payzenix.common.constants import CalculationMethod, ComponentKind
from payzenix.common.exceptions import ConflictError, InvalidComponentConfiguration
from payzenix.components.engine import (
    SalaryComponentRule,
    SalaryComponentSet,
    validate_component,
)
from payzenix.components.schemas import SalaryComponentCreate, SalaryComponentUpdate
from payzenix.components.service import ComponentService


def _rule(code="hra", kind=ComponentKind.earning,
          method=CalculationMethod.percent_of_base, value="0.10", **kw) -> SalaryComponentRule:
    return SalaryComponentRule(
        code=code, name=code.upper(), kind=kind, method=method, value=Decimal(value), **kw,
    )


# ═════════════════════════════════════════════════════════════════════
# 1. RESOLUTION
# ═════════════════════════════════════════════════════════════════════


class TestResolve:

    def test_fixed_amount_is_returned_unchanged(self):
        rule = _rule(code="pt", method=CalculationMethod.fixed, value="200",
                     kind=ComponentKind.deduction)
        assert SalaryComponentSet.resolve(rule, Decimal("50000")) == Decimal("200")

    def test_percent_of_base(self):
        assert SalaryComponentSet.resolve(_rule(value="0.12"), Decimal("50000")) == Decimal("6000")

    def test_percent_rounds_half_up_to_whole_units(self):
        # 12345 * 0.10 = 1234.5
        assert SalaryComponentSet.resolve(_rule(), Decimal("12345")) == Decimal("1235")
        # 10001 * 0.12 = 1200.12
        assert SalaryComponentSet.resolve(_rule(value="0.12"), Decimal("10001")) == Decimal("1200")

    def test_inactive_component_resolves_to_zero(self):
        rule = _rule(is_active=False)
        assert SalaryComponentSet.resolve(rule, Decimal("50000")) == Decimal("0")


# ═════════════════════════════════════════════════════════════════════
# 2. VALIDATION
# ═════════════════════════════════════════════════════════════════════


class TestValidation:

    def test_rate_above_one_rejected(self):
        with pytest.raises(InvalidComponentConfiguration) as exc:
            validate_component(_rule(value="12"))
        assert exc.value.kind == "InvalidComponentConfiguration"

    def test_negative_fixed_amount_rejected(self):
        with pytest.raises(InvalidComponentConfiguration):
            validate_component(_rule(method=CalculationMethod.fixed, value="-1"))

    def test_basic_deduction_rejected(self):
        with pytest.raises(InvalidComponentConfiguration):
            validate_component(_rule(kind=ComponentKind.deduction, is_basic=True))

    def test_duplicate_codes_rejected(self):
        with pytest.raises(InvalidComponentConfiguration):
            SalaryComponentSet([_rule(code="hra"), _rule(code="hra", value="0.2")])

    def test_two_active_basic_components_rejected(self):
        with pytest.raises(InvalidComponentConfiguration):
            SalaryComponentSet([
                _rule(code="basic", value="1", is_basic=True),
                _rule(code="basic2", value="0.5", is_basic=True),
            ])

    def test_set_without_positive_earning_rejected(self):
        with pytest.raises(InvalidComponentConfiguration):
            SalaryComponentSet([
                _rule(code="special", method=CalculationMethod.fixed, value="0"),
                _rule(code="pf", kind=ComponentKind.deduction, value="0.12"),
            ])

    def test_inactive_earning_does_not_count(self):
        with pytest.raises(InvalidComponentConfiguration):
            SalaryComponentSet([_rule(is_active=False)])

    def test_set_is_ordered_and_partitioned(self):
        component_set = SalaryComponentSet([
            _rule(code="pf", kind=ComponentKind.deduction, value="0.12", sort_order=100),
            _rule(code="basic", value="1", is_basic=True, sort_order=0),
            _rule(code="hra", sort_order=10),
            _rule(code="lta", is_active=False, sort_order=20),
        ])
        assert [c.code for c in component_set] == ["basic", "hra", "lta", "pf"]
        assert component_set.basic_component.code == "basic"
        assert [c.code for c in component_set.earnings()] == ["hra"]
        assert [c.code for c in component_set.deductions()] == ["pf"]

    def test_with_component_replaces_same_code(self):
        component_set = SalaryComponentSet([_rule(code="hra")])
        updated = component_set.with_component(_rule(code="hra", value="0.4"))
        assert len(updated) == 1
        assert updated.get("hra").value == Decimal("0.4")
        # original set untouched
        assert component_set.get("hra").value == Decimal("0.10")


# ═════════════════════════════════════════════════════════════════════
# 3. SERVICE LAYER
# ═════════════════════════════════════════════════════════════════════


async def test_seed_default_components(db):
    created = await ComponentService.seed_default_components(db)
    assert {c.code for c in created} == {"basic", "hra", "special", "pf", "esi", "pt"}

    # Seeding again is a no-op
    assert await ComponentService.seed_default_components(db) == []


async def test_default_breakdown_preview(db):
    await ComponentService.seed_default_components(db)

    preview = await ComponentService.preview(db, Decimal("50000"))
    assert preview.basic_salary == Decimal("50000")
    assert preview.allowances == {
        "hra": Decimal("20000"), "special": Decimal("0"),
    }
    assert preview.deductions == {
        "pf": Decimal("6000"), "esi": Decimal("375"), "pt": Decimal("200"),
    }
    assert preview.gross_salary == Decimal("70000")
    assert preview.total_deductions == Decimal("6575")
    assert preview.net_salary == Decimal("63425")
    assert preview.taxable_earnings == Decimal("70000")


async def test_create_component_duplicate_code(db, standard_components):
    data = SalaryComponentCreate(
        code="hra", name="HRA again", kind=ComponentKind.earning,
        method=CalculationMethod.percent_of_base, value=Decimal("0.2"),
    )
    with pytest.raises(ConflictError):
        await ComponentService.create_component(db, data)


async def test_create_second_basic_rejected(db):
    await ComponentService.seed_default_components(db)
    data = SalaryComponentCreate(
        code="basic_alt", name="Alt basic", kind=ComponentKind.earning,
        method=CalculationMethod.percent_of_base, value=Decimal("0.5"), is_basic=True,
    )
    with pytest.raises(InvalidComponentConfiguration):
        await ComponentService.create_component(db, data)


async def test_update_component_revalidates_rate(db, standard_components):
    comp_id = standard_components[0]["id"]
    updated = await ComponentService.update_component(
        db, comp_id, SalaryComponentUpdate(value=Decimal("0.4")),
    )
    assert updated.value == Decimal("0.4")

    with pytest.raises(InvalidComponentConfiguration):
        await ComponentService.update_component(
            db, comp_id, SalaryComponentUpdate(value=Decimal("1.5")),
        )


async def test_deactivating_last_earning_rejected(db, standard_components):
    hra_id = standard_components[0]["id"]
    with pytest.raises(InvalidComponentConfiguration):
        await ComponentService.deactivate_component(db, hra_id)


async def test_deactivate_component(db):
    await ComponentService.seed_default_components(db)
    hra = next(c for c in await ComponentService.list_components(db) if c.code == "hra")

    result = await ComponentService.deactivate_component(db, hra.id)
    assert result.is_active is False

    active = await ComponentService.list_components(db, is_active=True)
    assert "hra" not in {c.code for c in active}


# ═════════════════════════════════════════════════════════════════════
# 4. API
# ═════════════════════════════════════════════════════════════════════


async def test_list_components_requires_hr(client, db, auth_headers, standard_components):
    await db.commit()
    resp = await client.get("/api/v1/components", headers=auth_headers)
    assert resp.status_code == 403


async def test_list_components(client, db, hr_headers, standard_components):
    await db.commit()
    resp = await client.get("/api/v1/components", headers=hr_headers)
    assert resp.status_code == 200
    body = resp.json()
    assert body["total"] == 2
    assert [c["code"] for c in body["data"]] == ["hra", "pf"]


async def test_create_component_via_api(client, db, admin_headers, standard_components):
    await db.commit()
    resp = await client.post(
        "/api/v1/components",
        json={
            "code": "pt", "name": "Professional Tax", "kind": "deduction",
            "method": "fixed", "value": "200",
        },
        headers=admin_headers,
    )
    assert resp.status_code == 201
    assert resp.json()["code"] == "pt"


async def test_create_component_invalid_rate_is_problem_json(client, db, admin_headers,
                                                             standard_components):
    await db.commit()
    resp = await client.post(
        "/api/v1/components",
        json={
            "code": "bonus", "name": "Bonus", "kind": "earning",
            "method": "percent_of_base", "value": "12",
        },
        headers=admin_headers,
    )
    assert resp.status_code == 422
    assert resp.headers["content-type"].startswith("application/problem+json")
    assert resp.json()["type"].endswith("/invalid-component-configuration")


async def test_create_component_value_beyond_rate_scale_rejected(client, db, admin_headers,
                                                                 standard_components):
    await db.commit()
    resp = await client.post(
        "/api/v1/components",
        json={
            "code": "bonus", "name": "Bonus", "kind": "earning",
            "method": "percent_of_base", "value": "0.12345",
        },
        headers=admin_headers,
    )
    assert resp.status_code == 422
    assert resp.json()["type"].endswith("/validation-error")


async def test_hr_cannot_create_component(client, db, hr_headers, standard_components):
    await db.commit()
    resp = await client.post(
        "/api/v1/components",
        json={
            "code": "lta", "name": "LTA", "kind": "earning",
            "method": "fixed", "value": "1000",
        },
        headers=hr_headers,
    )
    assert resp.status_code == 403


async def test_preview_via_api(client, db, hr_headers, standard_components):
    await db.commit()
    resp = await client.post(
        "/api/v1/components/preview",
        json={"base_salary": "50000"},
        headers=hr_headers,
    )
    assert resp.status_code == 200
    body = resp.json()
    assert Decimal(body["gross_salary"]) == Decimal("55000")
    assert Decimal(body["total_deductions"]) == Decimal("6000")
    assert Decimal(body["net_salary"]) == Decimal("49000")
