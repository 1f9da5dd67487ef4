from datetime import datetime, timezone
from decimal import Decimal

from app.core.auth.dependencies import get_current_user
from app.core.auth.schemas import Actor, UserRole
from app.main import app as fastapi_app
from app.modules.promotions.schemas import CartEvaluationRequest
from app.shared.database import models
from helpers import seed_bundle_row, seed_rule_row

BASE = "/api/v1/promotions"


def rule_payload(**overrides):
    payload = {
        "name": "10% llevando 3",
        "rule_type": "quantity_discount",
        "priority": 1,
        "start_date": "2020-01-01T00:00:00",
        "min_quantity": 3,
        "discount_type": "percentage",
        "discount_value": "10",
        "applies_to": "all",
    }
    payload.update(overrides)
    return payload


def cart(*items):
    return {"items": [
        {"product_id": p, "quantity": q, "unit_price": price} for p, q, price in items
    ]}


def as_role(role):
    fastapi_app.dependency_overrides[get_current_user] = lambda: Actor(id=2, role=role)


# ==================== SALUD ====================

def test_health(client):
    r = client.get("/api/v1/health")
    assert r.status_code == 200
    assert r.json()["status"] == "healthy"


def test_missing_token_is_401(client):
    del fastapi_app.dependency_overrides[get_current_user]
    r = client.post(f"{BASE}/detect", json=cart((1, 1, "10.00")))
    assert r.status_code == 401


# ==================== MOTOR ====================

def test_detect_buy_two_get_one(client, db_session):
    seed_rule_row(
        db_session, rule_type="buy_x_get_y", min_quantity=None,
        buy_quantity=2, get_quantity=1, discount_value=Decimal("100"),
    )
    r = client.post(f"{BASE}/detect", json=cart((1, 9, "10.00")))

    assert r.status_code == 200
    body = r.json()
    assert body["success"] is True
    assert body["result"]["total_discount"] == "30.00"
    application = body["result"]["applications"][0]
    assert application["source_kind"] == "rule"
    assert application["affected_lines"] == [
        {"product_id": 1, "variant_id": None, "quantity_affected": 3}
    ]


def test_detect_empty_cart(client):
    r = client.post(f"{BASE}/detect", json={"items": []})
    assert r.status_code == 200
    assert r.json()["result"] == {"applications": [], "total_discount": "0.00"}


def test_detect_rejects_bad_lines(client):
    r = client.post(f"{BASE}/detect", json=cart((1, 0, "10.00")))
    assert r.status_code == 422


def test_detect_rejects_oversized_cart(client):
    items = [(i, 1, "1.00") for i in range(1, 202)]
    r = client.post(f"{BASE}/detect", json=cart(*items))
    assert r.status_code == 400


def test_finalize_records_usage(client, db_session):
    rule_id = seed_rule_row(db_session).id
    r = client.post(f"{BASE}/finalize", json={"sale_id": 15, **cart((1, 2, "25.00"))})

    assert r.status_code == 200
    body = r.json()
    assert body["sale_id"] == 15
    assert body["result"]["total_discount"] == "5.00"
    assert body["discount_reduced_at_commit"] is None

    detail = client.get(f"{BASE}/rules/{rule_id}").json()
    assert detail["used_count"] == 1
    assert [u["sale_id"] for u in detail["usage_history"]] == [15]


# ==================== REGLAS ====================

def test_create_and_get_rule(client):
    r = client.post(f"{BASE}/rules", json=rule_payload())
    assert r.status_code == 201
    created = r.json()
    assert created["status"] == "active"
    assert created["used_count"] == 0
    assert Decimal(created["discount_value"]) == Decimal("10")

    r = client.get(f"{BASE}/rules/{created['id']}")
    assert r.status_code == 200
    assert r.json()["usage_history"] == []


def test_create_rule_with_product_scope(client):
    r = client.post(f"{BASE}/rules", json=rule_payload(applies_to="product", product_ids=[3, 1, 3]))
    assert r.status_code == 201
    assert sorted(t["product_id"] for t in r.json()["targets"]) == [1, 3]


def test_create_rule_validation(client):
    bad_payloads = [
        rule_payload(discount_value="150"),
        rule_payload(rule_type="buy_x_get_y", min_quantity=None),
        rule_payload(rule_type="buy_x_get_y", buy_quantity=2, get_quantity=1, discount_type="fixed"),
        rule_payload(rule_type="quantity_discount", min_quantity=None),
        rule_payload(rule_type="category_discount"),
        rule_payload(applies_to="category", category_ids=[]),
        rule_payload(end_date="2019-01-01T00:00:00"),
        rule_payload(discount_type="fixed_price"),
    ]
    for payload in bad_payloads:
        assert client.post(f"{BASE}/rules", json=payload).status_code == 422


def test_rule_status_is_computed(client, db_session):
    seed_rule_row(db_session, name="futura", start_date=datetime(2099, 1, 1))
    seed_rule_row(db_session, name="vencida", start_date=datetime(2020, 1, 1), end_date=datetime(2020, 2, 1))
    seed_rule_row(db_session, name="apagada", start_date=datetime(2020, 1, 1), is_active=False)

    data = client.get(f"{BASE}/rules").json()["data"]
    assert {r["name"]: r["status"] for r in data} == {
        "futura": "scheduled",
        "vencida": "expired",
        "apagada": "disabled",
    }


def test_list_rules_filters_and_paginates(client, db_session):
    for i in range(5):
        seed_rule_row(db_session, name=f"Regla {i}", priority=5 - i)
    seed_rule_row(db_session, name="Otra", is_active=False, priority=0)

    body = client.get(f"{BASE}/rules", params={"is_active": True, "limit": 2, "page": 1}).json()
    assert body["pagination"] == {"total": 5, "page": 1, "limit": 2, "total_pages": 3}
    assert [r["name"] for r in body["data"]] == ["Regla 4", "Regla 3"]

    found = client.get(f"{BASE}/rules", params={"search": "otra"}).json()["data"]
    assert [r["name"] for r in found] == ["Otra"]


def test_update_rule(client, db_session):
    rule_id = seed_rule_row(db_session, used_count=3).id

    r = client.put(f"{BASE}/rules/{rule_id}", json=rule_payload(name="Nueva", max_uses=5))
    assert r.status_code == 200
    assert r.json()["name"] == "Nueva"
    assert r.json()["used_count"] == 3

    r = client.put(f"{BASE}/rules/{rule_id}", json=rule_payload(max_uses=2))
    assert r.status_code == 400


def test_update_missing_rule_is_404(client):
    assert client.put(f"{BASE}/rules/999", json=rule_payload()).status_code == 404


def test_delete_unused_rule(client, db_session):
    rule_id = seed_rule_row(db_session).id

    r = client.delete(f"{BASE}/rules/{rule_id}")
    assert r.status_code == 200
    assert r.json()["deleted"] is True
    assert client.get(f"{BASE}/rules/{rule_id}").status_code == 404


def test_delete_used_rule_only_deactivates(client, db_session):
    rule_id = seed_rule_row(db_session).id
    client.post(f"{BASE}/finalize", json={"sale_id": 1, **cart((1, 1, "10.00"))})

    r = client.delete(f"{BASE}/rules/{rule_id}")
    assert r.status_code == 200
    assert r.json()["deleted"] is False

    rule = client.get(f"{BASE}/rules/{rule_id}").json()
    assert rule["is_active"] is False
    assert rule["status"] == "disabled"


def test_rule_stats(client, db_session):
    seed_rule_row(db_session, start_date=datetime(2020, 1, 1))
    seed_rule_row(db_session, start_date=datetime(2020, 1, 1), end_date=datetime(2020, 6, 1))
    client.post(f"{BASE}/finalize", json={"sale_id": 3, **cart((1, 1, "10.00"))})

    r = client.get(f"{BASE}/rules/stats")
    assert r.status_code == 200
    body = r.json()
    assert body["total_rules"] == 2
    assert body["active_count"] == 1
    assert body["expired_count"] == 1
    assert Decimal(body["savings_this_month"]) == Decimal("1.00")


# ==================== COMBOS ====================

def bundle_payload(**overrides):
    payload = {
        "name": "Camiseta + gorra",
        "discount_type": "percentage",
        "discount_value": "10",
        "items": [
            {"product_id": 10, "quantity_required": 1},
            {"product_id": 20, "variant_id": 4, "quantity_required": 2},
        ],
    }
    payload.update(overrides)
    return payload


def test_bundle_crud(client):
    r = client.post(f"{BASE}/bundles", json=bundle_payload())
    assert r.status_code == 201
    bundle = r.json()
    assert bundle["is_active"] is True
    assert len(bundle["items"]) == 2

    r = client.put(f"{BASE}/bundles/{bundle['id']}", json={"is_active": False, "items": [{"product_id": 30}]})
    assert r.status_code == 200
    assert r.json()["is_active"] is False
    assert [(i["product_id"], i["quantity_required"]) for i in r.json()["items"]] == [(30, 1)]

    assert client.get(f"{BASE}/bundles", params={"active_only": True}).json() == []
    assert len(client.get(f"{BASE}/bundles").json()) == 1

    r = client.delete(f"{BASE}/bundles/{bundle['id']}")
    assert r.status_code == 200
    assert client.get(f"{BASE}/bundles/{bundle['id']}").status_code == 404


def test_bundle_validation(client, db_session):
    assert client.post(f"{BASE}/bundles", json=bundle_payload(discount_value="101")).status_code == 422
    assert client.post(f"{BASE}/bundles", json=bundle_payload(items=[])).status_code == 422

    bundle_id = seed_bundle_row(db_session, [(10, 1)]).id
    r = client.put(f"{BASE}/bundles/{bundle_id}", json={"discount_value": "150"})
    assert r.status_code == 400


def test_used_bundle_cannot_be_deleted(client, db_session):
    bundle_id = seed_bundle_row(db_session, [(10, 1), (20, 1)]).id
    r = client.post(f"{BASE}/finalize", json={"sale_id": 8, **cart((10, 1, "30.00"), (20, 1, "20.00"))})
    assert r.json()["result"]["total_discount"] == "5.00"

    r = client.delete(f"{BASE}/bundles/{bundle_id}")
    assert r.status_code == 400
    assert db_session.query(models.SaleBundle).count() == 1


# ==================== PERMISOS ====================

def test_cashier_cannot_manage_rules(client):
    as_role(UserRole.VENDEDOR)
    assert client.post(f"{BASE}/rules", json=rule_payload()).status_code == 403
    assert client.get(f"{BASE}/rules/stats").status_code == 403
    assert client.delete(f"{BASE}/bundles/1").status_code == 403


def test_cashier_can_detect_and_read(client):
    as_role(UserRole.VENDEDOR)
    assert client.post(f"{BASE}/detect", json=cart((1, 1, "10.00"))).status_code == 200
    assert client.get(f"{BASE}/rules").status_code == 200
    assert client.get(f"{BASE}/bundles").status_code == 200


# ==================== FECHAS CON ZONA HORARIA ====================

def test_evaluated_at_with_zone_is_normalized():
    request = CartEvaluationRequest(evaluated_at="2026-10-18T12:00:00Z")
    assert request.evaluated_at.tzinfo is None
    assert request.evaluated_at == datetime(2026, 10, 18, 12, tzinfo=timezone.utc).astimezone().replace(tzinfo=None)


def test_detect_and_finalize_accept_utc_instant(client, db_session):
    seed_rule_row(db_session)
    body = {"evaluated_at": "2026-10-18T12:00:00Z", **cart((1, 1, "10.00"))}

    r = client.post(f"{BASE}/detect", json=body)
    assert r.status_code == 200
    assert r.json()["result"]["total_discount"] == "1.00"

    r = client.post(f"{BASE}/finalize", json={"sale_id": 4, **body})
    assert r.status_code == 200
    assert r.json()["result"]["total_discount"] == "1.00"


def test_rule_dates_with_offset_are_stored_naive(client):
    r = client.post(f"{BASE}/rules", json=rule_payload(
        start_date="2020-01-01T00:00:00+02:00",
        end_date="2099-01-01T00:00:00Z",
    ))
    assert r.status_code == 201
    assert r.json()["status"] == "active"
    assert datetime.fromisoformat(r.json()["start_date"]).tzinfo is None

    r = client.post(f"{BASE}/detect", json={"evaluated_at": "2026-10-18T12:00:00-05:00", **cart((1, 3, "10.00"))})
    assert r.status_code == 200
    assert r.json()["result"]["total_discount"] == "3.00"


def test_bundle_dates_with_offset_are_stored_naive(client):
    r = client.post(f"{BASE}/bundles", json=bundle_payload(
        start_date="2020-01-01T00:00:00Z",
        end_date="2099-01-01T00:00:00+01:00",
    ))
    assert r.status_code == 201
    bundle_id = r.json()["id"]

    r = client.put(f"{BASE}/bundles/{bundle_id}", json={"end_date": "2098-01-01T00:00:00Z"})
    assert r.status_code == 200
    assert datetime.fromisoformat(r.json()["end_date"]).tzinfo is None

    r = client.post(f"{BASE}/detect", json={"evaluated_at": "2026-10-18T12:00:00Z", **cart((10, 1, "30.00"))})
    assert r.status_code == 200


# ==================== ACTUALIZACIÓN PARCIAL DE COMBOS ====================

def test_bundle_update_rejects_null_required_fields(client, db_session):
    bundle_id = seed_bundle_row(db_session, [(10, 1)]).id

    for field in ("is_active", "name", "discount_type", "discount_value"):
        r = client.put(f"{BASE}/bundles/{bundle_id}", json={field: None})
        assert r.status_code == 422, field

    bundle = client.get(f"{BASE}/bundles/{bundle_id}").json()
    assert bundle["is_active"] is True
    assert bundle["name"] == "Combo"


def test_bundle_update_allows_clearing_optional_fields(client, db_session):
    bundle_id = seed_bundle_row(db_session, [(10, 1)], description="Promo", end_date=datetime(2099, 1, 1)).id

    r = client.put(f"{BASE}/bundles/{bundle_id}", json={"description": None, "end_date": None})
    assert r.status_code == 200
    assert r.json()["description"] is None
    assert r.json()["end_date"] is None


def test_bundle_update_validates_against_stored_values(client, db_session):
    fixed_id = seed_bundle_row(db_session, [(10, 1)], discount_type="fixed", discount_value=Decimal("150")).id
    r = client.put(f"{BASE}/bundles/{fixed_id}", json={"discount_type": "percentage"})
    assert r.status_code == 400

    percentage_id = seed_bundle_row(db_session, [(20, 1)]).id
    r = client.put(f"{BASE}/bundles/{percentage_id}", json={"discount_type": "fixed", "discount_value": "150"})
    assert r.status_code == 200
    assert r.json()["discount_type"] == "fixed"
