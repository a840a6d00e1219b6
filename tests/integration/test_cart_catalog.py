from datetime import timedelta
from decimal import Decimal

from agencyhub.domain.cart.service import CartService
from agencyhub.models import Cart, CartItem, Client, ServiceTemplate
from agencyhub.shared.clock import as_utc, utcnow

# ============================================================================
# STOREFRONT AND TEMPLATES
# ============================================================================


def test_store_lists_only_purchasable_services(client, make_template):
    make_template(name="Website Audit", price="100.00")
    make_template(name="Retired Package", is_active=False)
    make_template(name="Internal Retainer", is_purchasable=False)
    make_template(name="Quote On Request", price=None, is_purchasable=False)

    response = client.get("/store/services")

    assert response.status_code == 200
    services = response.json()
    assert [s["name"] for s in services] == ["Website Audit"]
    assert Decimal(services[0]["price"]) == Decimal("100.00")
    assert services[0]["requiresContract"] is False


def test_admin_creates_and_updates_templates(client, db_session, auth, admin_user):
    auth.login(admin_user)

    created = client.post(
        "/service-templates",
        json={
            "name": "  SEO Sprint ",
            "price": "950.00",
            "currency": "USD",
            "isPurchasable": True,
            "isActive": True,
            "maxQuantity": 3,
        },
    )

    assert created.status_code == 201, created.text
    template = created.json()
    assert template["name"] == "SEO Sprint"
    assert template["currency"] == "usd"
    assert template["requiresContract"] is False

    updated = client.patch(
        f"/service-templates/{template['id']}",
        json={"requiresContract": True, "contractTemplate": "Sprint terms", "description": "Two weeks of SEO work"},
    )
    assert updated.status_code == 200
    assert updated.json()["requiresContract"] is True
    assert db_session.get(ServiceTemplate, template["id"]).contract_template == "Sprint terms"

    cleared = client.patch(f"/service-templates/{template['id']}", json={"description": None})
    assert cleared.json()["description"] is None

    hidden = client.patch(f"/service-templates/{template['id']}", json={"isActive": False})
    assert hidden.json()["isActive"] is False
    assert client.get("/service-templates").json() == []
    assert len(client.get("/service-templates?includeInactive=true").json()) == 1


def test_template_rules(client, auth, admin_user, make_template):
    auth.login(admin_user)
    template = make_template(price="500.00")

    no_contract_text = client.post("/service-templates", json={"name": "Retainer", "requiresContract": True})
    no_price = client.post("/service-templates", json={"name": "Audit", "isPurchasable": True})
    unpriced_update = client.patch(f"/service-templates/{template.id}", json={"price": None})
    contract_update = client.patch(f"/service-templates/{template.id}", json={"requiresContract": True})

    assert no_contract_text.status_code == 400
    assert no_price.status_code == 400
    assert unpriced_update.status_code == 400
    assert unpriced_update.json()["error"]["details"][0]["field"] == "price"
    assert contract_update.status_code == 400
    assert client.patch("/service-templates/9999", json={"name": "x"}).status_code == 404


def test_template_management_requires_admin(client, auth, client_user):
    auth.login(client_user)

    assert client.get("/service-templates").status_code == 403
    assert client.post("/service-templates", json={"name": "x"}).status_code == 403


# ============================================================================
# CART
# ============================================================================


def test_cart_add_increment_and_totals(client, auth, client_user, make_template):
    audit = make_template(name="Website Audit", price="100.00")
    logo = make_template(name="Logo Design", price="49.99")
    auth.login(client_user)

    client.post("/cart/items", json={"serviceTemplateId": audit.id})
    client.post("/cart/items", json={"serviceTemplateId": audit.id, "quantity": 2})
    response = client.post("/cart/items", json={"serviceTemplateId": logo.id})

    assert response.status_code == 200
    cart = response.json()
    assert [(i["name"], i["quantity"]) for i in cart["items"]] == [("Website Audit", 3), ("Logo Design", 1)]
    assert cart["itemCount"] == 4
    assert Decimal(cart["subtotal"]) == Decimal("349.99")
    assert cart["currency"] == "usd"


def test_cart_respects_max_quantity(client, auth, client_user, make_template):
    template = make_template(max_quantity=2)
    auth.login(client_user)
    client.post("/cart/items", json={"serviceTemplateId": template.id, "quantity": 2})

    response = client.post("/cart/items", json={"serviceTemplateId": template.id})

    assert response.status_code == 400
    assert response.json()["error"]["details"][0]["field"] == "quantity"
    assert client.get("/cart").json()["items"][0]["quantity"] == 2
    assert client.patch(f"/cart/items/{template.id}", json={"quantity": 3}).status_code == 400


def test_cart_update_remove_and_clear(client, auth, client_user, make_template):
    audit = make_template(name="Website Audit")
    logo = make_template(name="Logo Design")
    auth.login(client_user)
    client.post("/cart/items", json={"serviceTemplateId": audit.id})
    client.post("/cart/items", json={"serviceTemplateId": logo.id})

    updated = client.patch(f"/cart/items/{audit.id}", json={"quantity": 4}).json()
    assert updated["items"][0]["quantity"] == 4

    removed = client.delete(f"/cart/items/{logo.id}").json()
    assert [i["name"] for i in removed["items"]] == ["Website Audit"]
    assert client.delete(f"/cart/items/{logo.id}").status_code == 404

    assert client.delete("/cart").json() == {"success": True}
    assert client.get("/cart").json()["items"] == []


def test_cart_rejects_unavailable_services(client, auth, client_user, make_template):
    draft = make_template(is_purchasable=False)
    retired = make_template(is_active=False)
    auth.login(client_user)

    assert client.post("/cart/items", json={"serviceTemplateId": draft.id}).status_code == 400
    assert client.post("/cart/items", json={"serviceTemplateId": retired.id}).status_code == 404
    assert client.post("/cart/items", json={"serviceTemplateId": 9999}).status_code == 404


def test_withdrawn_service_is_flagged_in_cart(client, db_session, auth, client_user, make_template):
    template = make_template(price="100.00")
    auth.login(client_user)
    client.post("/cart/items", json={"serviceTemplateId": template.id})

    template.is_purchasable = False
    db_session.commit()

    cart = client.get("/cart").json()
    assert cart["items"][0]["available"] is False
    assert cart["items"][0]["lineTotal"] is None
    assert Decimal(cart["subtotal"]) == Decimal("0.00")


def test_checkout_empties_the_cart(client, auth, client_user, checkout, make_template):
    template = make_template()
    auth.login(client_user)
    client.post("/cart/items", json={"serviceTemplateId": template.id})

    checkout((template, 1))

    assert client.get("/cart").json()["items"] == []


def test_expired_cart_starts_over(client, db_session, auth, client_user, agency_client, make_template):
    template = make_template()
    auth.login(client_user)
    client.post("/cart/items", json={"serviceTemplateId": template.id})

    cart = db_session.query(Cart).filter(Cart.client_id == agency_client.id).one()
    cart.expires_at = utcnow() - timedelta(minutes=1)
    db_session.commit()

    body = client.get("/cart").json()

    assert body["items"] == []
    db_session.expire_all()
    assert as_utc(db_session.get(Cart, cart.id).expires_at) > utcnow()


def test_purge_expired_carts(db_session, agency_client, make_template):
    template = make_template()
    other = Client(name="Rival Inc")
    db_session.add(other)
    db_session.flush()
    expired = Cart(client_id=agency_client.id, expires_at=utcnow() - timedelta(days=1))
    expired.items.append(CartItem(service_template_id=template.id, quantity=1))
    current = Cart(client_id=other.id, expires_at=utcnow() + timedelta(days=1))
    db_session.add_all([expired, current])
    db_session.commit()

    removed = CartService(db_session).purge_expired()

    assert removed == 1
    assert [c.client_id for c in db_session.query(Cart).all()] == [other.id]
    assert db_session.query(CartItem).count() == 0


def test_cart_requires_client_role(client, auth, admin_user):
    auth.login(admin_user)

    assert client.get("/cart").status_code == 403
