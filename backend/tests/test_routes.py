# Overview: Pytest coverage for the HTTP binding: auth, structured errors and ledger routes.

from retail_ledger.models import SessionToken
from retail_ledger.time_utils import utcnow


class TestAuthRoutes:
    def test_login_returns_token_and_user(self, client, rep_a1):
        response = client.post("/api/auth/login", json={"email": rep_a1.email, "password": "Password123!"})
        assert response.status_code == 200
        body = response.get_json()
        assert len(body["token"]) == 64
        assert body["user"]["role"] == "SALES_REP"
        assert "password_hash" not in body["user"]

    def test_bad_password_is_unauthorized(self, client, rep_a1):
        response = client.post("/api/auth/login", json={"email": rep_a1.email, "password": "WrongPass1!"})
        assert response.status_code == 401

    def test_protected_route_requires_token(self, client, db_session):
        response = client.get("/api/sales")
        assert response.status_code == 401
        assert response.get_json()["error"] == "UNAUTHORIZED"

    def test_me_and_logout(self, client, exec_a1, auth_headers):
        headers = auth_headers(exec_a1)

        me = client.get("/api/auth/me", headers=headers)
        assert me.status_code == 200
        assert me.get_json()["actor"] == {
            "user_id": exec_a1.id,
            "role": "STORE_EXECUTIVE",
            "business_id": exec_a1.business_id,
            "outlet_id": exec_a1.outlet_id,
        }

        assert client.post("/api/auth/logout", headers=headers).status_code == 200
        assert client.get("/api/auth/me", headers=headers).status_code == 401

    def test_idle_session_is_revoked(self, app, client, db_session, rep_a1, auth_headers):
        headers = auth_headers(rep_a1)
        session = db_session.query(SessionToken).filter_by(user_id=rep_a1.id).one()
        session.last_used_at = utcnow().replace(year=2000)
        session.expires_at = utcnow().replace(year=2100)
        db_session.commit()

        assert client.get("/api/auth/me", headers=headers).status_code == 401
        db_session.refresh(session)
        assert session.is_revoked is True


class TestSalesRoutes:
    def test_record_and_fetch_sale(self, client, rep_a1, auth_headers, outlet_a1, make_product):
        product = make_product(outlet_a1, name="Rice", price_cents=500, quantity=10)
        headers = auth_headers(rep_a1)

        response = client.post("/api/sales", headers=headers, json={
            "products": [{"product_id": product.id, "quantity": 3}],
            "discount_cents": 200,
            "amount_paid_cents": 1300,
            "payment_channel": "cash",
        })
        assert response.status_code == 201, response.get_json()
        sale = response.get_json()["sale"]
        assert sale["total_amount_cents"] == 1300
        assert sale["remaining_to_pay_cents"] == 0
        assert sale["payment_channel"] == "CASH"
        assert sale["products"][0]["quantity"] == 3

        fetched = client.get(f"/api/sales/{sale['id']}", headers=headers)
        assert fetched.status_code == 200
        assert fetched.get_json()["sale"]["id"] == sale["id"]

        listed = client.get("/api/sales?limit=5&sort_order=asc", headers=headers)
        assert listed.status_code == 200
        assert listed.get_json()["total_items"] == 1

    def test_insufficient_stock_is_structured(self, client, rep_a1, auth_headers, outlet_a1, make_product):
        product = make_product(outlet_a1, quantity=1)

        response = client.post("/api/sales", headers=auth_headers(rep_a1), json={
            "products": [{"product_id": product.id, "quantity": 2}],
            "amount_paid_cents": 0,
            "payment_channel": "CASH",
        })
        assert response.status_code == 400
        body = response.get_json()
        assert body["error"] == "INSUFFICIENT_STOCK"
        assert body["details"]["available_quantity"] == 1

    def test_validation_errors(self, client, rep_a1, auth_headers, outlet_a1):
        headers = auth_headers(rep_a1)

        missing = client.post("/api/sales", headers=headers, json={"payment_channel": "CASH"})
        assert missing.status_code == 400
        assert missing.get_json()["error"] == "VALIDATION_ERROR"

        unknown = client.post("/api/sales", headers=headers, json={"products": [], "coupon": "X"})
        assert unknown.status_code == 400

    def test_return_twice_conflicts(self, client, rep_a1, exec_a1, auth_headers, outlet_a1, make_product):
        product = make_product(outlet_a1, quantity=5)
        created = client.post("/api/sales", headers=auth_headers(rep_a1), json={
            "products": [{"product_id": product.id, "quantity": 1}],
            "amount_paid_cents": 500,
            "payment_channel": "CARD",
        }).get_json()["sale"]

        exec_headers = auth_headers(exec_a1)
        first = client.put(f"/api/sales/{created['id']}/status", headers=exec_headers, json={"status": "RETURNED"})
        assert first.status_code == 200
        assert first.get_json()["sale"]["status"] == "RETURNED"

        second = client.put(f"/api/sales/{created['id']}/status", headers=exec_headers, json={"status": "RETURNED"})
        assert second.status_code == 409
        assert second.get_json()["error"] == "CONFLICT"

    def test_sales_rep_cannot_return(self, client, rep_a1, auth_headers, outlet_a1, make_product):
        product = make_product(outlet_a1, quantity=5)
        headers = auth_headers(rep_a1)
        created = client.post("/api/sales", headers=headers, json={
            "products": [{"product_id": product.id, "quantity": 1}],
            "amount_paid_cents": 500,
            "payment_channel": "CASH",
        }).get_json()["sale"]

        response = client.put(f"/api/sales/{created['id']}/status", headers=headers, json={"status": "RETURNED"})
        assert response.status_code == 403
        assert response.get_json()["error"] == "FORBIDDEN"

    def test_foreign_sale_is_not_found(self, client, rep_a1, exec_b1, auth_headers, outlet_a1, make_product):
        product = make_product(outlet_a1, quantity=5)
        created = client.post("/api/sales", headers=auth_headers(rep_a1), json={
            "products": [{"product_id": product.id, "quantity": 1}],
            "amount_paid_cents": 500,
            "payment_channel": "CASH",
        }).get_json()["sale"]

        response = client.get(f"/api/sales/{created['id']}", headers=auth_headers(exec_b1))
        assert response.status_code == 404
        assert response.get_json()["error"] == "NOT_FOUND"


class TestInventoryRoutes:
    def test_record_complete_reconcile(self, client, exec_a1, auth_headers, outlet_a1, make_product, stock_of):
        product = make_product(outlet_a1, quantity=10)
        headers = auth_headers(exec_a1)

        recorded = client.post(f"/api/inventories/outlets/{outlet_a1.id}", headers=headers, json={
            "products": [{"product_id": product.id, "counted": 8}],
        })
        assert recorded.status_code == 201, recorded.get_json()
        inventory = recorded.get_json()["inventory"]
        assert inventory["products"][0]["amount_in_db"] == 10

        completed = client.put(f"/api/inventories/{inventory['id']}/complete", headers=headers)
        assert completed.get_json()["inventory"]["status"] == "COMPLETED"

        reconciled = client.put(f"/api/inventories/{inventory['id']}/reconcile", headers=headers, json={
            "products": [{"product_id": product.id, "reconciled_quantity": 8}],
        })
        assert reconciled.status_code == 200
        assert reconciled.get_json()["inventory"]["status"] == "RECONCILED"
        assert stock_of(product.id) == 8

        again = client.put(f"/api/inventories/{inventory['id']}/reconcile", headers=headers, json={
            "products": [{"product_id": product.id, "reconciled_quantity": 1}],
        })
        assert again.status_code == 409
        assert stock_of(product.id) == 8

        listed = client.get("/api/inventories?status=reconciled", headers=headers)
        assert listed.get_json()["total_items"] == 1


class TestProductAndSystemRoutes:
    def test_product_reads_are_scoped(self, client, exec_a1, auth_headers, outlet_a1, outlet_b1, make_product):
        mine = make_product(outlet_a1, name="Tea", quantity=3)
        theirs = make_product(outlet_b1, name="Coffee", quantity=3)
        headers = auth_headers(exec_a1)

        listed = client.get("/api/products", headers=headers).get_json()
        assert [p["name"] for p in listed["data"]] == ["Tea"]

        assert client.get(f"/api/products/{mine.id}", headers=headers).status_code == 200
        assert client.get(f"/api/products/{theirs.id}", headers=headers).status_code == 404

    def test_health(self, client, db_session):
        response = client.get("/health")
        assert response.status_code == 200
        body = response.get_json()
        assert body["checks"]["database"]["status"] == "healthy"
        assert body["checks"]["cache"]["enabled"] is True
