from datetime import datetime, timedelta

from database import ORDERS, PRODUCTS, create_document
from conftest import auth


def paid_order(mongo, ref, total, user=None, status="processing", payment="paid", created=None, items=None):
    doc = {
        "orderRef": ref,
        "customerInfo": {"firstName": "Sara", "lastName": "Khalid", "email": "sara@example.com"},
        "items": items or [{"productId": "p1", "productName": "Cozy Hoodie", "category": "hoodies",
                            "price": total - 25, "quantity": 1, "size": "M", "color": "Black"}],
        "total": total,
        "status": status,
        "paymentStatus": payment,
        "userId": str(user["_id"]) if user else None,
    }
    if created:
        doc["createdAt"] = created
    return create_document(mongo, ORDERS, doc)


def test_admin_routes_require_admin(client, customer):
    for path in ("/api/admin/orders", "/api/admin/users", "/api/admin/analytics/sales"):
        resp = client.get(path, headers=auth(customer))
        assert resp.status_code == 403
        assert resp.json()["error"] == "Unauthorized"


def test_admin_orders_stats(client, mongo, admin):
    paid_order(mongo, "WR-1", 224)
    paid_order(mongo, "WR-2", 174, status="shipped")
    paid_order(mongo, "WR-3", 100, status="pending", payment="pending")

    body = client.get("/api/admin/orders", params={"status": "shipped"}, headers=auth(admin)).json()
    assert [o["orderRef"] for o in body["data"]] == ["WR-2"]
    assert body["stats"]["totalOrders"] == 3
    assert body["stats"]["totalRevenue"] == 498
    assert body["stats"]["statusBreakdown"] == {"processing": 1, "shipped": 1, "pending": 1}

    found = client.get("/api/admin/orders", params={"search": "wr-3"}, headers=auth(admin)).json()
    assert found["pagination"]["totalOrders"] == 1


def test_admin_users_with_order_stats(client, mongo, admin, customer):
    paid_order(mongo, "WR-1", 224, user=customer)
    paid_order(mongo, "WR-2", 76, user=customer)

    body = client.get("/api/admin/users", params={"role": "customer"}, headers=auth(admin)).json()
    assert body["stats"] == {"totalCustomers": 1, "totalAdmins": 1, "totalUsers": 2}
    assert body["data"][0]["orderStats"] == {"totalOrders": 2, "totalSpent": 300, "averageOrderValue": 150}
    assert "password" not in body["data"][0]


def test_sales_analytics_counts_paid_orders_only(client, mongo, admin):
    paid_order(mongo, "WR-1", 224)
    paid_order(mongo, "WR-2", 176)
    paid_order(mongo, "WR-3", 999, payment="failed", status="cancelled")
    paid_order(mongo, "WR-4", 500, created=datetime.utcnow() - timedelta(days=60))

    recent = client.get("/api/admin/analytics/sales", params={"period": "30days"}, headers=auth(admin)).json()
    assert recent["data"]["overview"] == {"totalRevenue": 400, "totalOrders": 2, "avgOrderValue": 200}
    assert recent["data"]["paymentStatusBreakdown"]["failed"]["count"] == 1
    assert recent["dateRange"] is not None

    everything = client.get("/api/admin/analytics/sales", params={"period": "all"}, headers=auth(admin)).json()
    assert everything["data"]["overview"]["totalRevenue"] == 900
    assert everything["dateRange"] is None

    bad = client.get("/api/admin/analytics/sales", params={"period": "decade"}, headers=auth(admin))
    assert bad.status_code == 400


def test_product_and_customer_analytics(client, mongo, admin, customer):
    create_document(mongo, PRODUCTS, {"name": "Cozy Hoodie", "price": 199, "category": "hoodies", "stock": 3})
    create_document(mongo, PRODUCTS, {"name": "Stylish Hat", "price": 15.99, "category": "hats", "stock": 0})
    paid_order(mongo, "WR-1", 224, user=customer)
    paid_order(mongo, "WR-2", 224, user=customer)

    products = client.get("/api/admin/analytics/products", headers=auth(admin)).json()["data"]
    assert products["inventoryOverview"]["outOfStockCount"] == 1
    assert products["bestSelling"][0]["quantitySold"] == 2
    assert products["popularColors"] == [{"color": "Black", "count": 2}]
    assert [p["name"] for p in products["lowStockProducts"]] == ["Cozy Hoodie"]

    customers = client.get("/api/admin/analytics/customers", headers=auth(admin)).json()["data"]
    assert customers["overview"]["totalCustomers"] == 1
    assert customers["overview"]["repeatCustomerRate"] == 100
    assert customers["topCustomers"][0]["totalSpent"] == 448


def test_bulk_operations(client, mongo, admin):
    ids = [str(create_document(mongo, PRODUCTS, {"name": n, "price": 10, "category": "hats",
                                                 "stock": 5, "featured": False})["_id"]) for n in ("A", "B")]
    headers = auth(admin)

    toggled = client.post("/api/admin/products/bulk", json={"operation": "toggleFeatured", "productIds": ids},
                          headers=headers)
    assert toggled.json()["data"] == {"updatedCount": 2}
    assert mongo[PRODUCTS].count_documents({"featured": True}) == 2

    stock = client.post("/api/admin/products/bulk",
                        json={"operation": "updateStock", "productIds": ids, "updates": {"stock": 40}},
                        headers=headers)
    assert stock.json()["data"]["modifiedCount"] == 2

    no_stock = client.post("/api/admin/products/bulk",
                           json={"operation": "updateStock", "productIds": ids, "updates": {}}, headers=headers)
    assert no_stock.status_code == 400

    unknown = client.post("/api/admin/products/bulk", json={"operation": "archive", "productIds": ids},
                          headers=headers)
    assert unknown.status_code == 400
    assert unknown.json()["error"] == "Unknown operation: archive"

    deleted = client.post("/api/admin/products/bulk", json={"operation": "delete", "productIds": ids},
                          headers=headers)
    assert deleted.json()["data"] == {"deletedCount": 2}


def test_seed_once(client, mongo, admin):
    first = client.post("/api/admin/seed", headers=auth(admin)).json()
    second = client.post("/api/admin/seed", headers=auth(admin)).json()
    assert first["data"]["seeded"] is True
    assert second["data"]["seeded"] is False
    assert mongo[PRODUCTS].count_documents({}) == first["data"]["count"]


def test_report_buckets_and_daily_series(client, mongo, admin, make_user):
    big = make_user(email="big@example.com", fragmentPoints=120)
    small = make_user(email="small@example.com", fragmentPoints=40)
    day = datetime(2026, 3, 14, 12, 0)
    paid_order(mongo, "WR-1", 6000, user=big, created=day)
    paid_order(mongo, "WR-2", 6000, user=big, created=day)
    paid_order(mongo, "WR-3", 75, user=small, created=day + timedelta(days=1))

    sales = client.get("/api/admin/analytics/sales", params={"period": "all"}, headers=auth(admin)).json()["data"]
    assert sales["revenueOverTime"] == [
        {"date": "2026-03-14", "revenue": 12000, "orders": 2},
        {"date": "2026-03-15", "revenue": 75, "orders": 1},
    ]
    assert sales["revenueByCategory"] == [{"category": "hoodies", "revenue": 12000, "orderCount": 3}]

    customers = client.get("/api/admin/analytics/customers", params={"period": "all"},
                           headers=auth(admin)).json()["data"]
    assert customers["lifetimeValueDistribution"] == [
        {"range": "0-100", "count": 1, "avgSpent": 75},
        {"range": "10000+", "count": 1, "avgSpent": 12000},
    ]
    assert customers["customerSegments"] == [
        {"range": "1-2", "count": 1, "avgSpent": 75},
        {"range": "2-5", "count": 1, "avgSpent": 12000},
    ]
    assert {b["range"]: b["count"] for b in customers["fragmentsDistribution"]} == {"30-70": 1, "100+": 1}
    assert customers["overview"]["avgOrdersPerCustomer"] == 1.5
    assert customers["overview"]["repeatCustomerRate"] == 50
