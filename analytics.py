"""
Admin analytics over orders, products and customers.

Every report is an aggregation pipeline run in Mongo. Revenue always comes
from the order ``total`` and only paid orders count as sales.
"""
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

from fastapi import HTTPException
from pymongo.database import Database

from database import ORDERS, PRODUCTS, USERS, to_object_id

PERIODS = {
    "7days": timedelta(days=7),
    "30days": timedelta(days=30),
    "90days": timedelta(days=90),
    "1year": timedelta(days=365),
    "all": None,
}
LOW_STOCK = 10

INF = float("inf")
LIFETIME_VALUE_BUCKETS = [0, 100, 500, 1000, 5000, 10000, INF]
ORDER_COUNT_BUCKETS = [1, 2, 5, 10, INF]
FRAGMENT_BUCKETS = [0, 30, 70, 100, INF]

BY_DAY = {
    "year": {"$year": "$createdAt"},
    "month": {"$month": "$createdAt"},
    "day": {"$dayOfMonth": "$createdAt"},
}
DAY_ORDER = {"_id.year": 1, "_id.month": 1, "_id.day": 1}
LINE_REVENUE = {"$multiply": ["$items.price", "$items.quantity"]}


def period_filter(period: str = "30days", start_date: Optional[str] = None,
                  end_date: Optional[str] = None, now: Optional[datetime] = None) -> Dict[str, Any]:
    """Mongo ``createdAt`` filter for a named period or an explicit date range."""
    if start_date and end_date:
        try:
            start, end = datetime.fromisoformat(start_date), datetime.fromisoformat(end_date)
        except ValueError:
            raise HTTPException(status_code=400, detail="Invalid date range")
        return {"createdAt": {"$gte": start, "$lte": end}}

    if period not in PERIODS:
        raise HTTPException(status_code=400, detail=f"Invalid period: {period}")
    window = PERIODS[period]
    if window is None:
        return {}
    return {"createdAt": {"$gte": (now or datetime.utcnow()) - window}}


def date_range(date_filter: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    created = date_filter.get("createdAt")
    if not created:
        return None
    return {"start": created["$gte"], "end": created.get("$lte") or datetime.utcnow()}


def _round(value: Optional[float]) -> float:
    return round(value or 0, 2)


def _paid(date_filter: Dict[str, Any]) -> Dict[str, Any]:
    return {"$match": {"paymentStatus": "paid", **date_filter}}


def _day(key: Dict[str, int]) -> str:
    return f"{key['year']:04d}-{key['month']:02d}-{key['day']:02d}"


def _single(cursor) -> Dict[str, Any]:
    """First row of a `_id: None` group; empty dict when nothing matched."""
    rows = list(cursor)
    return rows[0] if rows else {}


def _counts(db: Database, collection: str, field: str, match: Dict[str, Any]) -> Dict[str, int]:
    rows = db[collection].aggregate([
        {"$match": match},
        {"$group": {"_id": f"${field}", "count": {"$sum": 1}}},
    ])
    return {row["_id"]: row["count"] for row in rows}


def _bucket_label(key: Any, boundaries: List[float]) -> str:
    """Label like "100-500" for the bucket starting at key, "10000+" for the open-ended last one."""
    if key not in boundaries:
        return str(key)
    upper = boundaries[boundaries.index(key) + 1]
    return f"{key}+" if upper == INF else f"{key}-{upper}"


def _buckets(rows, boundaries: List[float]) -> List[dict]:
    out = []
    for row in rows:
        bucket = {"range": _bucket_label(row.pop("_id"), boundaries), "count": row.pop("count")}
        if "avgSpent" in row:
            bucket["avgSpent"] = _round(row["avgSpent"])
        out.append(bucket)
    return out


def _product_sales(category: Optional[str] = None, with_order_count: bool = True) -> List[dict]:
    """Stages turning orders into one row per product sold."""
    stages: List[dict] = [{"$unwind": "$items"}]
    if category:
        stages.append({"$match": {"items.category": category}})
    group = {
        "_id": "$items.productId",
        "productName": {"$first": "$items.productName"},
        "category": {"$first": "$items.category"},
        "quantitySold": {"$sum": "$items.quantity"},
        "revenue": {"$sum": LINE_REVENUE},
    }
    if with_order_count:
        group["orderCount"] = {"$sum": 1}
    stages.append({"$group": group})
    return stages


def _sales_rows(rows) -> List[dict]:
    out = []
    for row in rows:
        row["productId"] = row.pop("_id")
        row["revenue"] = _round(row["revenue"])
        out.append(row)
    return out


def _category_sales(db: Database, date_filter: Dict[str, Any]) -> List[dict]:
    rows = db[ORDERS].aggregate([
        _paid(date_filter),
        {"$unwind": "$items"},
        {"$group": {
            "_id": "$items.category",
            "quantitySold": {"$sum": "$items.quantity"},
            "revenue": {"$sum": LINE_REVENUE},
            "orders": {"$addToSet": "$_id"},
        }},
        {"$project": {"quantitySold": 1, "revenue": 1, "orderCount": {"$size": "$orders"}}},
        {"$sort": {"revenue": -1}},
    ])
    return [
        {"category": r["_id"], "quantitySold": r["quantitySold"],
         "revenue": _round(r["revenue"]), "orderCount": r["orderCount"]}
        for r in rows
    ]


def sales_report(db: Database, date_filter: Dict[str, Any]) -> Dict[str, Any]:
    overview = _single(db[ORDERS].aggregate([
        _paid(date_filter),
        {"$group": {"_id": None, "totalRevenue": {"$sum": "$total"},
                    "totalOrders": {"$sum": 1}, "avgOrderValue": {"$avg": "$total"}}},
    ]))

    revenue_over_time = db[ORDERS].aggregate([
        _paid(date_filter),
        {"$group": {"_id": BY_DAY, "revenue": {"$sum": "$total"}, "orders": {"$sum": 1}}},
        {"$sort": DAY_ORDER},
    ])

    top_products = db[ORDERS].aggregate(
        [_paid(date_filter)] + _product_sales(with_order_count=False)
        + [{"$sort": {"revenue": -1}}, {"$limit": 10}]
    )

    payment_breakdown = db[ORDERS].aggregate([
        {"$match": date_filter},
        {"$group": {"_id": "$paymentStatus", "count": {"$sum": 1}, "revenue": {"$sum": "$total"}}},
    ])

    return {
        "overview": {
            "totalRevenue": _round(overview.get("totalRevenue")),
            "totalOrders": overview.get("totalOrders", 0),
            "avgOrderValue": _round(overview.get("avgOrderValue")),
        },
        "revenueOverTime": [
            {"date": _day(r["_id"]), "revenue": _round(r["revenue"]), "orders": r["orders"]}
            for r in revenue_over_time
        ],
        "topProducts": _sales_rows(top_products),
        "revenueByCategory": [
            {"category": r["category"], "revenue": r["revenue"], "orderCount": r["orderCount"]}
            for r in _category_sales(db, date_filter)
        ],
        "paymentStatusBreakdown": {
            r["_id"]: {"count": r["count"], "revenue": _round(r["revenue"])} for r in payment_breakdown
        },
        "orderStatusBreakdown": _counts(db, ORDERS, "status", date_filter),
    }


def product_report(db: Database, date_filter: Dict[str, Any], category: Optional[str] = None) -> Dict[str, Any]:
    inventory = _single(db[PRODUCTS].aggregate([
        {"$group": {
            "_id": None,
            "totalProducts": {"$sum": 1},
            "totalStock": {"$sum": "$stock"},
            "avgStock": {"$avg": "$stock"},
            "lowStockCount": {"$sum": {"$cond": [{"$lte": ["$stock", LOW_STOCK]}, 1, 0]}},
            "outOfStockCount": {"$sum": {"$cond": [{"$eq": ["$stock", 0]}, 1, 0]}},
        }},
    ]))
    inventory.pop("_id", None)
    inventory["avgStock"] = _round(inventory.get("avgStock"))
    for key in ("totalProducts", "totalStock", "lowStockCount", "outOfStockCount"):
        inventory.setdefault(key, 0)

    product_sales = [_paid(date_filter)] + _product_sales(category)
    best = db[ORDERS].aggregate(product_sales + [{"$sort": {"quantitySold": -1}}, {"$limit": 20}])
    worst = db[ORDERS].aggregate(product_sales + [{"$sort": {"quantitySold": 1}}, {"$limit": 20}])

    colors = db[ORDERS].aggregate([
        _paid(date_filter),
        {"$unwind": "$items"},
        {"$match": {"items.color": {"$nin": [None, ""]}}},
        {"$group": {"_id": "$items.color", "count": {"$sum": "$items.quantity"}}},
        {"$sort": {"count": -1}},
        {"$limit": 10},
    ])
    sizes = db[ORDERS].aggregate([
        _paid(date_filter),
        {"$unwind": "$items"},
        {"$match": {"items.size": {"$nin": [None, ""]}}},
        {"$group": {"_id": "$items.size", "count": {"$sum": "$items.quantity"}}},
        {"$sort": {"count": -1}},
    ])

    sold_ids = [row["_id"] for row in db[ORDERS].aggregate([
        {"$match": {"paymentStatus": "paid"}},
        {"$unwind": "$items"},
        {"$group": {"_id": "$items.productId"}},
    ])]
    sold_oids = [oid for oid in map(to_object_id, sold_ids) if oid]

    avg_price = db[PRODUCTS].aggregate([
        {"$group": {"_id": "$category", "avgPrice": {"$avg": "$price"}, "minPrice": {"$min": "$price"},
                    "maxPrice": {"$max": "$price"}, "productCount": {"$sum": 1}}},
        {"$sort": {"avgPrice": -1}},
    ])

    summary = {"name": 1, "category": 1, "stock": 1, "price": 1}
    return {
        "inventoryOverview": inventory,
        "bestSelling": _sales_rows(best),
        "worstPerforming": _sales_rows(worst),
        "salesByCategory": _category_sales(db, date_filter),
        "popularColors": [{"color": r["_id"], "count": r["count"]} for r in colors],
        "popularSizes": [{"size": r["_id"], "count": r["count"]} for r in sizes],
        "lowStockProducts": list(db[PRODUCTS].find({"stock": {"$gt": 0, "$lte": LOW_STOCK}}, summary)
                                 .sort("stock", 1).limit(20)),
        "outOfStockProducts": list(db[PRODUCTS].find({"stock": 0}, summary)),
        "neverSoldProducts": list(db[PRODUCTS].find({"_id": {"$nin": sold_oids}}, summary).limit(20)),
        "avgPriceByCategory": [
            {"category": r["_id"], "avgPrice": _round(r["avgPrice"]), "minPrice": r["minPrice"],
             "maxPrice": r["maxPrice"], "productCount": r["productCount"]}
            for r in avg_price
        ],
    }


def customer_report(db: Database, date_filter: Dict[str, Any]) -> Dict[str, Any]:
    customers = {"role": "customer"}

    acquisition = db[USERS].aggregate([
        {"$match": {**customers, **date_filter}},
        {"$group": {"_id": BY_DAY, "newCustomers": {"$sum": 1}}},
        {"$sort": DAY_ORDER},
    ])

    top_customers = db[ORDERS].aggregate([
        _paid(date_filter),
        {"$group": {
            "_id": "$userId",
            "email": {"$first": "$customerInfo.email"},
            "firstName": {"$first": "$customerInfo.firstName"},
            "lastName": {"$first": "$customerInfo.lastName"},
            "totalSpent": {"$sum": "$total"},
            "orderCount": {"$sum": 1},
        }},
        {"$sort": {"totalSpent": -1}},
        {"$limit": 20},
    ])

    per_customer = {"$group": {"_id": "$userId", "orderCount": {"$sum": 1}, "totalSpent": {"$sum": "$total"}}}
    repeat = _single(db[ORDERS].aggregate([
        _paid(date_filter),
        per_customer,
        {"$group": {
            "_id": None,
            "customers": {"$sum": 1},
            "repeatCustomers": {"$sum": {"$cond": [{"$gt": ["$orderCount", 1]}, 1, 0]}},
            "avgOrders": {"$avg": "$orderCount"},
        }},
    ]))
    repeat_rate = repeat["repeatCustomers"] / repeat["customers"] * 100 if repeat.get("customers") else 0

    lifetime = db[ORDERS].aggregate([
        _paid({}),
        per_customer,
        {"$bucket": {"groupBy": "$totalSpent", "boundaries": LIFETIME_VALUE_BUCKETS, "default": "Other",
                     "output": {"count": {"$sum": 1}, "avgSpent": {"$avg": "$totalSpent"}}}},
    ])
    segments = db[ORDERS].aggregate([
        _paid({}),
        per_customer,
        {"$bucket": {"groupBy": "$orderCount", "boundaries": ORDER_COUNT_BUCKETS, "default": "Other",
                     "output": {"count": {"$sum": 1}, "avgSpent": {"$avg": "$totalSpent"}}}},
    ])
    fragments = db[USERS].aggregate([
        {"$match": customers},
        {"$bucket": {"groupBy": {"$ifNull": ["$fragmentPoints", 0]}, "boundaries": FRAGMENT_BUCKETS,
                     "default": "Other", "output": {"count": {"$sum": 1}}}},
    ])

    top = []
    for row in top_customers:
        row["userId"] = row.pop("_id")
        row["totalSpent"] = _round(row["totalSpent"])
        top.append(row)

    return {
        "overview": {
            "totalCustomers": db[USERS].count_documents(customers),
            "newCustomers": db[USERS].count_documents({**customers, **date_filter}),
            "repeatCustomerRate": _round(repeat_rate),
            "avgOrdersPerCustomer": _round(repeat.get("avgOrders")),
        },
        "customerAcquisition": [{"date": _day(r["_id"]), "newCustomers": r["newCustomers"]} for r in acquisition],
        "topCustomers": top,
        "lifetimeValueDistribution": _buckets(lifetime, LIFETIME_VALUE_BUCKETS),
        "customerSegments": _buckets(segments, ORDER_COUNT_BUCKETS),
        "fragmentsDistribution": _buckets(fragments, FRAGMENT_BUCKETS),
    }
