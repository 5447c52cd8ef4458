"""
Admin back-office: order and customer lists, trial requests, bulk catalog
edits, analytics reports and the starter catalog seed.
"""
import logging
import math
import re
from datetime import datetime
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import ValidationError
from pymongo.database import Database
from pymongo.errors import PyMongoError

import analytics
from database import ORDERS, PRODUCTS, TRIAL_REQUESTS, USERS, get_db, serialize, to_object_id
from schemas import BulkProductRequest, ProductUpdate
from security import require_admin

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin", tags=["admin"], dependencies=[Depends(require_admin)])

BULK_OPERATIONS = ("delete", "update", "updateStock", "toggleFeatured", "setCategory")

SEED_PRODUCTS = [
    {
        "name": "Cozy Hoodie",
        "price": 199.0,
        "description": "Heavyweight fleece hoodie with a relaxed fit.",
        "image": "/images/products/cozy-hoodie.jpg",
        "category": "hoodies",
        "colors": ["Black", "Grey", "Cream"],
        "sizes": ["S", "M", "L", "XL"],
        "stock": 50,
        "featured": True,
    },
    {
        "name": "Winter Hoodie",
        "price": 199.0,
        "description": "Brushed-back hoodie built for cold evenings.",
        "image": "/images/products/winter-hoodie.jpg",
        "category": "hoodies",
        "colors": ["Navy", "Black"],
        "sizes": ["S", "M", "L", "XL", "XXL"],
        "stock": 50,
        "featured": False,
    },
    {
        "name": "Classic T-Shirt",
        "price": 149.0,
        "description": "Midweight cotton tee with a clean neckline.",
        "image": "/images/products/classic-tshirt.jpg",
        "category": "tshirts",
        "colors": ["White", "Black"],
        "sizes": ["XS", "S", "M", "L", "XL"],
        "stock": 100,
        "featured": True,
    },
    {
        "name": "Graphic T-Shirt",
        "price": 149.0,
        "description": "Boxy tee with the Oiko fragment print.",
        "image": "/images/products/graphic-tshirt.jpg",
        "category": "tshirts",
        "colors": ["White", "Sand"],
        "sizes": ["S", "M", "L", "XL"],
        "stock": 100,
        "featured": False,
    },
    {
        "name": "Stylish Hat",
        "price": 15.99,
        "description": "Six-panel cap with an embroidered mark.",
        "image": "/images/products/stylish-hat.jpg",
        "category": "hats",
        "colors": ["Black", "Olive"],
        "sizes": ["One Size"],
        "stock": 60,
        "featured": False,
    },
    {
        "name": "Comfortable Socks",
        "price": 9.99,
        "description": "Ribbed crew socks, sold as a pair.",
        "image": "/images/products/comfortable-socks.jpg",
        "category": "socks",
        "colors": ["White", "Black"],
        "sizes": ["M", "L"],
        "stock": 150,
        "featured": False,
    },
    {
        "name": "Canvas Tote",
        "price": 29.0,
        "description": "Heavy canvas tote with an inside pocket.",
        "image": "/images/products/canvas-tote.jpg",
        "category": "totebags",
        "colors": ["Natural"],
        "sizes": ["One Size"],
        "stock": 80,
        "featured": False,
    },
]


def seed_catalog(db: Database) -> int:
    """Insert the starter catalog into an empty products collection. Returns how many were inserted."""
    if db[PRODUCTS].count_documents({}) > 0:
        return 0
    now = datetime.utcnow()
    db[PRODUCTS].insert_many([dict(p, createdAt=now, updatedAt=now) for p in SEED_PRODUCTS])
    logger.info("Seeded %d products", len(SEED_PRODUCTS))
    return len(SEED_PRODUCTS)


def _contains(text: str) -> Dict[str, str]:
    return {"$regex": re.escape(text), "$options": "i"}


def _page(page: int, limit: int, total: int, total_key: str) -> Dict[str, Any]:
    total_pages = math.ceil(total / limit)
    return {
        "page": page,
        "limit": limit,
        total_key: total,
        "totalPages": total_pages,
        "hasNextPage": page < total_pages,
        "hasPrevPage": page > 1,
    }


def _status_breakdown(db: Database, collection: str) -> Dict[str, int]:
    rows = db[collection].aggregate([{"$group": {"_id": "$status", "count": {"$sum": 1}}}])
    return {row["_id"]: row["count"] for row in rows}


def _order_totals(db: Database, match: Dict[str, Any], by: Optional[str] = None) -> List[dict]:
    return list(db[ORDERS].aggregate([
        {"$match": match},
        {"$group": {"_id": by, "count": {"$sum": 1}, "revenue": {"$sum": "$total"}}},
    ]))


@router.get("/orders")
def admin_orders(page: int = Query(1, ge=1), limit: int = Query(10, ge=1, le=100),
                 status: Optional[str] = None, paymentStatus: Optional[str] = None, search: Optional[str] = None,
                 sortBy: str = "createdAt", sortOrder: str = "desc", db: Database = Depends(get_db)):
    query: Dict[str, Any] = {}
    if status:
        query["status"] = status
    if paymentStatus:
        query["paymentStatus"] = paymentStatus
    if search:
        query["$or"] = [{field: _contains(search)} for field in
                        ("orderRef", "customerInfo.email", "customerInfo.firstName", "customerInfo.lastName")]

    total = db[ORDERS].count_documents(query)
    orders = list(db[ORDERS].find(query).sort(sortBy, 1 if sortOrder == "asc" else -1)
                  .skip((page - 1) * limit).limit(limit))

    totals = next(iter(_order_totals(db, {})), {})
    count, revenue = totals.get("count", 0), totals.get("revenue", 0)
    return {
        "success": True,
        "data": serialize(orders),
        "pagination": _page(page, limit, total, "totalOrders"),
        "stats": {
            "totalRevenue": round(revenue, 2),
            "totalOrders": count,
            "averageOrderValue": round(revenue / count, 2) if count else 0,
            "statusBreakdown": _status_breakdown(db, ORDERS),
        },
    }


@router.get("/users")
def admin_users(page: int = Query(1, ge=1), limit: int = Query(10, ge=1, le=100),
                role: Optional[str] = None, search: Optional[str] = None,
                sortBy: str = "createdAt", sortOrder: str = "desc", db: Database = Depends(get_db)):
    query: Dict[str, Any] = {}
    if role:
        query["role"] = role
    if search:
        query["$or"] = [{field: _contains(search)} for field in ("email", "firstName", "lastName")]

    total = db[USERS].count_documents(query)
    users = list(db[USERS].find(query, {"password": 0}).sort(sortBy, 1 if sortOrder == "asc" else -1)
                 .skip((page - 1) * limit).limit(limit))

    user_ids = [str(user["_id"]) for user in users]
    spend = {row["_id"]: row for row in _order_totals(db, {"userId": {"$in": user_ids}}, by="$userId")}
    for user in users:
        row = spend.get(str(user["_id"]), {})
        count, spent = row.get("count", 0), row.get("revenue", 0)
        user["orderStats"] = {
            "totalOrders": count,
            "totalSpent": round(spent, 2),
            "averageOrderValue": round(spent / count, 2) if count else 0,
        }

    customers = db[USERS].count_documents({"role": "customer"})
    admins = db[USERS].count_documents({"role": "admin"})
    return {
        "success": True,
        "data": serialize(users),
        "pagination": _page(page, limit, total, "totalUsers"),
        "stats": {"totalCustomers": customers, "totalAdmins": admins, "totalUsers": customers + admins},
    }


@router.get("/trial-requests")
def admin_trial_requests(page: int = Query(1, ge=1), limit: int = Query(20, ge=1, le=100),
                         status: Optional[str] = None, search: Optional[str] = None,
                         db: Database = Depends(get_db)):
    query: Dict[str, Any] = {}
    if status:
        query["status"] = status
    if search:
        query["$or"] = [{field: _contains(search)} for field in
                        ("customerInfo.email", "customerInfo.firstName", "customerInfo.lastName")]

    total = db[TRIAL_REQUESTS].count_documents(query)
    trials = list(db[TRIAL_REQUESTS].find(query).sort("createdAt", -1).skip((page - 1) * limit).limit(limit))
    return {
        "success": True,
        "data": serialize(trials),
        "pagination": _page(page, limit, total, "totalRequests"),
        "stats": {"statusBreakdown": _status_breakdown(db, TRIAL_REQUESTS)},
    }


@router.post("/products/bulk")
def bulk_products(payload: BulkProductRequest, db: Database = Depends(get_db)):
    if not payload.operation:
        raise HTTPException(status_code=400, detail="Operation is required")
    if not payload.productIds:
        raise HTTPException(status_code=400, detail="Product IDs array is required")
    if payload.operation not in BULK_OPERATIONS:
        raise HTTPException(status_code=400, detail={
            "error": f"Unknown operation: {payload.operation}",
            "message": f"Valid operations: {', '.join(BULK_OPERATIONS)}",
        })

    ids = {"_id": {"$in": [oid for oid in map(to_object_id, payload.productIds) if oid]}}
    updates = payload.updates or {}
    now = datetime.utcnow()

    if payload.operation == "delete":
        result = db[PRODUCTS].delete_many(ids)
        return {"success": True, "message": f"{result.deleted_count} products deleted successfully",
                "data": {"deletedCount": result.deleted_count}}

    if payload.operation == "toggleFeatured":
        products = list(db[PRODUCTS].find(ids, {"featured": 1}))
        for product in products:
            db[PRODUCTS].update_one({"_id": product["_id"]},
                                    {"$set": {"featured": not product.get("featured", False), "updatedAt": now}})
        return {"success": True, "message": f"Featured status toggled for {len(products)} products",
                "data": {"updatedCount": len(products)}}

    if payload.operation == "update":
        if not payload.updates:
            raise HTTPException(status_code=400, detail="Updates object is required for update operation")
        changes = _validated_updates(updates)
        message = "{} products updated successfully"
    elif payload.operation == "updateStock":
        if not isinstance(updates.get("stock"), int) or isinstance(updates.get("stock"), bool):
            raise HTTPException(status_code=400, detail="Stock value is required for updateStock operation")
        changes = _validated_updates({"stock": updates["stock"]})
        message = "Stock updated for {} products"
    else:
        if not updates.get("category"):
            raise HTTPException(status_code=400, detail="Category is required for setCategory operation")
        changes = _validated_updates({"category": updates["category"]})
        message = "Category updated for {} products"

    changes["updatedAt"] = now
    result = db[PRODUCTS].update_many(ids, {"$set": changes})
    return {
        "success": True,
        "message": message.format(result.modified_count),
        "data": {"matchedCount": result.matched_count, "modifiedCount": result.modified_count},
    }


def _validated_updates(updates: Dict[str, Any]) -> Dict[str, Any]:
    try:
        changes = ProductUpdate(**updates).model_dump(exclude_none=True)
    except ValidationError as exc:
        raise HTTPException(status_code=400, detail={"error": "Invalid product updates",
                                                     "message": str(exc.errors()[0].get("msg"))})
    if not changes:
        raise HTTPException(status_code=400, detail="Updates object is required for update operation")
    return changes


def _report(name: str, build):
    try:
        return build()
    except PyMongoError as exc:
        logger.error("Error fetching %s analytics: %s", name, exc)
        raise HTTPException(status_code=500, detail={"error": f"Failed to fetch {name} analytics",
                                                     "message": str(exc)})


@router.get("/analytics/sales")
def sales_analytics(period: str = "30days", startDate: Optional[str] = None, endDate: Optional[str] = None,
                    db: Database = Depends(get_db)):
    date_filter = analytics.period_filter(period, startDate, endDate)
    data = _report("sales", lambda: analytics.sales_report(db, date_filter))
    return {"success": True, "data": data, "period": period, "dateRange": analytics.date_range(date_filter)}


@router.get("/analytics/products")
def product_analytics(period: str = "30days", category: Optional[str] = None, db: Database = Depends(get_db)):
    date_filter = analytics.period_filter(period)
    data = _report("product", lambda: analytics.product_report(db, date_filter, category))
    return {"success": True, "data": serialize(data), "period": period, "category": category}


@router.get("/analytics/customers")
def customer_analytics(period: str = "30days", db: Database = Depends(get_db)):
    date_filter = analytics.period_filter(period)
    data = _report("customer", lambda: analytics.customer_report(db, date_filter))
    return {"success": True, "data": data, "period": period}


@router.post("/seed")
def seed(db: Database = Depends(get_db)):
    inserted = seed_catalog(db)
    if not inserted:
        return {"success": True, "data": {"seeded": False}, "message": "Products already exist"}
    return {"success": True, "data": {"seeded": True, "count": inserted}, "message": "Catalog seeded"}
