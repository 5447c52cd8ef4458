"""
Catalog browsing, search and admin product maintenance.

Search uses case-insensitive regex matching rather than a text index, so it
works on any deployment without extra index setup.
"""
import math
import re
from collections import Counter
from datetime import datetime
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pymongo import ReturnDocument
from pymongo.database import Database

from database import PRODUCTS, create_document, get_db, serialize, to_object_id
from schemas import Product, ProductUpdate
from security import require_admin

router = APIRouter(prefix="/products", tags=["products"])

ACCESSORY_CATEGORIES = ["hats", "socks", "totebags"]
SIZE_ORDER = {"XS": 0, "S": 1, "M": 2, "L": 3, "XL": 4, "XXL": 5}
SEARCH_SORTS = {
    "price_asc": [("price", 1)],
    "price_desc": [("price", -1)],
    "newest": [("createdAt", -1)],
    "relevance": [("featured", -1), ("createdAt", -1)],
}


def category_filter(category: Optional[str]) -> Optional[Any]:
    if not category or category == "all":
        return None
    if category == "accessories":
        return {"$in": ACCESSORY_CATEGORIES}
    return category


def _contains(text: str) -> Dict[str, str]:
    return {"$regex": re.escape(text), "$options": "i"}


def _csv(value: Optional[str]) -> List[str]:
    return [part for part in (value or "").split(",") if part]


def pagination(page: int, limit: int, total: int) -> Dict[str, Any]:
    total_pages = math.ceil(total / limit) if limit else 0
    return {
        "page": page,
        "limit": limit,
        "totalProducts": total,
        "totalPages": total_pages,
        "hasNextPage": page < total_pages,
        "hasPrevPage": page > 1,
    }


def _product_id(product_id: str):
    oid = to_object_id(product_id)
    if oid is None:
        raise HTTPException(status_code=400, detail="Invalid product ID")
    return oid


def _facets(products: List[dict]) -> Dict[str, Any]:
    categories = Counter(p.get("category") for p in products)
    colors = Counter(c for p in products for c in p.get("colors", []))
    sizes = Counter(s for p in products for s in p.get("sizes", []))
    prices = [p.get("price", 0) for p in products]
    return {
        "categories": [{"name": k, "count": v} for k, v in categories.most_common()],
        "priceRange": {"minPrice": min(prices), "maxPrice": max(prices)} if prices else
                      {"minPrice": 0, "maxPrice": 0},
        "colors": [{"name": k, "count": v} for k, v in colors.most_common()],
        "sizes": [{"name": k, "count": v} for k, v in sorted(sizes.items(), key=lambda kv: SIZE_ORDER.get(kv[0], 99))],
    }


@router.get("")
def list_products(category: Optional[str] = None, featured: Optional[str] = None, search: Optional[str] = None,
                  page: int = 0, limit: int = 0, sortBy: str = "createdAt", sortOrder: str = "desc",
                  db: Database = Depends(get_db)):
    query: Dict[str, Any] = {}
    cat = category_filter(category)
    if cat:
        query["category"] = cat
    if featured == "true":
        query["featured"] = True
    if search:
        query["$or"] = [{"name": _contains(search)}, {"description": _contains(search)}]

    cursor = db[PRODUCTS].find(query).sort(sortBy, 1 if sortOrder == "asc" else -1)

    if page > 0 and limit > 0:
        total = db[PRODUCTS].count_documents(query)
        products = list(cursor.skip((page - 1) * limit).limit(limit))
        return {
            "success": True,
            "count": len(products),
            "data": serialize(products),
            "pagination": pagination(page, limit, total),
        }

    products = list(cursor)
    return {"success": True, "count": len(products), "data": serialize(products)}


@router.post("", status_code=201)
def create_product(payload: Product, admin: dict = Depends(require_admin), db: Database = Depends(get_db)):
    product = create_document(db, PRODUCTS, payload)
    return {"success": True, "data": serialize(product), "message": "Product created successfully"}


@router.get("/search")
def search_products(q: str = "", category: Optional[str] = None, minPrice: float = 0, maxPrice: float = 999999,
                    colors: Optional[str] = None, sizes: Optional[str] = None, featured: Optional[str] = None,
                    inStock: Optional[str] = None, page: int = Query(1, ge=1), limit: int = Query(20, ge=1, le=100),
                    sortBy: str = "relevance", sortOrder: str = "asc", db: Database = Depends(get_db)):
    query: Dict[str, Any] = {}
    if q:
        query["$or"] = [{"name": _contains(q)}, {"description": _contains(q)}, {"category": _contains(q)}]
    cat = category_filter(category)
    if cat:
        query["category"] = cat
    if minPrice > 0 or maxPrice < 999999:
        query["price"] = {"$gte": minPrice, "$lte": maxPrice}
    color_list, size_list = _csv(colors), _csv(sizes)
    if color_list:
        query["colors"] = {"$in": color_list}
    if size_list:
        query["sizes"] = {"$in": size_list}
    if featured == "true":
        query["featured"] = True
    if inStock == "true":
        query["stock"] = {"$gt": 0}

    if sortBy == "name":
        sort = [("name", -1 if sortOrder == "desc" else 1)]
    else:
        sort = SEARCH_SORTS.get(sortBy, SEARCH_SORTS["relevance"])

    total = db[PRODUCTS].count_documents(query)
    products = list(db[PRODUCTS].find(query).sort(sort).skip((page - 1) * limit).limit(limit))
    matching = list(db[PRODUCTS].find(query, {"category": 1, "price": 1, "colors": 1, "sizes": 1}))

    return {
        "success": True,
        "data": serialize(products),
        "pagination": pagination(page, limit, total),
        "facets": _facets(matching),
        "query": {
            "q": q, "category": category, "minPrice": minPrice, "maxPrice": maxPrice,
            "colors": color_list, "sizes": size_list, "featured": featured, "inStock": inStock, "sortBy": sortBy,
        },
    }


@router.get("/filters")
def product_filters(db: Database = Depends(get_db)):
    products = list(db[PRODUCTS].find({}, {"category": 1, "price": 1, "colors": 1, "sizes": 1,
                                           "featured": 1, "stock": 1}))
    facets = _facets(products)
    facets["categories"].sort(key=lambda c: c["name"] or "")
    facets["colors"].sort(key=lambda c: c["name"])
    prices = [p.get("price", 0) for p in products]
    facets["priceRange"]["avgPrice"] = round(sum(prices) / len(prices), 2) if prices else 0
    facets["stats"] = {
        "totalProducts": len(products),
        "featuredCount": sum(1 for p in products if p.get("featured")),
        "inStockCount": sum(1 for p in products if p.get("stock", 0) > 0),
    }
    return {"success": True, "data": facets}


@router.get("/suggestions")
def product_suggestions(q: str = "", limit: int = Query(5, ge=1, le=20), db: Database = Depends(get_db)):
    if len(q) < 2:
        return {"success": True, "data": [], "message": "Query must be at least 2 characters"}

    products = db[PRODUCTS].find(
        {"$or": [{"name": _contains(q)}, {"category": _contains(q)}]},
        {"name": 1, "category": 1, "image": 1, "price": 1},
    ).limit(limit)
    categories = db[PRODUCTS].distinct("category", {"category": _contains(q)})

    return {
        "success": True,
        "data": {
            "products": [
                {"type": "product", "id": str(p["_id"]), "name": p.get("name"), "category": p.get("category"),
                 "image": p.get("image"), "price": p.get("price")}
                for p in products
            ],
            "categories": [{"type": "category", "name": c, "query": c} for c in sorted(categories)],
        },
        "query": q,
    }


@router.get("/{product_id}")
def get_product(product_id: str, db: Database = Depends(get_db)):
    product = db[PRODUCTS].find_one({"_id": _product_id(product_id)})
    if not product:
        raise HTTPException(status_code=404, detail="Product not found")
    return {"success": True, "data": serialize(product)}


@router.put("/{product_id}")
def update_product(product_id: str, payload: ProductUpdate, admin: dict = Depends(require_admin),
                   db: Database = Depends(get_db)):
    oid = _product_id(product_id)
    changes = payload.model_dump(exclude_none=True)
    changes["updatedAt"] = datetime.utcnow()
    product = db[PRODUCTS].find_one_and_update({"_id": oid}, {"$set": changes},
                                               return_document=ReturnDocument.AFTER)
    if not product:
        raise HTTPException(status_code=404, detail="Product not found")
    return {"success": True, "data": serialize(product), "message": "Product updated successfully"}


@router.delete("/{product_id}")
def delete_product(product_id: str, admin: dict = Depends(require_admin), db: Database = Depends(get_db)):
    result = db[PRODUCTS].delete_one({"_id": _product_id(product_id)})
    if result.deleted_count == 0:
        raise HTTPException(status_code=404, detail="Product not found")
    return {"success": True, "message": "Product deleted successfully"}
