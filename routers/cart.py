"""Cart and wishlist, both stored on the user document."""
from datetime import datetime

from bson import ObjectId
from fastapi import APIRouter, Depends, HTTPException
from pymongo.database import Database

from database import PRODUCTS, USERS, get_db, serialize, to_object_id
from schemas import CartAdd, CartItem, CartUpdate, WishlistAdd
from security import get_current_user

router = APIRouter(tags=["cart"])


def _product_or_404(db: Database, product_id: str) -> dict:
    oid = to_object_id(product_id)
    product = db[PRODUCTS].find_one({"_id": oid}) if oid else None
    if not product:
        raise HTTPException(status_code=404, detail="Product not found")
    return product


def _products_by_id(db: Database, product_ids) -> dict:
    oids = [oid for oid in (to_object_id(pid) for pid in product_ids) if oid]
    return {str(p["_id"]): p for p in db[PRODUCTS].find({"_id": {"$in": oids}})}


def _set_cart(db: Database, user: dict, cart) -> None:
    db[USERS].update_one({"_id": user["_id"]}, {"$set": {"cart": cart, "updatedAt": datetime.utcnow()}})


def _cart_line(cart, item_id: str) -> dict:
    for line in cart:
        if str(line.get("_id")) == item_id:
            return line
    raise HTTPException(status_code=404, detail="Cart item not found")


# Cart

@router.get("/cart")
def get_cart(user: dict = Depends(get_current_user), db: Database = Depends(get_db)):
    cart = user.get("cart", [])
    products = _products_by_id(db, [line.get("productId") for line in cart])
    data = [
        {
            "_id": line.get("_id"),
            "product": products.get(line.get("productId")),
            "quantity": line.get("quantity"),
            "size": line.get("size"),
            "color": line.get("color"),
            "addedAt": line.get("addedAt"),
        }
        for line in cart
    ]
    return {"success": True, "count": len(data), "data": serialize(data)}


@router.post("/cart")
def add_to_cart(payload: CartAdd, user: dict = Depends(get_current_user), db: Database = Depends(get_db)):
    if not payload.productId or not payload.quantity or payload.quantity < 1:
        raise HTTPException(status_code=400, detail="Product ID and quantity are required")
    _product_or_404(db, payload.productId)

    cart = user.get("cart", [])
    for line in cart:
        if (line.get("productId"), line.get("size"), line.get("color")) == \
                (payload.productId, payload.size, payload.color):
            line["quantity"] += payload.quantity
            break
    else:
        line = CartItem(productId=payload.productId, quantity=payload.quantity,
                        size=payload.size, color=payload.color).model_dump()
        line["_id"] = ObjectId()
        cart.append(line)

    _set_cart(db, user, cart)
    return {"success": True, "count": len(cart), "data": serialize(cart), "message": "Product added to cart"}


@router.delete("/cart")
def clear_cart(user: dict = Depends(get_current_user), db: Database = Depends(get_db)):
    _set_cart(db, user, [])
    return {"success": True, "message": "Cart cleared"}


@router.patch("/cart/{item_id}")
def update_cart_item(item_id: str, payload: CartUpdate, user: dict = Depends(get_current_user),
                     db: Database = Depends(get_db)):
    if payload.quantity is None or payload.quantity < 1:
        raise HTTPException(status_code=400, detail="Valid quantity is required")

    cart = user.get("cart", [])
    line = _cart_line(cart, item_id)
    line["quantity"] = payload.quantity

    _set_cart(db, user, cart)
    return {"success": True, "data": serialize(line), "message": "Cart item updated"}


@router.delete("/cart/{item_id}")
def remove_cart_item(item_id: str, user: dict = Depends(get_current_user), db: Database = Depends(get_db)):
    cart = user.get("cart", [])
    cart.remove(_cart_line(cart, item_id))

    _set_cart(db, user, cart)
    return {"success": True, "count": len(cart), "message": "Cart item removed"}


# Wishlist

@router.get("/wishlist")
def get_wishlist(user: dict = Depends(get_current_user), db: Database = Depends(get_db)):
    products = list(_products_by_id(db, user.get("wishlist", [])).values())
    return {"success": True, "count": len(products), "data": serialize(products)}


@router.post("/wishlist")
def add_to_wishlist(payload: WishlistAdd, user: dict = Depends(get_current_user), db: Database = Depends(get_db)):
    if not payload.productId:
        raise HTTPException(status_code=400, detail="Product ID is required")
    _product_or_404(db, payload.productId)

    wishlist = user.get("wishlist", [])
    if payload.productId in wishlist:
        raise HTTPException(status_code=400, detail="Product already in wishlist")

    wishlist.append(payload.productId)
    db[USERS].update_one({"_id": user["_id"]}, {"$set": {"wishlist": wishlist, "updatedAt": datetime.utcnow()}})
    return {
        "success": True,
        "data": {"productId": payload.productId, "wishlistCount": len(wishlist)},
        "message": "Product added to wishlist",
    }


@router.delete("/wishlist/{product_id}")
def remove_from_wishlist(product_id: str, user: dict = Depends(get_current_user), db: Database = Depends(get_db)):
    wishlist = user.get("wishlist", [])
    if product_id not in wishlist:
        raise HTTPException(status_code=404, detail="Product not in wishlist")

    wishlist.remove(product_id)
    db[USERS].update_one({"_id": user["_id"]}, {"$set": {"wishlist": wishlist, "updatedAt": datetime.utcnow()}})
    return {
        "success": True,
        "data": {"productId": product_id, "wishlistCount": len(wishlist)},
        "message": "Product removed from wishlist",
    }
