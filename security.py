from datetime import datetime, timedelta
from typing import Optional

import jwt
from fastapi import Depends, HTTPException, Request, Response
from passlib.context import CryptContext
from pymongo.database import Database

import config
from database import USERS, get_db, to_object_id

TOKEN_COOKIE = "token"
password_ctx = CryptContext(schemes=["bcrypt"], deprecated="auto")

AUTH_REQUIRED = {"error": "Authentication required", "message": "Please login to access this resource"}
ADMIN_REQUIRED = {"error": "Unauthorized", "message": "Admin access required"}


def hash_password(password: str) -> str:
    return password_ctx.hash(password)


def verify_password(password: str, hashed: str) -> bool:
    if not hashed:
        return False
    return password_ctx.verify(password, hashed)


def create_token(user: dict, expires: Optional[timedelta] = None, **claims) -> str:
    now = datetime.utcnow()
    payload = {
        "userId": str(user["_id"]),
        "email": user.get("email"),
        "iat": now,
        "exp": now + (expires or timedelta(days=config.JWT_EXPIRES_DAYS)),
    }
    payload.update(claims)
    return jwt.encode(payload, config.JWT_SECRET, algorithm="HS256")


def decode_token(token: str) -> Optional[dict]:
    try:
        return jwt.decode(token, config.JWT_SECRET, algorithms=["HS256"])
    except jwt.InvalidTokenError:
        return None


def token_from_request(request: Request) -> Optional[str]:
    header = request.headers.get("authorization", "")
    if header.startswith("Bearer "):
        return header[7:]
    return request.cookies.get(TOKEN_COOKIE)


def set_token_cookie(response: Response, token: str) -> None:
    response.set_cookie(
        TOKEN_COOKIE,
        token,
        httponly=True,
        secure=config.COOKIE_SECURE,
        samesite="lax",
        max_age=60 * 60 * 24 * config.JWT_EXPIRES_DAYS,
        path="/",
    )


def clear_token_cookie(response: Response) -> None:
    response.set_cookie(TOKEN_COOKIE, "", httponly=True, secure=config.COOKIE_SECURE,
                        samesite="lax", max_age=0, path="/")


def public_user(user: dict) -> dict:
    """User fields safe to send to the client."""
    return {
        "id": str(user["_id"]),
        "email": user.get("email"),
        "firstName": user.get("firstName"),
        "lastName": user.get("lastName"),
        "phone": user.get("phone"),
        "birthday": user.get("birthday"),
        "role": user.get("role", "customer"),
        "fragmentPoints": user.get("fragmentPoints", 0),
        "addresses": user.get("addresses", []),
        "createdAt": user.get("createdAt"),
        "updatedAt": user.get("updatedAt"),
    }


async def get_current_user(request: Request, db: Database = Depends(get_db)) -> dict:
    token = token_from_request(request)
    payload = decode_token(token) if token else None
    if not payload or payload.get("purpose"):
        raise HTTPException(status_code=401, detail=AUTH_REQUIRED)
    uid = to_object_id(payload.get("userId"))
    user = db[USERS].find_one({"_id": uid}, {"password": 0}) if uid else None
    if not user:
        raise HTTPException(status_code=401, detail=AUTH_REQUIRED)
    return user


async def require_admin(user: dict = Depends(get_current_user)) -> dict:
    if user.get("role") != "admin":
        raise HTTPException(status_code=403, detail=ADMIN_REQUIRED)
    return user


async def optional_user(request: Request, db: Database = Depends(get_db)) -> Optional[dict]:
    """The logged-in user, or None for guest requests."""
    try:
        return await get_current_user(request, db)
    except HTTPException:
        return None
