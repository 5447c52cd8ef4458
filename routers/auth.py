import logging
import math
from datetime import datetime, timedelta

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Response
from pymongo import ReturnDocument
from pymongo.database import Database

import config
import loyalty
import mailer
from database import USERS, create_document, get_db, serialize, to_object_id
from schemas import (ForgotPasswordRequest, LoginRequest, ProfileUpdate, ResetPasswordRequest, SignupRequest,
                     User)
from security import (clear_token_cookie, create_token, decode_token, get_current_user, hash_password,
                      public_user, set_token_cookie, verify_password)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])

INVALID_CREDENTIALS = {"error": "Invalid credentials", "message": "Email or password is incorrect"}
INVALID_RESET = {"error": "Invalid or expired reset token", "message": "Please request a new password reset link"}
RESET_SENT = "If an account exists, a password reset email has been sent"


def _fingerprint(password_hash: str) -> str:
    # Ties a reset token to the hash it was issued against, so it stops working once used.
    return password_hash[-12:]


@router.post("/signup", status_code=201)
def signup(payload: SignupRequest, response: Response, background: BackgroundTasks,
           db: Database = Depends(get_db)):
    email = payload.email.lower()
    if db[USERS].find_one({"email": email}, {"_id": 1}):
        raise HTTPException(status_code=400, detail={
            "error": "Email already registered",
            "message": "An account with this email already exists",
        })

    user = create_document(db, USERS, User(
        email=email,
        password=hash_password(payload.password),
        firstName=payload.firstName,
        lastName=payload.lastName,
        phone=payload.phone,
    ))
    token = create_token(user)
    set_token_cookie(response, token)
    background.add_task(mailer.send_welcome_email, email, user["firstName"])
    logger.info("New account %s", email)
    return {
        "success": True,
        "data": {"user": serialize(public_user(user)), "token": token},
        "message": "Account created successfully",
    }


@router.post("/login")
def login(payload: LoginRequest, response: Response, db: Database = Depends(get_db)):
    user = db[USERS].find_one({"email": payload.email.lower()})
    if not user or not verify_password(payload.password, user.get("password", "")):
        raise HTTPException(status_code=401, detail=INVALID_CREDENTIALS)

    token = create_token(user)
    set_token_cookie(response, token)
    return {
        "success": True,
        "data": {"user": serialize(public_user(user)), "token": token},
        "message": "Login successful",
    }


@router.post("/logout")
def logout(response: Response):
    clear_token_cookie(response)
    return {"success": True, "message": "Logged out successfully"}


@router.get("/me")
def me(user: dict = Depends(get_current_user)):
    return {"success": True, "data": serialize(public_user(user))}


@router.patch("/me")
def update_me(payload: ProfileUpdate, user: dict = Depends(get_current_user), db: Database = Depends(get_db)):
    changes = payload.model_dump(exclude_unset=True, exclude={"fragmentPoints"})
    changes = {k: v for k, v in changes.items() if v is not None}

    if changes.get("birthday") and loyalty.parse_birthday(changes["birthday"]) is None:
        raise HTTPException(status_code=400, detail="Invalid birthday, expected YYYY-MM-DD")

    if payload.fragmentPoints is not None:
        try:
            points = float(payload.fragmentPoints)
        except (TypeError, ValueError):
            points = math.nan
        if math.isnan(points) or points < 0:
            raise HTTPException(status_code=400, detail={
                "error": "Invalid fragment points value",
                "message": "Fragment points must be a non-negative number",
            })
        changes["fragmentPoints"] = loyalty.clamp_progress(int(points))

    changes["updatedAt"] = datetime.utcnow()
    updated = db[USERS].find_one_and_update(
        {"_id": user["_id"]}, {"$set": changes},
        projection={"password": 0}, return_document=ReturnDocument.AFTER,
    )
    return {"success": True, "data": serialize(public_user(updated)), "message": "Profile updated successfully"}


@router.post("/forgot-password")
def forgot_password(payload: ForgotPasswordRequest, background: BackgroundTasks,
                    db: Database = Depends(get_db)):
    if not payload.email:
        raise HTTPException(status_code=400, detail="Email is required")

    user = db[USERS].find_one({"email": payload.email.strip().lower()})
    if user:
        token = create_token(user, expires=timedelta(minutes=config.RESET_TOKEN_EXPIRES_MIN),
                             purpose="reset", fp=_fingerprint(user.get("password", "")))
        reset_url = f"{config.APP_URL}/reset-password?token={token}"
        background.add_task(mailer.send_password_reset_email, user["email"], user.get("firstName", ""), reset_url)
    else:
        logger.info("Password reset requested for unknown email")
    return {"success": True, "message": RESET_SENT}


@router.post("/reset-password")
def reset_password(payload: ResetPasswordRequest, db: Database = Depends(get_db)):
    claims = decode_token(payload.token)
    if not claims or claims.get("purpose") != "reset":
        raise HTTPException(status_code=400, detail=INVALID_RESET)

    uid = to_object_id(claims.get("userId"))
    user = db[USERS].find_one({"_id": uid}) if uid else None
    if not user or _fingerprint(user.get("password", "")) != claims.get("fp"):
        raise HTTPException(status_code=400, detail=INVALID_RESET)

    db[USERS].update_one(
        {"_id": uid},
        {"$set": {"password": hash_password(payload.password), "updatedAt": datetime.utcnow()}},
    )
    return {"success": True, "message": "Password has been reset. You can now log in."}
