"""
Fragment points: the Oiko loyalty ledger.

Points are earned per purchased item by category, held as a single running
balance on the user, and redeemed in one 100-point claim that resets the
balance to zero. The tier thresholds below are for display; a claim always
costs the full 100 points.
"""
import logging
from datetime import date, datetime
from typing import Iterable, Optional, Tuple

from fastapi import HTTPException
from pymongo import ReturnDocument
from pymongo.database import Database

from database import REWARD_CLAIMS, USERS, create_document, to_object_id
from schemas import RewardClaim

logger = logging.getLogger(__name__)

MAX_PROGRESS = 100
CLAIM_COST = 100
BIRTHDAY_BONUS = 50
REWARD_THRESHOLDS = {
    "cashback": 30,
    "discount": 70,
    "free": 100,
}
REWARD_TYPES = ("free_product", "discount", "cashback")

ACCESSORY_CATEGORIES = {"hats", "socks", "totebags", "accessories"}


def points_for_category(category: Optional[str]) -> int:
    category = (category or "").lower()
    if category == "hoodies":
        return 18
    if category == "tshirts":
        return 12
    if category in ACCESSORY_CATEGORIES:
        return 3
    return 0


def points_for_order(items: Iterable[dict]) -> int:
    return sum(points_for_category(item.get("category")) * int(item.get("quantity", 1)) for item in items)


def clamp_progress(points: int) -> int:
    return min(points, MAX_PROGRESS)


def reward_tier(points: int) -> Optional[str]:
    """Highest tier the balance qualifies for, or None below the first threshold."""
    if points >= REWARD_THRESHOLDS["free"]:
        return "free"
    if points >= REWARD_THRESHOLDS["discount"]:
        return "discount"
    if points >= REWARD_THRESHOLDS["cashback"]:
        return "cashback"
    return None


def claim_reward(db: Database, user_id, reward_type: Optional[str]) -> dict:
    if reward_type not in REWARD_TYPES:
        raise HTTPException(status_code=400, detail="Invalid reward type")

    user = db[USERS].find_one({"_id": user_id})
    if not user:
        raise HTTPException(status_code=404, detail="User not found")

    current_points = user.get("fragmentPoints", 0)
    if current_points < CLAIM_COST:
        raise HTTPException(status_code=400, detail={
            "error": "Insufficient points",
            "message": f"You need {CLAIM_COST} points to claim a reward. Current points: {current_points}",
        })

    # Conditional reset so two concurrent claims cannot both spend the same balance.
    reset = db[USERS].update_one(
        {"_id": user_id, "fragmentPoints": {"$gte": CLAIM_COST}},
        {"$set": {"fragmentPoints": 0, "updatedAt": datetime.utcnow()}},
    )
    if reset.modified_count == 0:
        raise HTTPException(status_code=409, detail="Reward already claimed")

    claim = RewardClaim(userId=str(user_id), pointsUsed=CLAIM_COST, rewardType=reward_type)
    doc = create_document(db, REWARD_CLAIMS, claim)
    logger.info("User %s claimed %s reward", user_id, reward_type)
    return doc


def parse_birthday(value: Optional[str]) -> Optional[date]:
    if not value:
        return None
    try:
        return date.fromisoformat(str(value)[:10])
    except ValueError:
        return None


def claim_birthday_reward(db: Database, user_id, today: Optional[date] = None) -> Tuple[dict, int]:
    """Award the yearly birthday bonus. Returns the updated user and points awarded."""
    today = today or date.today()
    user = db[USERS].find_one({"_id": user_id})
    if not user:
        raise HTTPException(status_code=404, detail="User not found")

    if not user.get("birthday"):
        raise HTTPException(status_code=400, detail="No birthday set in profile")

    birthday = parse_birthday(user["birthday"])
    if birthday is None:
        raise HTTPException(status_code=400, detail="Invalid birthday in profile")

    if (birthday.month, birthday.day) != (today.month, today.day):
        raise HTTPException(status_code=400, detail="Birthday reward can only be claimed on your birthday")

    if user.get("lastBirthdayRewardYear") == today.year:
        raise HTTPException(status_code=400, detail="Birthday reward already claimed this year")

    updated = db[USERS].find_one_and_update(
        {"_id": user_id, "lastBirthdayRewardYear": {"$ne": today.year}},
        {
            "$inc": {"fragmentPoints": BIRTHDAY_BONUS},
            "$set": {"lastBirthdayRewardYear": today.year, "updatedAt": datetime.utcnow()},
        },
        return_document=ReturnDocument.AFTER,
    )
    if updated is None:
        raise HTTPException(status_code=400, detail="Birthday reward already claimed this year")
    return updated, BIRTHDAY_BONUS


def credit_order_points(db: Database, order: dict) -> Optional[int]:
    """Add an order's pointsEarned to its owner. Returns the new balance, or None when nothing was credited."""
    uid = to_object_id(order.get("userId"))
    points = order.get("pointsEarned") or 0
    if uid is None or not points:
        return None
    user = db[USERS].find_one_and_update(
        {"_id": uid},
        {"$inc": {"fragmentPoints": points}, "$set": {"updatedAt": datetime.utcnow()}},
        return_document=ReturnDocument.AFTER,
    )
    if user is None:
        logger.warning("Order %s owner %s not found, points not credited", order.get("orderRef"), uid)
        return None
    return user.get("fragmentPoints", 0)


def reverse_order_points(db: Database, order: dict) -> Optional[int]:
    """Take an order's points back from its owner, never going below zero."""
    uid = to_object_id(order.get("userId"))
    points = order.get("pointsEarned") or 0
    if uid is None or not points:
        return None
    user = db[USERS].find_one_and_update(
        {"_id": uid},
        [{"$set": {
            "fragmentPoints": {"$max": [0, {"$subtract": [{"$ifNull": ["$fragmentPoints", 0]}, points]}]},
            "updatedAt": datetime.utcnow(),
        }}],
        return_document=ReturnDocument.AFTER,
    )
    if user is None:
        return None
    return user.get("fragmentPoints", 0)
