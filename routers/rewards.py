from fastapi import APIRouter, BackgroundTasks, Depends
from pymongo.database import Database

import loyalty
import mailer
from database import REWARD_CLAIMS, get_db, serialize
from schemas import RewardClaimRequest
from security import get_current_user

router = APIRouter(tags=["rewards"])


@router.post("/rewards/claim", status_code=201)
def claim_reward(payload: RewardClaimRequest, user: dict = Depends(get_current_user),
                 db: Database = Depends(get_db)):
    claim = loyalty.claim_reward(db, user["_id"], payload.rewardType)
    return {
        "success": True,
        "data": {
            "claim": serialize(claim),
            "message": "Reward claimed successfully! Your points have been reset. "
                       "We will contact you to fulfill your reward.",
        },
    }


@router.get("/rewards/history")
def reward_history(user: dict = Depends(get_current_user), db: Database = Depends(get_db)):
    claims = list(db[REWARD_CLAIMS].find({"userId": str(user["_id"])}).sort("claimedAt", -1))
    return {"success": True, "count": len(claims), "data": serialize(claims)}


@router.get("/rewards/summary")
def reward_summary(user: dict = Depends(get_current_user)):
    points = user.get("fragmentPoints", 0)
    return {
        "success": True,
        "data": {
            "points": points,
            "progress": loyalty.clamp_progress(points),
            "tier": loyalty.reward_tier(points),
            "canClaim": points >= loyalty.CLAIM_COST,
            "thresholds": loyalty.REWARD_THRESHOLDS,
        },
    }


@router.post("/users/birthday-reward")
def birthday_reward(background: BackgroundTasks, user: dict = Depends(get_current_user),
                    db: Database = Depends(get_db)):
    updated, awarded = loyalty.claim_birthday_reward(db, user["_id"])
    background.add_task(mailer.send_birthday_email, updated["email"], updated.get("firstName", ""), awarded)
    return {
        "success": True,
        "data": {"pointsAwarded": awarded, "newTotal": updated.get("fragmentPoints", 0)},
        "message": f"Happy Birthday! {awarded} bonus points added to your account!",
    }
