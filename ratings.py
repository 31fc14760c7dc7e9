"""
Rating aggregation.

Venues and decorations embed their reviews, so their rating is recomputed
from the in-memory list and written together with it in one update.
Event reviews live in their own collection; the event rating is refreshed
by an aggregation after each review write. That refresh is not atomic with
the review write: if it fails the event is flagged `ratingStale` and
`reconcile_event_ratings` repairs it later.
"""

import logging
from typing import Dict, Optional

from pymongo.errors import PyMongoError

from consistency import average_rating
from database import now, to_obj_id
from errors import BadRequestError, NotFoundError

logger = logging.getLogger(__name__)

EMBEDDED_LABELS = {
    "venue": ("Venue not found", "You have already reviewed this venue"),
    "decoration": ("Decoration package not found", "You have already reviewed this decoration package"),
}


def add_embedded_review(db, collection: str, parent_id: str, review: Dict) -> Dict:
    """Append `review` to the parent's embedded list and refresh its rating."""
    not_found, duplicate = EMBEDDED_LABELS[collection]
    oid = to_obj_id(parent_id)
    parent = db[collection].find_one({"_id": oid})
    if not parent:
        raise NotFoundError(not_found)
    reviews = list(parent.get("reviews") or [])
    if any(str(r.get("user")) == review["user"] for r in reviews):
        raise BadRequestError(duplicate)
    reviews.append(review)
    rating = average_rating(r.get("rating") for r in reviews)
    db[collection].update_one(
        {"_id": oid},
        {"$set": {"reviews": reviews, "rating": rating, "updatedAt": now()}},
    )
    logger.info("review added to %s %s, rating now %s", collection, parent_id, rating)
    return db[collection].find_one({"_id": oid})


def event_rating_summary(db, event_id: str) -> Dict:
    agg = list(db["review"].aggregate([
        {"$match": {"eventId": event_id}},
        {"$group": {"_id": "$eventId", "avg": {"$avg": "$rating"}, "count": {"$sum": 1}}},
    ]))
    avg = float(agg[0]["avg"]) if agg else 0.0
    cnt = int(agg[0]["count"]) if agg else 0
    return {"rating": round(avg, 1) if cnt else 0, "reviewCount": cnt}


def refresh_event_rating(db, event_id: str) -> Optional[Dict]:
    """Recompute an event's rating from its reviews.

    Returns the new summary, or None when the refresh failed and the event
    was left flagged for reconciliation.
    """
    try:
        summary = event_rating_summary(db, event_id)
        db["event"].update_one(
            {"_id": to_obj_id(event_id)},
            {"$set": {**summary, "ratingStale": False}},
        )
        return summary
    except PyMongoError:
        logger.exception("rating refresh failed for event %s", event_id)
        try:
            db["event"].update_one({"_id": to_obj_id(event_id)}, {"$set": {"ratingStale": True}})
        except PyMongoError:
            logger.exception("could not flag event %s as stale", event_id)
        return None


def reconcile_event_ratings(db) -> Dict[str, int]:
    """Recompute every reviewed or stale event. Safe to run repeatedly."""
    reviewed = set(db["review"].distinct("eventId"))
    stale = {str(e["_id"]) for e in db["event"].find({"ratingStale": True}, {"_id": 1})}
    fixed = failed = 0
    for event_id in sorted(reviewed | stale):
        if refresh_event_rating(db, event_id) is None:
            failed += 1
        else:
            fixed += 1
    logger.info("rating reconciliation: %d refreshed, %d failed", fixed, failed)
    return {"refreshed": fixed, "failed": failed}
