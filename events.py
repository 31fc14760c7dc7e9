"""
Event bookings and event reviews.

Booking is open to any signed-in user; changing a booking is limited to
admins and organizers and deleting one to admins. Menu and rental lines are
snapshots of the catalogue item at the time they were added, and totalCost
is adjusted by the line's cost when lines are added or removed.
"""

from datetime import datetime, timezone
from typing import Dict, Optional

from fastapi import APIRouter, Body, Depends, status

import schemas
from auth import get_current_user, require_role
from catalog import is_expired
from consistency import event_problems
from database import create_document, get_db, get_documents, now, sanitize, to_obj_id
from errors import BadRequestError, NotFoundError, UnauthorizedError
from ratings import reconcile_event_ratings, refresh_event_rating
from records import build, create_record, delete_record, find_or_404, update_record, without
from validators import (
    EVENT,
    EVENT_MENU_LINE,
    EVENT_RENTAL_LINE,
    EVENT_STATUS,
    REVIEW,
    Caller,
    Operation,
    ValidationContext,
)

router = APIRouter()

# derived or server-owned event fields
EVENT_SERVER_FIELDS = ("rating", "reviewCount", "ratingStale", "createdBy", "menuItems", "rentalItems")
REVIEW_SERVER_FIELDS = ("user", "isVerified", "likes")


def today():
    return datetime.now(timezone.utc).date()


def _event_problems(doc, fields):
    return event_problems(doc, today(), fields)


def _name_of(db, collection: str, id: Optional[str], *fields: str) -> Optional[Dict]:
    if not id:
        return None
    try:
        doc = db[collection].find_one({"_id": to_obj_id(id)}, {f: 1 for f in fields})
    except BadRequestError:
        return None
    return sanitize(doc) if doc else None


def populate_event(db, event: Dict) -> Dict:
    """Resolve an event's references to names and attach its reviews."""
    out = sanitize(event)
    out["venue"] = _name_of(db, "venue", event.get("venue"), "name", "location") or event.get("venue")
    out["package"] = _name_of(db, "package", event.get("package"), "name", "pricePerPerson") or event.get("package")
    out["client"] = _name_of(db, "user", event.get("client"), "fullName", "email") or event.get("client")
    services = event.get("services") or {}
    out["services"] = {
        "decoration": _name_of(db, "decoration", services.get("decoration"), "name") or services.get("decoration"),
        "photographer": _name_of(db, "photographer", services.get("photographer"), "fullName") or services.get("photographer"),
        "musicalGroup": _name_of(db, "musicalgroup", services.get("musicalGroup"), "name") or services.get("musicalGroup"),
    }
    out["staff"] = [_name_of(db, "staff", s, "fullName", "role") or s for s in event.get("staff") or []]
    out["reviews"] = get_documents(db, "review", {"eventId": out["id"]})
    return out


def _events(db, query: Dict):
    return [populate_event(db, e) for e in get_documents(db, "event", query)]


# -----------------------------
# Events
# -----------------------------
@router.post("/events", status_code=status.HTTP_201_CREATED)
def create_event(payload: dict = Body(...), caller: Caller = Depends(get_current_user), db=Depends(get_db)):
    ctx = ValidationContext(operation=Operation.CREATE, caller=caller, db=db)
    event = create_record(
        db, "event", schemas.Event, without(payload, EVENT_SERVER_FIELDS), EVENT, ctx,
        _event_problems, extra={"createdBy": caller.user_id},
    )
    return {"event": event}


@router.get("/events")
def list_events(caller: Caller = Depends(require_role("admin", "organizer")), db=Depends(get_db)):
    events = _events(db, {})
    return {"events": events, "count": len(events)}


@router.get("/events/my-events")
def my_events(caller: Caller = Depends(get_current_user), db=Depends(get_db)):
    events = _events(db, {"client": caller.user_id})
    return {"events": events, "count": len(events)}


@router.get("/events/{event_id}")
def get_event(event_id: str, caller: Caller = Depends(get_current_user), db=Depends(get_db)):
    event = find_or_404(db, "event", event_id, f"No event with id {event_id}")
    return {"event": populate_event(db, event)}


@router.patch("/events/{event_id}")
def update_event(event_id: str, payload: dict = Body(...), caller: Caller = Depends(require_role("admin", "organizer")), db=Depends(get_db)):
    ctx = ValidationContext(operation=Operation.UPDATE, caller=caller, db=db, target_id=event_id)
    event = update_record(
        db, "event", schemas.Event, event_id, without(payload, EVENT_SERVER_FIELDS), EVENT, ctx,
        f"No event with id {event_id}", _event_problems,
    )
    return {"event": event}


@router.delete("/events/{event_id}")
def delete_event(event_id: str, caller: Caller = Depends(require_role("admin")), db=Depends(get_db)):
    delete_record(db, "event", event_id, f"No event with id {event_id}")
    return {"msg": "Event deleted successfully"}


@router.patch("/events/{event_id}/status")
def update_event_status(event_id: str, payload: dict = Body(...), caller: Caller = Depends(require_role("admin", "organizer")), db=Depends(get_db)):
    ctx = ValidationContext(operation=Operation.UPDATE, caller=caller, db=db, target_id=event_id)
    data = EVENT_STATUS.validate(payload, ctx)
    event = find_or_404(db, "event", event_id, f"No event with id {event_id}")
    db["event"].update_one({"_id": event["_id"]}, {"$set": {"status": data["status"], "updatedAt": now()}})
    return {"event": sanitize(db["event"].find_one({"_id": event["_id"]}))}


def _save_lines(db, event: Dict, field: str, lines, total_cost: float) -> Dict:
    db["event"].update_one(
        {"_id": event["_id"]},
        {"$set": {field: lines, "totalCost": round(total_cost, 2), "updatedAt": now()}},
    )
    return sanitize(db["event"].find_one({"_id": event["_id"]}))


@router.post("/events/{event_id}/menu-items")
def add_menu_item_to_event(event_id: str, payload: dict = Body(...), caller: Caller = Depends(get_current_user), db=Depends(get_db)):
    data = EVENT_MENU_LINE.validate(payload, ValidationContext(operation=Operation.CREATE, caller=caller, db=db))
    menu_item = find_or_404(db, "menuitem", data["menuItemId"], f"No menu item with id {data['menuItemId']}")
    if not menu_item.get("isAvailable", True):
        raise BadRequestError(f"Menu item {menu_item['name']} is not available")
    event = find_or_404(db, "event", event_id, f"No event with id {event_id}")

    lines = list(event.get("menuItems") or [])
    if any(line["itemId"] == data["menuItemId"] for line in lines):
        return {"message": f"Added {menu_item['name']} to event", "event": sanitize(event)}
    lines.append(schemas.MenuLine(
        itemId=data["menuItemId"],
        name=menu_item["name"],
        category=menu_item["category"],
        pricePerPlate=menu_item["pricePerPlate"],
    ).model_dump())
    cost = menu_item["pricePerPlate"] * event["guests"]["count"]
    updated = _save_lines(db, event, "menuItems", lines, event.get("totalCost", 0) + cost)
    return {"message": f"Added {menu_item['name']} to event", "event": updated}


@router.delete("/events/{event_id}/menu-items/{menu_item_id}")
def remove_menu_item_from_event(event_id: str, menu_item_id: str, caller: Caller = Depends(get_current_user), db=Depends(get_db)):
    event = find_or_404(db, "event", event_id, f"No event with id {event_id}")
    lines = list(event.get("menuItems") or [])
    line = next((l for l in lines if l["itemId"] == menu_item_id), None)
    if line is None:
        raise NotFoundError(f"No menu item with id {menu_item_id} in this event")
    lines.remove(line)
    cost = line["pricePerPlate"] * event["guests"]["count"]
    updated = _save_lines(db, event, "menuItems", lines, max(event.get("totalCost", 0) - cost, 0))
    return {"message": "Menu item removed from event", "event": updated}


@router.post("/events/{event_id}/rental-items")
def add_rental_item_to_event(event_id: str, payload: dict = Body(...), caller: Caller = Depends(get_current_user), db=Depends(get_db)):
    data = EVENT_RENTAL_LINE.validate(payload, ValidationContext(operation=Operation.CREATE, caller=caller, db=db))
    item_id, quantity = data["rentalItemId"], data.get("quantity", 1)
    item = find_or_404(db, "rentalitem", item_id, f"No rental item with id {item_id}")
    if not item.get("availability", True) or is_expired(item):
        raise BadRequestError(f"Rental item {item['name']} is not available")
    event = find_or_404(db, "event", event_id, f"No event with id {event_id}")

    lines = list(event.get("rentalItems") or [])
    existing = next((l for l in lines if l["itemId"] == item_id), None)
    if existing:
        existing["quantity"] += quantity
    else:
        lines.append(schemas.RentalLine(
            itemId=item_id, name=item["name"], rentalPrice=item["rentalPrice"], quantity=quantity,
        ).model_dump())
    cost = item["rentalPrice"] * quantity
    updated = _save_lines(db, event, "rentalItems", lines, event.get("totalCost", 0) + cost)
    return {"message": f"Added {item['name']} to event", "event": updated}


@router.delete("/events/{event_id}/rental-items/{rental_item_id}")
def remove_rental_item_from_event(event_id: str, rental_item_id: str, caller: Caller = Depends(get_current_user), db=Depends(get_db)):
    event = find_or_404(db, "event", event_id, f"No event with id {event_id}")
    lines = list(event.get("rentalItems") or [])
    line = next((l for l in lines if l["itemId"] == rental_item_id), None)
    if line is None:
        raise NotFoundError(f"No rental item with id {rental_item_id} in this event")
    lines.remove(line)
    cost = line["rentalPrice"] * line["quantity"]
    updated = _save_lines(db, event, "rentalItems", lines, max(event.get("totalCost", 0) - cost, 0))
    return {"message": "Rental item removed from event", "event": updated}


# -----------------------------
# Reviews
# -----------------------------
@router.post("/reviews", status_code=status.HTTP_201_CREATED)
def create_review(payload: dict = Body(...), caller: Caller = Depends(get_current_user), db=Depends(get_db)):
    ctx = ValidationContext(operation=Operation.CREATE, caller=caller, db=db)
    data = REVIEW.validate(without(payload, REVIEW_SERVER_FIELDS), ctx)
    if db["review"].find_one({"user": caller.user_id, "eventId": data["eventId"]}):
        raise BadRequestError("You have already reviewed this event")
    review_id = create_document(db, "review", build(schemas.Review, {**data, "user": caller.user_id}))
    refresh_event_rating(db, data["eventId"])
    return {"review": sanitize(db["review"].find_one({"_id": to_obj_id(review_id)}))}


@router.get("/reviews")
def list_reviews(db=Depends(get_db)):
    return {"reviews": get_documents(db, "review", {"status": "pending"}, limit=9)}


@router.get("/reviews/my-reviews")
def my_reviews(caller: Caller = Depends(get_current_user), db=Depends(get_db)):
    return {"reviews": get_documents(db, "review", {"user": caller.user_id})}


@router.get("/reviews/event/{event_id}")
def event_reviews(event_id: str, db=Depends(get_db)):
    reviews = get_documents(db, "review", {"eventId": event_id})
    return {"reviews": reviews, "count": len(reviews)}


@router.post("/reviews/reconcile")
def reconcile_reviews(caller: Caller = Depends(require_role("admin")), db=Depends(get_db)):
    return reconcile_event_ratings(db)


@router.get("/reviews/{review_id}")
def get_review(review_id: str, caller: Caller = Depends(get_current_user), db=Depends(get_db)):
    return {"review": sanitize(find_or_404(db, "review", review_id, f"No review found with id {review_id}"))}


def _owned_review(db, review_id: str, caller: Caller, action: str) -> Dict:
    review = find_or_404(db, "review", review_id, f"No review found with id {review_id}")
    if review.get("user") != caller.user_id and caller.role != "admin":
        raise UnauthorizedError(f"Not authorized to {action} this review")
    return review


@router.patch("/reviews/{review_id}")
def update_review(review_id: str, payload: dict = Body(...), caller: Caller = Depends(get_current_user), db=Depends(get_db)):
    before = _owned_review(db, review_id, caller, "update")
    ctx = ValidationContext(operation=Operation.UPDATE, caller=caller, db=db, target_id=review_id)
    review = update_record(
        db, "review", schemas.Review, review_id, without(payload, REVIEW_SERVER_FIELDS), REVIEW, ctx,
        f"No review found with id {review_id}",
    )
    for event_id in {before["eventId"], review["eventId"]}:
        refresh_event_rating(db, event_id)
    return {"review": review}


@router.delete("/reviews/{review_id}")
def delete_review(review_id: str, caller: Caller = Depends(get_current_user), db=Depends(get_db)):
    review = _owned_review(db, review_id, caller, "delete")
    db["review"].delete_one({"_id": review["_id"]})
    refresh_event_rating(db, review["eventId"])
    return {"msg": "Review deleted successfully"}
