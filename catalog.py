"""
Catalogue routes: venues, decorations, packages, menu items, musical groups,
photographers, staff and rental items.

Reads follow each collection's visibility; every write is admin-only except
posting a review on a venue or decoration.
"""

from datetime import datetime, timedelta
from typing import Dict

from fastapi import APIRouter, Body, Depends, status

import schemas
from auth import get_current_user, require_role
from consistency import decoration_problems, package_problems, venue_problems
from database import get_db, get_documents, now, sanitize
from ratings import add_embedded_review
from records import create_record, delete_record, find_or_404, update_record, without
from validators import (
    DECORATION,
    EMBEDDED_REVIEW,
    EVENT_PACKAGE,
    MENU_ITEM,
    MUSICAL_GROUP,
    PHOTOGRAPHER,
    RENTAL_ITEM,
    STAFF,
    VENUE,
    Caller,
    Operation,
    ValidationContext,
)

router = APIRouter()

admin_only = require_role("admin")

# rating and reviews are derived; createdBy comes from the caller
REVIEWED_FIELDS = ("rating", "reviews", "createdBy")


def _list(db, collection: str, query: Dict = None):
    return get_documents(db, collection, query)


def _ctx(op: Operation, caller: Caller, db, target_id: str = None) -> ValidationContext:
    return ValidationContext(operation=op, caller=caller, db=db, target_id=target_id)


# -----------------------------
# Venues
# -----------------------------
def _venue_problems(doc, fields):
    return venue_problems(doc)


@router.get("/venues")
def list_venues(db=Depends(get_db)):
    return {"venues": _list(db, "venue")}


@router.get("/venues/type/{type}")
def venues_by_type(type: str, db=Depends(get_db)):
    return {"venues": _list(db, "venue", {"availableFor": type})}


@router.get("/venues/{venue_id}")
def get_venue(venue_id: str, db=Depends(get_db)):
    return {"venue": sanitize(find_or_404(db, "venue", venue_id, "Venue not found"))}


@router.post("/venues", status_code=status.HTTP_201_CREATED)
def create_venue(payload: dict = Body(...), caller: Caller = Depends(admin_only), db=Depends(get_db)):
    venue = create_record(
        db, "venue", schemas.Venue, without(payload, REVIEWED_FIELDS), VENUE,
        _ctx(Operation.CREATE, caller, db), _venue_problems, extra={"createdBy": caller.user_id},
    )
    return {"msg": "Venue created successfully", "venue": venue}


@router.patch("/venues/{venue_id}")
def update_venue(venue_id: str, payload: dict = Body(...), caller: Caller = Depends(admin_only), db=Depends(get_db)):
    venue = update_record(
        db, "venue", schemas.Venue, venue_id, without(payload, REVIEWED_FIELDS), VENUE,
        _ctx(Operation.UPDATE, caller, db, venue_id), "Venue not found", _venue_problems,
    )
    return {"msg": "Venue updated successfully", "venue": venue}


@router.delete("/venues/{venue_id}")
def delete_venue(venue_id: str, caller: Caller = Depends(admin_only), db=Depends(get_db)):
    delete_record(db, "venue", venue_id, "Venue not found")
    return {"msg": "Venue deleted successfully"}


def _embedded_review(payload, caller: Caller, db) -> Dict:
    data = EMBEDDED_REVIEW.validate(payload, _ctx(Operation.CREATE, caller, db))
    return schemas.EmbeddedReview(
        user=caller.user_id,
        rating=data["rating"],
        comment=data["comment"],
        date=now(),
        images=data.get("images") or [],
    ).model_dump()


@router.post("/venues/{venue_id}/reviews")
def review_venue(venue_id: str, payload: dict = Body(...), caller: Caller = Depends(get_current_user), db=Depends(get_db)):
    venue = add_embedded_review(db, "venue", venue_id, _embedded_review(payload, caller, db))
    return {"msg": "Review added successfully", "venue": sanitize(venue)}


# -----------------------------
# Decorations
# -----------------------------
def _decoration_problems(doc, fields):
    return decoration_problems(doc)


@router.get("/decorations")
def list_decorations(caller: Caller = Depends(get_current_user), db=Depends(get_db)):
    return {"decorations": _list(db, "decoration")}


@router.get("/decorations/type/{type}")
def decorations_by_type(type: str, caller: Caller = Depends(get_current_user), db=Depends(get_db)):
    return {"decorations": _list(db, "decoration", {"type": type})}


@router.get("/decorations/{decoration_id}")
def get_decoration(decoration_id: str, caller: Caller = Depends(get_current_user), db=Depends(get_db)):
    doc = find_or_404(db, "decoration", decoration_id, "Decoration package not found")
    return {"decoration": sanitize(doc)}


@router.post("/decorations", status_code=status.HTTP_201_CREATED)
def create_decoration(payload: dict = Body(...), caller: Caller = Depends(admin_only), db=Depends(get_db)):
    decoration = create_record(
        db, "decoration", schemas.Decoration, without(payload, REVIEWED_FIELDS), DECORATION,
        _ctx(Operation.CREATE, caller, db), _decoration_problems, extra={"createdBy": caller.user_id},
    )
    return {"msg": "Decoration package created successfully", "decoration": decoration}


@router.patch("/decorations/{decoration_id}")
def update_decoration(decoration_id: str, payload: dict = Body(...), caller: Caller = Depends(admin_only), db=Depends(get_db)):
    decoration = update_record(
        db, "decoration", schemas.Decoration, decoration_id, without(payload, REVIEWED_FIELDS), DECORATION,
        _ctx(Operation.UPDATE, caller, db, decoration_id), "Decoration package not found", _decoration_problems,
    )
    return {"msg": "Decoration package updated successfully", "decoration": decoration}


@router.delete("/decorations/{decoration_id}")
def delete_decoration(decoration_id: str, caller: Caller = Depends(admin_only), db=Depends(get_db)):
    delete_record(db, "decoration", decoration_id, "Decoration package not found")
    return {"msg": "Decoration package deleted successfully"}


@router.post("/decorations/{decoration_id}/reviews")
def review_decoration(decoration_id: str, payload: dict = Body(...), caller: Caller = Depends(get_current_user), db=Depends(get_db)):
    decoration = add_embedded_review(db, "decoration", decoration_id, _embedded_review(payload, caller, db))
    return {"msg": "Review added successfully", "decoration": sanitize(decoration)}


# -----------------------------
# Event packages
# -----------------------------
def _package_problems(doc, fields):
    return package_problems(doc)


@router.get("/event-packages")
def list_packages(caller: Caller = Depends(get_current_user), db=Depends(get_db)):
    return {"eventPackages": _list(db, "package")}


@router.get("/event-packages/type/{type}")
def packages_by_type(type: str, caller: Caller = Depends(get_current_user), db=Depends(get_db)):
    return {"eventPackages": _list(db, "package", {"type": type})}


@router.get("/event-packages/{package_id}")
def get_package(package_id: str, caller: Caller = Depends(get_current_user), db=Depends(get_db)):
    return {"eventPackage": sanitize(find_or_404(db, "package", package_id, "Event package not found"))}


@router.post("/event-packages", status_code=status.HTTP_201_CREATED)
def create_package(payload: dict = Body(...), caller: Caller = Depends(admin_only), db=Depends(get_db)):
    package = create_record(
        db, "package", schemas.Package, without(payload, ("createdBy",)), EVENT_PACKAGE,
        _ctx(Operation.CREATE, caller, db), _package_problems, extra={"createdBy": caller.user_id},
    )
    return {"msg": "Event package created successfully", "eventPackage": package}


@router.patch("/event-packages/{package_id}")
def update_package(package_id: str, payload: dict = Body(...), caller: Caller = Depends(admin_only), db=Depends(get_db)):
    package = update_record(
        db, "package", schemas.Package, package_id, without(payload, ("createdBy",)), EVENT_PACKAGE,
        _ctx(Operation.UPDATE, caller, db, package_id), "Event package not found", _package_problems,
    )
    return {"msg": "Event package updated successfully", "eventPackage": package}


@router.delete("/event-packages/{package_id}")
def delete_package(package_id: str, caller: Caller = Depends(admin_only), db=Depends(get_db)):
    delete_record(db, "package", package_id, "Event package not found")
    return {"msg": "Event package deleted successfully"}


# -----------------------------
# Menu items
# -----------------------------
@router.get("/menu-items")
def list_menu_items(db=Depends(get_db)):
    return {"menuItems": _list(db, "menuitem")}


@router.get("/menu-items/category/{category}")
def menu_items_by_category(category: str, db=Depends(get_db)):
    return {"menuItems": _list(db, "menuitem", {"category": category})}


@router.get("/menu-items/{item_id}")
def get_menu_item(item_id: str, db=Depends(get_db)):
    return {"menuItem": sanitize(find_or_404(db, "menuitem", item_id, "Menu item not found"))}


@router.post("/menu-items", status_code=status.HTTP_201_CREATED)
def create_menu_item(payload: dict = Body(...), caller: Caller = Depends(admin_only), db=Depends(get_db)):
    item = create_record(
        db, "menuitem", schemas.MenuItem, without(payload, ("createdBy",)), MENU_ITEM,
        _ctx(Operation.CREATE, caller, db), extra={"createdBy": caller.user_id},
    )
    return {"msg": "Menu item created successfully", "menuItem": item}


@router.patch("/menu-items/{item_id}")
def update_menu_item(item_id: str, payload: dict = Body(...), caller: Caller = Depends(admin_only), db=Depends(get_db)):
    item = update_record(
        db, "menuitem", schemas.MenuItem, item_id, without(payload, ("createdBy",)), MENU_ITEM,
        _ctx(Operation.UPDATE, caller, db, item_id), "Menu item not found",
    )
    return {"msg": "Menu item updated successfully", "menuItem": item}


@router.delete("/menu-items/{item_id}")
def delete_menu_item(item_id: str, caller: Caller = Depends(admin_only), db=Depends(get_db)):
    delete_record(db, "menuitem", item_id, "Menu item not found")
    return {"msg": "Menu item deleted successfully"}


# -----------------------------
# Musical groups
# -----------------------------
@router.get("/musical-group")
def list_musical_groups(db=Depends(get_db)):
    return {"musicalGroups": _list(db, "musicalgroup")}


@router.get("/musical-group/{group_id}")
def get_musical_group(group_id: str, db=Depends(get_db)):
    return {"musicalGroup": sanitize(find_or_404(db, "musicalgroup", group_id, "Musical group not found"))}


@router.post("/musical-group", status_code=status.HTTP_201_CREATED)
def create_musical_group(payload: dict = Body(...), caller: Caller = Depends(admin_only), db=Depends(get_db)):
    group = create_record(
        db, "musicalgroup", schemas.MusicalGroup, payload, MUSICAL_GROUP,
        _ctx(Operation.CREATE, caller, db),
    )
    return {"msg": "Musical group created successfully", "musicalGroup": group}


@router.patch("/musical-group/{group_id}")
def update_musical_group(group_id: str, payload: dict = Body(...), caller: Caller = Depends(admin_only), db=Depends(get_db)):
    group = update_record(
        db, "musicalgroup", schemas.MusicalGroup, group_id, payload, MUSICAL_GROUP,
        _ctx(Operation.UPDATE, caller, db, group_id), "Musical group not found",
    )
    return {"msg": "Musical group updated successfully", "musicalGroup": group}


@router.delete("/musical-group/{group_id}")
def delete_musical_group(group_id: str, caller: Caller = Depends(admin_only), db=Depends(get_db)):
    delete_record(db, "musicalgroup", group_id, "Musical group not found")
    return {"msg": "Musical group deleted successfully"}


# -----------------------------
# Photographers
# -----------------------------
@router.get("/photographers")
def list_photographers(db=Depends(get_db)):
    return {"photographers": _list(db, "photographer")}


@router.get("/photographers/{photographer_id}")
def get_photographer(photographer_id: str, db=Depends(get_db)):
    doc = find_or_404(db, "photographer", photographer_id, "Photographer not found")
    return {"photographer": sanitize(doc)}


@router.post("/photographers", status_code=status.HTTP_201_CREATED)
def create_photographer(payload: dict = Body(...), caller: Caller = Depends(admin_only), db=Depends(get_db)):
    photographer = create_record(
        db, "photographer", schemas.Photographer, payload, PHOTOGRAPHER,
        _ctx(Operation.CREATE, caller, db),
    )
    return {"msg": "Photographer added successfully", "photographer": photographer}


@router.patch("/photographers/{photographer_id}")
def update_photographer(photographer_id: str, payload: dict = Body(...), caller: Caller = Depends(admin_only), db=Depends(get_db)):
    photographer = update_record(
        db, "photographer", schemas.Photographer, photographer_id, payload, PHOTOGRAPHER,
        _ctx(Operation.UPDATE, caller, db, photographer_id), "Photographer not found",
    )
    return {"msg": "Photographer updated successfully", "photographer": photographer}


@router.delete("/photographers/{photographer_id}")
def delete_photographer(photographer_id: str, caller: Caller = Depends(admin_only), db=Depends(get_db)):
    delete_record(db, "photographer", photographer_id, "Photographer not found")
    return {"msg": "Photographer deleted successfully"}


# -----------------------------
# Staff (admin only, reads included)
# -----------------------------
@router.get("/admin/staff")
def list_staff(caller: Caller = Depends(admin_only), db=Depends(get_db)):
    return {"staffList": _list(db, "staff")}


@router.get("/admin/staff/{staff_id}")
def get_staff(staff_id: str, caller: Caller = Depends(admin_only), db=Depends(get_db)):
    return {"staff": sanitize(find_or_404(db, "staff", staff_id, "Staff member not found"))}


@router.post("/admin/staff", status_code=status.HTTP_201_CREATED)
def create_staff(payload: dict = Body(...), caller: Caller = Depends(admin_only), db=Depends(get_db)):
    staff = create_record(db, "staff", schemas.Staff, payload, STAFF, _ctx(Operation.CREATE, caller, db))
    return {"msg": "Staff member created successfully", "staff": staff}


@router.patch("/admin/staff/{staff_id}")
def update_staff(staff_id: str, payload: dict = Body(...), caller: Caller = Depends(admin_only), db=Depends(get_db)):
    staff = update_record(
        db, "staff", schemas.Staff, staff_id, payload, STAFF,
        _ctx(Operation.UPDATE, caller, db, staff_id), "Staff member not found",
    )
    return {"msg": "Staff member updated successfully", "staff": staff}


@router.delete("/admin/staff/{staff_id}")
def delete_staff(staff_id: str, caller: Caller = Depends(admin_only), db=Depends(get_db)):
    delete_record(db, "staff", staff_id, "Staff member not found")
    return {"msg": "Staff member deleted successfully"}


# -----------------------------
# Rental items
# -----------------------------
def is_expired(item: Dict, at: datetime = None) -> bool:
    start, duration = item.get("rentalStartDate"), item.get("duration")
    if not start or not duration:
        return False
    at = at or now().replace(tzinfo=None)
    return start + timedelta(days=duration) < at


def serialize_rental(doc: Dict) -> Dict:
    item = sanitize(doc)
    item["isExpired"] = is_expired(doc)
    return item


@router.get("/rent")
def list_rental_items(caller: Caller = Depends(get_current_user), db=Depends(get_db)):
    items = db["rentalitem"].find({}).sort("createdAt", -1)
    return {"rentalItems": [serialize_rental(d) for d in items]}


@router.get("/rent/{item_id}")
def get_rental_item(item_id: str, caller: Caller = Depends(get_current_user), db=Depends(get_db)):
    return {"rentalItem": serialize_rental(find_or_404(db, "rentalitem", item_id, "Rental item not found"))}


@router.post("/rent", status_code=status.HTTP_201_CREATED)
def create_rental_item(payload: dict = Body(...), caller: Caller = Depends(admin_only), db=Depends(get_db)):
    item = create_record(
        db, "rentalitem", schemas.RentalItem, payload, RENTAL_ITEM, _ctx(Operation.CREATE, caller, db),
    )
    return {"msg": "Rental item created successfully", "rentalItem": item}


@router.patch("/rent/{item_id}")
def update_rental_item(item_id: str, payload: dict = Body(...), caller: Caller = Depends(admin_only), db=Depends(get_db)):
    item = update_record(
        db, "rentalitem", schemas.RentalItem, item_id, payload, RENTAL_ITEM,
        _ctx(Operation.UPDATE, caller, db, item_id), "Rental item not found",
    )
    return {"msg": "Rental item updated successfully", "rentalItem": item}


@router.delete("/rent/{item_id}")
def delete_rental_item(item_id: str, caller: Caller = Depends(admin_only), db=Depends(get_db)):
    delete_record(db, "rentalitem", item_id, "Rental item not found")
    return {"msg": "Rental item deleted successfully"}
