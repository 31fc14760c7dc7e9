"""
Declarative request validation.

A RuleSet is an ordered list of field chains built with `field(path)` (request
body) or `param(name)` (path parameters). Each link in a chain is a Check with
its own message and ErrorKind, so the failure a caller sees is chosen by the
kind of the first failing check rather than by what its message says.

Create requests enforce `required` on absent fields. Update requests are
partial: absent fields are skipped, present ones run their whole chain.
A chain stops at its first failure; messages are reported in definition order.
"""

import copy
import logging
import math
import re
from dataclasses import dataclass, field as dc_field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, Tuple

from bson import ObjectId
from email_validator import EmailNotValidError, validate_email

from errors import BadRequestError, ErrorKind, error_for
import schemas

logger = logging.getLogger(__name__)

MISSING = object()

PHONE_RE = re.compile(r"^[0-9]{10}$")
LOCAL_PHONE_RE = re.compile(r"^0[0-9]{9}$")
TIME_RE = re.compile(r"^([01]?[0-9]|2[0-3]):[0-5][0-9]$")
PHONE_MSG = "Please provide a valid 10-digit phone number"


class Operation(str, Enum):
    CREATE = "create"
    UPDATE = "update"


@dataclass(frozen=True)
class Caller:
    user_id: str
    role: str


@dataclass(frozen=True)
class ValidationContext:
    operation: Operation
    caller: Optional[Caller] = None
    db: Any = None
    target_id: Optional[str] = None
    params: Mapping[str, str] = dc_field(default_factory=dict)


class Invalid(Exception):
    pass


Test = Callable[[Any, Dict, ValidationContext], Any]


@dataclass(frozen=True)
class Check:
    test: Test
    message: str
    kind: ErrorKind = ErrorKind.BAD_REQUEST

    def run(self, value, data, ctx):
        return self.test(value, data, ctx)


def _is_empty(value) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def lookup(data: Any, path: str, default=MISSING):
    node = data
    for part in path.split("."):
        if isinstance(node, dict) and part in node:
            node = node[part]
        else:
            return default
    return node


def _resolve(data, parts: Sequence[str]) -> List[Tuple[Tuple, Any]]:
    found: List[Tuple[Tuple, Any]] = [((), data)]
    for part in parts:
        step = []
        for prefix, node in found:
            if part == "*":
                if isinstance(node, list):
                    step.extend(((*prefix, i), item) for i, item in enumerate(node))
            elif isinstance(node, dict) and part in node:
                step.append(((*prefix, part), node[part]))
            else:
                step.append(((*prefix, part), MISSING))
        found = step
    return found


def _assign(data, location: Tuple, value):
    node = data
    for key in location[:-1]:
        node = node[key]
    node[location[-1]] = value


class FieldRules:
    """One field's chain, e.g. field("capacity.max").required(...).integer(...)."""

    def __init__(self, path: str, source: str = "body"):
        self.path = path
        self.source = source
        self.presence = "optional"
        self.presence_message = ""
        self.presence_kind = ErrorKind.BAD_REQUEST
        self.checks: List[Check] = []

    # presence

    def required(self, message: str, kind: ErrorKind = ErrorKind.BAD_REQUEST):
        self.presence, self.presence_message, self.presence_kind = "required", message, kind
        return self

    def optional(self):
        self.presence = "optional"
        return self

    def forbidden(self, message: str):
        self.presence, self.presence_message = "forbidden", message
        return self

    # checks

    def check(self, test: Test, message: str, kind: ErrorKind = ErrorKind.BAD_REQUEST):
        self.checks.append(Check(test, message, kind))
        return self

    def custom(self, fn: Callable[[Any, Dict, ValidationContext], bool], message: str,
               kind: ErrorKind = ErrorKind.BAD_REQUEST):
        def test(value, data, ctx):
            if not fn(value, data, ctx):
                raise Invalid
            return value
        return self.check(test, message, kind)

    def trim(self):
        return self.check(lambda v, d, c: v.strip() if isinstance(v, str) else v, "")

    def string(self, message: str):
        def test(value, data, ctx):
            if not isinstance(value, str):
                raise Invalid
            return value
        return self.check(test, message)

    def length(self, message: str, min: Optional[int] = None, max: Optional[int] = None):
        def test(value, data, ctx):
            text = str(value)
            if (min is not None and len(text) < min) or (max is not None and len(text) > max):
                raise Invalid
            return value
        return self.check(test, message)

    def integer(self, message: str, min: Optional[int] = None, max: Optional[int] = None):
        return self.check(_numeric(int, min, max), message)

    def number(self, message: str, min: Optional[float] = None, max: Optional[float] = None):
        return self.check(_numeric(float, min, max), message)

    def boolean(self, message: str):
        def test(value, data, ctx):
            if isinstance(value, bool):
                return value
            if isinstance(value, str) and value.lower() in ("true", "false", "1", "0"):
                return value.lower() in ("true", "1")
            raise Invalid
        return self.check(test, message)

    def one_of(self, values: Sequence[Any], message: str):
        return self.custom(lambda v, d, c: v in values, message)

    def matches(self, pattern: "re.Pattern", message: str):
        return self.custom(lambda v, d, c: isinstance(v, str) and bool(pattern.match(v)), message)

    def email(self, message: str):
        def test(value, data, ctx):
            if not isinstance(value, str):
                raise Invalid
            try:
                checked = validate_email(value.strip(), check_deliverability=False)
            except EmailNotValidError:
                raise Invalid
            return checked.normalized.lower()
        return self.check(test, message)

    def object_id(self, message: str):
        return self.custom(lambda v, d, c: isinstance(v, str) and ObjectId.is_valid(v), message)

    def iso_date(self, message: str):
        def test(value, data, ctx):
            if isinstance(value, datetime):
                parsed = value
            elif isinstance(value, str):
                try:
                    parsed = datetime.fromisoformat(value.strip())
                except ValueError:
                    raise Invalid
            else:
                raise Invalid
            if parsed.tzinfo is not None:
                parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
            return parsed
        return self.check(test, message)

    def array(self, message: str):
        return self.custom(lambda v, d, c: isinstance(v, list), message)

    def not_empty(self, message: str):
        return self.custom(lambda v, d, c: len(v) > 0, message)

    def each(self, predicate: Callable[[Any], bool], message: str):
        # non-list values pass; pair with .array() to require a list
        return self.custom(lambda v, d, c: not isinstance(v, list) or all(predicate(i) for i in v), message)

    # evaluation

    def run(self, data: Dict, ctx: ValidationContext) -> List[Tuple[str, ErrorKind]]:
        if self.source == "params":
            targets = [((), ctx.params.get(self.path, MISSING))]
        else:
            targets = _resolve(data, self.path.split("."))
        # element fields of a submitted list are checked even on partial updates
        partial = ctx.operation is Operation.UPDATE and "*" not in self.path
        failures = []
        for location, value in targets:
            absent = value is MISSING or (value is None and self.presence != "required")
            if absent:
                if self.presence == "required" and not partial:
                    failures.append((self.presence_message, self.presence_kind))
                continue
            if self.presence == "forbidden":
                failures.append((self.presence_message, ErrorKind.BAD_REQUEST))
                continue
            if self.presence == "required" and _is_empty(value):
                failures.append((self.presence_message, self.presence_kind))
                continue
            failure = None
            for check in self.checks:
                try:
                    value = check.run(value, data, ctx)
                except Invalid:
                    failure = (check.message, check.kind)
                    break
            if failure:
                failures.append(failure)
            elif location and self.source == "body":
                _assign(data, location, value)
        return failures


def _numeric(kind, low, high):
    def test(value, data, ctx):
        if isinstance(value, bool):
            raise Invalid
        try:
            number = float(value) if isinstance(value, str) else value
            if not isinstance(number, (int, float)):
                raise Invalid
            if kind is int:
                if float(number) != int(number):
                    raise Invalid
                number = int(number)
            else:
                number = int(number) if isinstance(number, int) else float(number)
        except (TypeError, ValueError, OverflowError):
            raise Invalid
        if not math.isfinite(number):
            raise Invalid
        if (low is not None and number < low) or (high is not None and number > high):
            raise Invalid
        return number
    return test


def field(path: str) -> FieldRules:
    return FieldRules(path)


def param(name: str) -> FieldRules:
    return FieldRules(name, source="params")


class RuleSet:
    def __init__(self, name: str, rules: Sequence[FieldRules]):
        self.name = name
        self.rules = list(rules)

    def validate(self, payload: Any, ctx: ValidationContext) -> Dict:
        """Return the coerced payload or raise the error of the first failure."""
        if not isinstance(payload, dict):
            raise BadRequestError(["Request body must be a JSON object"])
        data = copy.deepcopy(payload)
        failures: List[Tuple[str, ErrorKind]] = []
        for rules in self.rules:
            failures.extend(rules.run(data, ctx))
        if failures:
            messages = [message for message, _ in failures]
            logger.debug("%s rejected (%s): %s", self.name, ctx.operation.value, messages)
            raise error_for(failures[0][1], messages)
        return data


# ---------------------------------------------------------------------------
# database-backed checks

def unique_in(collection: str, key: str) -> Callable[[Any, Dict, ValidationContext], bool]:
    """Value must not exist in `collection.key`, ignoring the record being updated."""
    def test(value, data, ctx):
        if ctx.db is None:
            return True
        query: Dict[str, Any] = {key: value}
        if ctx.target_id and ObjectId.is_valid(ctx.target_id):
            query["_id"] = {"$ne": ObjectId(ctx.target_id)}
        return ctx.db[collection].find_one(query) is None
    return test


def exists_in(collection: str) -> Callable[[Any, Dict, ValidationContext], bool]:
    def test(value, data, ctx):
        if ctx.db is None:
            return True
        return ctx.db[collection].find_one({"_id": ObjectId(value)}) is not None
    return test


def _not_self(value, data, ctx) -> bool:
    return ctx.caller is None or value != ctx.caller.user_id


def _gte_sibling(path: str):
    """Compare against another numeric field of the same payload when present."""
    def test(value, data, ctx):
        other = lookup(data, path)
        try:
            return other is MISSING or other in (None, "") or float(value) >= float(other)
        except (TypeError, ValueError):
            return True
    return test


def _after_start(value, data, ctx) -> bool:
    start = lookup(data, "time.start")
    if not isinstance(start, str) or not TIME_RE.match(start):
        return True
    return value.zfill(5) > start.zfill(5)


def _non_blank_strings(items) -> bool:
    return isinstance(items, list) and all(isinstance(i, str) and i.strip() for i in items)


# ---------------------------------------------------------------------------
# users

def _full_name():
    return (field("fullName").required("Full name is required").trim()
            .length("Full name must be between 3 and 50 characters", min=3, max=50))


def _user_email(message="Email is required"):
    return (field("email").required(message)
            .email("Invalid email format")
            .custom(unique_in("user", "email"), "Email already exists"))


def _user_phone():
    return (field("phoneNumber").required("Phone number is required")
            .matches(LOCAL_PHONE_RE, PHONE_MSG))


def _user_role():
    return field("role").optional().one_of(schemas.ROLES, "Invalid role specified")


REGISTER = RuleSet("register", [
    _full_name(),
    _user_email(),
    field("password").required("Password is required")
    .length("Password must be at least 6 characters long", min=6),
    _user_phone(),
    field("location").required("Location is required").trim(),
])

LOGIN = RuleSet("login", [
    field("email").required("Email is required").email("Invalid email format"),
    field("password").required("Password is required"),
])

UPDATE_PROFILE = RuleSet("update-profile", [
    _full_name(),
    _user_email(),
    _user_phone(),
    field("location").required("Location cannot be empty if provided").trim(),
    _user_role(),
    field("password").forbidden("Password cannot be updated through this route"),
])

ADMIN_ADD_USER = RuleSet("admin-add-user", [
    _full_name(),
    _user_email(),
    field("password").required("Password is required")
    .length("Password must be at least 6 characters long", min=6),
    _user_phone(),
    field("location").required("Location is required").trim(),
    _user_role(),
])

ADMIN_UPDATE_USER = RuleSet("admin-update-user", [
    _full_name(),
    _user_email(),
    _user_phone(),
    field("location").required("Location cannot be empty if provided").trim(),
    _user_role(),
    field("password").forbidden("Password cannot be updated through this route"),
    param("id").required("Invalid user ID")
    .object_id("Invalid user ID")
    .custom(exists_in("user"), "User not found", ErrorKind.NOT_FOUND)
    .custom(_not_self, "Cannot modify your own account", ErrorKind.UNAUTHORIZED),
])


# ---------------------------------------------------------------------------
# people and suppliers

PHOTOGRAPHER = RuleSet("photographer", [
    field("photographerId").required("Photographer ID is required").trim()
    .custom(unique_in("photographer", "photographerId"), "Photographer ID already exists"),
    _full_name(),
    field("email").required("Email is required")
    .email("Invalid email format")
    .custom(unique_in("photographer", "email"), "Email already exists"),
    _user_phone(),
    field("experience").required("Experience is required")
    .integer("Experience must be between 0 and 99 years", min=0, max=99),
    field("availability").boolean("Availability must be true or false"),
    field("ratings").number("Ratings must be a number between 0 and 5", min=0, max=5),
    field("image").string("Image must be a string"),
])

MUSICAL_GROUP = RuleSet("musical-group", [
    field("name").required("Name is required").trim()
    .length("Name must be between 2 and 50 characters", min=2, max=50),
    field("description").required("Description is required").trim()
    .length("Description cannot exceed 200 characters", max=200),
    field("price").required("Price is required")
    .number("Price must be a positive number", min=0),
    field("genre").required("Genre is required").trim()
    .length("Genre must be between 3 and 50 characters", min=3, max=50),
    field("members").array("members must be non-empty strings")
    .custom(lambda v, d, c: _non_blank_strings(v), "members must be non-empty strings"),
    field("contactEmail").required("Email is required")
    .email("Please provide a valid email")
    .custom(unique_in("musicalgroup", "contactEmail"), "Email already exists"),
    field("contactPhone").required("Phone number is required")
    .matches(PHONE_RE, PHONE_MSG),
    field("availableForEvents").boolean("Available for events must be true or false"),
    field("rating").integer("Rating must be an integer between 0 and 5", min=0, max=5),
    field("image").string("Image must be a string"),
])

STAFF = RuleSet("staff", [
    _full_name(),
    field("email").required("Email is required")
    .email("Please provide a valid email")
    .custom(unique_in("staff", "email"), "Email already exists"),
    _user_phone(),
    field("role").required("Role is required")
    .one_of(schemas.STAFF_ROLES, "Role must be one of: " + ", ".join(schemas.STAFF_ROLES)),
    field("experience").required("Experience is required")
    .integer("Experience must be between 0 and 99 years", min=0, max=99),
    field("salary").number("Salary must be a positive number", min=0),
    field("availability").boolean("Availability must be true or false"),
    field("ratings").integer("Ratings must be an integer between 0 and 5", min=0, max=5),
    field("image").string("Image must be a string"),
])


# ---------------------------------------------------------------------------
# catalogue

MENU_ITEM = RuleSet("menu-item", [
    field("name").required("Name is required").trim()
    .length("Name must be between 2 and 50 characters", min=2, max=50),
    field("description").required("Description is required").trim()
    .length("Description cannot exceed 200 characters", max=200),
    field("category").required("Category is required")
    .one_of(schemas.MENU_CATEGORIES, "Invalid category"),
    field("pricePerPlate").required("Price is required")
    .number("Price must be a positive number", min=0),
    field("dietaryInfo").array("Invalid dietary information provided")
    .each(lambda i: i in schemas.DIETARY_OPTIONS, "Invalid dietary information provided"),
    field("ingredients").array("Ingredients must be non-empty strings")
    .custom(lambda v, d, c: _non_blank_strings(v), "Ingredients must be non-empty strings"),
    field("isAvailable").boolean("Availability must be true or false"),
    field("image").string("Image must be a string"),
])

EVENT_PACKAGE = RuleSet("event-package", [
    field("name").trim().length("Name cannot exceed 100 characters", max=100),
    field("description").required("Description is required").trim()
    .length("Description cannot exceed 500 characters", max=500),
    field("type").required("Event type is required")
    .one_of(schemas.EVENT_TYPES, "Invalid event type"),
    field("pricePerPerson").required("Price per person is required")
    .number("Price must be a positive number", min=0),
    field("minimumGuests").required("Minimum guests is required")
    .integer("Minimum guests must be at least 1", min=1),
    field("maximumGuests").required("Maximum guests is required")
    .integer("Maximum guests must be at least 1", min=1)
    .custom(_gte_sibling("minimumGuests"), "Maximum guests must be greater than or equal to minimum guests"),
    field("menuItems").array("Menu items must be an array"),
    field("menuItems.*").object_id("Invalid menu item ID format"),
    field("services").array("Services must be an array"),
    field("features").array("Features must be an array"),
    field("isAvailable").boolean("Availability must be true or false"),
    field("image").string("Image must be a string"),
])

VENUE = RuleSet("venue", [
    field("name").required("Name is required").trim()
    .length("Name must be between 2 and 50 characters", min=2, max=50),
    field("description").trim().length("Description cannot exceed 1000 characters", max=1000),
    field("capacity.min").required("Minimum capacity is required")
    .integer("Minimum capacity must be at least 1", min=1),
    field("capacity.max").required("Maximum capacity is required")
    .integer("Maximum capacity must be at least 1", min=1)
    .custom(_gte_sibling("capacity.min"), "Maximum capacity must be greater than or equal to minimum capacity"),
    field("pricePerHour").number("Price per hour must be a positive number", min=0),
    field("location.pincode").trim(),
    field("amenities").array("Amenities must be an array"),
    field("availableFor").array("Available for must be an array")
    .each(lambda t: t in schemas.EVENT_TYPES, "Invalid event type"),
    field("facilities").string("Facilities must be a string").trim()
    .length("Facilities cannot exceed 5000 characters", max=5000),
    field("rules").string("Rules must be a string").trim()
    .length("Rules cannot exceed 5000 characters", max=5000),
    field("isAvailable").boolean("Availability must be true or false"),
    field("images").array("Images must be an array"),
])

DECORATION = RuleSet("decoration", [
    field("name").required("Name is required").trim()
    .length("Name must be between 2 and 50 characters", min=2, max=50),
    field("description").trim().length("Description cannot exceed 1000 characters", max=1000),
    field("type").one_of(schemas.EVENT_TYPES, "Invalid event type"),
    field("items").required("At least one item is required")
    .array("Items must be an array").not_empty("At least one item is required"),
    field("items.*.name").required("Item name is required").trim(),
    field("items.*.quantity").required("Item quantity is required")
    .integer("Quantity must be at least 1", min=1),
    field("pricePerDay").required("Price per day is required")
    .number("Price must be a positive number", min=0),
    field("setupTime").required("Setup time is required")
    .number("Setup time must be a positive number", min=0),
    field("colorScheme.primary").required("Primary color is required").trim(),
    field("dimensions.minSpace").number("Minimum space must be a positive number", min=0),
    field("dimensions.maxSpace").number("Maximum space must be a positive number", min=0),
    field("availability.isAvailable").boolean("Availability must be true or false"),
    field("availability.unavailableDates").array("Unavailable dates must be an array"),
    field("availability.unavailableDates.*.startDate").iso_date("Invalid start date format"),
    field("availability.unavailableDates.*.endDate").iso_date("Invalid end date format"),
    field("features").array("Features must be an array"),
    field("specialRequirements").array("Special requirements must be an array"),
    field("images").array("Images must be an array"),
])

RENTAL_ITEM = RuleSet("rental-item", [
    field("name").required("Name is required").trim()
    .length("Name must be between 3 and 50 characters", min=3, max=50),
    field("description").trim().length("Description cannot exceed 200 characters", max=200),
    field("category").required("Category is required")
    .one_of(schemas.RENTAL_CATEGORIES, "Category must be one of: Equipment, Furniture, Decor, Other"),
    field("rentalPrice").required("Rental price is required")
    .number("Rental price must be a positive number", min=0),
    field("duration").integer("Duration must be a whole number of days", min=0),
    field("rentalStartDate").required("Rental start date is required")
    .iso_date("Rental start date must be a valid ISO 8601 date (e.g., YYYY-MM-DD)"),
    field("availability").boolean("Availability must be true or false"),
])


# ---------------------------------------------------------------------------
# events and reviews

EVENT = RuleSet("event", [
    field("title").required("Event title is required").trim()
    .length("Title must be between 3 and 100 characters", min=3, max=100),
    field("type").required("Event type is required")
    .one_of(schemas.EVENT_TYPES, "Invalid event type"),
    field("description").required("Event description is required").trim()
    .length("Description cannot exceed 1000 characters", max=1000),
    field("date").required("Event date is required")
    .iso_date("Invalid date format"),
    field("time.start").required("Start time is required")
    .matches(TIME_RE, "Invalid start time format (HH:MM)"),
    field("time.end").required("End time is required")
    .matches(TIME_RE, "Invalid end time format (HH:MM)")
    .custom(_after_start, "End time must be after start time"),
    field("venue").required("Venue is required")
    .object_id("Invalid venue ID format"),
    field("package").required("Event package is required")
    .object_id("Invalid package ID format"),
    field("client").required("Client information is required")
    .object_id("Invalid client ID format"),
    field("guests.count").required("Guest count is required")
    .integer("Minimum one guest required", min=1),
    field("guests.list").array("Guest list must be an array"),
    field("guests.list.*.email").email("Invalid email format for guest"),
    field("guests.list.*.phone").matches(PHONE_RE, "Invalid phone number format for guest"),
    field("guests.list.*.status").one_of(schemas.GUEST_STATUSES, "Invalid guest status"),
    field("services.decoration").object_id("Invalid decoration ID format"),
    field("services.photographer").object_id("Invalid photographer ID format"),
    field("services.musicalGroup").object_id("Invalid musical group ID format"),
    field("staff").array("Staff must be an array"),
    field("staff.*").object_id("Invalid staff ID format"),
    field("status").one_of(schemas.EVENT_STATUSES, "Invalid event status"),
    field("totalCost").required("Total cost is required")
    .number("Total cost must be a positive number", min=0),
    field("payment.status").one_of(schemas.PAYMENT_STATUSES, "Invalid payment status"),
    field("payment.amount").number("Payment amount must be a positive number", min=0),
    field("notes").trim().length("Notes cannot exceed 500 characters", max=500),
])

EVENT_STATUS = RuleSet("event-status", [
    field("status").required("Event status is required")
    .one_of(schemas.EVENT_STATUSES, "Invalid event status"),
])

EVENT_MENU_LINE = RuleSet("event-menu-line", [
    field("menuItemId").required("Menu item ID is required")
    .object_id("Invalid menu item ID format"),
])

EVENT_RENTAL_LINE = RuleSet("event-rental-line", [
    field("rentalItemId").required("Rental item ID is required")
    .object_id("Invalid rental item ID format"),
    field("quantity").integer("Quantity must be at least 1", min=1),
])

REVIEW = RuleSet("review", [
    field("rating").required("Rating is required")
    .integer("Rating must be between 1 and 5", min=1, max=5),
    field("comment").trim().length("Comment cannot exceed 1000 characters", max=1000),
    field("eventId").required("Event ID is required")
    .object_id("Invalid event ID format")
    .custom(exists_in("event"), "Event not found", ErrorKind.NOT_FOUND),
    field("status").one_of(schemas.REVIEW_STATUSES, "Invalid status value"),
    field("replies").array("Replies must be an array"),
    field("replies.*.comment").required("Reply comment cannot be empty").trim()
    .length("Reply cannot exceed 500 characters", max=500),
    field("replies.*.user").required("Invalid user ID in reply")
    .object_id("Invalid user ID in reply"),
])

EMBEDDED_REVIEW = RuleSet("embedded-review", [
    field("rating").required("Rating is required")
    .integer("Rating must be between 1 and 5", min=1, max=5),
    field("comment").required("Comment is required").trim(),
    field("images").array("Images must be an array"),
])
