"""
Write path shared by every collection.

create: validate payload -> apply schema defaults -> consistency checks -> insert
update: validate patch -> merge over stored doc -> consistency checks -> $set
"""

import logging
from typing import Callable, Dict, Iterable, List, Optional, Type

from pydantic import BaseModel, ValidationError

from consistency import apply_patch, flatten_patch
from database import create_document, now, sanitize, to_obj_id
from errors import BadRequestError, NotFoundError
from validators import RuleSet, ValidationContext

logger = logging.getLogger(__name__)

Problems = Callable[[Dict, Optional[Iterable[str]]], List[str]]

SERVER_FIELDS = ("_id", "createdAt", "updatedAt")


def build(model: Type[BaseModel], data: Dict) -> Dict:
    """Apply model defaults; schema violations become 400s."""
    try:
        return model(**data).model_dump()
    except ValidationError as e:
        raise BadRequestError([f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in e.errors()])


def without(payload, keys: Iterable[str]):
    if not isinstance(payload, dict):
        return payload
    return {k: v for k, v in payload.items() if k not in keys}


def find_or_404(db, collection: str, id: str, message: str) -> Dict:
    doc = db[collection].find_one({"_id": to_obj_id(id)})
    if not doc:
        raise NotFoundError(message)
    return doc


def create_record(db, collection: str, model: Type[BaseModel], payload, rules: RuleSet,
                  ctx: ValidationContext, problems: Optional[Problems] = None,
                  extra: Optional[Dict] = None) -> Dict:
    data = rules.validate(payload, ctx)
    data.update(extra or {})
    doc = build(model, data)
    if problems:
        messages = problems(doc, None)
        if messages:
            raise BadRequestError(messages)
    inserted_id = create_document(db, collection, doc)
    return sanitize(db[collection].find_one({"_id": to_obj_id(inserted_id)}))


def update_record(db, collection: str, model: Type[BaseModel], id: str, payload, rules: RuleSet,
                  ctx: ValidationContext, not_found: str,
                  problems: Optional[Problems] = None) -> Dict:
    data = rules.validate(payload, ctx)
    current = find_or_404(db, collection, id, not_found)
    patch = {k: v for k, v in data.items() if k in model.model_fields}
    if not patch:
        raise BadRequestError("No valid fields")
    merged = apply_patch(without(current, SERVER_FIELDS), patch)
    build(model, merged)
    if problems:
        messages = problems(merged, patch.keys())
        if messages:
            raise BadRequestError(messages)
    db[collection].update_one(
        {"_id": current["_id"]},
        {"$set": {**flatten_patch(patch), "updatedAt": now()}},
    )
    logger.info("updated %s %s (%s)", collection, id, ", ".join(sorted(patch)))
    return sanitize(db[collection].find_one({"_id": current["_id"]}))


def delete_record(db, collection: str, id: str, not_found: str) -> Dict:
    doc = find_or_404(db, collection, id, not_found)
    db[collection].delete_one({"_id": doc["_id"]})
    logger.info("deleted %s %s", collection, id)
    return doc
