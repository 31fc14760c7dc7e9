import logging
import os
from calendar import month_abbr
from typing import Any, Dict

from fastapi import Body, Depends, FastAPI, HTTPException, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel
from starlette.exceptions import HTTPException as StarletteHTTPException

import schemas
from auth import create_access_token, get_current_user, hash_password, require_role, verify_password
from catalog import router as catalog_router
from database import create_document, get_db, get_documents, sanitize, to_obj_id
from errors import UnauthorizedError, http_error_handler, request_validation_handler
from events import router as events_router
from records import build, delete_record, find_or_404, update_record, without
from validators import (
    ADMIN_ADD_USER,
    ADMIN_UPDATE_USER,
    LOGIN,
    REGISTER,
    UPDATE_PROFILE,
    Caller,
    Operation,
    ValidationContext,
)

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger("eventpro")

API_PREFIX = "/api/v1"

# set by the server; never taken from a request body
USER_SERVER_FIELDS = ("passwordHash", "createdAt", "updatedAt")

# App setup
app = FastAPI(title="EventPro API")
app.add_middleware(
    CORSMiddleware,
    allow_origins=[o.strip() for o in os.getenv("CORS_ORIGINS", "*").split(",")],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_exception_handler(StarletteHTTPException, http_error_handler)
app.add_exception_handler(RequestValidationError, request_validation_handler)


# Pydantic models
class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    user: dict


# Utilities

def serialize_user(doc) -> dict:
    user = sanitize(doc)
    user.pop("passwordHash", None)
    return user


def _new_user(db, data: Dict[str, Any], role: str) -> str:
    user = build(schemas.User, {
        **data,
        "passwordHash": hash_password(data["password"]),
        "role": role,
    })
    return create_document(db, "user", user)


# Routes
@app.get("/")
def root():
    return {"message": "EventPro API"}


@app.get(f"{API_PREFIX}/test")
def test_database(db=Depends(get_db)):
    try:
        collections = db.list_collection_names()
        return {"backend": "ok", "database": "ok", "collections": collections}
    except Exception as e:
        return {"backend": "ok", "database": f"error: {str(e)[:80]}"}


# Auth
@app.post(f"{API_PREFIX}/auth/register", status_code=status.HTTP_201_CREATED)
def register(payload: dict = Body(...), db=Depends(get_db)):
    data = REGISTER.validate(payload, ValidationContext(operation=Operation.CREATE, db=db))
    # the first account administers the site
    role = "admin" if db["user"].count_documents({}) == 0 else "user"
    user_id = _new_user(db, data, role)
    logger.info("registered user %s as %s", user_id, role)
    return {"msg": "User Created Successfully"}


@app.post(f"{API_PREFIX}/auth/login", response_model=TokenResponse)
def login(payload: dict = Body(...), db=Depends(get_db)):
    data = LOGIN.validate(payload, ValidationContext(operation=Operation.CREATE, db=db))
    user = db["user"].find_one({"email": data["email"]})
    if not user or not verify_password(data["password"], user.get("passwordHash", "")):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid credentials")
    access_token = create_access_token({"sub": str(user["_id"]), "role": user.get("role", "user")})
    user_out = {"id": str(user["_id"]), "name": user.get("fullName"), "email": user.get("email"), "role": user.get("role", "user")}
    return TokenResponse(access_token=access_token, user=user_out)


@app.post(f"{API_PREFIX}/auth/logout")
def logout():
    # tokens are stateless; the client drops its copy
    return {"msg": "User logged out"}


# Users
@app.get(f"{API_PREFIX}/users/current-user")
def current_user(caller: Caller = Depends(get_current_user), db=Depends(get_db)):
    return {"user": serialize_user(find_or_404(db, "user", caller.user_id, "User not found"))}


@app.patch(f"{API_PREFIX}/users/update-user")
def update_profile(payload: dict = Body(...), caller: Caller = Depends(get_current_user), db=Depends(get_db)):
    ignored = USER_SERVER_FIELDS if caller.role == "admin" else USER_SERVER_FIELDS + ("role",)
    payload = without(payload, ignored)
    ctx = ValidationContext(operation=Operation.UPDATE, caller=caller, db=db, target_id=caller.user_id)
    user = update_record(db, "user", schemas.User, caller.user_id, payload, UPDATE_PROFILE, ctx, "User not found")
    return {"msg": "User updated successfully", "user": serialize_user(user)}


@app.get(f"{API_PREFIX}/users/admin/stats")
def application_stats(caller: Caller = Depends(require_role("admin")), db=Depends(get_db)):
    stats = {
        "users": db["user"].count_documents({}),
        "packages": db["package"].count_documents({}),
        "menuItems": db["menuitem"].count_documents({}),
        "photographers": db["photographer"].count_documents({}),
        "venues": db["venue"].count_documents({}),
        "musicalGroup": db["musicalgroup"].count_documents({}),
        "staff": db["staff"].count_documents({}),
        "decorations": db["decoration"].count_documents({}),
        "orders": db["event"].count_documents({}),
    }
    monthly = [{"month": month_abbr[i + 1], "income": 0} for i in range(12)]
    total = 0
    for event in db["event"].find({}, {"totalCost": 1, "createdAt": 1}):
        cost = event.get("totalCost") or 0
        total += cost
        if event.get("createdAt") and cost:
            monthly[event["createdAt"].month - 1]["income"] += cost
    stats["totalIncome"] = total
    return {"stats": stats, "monthlyIncome": monthly}


@app.get(f"{API_PREFIX}/users/admin/all-users")
def all_users(caller: Caller = Depends(require_role("admin")), db=Depends(get_db)):
    users = get_documents(db, "user")
    for user in users:
        user.pop("passwordHash", None)
    return {"users": users}


@app.get(f"{API_PREFIX}/users/admin/user/{{user_id}}")
def get_user(user_id: str, caller: Caller = Depends(require_role("admin")), db=Depends(get_db)):
    return {"user": serialize_user(find_or_404(db, "user", user_id, "User not found"))}


@app.delete(f"{API_PREFIX}/users/admin/user/{{user_id}}")
def delete_user(user_id: str, caller: Caller = Depends(require_role("admin")), db=Depends(get_db)):
    if user_id == caller.user_id:
        raise UnauthorizedError("You cannot delete your own account")
    target = find_or_404(db, "user", user_id, "User not found")
    if target.get("role") == "admin":
        raise UnauthorizedError("Admin accounts cannot be deleted")
    delete_record(db, "user", user_id, "User not found")
    logger.info("admin %s deleted user %s", caller.user_id, user_id)
    return {"msg": "User deleted successfully"}


@app.patch(f"{API_PREFIX}/users/admin/update-user/{{user_id}}")
def admin_update_user(user_id: str, payload: dict = Body(...), caller: Caller = Depends(require_role("admin")), db=Depends(get_db)):
    ctx = ValidationContext(
        operation=Operation.UPDATE, caller=caller, db=db, target_id=user_id, params={"id": user_id},
    )
    user = update_record(db, "user", schemas.User, user_id, without(payload, USER_SERVER_FIELDS), ADMIN_UPDATE_USER, ctx, "User not found")
    return {"msg": "User updated successfully", "user": serialize_user(user)}


@app.post(f"{API_PREFIX}/users/admin/add-user", status_code=status.HTTP_201_CREATED)
def admin_add_user(payload: dict = Body(...), caller: Caller = Depends(require_role("admin")), db=Depends(get_db)):
    data = ADMIN_ADD_USER.validate(payload, ValidationContext(operation=Operation.CREATE, caller=caller, db=db))
    user_id = _new_user(db, data, data.get("role") or "user")
    return {"msg": "User created successfully", "user": serialize_user(db["user"].find_one({"_id": to_obj_id(user_id)}))}


app.include_router(catalog_router, prefix=API_PREFIX)
app.include_router(events_router, prefix=API_PREFIX)


if __name__ == "__main__":
    import uvicorn
    port = int(os.getenv("PORT", 8000))
    uvicorn.run(app, host="0.0.0.0", port=port)
