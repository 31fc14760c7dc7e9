from datetime import datetime, timedelta, timezone

import mongomock
import pytest
from bson import ObjectId
from fastapi.testclient import TestClient

from auth import create_access_token, hash_password
from database import get_db, now
from main import app

PASSWORD = "secret123"
PASSWORD_HASH = hash_password(PASSWORD)


@pytest.fixture
def db():
    return mongomock.MongoClient()["eventpro_test"]


@pytest.fixture
def client(db):
    app.dependency_overrides[get_db] = lambda: db
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


def insert_user(db, email, role="user", full_name="Test User"):
    stamp = now()
    result = db["user"].insert_one({
        "fullName": full_name,
        "email": email,
        "passwordHash": PASSWORD_HASH,
        "phoneNumber": "0771234567",
        "location": "Colombo",
        "role": role,
        "avatar": "uploads/default-avatar.png",
        "createdAt": stamp,
        "updatedAt": stamp,
    })
    return str(result.inserted_id)


def headers_for(user_id, role):
    token = create_access_token({"sub": user_id, "role": role})
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def admin(db):
    user_id = insert_user(db, "admin@eventpro.io", role="admin", full_name="Site Admin")
    return user_id, headers_for(user_id, "admin")


@pytest.fixture
def user(db):
    user_id = insert_user(db, "nimal@eventpro.io", full_name="Nimal Perera")
    return user_id, headers_for(user_id, "user")


@pytest.fixture
def other_user(db):
    user_id = insert_user(db, "kamala@eventpro.io", full_name="Kamala Silva")
    return user_id, headers_for(user_id, "user")


def utc_today():
    return datetime.now(timezone.utc).date()


def venue_payload(**overrides):
    payload = {
        "name": "Grand Hall",
        "description": "Ballroom with garden access",
        "location": {"city": "Colombo", "pincode": " 00300 "},
        "capacity": {"min": 50, "max": 200},
        "pricePerHour": 150,
        "availableFor": ["Wedding", "Corporate"],
    }
    payload.update(overrides)
    return payload


def decoration_payload(**overrides):
    payload = {
        "name": "Floral Classic",
        "type": "Wedding",
        "items": [{"name": "Rose arch", "quantity": 2}],
        "pricePerDay": 300,
        "setupTime": 4,
        "colorScheme": {"primary": "white"},
        "dimensions": {"minSpace": 200, "maxSpace": 0},
    }
    payload.update(overrides)
    return payload


def event_payload(client_id, **overrides):
    payload = {
        "title": "Silva Wedding",
        "type": "Wedding",
        "description": "Evening reception",
        "date": (utc_today() + timedelta(days=30)).isoformat(),
        "time": {"start": "18:00", "end": "23:00"},
        "venue": str(ObjectId()),
        "package": str(ObjectId()),
        "client": client_id,
        "guests": {"count": 100},
        "totalCost": 1000,
    }
    payload.update(overrides)
    return payload


def insert_event(db, client_id, **fields):
    stamp = now()
    doc = {
        "title": "Stored Event",
        "type": "Birthday",
        "description": "Stored directly",
        "date": datetime.now(timezone.utc).replace(tzinfo=None) + timedelta(days=10),
        "time": {"start": "10:00", "end": "14:00"},
        "venue": str(ObjectId()),
        "package": str(ObjectId()),
        "client": client_id,
        "guests": {"count": 100, "list": []},
        "services": {"decoration": None, "photographer": None, "musicalGroup": None},
        "rentalItems": [],
        "menuItems": [],
        "staff": [],
        "status": "pending",
        "totalCost": 1000,
        "payment": {"status": "pending", "amount": 0, "history": []},
        "rating": 0,
        "reviewCount": 0,
        "ratingStale": False,
        "notes": None,
        "createdBy": client_id,
        "createdAt": stamp,
        "updatedAt": stamp,
    }
    doc.update(fields)
    return str(db["event"].insert_one(doc).inserted_id)
