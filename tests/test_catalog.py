from datetime import datetime, timedelta, timezone

from conftest import decoration_payload, venue_payload


def _create_venue(client, headers, **overrides):
    res = client.post("/api/v1/venues", json=venue_payload(**overrides), headers=headers)
    assert res.status_code == 201, res.json()
    return res.json()["venue"]


def test_create_venue(client, admin):
    admin_id, headers = admin
    venue = _create_venue(client, headers, rating=5, reviews=[{"user": "x", "rating": 5}])
    assert venue["createdBy"] == admin_id
    assert venue["rating"] == 0
    assert venue["reviews"] == []
    assert venue["location"]["pincode"] == "00300"
    assert venue["isAvailable"] is True


def test_venue_capacity_rejected_and_not_stored(client, db, admin):
    _, headers = admin
    res = client.post("/api/v1/venues", json=venue_payload(capacity={"min": 300, "max": 100}), headers=headers)
    assert res.status_code == 400
    assert res.json() == {"msg": ["Maximum capacity must be greater than or equal to minimum capacity"]}
    assert db["venue"].count_documents({}) == 0


def test_partial_venue_update_keeps_other_fields(client, admin):
    _, headers = admin
    venue = _create_venue(client, headers)
    res = client.patch(f"/api/v1/venues/{venue['id']}", json={"name": "Lotus Hall"}, headers=headers)
    assert res.status_code == 200
    updated = res.json()["venue"]
    assert updated["name"] == "Lotus Hall"
    assert updated["capacity"] == {"min": 50, "max": 200}


def test_venue_update_checks_merged_capacity(client, admin):
    _, headers = admin
    venue = _create_venue(client, headers)
    res = client.patch(f"/api/v1/venues/{venue['id']}", json={"capacity": {"max": 20}}, headers=headers)
    assert res.status_code == 400
    assert res.json() == {"msg": ["Maximum capacity must be greater than or equal to minimum capacity"]}

    res = client.patch(f"/api/v1/venues/{venue['id']}", json={"capacity": {"max": 400}}, headers=headers)
    assert res.status_code == 200
    assert res.json()["venue"]["capacity"] == {"min": 50, "max": 400}


def test_derived_fields_cannot_be_patched(client, admin):
    _, headers = admin
    venue = _create_venue(client, headers)
    res = client.patch(f"/api/v1/venues/{venue['id']}", json={"rating": 5}, headers=headers)
    assert res.status_code == 400
    assert res.json() == {"msg": "No valid fields"}


def test_venue_writes_are_admin_only(client, user):
    _, headers = user
    res = client.post("/api/v1/venues", json=venue_payload(), headers=headers)
    assert res.status_code == 403


def test_venue_reads_are_public(client, admin):
    _, headers = admin
    venue = _create_venue(client, headers)
    _create_venue(client, headers, name="Garden Court", availableFor=["Birthday"])

    assert len(client.get("/api/v1/venues").json()["venues"]) == 2
    weddings = client.get("/api/v1/venues/type/Wedding").json()["venues"]
    assert [v["name"] for v in weddings] == ["Grand Hall"]
    assert client.get(f"/api/v1/venues/{venue['id']}").json()["venue"]["id"] == venue["id"]
    assert client.get("/api/v1/venues/64b7f0c2a1b2c3d4e5f60718").status_code == 404
    assert client.get("/api/v1/venues/not-an-id").json() == {"msg": "Invalid id"}


def test_venue_reviews_update_rating(client, admin, user, other_user):
    _, admin_headers = admin
    venue = _create_venue(client, admin_headers)
    url = f"/api/v1/venues/{venue['id']}/reviews"

    res = client.post(url, json={"rating": 4, "comment": "Lovely"}, headers=user[1])
    assert res.status_code == 200
    assert res.json()["venue"]["rating"] == 4

    res = client.post(url, json={"rating": 5, "comment": "Great"}, headers=other_user[1])
    assert res.json()["venue"]["rating"] == 4.5

    again = client.post(url, json={"rating": 1, "comment": "Changed my mind"}, headers=user[1])
    assert again.status_code == 400
    assert again.json() == {"msg": "You have already reviewed this venue"}


def test_embedded_review_validation(client, admin, user):
    venue = _create_venue(client, admin[1])
    res = client.post(f"/api/v1/venues/{venue['id']}/reviews", json={"rating": 7}, headers=user[1])
    assert res.status_code == 400
    assert res.json() == {"msg": ["Rating must be between 1 and 5", "Comment is required"]}


def test_decorations_require_login(client):
    assert client.get("/api/v1/decorations").status_code == 401


def test_decoration_space_rules(client, admin):
    _, headers = admin
    res = client.post("/api/v1/decorations", json=decoration_payload(), headers=headers)
    assert res.status_code == 201
    assert res.json()["decoration"]["dimensions"] == {"minSpace": 200, "maxSpace": 0}

    res = client.post(
        "/api/v1/decorations",
        json=decoration_payload(dimensions={"minSpace": 200, "maxSpace": 100}),
        headers=headers,
    )
    assert res.status_code == 400
    assert res.json() == {"msg": ["Maximum space must be greater than or equal to minimum space"]}


def test_decoration_items_required(client, admin):
    _, headers = admin
    res = client.post("/api/v1/decorations", json=decoration_payload(items=[]), headers=headers)
    assert res.status_code == 400
    assert res.json() == {"msg": ["At least one item is required"]}


def test_package_guest_bounds(client, admin, user):
    _, headers = admin
    payload = {
        "name": "Gold",
        "description": "Full service",
        "type": "Wedding",
        "pricePerPerson": 25,
        "minimumGuests": 100,
        "maximumGuests": 50,
    }
    res = client.post("/api/v1/event-packages", json=payload, headers=headers)
    assert res.status_code == 400
    assert res.json() == {"msg": ["Maximum guests must be greater than or equal to minimum guests"]}

    payload["maximumGuests"] = 300
    assert client.post("/api/v1/event-packages", json=payload, headers=headers).status_code == 201
    listed = client.get("/api/v1/event-packages", headers=user[1]).json()["eventPackages"]
    assert [p["name"] for p in listed] == ["Gold"]


def test_menu_items_by_category(client, admin):
    _, headers = admin
    for name, category in (("Spring rolls", "Appetizers"), ("Watalappan", "Desserts")):
        res = client.post("/api/v1/menu-items", headers=headers, json={
            "name": name,
            "description": "House favourite",
            "category": category,
            "pricePerPlate": 4.5,
            "dietaryInfo": ["Vegetarian"],
        })
        assert res.status_code == 201

    desserts = client.get("/api/v1/menu-items/category/Desserts").json()["menuItems"]
    assert [m["name"] for m in desserts] == ["Watalappan"]


def test_menu_item_rejects_unknown_dietary_info(client, admin):
    res = client.post("/api/v1/menu-items", headers=admin[1], json={
        "name": "Curry",
        "description": "Spicy",
        "category": "Main Course",
        "pricePerPlate": 6,
        "dietaryInfo": ["Carnivore"],
    })
    assert res.status_code == 400
    assert res.json() == {"msg": ["Invalid dietary information provided"]}


def test_photographer_phone_and_unique_id(client, admin):
    _, headers = admin
    payload = {
        "photographerId": "PH-001",
        "fullName": "Saman Kumara",
        "email": "saman@eventpro.io",
        "phoneNumber": "0779998887",
        "experience": 5,
    }
    assert client.post("/api/v1/photographers", json=payload, headers=headers).status_code == 201

    dup = client.post("/api/v1/photographers", json={**payload, "email": "other@eventpro.io", "phoneNumber": "779998887"}, headers=headers)
    assert dup.status_code == 400
    assert dup.json() == {"msg": ["Photographer ID already exists", "Please provide a valid 10-digit phone number"]}


def test_staff_is_admin_only(client, admin, user):
    res = client.post("/api/v1/admin/staff", headers=admin[1], json={
        "fullName": "Dilini Jay",
        "email": "dilini@eventpro.io",
        "phoneNumber": "0765554443",
        "role": "Event Manager",
        "experience": 3,
    })
    assert res.status_code == 201
    assert client.get("/api/v1/admin/staff", headers=user[1]).status_code == 403
    assert len(client.get("/api/v1/admin/staff", headers=admin[1]).json()["staffList"]) == 1


def test_rental_expiry_flag(client, admin, user):
    _, headers = admin
    old = (datetime.now(timezone.utc) - timedelta(days=30)).date().isoformat()
    fresh = datetime.now(timezone.utc).date().isoformat()
    for name, start in (("Old tent", old), ("New chairs", fresh)):
        res = client.post("/api/v1/rent", headers=headers, json={
            "name": name,
            "category": "Equipment",
            "rentalPrice": 20,
            "duration": 7,
            "rentalStartDate": start,
        })
        assert res.status_code == 201, res.json()

    items = client.get("/api/v1/rent", headers=user[1]).json()["rentalItems"]
    assert {i["name"]: i["isExpired"] for i in items} == {"Old tent": True, "New chairs": False}


def test_staff_and_musical_group_emails_unique(client, admin):
    _, headers = admin
    staff = {
        "fullName": "Dilini Jay",
        "email": "dilini@eventpro.io",
        "phoneNumber": "0765554443",
        "role": "Financial Officer",
        "experience": 8,
    }
    assert client.post("/api/v1/admin/staff", json=staff, headers=headers).status_code == 201
    dup = client.post("/api/v1/admin/staff", json={**staff, "email": "DILINI@eventpro.io"}, headers=headers)
    assert dup.status_code == 400
    assert dup.json() == {"msg": ["Email already exists"]}

    band = {
        "name": "Sunset Strings",
        "description": "Acoustic quartet",
        "price": 500,
        "genre": "Classical",
        "members": ["Asha", "Ravi"],
        "contactEmail": "band@eventpro.io",
        "contactPhone": "7712345678",
    }
    created = client.post("/api/v1/musical-group", json=band, headers=headers)
    assert created.status_code == 201
    group_id = created.json()["musicalGroup"]["id"]

    dup = client.post("/api/v1/musical-group", json={**band, "name": "Other Band"}, headers=headers)
    assert dup.status_code == 400
    assert dup.json() == {"msg": ["Email already exists"]}

    # re-submitting its own email on update is not a conflict
    res = client.patch(f"/api/v1/musical-group/{group_id}", json={"contactEmail": "band@eventpro.io"}, headers=headers)
    assert res.status_code == 200
