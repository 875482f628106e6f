from conftest import auth_headers, make_property, make_user
from auth.models import AdminActionLog
from properties.models import Property

CONTACT_FIELDS = ("contact_person_name", "contact_person_phone", "contact_person_email", "contact_person_whatsapp")


def listing_body(**overrides):
    body = {
        "title": "Lake view 3BHK",
        "city": "Bengaluru",
        "locality": "Hebbal",
        "price": 32000,
        "bedrooms": 3,
        "contact_person_name": "Meera Nair",
        "contact_person_phone": "9988776655",
        "contact_person_email": "meera@example.com",
        "amenities": ["Lift", "Parking", "Lift"],
    }
    body.update(overrides)
    return body


def test_owner_creates_a_pending_listing(client, db):
    owner = make_user(db, user_type="owner")

    response = client.post("/properties/", json=listing_body(), headers=auth_headers(owner))

    assert response.status_code == 201
    body = response.json()
    assert body["status"] == "pending"
    assert body["property_code"] == f"PROP{body['id']:06d}"
    assert body["amenities"] == ["Lift", "Parking"]
    assert body["contact_person_phone"] == "9988776655"

    second = client.post("/properties/", json=listing_body(), headers=auth_headers(owner))
    assert second.status_code == 403


def test_tenants_cannot_list_properties(client, db):
    tenant = make_user(db)

    response = client.post("/properties/", json=listing_body(), headers=auth_headers(tenant))

    assert response.status_code == 403


def test_listing_validation(client, db):
    owner = make_user(db, user_type="owner")

    response = client.post("/properties/", json=listing_body(contact_person_phone="12"), headers=auth_headers(owner))

    assert response.status_code == 422
    assert response.json()["detail"][0]["field"] == "contact_person_phone"


def test_public_listing_shows_only_approved_properties(client, db):
    owner = make_user(db, user_type="owner")
    make_property(db, owner, title="Approved flat", price=15000)
    make_property(db, owner, title="Pending flat", status="pending")
    make_property(db, owner, title="Hidden flat", is_active=False)

    body = client.get("/properties/").json()

    assert [p["title"] for p in body["properties"]] == ["Approved flat"]
    assert body["pagination"]["total_items"] == 1
    assert not any(field in body["properties"][0] for field in CONTACT_FIELDS)


def test_listing_filters_and_sorting(client, db):
    owner = make_user(db, user_type="owner")
    make_property(db, owner, title="Cheap", price=9000, city="Pune")
    make_property(db, owner, title="Mid", price=20000, city="Pune", bedrooms=2)
    make_property(db, owner, title="Pricey", price=50000, city="Mumbai")

    titles = lambda url: [p["title"] for p in client.get(url).json()["properties"]]

    assert titles("/properties/?sort=price-low") == ["Cheap", "Mid", "Pricey"]
    assert titles("/properties/?sort=price-high") == ["Pricey", "Mid", "Cheap"]
    assert titles("/properties/?city=pune&sort=price-low") == ["Cheap", "Mid"]
    assert titles("/properties/?min_price=10000&max_price=60000&sort=price-low") == ["Mid", "Pricey"]
    assert titles("/properties/?bedrooms=2") == ["Mid"]
    assert titles("/properties/?search=pric") == ["Pricey"]


def test_detail_counts_views_and_hides_contact_details(client, db):
    owner = make_user(db, user_type="owner")
    listing = make_property(db, owner)

    first = client.get(f"/properties/{listing.id}").json()
    second = client.get(f"/properties/{listing.id}").json()

    assert second["views"] == first["views"] + 1
    assert first["contact_unlocked"] is None
    assert not any(field in first for field in CONTACT_FIELDS)


def test_detail_reports_unlock_state(client, db):
    owner = make_user(db, user_type="owner")
    listing = make_property(db, owner)
    tenant = make_user(db, credits=1)

    before = client.get(f"/properties/{listing.id}", headers=auth_headers(tenant)).json()
    client.post("/payments/use-credit", json={"property_id": listing.id}, headers=auth_headers(tenant))
    after = client.get(f"/properties/{listing.id}", headers=auth_headers(tenant)).json()

    assert before["contact_unlocked"] is False
    assert after["contact_unlocked"] is True
    assert not any(field in after for field in CONTACT_FIELDS)


def test_pending_listing_is_visible_to_its_owner_only(client, db):
    owner = make_user(db, user_type="owner")
    listing = make_property(db, owner, status="pending")

    assert client.get(f"/properties/{listing.id}").status_code == 404
    assert client.get(f"/properties/{listing.id}", headers=auth_headers(owner)).status_code == 200


def test_owner_updates_and_deletes_listing(client, db, storage):
    owner = make_user(db, user_type="owner")
    listing = make_property(db, owner)
    intruder = make_user(db, user_type="owner")

    assert client.put(f"/properties/{listing.id}", json={"price": 1}, headers=auth_headers(intruder)).status_code == 403

    response = client.put(f"/properties/{listing.id}", json={"price": 21000, "amenities": ["Gym"]},
                          headers=auth_headers(owner))
    assert response.status_code == 200
    assert response.json()["price"] == 21000
    assert response.json()["amenities"] == ["Gym"]

    upload = client.post(
        f"/properties/{listing.id}/images",
        files={"file": ("front.jpg", b"jpeg-bytes", "image/jpeg")},
        data={"caption": "Front"},
        headers=auth_headers(owner),
    )
    assert upload.status_code == 200
    [image] = upload.json()["images"]
    assert image["is_primary"] is True
    assert image["caption"] == "Front"

    assert client.delete(f"/properties/{listing.id}", headers=auth_headers(owner)).status_code == 200
    assert storage.deleted == [image["public_id"]]
    db.expire_all()
    assert db.query(Property).filter(Property.id == listing.id).one().is_active is False
    assert client.get(f"/properties/{listing.id}").status_code == 404


def test_delete_image_promotes_the_next_one(client, db, storage):
    owner = make_user(db, user_type="owner")
    listing = make_property(db, owner)
    for name in ("a.jpg", "b.jpg"):
        client.post(f"/properties/{listing.id}/images", files={"file": (name, b"x", "image/jpeg")},
                    headers=auth_headers(owner))
    first, second = client.get("/properties/mine", headers=auth_headers(owner)).json()[0]["images"]

    response = client.delete(f"/properties/{listing.id}/images/{first['id']}", headers=auth_headers(owner))

    assert response.status_code == 200
    [remaining] = response.json()["images"]
    assert remaining["id"] == second["id"]
    assert remaining["is_primary"] is True
    assert storage.deleted == [first["public_id"]]


def test_admin_moderation(client, db):
    admin = make_user(db, user_type="admin")
    owner = make_user(db, user_type="owner")
    listing = make_property(db, owner, status="pending")

    pending = client.get("/admin/properties?status=pending", headers=auth_headers(admin)).json()
    assert [p["id"] for p in pending] == [listing.id]

    assert client.put(f"/admin/properties/{listing.id}/approve", headers=auth_headers(admin)).json()["status"] == "approved"
    assert client.put(f"/admin/properties/{listing.id}/feature", headers=auth_headers(admin)).json()["is_featured"] is True
    featured = client.get("/properties/featured").json()
    assert [p["id"] for p in featured] == [listing.id]

    rejected = client.put(f"/admin/properties/{listing.id}/reject", json={"reason": "Blurry photos"},
                          headers=auth_headers(admin)).json()
    assert rejected["status"] == "rejected"
    assert rejected["rejection_reason"] == "Blurry photos"
    assert rejected["is_featured"] is False

    assert db.query(AdminActionLog).count() == 3
    assert client.put(f"/admin/properties/{listing.id}/approve", headers=auth_headers(owner)).status_code == 403


def test_admin_stats(client, db):
    admin = make_user(db, user_type="admin")
    owner = make_user(db, user_type="owner")
    make_property(db, owner)
    make_property(db, owner, status="pending")

    stats = client.get("/admin/stats", headers=auth_headers(admin)).json()

    assert stats["properties"]["total"] == 2
    assert stats["properties"]["pending"] == 1
    assert stats["users"] == {"admin": 1, "owner": 1}
