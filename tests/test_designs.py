import cloudinary.uploader
import pytest
from cloudinary.exceptions import Error as CloudinaryError

import config
import images
from conftest import auth

LAYER = {"url": "https://res.cloudinary.com/oiko/a.png", "publicId": "oiko/designs/x/a"}


@pytest.fixture
def cloud(monkeypatch):
    """Record Cloudinary calls instead of making them."""
    calls = {"uploads": [], "deletes": []}

    def fake_upload(content, content_type, folder, filename=None):
        calls["uploads"].append(folder)
        return {"success": True, "url": f"https://res.cloudinary.com/{folder}/{filename}", "publicId": f"{folder}/img"}

    def fake_delete(public_id):
        calls["deletes"].append(public_id)
        return {"success": public_id != "gone", "error": "not found"}

    monkeypatch.setattr(images, "upload_image", fake_upload)
    monkeypatch.setattr(images, "delete_image", fake_delete)
    return calls


@pytest.fixture
def cloudinary_account(monkeypatch):
    monkeypatch.setattr(config, "CLOUDINARY_CLOUD_NAME", "oiko")
    monkeypatch.setattr(config, "CLOUDINARY_API_KEY", "key")
    monkeypatch.setattr(config, "CLOUDINARY_API_SECRET", "secret")


def test_upload_image_through_sdk(monkeypatch, cloudinary_account):
    seen = {}

    def fake_upload(file, **options):
        seen.update(options, body=file.read(), name=file.name)
        return {"secure_url": "https://res.cloudinary.com/oiko/logo.png", "public_id": "oiko/designs/u1/logo"}

    monkeypatch.setattr(cloudinary.uploader, "upload", fake_upload)

    result = images.upload_image(b"\x89PNG", "image/png", "oiko/designs/u1", "logo.png")

    assert result == {"success": True, "url": "https://res.cloudinary.com/oiko/logo.png",
                      "publicId": "oiko/designs/u1/logo"}
    assert seen == {"folder": "oiko/designs/u1", "resource_type": "image", "body": b"\x89PNG", "name": "logo.png"}


def test_upload_error_becomes_failure_result(monkeypatch, cloudinary_account):
    def failing_upload(file, **options):
        raise CloudinaryError("Invalid image file")

    monkeypatch.setattr(cloudinary.uploader, "upload", failing_upload)
    assert images.upload_image(b"x", "image/png", "oiko") == {"success": False, "error": "Invalid image file"}


def test_delete_image_through_sdk(monkeypatch, cloudinary_account):
    monkeypatch.setattr(cloudinary.uploader, "destroy",
                        lambda public_id: {"result": "ok" if public_id == "oiko/a" else "not found"})
    assert images.delete_image("oiko/a") == {"success": True}
    assert images.delete_image("oiko/missing") == {"success": False, "error": "not found"}


def test_unconfigured_cloudinary(monkeypatch):
    monkeypatch.setattr(config, "CLOUDINARY_CLOUD_NAME", None)
    assert images.upload_image(b"x", "image/png", "oiko") == {"success": False, "error": "Cloudinary not configured"}


def test_upload_design(client, customer, cloud):
    resp = client.post("/api/upload/design", files={"file": ("logo.png", b"\x89PNG", "image/png")},
                       headers=auth(customer))
    assert resp.status_code == 200
    assert resp.json()["data"]["publicId"] == f"oiko/designs/{customer['_id']}/img"
    assert cloud["uploads"] == [f"oiko/designs/{customer['_id']}"]


def test_upload_rejects_non_images(client, customer, cloud):
    resp = client.post("/api/upload/design", files={"file": ("notes.txt", b"hi", "text/plain")},
                       headers=auth(customer))
    assert resp.status_code == 400
    assert resp.json()["error"] == "File must be an image"

    missing = client.post("/api/upload/design", headers=auth(customer))
    assert missing.status_code == 400
    assert missing.json()["error"] == "No file provided"
    assert cloud["uploads"] == []


def test_upload_rejects_files_over_the_size_limit(client, customer, cloud, monkeypatch):
    monkeypatch.setattr(config, "MAX_UPLOAD_BYTES", 1024)

    resp = client.post("/api/upload/design", files={"file": ("big.png", b"x" * 1025, "image/png")},
                       headers=auth(customer))
    assert resp.status_code == 400
    assert resp.json()["error"] == "File size must be less than 10MB"

    exact = client.post("/api/upload/design", files={"file": ("ok.png", b"x" * 1024, "image/png")},
                        headers=auth(customer))
    assert exact.status_code == 200
    assert cloud["uploads"] == [f"oiko/designs/{customer['_id']}"]


def test_product_upload_is_admin_only(client, customer, admin, cloud):
    image = {"file": ("hoodie.jpg", b"jpeg", "image/jpeg")}
    assert client.post("/api/upload/product", files=image, headers=auth(customer)).status_code == 403
    assert client.post("/api/upload/product", files=image, headers=auth(admin)).status_code == 200
    assert cloud["uploads"] == ["oiko/products"]


def test_delete_upload_ownership(client, customer, admin, cloud):
    own = f"oiko/designs/{customer['_id']}/img"
    assert client.delete(f"/api/upload/{own}", headers=auth(customer)).status_code == 200

    other = client.delete("/api/upload/oiko/designs/someoneelse/img", headers=auth(customer))
    assert other.status_code == 403
    assert other.json()["error"] == "Unauthorized to delete this image"

    assert client.delete("/api/upload/oiko/products/img", headers=auth(admin)).status_code == 200
    assert cloud["deletes"] == [own, "oiko/products/img"]


def test_save_design_default_name(client, customer):
    resp = client.post("/api/designs", json={"productId": "p1", "productType": "hoodie", "images": [LAYER]},
                       headers=auth(customer))
    assert resp.status_code == 201
    data = resp.json()["data"]
    assert data["name"] == "Custom hoodie Design"
    assert data["images"][0]["position"] == {"x": 0, "y": 0}
    assert data["userId"] == str(customer["_id"])


def test_save_design_needs_images(client, customer):
    resp = client.post("/api/designs", json={"productId": "p1", "productType": "tshirt", "images": []},
                       headers=auth(customer))
    assert resp.status_code == 400
    assert resp.json()["error"] == "At least one design image is required"


def test_designs_are_private(client, customer, make_user):
    design = client.post("/api/designs", json={"productId": "p1", "productType": "tshirt", "images": [LAYER]},
                         headers=auth(customer)).json()["data"]
    stranger = make_user(email="other@example.com")

    assert client.get(f"/api/designs/{design['id']}", headers=auth(stranger)).status_code == 403
    assert client.get("/api/designs", headers=auth(stranger)).json()["count"] == 0
    assert client.get("/api/designs/nope", headers=auth(customer)).json()["error"] == "Invalid design ID"


def test_delete_design_removes_layer_images(client, mongo, customer, cloud):
    layers = [LAYER, {"url": "https://res.cloudinary.com/oiko/b.png", "publicId": "gone"}]
    design = client.post("/api/designs", json={"productId": "p1", "productType": "tshirt", "images": layers},
                         headers=auth(customer)).json()["data"]

    resp = client.delete(f"/api/designs/{design['id']}", headers=auth(customer))
    assert resp.status_code == 200
    assert cloud["deletes"] == ["oiko/designs/x/a", "gone"]
    assert client.get(f"/api/designs/{design['id']}", headers=auth(customer)).status_code == 404
