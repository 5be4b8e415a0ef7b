from datetime import datetime

from bson import ObjectId

from database import drop_legacy_tracking_index, serialize_doc


class TestSerializeDoc:
    def test_renames_id_and_camelizes_keys(self):
        oid = ObjectId()
        doc = {
            "_id": oid,
            "internal_tracking_number": "ZM000000001",
            "shipping_address": {"zip_code": "12345"},
            "items": [{"product_id": "p1", "quantity": 1}],
            "created_at": datetime(2024, 1, 2, 3, 4, 5),
        }

        out = serialize_doc(doc)

        assert out == {
            "id": str(oid),
            "internalTrackingNumber": "ZM000000001",
            "shippingAddress": {"zipCode": "12345"},
            "items": [{"productId": "p1", "quantity": 1}],
            "createdAt": "2024-01-02T03:04:05",
        }

    def test_empty(self):
        assert serialize_doc(None) is None


class TestLegacyIndex:
    def test_drops_unique_courier_tracking_index(self, db):
        db["order"].create_index("trackingNumber", unique=True, sparse=True)

        assert drop_legacy_tracking_index(db) is True
        assert "trackingNumber_1" not in db["order"].index_information()
        db["order"].insert_one({"trackingNumber": "X"})
        db["order"].insert_one({"trackingNumber": "X"})

    def test_noop_without_legacy_index(self, db):
        assert drop_legacy_tracking_index(db) is False
        assert "internal_tracking_number_1" in db["order"].index_information()


class TestHealth:
    def test_health(self, client):
        assert client.get("/api/health").json()["message"] == "Server is running"

    def test_unknown_route_renders_message(self, client):
        response = client.get("/api/nowhere")

        assert response.status_code == 404
        assert response.json() == {"message": "Not Found"}

    def test_diagnostics_counts_collections(self, client, make_user):
        make_user()

        body = client.get("/test").json()

        assert body["database"] == "connected"
        assert body["databaseName"] == "storefront_test"
        assert body["collections"]["user"] == 1
