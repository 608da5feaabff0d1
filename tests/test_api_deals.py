"""
Tests for the pipeline (deal) endpoints.
"""

from conftest import OTHER_USER


class TestCreateDeal:

    def test_title_derived_from_property_address(self, client, make_property):
        prop = make_property(street_address="1 Main St", suburb="Perth", postcode="6000")

        response = client.post("/api/deals", json={"prefillPropertyId": prop.id})

        assert response.status_code == 201
        deal = response.json()["deal"]
        assert deal["title"] == "1 Main St, Perth WA 6000"
        assert deal["stage"] == "lead"
        assert deal["property"]["id"] == prop.id
        assert deal["contact"] is None
        assert deal["appraisal"] is None

    def test_explicit_title_and_stage(self, client):
        deal = client.post("/api/deals", json={"title": " Smith sale ", "stage": "nurture"}).json()["deal"]

        assert deal["title"] == "Smith sale"
        assert deal["stage"] == "nurture"

    def test_no_title_no_property(self, client):
        assert client.post("/api/deals", json={}).json()["deal"]["title"] == "New deal"

    def test_other_users_property_is_404(self, client, make_property):
        theirs = make_property(user_id=OTHER_USER.id)

        response = client.post("/api/deals", json={"property_id": theirs.id})

        assert response.status_code == 404
        assert response.json()["detail"] == "Property not found"

    def test_unknown_stage_is_422(self, client):
        assert client.post("/api/deals", json={"stage": "won"}).status_code == 422


class TestPipeline:

    def test_list_resolves_joins(self, client, make_property, make_contact):
        prop = make_property()
        contact = make_contact(first_name="Jo", last_name="Smith", phone_mobile="0412")
        client.post("/api/deals", json={"property_id": prop.id, "contactId": contact.id})
        client.post("/api/deals", json={"title": "Bare"})

        items = client.get("/api/deals").json()["items"]

        assert len(items) == 2
        linked = next(d for d in items if d["property_id"] == prop.id)
        assert linked["contact"]["first_name"] == "Jo"
        assert linked["property"]["suburb"] == "Perth"
        bare = next(d for d in items if d["title"] == "Bare")
        assert bare["contact"] is None and bare["property"] is None

        filtered = client.get("/api/deals", params={"contactId": contact.id}).json()["items"]
        assert [d["id"] for d in filtered] == [linked["id"]]

    def test_stages(self, client):
        stages = client.get("/api/deals/stages").json()["stages"]

        assert [s["key"] for s in stages] == [
            "lead", "nurture", "appraisal", "pre_market", "for_sale", "under_offer", "sold", "lost",
        ]
        assert stages[3]["label"] == "Pre-market"


class TestUpdateDeal:

    def test_patch_whitelisted_fields(self, client):
        deal = client.post("/api/deals", json={"title": "Sale"}).json()["deal"]

        response = client.patch(f"/api/deals/{deal['id']}", json={
            "stage": "under_offer", "confidence": 80, "user_id": "someone-else",
        })

        assert response.status_code == 200
        updated = response.json()["deal"]
        assert updated["stage"] == "under_offer"
        assert updated["confidence"] == 80
        assert updated["user_id"] == deal["user_id"]

    def test_patch_with_nothing_useful_is_400(self, client):
        deal = client.post("/api/deals", json={"title": "Sale"}).json()["deal"]
        assert client.patch(f"/api/deals/{deal['id']}", json={"user_id": "x"}).status_code == 400

    def test_blank_title_is_400(self, client):
        deal = client.post("/api/deals", json={"title": "Sale"}).json()["deal"]
        assert client.patch(f"/api/deals/{deal['id']}", json={"title": "  "}).status_code == 400

    def test_unknown_stage_is_422(self, client):
        deal = client.post("/api/deals", json={"title": "Sale"}).json()["deal"]
        assert client.patch(f"/api/deals/{deal['id']}", json={"stage": "won"}).status_code == 422

    def test_delete(self, client):
        deal = client.post("/api/deals", json={"title": "Sale"}).json()["deal"]

        assert client.delete(f"/api/deals/{deal['id']}").json() == {"success": True}
        assert client.get(f"/api/deals/{deal['id']}").status_code == 404
