"""
Tests for the global search endpoint.
"""

from conftest import OTHER_USER, USER
from crm.models import Appraisal


class TestSearch:

    def test_short_query_returns_nothing(self, client, make_contact):
        make_contact(name="Jo")
        assert client.get("/api/search", params={"q": " j "}).json() == {"contacts": [], "appraisals": []}

    def test_finds_contacts_by_any_detail(self, client, make_contact):
        make_contact(name="Jo Smith", email="jo@example.com")
        make_contact(first_name="Sam", last_name="Lee", suburb="Guildford", street_address="2 Side St")
        make_contact(user_id=OTHER_USER.id, name="Jo Other")

        hits = client.get("/api/search", params={"q": "jo"}).json()["contacts"]
        assert [h["displayName"] for h in hits] == ["Jo Smith"]
        assert hits[0]["subtitle"] == "jo@example.com"

        hits = client.get("/api/search", params={"q": "guild"}).json()["contacts"]
        assert hits[0]["displayName"] == "Sam Lee"
        assert hits[0]["subtitle"] == "2 Side St, Guildford"

    def test_finds_appraisals_by_payload(self, client, db):
        db.add_all([
            Appraisal(user_id=USER.id, status="DRAFT",
                      data={"appraisalTitle": "Hill Rd appraisal", "suburb": "Mundaring", "postcode": "6073"}),
            Appraisal(user_id=USER.id, data={"ownerNames": "Pat Hill"}),
            Appraisal(user_id=USER.id, data={"appraisalTitle": "Unrelated"}),
        ])
        db.commit()

        hits = client.get("/api/search", params={"q": "hill"}).json()["appraisals"]

        assert len(hits) == 2
        by_title = next(h for h in hits if h["title"] == "Hill Rd appraisal")
        assert by_title["subtitle"] == "Mundaring, 6073"
        assert by_title["status"] == "DRAFT"
        by_owner = next(h for h in hits if h["title"] != "Hill Rd appraisal")
        assert by_owner["title"] == f"Appraisal #{by_owner['id']}"
        assert by_owner["subtitle"] == "Pat Hill"

    def test_results_are_limited(self, client, make_contact):
        for i in range(12):
            make_contact(name=f"Jo {i}")
        assert len(client.get("/api/search", params={"q": "jo"}).json()["contacts"]) == 10
