"""
Tests for contacts, contact links, notes, activities and the contact timeline.
"""

from datetime import datetime

from conftest import OTHER_USER, USER
from crm.models import Appraisal, AppraisalContact, ContactNote, OpenHomeAttendee, Task


class TestContacts:

    def test_create_composes_name_and_mobile(self, client):
        response = client.post("/api/contacts", json={
            "first_name": "Jo", "last_name": "Smith", "phone": "0412 000 000", "tags": ["vip"],
        })

        assert response.status_code == 201
        contact = response.json()["contact"]
        assert contact["name"] == "Jo Smith"
        assert contact["phone_mobile"] == "0412 000 000"
        assert contact["phone"] == "0412 000 000"
        assert contact["tags"] == ["vip"]
        assert contact["user_id"] == USER.id

    def test_explicit_name_is_kept(self, client):
        contact = client.post("/api/contacts", json={
            "name": "The Smiths", "first_name": "Jo",
        }).json()["contact"]
        assert contact["name"] == "The Smiths"

    def test_list_is_ordered_by_name_and_searchable(self, client, make_contact):
        make_contact(name="Zed")
        make_contact(name="Amy Jones")
        make_contact(user_id=OTHER_USER.id, name="Amy Other")

        names = [c["name"] for c in client.get("/api/contacts").json()["items"]]
        assert names == ["Amy Jones", "Zed"]

        found = client.get("/api/contacts", params={"q": "jon"}).json()["items"]
        assert [c["name"] for c in found] == ["Amy Jones"]

    def test_patch_is_partial(self, client, make_contact):
        contact = make_contact(name="Jo", email="jo@example.com", suburb="Perth")

        updated = client.patch(f"/api/contacts/{contact.id}", json={"suburb": "Guildford"}).json()["contact"]

        assert updated["suburb"] == "Guildford"
        assert updated["email"] == "jo@example.com"

    def test_empty_patch_is_400(self, client, make_contact):
        contact = make_contact(name="Jo")
        assert client.patch(f"/api/contacts/{contact.id}", json={}).status_code == 400

    def test_other_users_contact_is_404(self, client, make_contact):
        theirs = make_contact(user_id=OTHER_USER.id, name="Theirs")
        assert client.get(f"/api/contacts/{theirs.id}").status_code == 404

    def test_delete_unlinks_attendees(self, client, db, make_contact, make_attendee):
        contact_id = make_contact(name="Jo").id
        attendee_id = make_attendee(first_name="Jo", contact_id=contact_id).id

        assert client.delete(f"/api/contacts/{contact_id}").json() == {"success": True}

        db.expire_all()
        assert db.get(OpenHomeAttendee, attendee_id).contact_id is None
        assert client.get(f"/api/contacts/{contact_id}").status_code == 404


class TestLinks:

    def test_link_and_list_with_linked_contact(self, client, make_contact):
        jo = make_contact(name="Jo")
        sam = make_contact(name="Sam", email="sam@example.com")

        response = client.post("/api/contact-links", json={
            "contact_id": jo.id, "linked_contact_id": sam.id, "relationship_type": "spouse",
        })
        assert response.status_code == 201

        links = client.get(f"/api/contacts/{jo.id}/links").json()["links"]
        assert len(links) == 1
        assert links[0]["relationship_type"] == "spouse"
        assert links[0]["linked"]["name"] == "Sam"
        assert links[0]["linked"]["email"] == "sam@example.com"

        # One-directional
        assert client.get(f"/api/contacts/{sam.id}/links").json()["links"] == []

    def test_self_link_is_400(self, client, make_contact):
        jo = make_contact(name="Jo")
        response = client.post("/api/contact-links", json={"contact_id": jo.id, "linked_contact_id": jo.id})
        assert response.status_code == 400

    def test_cannot_link_someone_elses_contact(self, client, make_contact):
        jo = make_contact(name="Jo")
        theirs = make_contact(user_id=OTHER_USER.id, name="Theirs")
        response = client.post("/api/contact-links", json={"contact_id": jo.id, "linked_contact_id": theirs.id})
        assert response.status_code == 404

    def test_delete_link(self, client, make_contact):
        jo = make_contact(name="Jo")
        sam = make_contact(name="Sam")
        link = client.post("/api/contact-links", json={
            "contact_id": jo.id, "linked_contact_id": sam.id,
        }).json()["link"]

        assert client.delete(f"/api/contact-links/{link['id']}").json() == {"success": True}
        assert client.get(f"/api/contacts/{jo.id}/links").json()["links"] == []


class TestNotesAndActivities:

    def test_add_and_list_notes(self, client, make_contact):
        jo = make_contact(name="Jo")

        created = client.post(f"/api/contacts/{jo.id}/notes", json={"note": "  Wants a pool "})
        assert created.status_code == 201
        assert created.json()["note"]["note"] == "Wants a pool"
        assert created.json()["note"]["note_type"] == "general"

        notes = client.get(f"/api/contacts/{jo.id}/notes").json()["notes"]
        assert [n["note"] for n in notes] == ["Wants a pool"]

    def test_blank_note_is_400(self, client, make_contact):
        jo = make_contact(name="Jo")
        assert client.post(f"/api/contacts/{jo.id}/notes", json={"note": "  "}).status_code == 400

    def test_delete_note(self, client, make_contact):
        jo = make_contact(name="Jo")
        note = client.post(f"/api/contacts/{jo.id}/notes", json={"note": "x"}).json()["note"]

        assert client.delete(f"/api/contact-notes/{note['id']}").status_code == 204
        assert client.get(f"/api/contacts/{jo.id}/notes").json()["notes"] == []

    def test_log_activity_defaults_time(self, client, make_contact):
        jo = make_contact(name="Jo")

        response = client.post("/api/contact-activities", json={
            "contactId": jo.id, "activity_type": "call", "direction": "outbound", "summary": "Left voicemail",
        })

        assert response.status_code == 201
        activity = response.json()["activity"]
        assert activity["activity_type"] == "call"
        assert activity["activity_at"] is not None

        items = client.get("/api/contact-activities", params={"contactId": jo.id}).json()["items"]
        assert [a["summary"] for a in items] == ["Left voicemail"]

    def test_unknown_activity_type_is_422(self, client, make_contact):
        jo = make_contact(name="Jo")
        response = client.post("/api/contact-activities", json={"contact_id": jo.id, "activity_type": "fax"})
        assert response.status_code == 422


class TestContactTimeline:

    def test_merges_sources_newest_first(self, client, db, make_contact):
        jo = make_contact(name="Jo")
        appraisal = Appraisal(user_id=USER.id, data={"streetAddress": "1 Main St", "suburb": "Perth"},
                              created_at=datetime(2025, 1, 5))
        db.add(appraisal)
        db.commit()
        db.add_all([
            ContactNote(user_id=USER.id, contact_id=jo.id, note="First chat",
                        created_at=datetime(2025, 1, 1)),
            Task(user_id=USER.id, related_contact_id=jo.id, title="Follow up", due_date="2025-02-01"),
            AppraisalContact(appraisal_id=appraisal.id, contact_id=jo.id, is_primary=True),
        ])
        db.commit()
        client.post("/api/contact-activities", json={
            "contact_id": jo.id, "activity_type": "sms", "direction": "inbound",
            "activity_at": "2025-01-10T09:00:00",
        })

        items = client.get(f"/api/contacts/{jo.id}/timeline").json()["items"]

        assert [i["kind"] for i in items] == ["task", "activity", "appraisal", "note"]
        assert items[1]["title"] == "SMS • from contact"
        assert items[2]["title"] == "1 Main St"
        assert items[2]["description"] == "Perth"
        assert items[2]["meta"]["role"] == "owner"
        assert items[3]["id"].startswith("note-")


class TestOpenHomeAttendances:

    def test_converted_attendee_shows_up_for_the_contact(self, client):
        prop = client.post("/api/properties", json={
            "street_address": "5 Hill Rd", "suburb": "Mundaring", "state": "WA", "postcode": "6073",
        }).json()["property"]
        event = client.post("/api/open-homes", json={
            "propertyId": prop["id"], "title": "Sunday open", "startAt": "2025-03-02T11:00:00",
        }).json()["event"]
        attendee = client.post(f"/api/open-homes/{event['id']}/attendees", json={
            "firstName": "Jo", "lastName": "Smith", "phone": "0412 000 000",
            "isBuyer": True, "leadSource": "Signboard", "notes": "Needs finance",
        }).json()["attendee"]
        contact_id = client.post(
            f"/api/open-homes/{event['id']}/attendees/{attendee['id']}/convert-to-contact"
        ).json()["contactId"]

        response = client.get(f"/api/contacts/{contact_id}/open-home-attendances")

        assert response.status_code == 200
        assert response.json()["items"] == [{
            "attendeeId": attendee["id"],
            "eventId": event["id"],
            "eventTitle": "Sunday open",
            "propertyLabel": "5 Hill Rd, Mundaring WA 6073",
            "propertyId": prop["id"],
            "attendedAt": "2025-03-02T11:00:00",
            "roleLabel": "Buyer",
            "leadSource": "Signboard",
            "notes": "Needs finance",
        }]

    def test_newest_first_with_role_labels(self, client, make_contact, make_attendee):
        jo = make_contact(name="Jo")
        older = make_attendee(contact_id=jo.id, is_buyer=True, is_seller=True,
                              lead_source_other="Walk-in", created_at=datetime(2025, 1, 1))
        newer = make_attendee(contact_id=jo.id, created_at=datetime(2025, 2, 1))
        make_attendee(first_name="Unlinked")

        items = client.get(f"/api/contacts/{jo.id}/open-home-attendances").json()["items"]

        assert [i["attendeeId"] for i in items] == [newer.id, older.id]
        assert items[0]["roleLabel"] is None
        assert items[0]["eventTitle"] == "Open home"
        assert items[0]["propertyLabel"] == "1 Main St, Perth WA"
        assert items[1]["roleLabel"] == "Buyer & Seller"
        assert items[1]["leadSource"] == "Walk-in"

    def test_other_users_contact_is_404(self, client, make_contact):
        theirs = make_contact(user_id=OTHER_USER.id, name="Theirs")
        assert client.get(f"/api/contacts/{theirs.id}/open-home-attendances").status_code == 404
