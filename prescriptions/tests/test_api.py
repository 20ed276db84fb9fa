"""
Integration tests for the pharmacy backend API.

These tests drive the prescription workflow over HTTP: role checks,
the full create/verify/fill/dispense path, error rendering and the
note log.  They use Django REST Framework's APIClient within the
APITestCase base class.

To run the tests:

```
pytest -q prescriptions/tests
```
"""
from datetime import timedelta

from django.utils import timezone
from rest_framework import status
from rest_framework.authtoken.models import Token
from rest_framework.test import APITestCase

from prescriptions.models import AuditEvent, ControlledSubstanceLog, Drug, DrugInteraction, SafetyAlert, User
from prescriptions.services import inventory


class PharmacyAPITests(APITestCase):
    def setUp(self) -> None:
        self.prescriber = User.objects.create_user(
            username="prescriber1", password="P@ssw0rd1", role="prescriber",
            first_name="Ann", last_name="Lee", license_number="MD-77", dea_number="AL7654321",
        )
        self.pharmacist = User.objects.create_user(username="pharm1", password="P@ssw0rd1", role="pharmacist")
        self.technician = User.objects.create_user(username="tech1", password="P@ssw0rd1", role="technician")

        self.amox = Drug.objects.create(generic_name="Amoxicillin", strength="500 mg")
        self.oxy = Drug.objects.create(generic_name="Oxycodone", strength="10 mg", controlled_substance_schedule="CII")
        inventory.receive_stock(self.amox.id, 20, lot_number="AMX-1",
                                expiration_date=timezone.localdate() + timedelta(days=100))
        inventory.receive_stock(self.oxy.id, 30, lot_number="OXY-1")

    # helpers
    def as_user(self, user):
        token, _ = Token.objects.get_or_create(user=user)
        self.client.credentials(HTTP_AUTHORIZATION=f"Token {token.key}")

    def create_rx(self, *items, **extra):
        self.as_user(self.prescriber)
        body = {
            "patientId": "pat-1",
            "patientName": "Sam Patient",
            "items": [{"drugId": str(d.id), "quantityPrescribed": q, "dosageInstructions": "1 tab tid"}
                      for d, q in items],
        }
        body.update(extra)
        return self.client.post("/api/prescriptions", body, format="json")

    # tests
    def test_requires_authentication(self) -> None:
        resp = self.client.get("/api/prescriptions")
        self.assertEqual(resp.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_create_returns_pending_prescription(self) -> None:
        resp = self.create_rx((self.amox, 10), refillsAllowed=2, notes="first fill only")
        self.assertEqual(resp.status_code, status.HTTP_201_CREATED)
        data = resp.data["data"]
        self.assertEqual(data["status"], "pending")
        self.assertEqual(data["refillsAllowed"], 2)
        self.assertEqual(data["refillsRemaining"], 2)
        self.assertEqual(data["prescriberId"], str(self.prescriber.id))
        self.assertEqual(data["prescriberName"], "Ann Lee")
        self.assertEqual(data["prescriberDea"], "AL7654321")
        self.assertEqual(data["version"], 1)
        self.assertEqual(len(data["items"]), 1)
        self.assertEqual(data["items"][0]["quantityDispensed"], 0)
        self.assertEqual(data["items"][0]["drug"]["genericName"], "Amoxicillin")
        self.assertEqual(data["alerts"], [])
        self.assertTrue(data["notes"].endswith(f"({self.prescriber.id}) first fill only"))

    def test_create_forbidden_for_pharmacist(self) -> None:
        self.as_user(self.pharmacist)
        resp = self.client.post("/api/prescriptions", {
            "patientId": "p", "patientName": "x", "items": [{"drugId": str(self.amox.id), "quantityPrescribed": 1}],
        }, format="json")
        self.assertEqual(resp.status_code, status.HTTP_403_FORBIDDEN)

    def test_create_validation(self) -> None:
        resp = self.create_rx()
        self.assertEqual(resp.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(resp.data["error"]["code"], "validation_error")
        resp = self.create_rx((self.amox, 0))
        self.assertEqual(resp.status_code, status.HTTP_400_BAD_REQUEST)

    def test_full_fulfilment_flow(self) -> None:
        rx = self.create_rx((self.amox, 10)).data["data"]
        url = f"/api/prescriptions/{rx['id']}"

        # technicians cannot verify
        self.as_user(self.technician)
        self.assertEqual(self.client.post(f"{url}/verify", {}, format="json").status_code, status.HTTP_403_FORBIDDEN)

        self.as_user(self.pharmacist)
        resp = self.client.post(f"{url}/verify", {"expectedVersion": 1}, format="json")
        self.assertEqual(resp.status_code, status.HTTP_200_OK)
        self.assertEqual(resp.data["data"]["status"], "verified")
        self.assertEqual(resp.data["data"]["verifiedBy"], str(self.pharmacist.id))

        resp = self.client.post(f"{url}/fill", {}, format="json")
        self.assertEqual(resp.status_code, status.HTTP_200_OK)
        self.assertEqual(resp.data["data"]["status"], "filled")
        self.assertEqual(resp.data["data"]["items"][0]["quantityDispensed"], 10)
        self.assertEqual(inventory.quantity_available(self.amox.id), 10)

        resp = self.client.post(f"{url}/dispense", {"pharmacistId": str(self.pharmacist.id)}, format="json")
        self.assertEqual(resp.status_code, status.HTTP_200_OK)
        self.assertEqual(resp.data["data"]["status"], "dispensed")
        self.assertEqual(resp.data["data"]["dispensedBy"], str(self.pharmacist.id))

        resp = self.client.post(f"{url}/cancel", {"reason": "too late"}, format="json")
        self.assertEqual(resp.status_code, status.HTTP_409_CONFLICT)
        self.assertEqual(resp.data["error"]["code"], "invalid_state")

    def test_verify_insufficient_inventory_payload(self) -> None:
        rx = self.create_rx((self.amox, 25)).data["data"]
        self.as_user(self.pharmacist)
        resp = self.client.post(f"/api/prescriptions/{rx['id']}/verify", {}, format="json")
        self.assertEqual(resp.status_code, status.HTTP_409_CONFLICT)
        err = resp.data["error"]
        self.assertEqual(err["code"], "insufficient_inventory")
        self.assertEqual((err["drug"], err["available"], err["required"]), ("Amoxicillin", 20, 25))
        self.assertEqual(err["message"], "Insufficient inventory for Amoxicillin. Available: 20, Required: 25")
        self.assertEqual(self.client.get(f"/api/prescriptions/{rx['id']}").data["data"]["status"], "pending")

    def test_critical_alert_blocks_until_acknowledged(self) -> None:
        DrugInteraction.objects.create(drug_a=self.amox, drug_b=self.oxy, severity="critical", description="test")
        rx = self.create_rx((self.amox, 2), (self.oxy, 2)).data["data"]
        self.assertEqual([a["severity"] for a in rx["alerts"]], ["critical"])
        url = f"/api/prescriptions/{rx['id']}"

        self.as_user(self.pharmacist)
        resp = self.client.post(f"{url}/verify", {}, format="json")
        self.assertEqual(resp.status_code, status.HTTP_409_CONFLICT)
        self.assertEqual(resp.data["error"]["code"], "safety_blocked")

        alert_id = self.client.get(f"{url}/alerts").data["data"][0]["id"]
        resp = self.client.post(f"/api/alerts/{alert_id}/acknowledge", {}, format="json")
        self.assertEqual(resp.status_code, status.HTTP_200_OK)
        self.assertTrue(resp.data["data"]["acknowledged"])

        resp = self.client.post(f"{url}/verify", {}, format="json")
        self.assertEqual(resp.status_code, status.HTTP_200_OK)
        resp = self.client.post(f"{url}/fill", {}, format="json")
        self.assertEqual(resp.status_code, status.HTTP_200_OK)
        self.assertEqual(ControlledSubstanceLog.objects.filter(drug=self.oxy).count(), 1)

    def test_prescriber_cannot_acknowledge_alert(self) -> None:
        rx = self.create_rx((self.amox, 1)).data["data"]
        alert = SafetyAlert.objects.create(prescription_id=rx["id"], alert_type="dosage", severity="low", message="m")
        resp = self.client.post(f"/api/alerts/{alert.id}/acknowledge", {}, format="json")
        self.assertEqual(resp.status_code, status.HTTP_403_FORBIDDEN)

    def test_version_conflict(self) -> None:
        rx = self.create_rx((self.amox, 1)).data["data"]
        self.as_user(self.pharmacist)
        resp = self.client.post(f"/api/prescriptions/{rx['id']}/verify", {"expectedVersion": 3}, format="json")
        self.assertEqual(resp.status_code, status.HTTP_409_CONFLICT)
        self.assertEqual(resp.data["error"]["code"], "version_conflict")
        self.assertEqual(resp.data["error"]["current"], 1)

    def test_cancel_filled_notes_return_to_stock(self) -> None:
        rx = self.create_rx((self.amox, 5)).data["data"]
        url = f"/api/prescriptions/{rx['id']}"
        self.as_user(self.pharmacist)
        self.client.post(f"{url}/verify", {}, format="json")
        self.client.post(f"{url}/fill", {}, format="json")

        self.as_user(self.prescriber)
        resp = self.client.post(f"{url}/cancel", {"reason": "allergy reported"}, format="json")
        self.assertEqual(resp.status_code, status.HTTP_200_OK)
        self.assertEqual(resp.data["data"]["status"], "cancelled")
        notes = [e["note"] for e in resp.data["data"]["noteEntries"]]
        self.assertEqual(notes, ["Cancelled: allergy reported. Inventory should be returned to stock.",
                                 "Cancelled: allergy reported"])
        self.assertEqual(inventory.quantity_available(self.amox.id), 15)

    def test_cancel_requires_reason(self) -> None:
        rx = self.create_rx((self.amox, 1)).data["data"]
        resp = self.client.post(f"/api/prescriptions/{rx['id']}/cancel", {"reason": "  "}, format="json")
        self.assertEqual(resp.status_code, status.HTTP_400_BAD_REQUEST)

    def test_patch_refills_and_items(self) -> None:
        rx = self.create_rx((self.amox, 4), refillsAllowed=1).data["data"]
        url = f"/api/prescriptions/{rx['id']}"
        item_id = rx["items"][0]["id"]
        resp = self.client.patch(url, {
            "refillsAllowed": 3,
            "items": [{"id": item_id, "quantityPrescribed": 6, "daySupply": 3}],
            "expectedVersion": 1,
        }, format="json")
        self.assertEqual(resp.status_code, status.HTTP_200_OK)
        data = resp.data["data"]
        self.assertEqual((data["refillsAllowed"], data["refillsRemaining"]), (3, 3))
        self.assertEqual(data["items"][0]["quantityPrescribed"], 6)
        self.assertEqual(data["items"][0]["daySupply"], 3)
        self.assertEqual(data["version"], 2)

        resp = self.client.patch(url, {"items": [{"id": "00000000-0000-0000-0000-000000000000"}]}, format="json")
        self.assertEqual(resp.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(resp.data["error"]["code"], "validation_error")

    def test_notes_endpoints(self) -> None:
        rx = self.create_rx((self.amox, 1)).data["data"]
        url = f"/api/prescriptions/{rx['id']}/notes"
        self.as_user(self.technician)
        resp = self.client.post(url, {"note": "Insurance card copied"}, format="json")
        self.assertEqual(resp.status_code, status.HTTP_201_CREATED)
        resp = self.client.post(url, {"note": "Called <b>patient</b>", "authorId": "front-desk"}, format="json")
        self.assertEqual(resp.status_code, status.HTTP_201_CREATED)

        entries = self.client.get(url).data["data"]
        self.assertEqual([(e["authorId"], e["note"]) for e in entries],
                         [(str(self.technician.id), "Insurance card copied"), ("front-desk", "Called patient")])
        self.assertTrue(all(e["createdAt"] for e in entries))

    def test_notes_keep_clinical_symbols(self) -> None:
        rx = self.create_rx((self.amox, 1)).data["data"]
        url = f"/api/prescriptions/{rx['id']}/notes"
        self.as_user(self.pharmacist)
        text = "Give < 5 mg if pain & nausea > 3"
        resp = self.client.post(url, {"note": text}, format="json")
        self.assertEqual(resp.status_code, status.HTTP_201_CREATED)
        self.assertEqual(self.client.get(url).data["data"][-1]["note"], text)

        resp = self.client.post(f"/api/prescriptions/{rx['id']}/cancel", {"reason": "A&E admission"}, format="json")
        self.assertEqual(resp.status_code, status.HTTP_200_OK)
        self.assertEqual(self.client.get(url).data["data"][-1]["note"], "Cancelled: A&E admission")

    def test_pharmacist_cannot_act_under_another_id(self) -> None:
        rx = self.create_rx((self.amox, 1)).data["data"]
        self.as_user(self.pharmacist)
        resp = self.client.post(f"/api/prescriptions/{rx['id']}/verify", {"pharmacistId": "someone-else"},
                                format="json")
        self.assertEqual(resp.status_code, status.HTTP_403_FORBIDDEN)
        self.assertEqual(self.client.get(f"/api/prescriptions/{rx['id']}").data["data"]["status"], "pending")
        self.assertFalse(AuditEvent.objects.filter(action="prescription_verify").exists())

    def test_admin_fill_on_behalf_is_audited_as_admin(self) -> None:
        admin = User.objects.create_user(username="admin1", password="P@ssw0rd1", role="admin")
        rx = self.create_rx((self.oxy, 5)).data["data"]
        url = f"/api/prescriptions/{rx['id']}"
        self.as_user(admin)
        body = {"pharmacistId": str(self.pharmacist.id)}
        self.assertEqual(self.client.post(f"{url}/verify", body, format="json").status_code, status.HTTP_200_OK)
        resp = self.client.post(f"{url}/fill", body, format="json")
        self.assertEqual(resp.status_code, status.HTTP_200_OK)
        self.assertEqual(resp.data["data"]["filledBy"], str(self.pharmacist.id))

        log = ControlledSubstanceLog.objects.get(prescription_id=rx["id"])
        self.assertEqual(log.pharmacist_id, str(self.pharmacist.id))
        event = AuditEvent.objects.get(action="prescription_fill", object_id=rx["id"])
        self.assertEqual(event.actor_id, str(admin.id))

    def test_unknown_prescription_is_404(self) -> None:
        self.as_user(self.pharmacist)
        resp = self.client.get("/api/prescriptions/00000000-0000-0000-0000-000000000000")
        self.assertEqual(resp.status_code, status.HTTP_404_NOT_FOUND)
        self.assertEqual(resp.data["error"]["code"], "not_found")

    def test_search_and_queues(self) -> None:
        first = self.create_rx((self.amox, 1), prescriptionDate="2024-03-01").data["data"]
        second = self.create_rx((self.amox, 1), patientId="pat-2", prescriptionDate="2024-03-10").data["data"]

        self.as_user(self.pharmacist)
        self.client.post(f"/api/prescriptions/{second['id']}/verify", {}, format="json")

        resp = self.client.get("/api/prescriptions", {"startDate": "2024-03-01", "endDate": "2024-03-01"})
        self.assertEqual([p["id"] for p in resp.data["data"]], [first["id"]])
        resp = self.client.get("/api/prescriptions", {"status": "verified"})
        self.assertEqual([p["id"] for p in resp.data["data"]], [second["id"]])
        resp = self.client.get("/api/prescriptions", {"startDate": "2024-03-10", "endDate": "2024-03-01"})
        self.assertEqual(resp.status_code, status.HTTP_400_BAD_REQUEST)

        pending = self.client.get("/api/prescriptions/pending").data
        self.assertEqual([p["id"] for p in pending["data"]], [first["id"]])
        mine = self.client.get("/api/patients/pat-2/prescriptions").data
        self.assertEqual(mine["total"], 1)

    def test_drug_list_reports_stock(self) -> None:
        self.as_user(self.technician)
        resp = self.client.get("/api/drugs")
        self.assertEqual(resp.status_code, status.HTTP_200_OK)
        stock = {d["genericName"]: d["quantityAvailable"] for d in resp.data["data"]}
        self.assertEqual(stock, {"Amoxicillin": 20, "Oxycodone": 30})
        resp = self.client.get("/api/drugs", {"controlled": "1"})
        self.assertEqual([d["genericName"] for d in resp.data["data"]], ["Oxycodone"])

    def test_healthz(self) -> None:
        resp = self.client.get("/healthz")
        self.assertEqual(resp.status_code, 200)
        self.assertTrue(resp.json()["ok"])
