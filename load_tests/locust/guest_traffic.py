from locust import HttpUser, between, task
import os
import uuid

REST_BASE = os.environ.get("CANDID_SNAPS_REST_BASE", "http://localhost:8080")
EVENT_ID = os.environ.get("CANDID_SNAPS_EVENT_ID")
SAMPLE_JPEG = b"\xff\xd8\xff\xe0" + b"\x00" * 4096


class GuestUser(HttpUser):
    host = REST_BASE
    wait_time = between(0.5, 2.0)

    def on_start(self):
        self.device_id = f"load-{uuid.uuid4().hex}"
        self.event_id = EVENT_ID
        if not self.event_id:
            resp = self.client.post("/events", json={"name": "Load Test"})
            self.event_id = resp.json().get("eventId")

    def _headers(self):
        return {"X-Device-Id": self.device_id}

    @task(4)
    def browse_gallery(self):
        resp = self.client.get(f"/events/{self.event_id}/uploads", name="/events/[id]/uploads")
        if resp.status_code >= 400:
            return
        items = resp.json().get("items") or []
        if items:
            self.client.get(
                f"/events/{self.event_id}/files/{items[0]['blobId']}",
                name="/events/[id]/files/[blob]",
            )

    @task(2)
    def list_mine(self):
        self.client.get(
            f"/events/{self.event_id}/my-uploads",
            headers=self._headers(),
            name="/events/[id]/my-uploads",
        )

    @task(1)
    def upload_snap(self):
        # 429 once the device hits its window limit is expected traffic.
        with self.client.post(
            f"/events/{self.event_id}/upload",
            files={"file": ("snap.jpg", SAMPLE_JPEG, "image/jpeg")},
            headers=self._headers(),
            name="/events/[id]/upload",
            catch_response=True,
        ) as resp:
            if resp.status_code == 429:
                resp.success()
