"""API tests for /api/batch: jobs, items, spreadsheet, runs and presets.

Background tasks run inside the TestClient call, so a started job has
already finished when ``/start`` returns.
"""

import pytest


def _png(make_png, name):
    return ("files", (name, make_png(), "image/png"))


@pytest.fixture
def job(client, member):
    def _create(settings=None):
        resp = client.post("/api/batch/jobs", json={"settings": settings or {}}, headers=member.headers)
        assert resp.status_code == 201, resp.text
        return resp.json()

    return _create


@pytest.fixture
def upload(client, member, make_png):
    def _upload(job_id, names, describe=False):
        resp = client.post(
            f"/api/batch/jobs/{job_id}/files",
            files=[_png(make_png, n) for n in names],
            data={"describe": "true" if describe else "false"},
            headers=member.headers,
        )
        assert resp.status_code == 201, resp.text
        return resp.json()

    return _upload


class TestJobs:
    """Tests for job creation, reading and settings."""

    def test_create_with_defaults(self, job):
        """Missing settings are filled with defaults."""
        body = job()

        assert body["status"] == "idle"
        assert body["settings"]["model_gender"] == "female"
        assert body["settings"]["selected_views"] == []
        assert body["items"] == []
        assert body["estimatedTime"] is None

    def test_invalid_settings(self, client, member):
        """Negative target sizes are rejected."""
        resp = client.post("/api/batch/jobs", json={"settings": {"target_width": -1}}, headers=member.headers)

        assert resp.status_code == 400
        assert resp.json()["detail"]["error_code"] == "INVALID_SETTINGS"

    def test_update_settings(self, client, member, job):
        """Settings can be replaced while the job is idle."""
        created = job()

        resp = client.put(
            f"/api/batch/jobs/{created['id']}/settings",
            json={"settings": {"brand": "Loja X", "selected_views": ["Frente"]}},
            headers=member.headers,
        )

        assert resp.json()["settings"]["brand"] == "Loja X"

    def test_other_users_job(self, client, admin, job):
        """Jobs are private to their owner."""
        created = job()

        resp = client.get(f"/api/batch/jobs/{created['id']}", headers=admin.headers)

        assert resp.status_code == 404
        assert resp.json()["detail"]["error_code"] == "JOB_NOT_FOUND"

    def test_list_jobs(self, client, member, job):
        """Jobs are listed for the current user."""
        created = job()

        resp = client.get("/api/batch/jobs", headers=member.headers)

        assert [j["id"] for j in resp.json()] == [created["id"]]


class TestItems:
    """Tests for uploads, manual products, spreadsheet and item edits."""

    def test_upload_groups_by_sku(self, job, upload):
        """Views of the same product become one item."""
        created = job()

        items = upload(created["id"], ["CAM-01_frente.png", "CAM-01_costas.png", "SAIA.png"])

        assert [(i["sku"], len(i["files"])) for i in items] == [("CAM_01", 2), ("SAIA", 1)]
        assert items[0]["files"][0]["url"].startswith("/storage/objects/")

    def test_upload_describes_by_default(self, client, member, job, make_png, fake_genai):
        """Without describe=false each new item gets an AI description."""
        created = job()

        resp = client.post(
            f"/api/batch/jobs/{created['id']}/files",
            files=[_png(make_png, "CAM-01.png")],
            headers=member.headers,
        )

        assert resp.json()[0]["aiDescription"] == fake_genai.description
        assert len(fake_genai.calls_of("describe")) == 1

    def test_spreadsheet_matches(self, client, member, job, upload):
        """Spreadsheet rows are matched by normalized SKU."""
        created = job()
        upload(created["id"], ["cam 01.png", "SAIA.png"])

        resp = client.post(
            f"/api/batch/jobs/{created['id']}/spreadsheet",
            json={"rows": [["SKU", "Marca", "Notas"], ["CAM-01", "Kids", "gola alta"]]},
            headers=member.headers,
        )

        body = resp.json()
        assert body["matched"] == 1
        assert body["job"]["spreadsheetLoaded"] is True
        first = body["job"]["items"][0]
        assert first["excelMatch"] is True
        assert first["metadata"]["Marca"] == "Kids"
        assert first["clothingNotes"] == "[Planilha]: gola alta"

    def test_manual_product(self, client, member, job, make_png):
        """Manual products keep the slot of each image."""
        created = job()

        resp = client.post(
            f"/api/batch/jobs/{created['id']}/manual",
            files={
                "front": ("f.png", make_png(), "image/png"),
                "totalLook": ("t.png", make_png(), "image/png"),
            },
            data={"baseName": "vest-9", "describe": "false"},
            headers=member.headers,
        )

        assert resp.status_code == 201
        body = resp.json()
        assert body["isManual"] is True
        assert body["sku"] == "VEST_9"
        assert [f["view"] for f in body["files"]] == ["front", "total_look"]

    def test_manual_product_needs_image(self, client, member, job):
        """At least one slot must be filled."""
        created = job()

        resp = client.post(
            f"/api/batch/jobs/{created['id']}/manual",
            data={"baseName": "vest-9"},
            headers=member.headers,
        )

        assert resp.status_code == 400
        assert resp.json()["detail"]["error_code"] == "FILE_REQUIRED"

    def test_patch_item(self, client, member, job, upload):
        """Per-item overrides are stored; a blank age clears the override."""
        created = job()
        item = upload(created["id"], ["CAM-01.png"])[0]
        url = f"/api/batch/jobs/{created['id']}/items/{item['id']}"

        resp = client.patch(url, json={"modelGender": "male", "modelAge": "8 anos"}, headers=member.headers)
        assert (resp.json()["modelGender"], resp.json()["modelAge"]) == ("male", "8 anos")

        resp = client.patch(url, json={"modelAge": "  "}, headers=member.headers)
        assert resp.json()["modelAge"] is None
        assert resp.json()["modelGender"] == "male"

    def test_delete_item(self, client, member, job, upload):
        """Removed items disappear from the job."""
        created = job()
        item = upload(created["id"], ["CAM-01.png"])[0]

        resp = client.delete(f"/api/batch/jobs/{created['id']}/items/{item['id']}", headers=member.headers)

        assert resp.json() == {"ok": True}
        assert client.get(f"/api/batch/jobs/{created['id']}", headers=member.headers).json()["items"] == []

    def test_describe_selected_items(self, client, member, job, upload, fake_genai):
        """Only the requested items are described."""
        created = job()
        items = upload(created["id"], ["CAM-01.png", "SAIA.png"])

        resp = client.post(
            f"/api/batch/jobs/{created['id']}/describe",
            json={"itemIds": [items[1]["id"]]},
            headers=member.headers,
        )

        body = resp.json()
        assert body["described"] == 1
        assert [i["sku"] for i in body["items"]] == ["SAIA"]


class TestRuns:
    """Tests for start, cancel and single-item processing."""

    def test_start_runs_to_completion(self, client, member, job, upload):
        """Starting processes the queue; results land in the gallery."""
        created = job({"selected_views": ["Frente"], "brand": "Loja X"})
        upload(created["id"], ["CAM-01.png", "SAIA.png"])

        resp = client.post(f"/api/batch/jobs/{created['id']}/start", headers=member.headers)

        assert resp.status_code == 202
        assert resp.json()["queued"] == 2
        assert resp.json()["estimatedTime"].startswith("Tempo estimado: ")

        state = client.get(f"/api/batch/jobs/{created['id']}", headers=member.headers).json()
        assert state["status"] == "done"
        assert [i["status"] for i in state["items"]] == ["done", "done"]

        folder = client.get("/api/gallery", headers=member.headers).json()
        assert [f["name"] for f in folder] == ["Loja X"]
        names = [
            f["name"]
            for f in client.get("/api/gallery", params={"parentId": folder[0]["id"]}, headers=member.headers).json()
        ]
        assert names == ["CAM-01-Frente-0.png", "SAIA-Frente-0.png"]

    def test_start_with_empty_queue(self, client, member, job):
        """A job without queued items cannot start."""
        created = job()

        resp = client.post(f"/api/batch/jobs/{created['id']}/start", headers=member.headers)

        assert resp.status_code == 400
        assert resp.json()["detail"]["error_code"] == "QUEUE_EMPTY"

    def test_start_after_completion_keeps_job_done(self, client, member, job, upload):
        """Starting again with every item done is refused and the job is not reopened."""
        created = job({"selected_views": ["Frente"]})
        upload(created["id"], ["CAM-01.png"])
        client.post(f"/api/batch/jobs/{created['id']}/start", headers=member.headers)
        before = client.get(f"/api/batch/jobs/{created['id']}", headers=member.headers).json()

        resp = client.post(f"/api/batch/jobs/{created['id']}/start", headers=member.headers)

        assert resp.status_code == 400
        assert resp.json()["detail"]["error_code"] == "QUEUE_EMPTY"
        after = client.get(f"/api/batch/jobs/{created['id']}", headers=member.headers).json()
        assert after["status"] == "done"
        assert after["startedAt"] == before["startedAt"]
        assert after["completedAt"] == before["completedAt"]

    def test_running_job_is_locked(self, client, db, member, job):
        """While running, start and settings changes answer 409."""
        from vitrine.infra.db.crud import get_batch_job

        created = job()
        row = get_batch_job(db, created["id"])
        row.status = "running"
        db.commit()

        start = client.post(f"/api/batch/jobs/{created['id']}/start", headers=member.headers)
        settings = client.put(
            f"/api/batch/jobs/{created['id']}/settings", json={"settings": {}}, headers=member.headers
        )

        assert start.status_code == 409
        assert start.json()["detail"]["error_code"] == "JOB_RUNNING"
        assert settings.status_code == 409

    def test_failed_items_retry_on_next_start(self, client, member, job, upload):
        """Items without views fail; after fixing settings the next start retries them."""
        created = job()
        upload(created["id"], ["CAM-01.png"])
        client.post(f"/api/batch/jobs/{created['id']}/start", headers=member.headers)

        failed = client.get(f"/api/batch/jobs/{created['id']}", headers=member.headers).json()
        assert failed["items"][0]["status"] == "error"

        client.put(
            f"/api/batch/jobs/{created['id']}/settings",
            json={"settings": {"selected_views": ["Frente"]}},
            headers=member.headers,
        )
        resp = client.post(f"/api/batch/jobs/{created['id']}/start", headers=member.headers)

        assert resp.json()["queued"] == 1
        done = client.get(f"/api/batch/jobs/{created['id']}", headers=member.headers).json()
        assert done["items"][0]["status"] == "done"
        assert done["items"][0]["error"] is None

    def test_process_single_item(self, client, member, job, upload):
        """A finished item can be reprocessed on its own."""
        created = job({"selected_views": ["Frente"]})
        item = upload(created["id"], ["CAM-01.png"])[0]
        client.post(f"/api/batch/jobs/{created['id']}/start", headers=member.headers)
        first = client.get(f"/api/batch/jobs/{created['id']}", headers=member.headers).json()["items"][0]

        resp = client.post(f"/api/batch/jobs/{created['id']}/items/{item['id']}/process", headers=member.headers)

        assert resp.status_code == 202
        again = client.get(f"/api/batch/jobs/{created['id']}", headers=member.headers).json()["items"][0]
        assert again["status"] == "done"
        assert again["resultItemIds"] != first["resultItemIds"]

    def test_cancel_job(self, client, member, job):
        """Cancel sets the flag on the job."""
        created = job()

        resp = client.post(f"/api/batch/jobs/{created['id']}/cancel", headers=member.headers)

        assert resp.json() == {"cancelRequested": True, "requeued": 0}
        state = client.get(f"/api/batch/jobs/{created['id']}", headers=member.headers).json()
        assert state["cancelRequested"] is True

    def test_process_item_after_cancel(self, client, member, job, upload, fake_genai):
        """A cancel left on an idle job does not stop a single-item run."""
        created = job({"selected_views": ["Frente"]})
        item = upload(created["id"], ["CAM-01.png"])[0]
        client.post(f"/api/batch/jobs/{created['id']}/cancel", headers=member.headers)

        resp = client.post(f"/api/batch/jobs/{created['id']}/items/{item['id']}/process", headers=member.headers)

        assert resp.status_code == 202
        state = client.get(f"/api/batch/jobs/{created['id']}", headers=member.headers).json()
        assert state["items"][0]["status"] == "done"
        assert state["cancelRequested"] is False
        assert fake_genai.calls

    def test_cancel_item(self, client, member, job, upload):
        """Cancelling an item puts it back in the queue."""
        created = job()
        item = upload(created["id"], ["CAM-01.png"])[0]

        resp = client.post(f"/api/batch/jobs/{created['id']}/items/{item['id']}/cancel", headers=member.headers)

        assert resp.json()["status"] == "queued"


class TestPresets:
    """Tests for saving, loading and deleting presets."""

    def test_save_load_delete(self, client, member, job):
        """A saved preset can be loaded into a job and then removed."""
        saved = client.post(
            "/api/batch/presets",
            json={"name": " Verão ", "settings": {"brand": "Loja X", "selected_views": ["Frente", "Costas"]}},
            headers=member.headers,
        )
        assert saved.status_code == 201
        assert saved.json()["name"] == "Verão"

        created = job()
        loaded = client.post(f"/api/batch/jobs/{created['id']}/presets/Verão/load", headers=member.headers)
        assert loaded.json()["settings"]["selected_views"] == ["Frente", "Costas"]

        assert [p["name"] for p in client.get("/api/batch/presets", headers=member.headers).json()] == ["Verão"]
        assert client.delete("/api/batch/presets/Verão", headers=member.headers).json() == {"ok": True}
        assert client.get("/api/batch/presets", headers=member.headers).json() == []

    def test_save_overwrites_same_name(self, client, member):
        """Saving under an existing name replaces its settings."""
        for brand in ("A", "B"):
            client.post(
                "/api/batch/presets", json={"name": "p", "settings": {"brand": brand}}, headers=member.headers
            )

        presets = client.get("/api/batch/presets", headers=member.headers).json()

        assert len(presets) == 1
        assert presets[0]["settings"]["brand"] == "B"

    def test_unknown_preset(self, client, member, job):
        """Loading a missing preset is a 404."""
        created = job()

        resp = client.post(f"/api/batch/jobs/{created['id']}/presets/nada/load", headers=member.headers)

        assert resp.status_code == 404
        assert resp.json()["detail"]["error_code"] == "PRESET_NOT_FOUND"

    def test_blank_name(self, client, member):
        """Preset names are required."""
        resp = client.post("/api/batch/presets", json={"name": "  "}, headers=member.headers)

        assert resp.status_code == 400
