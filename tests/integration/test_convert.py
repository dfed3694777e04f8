"""
Integration tests for the upload and conversion endpoints.
"""

from fastapi.testclient import TestClient

from slidedeck.catalog.store import CatalogError


class TestConvertHealthyRenderer:
    """Uploads converted through the PDF pagination path."""

    def test_three_page_deck(self, client: TestClient, upload):
        response = upload(client, filename="Quarterly Review.pptx")
        assert response.status_code == 200
        data = response.json()

        presentation_id = data["id"]
        assert data["originalName"] == "Quarterly Review.pptx"
        assert data["title"] == "Quarterly Review"
        assert data["slideCount"] == 3
        assert data["slides"] == [f"/slides/{presentation_id}/slide-{n}.jpg" for n in (1, 2, 3)]
        assert data["slideTexts"] == ["Text of page 1", "Text of page 2", "Text of page 3"]
        assert data["isPlaceholder"] is False
        assert data["status"] == "converted"

    def test_slide_images_are_served(self, client: TestClient, upload):
        data = upload(client).json()
        response = client.get(data["slides"][0])
        assert response.status_code == 200
        assert response.headers["content-type"] == "image/jpeg"

    def test_read_after_write(self, app, client: TestClient, upload):
        data = upload(client).json()

        # Bypass the cache so the record comes from the database
        app.state.index.clear_cache()
        stored = client.get(f"/presentation/{data['id']}").json()
        assert stored["slides"] == data["slides"]
        assert stored["slideTexts"] == data["slideTexts"]
        assert stored["slideCount"] == 3

    def test_metadata_fields(self, client: TestClient, upload):
        data = upload(client, title="Robots", summary="About robots", author="Ada",
                      authorId="author-1", topics=["AI", "Robotics"]).json()
        assert data["title"] == "Robots"
        assert data["topics"] == ["AI", "Robotics"]

        record = client.get(f"/presentation/{data['id']}").json()
        assert record["summary"] == "About robots"
        assert record["author"] == "Ada"
        assert record["authorId"] == "author-1"
        assert record["viewCount"] == 0
        assert record["isDeleted"] is False
        assert record["converted"].endswith("Z")

    def test_metadata_defaults(self, client: TestClient, upload):
        data = upload(client).json()
        record = client.get(f"/presentation/{data['id']}").json()
        assert record["author"] == "Anonymous"
        assert record["authorId"]
        assert record["summary"] == ""
        assert record["topics"] == []

    def test_presentations_alias(self, client: TestClient, upload):
        response = upload(client, path="/presentations")
        assert response.status_code == 200
        assert response.json()["slideCount"] == 3

    def test_workspace_cleaned_up(self, client: TestClient, upload, settings):
        upload(client)
        assert list(settings.work_dir.iterdir()) == []

    def test_uploads_get_distinct_ids(self, client: TestClient, upload):
        first = upload(client).json()["id"]
        second = upload(client).json()["id"]
        assert first != second
        assert client.get("/status").json()["presentationCount"] == 2

    def test_structure_warnings_reported(self, client: TestClient, upload):
        response = upload(client, content=b"PK\x03\x04 not really a zip")
        assert response.status_code == 200
        assert response.json()["warnings"]

    def test_damaged_archive_entry_still_converts(self, client: TestClient, upload, damaged_pptx):
        response = upload(client, content=damaged_pptx)
        assert response.status_code == 200
        data = response.json()
        assert data["slideCount"] == 3
        assert any("[Content_Types].xml" in warning for warning in data["warnings"])


class TestConvertDegradedRenderer:

    def test_no_renderer_gives_placeholders(self, make_app, make_probe, upload):
        app = make_app(probe=make_probe(False))
        with TestClient(app) as client:
            data = upload(client).json()

        assert data["slideCount"] == 23
        assert len(data["slides"]) == len(data["slideTexts"]) == 23
        assert data["isPlaceholder"] is True
        assert data["status"] == "placeholders_created"
        assert "LibreOffice" in data["message"]

    def test_failing_pages_are_replaced(self, make_app, make_extractor, upload):
        app = make_app(extractor=make_extractor(pages=3, failing_pages=[2]))
        with TestClient(app) as client:
            data = upload(client).json()

        assert data["slideCount"] == 3
        assert data["isPlaceholder"] is True
        assert data["status"] == "converted_with_placeholders"
        assert data["slideTexts"][1] == "Slide 2 (Error Placeholder)"

    def test_direct_export_fallback(self, make_app, make_renderer, upload):
        app = make_app(renderer=make_renderer(pdf_fails=True, export_count=4))
        with TestClient(app) as client:
            data = upload(client).json()

        assert data["slideCount"] == 4
        assert data["isPlaceholder"] is False
        assert data["slides"][-1].endswith("/slide-4.jpg")

    def test_total_failure_gives_distinct_placeholders(self, make_app, make_renderer, upload):
        app = make_app(renderer=make_renderer(pdf_fails=True, export_fails=True))
        with TestClient(app) as client:
            data = upload(client).json()

        assert data["slideCount"] == 23
        assert data["isPlaceholder"] is True
        assert data["status"] == "fallback_placeholders"


class TestConvertRejections:

    def test_missing_file(self, client: TestClient):
        response = client.post("/convert", data={"title": "No file"})
        assert response.status_code == 400
        assert response.json()["error"] == "MISSING_FILE"

    def test_unsupported_extension(self, client: TestClient, upload):
        response = upload(client, filename="notes.txt", content=b"hello")
        assert response.status_code == 400
        data = response.json()
        assert data["error"] == "INVALID_FORMAT"
        assert data["message"] == "Only PowerPoint and Keynote files are allowed"

    def test_oversize_upload(self, settings, make_app, upload):
        settings.max_upload_bytes = 100
        with TestClient(make_app()) as client:
            response = upload(client, content=b"x" * 500)
        assert response.status_code == 400
        assert response.json()["error"] == "FILE_TOO_LARGE"
        assert list(settings.work_dir.iterdir()) == []

    def test_rejected_upload_is_not_stored(self, client: TestClient, upload):
        upload(client, filename="notes.txt", content=b"hello")
        assert client.get("/status").json()["presentationCount"] == 0


class TestConvertPersistenceFailures:

    def test_save_failure(self, app, client: TestClient, upload, settings, monkeypatch):
        def failing_save(record):
            raise CatalogError("database is locked")

        monkeypatch.setattr(app.state.store, "save", failing_save)
        response = upload(client)

        assert response.status_code == 500
        data = response.json()
        assert data["error"] == "DATABASE_ERROR"
        assert data["status"] == "database_error"
        assert "database is locked" in data["details"]

        assert not settings.presentation_dir(data["id"]).exists()
        assert app.state.index.get(data["id"]) is None
        assert client.get(f"/presentation/{data['id']}").status_code == 404

    def test_verify_failure(self, app, client: TestClient, upload, settings, monkeypatch):
        monkeypatch.setattr(app.state.store, "verify", lambda *args, **kwargs: False)
        response = upload(client)

        assert response.status_code == 500
        data = response.json()
        assert data["status"] == "database_error"
        assert not settings.presentation_dir(data["id"]).exists()
        assert app.state.index.size == 0
