import io

import httpx
import pytest
from fastapi.testclient import TestClient
from lxml import etree
from PIL import Image

from conftest import cairo_available
from thumbnail_service.main import create_app

requires_cairo = pytest.mark.skipif(not cairo_available(), reason="native cairo library not available")


@pytest.fixture
def notices():
    return []


@pytest.fixture
def client(tmp_path, assets_dir, templates_dir, metrics, notices):
    def offline(_request):
        return httpx.Response(404)

    app = create_app(
        assets_dir=assets_dir,
        templates_dir=templates_dir,
        settings_path=tmp_path / "settings.json",
        export_dir=tmp_path / "exports",
        public_base_url="http://localhost:8020",
        metrics=metrics,
        transport=httpx.MockTransport(offline),
        fetch_timeout=1.0,
        inline_images=True,
        notify=lambda message, severity: notices.append((severity, message)),
    )
    with TestClient(app) as c:
        yield c


def test_health(client):
    body = client.get("/health").json()
    assert body["status"] == "healthy"
    assert body["precise_text_metrics"] is False
    assert "dotnet-blog" in body["templates"]


def test_templates(client):
    listing = client.get("/templates").json()
    assert [t["id"] for t in listing] == ["dotnet-blog", "dotnet-community-standup", "on-dotnet-live"]
    detail = client.get("/templates/on-dotnet-live").json()
    assert detail["kind"] == "token"
    assert [bg["id"] for bg in detail["backgrounds"]] == ["live-stage"]
    assert client.get("/templates/nope").status_code == 404


def test_asset_catalog(client):
    body = client.get("/assets/catalog").json()
    assert [bg["id"] for bg in body["backgrounds"]] == ["purple-dark", "soft-light"]
    assert [logo["id"] for logo in body["logos"]] == ["csharp", "dotnet"]
    assert client.get("/assets/catalog", params={"template_id": "nope"}).status_code == 404


def test_static_assets_are_served(client, assets_dir):
    resp = client.get("/assets/logos/dotnet.png")
    assert resp.status_code == 200
    assert resp.content == (assets_dir / "logos" / "dotnet.png").read_bytes()


def test_compose_blog(client):
    resp = client.post(
        "/compose",
        json={
            "template_id": "dotnet-blog",
            "values": {"title": "Hello from .NET", "logos": [{"id": "dotnet", "url": "/assets/logos/dotnet.png"}]},
            "background_id": "soft-light",
            "resolution": "1280x720",
        },
    )
    assert resp.status_code == 200
    body = resp.json()
    assert (body["width"], body["height"]) == (1280, 720)
    root = etree.fromstring(body["svg"].encode("utf-8"))
    assert root.get("viewBox") == "0 0 1280 720"
    assert "/assets/backgrounds/soft-light.png" in body["svg"]


def test_compose_unknown_template_or_background(client):
    assert client.post("/compose", json={"template_id": "nope"}).status_code == 404
    assert client.post("/compose", json={"template_id": "dotnet-blog", "background_id": "nope"}).status_code == 404


def test_compose_uses_stored_background(client):
    client.put("/settings", json={"settings": {"backgroundId_dotnet-blog": "soft-light"}})
    svg = client.post("/compose", json={"template_id": "dotnet-blog", "values": {"title": "x"}}).json()["svg"]
    assert "/assets/backgrounds/soft-light.png" in svg


def test_compose_token_template(client):
    body = client.post(
        "/compose",
        json={"template_id": "dotnet-community-standup", "values": {"topic": "Blazor & friends", "guestCount": "2"}},
    ).json()
    assert "Blazor &amp; friends" in body["svg"]
    assert "/assets/backgrounds/purple-dark.png" in body["svg"]


def test_export_svg(client, notices, tmp_path):
    resp = client.post("/export/svg", json={"template_id": "dotnet-blog", "values": {"title": "Vector"}, "save": True})
    assert resp.status_code == 200
    assert resp.headers["content-type"].startswith("image/svg+xml")
    disposition = resp.headers["content-disposition"]
    assert disposition.startswith('attachment; filename="thumbnail-') and disposition.endswith('.svg"')
    assert b"Vector" in resp.content
    assert len(list((tmp_path / "exports").glob("thumbnail-*.svg"))) == 1
    assert notices[-1][0] == "success"


def test_export_raster_unsupported_format(client, notices):
    resp = client.post("/export/raster", json={"template_id": "dotnet-blog", "format": "bmp"})
    assert resp.status_code == 415
    assert notices[-1][0] == "error"


@requires_cairo
def test_export_raster_jpg(client, notices):
    resp = client.post(
        "/export/raster",
        json={
            "template_id": "dotnet-blog",
            "values": {"title": "Raster", "logos": [{"id": "cdn", "url": "https://cdn.example.test/missing.png"}]},
            "background_id": "purple-dark",
            "resolution": "640x360",
            "format": "jpg",
        },
    )
    assert resp.status_code == 200
    assert resp.headers["content-type"] == "image/jpeg"
    with Image.open(io.BytesIO(resp.content)) as im:
        assert im.size == (640, 360)
    filename = resp.headers["content-disposition"].split('"')[1]
    assert notices[-1] == ("success", f"Exported {filename}")


def test_settings_roundtrip(client):
    assert client.get("/settings").json() == {"templateId": "dotnet-blog"}
    saved = client.put("/settings", json={"settings": {"templateId": "on-dotnet-live", "exportFormat": "png"}}).json()
    assert saved == {"templateId": "on-dotnet-live", "exportFormat": "png"}
    assert client.get("/settings").json() == saved
