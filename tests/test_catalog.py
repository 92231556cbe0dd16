from thumbnail_service.catalog import AssetCatalog, discover_assets, display_name


def test_display_name():
    assert display_name("dotnet-purple_dark") == "Dotnet Purple Dark"


def test_discovers_images_with_variants(assets_dir):
    assets = discover_assets(assets_dir / "backgrounds", "/assets/backgrounds")
    assert [(a.id, a.variant) for a in assets] == [("purple-dark", "dark"), ("soft-light", "light")]
    assert assets[0].url == "/assets/backgrounds/purple-dark.png"
    assert assets[0].name == "Purple Dark"


def test_missing_directory_is_empty(tmp_path):
    assert discover_assets(tmp_path / "nope", "/x/") == []


def test_logos_have_no_variant(assets_dir):
    catalog = AssetCatalog(assets_dir)
    assert [logo.id for logo in catalog.logos()] == ["csharp", "dotnet"]
    assert all(logo.variant is None for logo in catalog.logos())
    assert catalog.find_logo("dotnet").url == "/assets/logos/dotnet.png"


def test_template_set_backgrounds_fall_back_to_shared(assets_dir):
    catalog = AssetCatalog(assets_dir, "/assets/")
    live = catalog.backgrounds("on-dotnet-live")
    assert [bg.url for bg in live] == ["/assets/templates/on-dotnet-live/live-stage.png"]
    assert [bg.id for bg in catalog.backgrounds("dotnet-community-standup")] == ["purple-dark", "soft-light"]
    assert catalog.backgrounds(None) == catalog.shared_backgrounds()


def test_find_background(assets_dir):
    catalog = AssetCatalog(assets_dir)
    assert catalog.find_background("soft-light").variant == "light"
    assert catalog.find_background("live-stage", "on-dotnet-live") is not None
    assert catalog.find_background("nope") is None
    assert catalog.find_background(None) is None
