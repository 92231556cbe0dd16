import logging
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any, Dict, List, Optional

import httpx
from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import Response
from fastapi.staticfiles import StaticFiles
from PIL import features

from . import __version__, config
from .catalog import AssetCatalog
from .compose import Composer, Notifier, UnknownTemplateError
from .exporter import EXPORT_FALLBACK_HINT, ExportError, UnsupportedFormatError, export_raster, export_svg
from .inliner import AssetInliner
from .layout import LayoutEngine
from .models import CatalogAsset, CatalogResult, ComposeRequest, ComposeResult, RasterExportRequest, SettingsUpdate, SvgExportRequest, parse_resolution
from .registry import DEFAULT_TEMPLATE_ID, TemplateDefinition, get_all_templates, get_template
from .settings_store import SettingsStore
from .text_metrics import TextMetrics, create_text_metrics
from .token_layouts import CommunityStandupLayout, OnDotNetLiveLayout, TemplateLoader
from .tokens import TemplateCache

# Configure logging
logging.basicConfig(level=getattr(logging, config.LOG_LEVEL, logging.INFO))
logger = logging.getLogger(__name__)


def _cors_origins() -> List[str]:
    origins_env = config.CORS_ALLOW_ORIGINS
    if not origins_env:
        return [f"http://localhost:{config.PORT}", f"http://127.0.0.1:{config.PORT}"]
    return [o.strip() for o in origins_env.split(",") if o.strip()]


def _attachment(content: bytes, filename: str, media_type: str) -> Response:
    return Response(
        content=content,
        media_type=media_type,
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


def create_app(
    *,
    assets_dir: Optional[Path] = None,
    templates_dir: Optional[Path] = None,
    settings_path: Optional[Path] = None,
    export_dir: Optional[Path] = None,
    public_base_url: Optional[str] = None,
    metrics: Optional[TextMetrics] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
    fetch_timeout: Optional[float] = None,
    inline_images: Optional[bool] = None,
    notify: Optional[Notifier] = None,
) -> FastAPI:
    """Build the service. Keyword overrides take precedence over the environment configuration."""
    assets_dir = Path(assets_dir or config.ASSETS_DIR)
    templates_dir = Path(templates_dir or config.TEMPLATES_DIR)
    export_dir = export_dir or (Path(config.EXPORT_DIR) if config.EXPORT_DIR else None)
    base_url = (public_base_url or config.PUBLIC_BASE_URL).rstrip("/")
    timeout = config.FETCH_TIMEOUT_S if fetch_timeout is None else fetch_timeout
    do_inline = config.INLINE_IMAGES if inline_images is None else inline_images

    metrics = metrics or create_text_metrics(config.FONT_REGULAR_PATH, config.FONT_SEMIBOLD_PATH, config.FONT_BOLD_PATH)
    catalog = AssetCatalog(assets_dir, config.ASSETS_URL_PREFIX)
    settings = SettingsStore(settings_path or config.SETTINGS_PATH)
    loader = TemplateLoader(str(templates_dir), timeout=timeout, transport=transport)
    cache = TemplateCache()
    composer = Composer(
        LayoutEngine(metrics),
        {
            CommunityStandupLayout.template_id: CommunityStandupLayout(loader, cache, metrics),
            OnDotNetLiveLayout.template_id: OnDotNetLiveLayout(loader, cache, metrics),
        },
        notify=notify,
    )
    inliner = AssetInliner(
        base_url,
        timeout=timeout,
        assets_dir=assets_dir,
        assets_url_prefix=config.ASSETS_URL_PREFIX,
        transport=transport,
    )

    @asynccontextmanager
    async def lifespan(_app: FastAPI):
        # warm the template cache so the first compose does not wait on disk
        await composer.preload()
        yield

    app = FastAPI(title="Thumbnail Service", version=__version__, lifespan=lifespan)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=_cors_origins(),
        allow_credentials=False,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.state.composer = composer
    app.state.catalog = catalog
    app.state.settings = settings

    def _template_or_404(template_id: str) -> TemplateDefinition:
        template = get_template(template_id)
        if template is None:
            raise HTTPException(status_code=404, detail=f"Unknown template '{template_id}'")
        return template

    def _background_for(template: TemplateDefinition, background_id: Optional[str]) -> Optional[CatalogAsset]:
        if background_id:
            background = catalog.find_background(background_id, template.background_set)
            if background is None:
                raise HTTPException(status_code=404, detail=f"Unknown background '{background_id}'")
            return background
        # last choice for this template, else the first one available
        stored = settings.load().get(f"backgroundId_{template.id}")
        background = catalog.find_background(stored, template.background_set) if stored else None
        if background is None:
            available = catalog.backgrounds(template.background_set)
            background = available[0] if available else None
        return background

    async def _compose(req: ComposeRequest) -> ComposeResult:
        template = _template_or_404(req.template_id)
        background = _background_for(template, req.background_id)
        try:
            svg = await composer.compose(template.id, req.values, background, req.resolution, req.text_variant)
        except UnknownTemplateError:
            raise HTTPException(status_code=404, detail=f"No renderer for template '{template.id}'")
        width, height = parse_resolution(req.resolution)
        return ComposeResult(template_id=template.id, width=width, height=height, svg=svg)

    @app.get("/health")
    async def health():
        """Health check endpoint"""
        return {
            "status": "healthy",
            "service": "thumbnail-service",
            "version": __version__,
            "precise_text_metrics": bool(metrics.precise),
            "inline_images": bool(do_inline),
            "webp_supported": bool(features.check("webp")),
            "templates": [t.id for t in get_all_templates()],
        }

    @app.get("/templates")
    async def list_templates():
        return [
            {"id": t.id, "name": t.name, "description": t.description, "kind": t.kind}
            for t in get_all_templates()
        ]

    @app.get("/templates/{template_id}")
    async def template_detail(template_id: str):
        template = _template_or_404(template_id)
        data = template.model_dump()
        data["backgrounds"] = [bg.model_dump() for bg in catalog.backgrounds(template.background_set)]
        return data

    @app.get("/assets/catalog", response_model=CatalogResult)
    async def asset_catalog(template_id: Optional[str] = None):
        template = _template_or_404(template_id) if template_id else None
        return CatalogResult(
            backgrounds=catalog.backgrounds(template.background_set if template else None),
            logos=catalog.logos(),
        )

    @app.post("/compose", response_model=ComposeResult)
    async def compose(req: ComposeRequest):
        return await _compose(req)

    @app.post("/export/svg")
    async def export_svg_endpoint(req: SvgExportRequest):
        result = await _compose(req)
        try:
            exported = export_svg(result.svg, export_dir if req.save else None)
        except OSError as e:
            logger.error(f"Error writing SVG export: {e}")
            composer.notify(EXPORT_FALLBACK_HINT, "error")
            raise HTTPException(status_code=500, detail=EXPORT_FALLBACK_HINT)
        composer.notify(f"Exported {exported.filename}", "success")
        return _attachment(exported.content, exported.filename, exported.media_type)

    @app.post("/export/raster")
    async def export_raster_endpoint(req: RasterExportRequest):
        result = await _compose(req)
        try:
            exported = await export_raster(
                result.svg,
                req.resolution,
                req.format,
                inline=inliner.inline if do_inline else None,
                quality=config.RASTER_QUALITY,
                output_dir=export_dir if req.save else None,
            )
        except UnsupportedFormatError as e:
            composer.notify(e.message, "error")
            raise HTTPException(status_code=415, detail=e.message)
        except ExportError as e:
            composer.notify(e.message, "error")
            raise HTTPException(status_code=500, detail=e.message)
        composer.notify(f"Exported {exported.filename}", "success")
        return _attachment(exported.content, exported.filename, exported.media_type)

    @app.get("/settings")
    async def get_settings() -> Dict[str, Any]:
        stored = settings.load()
        stored.setdefault("templateId", DEFAULT_TEMPLATE_ID)
        return stored

    @app.put("/settings")
    async def put_settings(update: SettingsUpdate) -> Dict[str, Any]:
        return settings.save(update.settings)

    # mounted last so the catalog route above wins over the static files
    if assets_dir.is_dir():
        app.mount(config.ASSETS_URL_PREFIX.rstrip("/"), StaticFiles(directory=str(assets_dir)), name="assets")
    else:
        logger.warning(f"Assets directory {assets_dir} not found; static assets are not served")

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host=config.HOST, port=config.PORT)
