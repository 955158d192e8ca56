import logging
from contextlib import asynccontextmanager
from typing import List, Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import FileResponse, JSONResponse
from fastapi.staticfiles import StaticFiles
from pydantic import BaseModel
from starlette.datastructures import UploadFile

from .config import Settings
from .errors import CatalogueError, StorageError, ValidationError
from .paths import AssetLayout
from .store import CatalogueStore
from .upload import IncomingFile, UploadPipeline
from .utils import normalize_id

LOGGER = logging.getLogger("tilecat.api")


class ReorderRequest(BaseModel):
    theme: Optional[str] = None
    order: List[str]


def _error(message: str, status_code: int) -> JSONResponse:
    return JSONResponse({"error": message}, status_code=status_code)


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    settings = settings or Settings.from_env()
    store = CatalogueStore(settings.catalogue, settings.brand_logo, settings.size_icon)
    layout = AssetLayout(settings.asset_root, settings.asset_url_prefix)
    pipeline = UploadPipeline(store, layout)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        settings.public_root.mkdir(parents=True, exist_ok=True)
        store.init()
        yield

    app = FastAPI(title="Tile Catalogue", lifespan=lifespan)
    app.state.settings = settings
    app.state.store = store
    app.state.layout = layout
    app.add_middleware(
        CORSMiddleware,
        allow_origins=list(settings.cors_origins),
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # -------------------------------------------------------------------------
    # JSON API
    # -------------------------------------------------------------------------
    @app.get("/api/designs")
    def api_list_designs():
        try:
            return store.sorted_document()
        except OSError:
            LOGGER.exception("reading catalogue failed")
            return _error("Failed to read catalogue", StorageError.status_code)

    @app.post("/api/upload")
    async def api_upload(request: Request):
        form = await request.form()
        try:
            fields, files = {}, []
            for key, value in form.multi_items():
                if isinstance(value, UploadFile):
                    files.append(IncomingFile(key, value.filename or "", value.file))
                else:
                    fields[key] = value
            return pipeline.run(fields, files)
        except ValidationError as e:
            return _error(str(e), e.status_code)
        except (CatalogueError, OSError):
            LOGGER.exception("upload failed")
            return _error("Upload failed", StorageError.status_code)
        finally:
            await form.close()

    @app.put("/api/designs/order")
    async def api_reorder(request: Request):
        try:
            payload = ReorderRequest.model_validate(await request.json())
        except ValueError:
            return _error("Provide 'order' as a non-empty array of IDs.", ValidationError.status_code)
        try:
            designs = store.reorder(payload.order, payload.theme)
        except ValidationError as e:
            return _error(str(e), e.status_code)
        except (CatalogueError, OSError):
            LOGGER.exception("reorder failed")
            return _error("Failed to save order", StorageError.status_code)
        return {"designs": designs}

    @app.delete("/api/designs/{design_id}")
    def api_delete_design(design_id: str):
        design_id = normalize_id(design_id)
        if not design_id:
            return _error("Missing id", ValidationError.status_code)
        try:
            doc, removed = store.remove(design_id)
        except (CatalogueError, OSError):
            LOGGER.exception("delete of %s failed", design_id)
            return _error("Failed to delete design", StorageError.status_code)
        purged = layout.purge(design_id)
        LOGGER.info("deleted design %s (removed=%s, paths purged=%d)", design_id, removed, purged)
        return {"designs": doc["designs"], "removed": removed}

    # -------------------------------------------------------------------------
    # Pages & static files
    # -------------------------------------------------------------------------
    @app.get("/admin")
    @app.get("/admin/")
    def admin_page():
        page = settings.public_root / "admin.html"
        if not page.exists():
            return _error("not found", 404)
        return FileResponse(str(page))

    app.mount("/", StaticFiles(directory=settings.public_root, html=True, check_dir=False), name="public")
    return app


app = create_app()
