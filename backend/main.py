"""sheet2db: FastAPI server for spreadsheet upload, typed table creation, batched ingestion, preview and export."""
import logging
import sys
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import APIRouter, Depends, FastAPI, File, HTTPException, Request, UploadFile
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, StreamingResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine

from config import settings
from db import build_engine, get_engine, init_db
from errors import AppError, RequestValidationFailed
from ingest import SaveDataRequest, save_dataset
from registry import list_files
from retrieval import export_file, parse_format, preview
from spreadsheet import parse_upload

logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    handlers=[logging.StreamHandler(sys.stdout)],
)
logger = logging.getLogger("sheet2db")

router = APIRouter()


def _storage_error(action: str, exc: SQLAlchemyError) -> AppError:
    logger.exception("%s failed", action)
    return AppError(str(exc))


@router.post("/upload")
async def upload_file(file: UploadFile = File(...)):
    content = await file.read()
    if len(content) > settings.max_upload_mb * 1024 * 1024:
        raise HTTPException(413, f"Max size {settings.max_upload_mb}MB")
    sheet = parse_upload(file.filename or "", content)
    logger.info("Parsed %d rows from %s", len(sheet.rows), file.filename)
    return {"columns": sheet.columns, "preview": sheet.preview, "allData": sheet.rows}


@router.post("/save-data")
async def save_data(body: SaveDataRequest, request: Request, engine: AsyncEngine = Depends(get_engine)):
    client = request.headers.get("x-forwarded-for") or (request.client.host if request.client else None)
    try:
        result = await save_dataset(engine, body, client=client)
    except SQLAlchemyError as exc:
        raise _storage_error("save-data", exc) from exc
    return {
        "success": True,
        "rowsAttempted": result.rows_attempted,
        "rowsAccepted": result.rows_accepted,
    }


@router.get("/files")
async def get_files(engine: AsyncEngine = Depends(get_engine)):
    try:
        files = await list_files(engine)
    except SQLAlchemyError as exc:
        raise _storage_error("list files", exc) from exc
    return {"files": files}


@router.get("/preview")
async def preview_table(table: Optional[str] = None, engine: AsyncEngine = Depends(get_engine)):
    if not table:
        raise RequestValidationFailed("Missing table parameter")
    try:
        return (await preview(engine, table)).model_dump()
    except SQLAlchemyError as exc:
        raise _storage_error("preview", exc) from exc


@router.get("/download")
async def download_file(
    file: Optional[str] = None,
    format: Optional[str] = None,
    engine: AsyncEngine = Depends(get_engine),
):
    if not file or not format:
        raise RequestValidationFailed("Missing file or format parameter")
    fmt = parse_format(format)
    try:
        export = await export_file(engine, file, fmt)
    except SQLAlchemyError as exc:
        raise _storage_error("download", exc) from exc
    return StreamingResponse(
        iter([export.content]),
        media_type=export.media_type,
        headers={"Content-Disposition": export.content_disposition},
    )


@router.get("/health")
async def health(engine: AsyncEngine = Depends(get_engine)):
    db_ok, db_error = True, None
    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
    except SQLAlchemyError as e:
        db_ok, db_error = False, str(e)
    url = engine.url
    return {
        "status": "ok",
        "db_ok": db_ok,
        "db_error": db_error,
        "database": url.host or url.get_backend_name(),
    }


async def app_error_handler(request: Request, exc: AppError):
    return JSONResponse(status_code=exc.status_code, content=exc.payload())


async def http_error_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(status_code=exc.status_code, content={"error": exc.detail})


async def validation_error_handler(request: Request, exc: RequestValidationError):
    problems = "; ".join(
        f"{'.'.join(str(p) for p in err['loc'][1:]) or 'body'}: {err['msg']}" for err in exc.errors()
    )
    return JSONResponse(status_code=400, content={"error": f"Missing required fields or wrong types ({problems})"})


async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error: %s", exc)
    return JSONResponse(status_code=500, content={"error": str(exc)})


def create_app(database_url: Optional[str] = None) -> FastAPI:
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        engine = build_engine(database_url or settings.database_url)
        await init_db(engine)
        app.state.engine = engine
        logger.info("Database ready: %s", engine.url.render_as_string(hide_password=True))
        try:
            yield
        finally:
            await engine.dispose()

    app = FastAPI(
        title="sheet2db",
        description="Spreadsheets → typed tables, with preview and export",
        lifespan=lifespan,
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_exception_handler(AppError, app_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)
    app.include_router(router)
    app.include_router(router, prefix="/api")
    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
