from fastapi import FastAPI, File, Request, Security, Depends, HTTPException, UploadFile
from fastapi.responses import JSONResponse
from fastapi.security import APIKeyHeader
from fastapi.staticfiles import StaticFiles
from starlette.middleware.cors import CORSMiddleware
from pathlib import Path
from typing import Optional
import os
import shutil
import sys
import time

# Rate Limiting
from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.util import get_remote_address
from slowapi.errors import RateLimitExceeded

from dotenv import load_dotenv

# Add current directory to path
sys.path.insert(0, os.getcwd())

from main import lookup_domain, process_workbook, build_pipeline, configure_logging
from dns_module.dns_fetcher import ConcurrentResolver
from dns_module.dns_utils import normalize_domain
from dns_module.logger import get_child_logger
from batch_module.spreadsheet import SpreadsheetError, is_supported, output_filename

load_dotenv()

UPLOAD_DIR = Path(os.getenv("UPLOAD_DIR", "uploads"))
PUBLIC_DIR = Path(os.getenv("PUBLIC_DIR", "public"))


def provision_storage() -> None:
    """Create the upload and download directories once, before serving."""
    UPLOAD_DIR.mkdir(parents=True, exist_ok=True)
    PUBLIC_DIR.mkdir(parents=True, exist_ok=True)


provision_storage()

limiter = Limiter(key_func=get_remote_address)
app = FastAPI(title="DNS Lookup API")

# Add Rate Limit Exception Handler
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

# CORS (the browser UI is served from another origin)
origins = os.getenv("CORS_ORIGINS", "*").split(",")
app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Generated result documents
app.mount("/public", StaticFiles(directory=str(PUBLIC_DIR)), name="public")

log = get_child_logger("api")

# Global instances, replaced in tests through app.state
app.state.resolver = None
app.state.pipeline = None

# Security Scheme
api_key_header = APIKeyHeader(name="X-API-Key", auto_error=False)


async def check_api_key(api_key: str = Security(api_key_header)):
    """
    Validates API Key if 'API_KEY' env var is set.
    If 'API_KEY' is NOT set, allows open access.
    """
    expected_key = os.getenv("API_KEY")
    if expected_key:
        if api_key != expected_key:
            raise HTTPException(status_code=403, detail="Invalid API Key")
    return api_key


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message})


def _rate_limit() -> str:
    return os.getenv("RATE_LIMIT", "60/minute")


@app.on_event("startup")
async def startup_event():
    configure_logging()
    log.info("Starting up API...")

    if not os.getenv("API_KEY"):
        log.warning("No API_KEY configured! API is accessible without authentication (Rate Limits apply).")

    if app.state.resolver is None:
        app.state.resolver = ConcurrentResolver()
    if app.state.pipeline is None:
        app.state.pipeline = build_pipeline(app.state.resolver)
    log.info("Serving uploads from {} and results from {}", UPLOAD_DIR, PUBLIC_DIR)


@app.get("/health")
@limiter.exempt
def health_check():
    return {"status": "ok"}


@app.get("/api/dns-lookup", dependencies=[Depends(check_api_key)])
@limiter.limit(_rate_limit)
async def dns_lookup(request: Request, domain: Optional[str] = None):
    if not domain or not normalize_domain(domain):
        return _error(400, "Domain is required")

    try:
        bundle = await lookup_domain(domain, resolver=request.app.state.resolver)
    except Exception:
        log.exception("DNS lookup error for {}", domain)
        return _error(500, "Failed to perform DNS lookup")

    return bundle.to_dict()


@app.post("/api/process-excel", dependencies=[Depends(check_api_key)])
@limiter.limit(_rate_limit)
async def process_excel(request: Request, file: Optional[UploadFile] = File(None)):
    if file is None or not file.filename:
        return _error(400, "No file uploaded")
    if not is_supported(file.filename):
        return _error(400, "Only Excel files are allowed!")

    upload_path = UPLOAD_DIR / f"{int(time.time() * 1000)}-{Path(file.filename).name}"
    try:
        with upload_path.open("wb") as fh:
            shutil.copyfileobj(file.file, fh)

        document = await process_workbook(
            upload_path.read_bytes(), file.filename, pipeline=request.app.state.pipeline
        )

        filename = output_filename()
        (PUBLIC_DIR / filename).write_bytes(document)
    except SpreadsheetError as e:
        log.error("Rejected {}: {}", file.filename, e)
        return _error(500, "Error processing file")
    except Exception:
        log.exception("Error processing file {}", file.filename)
        return _error(500, "Error processing file")
    finally:
        upload_path.unlink(missing_ok=True)

    log.info("Wrote {} for upload {}", filename, file.filename)
    return {"success": True, "downloadUrl": f"/public/{filename}", "filename": filename}
