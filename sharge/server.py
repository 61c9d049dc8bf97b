#!/usr/bin/env python3
"""
SHARGE: Self-hosted File Sharing Server

A FastAPI application exposing a single root directory to logged-in
users: browse the tree, upload with collision-free naming, download one
file or many as a streamed ZIP, view media and documents inline, and
create, rename or delete entries. Every path is confined to the root.
"""

import argparse
import hmac
import logging
import mimetypes
import os
import time
from contextlib import asynccontextmanager
from typing import List, Optional

import uvicorn
from fastapi import APIRouter, Depends, FastAPI, File, Form, HTTPException, Query, Request, UploadFile, status
from fastapi.responses import FileResponse, HTMLResponse, JSONResponse, RedirectResponse, StreamingResponse

from sharge import __version__
from sharge.archive import ARCHIVE_NAME, prepare_download, stream_archive
from sharge.classifier import FileKind, classify
from sharge.config import AppConfig, configure_logging, load_config_from_file, parse_size
from sharge.errors import (
    AuthRequiredError,
    InvalidPathError,
    NotFoundError,
    UnclassifiableFileError,
    UploadTooLargeError,
)
from sharge.pages import render_document, render_index, render_login, render_tree
from sharge.path_guard import resolve, to_relative
from sharge.sessions import SessionStore
from sharge.tree import Entry, list_tree
from sharge.uploads import store

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


# ============================================================================
# Authentication
# ============================================================================

def client_address(request: Request) -> str:
    return request.client.host if request.client else "unknown"


async def get_current_user(request: Request) -> str:
    """Session gate: resolve the cookie to an identity or redirect to login"""
    config: AppConfig = request.app.state.config
    sessions: SessionStore = request.app.state.sessions

    token = request.cookies.get(config.security.session_cookie)
    identity = sessions.lookup(token)
    if identity is None:
        raise AuthRequiredError("login required")
    return identity


def password_matches(submitted: str, expected: str) -> bool:
    """Byte-for-byte comparison in constant time"""
    return hmac.compare_digest(submitted.encode("utf-8"), expected.encode("utf-8"))


# ============================================================================
# Error Handlers
# ============================================================================

async def handle_auth_required(request: Request, exc: AuthRequiredError):
    return RedirectResponse("/login", status_code=status.HTTP_303_SEE_OTHER)


async def handle_invalid_path(request: Request, exc: InvalidPathError):
    return JSONResponse({"detail": str(exc) or "invalid path"}, status_code=status.HTTP_400_BAD_REQUEST)


async def handle_not_found(request: Request, exc: NotFoundError):
    return JSONResponse({"detail": str(exc) or "not found"}, status_code=status.HTTP_404_NOT_FOUND)


async def handle_unclassifiable(request: Request, exc: UnclassifiableFileError):
    return JSONResponse({"detail": str(exc)}, status_code=status.HTTP_400_BAD_REQUEST)


async def handle_too_large(request: Request, exc: UploadTooLargeError):
    return JSONResponse({"detail": str(exc)}, status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE)


# ============================================================================
# Routes
# ============================================================================

router = APIRouter()


@router.get("/login", response_class=HTMLResponse)
async def login_page():
    """Serve the login form"""
    return render_login()


@router.post("/login")
async def login(request: Request, password: str = Form("")):
    """Check the shared password and start a session"""
    config: AppConfig = request.app.state.config
    address = client_address(request)

    if not password_matches(password, config.security.password):
        logger.warning(f"Failed login from {address}")
        return HTMLResponse(render_login("Invalid password"), status_code=status.HTTP_401_UNAUTHORIZED)

    token = request.app.state.sessions.create(address)
    response = RedirectResponse("/", status_code=status.HTTP_303_SEE_OTHER)
    response.set_cookie(
        config.security.session_cookie,
        token,
        path="/",
        httponly=True,
        samesite="lax"
    )
    logger.info(f"Login from {address}")
    return response


@router.get("/logout")
async def logout(request: Request):
    """End the session and return to the login page"""
    config: AppConfig = request.app.state.config
    request.app.state.sessions.destroy(request.cookies.get(config.security.session_cookie))

    response = RedirectResponse("/login", status_code=status.HTTP_303_SEE_OTHER)
    response.delete_cookie(config.security.session_cookie, path="/")
    return response


def _load_tree(request: Request, directory: Optional[str] = None) -> List[Entry]:
    config: AppConfig = request.app.state.config
    root: str = request.app.state.root
    try:
        return list_tree(root, directory, max_depth=config.server.max_tree_depth)
    except FileNotFoundError:
        raise NotFoundError("directory not found")
    except OSError as e:
        logger.error(f"Error listing {directory or root}: {e}")
        raise HTTPException(status_code=500, detail=f"get files error: {e}")


@router.get("/", response_class=HTMLResponse)
def index(request: Request, username: str = Depends(get_current_user)):
    """File browser page"""
    config: AppConfig = request.app.state.config
    return render_index(_load_tree(request), config.server.max_upload_size)


@router.get("/files", response_class=HTMLResponse)
def files_fragment(request: Request, username: str = Depends(get_current_user)):
    """Rendered tree only, for partial page refreshes"""
    return render_tree(_load_tree(request))


@router.get("/api/files", response_model=List[Entry])
def list_files(request: Request, d: str = "", username: str = Depends(get_current_user)):
    """Directory tree as JSON; the whole root unless ``d`` names a subdirectory"""
    directory = None
    if d:
        directory = resolve(request.app.state.root, d)
        if not os.path.isdir(directory):
            raise NotFoundError(f"directory not found: {d}")
    return _load_tree(request, directory)


@router.post("/upload", status_code=status.HTTP_201_CREATED)
async def upload_files(
    request: Request,
    files: Optional[List[UploadFile]] = File(None, alias="files[]"),
    directory: str = Form("", alias="dir"),
    username: str = Depends(get_current_user)
):
    """Store uploaded files, renaming on collision"""
    if not files:
        raise HTTPException(status_code=400, detail="no files")

    config: AppConfig = request.app.state.config
    root: str = request.app.state.root
    limit = config.server.max_upload_size
    chunk_size = config.server.chunk_size
    received = 0

    async def read_chunks(upload: UploadFile):
        nonlocal received
        while True:
            chunk = await upload.read(chunk_size)
            if not chunk:
                break
            received += len(chunk)
            if received > limit:
                raise UploadTooLargeError(f"upload exceeds {limit} bytes")
            yield chunk

    stored = []
    for upload in files:
        try:
            path = await store(root, directory, upload.filename or "", read_chunks(upload))
        except OSError as e:
            logger.error(f"Error uploading file {upload.filename}: {e}")
            raise HTTPException(status_code=500, detail=f"save {upload.filename}: {e}")
        finally:
            await upload.close()

        relative = to_relative(root, path)
        stored.append(relative)
        logger.info(f"Uploaded {relative} for {username}")

    return {"status": "success", "files": stored}


@router.get("/dl")
def download(
    request: Request,
    f: List[str] = Query(default=[]),
    username: str = Depends(get_current_user)
):
    """Download one file directly, or several as a ZIP"""
    config: AppConfig = request.app.state.config
    targets = prepare_download(request.app.state.root, f)

    if len(targets) == 1:
        target = targets[0]
        return FileResponse(
            path=target.path,
            filename=target.filename,
            media_type='application/octet-stream'
        )

    return StreamingResponse(
        stream_archive(targets, chunk_size=config.server.chunk_size),
        media_type='application/zip',
        headers={'Content-Disposition': f'attachment; filename="{ARCHIVE_NAME}"'}
    )


@router.post("/mkdir")
def make_directory(request: Request, d: str = "", username: str = Depends(get_current_user)):
    """Create a directory, including missing parents"""
    if not d:
        raise HTTPException(status_code=400, detail="missing directory")

    path = resolve(request.app.state.root, d)
    try:
        os.makedirs(path, exist_ok=True)
    except OSError as e:
        logger.error(f"Error creating directory {d}: {e}")
        raise HTTPException(status_code=500, detail=f"mkdir: {e}")

    logger.info(f"Created directory {d} for {username}")
    return {"status": "success"}


@router.post("/rm")
def remove(request: Request, f: str = "", username: str = Depends(get_current_user)):
    """Delete a file or an empty directory"""
    if not f:
        raise HTTPException(status_code=400, detail="missing file")

    path = resolve(request.app.state.root, f)
    try:
        if os.path.isdir(path) and not os.path.islink(path):
            os.rmdir(path)
        else:
            os.remove(path)
    except FileNotFoundError:
        raise NotFoundError(f"file not found: {f}")
    except OSError as e:
        logger.error(f"Error removing {f}: {e}")
        raise HTTPException(status_code=400, detail=f"remove: {e}")

    logger.info(f"Removed {f} for {username}")
    return {"status": "success"}


@router.post("/re")
def rename(request: Request, o: str = "", n: str = "", username: str = Depends(get_current_user)):
    """Move an entry, creating the new parent directories first"""
    if not o:
        raise HTTPException(status_code=400, detail="missing old path")
    if not n:
        raise HTTPException(status_code=400, detail="missing new path")

    root: str = request.app.state.root
    old_path = resolve(root, o)
    new_path = resolve(root, n)
    if not os.path.lexists(old_path):
        raise NotFoundError(f"file not found: {o}")

    try:
        os.makedirs(os.path.dirname(new_path), exist_ok=True)
        os.rename(old_path, new_path)
    except OSError as e:
        logger.error(f"Error renaming {o} to {n}: {e}")
        raise HTTPException(status_code=500, detail=f"rename: {e}")

    logger.info(f"Renamed {o} to {n} for {username}")
    return {"status": "success"}


@router.get("/view/{file_path:path}")
def view_file(request: Request, file_path: str, username: str = Depends(get_current_user)):
    """Show a file inline according to its type"""
    path = resolve(request.app.state.root, file_path)
    if not os.path.isfile(path):
        raise NotFoundError(f"file not found: {file_path}")

    kind = classify(file_path)
    media_type = mimetypes.guess_type(path)[0]

    if kind in (FileKind.VIDEO, FileKind.AUDIO):
        return FileResponse(path=path, media_type=media_type or 'application/octet-stream')

    if kind == FileKind.MARKDOWN:
        try:
            with open(path, 'r', encoding='utf-8', errors='replace') as f:
                text = f.read()
        except OSError as e:
            logger.error(f"Error reading {file_path}: {e}")
            raise HTTPException(status_code=500, detail=str(e))
        return HTMLResponse(render_document(os.path.basename(path), text))

    return FileResponse(path=path, media_type=media_type or 'text/plain')


# ============================================================================
# Application Factory
# ============================================================================

def create_app(config: Optional[AppConfig] = None) -> FastAPI:
    """Build the application around a canonical root and a fresh session table"""
    config = config or AppConfig()

    root = os.path.realpath(config.server.root_dir)
    os.makedirs(root, exist_ok=True)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Manage application lifespan - startup and shutdown"""
        logger.info(f"Serving {root}")
        yield
        logger.info(f"Shutting down, dropping {len(app.state.sessions)} sessions")

    app = FastAPI(
        title="SHARGE - File Sharing Server",
        description="Browse, upload and download files under a single root directory",
        version=__version__,
        lifespan=lifespan
    )
    app.state.config = config
    app.state.root = root
    app.state.sessions = SessionStore(max_age=config.security.session_max_age)

    app.add_exception_handler(AuthRequiredError, handle_auth_required)
    app.add_exception_handler(InvalidPathError, handle_invalid_path)
    app.add_exception_handler(NotFoundError, handle_not_found)
    app.add_exception_handler(UnclassifiableFileError, handle_unclassifiable)
    app.add_exception_handler(UploadTooLargeError, handle_too_large)

    @app.middleware("http")
    async def limit_upload_size(request: Request, call_next):
        """Reject anonymous or oversized uploads before the body is read"""
        if request.method == "POST" and request.url.path == "/upload":
            token = request.cookies.get(config.security.session_cookie)
            if app.state.sessions.lookup(token) is None:
                return RedirectResponse("/login", status_code=status.HTTP_303_SEE_OTHER)

            length = request.headers.get("content-length", "")
            if length.isdigit() and int(length) > config.server.max_upload_size:
                return JSONResponse(
                    {"detail": f"upload exceeds {config.server.max_upload_size} bytes"},
                    status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE
                )
        return await call_next(request)

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        start = time.time()
        response = await call_next(request)
        elapsed = time.time() - start
        logger.info(
            f"{client_address(request)} {request.method} {request.url.path} "
            f"{response.status_code} {elapsed:.3f}s"
        )
        return response

    app.include_router(router)
    return app


# ============================================================================
# CLI and Main
# ============================================================================

def main():
    """Main entry point"""
    parser = argparse.ArgumentParser(
        description="SHARGE - Self-hosted File Sharing Server"
    )
    parser.add_argument(
        "--config",
        type=str,
        help="Path to configuration file (YAML)"
    )
    parser.add_argument(
        "--host",
        type=str,
        default="127.0.0.1",
        help="Host to bind to (default: 127.0.0.1)"
    )
    parser.add_argument(
        "--port",
        type=int,
        default=8080,
        help="Port to bind to (default: 8080)"
    )
    parser.add_argument(
        "--dir",
        type=str,
        default=".",
        help="Root directory to share (default: .)"
    )
    parser.add_argument(
        "--max-size",
        type=str,
        default="1024MB",
        help="Maximum upload size (default: 1024MB)"
    )
    parser.add_argument(
        "--password",
        type=str,
        default="password",
        help="Password for access (default: password)"
    )
    parser.add_argument(
        "--log-level",
        type=str,
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level (default: INFO)"
    )

    args = parser.parse_args()

    # Load configuration
    if args.config:
        config = load_config_from_file(args.config)
    else:
        config = AppConfig()
        config.server.host = args.host
        config.server.port = args.port
        config.server.root_dir = args.dir
        config.server.max_upload_size = parse_size(args.max_size)
        config.security.password = args.password
        config.logging.level = args.log_level

    configure_logging(config.logging)

    app = create_app(config)

    # Log configuration
    logger.info("=" * 60)
    logger.info("SHARGE - File Sharing Server")
    logger.info("=" * 60)
    logger.info(f"Root Directory: {app.state.root}")
    logger.info(f"Max Upload Size: {config.server.max_upload_size} bytes")
    if config.security.session_max_age is None:
        logger.info("Session Expiry: never (sessions end on logout or restart)")
    else:
        logger.info(f"Session Expiry: {config.security.session_max_age}s")
    logger.info("=" * 60)
    logger.info(f"Server running at http://{config.server.host}:{config.server.port}")
    logger.info("Press Ctrl+C to stop")
    logger.info("=" * 60)

    # Run server
    uvicorn.run(
        app,
        host=config.server.host,
        port=config.server.port,
        log_level=config.logging.level.lower()
    )


if __name__ == "__main__":
    main()
