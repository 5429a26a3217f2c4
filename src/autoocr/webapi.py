import logging
import os
import time
from pathlib import Path
from urllib.parse import quote_plus

from fastapi import FastAPI, File, HTTPException, Request, UploadFile, status
from fastapi.responses import FileResponse, HTMLResponse, JSONResponse, RedirectResponse, StreamingResponse
from fastapi.staticfiles import StaticFiles
from starlette.datastructures import Headers
from starlette.types import ASGIApp, Receive, Scope, Send

from autoocr import __version__
from autoocr.config import Settings
from autoocr.conversion.markers import (
    OUTPUT_SUFFIX,
    debug_marker_name,
    input_file_name,
    safe_name,
    success_marker_name,
)
from autoocr.streaming import tail_events

logger = logging.getLogger("autoocr.webserver")

RESOURCES_DIR = Path(__file__).resolve().parent / "resources"
CHUNK = 1024 * 1024


def _unix_now() -> int:
    return int(time.time())


def _error(status_code: int, code: str, message: str) -> HTTPException:
    return HTTPException(status_code=status_code, detail={"code": code, "message": message})


def _require_name(file: str | None) -> str:
    name = safe_name(file)
    if name is None:
        raise _error(status.HTTP_400_BAD_REQUEST, "bad_request", "missing file parameter")
    return name


class UploadLimitMiddleware:
    """Rejects request bodies larger than ``max_bytes`` without buffering them.

    A declared Content-Length over the limit is refused up front; otherwise the
    bytes are counted as they are received and the request is aborted as soon
    as the limit is crossed.
    """

    def __init__(self, app: ASGIApp, max_bytes: int) -> None:
        self.app = app
        self.max_bytes = max_bytes

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope.get("type") != "http" or scope.get("method") != "POST":
            await self.app(scope, receive, send)
            return

        length = Headers(scope=scope).get("content-length")
        if length is not None and length.isdigit() and int(length) > self.max_bytes:
            response = JSONResponse(
                status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
                content={"detail": {"code": "payload_too_large", "message": f"upload exceeds {self.max_bytes} bytes"}},
            )
            await response(scope, receive, send)
            return

        received = 0

        async def limited_receive() -> dict:
            nonlocal received
            message = await receive()
            if message.get("type") == "http.request":
                received += len(message.get("body", b""))
                if received > self.max_bytes:
                    # propagates through form parsing as-is
                    raise _error(
                        status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
                        "payload_too_large",
                        f"upload exceeds {self.max_bytes} bytes",
                    )
            return message

        await self.app(scope, limited_receive, send)


def create_app(settings: Settings) -> FastAPI:
    app = FastAPI(
        title="autoocr",
        version=__version__,
        description="Upload scans, follow their conversion live and download the result.",
    )
    app.state.settings = settings
    app.add_middleware(UploadLimitMiddleware, max_bytes=settings.max_upload_bytes)
    if RESOURCES_DIR.is_dir():
        app.mount("/resources", StaticFiles(directory=str(RESOURCES_DIR)), name="resources")

    @app.get("/", response_class=HTMLResponse)
    def upload_page() -> HTMLResponse:
        try:
            page = (RESOURCES_DIR / "upload.html").read_text(encoding="utf-8")
        except OSError as e:
            logger.error("cannot read upload page: %s", e)
            raise _error(status.HTTP_500_INTERNAL_SERVER_ERROR, "internal_error", "Internal server error")
        return HTMLResponse(page.replace("{{OUTPUT_SUFFIX}}", OUTPUT_SUFFIX))

    @app.get("/health")
    def health() -> dict[str, str]:
        """Basic health check endpoint."""
        return {"status": "ok"}

    @app.post("/upload")
    async def upload(file: UploadFile | None = File(None)) -> RedirectResponse:
        """Store an uploaded document in the input directory.

        Accepts multipart/form-data with a part named "file". The document is
        saved as ``{unix_seconds}_{basename}`` and its debug marker is seeded
        in the output directory; the caller is redirected to the viewer with
        the marker name so the page can open the progress stream.
        """
        original = safe_name(file.filename) if file is not None else None
        if file is None or original is None:
            raise _error(status.HTTP_400_BAD_REQUEST, "bad_request", "Missing file")

        try:
            settings.input_dir.mkdir(mode=0o755, parents=True, exist_ok=True)
        except OSError:
            logger.exception("mkdir input dir %s", settings.input_dir)
            raise _error(status.HTTP_500_INTERNAL_SERVER_ERROR, "server_error", "Server error")

        dst_name = input_file_name(_unix_now(), original)
        dst_path = settings.input_dir / dst_name
        # dot-prefixed names are skipped by the processor until the rename
        part_path = settings.input_dir / f".{dst_name}.part"
        try:
            with part_path.open("wb") as f_out:
                while True:
                    chunk = await file.read(CHUNK)
                    if not chunk:
                        break
                    f_out.write(chunk)
            os.replace(part_path, dst_path)
        except OSError:
            logger.exception("copy upload to %s", dst_path)
            part_path.unlink(missing_ok=True)
            raise _error(status.HTTP_500_INTERNAL_SERVER_ERROR, "server_error", "Server error")
        logger.info("Saved uploaded file to %s", dst_path)

        debug_name = debug_marker_name(dst_name)
        debug_path = settings.output_dir / debug_name
        try:
            settings.output_dir.mkdir(mode=0o755, parents=True, exist_ok=True)
            debug_path.write_text(f"Debug for {file.filename}\nUploaded to: {dst_path}\n", encoding="utf-8")
        except OSError:
            logger.exception("seed debug file %s", debug_path)
            raise _error(status.HTTP_500_INTERNAL_SERVER_ERROR, "server_error", "Server error")

        return RedirectResponse(url="/?debug=" + quote_plus(debug_name), status_code=status.HTTP_303_SEE_OTHER)

    @app.get("/stream")
    async def stream(request: Request, file: str | None = None) -> StreamingResponse:
        """Tail a debug file as server-sent events until the client disconnects."""
        name = _require_name(file)
        path = settings.output_dir / name
        try:
            if not path.exists():
                # an empty file lets the client connect before the job starts logging
                settings.output_dir.mkdir(parents=True, exist_ok=True)
                path.touch()
        except OSError:
            logger.exception("open debug file %s", path)
            raise _error(status.HTTP_500_INTERNAL_SERVER_ERROR, "server_error", "unable to open file")

        return StreamingResponse(
            tail_events(path, request.is_disconnected, settings.stream_poll_sec),
            media_type="text/event-stream",
            headers={
                "Cache-Control": "no-cache",
                "Connection": "keep-alive",
                "X-Accel-Buffering": "no",
            },
        )

    @app.get("/exists")
    def exists(file: str | None = None) -> dict[str, bool]:
        name = _require_name(file)
        return {"exists": os.path.exists(settings.output_dir / success_marker_name(name))}

    @app.get("/download")
    def download(file: str | None = None) -> FileResponse:
        name = _require_name(file)
        path = settings.output_dir / name
        if not path.is_file():
            raise _error(status.HTTP_404_NOT_FOUND, "not_found", "not found")
        return FileResponse(path, filename=name)

    return app
