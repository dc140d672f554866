"""
HTTP rendering of stored files.
"""
from urllib.parse import quote

from fastapi.responses import RedirectResponse, StreamingResponse

from exam_tester.services.file_resolution_service import InlineFile, Redirect


def content_disposition(filename: str, disposition: str = "inline") -> str:
    """
    Header value with an ASCII fallback name and an RFC 5987 UTF-8 name.
    Quotes and line breaks are dropped from the fallback.
    """
    fallback = "".join(
        ch for ch in filename
        if 32 <= ord(ch) < 127 and ch not in '"\\'
    ) or "file"
    value = f'{disposition}; filename="{fallback}"'
    if fallback != filename:
        value += f"; filename*=UTF-8''{quote(filename, safe='')}"
    return value


def redirect_response(resolution: Redirect) -> RedirectResponse:
    return RedirectResponse(resolution.url, status_code=307)


def inline_file_response(resolution: InlineFile) -> StreamingResponse:
    handle = resolution.handle
    return StreamingResponse(
        handle.stream,
        media_type=resolution.content_type,
        headers={
            "Content-Disposition": content_disposition(resolution.filename),
            "Content-Length": str(handle.length),
            "Cache-Control": f"public, max-age={resolution.max_age}",
        },
    )
