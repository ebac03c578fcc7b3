"""mdbook-ansi FastAPI server: the preprocessor over HTTP."""

from __future__ import annotations

import logging
from typing import Any, Optional

from fastapi import Body, Depends, FastAPI, HTTPException
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from pydantic import ValidationError

from ansi_blocks import find_ansi_blocks, splice_blocks
from ansi_book import AnsiPreprocessor, load_input
from ansi_errors import AnsiError
from ansi_settings import PREPROCESSOR_NAME, AnsiSettings, SERVER_HOST, SERVER_PORT, SERVER_TOKEN, __version__

logger = logging.getLogger(__name__)

app = FastAPI(title="mdbook-ansi", version=__version__)
_security = HTTPBearer(auto_error=False)
_preprocessor = AnsiPreprocessor()


def _verify(creds: Optional[HTTPAuthorizationCredentials] = Depends(_security)) -> None:
    # Auth is only enforced when MDBOOK_ANSI_TOKEN is set
    if not SERVER_TOKEN:
        return
    if creds is None or creds.credentials != SERVER_TOKEN:
        raise HTTPException(status_code=401, detail="Invalid token")


class RenderRequest(AnsiSettings):
    markdown: str


@app.get("/health")
def health():
    return {"status": "ok", "preprocessor": PREPROCESSOR_NAME, "version": __version__}


@app.get("/supports/{renderer}", dependencies=[Depends(_verify)])
def supports(renderer: str):
    return {"renderer": renderer, "supported": _preprocessor.supports_renderer(renderer)}


@app.post("/render", dependencies=[Depends(_verify)])
def render(body: RenderRequest):
    try:
        blocks = find_ansi_blocks(body.markdown, body.marker)
        markdown = splice_blocks(body.markdown, blocks, body.escape_html)
    except AnsiError as exc:
        raise HTTPException(status_code=422, detail=str(exc))
    return {"markdown": markdown, "blocks": len(blocks)}


@app.post("/preprocess", dependencies=[Depends(_verify)])
def preprocess(payload: list[Any] = Body(...)):
    try:
        ctx, book = load_input(payload)
    except ValidationError as exc:
        raise HTTPException(status_code=422, detail=str(exc))

    _preprocessor.check_version(ctx)
    try:
        processed = _preprocessor.run(ctx, book)
    except AnsiError as exc:
        logger.error("%s", exc)
        raise HTTPException(status_code=422, detail=str(exc))
    return processed.model_dump(mode="json", by_alias=True)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host=SERVER_HOST, port=SERVER_PORT)
