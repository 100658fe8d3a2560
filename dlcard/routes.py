"""FastAPI route definitions for the download card service.

API Endpoint Overview
=====================
::
    GET  /healthz
        └─ empty 200 (liveness)

    GET  /health
        └─ HealthResponse (200)

    POST /
        ├─ form field "dlkey"
        └─ HTML page: 200 (link, invalid key, limit reached),
                      503 (cache not loaded), 500 (store/issuer failure)

    GET  /dl/:token
        └─ 307 Redirect to the stored object, or 404 once expired

Outcome → Response Mapping
==========================
::
    SUCCESS              200  <a href=url>item name</a>
    INVALID_KEY          200  invalid download key ...
    LIMIT_EXCEEDED       200  download count exceeded ...
    NOT_READY            503  internal error ... <timestamp>
    PERSISTENCE_FAILURE  500  internal error ... <timestamp>
    INTEGRITY_ERROR      500  internal error ... <timestamp>
    ISSUANCE_FAILURE     500  internal error ... <timestamp>

Key Behaviours
===============
- Only POST is routed on "/" for redemption; other methods get 405.
- Internal error text never reaches the requester.
- Every value interpolated into HTML is escaped.
"""

import datetime
import html

from fastapi import APIRouter, Depends, Form, HTTPException, Response
from fastapi.responses import HTMLResponse, RedirectResponse

from dlcard.dependencies import RequestContext, get_request_context
from dlcard.enums import HealthStatus, RedemptionOutcome
from dlcard.links import LinkIssueError
from dlcard.schemas import HealthResponse, RedemptionResult

__all__ = ["router", "render_page"]

router = APIRouter()

INVALID_KEY_MESSAGE = "invalid download key; if you are sure this is an error, please contact us"
LIMIT_EXCEEDED_MESSAGE = "download count exceeded; please contact us if you want to do it"

PAGE_TEMPLATE = """<!DOCTYPE html>
<head>
  <meta charset="UTF-8" />
  <meta name="viewport" content="width=device-width, initial-scale=1">
</head>
<body>
  {body}
  <br>
  <button type="button" onclick="history.back()">Back</button>
</body>
</html>"""


def render_page(body: str, status_code: int = 200) -> HTMLResponse:
    return HTMLResponse(PAGE_TEMPLATE.format(body=body), status_code=status_code)


def _internal_error(status_code: int = 500) -> HTMLResponse:
    now = datetime.datetime.now(datetime.timezone.utc).isoformat()
    return render_page(f"internal error; please contact us; {now}", status_code)


def _render_result(result: RedemptionResult) -> HTMLResponse:
    if result.outcome is RedemptionOutcome.SUCCESS:
        link = html.escape(result.url or "", quote=True)
        name = html.escape(result.item_name or "")
        return render_page(f'<a href="{link}" target="_blank">{name}</a>')
    if result.outcome is RedemptionOutcome.INVALID_KEY:
        return render_page(INVALID_KEY_MESSAGE)
    if result.outcome is RedemptionOutcome.LIMIT_EXCEEDED:
        return render_page(LIMIT_EXCEEDED_MESSAGE)
    if result.outcome is RedemptionOutcome.NOT_READY:
        return _internal_error(503)
    return _internal_error(500)


@router.get("/healthz", tags=["health"])
async def liveness() -> Response:
    return Response(status_code=200)


@router.get("/health", response_model=HealthResponse, tags=["health"])
async def health_check(ctx: RequestContext = Depends(get_request_context)) -> HealthResponse:
    store_status = HealthStatus.HEALTHY if await ctx.store.ping() else HealthStatus.UNHEALTHY
    if store_status is HealthStatus.UNHEALTHY:
        ctx.logger.error("Metadata store health check failed")
    return HealthResponse(status=store_status, store=store_status)


@router.post("/", response_class=HTMLResponse, tags=["download"])
async def download(
    dlkey: str = Form(""),
    ctx: RequestContext = Depends(get_request_context),
) -> HTMLResponse:
    result = await ctx.coordinator.redeem(dlkey)

    message = f"outcome={result.outcome.value} duration_ms={ctx.get_duration():.1f}"
    if result.outcome.is_failure:
        ctx.logger.error(f"Redemption failed: {message}")
    else:
        ctx.logger.info(f"Redemption finished: {message}")
    return _render_result(result)


@router.get("/dl/{token}", tags=["download"])
async def follow_link(token: str, ctx: RequestContext = Depends(get_request_context)) -> RedirectResponse:
    try:
        target = await ctx.link_issuer.resolve(token)
    except LinkIssueError as exc:
        ctx.logger.error(f"Link lookup failed: {exc}")
        raise HTTPException(status_code=503, detail="Link lookup unavailable") from exc

    if target is None:
        ctx.logger.info(f"Expired or unknown link token: {token}")
        raise HTTPException(status_code=404, detail="Download link expired or not found")
    return RedirectResponse(url=target, status_code=307)
