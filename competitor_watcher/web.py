"""FastAPI web app: business CRUD, report generation and report downloads."""

import asyncio
import json
import logging
from contextlib import asynccontextmanager
from dataclasses import asdict

from fastapi import Depends, FastAPI, Header, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import HTMLResponse, JSONResponse, Response, StreamingResponse
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from . import config, storage
from .dialog import build_dialog_view
from .errors import CompetitorWatcherError, ForbiddenError, NotFoundError, ValidationError
from .export import render_report_html, report_filename
from .main import check_business_limit, run_report_for_business
from .places import search_places_by_address
from .report import render_report_pdf_bytes
from .sections import resolve_sections
from .storage import Business, Report, User

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    config.configure_logging()
    storage.init_db()
    yield


app = FastAPI(title="Competitor Watcher", lifespan=lifespan)


# ---------------------------------------------------------------------------
# Request bodies
# ---------------------------------------------------------------------------

class BusinessIn(BaseModel):
    name: str = Field(min_length=1, max_length=100)
    type: str
    address: str | None = None
    latitude: float | None = None
    longitude: float | None = None
    location_status: str | None = None


class BusinessUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=100)
    type: str | None = None
    address: str | None = None
    latitude: float | None = None
    longitude: float | None = None
    location_status: str | None = None


class UserIn(BaseModel):
    username: str = Field(min_length=1, max_length=100)
    plan: str = "free"
    language: str = "en"


# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------

@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    return JSONResponse(
        status_code=400,
        content={"error": "Validation failed", "details": jsonable_encoder(exc.errors())},
    )


@app.exception_handler(CompetitorWatcherError)
async def domain_error_handler(request: Request, exc: CompetitorWatcherError):
    content = {"error": str(exc)}
    if isinstance(exc, ValidationError):
        content["details"] = exc.details
    return JSONResponse(status_code=exc.status_code, content=content)


# ---------------------------------------------------------------------------
# Dependencies
# ---------------------------------------------------------------------------

def get_db():
    with storage.get_db_session() as session:
        yield session


def _current_user(session: Session, user_id: str | None) -> User | None:
    if not user_id:
        return None
    user = storage.get_user(session, user_id)
    if user is None:
        raise ForbiddenError("Unknown user")
    return user


def _check_owner(owner_id: str | None, user: User | None) -> None:
    if owner_id and (user is None or user.id != owner_id):
        raise ForbiddenError("You do not have access to this resource")


def _owned_business(session: Session, business_id: str, user: User | None) -> Business:
    business = storage.get_business(session, business_id)
    if business is None:
        raise NotFoundError("Business not found")
    _check_owner(business.user_id, user)
    return business


def _owned_report(session: Session, report_id: str, user: User | None) -> Report:
    report = storage.get_report(session, report_id)
    if report is None:
        raise NotFoundError("Report not found")
    _check_owner(report.user_id, user)
    return report


# ---------------------------------------------------------------------------
# Pages
# ---------------------------------------------------------------------------

@app.get("/", response_class=HTMLResponse)
async def index():
    return INDEX_HTML


# ---------------------------------------------------------------------------
# Users
# ---------------------------------------------------------------------------

@app.post("/api/users", status_code=201)
def create_user(payload: UserIn, session: Session = Depends(get_db)):
    return storage.create_user(session, payload.username, payload.plan, payload.language).to_dict()


@app.get("/api/users/{user_id}")
def get_user(user_id: str, session: Session = Depends(get_db)):
    user = storage.get_user(session, user_id)
    if user is None:
        raise NotFoundError("User not found")
    return user.to_dict()


# ---------------------------------------------------------------------------
# Businesses
# ---------------------------------------------------------------------------

@app.get("/api/businesses")
def list_businesses(session: Session = Depends(get_db), x_user_id: str | None = Header(default=None)):
    user = _current_user(session, x_user_id)
    businesses = storage.list_businesses(session, user.id if user else None)
    return [b.to_dict() for b in businesses]


@app.post("/api/businesses", status_code=201)
def create_business(
    payload: BusinessIn,
    session: Session = Depends(get_db),
    x_user_id: str | None = Header(default=None),
):
    user = _current_user(session, x_user_id)
    if user is not None:
        check_business_limit(session, user)
    business = storage.add_business(session, payload.model_dump(), user.id if user else None)
    return business.to_dict()


@app.get("/api/businesses/{business_id}")
def get_business(business_id: str, session: Session = Depends(get_db), x_user_id: str | None = Header(default=None)):
    user = _current_user(session, x_user_id)
    return _owned_business(session, business_id, user).to_dict()


@app.put("/api/businesses/{business_id}")
def update_business(
    business_id: str,
    payload: BusinessUpdate,
    session: Session = Depends(get_db),
    x_user_id: str | None = Header(default=None),
):
    user = _current_user(session, x_user_id)
    _owned_business(session, business_id, user)
    business = storage.update_business(session, business_id, payload.model_dump(exclude_unset=True))
    return business.to_dict()


@app.delete("/api/businesses/{business_id}", status_code=204)
def delete_business(business_id: str, session: Session = Depends(get_db), x_user_id: str | None = Header(default=None)):
    user = _current_user(session, x_user_id)
    _owned_business(session, business_id, user)
    storage.delete_business(session, business_id)
    return Response(status_code=204)


@app.get("/api/places/search")
async def places_search(q: str):
    results = await search_places_by_address(q)
    return [asdict(place) for place in results]


# ---------------------------------------------------------------------------
# Report generation
# ---------------------------------------------------------------------------

@app.post("/api/run-report/{business_id}")
async def run_report(
    business_id: str,
    language: str = "en",
    radius: int = config.DEFAULT_RADIUS,
    session: Session = Depends(get_db),
    x_user_id: str | None = Header(default=None),
):
    user = _current_user(session, x_user_id)
    _owned_business(session, business_id, user)
    report = await run_report_for_business(
        session,
        business_id,
        language=language,
        user_id=user.id if user else None,
        radius=radius,
    )
    return report.to_dict()


async def report_events(
    business_id: str,
    language: str = "en",
    radius: int = config.DEFAULT_RADIUS,
    user_id: str | None = None,
):
    """Progress, then a complete or error event, as SSE strings.

    Closing the generator early cancels the report run.
    """
    queue: asyncio.Queue = asyncio.Queue()
    try:
        with storage.get_db_session() as session:
            user = _current_user(session, user_id)
            _owned_business(session, business_id, user)
            task = asyncio.create_task(run_report_for_business(
                session,
                business_id,
                language=language,
                user_id=user.id if user else None,
                radius=radius,
                on_progress=queue.put_nowait,
            ))
            task.add_done_callback(lambda _: queue.put_nowait(None))

            try:
                while (message := await queue.get()) is not None:
                    yield _sse("progress", message)
            finally:
                if not task.done():
                    logger.info("Client disconnected, cancelling report for business %s", business_id)
                    task.cancel()

            report = task.result()
            stats_view = build_dialog_view(report)
            yield _sse("complete", json.dumps({
                "report_id": report.id,
                "business_name": report.business_name,
                "competitors_found": stats_view["stats"]["competitors_found"],
                "sections": [s["key"] for s in stats_view["sections"]],
            }))
    except Exception as e:
        logger.exception("Report generation failed for business %s", business_id)
        yield _sse("error", str(e))


@app.get("/api/generate/{business_id}")
async def generate(
    business_id: str,
    language: str = "en",
    radius: int = config.DEFAULT_RADIUS,
    user_id: str | None = None,
):
    """Generate a competitor report via Server-Sent Events.

    EventSource cannot send headers, so the user id comes as a query parameter.
    """
    return StreamingResponse(
        report_events(business_id, language, radius, user_id),
        media_type="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "X-Accel-Buffering": "no",
        },
    )


def _sse(event: str, data: str) -> str:
    return f"event: {event}\ndata: {data}\n\n"


# ---------------------------------------------------------------------------
# Reports
# ---------------------------------------------------------------------------

@app.get("/api/reports")
def list_reports(session: Session = Depends(get_db), x_user_id: str | None = Header(default=None)):
    user = _current_user(session, x_user_id)
    return [r.to_dict() for r in storage.list_reports(session, user.id if user else None)]


@app.get("/api/reports/business/{business_id}")
def reports_for_business(
    business_id: str,
    session: Session = Depends(get_db),
    x_user_id: str | None = Header(default=None),
):
    user = _current_user(session, x_user_id)
    _owned_business(session, business_id, user)
    return [r.to_dict() for r in storage.get_reports_by_business_id(session, business_id)]


@app.get("/api/reports/{report_id}")
def get_report(report_id: str, session: Session = Depends(get_db), x_user_id: str | None = Header(default=None)):
    user = _current_user(session, x_user_id)
    return _owned_report(session, report_id, user).to_dict(include_html=True)


@app.get("/api/reports/{report_id}/dialog")
def report_dialog(
    report_id: str,
    language: str | None = None,
    session: Session = Depends(get_db),
    x_user_id: str | None = Header(default=None),
):
    user = _current_user(session, x_user_id)
    return build_dialog_view(_owned_report(session, report_id, user), language)


@app.get("/api/reports/{report_id}/sections")
def report_sections(report_id: str, session: Session = Depends(get_db), x_user_id: str | None = Header(default=None)):
    user = _current_user(session, x_user_id)
    parsed = resolve_sections(_owned_report(session, report_id, user))
    return {"keys": parsed.section_keys(), "sections": parsed.to_dict()}


@app.get("/api/reports/{report_id}/html")
def report_html(
    report_id: str,
    language: str | None = None,
    session: Session = Depends(get_db),
    x_user_id: str | None = Header(default=None),
):
    user = _current_user(session, x_user_id)
    report = _owned_report(session, report_id, user)
    content = report.html if (report.html and not language) else render_report_html(report, language)
    return HTMLResponse(
        content,
        headers={"Content-Disposition": f'attachment; filename="{report_filename(report.business_name)}"'},
    )


@app.get("/api/reports/{report_id}/pdf")
async def report_pdf(
    report_id: str,
    language: str | None = None,
    session: Session = Depends(get_db),
    x_user_id: str | None = Header(default=None),
):
    user = _current_user(session, x_user_id)
    report = _owned_report(session, report_id, user)
    pdf = await asyncio.to_thread(render_report_pdf_bytes, report, language)
    return Response(
        pdf,
        media_type="application/pdf",
        headers={"Content-Disposition": f'attachment; filename="{report_filename(report.business_name, "pdf")}"'},
    )


# ---------------------------------------------------------------------------
# Inline HTML (single page app)
# ---------------------------------------------------------------------------

INDEX_HTML = """\
<!DOCTYPE html>
<html lang="en">
<head>
<meta charset="utf-8">
<meta name="viewport" content="width=device-width, initial-scale=1">
<title>Competitor Watcher</title>
<style>
  *, *::before, *::after { margin: 0; padding: 0; box-sizing: border-box; }

  body {
    font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', Roboto, 'Helvetica Neue', Arial, sans-serif;
    background: #f0f2f5;
    color: #1a1a2e;
    min-height: 100vh;
    display: flex;
    flex-direction: column;
    align-items: center;
    padding: 40px 20px;
  }

  .card {
    background: white;
    border-radius: 16px;
    box-shadow: 0 1px 3px rgba(0,0,0,0.08), 0 8px 24px rgba(0,0,0,0.06);
    padding: 36px;
    width: 100%;
    max-width: 760px;
    margin-bottom: 20px;
  }

  h1 { font-size: 24px; font-weight: 700; margin-bottom: 6px; }
  h2 { font-size: 18px; margin-bottom: 12px; }
  h3 { font-size: 14px; color: #2563eb; margin: 10px 0 4px; }
  .subtitle { font-size: 14px; color: #6b7280; margin-bottom: 24px; }

  .form-row { display: flex; gap: 8px; flex-wrap: wrap; }
  input, select {
    flex: 1;
    min-width: 120px;
    padding: 10px 14px;
    border: 1px solid #d1d5db;
    border-radius: 10px;
    font-size: 14px;
  }

  button {
    padding: 10px 20px;
    background: #1a1a2e;
    color: white;
    border: none;
    border-radius: 10px;
    font-size: 14px;
    font-weight: 600;
    cursor: pointer;
  }

  button:disabled { background: #9ca3af; cursor: not-allowed; }

  .business {
    display: flex;
    justify-content: space-between;
    align-items: center;
    padding: 12px 0;
    border-bottom: 1px solid #e8eaed;
  }

  .business .meta { font-size: 12px; color: #6b7280; }
  .pending { color: #b45309; }

  .step { padding: 4px 0; font-size: 14px; color: #6b7280; }

  #report ul { padding-left: 20px; font-size: 14px; }
  #report p { font-size: 14px; margin-bottom: 8px; }
  #report section { margin-bottom: 18px; }
  .downloads a { margin-right: 12px; color: #2563eb; font-weight: 600; }

  .error-msg {
    margin-top: 16px;
    padding: 12px 16px;
    background: #fef2f2;
    border: 1px solid #fecaca;
    border-radius: 10px;
    color: #991b1b;
    font-size: 14px;
    display: none;
  }
</style>
</head>
<body>
<div class="card">
  <h1>Competitor Watcher</h1>
  <p class="subtitle">Add a business, then generate an AI competitor analysis for its neighbourhood.</p>

  <form id="form">
    <div class="form-row">
      <input type="text" id="name" placeholder="Business name" required>
      <select id="type">
        <option>restaurant</option><option>cafe</option><option>retail</option><option>gym</option>
        <option>salon</option><option>pharmacy</option><option>hotel</option><option>bar</option>
        <option>bakery</option><option>supermarket</option><option>clinic</option><option>dentist</option>
        <option>bank</option><option>gas_station</option><option>car_repair</option><option>other</option>
      </select>
    </div>
    <div class="form-row" style="margin-top: 8px">
      <input type="text" id="lat" placeholder="Latitude">
      <input type="text" id="lng" placeholder="Longitude">
      <select id="language">
        <option value="en">English</option><option value="pt">Português</option>
        <option value="es">Español</option><option value="fr">Français</option><option value="de">Deutsch</option>
      </select>
      <button type="submit">Add</button>
    </div>
  </form>

  <div class="error-msg" id="error"></div>
  <div id="businesses" style="margin-top: 20px"></div>
  <div id="progress" style="margin-top: 16px"></div>
</div>

<div class="card" id="report" style="display: none"></div>

<script>
const errorEl = document.getElementById('error');
const progressEl = document.getElementById('progress');
const reportEl = document.getElementById('report');

function showError(message) {
  errorEl.textContent = message;
  errorEl.style.display = 'block';
}

function escapeHtml(text) {
  const div = document.createElement('div');
  div.textContent = text;
  return div.innerHTML;
}

async function loadBusinesses() {
  const res = await fetch('/api/businesses');
  const businesses = await res.json();
  const list = document.getElementById('businesses');
  list.innerHTML = '';
  for (const b of businesses) {
    const row = document.createElement('div');
    row.className = 'business';
    const status = b.location_status === 'pending' ? ' <span class="pending">(location pending)</span>' : '';
    row.innerHTML = '<div><strong>' + escapeHtml(b.name) + '</strong>' + status +
      '<div class="meta">' + escapeHtml(b.type) + '</div></div>';
    const btn = document.createElement('button');
    btn.textContent = 'Generate report';
    btn.disabled = b.location_status === 'pending';
    btn.onclick = () => generate(b.id, btn);
    row.appendChild(btn);
    list.appendChild(row);
  }
}

document.getElementById('form').addEventListener('submit', async (e) => {
  e.preventDefault();
  errorEl.style.display = 'none';
  const lat = document.getElementById('lat').value.trim();
  const lng = document.getElementById('lng').value.trim();
  const res = await fetch('/api/businesses', {
    method: 'POST',
    headers: {'Content-Type': 'application/json'},
    body: JSON.stringify({
      name: document.getElementById('name').value.trim(),
      type: document.getElementById('type').value,
      latitude: lat ? parseFloat(lat) : null,
      longitude: lng ? parseFloat(lng) : null,
    }),
  });
  if (!res.ok) {
    const body = await res.json();
    showError(body.error + (body.details ? ': ' + JSON.stringify(body.details) : ''));
    return;
  }
  e.target.reset();
  loadBusinesses();
});

function generate(businessId, btn) {
  const language = document.getElementById('language').value;
  progressEl.innerHTML = '';
  errorEl.style.display = 'none';
  btn.disabled = true;

  const evtSource = new EventSource('/api/generate/' + businessId + '?language=' + language);

  evtSource.addEventListener('progress', (e) => {
    const step = document.createElement('div');
    step.className = 'step';
    step.textContent = e.data;
    progressEl.appendChild(step);
  });

  evtSource.addEventListener('complete', (e) => {
    evtSource.close();
    btn.disabled = false;
    const data = JSON.parse(e.data);
    showReport(data.report_id);
  });

  evtSource.addEventListener('error', (e) => {
    evtSource.close();
    btn.disabled = false;
    showError(e.data || 'Connection lost. Please try again.');
  });
}

function renderSection(section) {
  let body = '';
  if (section.kind === 'text') {
    body = section.paragraphs.map(p => '<p>' + p + '</p>').join('');
  } else if (section.kind === 'list') {
    body = '<ul>' + section.items.map(i => '<li>' + i + '</li>').join('') + '</ul>';
  } else {
    body = section.groups.map(g =>
      '<h3>' + escapeHtml(g.title) + '</h3><ul>' + g.items.map(i => '<li>' + i + '</li>').join('') + '</ul>'
    ).join('');
  }
  return '<section data-section="' + section.key + '"><h2>' + escapeHtml(section.title) + '</h2>' + body + '</section>';
}

async function showReport(reportId) {
  const res = await fetch('/api/reports/' + reportId + '/dialog');
  const view = await res.json();
  reportEl.innerHTML =
    '<h1>' + escapeHtml(view.business_name) + '</h1>' +
    '<p class="subtitle">' + escapeHtml(view.title) + ' &middot; ' +
      view.stats.competitors_found + ' ' + escapeHtml(view.labels.competitors_found) + ' &middot; ' +
      view.stats.avg_rating + ' ' + escapeHtml(view.labels.avg_rating) + '</p>' +
    view.sections.map(renderSection).join('') +
    '<div class="downloads"><a href="/api/reports/' + reportId + '/html">Download HTML</a>' +
    '<a href="/api/reports/' + reportId + '/pdf">Download PDF</a></div>';
  reportEl.style.display = 'block';
}

loadBusinesses();
</script>
</body>
</html>
"""
