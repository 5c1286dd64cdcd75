"""
FastAPI backend: REST API for lead intake deals.
Run with uvicorn: uvicorn api.main:app --reload
"""

import logging
import threading
from datetime import date
from decimal import Decimal
from functools import partial
from pathlib import Path

from dotenv import load_dotenv

# Load .env from repo root (when run from repo root or from Docker)
for path in (
    Path(__file__).resolve().parent.parent.parent / ".env",
    Path.cwd() / ".env",
):
    if path.exists():
        load_dotenv(path)
        break

from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse
from neo4j import GraphDatabase
from pydantic import BaseModel

from leadintake.application import (
    AlreadyConfigured,
    CategoryInput,
    DealFilter,
    DealNotFound,
    DealService,
    Invalid,
    PersistenceError,
)
from leadintake.domain import Deal
from leadintake.infrastructure import (
    InMemoryContactRepository,
    InMemoryDealRepository,
    Neo4jContactRepository,
    Neo4jDealRepository,
    PipedriveGateway,
    WhatsAppNotifier,
    ensure_constraints,
)
from leadintake.infrastructure.config import (
    Neo4jSettings,
    PipedriveSettings,
    WhatsAppSettings,
    default_phone_region,
    storage_backend,
)
from leadintake.infrastructure.phone import normalize_phone

logging.basicConfig(
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    level=logging.INFO,
)
logger = logging.getLogger(__name__)


def _get_driver():
    settings = Neo4jSettings.from_env()
    return GraphDatabase.driver(settings.uri, auth=(settings.user, settings.password))


def _build_service(app: FastAPI) -> DealService:
    if storage_backend() == "memory":
        deals, contacts = InMemoryDealRepository(), InMemoryContactRepository()
    else:
        driver = _get_cached_driver(app)
        deals, contacts = Neo4jDealRepository(driver), Neo4jContactRepository(driver)
    app.state.crm = PipedriveGateway(PipedriveSettings.from_env())
    app.state.notifier = WhatsAppNotifier(WhatsAppSettings.from_env())
    return DealService(
        deals,
        contacts,
        crm=app.state.crm,
        notifier=app.state.notifier,
        normalize_phone=partial(normalize_phone, default_region=default_phone_region()),
    )


_service_lock = threading.Lock()


def get_service(app: FastAPI) -> DealService:
    if getattr(app.state, "service", None) is None:
        with _service_lock:
            if getattr(app.state, "service", None) is None:
                app.state.service = _build_service(app)
    return app.state.service


def _get_cached_driver(app: FastAPI):
    if getattr(app.state, "driver", None) is None:
        app.state.driver = _get_driver()
    return app.state.driver


@asynccontextmanager
async def lifespan(app: FastAPI):
    app.state.driver = None
    try:
        if getattr(app.state, "service", None) is None and storage_backend() != "memory":
            ensure_constraints(_get_cached_driver(app))
        yield
    finally:
        for name in ("crm", "notifier"):
            adapter = getattr(app.state, name, None)
            if adapter is not None:
                adapter.close()
        if getattr(app.state, "driver", None) is not None:
            app.state.driver.close()


app = FastAPI(title="Lead Intake API", lifespan=lifespan)


@app.exception_handler(PersistenceError)
async def persistence_error_handler(request: Request, exc: PersistenceError):
    logger.error("Storage failure on %s %s: %s", request.method, request.url.path, exc)
    return JSONResponse(status_code=500, content={"detail": "Storage unavailable"})


# --- REST: health ---


@app.get("/health")
def health():
    return {"status": "ok"}


# --- REST: deals ---


class CategoryBody(BaseModel):
    name: str
    event_date: date | None = None
    venue: str | None = None
    budget: Decimal | None = None
    expected_gathering: int | None = None


class CreateDealsBody(BaseModel):
    name: str
    contact_number: str
    categories: list[CategoryBody]


class InitDealBody(BaseModel):
    contact_number: str


class DealDetailsBody(BaseModel):
    name: str
    categories: list[CategoryBody]


class DealItem(BaseModel):
    id: str
    name: str
    contact_number: str
    category: str
    event_date: str | None = None
    venue: str | None = None
    budget: str | None = None
    value: str
    expected_gathering: int | None = None
    state: str
    remote_deal_id: str | None = None
    created_at: str
    updated_at: str


def _deal_item(d: Deal) -> DealItem:
    return DealItem(
        id=d.id,
        name=d.name,
        contact_number=d.phone_number,
        category=d.category,
        event_date=d.event_date.isoformat() if d.event_date else None,
        venue=d.venue,
        budget=str(d.budget) if d.budget is not None else None,
        value=str(d.value),
        expected_gathering=d.expected_gathering,
        state=d.state.value,
        remote_deal_id=d.remote_deal_id,
        created_at=d.created_at.isoformat(),
        updated_at=d.updated_at.isoformat(),
    )


def _categories(items: list[CategoryBody]) -> list[CategoryInput]:
    return [
        CategoryInput(
            name=c.name,
            event_date=c.event_date,
            venue=c.venue,
            budget=c.budget,
            expected_gathering=c.expected_gathering,
        )
        for c in items
    ]


def _deal_or_error(result) -> DealItem:
    if isinstance(result, Invalid):
        raise HTTPException(status_code=400, detail=result.reason)
    if isinstance(result, DealNotFound):
        raise HTTPException(status_code=404, detail=f"Deal not found: {result.deal_id}")
    if isinstance(result, AlreadyConfigured):
        raise HTTPException(
            status_code=409, detail=f"Deal {result.deal_id} is already configured"
        )
    return _deal_item(result)


@app.post("/api/deals")
def create_deals(body: CreateDealsBody, request: Request):
    service = get_service(request.app)
    result = service.create_deals(body.name, body.contact_number, _categories(body.categories))
    if isinstance(result, Invalid):
        raise HTTPException(status_code=400, detail=result.reason)
    return JSONResponse(
        content={
            "message": result.message,
            "deals": [_deal_item(d).model_dump() for d in result.deals],
        },
        status_code=201,
    )


@app.post("/api/deals/init")
def init_deal(body: InitDealBody, request: Request):
    service = get_service(request.app)
    result = service.initialize_deal(body.contact_number)
    if isinstance(result, Invalid):
        raise HTTPException(status_code=400, detail=result.reason)
    return JSONResponse(
        content={
            "deal_id": result.deal_id,
            "message": "Deal processed successfully with contact number: "
            + body.contact_number.strip(),
        },
        status_code=201,
    )


@app.put("/api/deals/{deal_id}/details")
def update_deal_details(deal_id: str, body: DealDetailsBody, request: Request):
    service = get_service(request.app)
    result = service.update_deal_without_contact_number(
        deal_id, body.name, _categories(body.categories)
    )
    return _deal_or_error(result)


@app.put("/api/deals/{deal_id}")
def update_deal(deal_id: str, body: CreateDealsBody, request: Request):
    service = get_service(request.app)
    result = service.update_deal(
        deal_id, body.name, body.contact_number, _categories(body.categories)
    )
    return _deal_or_error(result)


@app.get("/api/deals")
def list_deals(
    request: Request,
    name: str | None = None,
    contact_number: str | None = None,
    category: str | None = None,
):
    service = get_service(request.app)
    filters = DealFilter(name=name, phone_number=contact_number, category=category)
    return [_deal_item(d) for d in service.list_deals(filters)]


@app.get("/api/deals/user/{name}")
def list_deals_by_name(name: str, request: Request):
    service = get_service(request.app)
    return [_deal_item(d) for d in service.list_deals(DealFilter(name=name))]


@app.get("/api/deals/contact/{contact_number}")
def list_deals_by_contact(contact_number: str, request: Request):
    service = get_service(request.app)
    deals = service.list_deals(DealFilter(phone_number=contact_number))
    return [_deal_item(d) for d in deals]


@app.get("/api/deals/category/{category}")
def list_deals_by_category(category: str, request: Request):
    service = get_service(request.app)
    return [_deal_item(d) for d in service.list_deals(DealFilter(category=category))]


@app.get("/api/deals/{deal_id}")
def get_deal(deal_id: str, request: Request):
    service = get_service(request.app)
    deal = service.get_deal(deal_id)
    if deal is None:
        raise HTTPException(status_code=404, detail=f"Deal not found: {deal_id}")
    return _deal_item(deal)


@app.delete("/api/deals/user/{name}")
def delete_deals_by_name(name: str, request: Request):
    service = get_service(request.app)
    count = service.delete_deals_by_name(name)
    return {"deleted": count, "message": f"Deleted {count} deal(s) for user {name}"}


@app.delete("/api/deals/{deal_id}")
def delete_deal(deal_id: str, request: Request):
    service = get_service(request.app)
    if not service.delete_deal(deal_id):
        raise HTTPException(status_code=404, detail=f"Deal not found: {deal_id}")
    return {"message": f"Deal {deal_id} deleted successfully"}
