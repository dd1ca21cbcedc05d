from __future__ import annotations

import logging
import os
import threading
import uuid
from dataclasses import dataclass
from datetime import date
from pathlib import Path
from typing import Any, Dict

import uvicorn
from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from quick_quote.catalog import DEFAULT_CATALOG, Catalog
from quick_quote.catalog_repository import load_catalog
from quick_quote.editor import QuoteEditor
from quick_quote.errors import QuoteNotFoundError, QuotePersistenceError, QuoteValidationError
from quick_quote.firestore_storage import FirestoreStorage
from quick_quote.logging_config import set_request_id, setup_logging
from quick_quote.models.quote import QuoteSummary
from quick_quote.notifier import CollectingNotifier
from quick_quote.quote_list import QuoteList
from quick_quote.quote_store import QuoteStore
from quick_quote.storage import FileStorage, KeyValueStorage
from quick_quote.wizard import GuidedEntry


class Notification(BaseModel):
    level: str
    message: str


class CreateSessionRequest(BaseModel):
    estimate_id: str | None = Field(default=None, description="Open this saved quote instead of starting a new one")


class SelectCustomerRequest(BaseModel):
    customer_name: str


class UpdateQuoteRequest(BaseModel):
    estimate_name: str | None = None
    customer_contact: str | None = None
    payment_terms: str | None = None
    start_date: date | None = None
    end_date: date | None = None
    consumption_performance: float | None = None
    envelopes_purchased: int | None = None


class LineItemRequest(BaseModel):
    name: str
    quantity: int = 1
    list_price: float | None = None
    discount_percent: float = 0
    start_date: date | None = None
    end_date: date | None = None


class UpdateLineItemRequest(BaseModel):
    field: str
    value: Any = None


class WizardProductRequest(BaseModel):
    name: str


class WizardInputRequest(BaseModel):
    text: str


class SessionResponse(BaseModel):
    session_id: str
    is_existing: bool
    quote: Dict[str, Any]
    total_current_assets: float
    total_products: float
    gross_new_value: float
    wizard_step: str | None = None
    notifications: list[Notification] = Field(default_factory=list)


class WizardResponse(BaseModel):
    accepted: bool
    step: str
    message: str
    options: list[str] = Field(default_factory=list)
    session: SessionResponse


class QuoteListResponse(BaseModel):
    quotes: list[QuoteSummary]
    notifications: list[Notification] = Field(default_factory=list)


class SaveResponse(BaseModel):
    quote: Dict[str, Any]
    notifications: list[Notification] = Field(default_factory=list)


@dataclass
class EditorSession:
    id: str
    editor: QuoteEditor
    notifier: CollectingNotifier
    wizard: GuidedEntry | None = None

    def notifications(self) -> list[Notification]:
        return [Notification(level=level, message=message) for level, message in self.notifier.drain()]

    def to_response(self) -> SessionResponse:
        quote = self.editor.quote
        return SessionResponse(
            session_id=self.id,
            is_existing=self.editor.is_existing,
            quote=quote.to_document(),
            total_current_assets=quote.total_current_assets(),
            total_products=quote.total_products(),
            gross_new_value=quote.gross_new_value,
            wizard_step=self.wizard.step.value if self.wizard else None,
            notifications=self.notifications(),
        )


class SessionRegistry:
    def __init__(self) -> None:
        self._sessions: Dict[str, EditorSession] = {}
        self._lock = threading.Lock()

    def add(self, editor: QuoteEditor, notifier: CollectingNotifier) -> EditorSession:
        with self._lock:
            session = EditorSession(id=f"qs_{uuid.uuid4().hex[:12]}", editor=editor, notifier=notifier)
            self._sessions[session.id] = session
            return session

    def get(self, session_id: str) -> EditorSession:
        with self._lock:
            session = self._sessions.get(session_id)
        if session is None:
            raise HTTPException(status_code=404, detail="Session not found")
        return session

    def find(self, session_id: str) -> EditorSession | None:
        with self._lock:
            return self._sessions.get(session_id)

    def remove(self, session_id: str) -> EditorSession | None:
        with self._lock:
            return self._sessions.pop(session_id, None)


# Environment configuration
ENVIRONMENT = os.getenv("ENVIRONMENT", "dev")
PROJECT_ID = os.getenv("PROJECT_ID")
QUOTE_STORAGE_PATH = os.getenv("QUOTE_STORAGE_PATH", "data/storage.json")
QUOTE_STORAGE_KEY = os.getenv("QUOTE_STORAGE_KEY", QuoteStore.DEFAULT_KEY)
CATALOG_PATH = os.getenv("CATALOG_PATH")
PORT = int(os.getenv("PORT", "8080"))
WIZARD_RESET_DELAY = float(os.getenv("WIZARD_RESET_DELAY", str(GuidedEntry.DEFAULT_RESET_DELAY)))

# Setup logging
setup_logging(environment=ENVIRONMENT, project_id=PROJECT_ID)
logger = logging.getLogger(__name__)


def _build_storage() -> KeyValueStorage:
    # Local file in dev, Firestore elsewhere
    if ENVIRONMENT == "dev":
        return FileStorage(Path(QUOTE_STORAGE_PATH).resolve())
    return FirestoreStorage(project_id=PROJECT_ID)


def _build_catalog() -> Catalog:
    if CATALOG_PATH:
        return load_catalog(Path(CATALOG_PATH))
    return DEFAULT_CATALOG


def create_app(
    *,
    store: QuoteStore | None = None,
    catalog: Catalog | None = None,
    wizard_reset_delay: float = WIZARD_RESET_DELAY,
) -> FastAPI:
    store = store or QuoteStore(_build_storage(), key=QUOTE_STORAGE_KEY)
    catalog = catalog or _build_catalog()
    list_notifier = CollectingNotifier()
    quote_list = QuoteList(store, catalog, notifier=list_notifier)
    sessions = SessionRegistry()

    app = FastAPI(title="Quick Quote API", version="0.1.0")
    app.state.quote_list = quote_list
    app.state.sessions = sessions

    def list_notifications() -> list[Notification]:
        return [Notification(level=level, message=message) for level, message in list_notifier.drain()]

    def open_session(editor_factory) -> EditorSession:
        # Editor alerts go to the session, not the shared list notifier.
        notifier = CollectingNotifier()
        return sessions.add(editor_factory(notifier), notifier)

    def wizard_for(session: EditorSession) -> GuidedEntry:
        if session.wizard is None:
            session.wizard = session.editor.guided_entry(reset_delay=wizard_reset_delay)
        return session.wizard

    @app.middleware("http")
    async def tag_request(request: Request, call_next):
        set_request_id(request.headers.get("x-request-id") or uuid.uuid4().hex)
        return await call_next(request)

    @app.exception_handler(QuoteValidationError)
    async def validation_error(request: Request, exc: QuoteValidationError) -> JSONResponse:
        session = sessions.find(request.path_params.get("session_id", ""))
        if session is not None:
            # The error is already carried by the response body.
            session.notifier.drain()
        return JSONResponse(status_code=422, content={"detail": exc.message, "field": exc.field})

    @app.exception_handler(QuoteNotFoundError)
    async def not_found(request: Request, exc: QuoteNotFoundError) -> JSONResponse:
        return JSONResponse(status_code=404, content={"detail": str(exc)})

    @app.exception_handler(QuotePersistenceError)
    async def persistence_error(request: Request, exc: QuotePersistenceError) -> JSONResponse:
        session = sessions.find(request.path_params.get("session_id", ""))
        if session is not None:
            session.notifier.drain()
        return JSONResponse(status_code=503, content={"detail": str(exc)})

    @app.get("/v1/quotes", response_model=QuoteListResponse)
    async def list_quotes() -> QuoteListResponse:
        summaries = quote_list.refresh()
        return QuoteListResponse(quotes=summaries, notifications=list_notifications())

    @app.get("/v1/quotes/{estimate_id}")
    async def get_quote(estimate_id: str) -> JSONResponse:
        quote = store.get(estimate_id)
        if quote is None:
            raise QuoteNotFoundError(estimate_id)
        return JSONResponse(quote.to_document())

    @app.delete("/v1/quotes/{estimate_id}", response_model=QuoteListResponse)
    async def delete_quote(estimate_id: str) -> QuoteListResponse:
        deleted = quote_list.delete(estimate_id)
        if not deleted:
            raise HTTPException(status_code=503, detail="There was an error deleting the quote. Please try again.")
        return QuoteListResponse(quotes=quote_list.summaries, notifications=list_notifications())

    @app.post("/v1/sessions", response_model=SessionResponse, status_code=201)
    async def create_session(request: CreateSessionRequest) -> SessionResponse:
        if request.estimate_id:
            session = open_session(lambda notifier: quote_list.open(request.estimate_id, notifier=notifier))
        else:
            session = open_session(lambda notifier: quote_list.create_new(notifier=notifier))
        logger.info(
            "Opened editor session",
            extra={"session_id": session.id, "estimate_id": session.editor.estimate_id},
        )
        return session.to_response()

    @app.get("/v1/sessions/{session_id}", response_model=SessionResponse)
    async def get_session(session_id: str) -> SessionResponse:
        return sessions.get(session_id).to_response()

    @app.delete("/v1/sessions/{session_id}", status_code=204)
    async def discard_session(session_id: str) -> None:
        session = sessions.remove(session_id)
        if session is None:
            raise HTTPException(status_code=404, detail="Session not found")
        session.editor.discard()
        logger.info("Discarded editor session", extra={"session_id": session_id})

    @app.put("/v1/sessions/{session_id}/customer", response_model=SessionResponse)
    async def select_customer(session_id: str, request: SelectCustomerRequest) -> SessionResponse:
        session = sessions.get(session_id)
        session.editor.select_customer(request.customer_name)
        return session.to_response()

    @app.patch("/v1/sessions/{session_id}", response_model=SessionResponse)
    async def update_quote(session_id: str, request: UpdateQuoteRequest) -> SessionResponse:
        session = sessions.get(session_id)
        session.editor.update_quote(request.model_dump(exclude_none=True))
        return session.to_response()

    @app.post("/v1/sessions/{session_id}/items/{section}", response_model=SessionResponse, status_code=201)
    async def add_line_item(session_id: str, section: str, request: LineItemRequest) -> SessionResponse:
        session = sessions.get(session_id)
        session.editor.add_line_item(section, request.model_dump(exclude_none=True))
        return session.to_response()

    @app.patch("/v1/sessions/{session_id}/items/{section}/{item_id}", response_model=SessionResponse)
    async def update_line_item(
        session_id: str, section: str, item_id: float, request: UpdateLineItemRequest
    ) -> SessionResponse:
        session = sessions.get(session_id)
        if session.editor.update_line_item(section, item_id, request.field, request.value) is None:
            raise HTTPException(status_code=404, detail="Line item not found")
        return session.to_response()

    @app.delete("/v1/sessions/{session_id}/items/{section}/{item_id}", response_model=SessionResponse)
    async def remove_line_item(session_id: str, section: str, item_id: float) -> SessionResponse:
        session = sessions.get(session_id)
        session.editor.remove_line_item(section, item_id)
        return session.to_response()

    @app.post("/v1/sessions/{session_id}/wizard/product", response_model=WizardResponse)
    async def wizard_product(session_id: str, request: WizardProductRequest) -> WizardResponse:
        session = sessions.get(session_id)
        reply = wizard_for(session).select_product(request.name)
        return WizardResponse(
            accepted=reply.accepted,
            step=reply.step.value,
            message=reply.message.text,
            options=list(reply.message.options),
            session=session.to_response(),
        )

    @app.post("/v1/sessions/{session_id}/wizard/input", response_model=WizardResponse)
    async def wizard_input(session_id: str, request: WizardInputRequest) -> WizardResponse:
        session = sessions.get(session_id)
        reply = wizard_for(session).submit(request.text)
        return WizardResponse(
            accepted=reply.accepted,
            step=reply.step.value,
            message=reply.message.text,
            options=list(reply.message.options),
            session=session.to_response(),
        )

    @app.post("/v1/sessions/{session_id}/save", response_model=SaveResponse)
    async def save_session(session_id: str) -> SaveResponse:
        session = sessions.get(session_id)
        stored = session.editor.save()
        sessions.remove(session_id)
        return SaveResponse(quote=stored.to_document(), notifications=session.notifications())

    @app.get("/v1/catalog")
    async def get_catalog() -> JSONResponse:
        return JSONResponse(
            {
                "customers": [
                    {"name": profile.name, "contact": profile.contact}
                    for profile in catalog.customers.values()
                ],
                "products": [
                    {"name": name, "list_price": price} for name, price in catalog.list_prices.items()
                ],
                "payment_terms": list(catalog.payment_terms),
                "contacts": list(catalog.contacts),
            }
        )

    @app.get("/health")
    async def healthcheck() -> JSONResponse:
        return JSONResponse({"status": "ok"})

    return app


app = create_app()


def main() -> None:
    uvicorn.run(app, host="0.0.0.0", port=PORT)


if __name__ == "__main__":
    main()
