import logging
import sqlite3
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware

from config import Settings, get_settings
from db_models import AddContactRequest, FinalResponse, IdentifyRequest, LinkPrecedence
from db_setup import ContactStore
from errors import register_exception_handlers
from identity_service import IdentityResolver

logger = logging.getLogger(__name__)


def configure_logging(settings: Settings):
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


def get_store(request: Request) -> ContactStore:
    return request.app.state.store


def get_resolver(store: ContactStore = Depends(get_store)) -> IdentityResolver:
    return IdentityResolver(store)


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    settings = settings or get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        configure_logging(settings)
        store = ContactStore(settings.db_name).open()
        app.state.store = store
        try:
            yield
        finally:
            store.close()

    app = FastAPI(
        title=settings.app_title,
        version=settings.app_version,
        lifespan=lifespan,
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    register_exception_handlers(app)

    @app.get("/")
    async def root():
        return {"message": "Bitespeed API is up"}

    @app.get("/health")
    async def health():
        return {"status": "ok"}

    @app.post("/identify", response_model=FinalResponse)
    def identify(request: IdentifyRequest, resolver: IdentityResolver = Depends(get_resolver)):
        email = request.email
        phone = request.phoneNumber

        if not email and not phone:
            raise HTTPException(status_code=400, detail="Either email or phoneNumber must be provided")

        return FinalResponse(contact=resolver.resolve(email, phone))

    @app.post("/add-contact")
    def add_contact(request: AddContactRequest, store: ContactStore = Depends(get_store)):
        """Insert a raw contact row, for seeding and support work."""
        if request.linkPrecedence == LinkPrecedence.SECONDARY and request.linkedId is None:
            raise HTTPException(status_code=400, detail="A secondary contact needs a linkedId")
        if request.linkPrecedence == LinkPrecedence.PRIMARY and request.linkedId is not None:
            raise HTTPException(status_code=400, detail="A primary contact cannot have a linkedId")

        try:
            with store.transaction():
                if request.linkedId is not None:
                    linked = store.get(request.linkedId)
                    if linked is None or not linked.is_primary or linked.deletedAt:
                        raise HTTPException(status_code=400, detail="linkedId must point at an existing primary contact")
                contact = store.insert(
                    email=request.email,
                    phone_number=request.phoneNumber,
                    linked_id=request.linkedId,
                    link_precedence=request.linkPrecedence,
                    contact_id=request.id,
                )
        except sqlite3.IntegrityError as e:
            raise HTTPException(status_code=400, detail=f"Contact rejected: {e}")
        return {"message": "Contact added successfully", "contact_id": contact.id}

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    settings = get_settings()
    uvicorn.run(app, host=settings.host, port=settings.port)
