from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI, Request
from sqlalchemy.orm import Session

from beestat.api.dashboard import router as dashboard_router
from beestat.api.oauth import router as oauth_router
from beestat.api.rpc import router as rpc_router
from beestat.api.sync import router as sync_router
from beestat.core.config import get_settings
from beestat.core.logging import configure_logging
from beestat.db.session import SessionLocal, check_db_connection, get_db
from beestat.services.addresses import AddressService
from beestat.services.ecobee import EcobeeService
from beestat.services.ecobee_client import EcobeeClient
from beestat.services.ecobee_sync import EcobeeSyncService
from beestat.services.mailchimp_client import MailchimpClient
from beestat.services.patreon import PatreonService
from beestat.services.patreon_client import PatreonClient
from beestat.services.smarty_streets_client import SmartyStreetsClient
from beestat.services.sync_scheduler import EcobeeSyncScheduler
from beestat.services.tokens import EcobeeTokenService, PatreonTokenService


@asynccontextmanager
async def lifespan(app: FastAPI):
    configure_logging()
    settings = get_settings()

    ecobee_client = EcobeeClient(
        base_url=settings.ecobee_base_url,
        client_id=settings.ecobee_client_id,
        redirect_uri=settings.ecobee_redirect_uri,
        timeout_seconds=settings.ecobee_http_timeout_seconds,
        session_factory=SessionLocal,
    )
    patreon_client = PatreonClient(
        base_url=settings.patreon_base_url,
        authorize_url=settings.patreon_authorize_url,
        client_id=settings.patreon_client_id,
        client_secret=settings.patreon_client_secret,
        redirect_uri=settings.patreon_redirect_uri,
        timeout_seconds=settings.patreon_http_timeout_seconds,
        session_factory=SessionLocal,
    )
    smarty_streets_client = SmartyStreetsClient(
        us_base_url=settings.smarty_streets_us_base_url,
        international_base_url=settings.smarty_streets_international_base_url,
        auth_id=settings.smarty_streets_auth_id,
        auth_token=settings.smarty_streets_auth_token,
        timeout_seconds=settings.smarty_streets_http_timeout_seconds,
        session_factory=SessionLocal,
    )
    mailchimp_client = MailchimpClient(
        api_key=settings.mailchimp_api_key,
        list_id=settings.mailchimp_list_id,
        timeout_seconds=settings.mailchimp_http_timeout_seconds,
        session_factory=SessionLocal,
    )

    ecobee_token_service = EcobeeTokenService(
        exchange=ecobee_client.exchange_token,
        redirect_uri=ecobee_client.redirect_uri,
        session_factory=SessionLocal,
        lock_timeout_seconds=settings.token_refresh_lock_timeout_seconds,
    )
    patreon_token_service = PatreonTokenService(
        exchange=patreon_client.exchange_token,
        redirect_uri=patreon_client.redirect_uri,
        session_factory=SessionLocal,
        lock_timeout_seconds=settings.token_refresh_lock_timeout_seconds,
    )

    ecobee_service = EcobeeService(
        client=ecobee_client,
        token_service=ecobee_token_service,
        mailchimp=mailchimp_client,
    )
    patreon_service = PatreonService(client=patreon_client, token_service=patreon_token_service)
    address_service = AddressService(smarty_streets=smarty_streets_client)
    ecobee_sync_service = EcobeeSyncService(
        ecobee=ecobee_service,
        addresses=address_service,
        lock_timeout_seconds=settings.sync_lock_timeout_seconds,
    )
    sync_scheduler = EcobeeSyncScheduler(
        settings=settings,
        session_factory=SessionLocal,
        sync_service=ecobee_sync_service,
    )

    app.state.settings = settings
    app.state.ecobee_service = ecobee_service
    app.state.patreon_service = patreon_service
    app.state.address_service = address_service
    app.state.ecobee_sync_service = ecobee_sync_service
    app.state.sync_scheduler = sync_scheduler

    sync_scheduler.start()
    try:
        yield
    finally:
        sync_scheduler.stop()


def include_routers(app: FastAPI) -> None:
    # Fixed /api routes first; the RPC router ends in a /api/{resource}/{method} catch-all.
    app.include_router(sync_router)
    app.include_router(oauth_router)
    app.include_router(dashboard_router)
    app.include_router(rpc_router)


app = FastAPI(title="beestat", lifespan=lifespan)
include_routers(app)


@app.get("/health")
def health():
    return {"status": "ok", "service": "beestat"}


@app.get("/status")
def status(request: Request, db: Session = Depends(get_db)):
    db_ok, db_error = check_db_connection(db)
    sync_scheduler: EcobeeSyncScheduler | None = getattr(request.app.state, "sync_scheduler", None)
    return {
        "status": "ok" if db_ok else "degraded",
        "database": {"ok": db_ok, "error": db_error},
        "sync": sync_scheduler.get_status_snapshot() if sync_scheduler is not None else None,
    }
