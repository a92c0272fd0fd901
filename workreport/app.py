import logging
import os

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from workreport.infrastructure import (
    HttpLedgerClient,
    HttpMasterDataProvider,
    StaticMasterDataProvider,
    WorkbookLedger,
    configure_ledger,
    configure_master_data_provider,
)
from workreport.routes import reviews


def _split_env(name: str) -> list[str]:
    return [item.strip() for item in os.getenv(name, "").split(",") if item.strip()]


def create_app() -> FastAPI:
    app = FastAPI(title="Work Report Review API", version="0.1.0")

    logging.basicConfig(
        level=os.getenv("LOG_LEVEL", "INFO").upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    ledger_base = os.getenv("LEDGER_API_BASE")
    if ledger_base:
        configure_ledger(HttpLedgerClient(ledger_base, token=os.getenv("LEDGER_API_TOKEN")))
    else:
        configure_ledger(WorkbookLedger())

    master_data_url = os.getenv("MASTER_DATA_URL")
    if master_data_url:
        configure_master_data_provider(HttpMasterDataProvider(master_data_url, token=os.getenv("MASTER_DATA_TOKEN")))
    else:
        configure_master_data_provider(
            StaticMasterDataProvider(
                products=_split_env("MASTER_DATA_PRODUCTS"),
                employees=_split_env("MASTER_DATA_EMPLOYEES"),
            )
        )

    origins = _split_env("API_CORS_ORIGINS")
    if not origins:
        origins = ["http://localhost:3000", "http://127.0.0.1:3000"]

    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(reviews.router, prefix="/api")

    @app.get("/", include_in_schema=False)
    async def root() -> JSONResponse:
        """Provide a lightweight landing page for container checks."""
        return JSONResponse(
            {
                "message": "Work Report Review API",
                "docs": "/docs",
                "health": "/api/reviews",
            }
        )

    return app


app = create_app()
