import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from fee_engine.api.v1.emi_templates.router import router as emi_templates_router
from fee_engine.api.v1.fee_components.router import router as fee_components_router
from fee_engine.api.v1.fees.router import router as fees_router
from fee_engine.api.v1.installments.router import router as installments_router
from fee_engine.api.v1.payment_links.router import public_router as public_payment_links_router
from fee_engine.api.v1.payment_links.router import router as payment_links_router
from fee_engine.api.v1.receipts.router import router as receipts_router
from fee_engine.api.v1.scholarships.router import router as scholarships_router
from fee_engine.core.config import settings


def create_app() -> FastAPI:
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    app = FastAPI(title="Fee Engine")

    # CORS: allow frontend to call this API
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Routers
    app.include_router(fee_components_router)
    app.include_router(scholarships_router)
    app.include_router(emi_templates_router)
    app.include_router(receipts_router)
    app.include_router(fees_router)
    app.include_router(installments_router)
    app.include_router(payment_links_router)
    app.include_router(public_payment_links_router)

    return app


app = create_app()
