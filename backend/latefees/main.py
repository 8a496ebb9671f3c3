"""
Late Fee Charges API
====================
Computes monthly late fees for delinquent tenants and submits them as
charges to the property-management system.

Data Sources:
- Reporting API (V2): aged receivables detail, tenant directory
- Transactional API (V0): tenants, bulk charge creation

Environments:
- live: production credentials (default)
- test: sandbox credentials, selected with the X-Env-Mode: test header
"""
import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from latefees.api.routes import router
from latefees.api.scheduler import router as scheduler_router
from latefees.config import get_settings

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

settings = get_settings()

allowed_origins = [
    "http://localhost:5172",
    "http://localhost:3000",
    "http://127.0.0.1:5172",
]
if settings.frontend_url:
    allowed_origins.append(settings.frontend_url)

app = FastAPI(
    title="Late Fee Charges API",
    description="""
    Late fee calculation and submission.

    ## Flow
    - **Load**: aged receivables + tenant directories from both APIs
    - **Reconcile**: map each delinquent tenant to its transactional occupancy id
    - **Price**: jurisdiction late-fee rule on the 0-30 day balance
    - **Submit**: one bulk charge request, manually or from the scheduler

    ## Environments
    Send `X-Env-Mode: test` to use the test credential set.
    """,
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc"
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=allowed_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "DELETE"],
    allow_headers=["*"],
)

app.include_router(router, prefix="/api", tags=["Charges"])
app.include_router(scheduler_router, prefix="/api", tags=["Scheduler"])


@app.get("/")
async def root():
    """Root endpoint with API info."""
    return {
        "name": "Late Fee Charges API",
        "version": "1.0.0",
        "docs": "/docs",
        "status": "running",
    }
