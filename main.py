import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from config import LOG_LEVEL
from db import create_db_and_tables
from errors import (
    DonationNotFound,
    HouseholdNotFound,
    InfrastructureFailure,
    RejectionReason,
    ValidationRejection,
)
from routers import applications, auth, donations, households, requests

logging.basicConfig(
    level=LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logging.getLogger("sqlalchemy.pool").setLevel(logging.WARNING)
logger = logging.getLogger(__name__)

app = FastAPI(title="FoodShare")

REJECTION_STATUS = {
    RejectionReason.DUPLICATE_APPLICATION: 409,
    RejectionReason.SELF_CLAIM: 403,
    RejectionReason.NOT_AUTHORIZED: 403,
}


@app.on_event("startup")
def on_startup() -> None:
    create_db_and_tables()


@app.exception_handler(ValidationRejection)
async def validation_rejection_handler(request: Request, exc: ValidationRejection):
    return JSONResponse(
        status_code=REJECTION_STATUS.get(exc.reason, 400),
        content={"detail": exc.message, "reason": exc.reason.value},
    )


@app.exception_handler(InfrastructureFailure)
async def infrastructure_failure_handler(request: Request, exc: InfrastructureFailure):
    logger.error(
        "Infrastructure failure on %s %s: %r",
        request.method,
        request.url.path,
        exc,
    )
    return JSONResponse(
        status_code=503,
        content={"detail": exc.user_message, "reason": "infrastructure_failure"},
    )


@app.exception_handler(DonationNotFound)
async def donation_not_found_handler(request: Request, exc: DonationNotFound):
    return JSONResponse(status_code=404, content={"detail": "Donation not found"})


@app.exception_handler(HouseholdNotFound)
async def household_not_found_handler(request: Request, exc: HouseholdNotFound):
    return JSONResponse(status_code=404, content={"detail": "Household not found"})


@app.get("/")
def read_root():
    return {"service": "FoodShare", "status": "running"}


app.include_router(auth.router)
app.include_router(donations.router, prefix="/donations")
app.include_router(households.router, prefix="/households")
app.include_router(applications.router, prefix="/applications")
app.include_router(requests.router, prefix="/requests")
