# backend-server/app/main.py
import logging

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from app.api.v1.api import api_router
from app.api.v1.endpoints import auth
from app.core.config import settings
from app.core.errors import InvalidTransition, LifecycleError, PermissionDenied, ValidationError
from app.db.models import Base
from app.db.session import engine

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)

Base.metadata.create_all(bind=engine)

app = FastAPI(title="Berichtsheft API")

# Lifecycle rule violations surface as client errors
ERROR_STATUS = {
    PermissionDenied: status.HTTP_403_FORBIDDEN,
    InvalidTransition: status.HTTP_409_CONFLICT,
    ValidationError: status.HTTP_422_UNPROCESSABLE_ENTITY,
}

@app.exception_handler(LifecycleError)
async def lifecycle_error_handler(request: Request, exc: LifecycleError):
    code = ERROR_STATUS.get(type(exc), status.HTTP_400_BAD_REQUEST)
    return JSONResponse(status_code=code, content={"detail": str(exc)})

# Include the main router for all routes prefixed with /api/v1
app.include_router(api_router, prefix="/api/v1")

# Include the auth router separately for the /auth prefix
app.include_router(auth.router, prefix="/auth")

@app.get("/")
def read_root():
    return {"message": "Welcome to the Berichtsheft API"}
