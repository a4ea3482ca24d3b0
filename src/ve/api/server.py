"""
Valuation HTTP API.

Valuation CRUD and calculation routes for the marketplace front end.
The caller's identity arrives in the optional X-User-Id header; sessions
and authentication are handled upstream.
"""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any, Optional

from fastapi import Body, FastAPI, Header, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from ve import __version__
from ve.config import Settings, get_settings
from ve.exceptions import (
    DomainError,
    MethodMismatchError,
    ValidationError,
    ValuationAccessError,
    ValuationNotFoundError,
)
from ve.logging import setup_logging
from ve.service import ValuationService
from ve.types import ValuationMethod
from ve.valuation.engine import calculate_dcf, calculate_multiples
from ve.workspace.store import ValuationStore

# ============== Types ==============


class CreateValuationRequest(BaseModel):
    method: str
    dcfData: Optional[dict[str, Any]] = None
    multiplesData: Optional[dict[str, Any]] = None
    notes: Optional[str] = None


class UpdateValuationRequest(BaseModel):
    dcfData: Optional[dict[str, Any]] = None
    multiplesData: Optional[dict[str, Any]] = None
    notes: Optional[str] = None
    status: Optional[str] = None


class CalculateDcfRequest(BaseModel):
    dcfData: Optional[dict[str, Any]] = None


class CalculateMultiplesRequest(BaseModel):
    multiplesData: Optional[dict[str, Any]] = None


def _method_inputs(
    method: str,
    dcf_data: Optional[dict[str, Any]],
    multiples_data: Optional[dict[str, Any]],
) -> Optional[dict[str, Any]]:
    """Pick the payload matching the method."""
    if method == ValuationMethod.DCF.value:
        return dcf_data
    if method == ValuationMethod.MULTIPLES.value:
        return multiples_data
    return None


# ============== App ==============


def create_app(settings: Settings | None = None) -> FastAPI:
    """Build the API app with its own store and service.

    Args:
        settings: Settings to use; loaded from the environment if None.
    """
    settings = settings or get_settings()
    setup_logging(settings.LOG_LEVEL, settings.LOG_FILE)

    store = ValuationStore(settings.DATABASE_PATH)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        yield
        store.close()

    app = FastAPI(title="Valuation API", version=__version__, lifespan=lifespan)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.state.settings = settings
    app.state.service = ValuationService(
        store, default_projection_years=settings.DEFAULT_PROJECTION_YEARS
    )

    _register_error_handlers(app)
    _register_routes(app)
    return app


def _register_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(MethodMismatchError)
    async def method_mismatch(request: Request, exc: MethodMismatchError) -> JSONResponse:
        return JSONResponse(
            status_code=400,
            content={"message": exc.message, "context": exc.context},
        )

    @app.exception_handler(ValidationError)
    async def validation_failed(request: Request, exc: ValidationError) -> JSONResponse:
        return JSONResponse(
            status_code=422,
            content={
                "message": exc.message,
                "violations": [v.to_dict() for v in exc.violations],
            },
        )

    @app.exception_handler(DomainError)
    async def undefined_valuation(request: Request, exc: DomainError) -> JSONResponse:
        return JSONResponse(
            status_code=422,
            content={"message": exc.message, "context": exc.context},
        )

    @app.exception_handler(ValuationNotFoundError)
    async def not_found(request: Request, exc: ValuationNotFoundError) -> JSONResponse:
        return JSONResponse(status_code=404, content={"message": exc.message})

    @app.exception_handler(ValuationAccessError)
    async def forbidden(request: Request, exc: ValuationAccessError) -> JSONResponse:
        return JSONResponse(status_code=403, content={"message": exc.message})


def _register_routes(app: FastAPI) -> None:
    def service(request: Request) -> ValuationService:
        return request.app.state.service

    @app.get("/health")
    def health() -> dict[str, str]:
        return {"status": "ok", "version": __version__}

    # ---- Stateless calculation ----

    @app.post("/calculate/dcf")
    def calculate_dcf_route(request: Request, body: dict[str, Any] = Body(...)) -> dict[str, Any]:
        """Run a DCF without storing it."""
        years = request.app.state.settings.DEFAULT_PROJECTION_YEARS
        return calculate_dcf(body, default_projection_years=years).to_dict()

    @app.post("/calculate/multiples")
    def calculate_multiples_route(body: dict[str, Any] = Body(...)) -> dict[str, Any]:
        """Run a multiples valuation without storing it."""
        return calculate_multiples(body).to_dict()

    # ---- Company valuations ----

    @app.get("/companies/{company_id}/valuations")
    def list_valuations(company_id: int, request: Request) -> list[dict[str, Any]]:
        """List a company's valuations, newest first."""
        return [r.to_dict() for r in service(request).list_company_valuations(company_id)]

    @app.get("/companies/{company_id}/valuations/latest")
    def latest_valuation(company_id: int, request: Request) -> Optional[dict[str, Any]]:
        """Get the company's latest valuation, or null."""
        record = service(request).get_latest_company_valuation(company_id)
        return record.to_dict() if record else None

    @app.post("/companies/{company_id}/valuations", status_code=201)
    def create_valuation(
        company_id: int,
        payload: CreateValuationRequest,
        request: Request,
        x_user_id: Optional[int] = Header(default=None),
    ) -> dict[str, Any]:
        """Create a draft valuation."""
        inputs = _method_inputs(payload.method, payload.dcfData, payload.multiplesData)
        record = service(request).create_valuation(
            company_id,
            payload.method,
            inputs or {},
            notes=payload.notes,
            user_id=x_user_id,
        )
        return record.to_dict()

    # ---- Single valuation ----

    @app.get("/valuations/{valuation_id}")
    def get_valuation(valuation_id: str, request: Request) -> dict[str, Any]:
        """Get a valuation."""
        return service(request).get_valuation(valuation_id).to_dict()

    @app.put("/valuations/{valuation_id}")
    def update_valuation(
        valuation_id: str,
        payload: UpdateValuationRequest,
        request: Request,
        x_user_id: Optional[int] = Header(default=None),
    ) -> dict[str, Any]:
        """Edit a valuation's inputs, notes or status."""
        svc = service(request)
        record = svc.get_valuation(valuation_id)
        inputs = _method_inputs(record.method.value, payload.dcfData, payload.multiplesData)
        updated = svc.update_valuation(
            valuation_id,
            user_id=x_user_id,
            inputs=inputs,
            notes=payload.notes,
            status=payload.status,
        )
        return updated.to_dict()

    @app.post("/valuations/{valuation_id}/calculate/dcf")
    def calculate_stored_dcf(
        valuation_id: str,
        request: Request,
        payload: Optional[CalculateDcfRequest] = None,
        x_user_id: Optional[int] = Header(default=None),
    ) -> dict[str, Any]:
        """Run a stored DCF valuation and mark it completed."""
        result = service(request).calculate(
            valuation_id,
            user_id=x_user_id,
            inputs=payload.dcfData if payload else None,
            method=ValuationMethod.DCF,
        )
        return result.to_dict()

    @app.post("/valuations/{valuation_id}/calculate/multiples")
    def calculate_stored_multiples(
        valuation_id: str,
        request: Request,
        payload: Optional[CalculateMultiplesRequest] = None,
        x_user_id: Optional[int] = Header(default=None),
    ) -> dict[str, Any]:
        """Run a stored multiples valuation and mark it completed."""
        result = service(request).calculate(
            valuation_id,
            user_id=x_user_id,
            inputs=payload.multiplesData if payload else None,
            method=ValuationMethod.MULTIPLES,
        )
        return result.to_dict()

    @app.delete("/valuations/{valuation_id}", status_code=204)
    def delete_valuation(
        valuation_id: str,
        request: Request,
        x_user_id: Optional[int] = Header(default=None),
    ) -> Response:
        """Delete a valuation."""
        service(request).delete_valuation(valuation_id, user_id=x_user_id)
        return Response(status_code=204)


# ============== Main ==============

if __name__ == "__main__":
    import uvicorn

    uvicorn.run(create_app(), host="0.0.0.0", port=8000, log_level="info")
