"""
FastAPI front controller for the aggregation service.

Routes parse the query string, call the service and map its errors to HTTP
responses. No statistics or upstream logic lives here.
"""

import logging
from contextlib import asynccontextmanager
from typing import List, Optional

from fastapi import FastAPI, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from stockcorr.errors import StockCorrError, ValidationError
from stockcorr.service import AggregationService


logger = logging.getLogger(__name__)


def _error_response(status_code: int, error: str, details: Optional[str] = None) -> JSONResponse:
    body = {"error": error}
    if details is not None:
        body["details"] = details
    return JSONResponse(status_code=status_code, content=body)


def create_app(service: Optional[AggregationService] = None) -> FastAPI:
    """
    Build the HTTP app around an aggregation service.

    Args:
        service: Service to answer queries; built from environment settings
            if omitted

    Returns:
        Configured FastAPI application
    """
    owns_service = service is None
    service = service or AggregationService.from_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        yield
        # Injected services belong to the caller
        if owns_service:
            service.close()

    app = FastAPI(title="Stock Price Aggregator", lifespan=lifespan)

    # The dashboard is served from a different origin
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["GET"],
        allow_headers=["*"],
    )

    app.state.service = service

    @app.exception_handler(RequestValidationError)
    async def invalid_query(request: Request, exc: RequestValidationError):
        # Same 400 body as ValidationError raised by the service
        problems = []
        for error in exc.errors():
            field = ".".join(str(part) for part in error.get("loc", ()) if part != "query")
            problems.append(f"{field}: {error.get('msg', 'invalid value')}")
        return _error_response(400, "Invalid request: " + "; ".join(problems))

    # Sync handlers run in the threadpool; upstream calls are blocking
    @app.get("/stocks/{ticker}")
    def average_price(ticker: str, minutes: Optional[int] = None):
        """Average stock price in the last `minutes` minutes."""
        try:
            result = app.state.service.get_average_price(ticker, minutes)
        except ValidationError as e:
            return _error_response(400, str(e))
        except StockCorrError as e:
            logger.error("Average price request for %s failed: %s", ticker, e)
            return _error_response(500, "Failed to retrieve stock prices", str(e))
        return result.to_dict()

    @app.get("/stockcorrelation")
    def stock_correlation(
        ticker: Optional[List[str]] = Query(None),
        minutes: Optional[int] = None
    ):
        """Correlation between exactly two tickers (`?ticker=A&ticker=B`)."""
        try:
            report = app.state.service.get_correlation(ticker or [], minutes)
        except ValidationError as e:
            return _error_response(400, str(e))
        except StockCorrError as e:
            logger.error("Correlation request for %s failed: %s", ticker, e)
            return _error_response(500, "Failed to calculate stock correlation", str(e))
        return report.to_dict()

    @app.get("/health")
    def health():
        return {"status": "ok"}

    return app


if __name__ == "__main__":
    import uvicorn
    from stockcorr.config import Settings
    logging.basicConfig(level=logging.INFO)
    uvicorn.run(create_app(), host="0.0.0.0", port=Settings().port)
