"""
Microfund API Application Factory
"""

from fastapi import FastAPI
import uvicorn
from fastapi.middleware.cors import CORSMiddleware

from .. import __version__
from .auth import router as auth_router
from .funds import router as funds_router
from .banking import router as banking_router
from .clients import router as clients_router
from .loans import router as loans_router
from .savings import router as savings_router
from .transactions import router as transactions_router
from .admin import router as admin_router


def create_app() -> FastAPI:
    """Create and configure the FastAPI application"""
    app = FastAPI(
        title="Microfund API",
        description="Branch-scoped microfinance bookkeeping with log-derived fund positions",
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc"
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Include routers
    app.include_router(auth_router, prefix="/auth", tags=["Auth"])
    app.include_router(funds_router, tags=["Funds"])
    app.include_router(banking_router, prefix="/banking", tags=["Banking"])
    app.include_router(clients_router, prefix="/clients", tags=["Clients"])
    app.include_router(loans_router, prefix="/loans", tags=["Loans"])
    app.include_router(savings_router, prefix="/savings", tags=["Savings"])
    app.include_router(transactions_router, prefix="/transactions", tags=["Transactions"])
    app.include_router(admin_router, prefix="/admin", tags=["Admin"])

    # Health check endpoint
    @app.get("/health")
    async def health_check():
        """Health check endpoint"""
        return {
            "status": "healthy",
            "service": "microfund_api",
            "version": __version__
        }

    # Root endpoint
    @app.get("/")
    async def get_api_info():
        """Get API information"""
        return {
            "name": "Microfund API",
            "version": __version__,
            "description": "Branch-scoped microfinance bookkeeping",
            "endpoints": {
                "docs": "/docs",
                "health": "/health",
                "auth": "/auth",
                "funds": "/funds",
                "records": "/records",
                "banking": "/banking",
                "clients": "/clients",
                "loans": "/loans",
                "savings": "/savings",
                "transactions": "/transactions",
                "admin": "/admin",
            }
        }

    return app


app = create_app()


def run_server(host: str = "0.0.0.0", port: int = 8090, debug: bool = False, log_level: str = "info"):
    """Run the FastAPI server"""
    uvicorn.run(
        "microfund.api:app",
        host=host,
        port=port,
        reload=debug,
        log_level=log_level.lower()
    )
