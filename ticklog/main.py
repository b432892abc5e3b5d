from fastapi import FastAPI
from .logging import setup_logging
from .api.routes import router as api_router

def create_app() -> FastAPI:
    setup_logging()
    app = FastAPI(title="ticklog", description="Signal tick log and period profit service")
    app.include_router(api_router)
    return app

app = create_app()
