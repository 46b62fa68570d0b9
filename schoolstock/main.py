from prometheus_fastapi_instrumentator import Instrumentator

from schoolstock.core.config import settings
from schoolstock.core.logging import configure_logging
from . import app as ledger_app

configure_logging()
app = ledger_app
instrumentator = Instrumentator()


@app.get("/health")
async def health() -> dict[str, bool]:
    return {"ok": True}


@app.on_event("startup")
async def _metrics() -> None:
    instrumentator.instrument(app).expose(app)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("schoolstock.main:app", host=settings.HOST, port=settings.PORT)
