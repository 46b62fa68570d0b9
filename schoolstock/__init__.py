"""Application wiring for the school supply ledger.

Brings together configuration, the database, routers and error handling.
Importing the package builds the FastAPI ``app``; ``schoolstock.main`` adds
logging, health and metrics on top for the served process.
"""

from __future__ import annotations

from fastapi import FastAPI

from .core.config import settings
from .core.errors import install_error_handlers
from .db.migrate import run_migrations
from .db.session import Base, engine
from .middlewares import RequestIdMiddleware

# Importing the models registers them with the metadata before create_all.
from .models import item as _item  # noqa: F401
from .models import distribution as _distribution  # noqa: F401
from .models import ledger as _ledger  # noqa: F401
from .models import entitlement as _entitlement  # noqa: F401
from .models import collection as _collection  # noqa: F401

app = FastAPI(title=settings.APP_NAME)
app.add_middleware(RequestIdMiddleware)
install_error_handlers(app)

# ---------- DB init/migrations ----------
Base.metadata.create_all(bind=engine)
run_migrations(engine)

# ---------- Routers ----------
from .routers import api_auth as api_auth_router  # noqa: E402
from .routers import api_items as api_items_router  # noqa: E402
from .routers import api_ledger as api_ledger_router  # noqa: E402
from .routers import api_distributions as api_distributions_router  # noqa: E402
from .routers import api_summary as api_summary_router  # noqa: E402
from .routers import api_entitlements as api_entitlements_router  # noqa: E402
from .routers import api_collections as api_collections_router  # noqa: E402

app.include_router(api_auth_router.router)
app.include_router(api_items_router.router)
app.include_router(api_ledger_router.router)
app.include_router(api_distributions_router.router)
app.include_router(api_summary_router.router)
app.include_router(api_entitlements_router.router)
app.include_router(api_collections_router.router)


__all__ = ["app"]
