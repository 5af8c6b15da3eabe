"""
BizFlow Pro - API Backend
Multi-tenant ERP/CRM: inventory, orders, contacts, pipelines, automation

Start with:
    uvicorn server:app --host 0.0.0.0 --port 8001 --reload
"""

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pymongo.errors import DuplicateKeyError
import logging

from config import client, db, CORS_ORIGINS
from services.errors import NotFoundError, ConflictError

# Logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger("bizflow")

app = FastAPI(
    title="BizFlow Pro",
    description="Multi-tenant ERP / CRM API",
    version="1.0.0"
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ==================== ERROR MAPPING ====================

@app.exception_handler(NotFoundError)
async def not_found_handler(request: Request, exc: NotFoundError):
    return JSONResponse(status_code=404, content={"detail": str(exc)})


@app.exception_handler(ConflictError)
async def conflict_handler(request: Request, exc: ConflictError):
    return JSONResponse(status_code=409, content={"detail": str(exc)})


@app.exception_handler(DuplicateKeyError)
async def duplicate_key_handler(request: Request, exc: DuplicateKeyError):
    return JSONResponse(status_code=409, content={"detail": "Duplicate record"})


@app.exception_handler(ValueError)
async def value_error_handler(request: Request, exc: ValueError):
    return JSONResponse(status_code=400, content={"detail": str(exc)})


# ==================== ROUTES ====================

from routes import (
    auth, orders, products, contacts, webhooks, payments,
    pipelines, workflows, tasks, dashboard, settings, event_log,
    purchasing, jobs, forms, conversations,
)

app.include_router(auth.router, prefix="/api")
app.include_router(orders.router, prefix="/api")
app.include_router(products.router, prefix="/api")
app.include_router(contacts.router, prefix="/api")
app.include_router(payments.router, prefix="/api")
app.include_router(webhooks.router, prefix="/api")
app.include_router(pipelines.router, prefix="/api")
app.include_router(workflows.router, prefix="/api")
app.include_router(tasks.router, prefix="/api")
app.include_router(dashboard.router, prefix="/api")
app.include_router(settings.router, prefix="/api")
app.include_router(event_log.router, prefix="/api")
app.include_router(purchasing.router, prefix="/api")
app.include_router(jobs.router, prefix="/api")
app.include_router(forms.router, prefix="/api")
app.include_router(conversations.router, prefix="/api")


@app.get("/")
async def root():
    return {
        "name": "BizFlow Pro API",
        "version": "1.0.0",
        "status": "running",
        "docs": "/docs"
    }


# ==================== STARTUP / SHUTDOWN ====================

async def create_indexes(database=None):
    database = database if database is not None else db

    await database.users.create_index("email", unique=True)
    await database.sessions.create_index("token")
    await database.sessions.create_index("expires_at")

    await database.products.create_index([("tenant_id", 1), ("id", 1)], unique=True)
    await database.contacts.create_index([("tenant_id", 1), ("email", 1)], unique=True)
    await database.orders.create_index([("tenant_id", 1), ("created_at", -1)])
    await database.orders.create_index(
        [("tenant_id", 1), ("idempotency_key", 1)],
        unique=True,
        partialFilterExpression={"idempotency_key": {"$type": "string"}}
    )
    await database.webhooks.create_index([("tenant_id", 1), ("is_active", 1)])
    await database.opportunities.create_index([("tenant_id", 1), ("pipeline_id", 1)])
    await database.stage_fields.create_index([("tenant_id", 1), ("stage_id", 1)])
    await database.opportunity_field_values.create_index(
        [("opportunity_id", 1), ("field_id", 1)], unique=True
    )
    await database.workflows.create_index([("tenant_id", 1), ("trigger.type", 1)])
    await database.tasks.create_index([("tenant_id", 1), ("assigned_to_id", 1), ("due_date", 1)])
    await database.pipelines.create_index(
        "public_form_slug",
        unique=True,
        partialFilterExpression={"public_form_slug": {"$type": "string"}}
    )
    await database.purchase_orders.create_index([("tenant_id", 1), ("number", 1)], unique=True)
    await database.containers.create_index([("tenant_id", 1), ("status", 1)])
    await database.job_stages.create_index([("tenant_id", 1), ("job_id", 1), ("order", 1)])
    await database.conversations.create_index(
        [("tenant_id", 1), ("contact_id", 1), ("channel", 1)], unique=True
    )
    await database.messages.create_index([("conversation_id", 1), ("created_at", 1)])
    await database.event_log.create_index([("tenant_id", 1), ("created_at", -1)])


@app.on_event("startup")
async def startup():
    await create_indexes()
    logger.info("BizFlow Pro started, MongoDB indexes ready")


@app.on_event("shutdown")
async def shutdown():
    from services.webhooks import dispatcher
    if dispatcher.pending:
        logger.info(f"Waiting for {dispatcher.pending} webhook deliveries")
    await dispatcher.drain()
    client.close()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8001)
