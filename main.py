# main.py
import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from auth.routes import router as auth_router
from properties.routes import router as properties_router
from payment.routes import router as payment_router
from support.routes import router as support_router
from viewing.routes import router as viewing_router
from admin.routes import router as admin_router
from config import settings
from database import Base, engine
from scheduler.tasks import start_scheduler, shutdown_scheduler

logging.basicConfig(level=logging.INFO)

app = FastAPI(
    title="Rental Marketplace Backend",
    description="Property listings, credit purchases and contact unlocks",
    version="0.1.0",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(auth_router)
app.include_router(properties_router)
app.include_router(payment_router)
app.include_router(support_router)
app.include_router(viewing_router)
app.include_router(admin_router)

@app.on_event("startup")
def startup_event():
    """Create missing tables and start background jobs."""
    Base.metadata.create_all(bind=engine)
    if settings.ENABLE_SCHEDULER:
        start_scheduler()

@app.on_event("shutdown")
def shutdown_event():
    shutdown_scheduler()

@app.get("/")
async def root():
    """Root endpoint."""
    return {"message": "Welcome to Rental Marketplace Backend!"}

@app.get("/health")
async def health():
    return {"status": "ok", "environment": settings.ENVIRONMENT}
