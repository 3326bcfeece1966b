from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.core import config
from app.core.database import db, create_indexes
from app.core.errors import register_error_handlers
from app.core.logging_config import setup_logging
from app.users.user_router import router as user_router
from app.courses.course_router import router as course_router
from app.progress.progress_router import router as progress_router
from app.payments.stripe_router import router as stripe_router
from app.payments.razorpay_router import router as razorpay_router
from app.system.health_router import router as health_router

API_PREFIX = "/api/v1"

setup_logging(config.LOG_LEVEL)

app = FastAPI(title="LMS Backend", version=config.VERSION)


@app.on_event("startup")
async def startup_event():
    await create_indexes(db)


app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_error_handlers(app)

# ==================== ROUTER REGISTRATION ====================
app.include_router(user_router, prefix=API_PREFIX)
app.include_router(course_router, prefix=API_PREFIX)
app.include_router(progress_router, prefix=API_PREFIX)
app.include_router(stripe_router, prefix=API_PREFIX)
app.include_router(razorpay_router, prefix=API_PREFIX)
app.include_router(health_router, prefix=API_PREFIX)
# ============================================================


@app.get("/")
async def root():
    return {"status": "success", "message": "LMS Backend running"}
