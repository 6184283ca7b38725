from contextlib import asynccontextmanager

from fastapi import FastAPI, APIRouter
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import RedirectResponse
import structlog

from medcrm.config import settings
from medcrm.database import init_db
from medcrm.logging_config import configure_logging
from medcrm.routes.auth.router import router as auth_router
from medcrm.routes.appointments.router import router as appointments_router
from medcrm.routes.users.router import router as users_router
from medcrm.routes.patients.router import router as patients_router
from medcrm.routes.doctors.router import router as doctors_router
from medcrm.routes.staff.router import router as staff_router
from medcrm.routes.departments.router import router as departments_router
from medcrm.routes.medical_records.router import router as medical_records_router
from medcrm.routes.medications.router import router as medications_router
from medcrm.routes.lab_results.router import router as lab_results_router
from medcrm.routes.feedback.router import router as feedback_router
from medcrm.routes.messages.router import router as messages_router
from medcrm.routes.reports.router import router as reports_router
from medcrm.routes.assignments.router import router as assignments_router
from medcrm.routes.profile.router import router as profile_router
from medcrm.routes.doctor_dashboard.router import router as doctor_dashboard_router
from medcrm.routes.beds.router import router as beds_router
from medcrm.routes.notifications.router import router as notifications_router

configure_logging()
logger = structlog.get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    init_db()
    logger.info("application_started", database=settings.DATABASE_URL.split("://", 1)[0])
    yield


app = FastAPI(title="MedCRM API", version="1.0.0", lifespan=lifespan)


@app.get("/", include_in_schema=False)
def read_root():
    return RedirectResponse(url="/docs")



api_v1_router = APIRouter(prefix="/api/v1")
api_v1_router.include_router(auth_router)
api_v1_router.include_router(appointments_router)
api_v1_router.include_router(users_router)
api_v1_router.include_router(patients_router)
api_v1_router.include_router(doctors_router)
api_v1_router.include_router(staff_router)
api_v1_router.include_router(departments_router)
api_v1_router.include_router(medical_records_router)
api_v1_router.include_router(medications_router)
api_v1_router.include_router(lab_results_router)
api_v1_router.include_router(feedback_router)
api_v1_router.include_router(messages_router)
api_v1_router.include_router(reports_router)
api_v1_router.include_router(assignments_router)
api_v1_router.include_router(profile_router)
api_v1_router.include_router(doctor_dashboard_router)
api_v1_router.include_router(beds_router)
api_v1_router.include_router(notifications_router)

app.include_router(api_v1_router)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_methods=["*"],
    allow_headers=["*"],
)
