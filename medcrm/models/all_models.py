# medcrm/models/all_models.py
from sqlalchemy import (
    Column, String, Boolean, DateTime, ForeignKey, Text, Integer, Numeric,
    Enum, Date, Index, text,
)
from sqlalchemy.orm import declarative_base, relationship
import enum
import uuid
from datetime import datetime
import pytz

from medcrm.config import settings

Base = declarative_base()

# Timezone setup
LOCAL_TZ = pytz.timezone(settings.TIMEZONE)

def local_now():
    return datetime.now(LOCAL_TZ)

def new_user_id():
    return uuid.uuid4().hex

def _enum(enum_cls, name):
    # Persist the lowercase values, not the member names
    return Enum(enum_cls, name=name, values_callable=lambda members: [m.value for m in members])

# Enums
class UserRole(str, enum.Enum):
    ADMIN = "admin"
    DOCTOR = "doctor"
    PATIENT = "patient"
    STAFF = "staff"

class Gender(str, enum.Enum):
    MALE = "male"
    FEMALE = "female"
    OTHER = "other"

class AppointmentStatus(str, enum.Enum):
    SCHEDULED = "scheduled"
    CONFIRMED = "confirmed"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    NO_SHOW = "no_show"

class Priority(str, enum.Enum):
    LOW = "low"
    NORMAL = "normal"
    HIGH = "high"
    URGENT = "urgent"

class FeedbackType(str, enum.Enum):
    COMPLAINT = "complaint"
    SUGGESTION = "suggestion"
    PRAISE = "praise"
    INQUIRY = "inquiry"

class FeedbackStatus(str, enum.Enum):
    OPEN = "open"
    IN_PROGRESS = "in_progress"
    RESOLVED = "resolved"
    CLOSED = "closed"

class MessageType(str, enum.Enum):
    APPOINTMENT = "appointment"
    MEDICATION = "medication"
    RESULT = "result"
    GENERAL = "general"
    URGENT = "urgent"

class MedicationStatus(str, enum.Enum):
    ACTIVE = "active"
    COMPLETED = "completed"
    DISCONTINUED = "discontinued"

class LabResultStatus(str, enum.Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    REVIEWED = "reviewed"

class BedType(str, enum.Enum):
    GENERAL = "general"
    PRIVATE = "private"
    ICU = "icu"
    MATERNITY = "maternity"
    PEDIATRIC = "pediatric"
    ISOLATION = "isolation"
    EMERGENCY = "emergency"

class BedStatus(str, enum.Enum):
    AVAILABLE = "available"
    OCCUPIED = "occupied"
    MAINTENANCE = "maintenance"
    RESERVED = "reserved"

class OccupancyStatus(str, enum.Enum):
    ACTIVE = "active"
    DISCHARGED = "discharged"
    TRANSFERRED = "transferred"

# Shared by feedback and messages so the database type is declared once
PRIORITY_ENUM = _enum(Priority, "priority")

# ================================
# USERS AND PROFILES
# ================================

class User(Base):
    __tablename__ = "users"

    id = Column(String(32), primary_key=True, default=new_user_id)
    name = Column(String(200), nullable=False)
    email = Column(String(255), unique=True, nullable=False)
    password = Column(String(255), nullable=True)
    role = Column(_enum(UserRole, "user_role"), nullable=True)
    email_verified = Column(Boolean, default=False, nullable=False)
    image = Column(String(255))
    banned = Column(Boolean, default=False)
    ban_reason = Column(Text)
    ban_expires = Column(DateTime)
    last_login_at = Column(DateTime)
    created_at = Column(DateTime, default=local_now, server_default=text("CURRENT_TIMESTAMP"))
    updated_at = Column(DateTime, default=local_now, onupdate=local_now, server_default=text("CURRENT_TIMESTAMP"))

    # Relationships
    patient_profile = relationship("Patient", back_populates="user", uselist=False, cascade="all, delete-orphan")
    doctor_profile = relationship("Doctor", back_populates="user", uselist=False, cascade="all, delete-orphan")
    staff_profile = relationship("Staff", back_populates="user", uselist=False, cascade="all, delete-orphan",
                                 foreign_keys="Staff.user_id")

class Department(Base):
    __tablename__ = "departments"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(100), unique=True, nullable=False)
    description = Column(Text)
    head_doctor_id = Column(String(32), ForeignKey("users.id"))
    created_at = Column(DateTime, default=local_now, server_default=text("CURRENT_TIMESTAMP"))
    updated_at = Column(DateTime, default=local_now, onupdate=local_now, server_default=text("CURRENT_TIMESTAMP"))

    # Relationships
    head_doctor = relationship("User", foreign_keys=[head_doctor_id])
    doctors = relationship("Doctor", back_populates="department")
    staff_members = relationship("Staff", back_populates="department")

class Patient(Base):
    __tablename__ = "patients"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String(32), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, unique=True)
    date_of_birth = Column(Date)
    gender = Column(_enum(Gender, "gender"))
    phone = Column(String(20))
    address = Column(Text)
    emergency_contact = Column(String(100))
    emergency_phone = Column(String(20))
    blood_type = Column(String(10))
    allergies = Column(Text)
    medical_history = Column(Text)
    insurance_provider = Column(String(100))
    insurance_number = Column(String(50))
    health_score = Column(Integer, default=0)
    created_at = Column(DateTime, default=local_now, server_default=text("CURRENT_TIMESTAMP"))
    updated_at = Column(DateTime, default=local_now, onupdate=local_now, server_default=text("CURRENT_TIMESTAMP"))

    # Relationships
    user = relationship("User", back_populates="patient_profile")
    appointments = relationship("Appointment", back_populates="patient")

class Doctor(Base):
    __tablename__ = "doctors"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String(32), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, unique=True)
    license_number = Column(String(50), unique=True, nullable=False)
    specialty = Column(String(100), nullable=False)
    department_id = Column(Integer, ForeignKey("departments.id"))
    years_of_experience = Column(Integer, default=0)
    education = Column(Text)
    certifications = Column(Text)
    consultation_fee = Column(Numeric(10, 2))
    rating = Column(Numeric(3, 2), default=0)
    total_patients = Column(Integer, default=0)
    created_at = Column(DateTime, default=local_now, server_default=text("CURRENT_TIMESTAMP"))
    updated_at = Column(DateTime, default=local_now, onupdate=local_now, server_default=text("CURRENT_TIMESTAMP"))

    # Relationships
    user = relationship("User", back_populates="doctor_profile")
    department = relationship("Department", back_populates="doctors")
    appointments = relationship("Appointment", back_populates="doctor")

class Staff(Base):
    __tablename__ = "staff"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String(32), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, unique=True)
    employee_id = Column(String(20), unique=True, nullable=False)
    department_id = Column(Integer, ForeignKey("departments.id"))
    position = Column(String(100), nullable=False)
    hire_date = Column(Date, nullable=False)
    salary = Column(Numeric(12, 2))
    supervisor_id = Column(String(32), ForeignKey("users.id"))
    created_at = Column(DateTime, default=local_now, server_default=text("CURRENT_TIMESTAMP"))
    updated_at = Column(DateTime, default=local_now, onupdate=local_now, server_default=text("CURRENT_TIMESTAMP"))

    # Relationships
    user = relationship("User", back_populates="staff_profile", foreign_keys=[user_id])
    supervisor = relationship("User", foreign_keys=[supervisor_id])
    department = relationship("Department", back_populates="staff_members")

# ================================
# APPOINTMENTS
# ================================

class Appointment(Base):
    __tablename__ = "appointments"
    __table_args__ = (
        # A doctor holds at most one live booking per (date, time)
        Index(
            "uq_appointments_doctor_slot",
            "doctor_id", "appointment_date", "appointment_time",
            unique=True,
            postgresql_where=text("status <> 'cancelled'"),
            sqlite_where=text("status <> 'cancelled'"),
        ),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    patient_id = Column(Integer, ForeignKey("patients.id"), nullable=False)
    doctor_id = Column(Integer, ForeignKey("doctors.id"), nullable=False)
    appointment_date = Column(Date, nullable=False)
    appointment_time = Column(String(5), nullable=False)  # HH:MM
    duration = Column(Integer, default=30)
    type = Column(String(50), nullable=False)
    status = Column(_enum(AppointmentStatus, "appointment_status"), nullable=False, default=AppointmentStatus.SCHEDULED)
    reason = Column(Text)
    symptoms = Column(Text)
    notes = Column(Text)
    diagnosis = Column(Text)
    prescription = Column(Text)
    follow_up_required = Column(Boolean, default=False)
    follow_up_date = Column(Date)
    cancelled_by = Column(String(32), ForeignKey("users.id"))
    cancel_reason = Column(Text)
    created_at = Column(DateTime, default=local_now, server_default=text("CURRENT_TIMESTAMP"))
    updated_at = Column(DateTime, default=local_now, onupdate=local_now, server_default=text("CURRENT_TIMESTAMP"))

    # Relationships
    patient = relationship("Patient", back_populates="appointments")
    doctor = relationship("Doctor", back_populates="appointments")
    canceller = relationship("User", foreign_keys=[cancelled_by])

# ================================
# CLINICAL DATA
# ================================

class MedicalRecord(Base):
    __tablename__ = "medical_records"

    id = Column(Integer, primary_key=True, autoincrement=True)
    patient_id = Column(Integer, ForeignKey("patients.id"), nullable=False)
    doctor_id = Column(Integer, ForeignKey("doctors.id"))
    appointment_id = Column(Integer, ForeignKey("appointments.id"))
    record_type = Column(String(50), nullable=False)
    title = Column(String(200), nullable=False)
    description = Column(Text)
    diagnosis = Column(Text)
    treatment = Column(Text)
    medications = Column(Text)
    lab_tests = Column(Text)
    vital_signs = Column(Text)
    is_confidential = Column(Boolean, default=False)
    created_at = Column(DateTime, default=local_now, server_default=text("CURRENT_TIMESTAMP"))
    updated_at = Column(DateTime, default=local_now, onupdate=local_now, server_default=text("CURRENT_TIMESTAMP"))

    patient = relationship("Patient")
    doctor = relationship("Doctor")

class Medication(Base):
    __tablename__ = "medications"

    id = Column(Integer, primary_key=True, autoincrement=True)
    patient_id = Column(Integer, ForeignKey("patients.id"), nullable=False)
    prescribed_by = Column(Integer, ForeignKey("doctors.id"), nullable=False)
    appointment_id = Column(Integer, ForeignKey("appointments.id"))
    name = Column(String(100), nullable=False)
    generic_name = Column(String(100))
    dosage = Column(String(50), nullable=False)
    frequency = Column(String(50), nullable=False)
    duration = Column(String(50))
    instructions = Column(Text)
    start_date = Column(Date, nullable=False)
    end_date = Column(Date)
    refills = Column(Integer, default=0)
    side_effects = Column(Text)
    status = Column(_enum(MedicationStatus, "medication_status"), nullable=False, default=MedicationStatus.ACTIVE)
    created_at = Column(DateTime, default=local_now, server_default=text("CURRENT_TIMESTAMP"))
    updated_at = Column(DateTime, default=local_now, onupdate=local_now, server_default=text("CURRENT_TIMESTAMP"))

    patient = relationship("Patient")
    prescriber = relationship("Doctor")

class LabResult(Base):
    __tablename__ = "lab_results"

    id = Column(Integer, primary_key=True, autoincrement=True)
    patient_id = Column(Integer, ForeignKey("patients.id"), nullable=False)
    doctor_id = Column(Integer, ForeignKey("doctors.id"))
    appointment_id = Column(Integer, ForeignKey("appointments.id"))
    test_name = Column(String(100), nullable=False)
    test_category = Column(String(50), nullable=False)
    test_date = Column(Date, nullable=False)
    result_date = Column(Date)
    status = Column(_enum(LabResultStatus, "lab_result_status"), nullable=False, default=LabResultStatus.PENDING)
    results = Column(Text)
    normal_range = Column(Text)
    interpretation = Column(Text)
    notes = Column(Text)
    reviewed_by = Column(Integer, ForeignKey("doctors.id"))
    reviewed_at = Column(DateTime)
    created_at = Column(DateTime, default=local_now, server_default=text("CURRENT_TIMESTAMP"))
    updated_at = Column(DateTime, default=local_now, onupdate=local_now, server_default=text("CURRENT_TIMESTAMP"))

    patient = relationship("Patient")
    doctor = relationship("Doctor", foreign_keys=[doctor_id])

# ================================
# COMMUNICATION
# ================================

class Feedback(Base):
    __tablename__ = "feedback"

    id = Column(Integer, primary_key=True, autoincrement=True)
    patient_id = Column(Integer, ForeignKey("patients.id"), nullable=False)
    type = Column(_enum(FeedbackType, "feedback_type"), nullable=False)
    subject = Column(String(200), nullable=False)
    message = Column(Text, nullable=False)
    priority = Column(PRIORITY_ENUM, default=Priority.NORMAL)
    status = Column(_enum(FeedbackStatus, "feedback_status"), nullable=False, default=FeedbackStatus.OPEN)
    assigned_to = Column(String(32), ForeignKey("users.id"))
    department_id = Column(Integer, ForeignKey("departments.id"))
    response = Column(Text)
    responded_by = Column(String(32), ForeignKey("users.id"))
    responded_at = Column(DateTime)
    rating = Column(Integer)
    created_at = Column(DateTime, default=local_now, server_default=text("CURRENT_TIMESTAMP"))
    updated_at = Column(DateTime, default=local_now, onupdate=local_now, server_default=text("CURRENT_TIMESTAMP"))

    patient = relationship("Patient")

class Message(Base):
    __tablename__ = "messages"

    id = Column(Integer, primary_key=True, autoincrement=True)
    sender_id = Column(String(32), ForeignKey("users.id"), nullable=False)
    recipient_id = Column(String(32), ForeignKey("users.id"), nullable=False)
    type = Column(_enum(MessageType, "message_type"), default=MessageType.GENERAL)
    subject = Column(String(200))
    message = Column(Text, nullable=False)
    priority = Column(PRIORITY_ENUM, default=Priority.NORMAL)
    is_read = Column(Boolean, default=False)
    read_at = Column(DateTime)
    related_appointment_id = Column(Integer, ForeignKey("appointments.id"))
    related_feedback_id = Column(Integer, ForeignKey("feedback.id"))
    created_at = Column(DateTime, default=local_now, server_default=text("CURRENT_TIMESTAMP"))
    updated_at = Column(DateTime, default=local_now, onupdate=local_now, server_default=text("CURRENT_TIMESTAMP"))

    sender = relationship("User", foreign_keys=[sender_id])
    recipient = relationship("User", foreign_keys=[recipient_id])

# ================================
# REPORTING
# ================================

class Report(Base):
    __tablename__ = "reports"

    id = Column(Integer, primary_key=True, autoincrement=True)
    title = Column(String(200), nullable=False)
    type = Column(String(50), nullable=False)
    description = Column(Text)
    parameters = Column(Text)
    data = Column(Text)
    generated_by = Column(String(32), ForeignKey("users.id"), nullable=False)
    generated_at = Column(DateTime, default=local_now, server_default=text("CURRENT_TIMESTAMP"))
    date_range = Column(String(50))
    status = Column(String(20), default="completed")
    created_at = Column(DateTime, default=local_now, server_default=text("CURRENT_TIMESTAMP"))

# ================================
# CARE ASSIGNMENTS AND WARDS
# ================================

class PatientDoctorAssignment(Base):
    __tablename__ = "patient_doctor_assignments"
    __table_args__ = (
        # Unassigning keeps the row, so only one active pairing may exist
        Index(
            "uq_assignments_active_pair",
            "patient_id", "doctor_id",
            unique=True,
            postgresql_where=text("is_active"),
            sqlite_where=text("is_active = 1"),
        ),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    patient_id = Column(Integer, ForeignKey("patients.id"), nullable=False)
    doctor_id = Column(Integer, ForeignKey("doctors.id"), nullable=False)
    assigned_by = Column(String(32), ForeignKey("users.id"), nullable=False)
    assigned_at = Column(DateTime, default=local_now, server_default=text("CURRENT_TIMESTAMP"))
    notes = Column(Text)
    is_active = Column(Boolean, default=True, nullable=False)
    updated_at = Column(DateTime, default=local_now, onupdate=local_now, server_default=text("CURRENT_TIMESTAMP"))

    patient = relationship("Patient")
    doctor = relationship("Doctor")


class BedSpace(Base):
    __tablename__ = "bed_spaces"

    id = Column(Integer, primary_key=True, autoincrement=True)
    room_number = Column(String(20), nullable=False)
    bed_number = Column(String(20), nullable=False)
    department_id = Column(Integer, ForeignKey("departments.id"))
    ward = Column(String(100))
    floor = Column(Integer)
    type = Column(_enum(BedType, "bed_type"), nullable=False, default=BedType.GENERAL)
    status = Column(_enum(BedStatus, "bed_status"), nullable=False, default=BedStatus.AVAILABLE)
    description = Column(Text)
    equipment = Column(Text)  # JSON list
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, default=local_now, server_default=text("CURRENT_TIMESTAMP"))
    updated_at = Column(DateTime, default=local_now, onupdate=local_now, server_default=text("CURRENT_TIMESTAMP"))

    department = relationship("Department")


class BedOccupancy(Base):
    __tablename__ = "bed_occupancy"
    __table_args__ = (
        Index(
            "uq_bed_occupancy_active_bed", "bed_id",
            unique=True,
            postgresql_where=text("status = 'active'"),
            sqlite_where=text("status = 'active'"),
        ),
        Index(
            "uq_bed_occupancy_active_patient", "patient_id",
            unique=True,
            postgresql_where=text("status = 'active'"),
            sqlite_where=text("status = 'active'"),
        ),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    bed_id = Column(Integer, ForeignKey("bed_spaces.id"), nullable=False)
    patient_id = Column(Integer, ForeignKey("patients.id"), nullable=False)
    doctor_id = Column(Integer, ForeignKey("doctors.id"))
    admission_date = Column(DateTime, default=local_now, nullable=False)
    expected_discharge_date = Column(Date)
    actual_discharge_date = Column(DateTime)
    admission_reason = Column(Text, nullable=False)
    diagnosis = Column(Text)
    notes = Column(Text)
    priority = Column(PRIORITY_ENUM, default=Priority.NORMAL)
    status = Column(_enum(OccupancyStatus, "occupancy_status"), nullable=False, default=OccupancyStatus.ACTIVE)
    transferred_from = Column(Integer, ForeignKey("bed_occupancy.id"))
    transferred_to = Column(Integer, ForeignKey("bed_occupancy.id"))
    created_at = Column(DateTime, default=local_now, server_default=text("CURRENT_TIMESTAMP"))
    updated_at = Column(DateTime, default=local_now, onupdate=local_now, server_default=text("CURRENT_TIMESTAMP"))

    bed = relationship("BedSpace")
    patient = relationship("Patient")
    doctor = relationship("Doctor")


# ================================
# NOTIFICATIONS
# ================================

class Notification(Base):
    __tablename__ = "notifications"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String(32), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    type = Column(String(50), nullable=False)  # appointment, medication, result, message, system
    title = Column(String(200), nullable=False)
    message = Column(Text, nullable=False)
    priority = Column(PRIORITY_ENUM, default=Priority.NORMAL)
    is_read = Column(Boolean, default=False)
    read_at = Column(DateTime)
    action_url = Column(String(500))
    expires_at = Column(DateTime)
    created_at = Column(DateTime, default=local_now, server_default=text("CURRENT_TIMESTAMP"))
