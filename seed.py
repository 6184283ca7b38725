import argparse
from decimal import Decimal

from medcrm.database import SessionLocal, init_db
from medcrm.errors import Conflict
from medcrm.logging_config import configure_logging
from medcrm.models.all_models import Department, Doctor, User, UserRole
from medcrm.actions.user_actions import create_account

DEFAULT_DEPARTMENTS = [
    ("Cardiology", "Heart and cardiovascular disorders, including hypertension and arrhythmias.", 150),
    ("Neurology", "Disorders of the brain, spinal cord and peripheral nerves.", 140),
    ("Oncology", "Diagnosis and treatment of cancer.", 160),
    ("Pediatrics", "Medical care of infants, children and adolescents.", 120),
    ("Gynecology & Obstetrics", "Women's reproductive health, pregnancy and childbirth.", 130),
    ("Orthopedics", "Bones, joints, ligaments and muscles, including sports injuries.", 145),
    ("Emergency Medicine", "Immediate care for acute illness and injury.", 125),
    ("Internal Medicine", "Prevention, diagnosis and treatment of adult disease.", 115),
    ("General Surgery", "Abdominal, trauma and emergency surgery.", 155),
    ("Radiology", "X-ray, CT, MRI and ultrasound imaging.", 135),
    ("Laboratory Medicine", "Blood work, microbiology and pathology testing.", 110),
    ("Psychiatry", "Diagnosis and treatment of mental health disorders.", 125),
    ("Dermatology", "Skin, hair and nail disorders.", 130),
    ("Ophthalmology", "Eye care and vision health.", 140),
    ("Pulmonology", "Lungs and airways, including asthma and COPD.", 130),
]

DEMO_DOCTOR_NAMES = [
    "James Smith", "Mary Johnson", "John Williams", "Patricia Brown", "Robert Jones",
    "Jennifer Garcia", "Michael Miller", "Linda Davis", "William Rodriguez", "Elizabeth Martinez",
    "David Hernandez", "Barbara Lopez", "Richard Gonzalez", "Susan Wilson", "Joseph Anderson",
]


def create_admin_user(session, name, email, password):
    if session.query(User.id).filter(User.email == email.strip().lower()).first():
        print(f"Admin user {email} already exists, skipping")
        return
    create_account(session, name, email, password, UserRole.ADMIN)
    session.commit()
    print(f"Admin user created successfully: {email}")


def seed_departments(session):
    created = 0
    for name, description, _fee in DEFAULT_DEPARTMENTS:
        if session.query(Department.id).filter(Department.name == name).first():
            continue
        session.add(Department(name=name, description=description))
        created += 1
    session.commit()
    print(f"Departments seeded: {created} created")


def seed_doctors(session, password):
    created = 0
    for index, (department_name, _description, fee) in enumerate(DEFAULT_DEPARTMENTS, start=1):
        department = session.query(Department).filter(Department.name == department_name).first()
        if not department:
            print(f"Department {department_name} missing, run with --departments first")
            continue

        name = DEMO_DOCTOR_NAMES[(index - 1) % len(DEMO_DOCTOR_NAMES)]
        email = f"{name.lower().replace(' ', '.')}@medcrm.example"
        try:
            account = create_account(session, f"Dr. {name}", email, password, UserRole.DOCTOR)
        except Conflict:
            session.rollback()
            continue

        session.add(Doctor(
            user_id=account.id,
            license_number=f"MD{index:05d}",
            specialty=department_name,
            department_id=department.id,
            years_of_experience=5 + index % 20,
            consultation_fee=Decimal(fee),
        ))
        session.commit()
        created += 1
    print(f"Demo doctors seeded: {created} created")


def main(argv=None):
    parser = argparse.ArgumentParser(description="Create the schema and seed initial data")
    parser.add_argument("--admin-email", default="admin@medcrm.example", help="Admin email address")
    parser.add_argument("--admin-password", default="Admin12345", help="Admin password")
    parser.add_argument("--admin-name", default="System Administrator", help="Admin display name")
    parser.add_argument("--departments", action="store_true", help="Seed the default departments")
    parser.add_argument("--doctors", action="store_true", help="Seed one demo doctor per default department")
    parser.add_argument("--doctor-password", default="Doctor12345", help="Password for the demo doctors")

    args = parser.parse_args(argv)

    configure_logging()
    init_db()

    session = SessionLocal()
    try:
        create_admin_user(session, args.admin_name, args.admin_email, args.admin_password)
        if args.departments or args.doctors:
            seed_departments(session)
        if args.doctors:
            seed_doctors(session, args.doctor_password)
    except Exception as e:
        session.rollback()
        print(f"Error seeding database: {str(e)}")
        raise
    finally:
        session.close()


if __name__ == "__main__":
    main()
