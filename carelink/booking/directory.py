"""Static counselor contact directory, keyed by service type."""

from carelink.schemas.booking_schema import CounselorContact, ServiceType

COUNSELOR_DIRECTORY: dict[ServiceType, CounselorContact] = {
    ServiceType.COUNSELOR: CounselorContact(
        name="Dr. Priya Raman, Campus Counseling Centre",
        phone="+91-80-4000-1234",
        email="counseling@campus.example.edu",
        location="Student Wellness Building, Room 204",
        hours="Monday to Friday, 9:00 AM to 5:00 PM",
    ),
    ServiceType.HELPLINE: CounselorContact(
        name="Mental Health Helpline",
        phone="14416",
        email="helpline@campus.example.edu",
        location="Phone and chat support",
        hours="24 hours, 7 days a week",
    ),
}


def get_contact(service_type: ServiceType) -> CounselorContact:
    """Return the contact shown on a confirmation for ``service_type``."""
    return COUNSELOR_DIRECTORY[service_type]
