from .session import CapacityNotification, EnrollmentSession

__all__ = ["CapacityNotification", "EnrollmentSession"]
