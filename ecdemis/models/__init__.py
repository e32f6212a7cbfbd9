# Import every model so Base.metadata knows all tables
from ecdemis.models.base import Base
from ecdemis.models.institution import Institution
from ecdemis.models.person import Learner, Student, PERSON_STATUSES
from ecdemis.models.identifier import UpiRegistration
from ecdemis.models.lifecycle import PersonStatusEvent, TransferRecord
from ecdemis.models.user import Profile, UserRole, APP_ROLES
from ecdemis.models.assets import (
    BankAccount, Book, InfrastructureAsset, Emergency, CapitationReceipt
)

__all__ = [
    "Base",
    "Institution",
    "Learner",
    "Student",
    "PERSON_STATUSES",
    "UpiRegistration",
    "PersonStatusEvent",
    "TransferRecord",
    "Profile",
    "UserRole",
    "APP_ROLES",
    "BankAccount",
    "Book",
    "InfrastructureAsset",
    "Emergency",
    "CapitationReceipt",
]
