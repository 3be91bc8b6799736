from .enums import (
    PaymentType,
    PaymentMethod,
    PaymentStatus,
    SubmissionStatus,
    MaintenancePriority,
    MaintenanceStatus,
    PostType,
)
from .scope import SelectionUpdate, BuildingRefRead, ScopeRead, SelectionResult
from .payment import PaymentCreate, PaymentReview
from .maintenance import MaintenanceRequestCreate, MaintenanceRequestUpdate
from .community import CommunityPostCreate
