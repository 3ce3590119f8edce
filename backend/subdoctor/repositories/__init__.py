from subdoctor.repositories.api_key_repository import ApiKeyRepository
from subdoctor.repositories.extension_repository import ExtensionRepository
from subdoctor.repositories.issue_repository import IssueRepository
from subdoctor.repositories.note_repository import NoteRepository
from subdoctor.repositories.order_repository import OrderRepository
from subdoctor.repositories.payment_gateway_repository import PaymentGatewayRepository
from subdoctor.repositories.platform_option_repository import PlatformOptionRepository
from subdoctor.repositories.scheduled_job_repository import ScheduledJobRepository
from subdoctor.repositories.subscription_repository import SubscriptionRepository

__all__ = [
    "ApiKeyRepository",
    "ExtensionRepository",
    "IssueRepository",
    "NoteRepository",
    "OrderRepository",
    "PaymentGatewayRepository",
    "PlatformOptionRepository",
    "ScheduledJobRepository",
    "SubscriptionRepository",
]
