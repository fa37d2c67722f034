from app.services.conversation_service import ConversationService
from app.services.customer_service import CustomerService
from app.services.delivery_service import DeliveryService
from app.services.entity_resolver import EntityResolver
from app.services.message_service import MessageService

__all__ = [
    "ConversationService",
    "CustomerService",
    "DeliveryService",
    "EntityResolver",
    "MessageService",
]
