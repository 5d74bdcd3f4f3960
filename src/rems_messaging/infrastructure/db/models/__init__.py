"""Import all models so Base.metadata sees every table."""
from rems_messaging.infrastructure.db.models.conversation import ConversationModel
from rems_messaging.infrastructure.db.models.message import MessageModel
from rems_messaging.infrastructure.db.models.outbox import OutboxMessageModel
from rems_messaging.infrastructure.db.models.participant import ParticipantModel
from rems_messaging.infrastructure.db.models.user import UserModel

__all__ = [
    "ConversationModel",
    "MessageModel",
    "OutboxMessageModel",
    "ParticipantModel",
    "UserModel",
]
