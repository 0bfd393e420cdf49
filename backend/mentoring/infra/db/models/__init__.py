"""Database models."""
from mentoring.infra.db.models.relationship import MentoringRelationshipModel
from mentoring.infra.db.models.chat import ConversationModel, MessageModel
from mentoring.infra.db.models.goal import ClientGoalModel, GoalProgressModel

__all__ = [
    "MentoringRelationshipModel",
    "ConversationModel",
    "MessageModel",
    "ClientGoalModel",
    "GoalProgressModel",
]
