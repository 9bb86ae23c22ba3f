"""User feedback submissions."""

import uuid
import logging
from datetime import datetime
from typing import Any, Dict, Optional

from shared.config import AppConfig
from shared.dynamodb import DynamoDBClient
from shared.validators import sanitize_string
from shared.exceptions import ValidationError

logger = logging.getLogger(__name__)

MAX_MESSAGE_LENGTH = 2000


class FeedbackRepository:
    """Feedback rows keyed by user ID."""

    def __init__(self, config: AppConfig, table: Optional[DynamoDBClient] = None):
        self.feedback_table = table or DynamoDBClient(
            config.feedback_table,
            endpoint_url=config.endpoint_url,
            region_name=config.aws_region
        )

    def submit_feedback(self, user_id: str, message: str) -> Dict[str, Any]:
        """
        Store a feedback message.

        Args:
            user_id: Author
            message: Feedback text

        Returns:
            The stored row

        Raises:
            ValidationError: If the message is empty or too long
            DatabaseError: If the insert fails
        """
        message = sanitize_string(message or '', max_length=MAX_MESSAGE_LENGTH)
        if not message:
            raise ValidationError("Feedback message is required")

        record = {
            'user_id': user_id,
            'id': str(uuid.uuid4()),
            'message': message,
            'created_at': datetime.utcnow().isoformat()
        }

        self.feedback_table.put_item(record)
        logger.info(f"Feedback submitted by user {user_id}")
        return record
