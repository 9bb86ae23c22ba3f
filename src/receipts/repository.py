"""Remote persistence for receipts (DynamoDB rows and S3 images)."""

import logging
from typing import Any, Dict, List, Optional

from boto3.dynamodb.conditions import Key

from shared.config import AppConfig
from shared.dynamodb import DynamoDBClient
from shared.s3 import ImageBucket
from shared.exceptions import StorageError
from receipts.models import Receipt, now_ms

logger = logging.getLogger(__name__)

# Newest-first listing index
CREATED_INDEX = 'user-created-index'

# Row attributes that form the primary key and are never updated
KEY_ATTRIBUTES = ('user_id', 'id')


class ReceiptRepository:
    """Owner-scoped receipt rows and images."""

    def __init__(
        self,
        config: AppConfig,
        table: Optional[DynamoDBClient] = None,
        bucket: Optional[ImageBucket] = None
    ):
        """Initialize the repository from configuration."""
        self.receipts_table = table or DynamoDBClient(
            config.receipts_table,
            endpoint_url=config.endpoint_url,
            region_name=config.aws_region
        )
        self.images = bucket or ImageBucket(
            config.receipts_bucket,
            endpoint_url=config.endpoint_url,
            region_name=config.aws_region
        )

    def list_receipts(self, user_id: str) -> List[Receipt]:
        """
        List all receipts for a user, newest first.

        Args:
            user_id: Owner ID

        Returns:
            Receipts without resolved images
        """
        rows: List[Dict[str, Any]] = []
        last_key = None

        while True:
            result = self.receipts_table.query(
                key_condition_expression=Key('user_id').eq(user_id),
                index_name=CREATED_INDEX,
                scan_forward=False,  # Most recent first
                exclusive_start_key=last_key
            )
            rows.extend(result['items'])
            last_key = result.get('last_evaluated_key')

            if not last_key:
                break

        logger.info(f"Loaded {len(rows)} receipts for user {user_id}")
        return [Receipt.from_row(row) for row in rows]

    def insert_receipt(self, user_id: str, receipt: Receipt) -> Receipt:
        """
        Insert a new receipt row.

        Args:
            user_id: Owner ID
            receipt: Receipt to save

        Returns:
            The saved receipt

        Raises:
            SchemaError: If the table rejects the row's attributes
            DatabaseError: If the insert fails
        """
        self.receipts_table.put_item(receipt.to_row(user_id))
        logger.info(f"Receipt record created: {receipt.id}")
        return receipt

    def update_receipt(self, user_id: str, receipt: Receipt) -> Dict[str, Any]:
        """
        Overwrite every attribute of an existing receipt row.

        Args:
            user_id: Owner ID
            receipt: Receipt with the new values

        Returns:
            Updated row

        Raises:
            NotFoundError: If the row does not exist
            DatabaseError: If the update fails
        """
        row = receipt.to_row(user_id)

        set_parts = []
        expr_values = {}
        expr_names = {}

        for key, value in row.items():
            if key in KEY_ATTRIBUTES:
                continue
            set_parts.append(f"#{key} = :{key}")
            expr_names[f'#{key}'] = key
            expr_values[f':{key}'] = value

        update_expr = "SET " + ", ".join(set_parts)

        # Optional attributes cleared by the edit
        removed = [
            name for name in ('image_path', 'latitude', 'longitude', 'merchant_name', 'merchant_address')
            if name not in row
        ]
        if removed:
            for name in removed:
                expr_names[f'#{name}'] = name
            update_expr += " REMOVE " + ", ".join(f"#{name}" for name in removed)

        updated = self.receipts_table.update_item(
            key={'user_id': user_id, 'id': receipt.id},
            update_expression=update_expr,
            expression_values=expr_values,
            expression_names=expr_names,
            condition_expression='attribute_exists(id)'
        )

        logger.info(f"Updated receipt {receipt.id}")
        return updated

    def delete_receipt(self, user_id: str, receipt_id: str, storage_path: Optional[str] = None) -> None:
        """
        Delete a receipt row and, when known, its image.

        Args:
            user_id: Owner ID
            receipt_id: Receipt ID
            storage_path: Optional image key

        Raises:
            DatabaseError: If the row deletion fails
        """
        if storage_path:
            try:
                self.images.remove_image(storage_path)
            except StorageError as e:
                # Continue with DynamoDB deletion even if S3 fails
                logger.error(f"Failed to delete receipt image {storage_path}: {e.message}")

        self.receipts_table.delete_item({
            'user_id': user_id,
            'id': receipt_id
        })
        logger.info(f"Receipt record deleted: {receipt_id}")

    def upload_image(self, user_id: str, content: bytes, content_type: str = 'image/jpeg') -> Optional[str]:
        """
        Upload a receipt image.

        Args:
            user_id: Owner ID
            content: Image bytes
            content_type: Image content type

        Returns:
            Storage path, or None for an empty image

        Raises:
            StorageError: If the upload fails
        """
        if not content:
            logger.warning("Skipping upload of empty receipt image")
            return None

        key = f"{user_id}/{now_ms()}_receipt.jpg"
        return self.images.put_image(key, content, user_id, content_type=content_type)

    def get_image_url(self, storage_path: str, expiration: int = 3600) -> Optional[str]:
        """
        Generate a time-limited display URL for an image.

        Args:
            storage_path: Image key
            expiration: URL validity in seconds (default: 1 hour)

        Returns:
            Presigned URL, or None if it cannot be generated
        """
        if not storage_path:
            return None

        try:
            return self.images.signed_url(storage_path, expiration)
        except StorageError as e:
            logger.error(f"Error creating signed URL for {storage_path}: {e.message}")
            return None
