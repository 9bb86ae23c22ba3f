"""Receipt image bucket access."""

import logging
from datetime import datetime
from typing import Optional

import boto3
from botocore.exceptions import BotoCoreError, ClientError, HTTPClientError
from botocore.exceptions import ConnectionError as BotoConnectionError

from .exceptions import ConnectivityError, StorageError

logger = logging.getLogger(__name__)

# Transport failures: endpoint unreachable, timeouts, dropped connections
UNREACHABLE_ERRORS = (BotoConnectionError, HTTPClientError)


class ImageBucket:
    """Private bucket holding receipt images under per-user prefixes."""

    def __init__(
        self,
        bucket_name: str,
        endpoint_url: Optional[str] = None,
        region_name: Optional[str] = None
    ):
        """
        Initialize the bucket client.

        Args:
            bucket_name: Name of the S3 bucket
            endpoint_url: Optional endpoint override (LocalStack)
            region_name: Optional AWS region
        """
        self.bucket_name = bucket_name

        kwargs = {}
        if endpoint_url:
            kwargs['endpoint_url'] = endpoint_url
        if region_name:
            kwargs['region_name'] = region_name
        self.s3 = boto3.client('s3', **kwargs)

    def put_image(self, key: str, content: bytes, owner_id: str, content_type: str = 'image/jpeg') -> str:
        """
        Store an image, tagging it with its owner.

        Args:
            key: Object key
            content: Image bytes
            owner_id: User that owns the image
            content_type: Image MIME type

        Returns:
            The object key

        Raises:
            ConnectivityError: If S3 cannot be reached
            StorageError: If the upload is rejected
        """
        try:
            self.s3.put_object(
                Bucket=self.bucket_name,
                Key=key,
                Body=content,
                ContentType=content_type,
                ServerSideEncryption='AES256',
                Metadata={
                    'user_id': owner_id,
                    'uploaded_at': datetime.utcnow().isoformat()
                }
            )
        except UNREACHABLE_ERRORS as e:
            logger.error(f"Cannot reach S3: {e}")
            raise ConnectivityError(f"Failed to upload image: {str(e)}")
        except (ClientError, BotoCoreError) as e:
            logger.error(f"Error uploading image {key}: {e}")
            raise StorageError(f"Failed to upload image: {str(e)}")

        logger.info(f"Stored image s3://{self.bucket_name}/{key}")
        return key

    def remove_image(self, key: str) -> None:
        """
        Delete an image.

        Raises:
            StorageError: If the deletion fails
        """
        try:
            self.s3.delete_object(Bucket=self.bucket_name, Key=key)
        except (ClientError, BotoCoreError) as e:
            logger.error(f"Error deleting image {key}: {e}")
            raise StorageError(f"Failed to delete image: {str(e)}")

        logger.info(f"Deleted image s3://{self.bucket_name}/{key}")

    def signed_url(self, key: str, expires_in: int) -> str:
        """
        Time-limited read URL for an image.

        Raises:
            StorageError: If signing fails
        """
        try:
            return self.s3.generate_presigned_url(
                'get_object',
                Params={'Bucket': self.bucket_name, 'Key': key},
                ExpiresIn=expires_in
            )
        except (ClientError, BotoCoreError) as e:
            logger.error(f"Error signing image URL for {key}: {e}")
            raise StorageError(f"Failed to sign image URL: {str(e)}")
