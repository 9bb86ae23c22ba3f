"""Create the DynamoDB tables and S3 bucket the ledger expects."""

import logging
from typing import Any, Dict, List, Optional

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from .config import AppConfig
from .exceptions import DatabaseError, StorageError

logger = logging.getLogger(__name__)


def table_definitions(config: AppConfig) -> List[Dict[str, Any]]:
    """create_table arguments for every table. Every key starts with the owner's user_id."""
    return [
        {
            'TableName': config.receipts_table,
            'KeySchema': [
                {'AttributeName': 'user_id', 'KeyType': 'HASH'},
                {'AttributeName': 'id', 'KeyType': 'RANGE'}
            ],
            'AttributeDefinitions': [
                {'AttributeName': 'user_id', 'AttributeType': 'S'},
                {'AttributeName': 'id', 'AttributeType': 'S'},
                {'AttributeName': 'created_at', 'AttributeType': 'N'}
            ],
            'BillingMode': 'PAY_PER_REQUEST',
            'GlobalSecondaryIndexes': [
                {
                    'IndexName': 'user-created-index',
                    'KeySchema': [
                        {'AttributeName': 'user_id', 'KeyType': 'HASH'},
                        {'AttributeName': 'created_at', 'KeyType': 'RANGE'}
                    ],
                    'Projection': {'ProjectionType': 'ALL'}
                }
            ]
        },
        {
            'TableName': config.settings_table,
            'KeySchema': [{'AttributeName': 'user_id', 'KeyType': 'HASH'}],
            'AttributeDefinitions': [{'AttributeName': 'user_id', 'AttributeType': 'S'}],
            'BillingMode': 'PAY_PER_REQUEST'
        },
        {
            'TableName': config.feedback_table,
            'KeySchema': [
                {'AttributeName': 'user_id', 'KeyType': 'HASH'},
                {'AttributeName': 'id', 'KeyType': 'RANGE'}
            ],
            'AttributeDefinitions': [
                {'AttributeName': 'user_id', 'AttributeType': 'S'},
                {'AttributeName': 'id', 'AttributeType': 'S'}
            ],
            'BillingMode': 'PAY_PER_REQUEST'
        },
    ]


def _client_kwargs(config: AppConfig) -> Dict[str, Any]:
    kwargs = {'region_name': config.aws_region}
    if config.endpoint_url:
        kwargs['endpoint_url'] = config.endpoint_url
    return kwargs


def ensure_tables(config: AppConfig, dynamodb: Optional[Any] = None) -> List[str]:
    """
    Create any missing tables.

    Args:
        config: Application configuration
        dynamodb: Optional boto3 DynamoDB resource

    Returns:
        Names of the tables that were created

    Raises:
        DatabaseError: If a table cannot be created
    """
    dynamodb = dynamodb or boto3.resource('dynamodb', **_client_kwargs(config))
    existing = {table.name for table in dynamodb.tables.all()}
    created = []

    for definition in table_definitions(config):
        name = definition['TableName']
        if name in existing:
            continue

        try:
            table = dynamodb.create_table(**definition)
            table.wait_until_exists()
        except (ClientError, BotoCoreError) as e:
            logger.error(f"Error creating table {name}: {e}")
            raise DatabaseError(f"Failed to create table {name}: {str(e)}")

        logger.info(f"Created table {name}")
        created.append(name)

    return created


def ensure_bucket(config: AppConfig, s3: Optional[Any] = None) -> bool:
    """
    Create the receipts bucket if it does not exist.

    Returns:
        True if the bucket was created

    Raises:
        StorageError: If the bucket cannot be created
    """
    s3 = s3 or boto3.client('s3', **_client_kwargs(config))

    try:
        s3.head_bucket(Bucket=config.receipts_bucket)
        return False
    except ClientError as e:
        if e.response.get('Error', {}).get('Code') not in ('404', 'NoSuchBucket', 'NotFound'):
            raise StorageError(f"Failed to check bucket {config.receipts_bucket}: {str(e)}")
    except BotoCoreError as e:
        raise StorageError(f"Failed to check bucket {config.receipts_bucket}: {str(e)}")

    kwargs = {'Bucket': config.receipts_bucket}
    # us-east-1 rejects an explicit location constraint
    if config.aws_region != 'us-east-1':
        kwargs['CreateBucketConfiguration'] = {'LocationConstraint': config.aws_region}

    try:
        s3.create_bucket(**kwargs)
    except (ClientError, BotoCoreError) as e:
        logger.error(f"Error creating bucket {config.receipts_bucket}: {e}")
        raise StorageError(f"Failed to create bucket {config.receipts_bucket}: {str(e)}")

    logger.info(f"Created bucket {config.receipts_bucket}")
    return True
