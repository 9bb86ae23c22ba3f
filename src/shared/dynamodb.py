"""DynamoDB utilities and helper functions."""

import re
import boto3
from typing import Any, Dict, Optional
from decimal import Decimal
from botocore.exceptions import BotoCoreError, ClientError, HTTPClientError
from botocore.exceptions import ConnectionError as BotoConnectionError
import logging

from .exceptions import ConnectivityError, DatabaseError, NotFoundError, SchemaError

logger = logging.getLogger(__name__)

# Transport failures: endpoint unreachable, timeouts, dropped connections
UNREACHABLE_ERRORS = (BotoConnectionError, HTTPClientError)

# ValidationException messages that mean the table disagrees with our attributes
_SCHEMA_MESSAGE = re.compile(
    r"(?:Missing the key|Type mismatch for (?:Index )?Key|"
    r"Invalid attribute value type|key element does not match)\s*(\w+)?",
    re.IGNORECASE
)


class DynamoDBClient:
    """DynamoDB client wrapper with common operations."""

    def __init__(
        self,
        table_name: str,
        endpoint_url: Optional[str] = None,
        region_name: Optional[str] = None
    ):
        """
        Initialize DynamoDB client.

        Args:
            table_name: Name of the DynamoDB table
            endpoint_url: Optional endpoint override (LocalStack)
            region_name: Optional AWS region
        """
        self.table_name = table_name

        kwargs = {}
        if endpoint_url:
            kwargs['endpoint_url'] = endpoint_url
        if region_name:
            kwargs['region_name'] = region_name
        self.dynamodb = boto3.resource('dynamodb', **kwargs)

        self.table = self.dynamodb.Table(table_name)

    def put_item(
        self,
        item: Dict[str, Any],
        condition_expression: Optional[str] = None
    ) -> Dict[str, Any]:
        """
        Put an item in the table.

        Args:
            item: Item to put
            condition_expression: Optional condition expression

        Returns:
            The item that was put

        Raises:
            SchemaError: If the table rejects the item's attributes
            DatabaseError: If the operation fails
        """
        try:
            # Convert floats to Decimal for DynamoDB
            item = self._python_to_dynamodb(item)
            kwargs = {'Item': item}
            if condition_expression:
                kwargs['ConditionExpression'] = condition_expression
            self.table.put_item(**kwargs)
            return self._dynamodb_to_python(item)
        except (ClientError, BotoCoreError) as e:
            raise self._translate_error(e, 'put item')

    def get_item(self, key: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        """
        Get an item from the table.

        Args:
            key: Primary key of the item

        Returns:
            The item if found, None otherwise

        Raises:
            DatabaseError: If the operation fails
        """
        try:
            response = self.table.get_item(Key=key)
            item = response.get('Item')
            if item:
                return self._dynamodb_to_python(item)
            return None
        except (ClientError, BotoCoreError) as e:
            raise self._translate_error(e, 'get item')

    def update_item(
        self,
        key: Dict[str, Any],
        update_expression: str,
        expression_values: Dict[str, Any],
        expression_names: Optional[Dict[str, str]] = None,
        condition_expression: Optional[str] = None
    ) -> Dict[str, Any]:
        """
        Update an item in the table.

        Args:
            key: Primary key of the item
            update_expression: Update expression
            expression_values: Expression attribute values
            expression_names: Optional expression attribute names
            condition_expression: Optional condition expression

        Returns:
            Updated item

        Raises:
            NotFoundError: If the condition expression fails
            DatabaseError: If the operation fails
        """
        try:
            expression_values = self._python_to_dynamodb(expression_values)

            kwargs = {
                'Key': key,
                'UpdateExpression': update_expression,
                'ExpressionAttributeValues': expression_values,
                'ReturnValues': 'ALL_NEW'
            }

            if expression_names:
                kwargs['ExpressionAttributeNames'] = expression_names
            if condition_expression:
                kwargs['ConditionExpression'] = condition_expression

            response = self.table.update_item(**kwargs)
            return self._dynamodb_to_python(response['Attributes'])
        except (ClientError, BotoCoreError) as e:
            raise self._translate_error(e, 'update item')

    def delete_item(self, key: Dict[str, Any]) -> None:
        """
        Delete an item from the table.

        Args:
            key: Primary key of the item

        Raises:
            DatabaseError: If the operation fails
        """
        try:
            self.table.delete_item(Key=key)
        except (ClientError, BotoCoreError) as e:
            raise self._translate_error(e, 'delete item')

    def query(
        self,
        key_condition_expression: Any,
        index_name: Optional[str] = None,
        limit: Optional[int] = None,
        scan_forward: bool = True,
        exclusive_start_key: Optional[Dict[str, Any]] = None
    ) -> Dict[str, Any]:
        """
        Query items from the table.

        Args:
            key_condition_expression: Key condition expression
            index_name: Optional index name
            limit: Optional limit
            scan_forward: Sort order (default: True for ascending)
            exclusive_start_key: Optional pagination key

        Returns:
            Dictionary with items and optional LastEvaluatedKey

        Raises:
            DatabaseError: If the operation fails
        """
        try:
            kwargs = {
                'KeyConditionExpression': key_condition_expression,
                'ScanIndexForward': scan_forward
            }

            if index_name:
                kwargs['IndexName'] = index_name
            if limit:
                kwargs['Limit'] = limit
            if exclusive_start_key:
                kwargs['ExclusiveStartKey'] = exclusive_start_key

            response = self.table.query(**kwargs)

            return {
                'items': [self._dynamodb_to_python(item) for item in response.get('Items', [])],
                'last_evaluated_key': response.get('LastEvaluatedKey')
            }
        except (ClientError, BotoCoreError) as e:
            raise self._translate_error(e, 'query items')

    def _translate_error(self, error: Exception, action: str) -> Exception:
        """Map a botocore error to the application's exception hierarchy."""
        if isinstance(error, UNREACHABLE_ERRORS):
            logger.error(f"Cannot reach DynamoDB to {action} on {self.table_name}: {error}")
            return ConnectivityError(f"Failed to {action}: {str(error)}")

        if not isinstance(error, ClientError):
            logger.error(f"Error trying to {action} on {self.table_name}: {error}")
            return DatabaseError(f"Failed to {action}: {str(error)}")

        error_code = error.response.get('Error', {}).get('Code', '')
        message = error.response.get('Error', {}).get('Message', str(error))

        if error_code == 'ConditionalCheckFailedException':
            logger.error(f"Condition failed to {action} on {self.table_name}")
            return NotFoundError("Item not found")

        if error_code == 'ResourceNotFoundException':
            logger.error(f"Schema error: table {self.table_name} does not exist")
            return SchemaError(f"Table {self.table_name} does not exist")

        if error_code == 'ValidationException':
            match = _SCHEMA_MESSAGE.search(message)
            if match:
                attribute = match.group(1)
                logger.error(f"Schema error on {self.table_name}: attribute {attribute} rejected ({message})")
                return SchemaError(f"Failed to {action}: {message}", attribute=attribute)

        logger.error(f"Error trying to {action}: {error}")
        return DatabaseError(f"Failed to {action}: {message}")

    @staticmethod
    def _python_to_dynamodb(obj: Any) -> Any:
        """Convert Python objects to DynamoDB compatible format."""
        if isinstance(obj, dict):
            return {k: DynamoDBClient._python_to_dynamodb(v) for k, v in obj.items()}
        elif isinstance(obj, list):
            return [DynamoDBClient._python_to_dynamodb(item) for item in obj]
        elif isinstance(obj, float):
            return Decimal(str(obj))
        return obj

    @staticmethod
    def _dynamodb_to_python(obj: Any) -> Any:
        """Convert DynamoDB objects to Python format."""
        if isinstance(obj, dict):
            return {k: DynamoDBClient._dynamodb_to_python(v) for k, v in obj.items()}
        elif isinstance(obj, list):
            return [DynamoDBClient._dynamodb_to_python(item) for item in obj]
        elif isinstance(obj, Decimal):
            if obj % 1 == 0:
                return int(obj)
            return float(obj)
        return obj
