import logging
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Optional

import boto3
from boto3.dynamodb.conditions import Key
from boto3.dynamodb.types import TypeSerializer
from botocore.exceptions import ClientError

from wallet_api.core.config import settings

logger = logging.getLogger(__name__)

EMAIL_INDEX = "email-index"
REFRESH_TOKEN_INDEX = "refresh-token-index"
USER_DATE_INDEX = "user-date-index"

# Users-table key of the item that reserves an email address
EMAIL_KEY_PREFIX = "EMAIL#"

_serializer = TypeSerializer()

# Initialize DynamoDB resource
dynamodb = boto3.resource(
    "dynamodb",
    region_name=settings.DYNAMO_REGION,
    endpoint_url=settings.DYNAMO_ENDPOINT_URL,
)

# Get table references
users_table = dynamodb.Table(settings.DYNAMO_USERS_TABLE)
transactions_table = dynamodb.Table(settings.DYNAMO_TRANSACTIONS_TABLE)
blacklist_table = dynamodb.Table(settings.DYNAMO_BLACKLIST_TABLE)


# Users

def get_user_by_email(email: str):
    """Query the Users table by email through the email GSI."""
    try:
        response = users_table.query(
            IndexName=EMAIL_INDEX,
            KeyConditionExpression=Key("email").eq(email),
        )
        return _from_dynamo(response["Items"][0]) if response["Items"] else None
    except ClientError as e:
        logger.error(f"get_user_by_email failed: {e.response['Error']['Message']}")
        return None


def get_user_by_id(user_id: str):
    """Get user by user_id from the Users table."""
    try:
        response = users_table.get_item(Key={"user_id": user_id})
        item = response.get("Item")
        return _from_dynamo(item) if item else None
    except ClientError as e:
        logger.error(f"get_user_by_id failed: {e.response['Error']['Message']}")
        return None


def get_user_by_refresh_token(refresh_token: str):
    """Find the user currently holding ``refresh_token`` (sparse GSI)."""
    try:
        response = users_table.query(
            IndexName=REFRESH_TOKEN_INDEX,
            KeyConditionExpression=Key("refresh_token").eq(refresh_token),
        )
        return _from_dynamo(response["Items"][0]) if response["Items"] else None
    except ClientError as e:
        logger.error(f"get_user_by_refresh_token failed: {e.response['Error']['Message']}")
        return None


class DuplicateEmailError(Exception):
    """Raised by put_user when another user already holds the email."""


def put_user(user_item: dict):
    """
    Insert a new user together with the item reserving its email, in one
    transaction. Raises DuplicateEmailError if the email is taken.
    """
    item = _convert_for_dynamo(_drop_none(user_item))
    email_lock = {
        "user_id": f"{EMAIL_KEY_PREFIX}{item['email']}",
        "owner_user_id": item["user_id"],
        "created_at": item.get("created_at", _utcnow()),
    }
    try:
        dynamodb.meta.client.transact_write_items(
            TransactItems=[_conditional_put(users_table.name, email_lock), _conditional_put(users_table.name, item)]
        )
        return True
    except ClientError as e:
        if _condition_failed(e):
            raise DuplicateEmailError(item["email"]) from e
        logger.error(f"put_user failed: {e.response['Error']['Message']}")
        return False


def update_user(user_id: str, updates: dict, remove: Iterable[str] = ()):
    """
    SET the given attributes and REMOVE the named ones on a user.
    Returns the updated item or None.
    """
    try:
        response = users_table.update_item(
            Key={"user_id": user_id},
            ConditionExpression="attribute_exists(user_id)",
            ReturnValues="ALL_NEW",
            **_update_arguments(updates, remove),
        )
        attributes = response.get("Attributes")
        return _from_dynamo(attributes) if attributes else None
    except ClientError as e:
        logger.error(f"update_user failed: {e.response['Error']['Message']}")
        return None


# Transactions

def put_transaction(transaction_item: dict):
    """Insert a new transaction."""
    try:
        transactions_table.put_item(Item=_convert_for_dynamo(_drop_none(transaction_item)))
        return True
    except ClientError as e:
        logger.error(f"put_transaction failed: {e.response['Error']['Message']}")
        return False


def get_transaction(transaction_id: str):
    """Fetch a single transaction regardless of owner."""
    try:
        response = transactions_table.get_item(Key={"transaction_id": transaction_id})
        item = response.get("Item")
        return _from_dynamo(item) if item else None
    except ClientError as e:
        logger.error(f"get_transaction failed: {e.response['Error']['Message']}")
        return None


def get_transactions_for_user(user_id: str, month_prefix: Optional[str] = None) -> List[Dict[str, Any]]:
    """
    Query a user's transactions in date order.
    month_prefix: '2024-11' matches all items with sort_date like '2024-11-05'.
    """
    condition = Key("user_id").eq(user_id)
    if month_prefix:
        condition = condition & Key("sort_date").begins_with(month_prefix)

    query_kwargs: Dict[str, Any] = {"IndexName": USER_DATE_INDEX, "KeyConditionExpression": condition}
    items: List[Dict[str, Any]] = []
    try:
        while True:
            response = transactions_table.query(**query_kwargs)
            items.extend(response["Items"])
            last_key = response.get("LastEvaluatedKey")
            if not last_key:
                break
            query_kwargs["ExclusiveStartKey"] = last_key
    except ClientError as e:
        logger.error(f"get_transactions_for_user failed: {e.response['Error']['Message']}")
        return []
    return [_from_dynamo(item) for item in items]


def update_transaction(transaction_id: str, updates: dict, remove: Iterable[str] = ()):
    """
    Apply partial updates to a transaction. Returns the updated item or None.
    """
    if not updates and not remove:
        return None

    try:
        response = transactions_table.update_item(
            Key={"transaction_id": transaction_id},
            ConditionExpression="attribute_exists(transaction_id)",
            ReturnValues="ALL_NEW",
            **_update_arguments(updates, remove),
        )
        attributes = response.get("Attributes")
        return _from_dynamo(attributes) if attributes else None
    except ClientError as e:
        logger.error(f"update_transaction failed: {e.response['Error']['Message']}")
        return None


def delete_transaction(transaction_id: str):
    """Delete a specific transaction item."""
    try:
        response = transactions_table.delete_item(
            Key={"transaction_id": transaction_id},
            ReturnValues="ALL_OLD",
        )
        return "Attributes" in response
    except ClientError as e:
        logger.error(f"delete_transaction failed: {e.response['Error']['Message']}")
        return False


# Blacklisted tokens

def blacklist_token(token: str, expires_at: int):
    """
    Record a revoked token. DynamoDB TTL on ``expires_at`` removes the record
    once the token would have expired anyway.
    """
    try:
        blacklist_table.put_item(
            Item={
                "token": token,
                "created_at": _utcnow(),
                "expires_at": int(expires_at),
            }
        )
        return True
    except ClientError as e:
        logger.error(f"blacklist_token failed: {e.response['Error']['Message']}")
        return False


def is_token_blacklisted(token: str) -> bool:
    try:
        response = blacklist_table.get_item(Key={"token": token})
    except ClientError as e:
        logger.error(f"is_token_blacklisted failed: {e.response['Error']['Message']}")
        # An unreadable blacklist counts as a hit
        return True
    return "Item" in response


# Table bootstrap

def ensure_tables():
    """Create the users, transactions and blacklist tables if they are missing."""
    client = dynamodb.meta.client
    existing = set(client.list_tables()["TableNames"])

    definitions = [
        {
            "TableName": users_table.name,
            "KeySchema": [{"AttributeName": "user_id", "KeyType": "HASH"}],
            "AttributeDefinitions": [
                {"AttributeName": "user_id", "AttributeType": "S"},
                {"AttributeName": "email", "AttributeType": "S"},
                {"AttributeName": "refresh_token", "AttributeType": "S"},
            ],
            "GlobalSecondaryIndexes": [
                _gsi(EMAIL_INDEX, "email"),
                _gsi(REFRESH_TOKEN_INDEX, "refresh_token"),
            ],
        },
        {
            "TableName": transactions_table.name,
            "KeySchema": [{"AttributeName": "transaction_id", "KeyType": "HASH"}],
            "AttributeDefinitions": [
                {"AttributeName": "transaction_id", "AttributeType": "S"},
                {"AttributeName": "user_id", "AttributeType": "S"},
                {"AttributeName": "sort_date", "AttributeType": "S"},
            ],
            "GlobalSecondaryIndexes": [_gsi(USER_DATE_INDEX, "user_id", "sort_date")],
        },
        {
            "TableName": blacklist_table.name,
            "KeySchema": [{"AttributeName": "token", "KeyType": "HASH"}],
            "AttributeDefinitions": [{"AttributeName": "token", "AttributeType": "S"}],
        },
    ]

    created = []
    for definition in definitions:
        if definition["TableName"] in existing:
            continue
        client.create_table(BillingMode="PAY_PER_REQUEST", **definition)
        client.get_waiter("table_exists").wait(TableName=definition["TableName"])
        logger.info(f"Created DynamoDB table {definition['TableName']}")
        created.append(definition["TableName"])

    if blacklist_table.name in created:
        client.update_time_to_live(
            TableName=blacklist_table.name,
            TimeToLiveSpecification={"Enabled": True, "AttributeName": "expires_at"},
        )
    return created


def _gsi(name: str, hash_key: str, range_key: Optional[str] = None) -> dict:
    key_schema = [{"AttributeName": hash_key, "KeyType": "HASH"}]
    if range_key:
        key_schema.append({"AttributeName": range_key, "KeyType": "RANGE"})
    return {"IndexName": name, "KeySchema": key_schema, "Projection": {"ProjectionType": "ALL"}}


def _conditional_put(table_name: str, item: dict) -> dict:
    """A TransactWriteItems Put that only succeeds if the key is unused."""
    return {
        "Put": {
            "TableName": table_name,
            "Item": {key: _serializer.serialize(value) for key, value in item.items()},
            "ConditionExpression": "attribute_not_exists(user_id)",
        }
    }


def _condition_failed(error: ClientError) -> bool:
    code = error.response["Error"]["Code"]
    if code == "ConditionalCheckFailedException":
        return True
    if code != "TransactionCanceledException":
        return False
    reasons = error.response.get("CancellationReasons") or []
    if any(reason.get("Code") == "ConditionalCheckFailed" for reason in reasons):
        return True
    return "ConditionalCheckFailed" in error.response["Error"].get("Message", "")


def _update_arguments(updates: dict, remove: Iterable[str] = ()) -> dict:
    """Build UpdateExpression and its placeholder maps for SET/REMOVE."""
    expression_attribute_values = {}
    expression_attribute_names = {}
    set_parts = []
    remove_parts = []

    for idx, (key, value) in enumerate(updates.items()):
        placeholder = f"#f{idx}"
        value_placeholder = f":v{idx}"
        set_parts.append(f"{placeholder} = {value_placeholder}")
        expression_attribute_names[placeholder] = key
        expression_attribute_values[value_placeholder] = value

    for idx, key in enumerate(remove):
        placeholder = f"#r{idx}"
        remove_parts.append(placeholder)
        expression_attribute_names[placeholder] = key

    clauses = []
    if set_parts:
        clauses.append("SET " + ", ".join(set_parts))
    if remove_parts:
        clauses.append("REMOVE " + ", ".join(remove_parts))

    arguments = {
        "UpdateExpression": " ".join(clauses),
        "ExpressionAttributeNames": expression_attribute_names,
    }
    if expression_attribute_values:
        arguments["ExpressionAttributeValues"] = _convert_for_dynamo(expression_attribute_values)
    return arguments


def _utcnow() -> str:
    return datetime.now(timezone.utc).isoformat()


def _drop_none(item: dict) -> dict:
    return {k: v for k, v in item.items() if v is not None}


def _convert_for_dynamo(obj: Any):
    """
    Recursively convert floats to Decimal for DynamoDB compatibility.
    """
    if isinstance(obj, float):
        return Decimal(str(obj))
    if isinstance(obj, dict):
        return {k: _convert_for_dynamo(v) for k, v in obj.items()}
    if isinstance(obj, list):
        return [_convert_for_dynamo(v) for v in obj]
    return obj


def _from_dynamo(obj: Any):
    """
    Recursively convert Decimal instances back to native Python numeric types.
    """
    if isinstance(obj, list):
        return [_from_dynamo(item) for item in obj]
    if isinstance(obj, dict):
        return {k: _from_dynamo(v) for k, v in obj.items()}
    if isinstance(obj, Decimal):
        if obj % 1 == 0:
            return int(obj)
        return float(obj)
    return obj
