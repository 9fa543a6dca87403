"""
Health Check Router
Liveness and DynamoDB connectivity endpoints
"""
import logging
from datetime import datetime, timezone

from botocore.exceptions import ClientError
from fastapi import APIRouter

from wallet_api.core.config import settings
from wallet_api.db import dynamo
from wallet_api.utils.scheduler import get_scheduler_status

router = APIRouter()
logger = logging.getLogger(__name__)


@router.get("/health")
def health_check():
    """
    Health check endpoint.
    Returns API status.
    """
    return {
        "status": "healthy",
        "service": settings.PROJECT_NAME,
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "scheduler": get_scheduler_status(),
    }


@router.get("/status")
def database_status():
    """
    Check that every DynamoDB table the API relies on is reachable:
    - Users
    - Transactions
    - Blacklisted tokens
    """
    tables = {
        "users": dynamo.users_table,
        "transactions": dynamo.transactions_table,
        "blacklisted_tokens": dynamo.blacklist_table,
    }

    table_status = {}
    for label, table in tables.items():
        try:
            table.scan(Limit=1)
            table_status[label] = {"name": table.name, "status": "accessible"}
        except ClientError as e:
            error_code = e.response.get("Error", {}).get("Code", "Unknown")
            table_status[label] = {"name": table.name, "status": "error", "error": error_code}
            logger.error(f"DynamoDB check failed for {table.name}: {str(e)}")

    connected = all(entry["status"] == "accessible" for entry in table_status.values())
    return {
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "region": settings.DYNAMO_REGION,
        "tables": table_status,
        "overall_status": "healthy" if connected else "degraded",
    }
