"""
DynamoDB-backed record store.

The table is keyed by ``userId`` (partition) and ``videoId`` (sort). boto3 is
synchronous, so every call runs in the default executor and is bounded by
``asyncio.wait_for`` on top of botocore's own connect/read timeouts.
"""

import asyncio
import functools
from decimal import Decimal
from typing import Any, Callable, Dict, List, Optional

import boto3
from boto3.dynamodb.conditions import Key
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from shared.errors import DependencyError
from shared.logging import get_logger
from .records import RecordStore, newest_first
from ..media.models import MediaRecord


def _to_dynamo(value: Any) -> Any:
    # The resource API rejects Python floats
    if isinstance(value, float):
        return Decimal(str(value))
    return value


class DynamoRecordStore(RecordStore):
    """Record store over a single DynamoDB table."""

    backend = "dynamodb"

    def __init__(
        self,
        table_name: str,
        region: Optional[str] = None,
        endpoint_url: Optional[str] = None,
        timeout: float = 5.0,
        table: Any = None,
    ):
        self.table_name = table_name
        self.timeout = timeout
        self.logger = get_logger("media.store.dynamodb")

        if table is None:
            config = Config(
                retries={"max_attempts": 2, "mode": "standard"},
                connect_timeout=timeout,
                read_timeout=timeout,
            )
            resource = boto3.resource(
                "dynamodb",
                region_name=region,
                endpoint_url=endpoint_url,
                config=config,
            )
            table = resource.Table(table_name)
        self._table = table

    async def _call(self, operation: str, fn: Callable[..., Any], **kwargs) -> Any:
        loop = asyncio.get_running_loop()
        try:
            return await asyncio.wait_for(
                loop.run_in_executor(None, functools.partial(fn, **kwargs)),
                timeout=self.timeout,
            )
        except asyncio.TimeoutError:
            self.logger.error("DynamoDB call timed out", operation=operation, table=self.table_name)
            raise DependencyError("dynamodb", "Request timed out", details={"operation": operation})
        except (BotoCoreError, ClientError) as e:
            self.logger.error("DynamoDB call failed", operation=operation, table=self.table_name, error=str(e))
            raise DependencyError("dynamodb", "Request failed", details={"operation": operation, "error": str(e)})

    async def put(self, record: MediaRecord) -> None:
        item = {key: _to_dynamo(value) for key, value in record.to_item().items()}
        await self._call("put_item", self._table.put_item, Item=item)

    async def get(self, owner_id: str, record_id: str) -> Optional[MediaRecord]:
        response = await self._call(
            "get_item",
            self._table.get_item,
            Key={"userId": owner_id, "videoId": record_id},
        )
        item = response.get("Item")
        return MediaRecord.from_item(item) if item else None

    async def update(self, owner_id: str, record_id: str, attributes: Dict[str, Any]) -> None:
        if not attributes:
            return

        names: Dict[str, str] = {}
        values: Dict[str, Any] = {}
        assignments: List[str] = []
        removals: List[str] = []
        for i, (attribute, value) in enumerate(attributes.items()):
            names[f"#a{i}"] = attribute
            if value is None:
                removals.append(f"#a{i}")
            else:
                values[f":v{i}"] = _to_dynamo(value)
                assignments.append(f"#a{i} = :v{i}")

        expression = []
        if assignments:
            expression.append("SET " + ", ".join(assignments))
        if removals:
            expression.append("REMOVE " + ", ".join(removals))

        params: Dict[str, Any] = {
            "Key": {"userId": owner_id, "videoId": record_id},
            "UpdateExpression": " ".join(expression),
            "ExpressionAttributeNames": names,
        }
        if values:
            params["ExpressionAttributeValues"] = values

        await self._call("update_item", self._table.update_item, **params)

    async def query_by_owner(self, owner_id: str) -> List[MediaRecord]:
        items: List[Dict[str, Any]] = []
        last_evaluated_key = None

        while True:
            query_params: Dict[str, Any] = {
                "KeyConditionExpression": Key("userId").eq(owner_id),
                "ScanIndexForward": False,
            }
            if last_evaluated_key:
                query_params["ExclusiveStartKey"] = last_evaluated_key

            response = await self._call("query", self._table.query, **query_params)
            items.extend(response.get("Items", []))

            last_evaluated_key = response.get("LastEvaluatedKey")
            if not last_evaluated_key:
                break

        # The sort key is the record id, so creation order comes from createdAt
        return newest_first([MediaRecord.from_item(item) for item in items])

    async def health_check(self) -> bool:
        try:
            await self._call("describe_table", self._table.load)
            return True
        except DependencyError:
            return False
