"""DynamoDB audit log backend implementing IAuditLog.

Items are keyed ``PK=REQUEST#<request_id>``, ``SK=RESULT``. The full result
is stored as a JSON string so float confidences never hit DynamoDB's
Decimal-only number type; a few scalar attributes are kept alongside for
console queries.
"""

from __future__ import annotations

from typing import Any, Optional

import boto3
from botocore.exceptions import ClientError

from tierwise.core.exceptions import AuditLogError
from tierwise.models.consultation import ConsolidatedResult

RESULT_SK = "RESULT"


def request_pk(request_id: str) -> str:
    return f"REQUEST#{request_id}"


class DynamoDBAuditLog:
    """IAuditLog backed by a single DynamoDB table."""

    def __init__(
        self,
        table_name: str = "tierwise-consultation-audit",
        table_suffix: str = "",
        region: str = "us-east-1",
        endpoint_url: str | None = None,
    ) -> None:
        kwargs: dict = {"region_name": region}
        if endpoint_url:
            kwargs["endpoint_url"] = endpoint_url
        self._ddb = boto3.resource("dynamodb", **kwargs)
        self._table = self._ddb.Table(f"{table_name}{table_suffix}")

    def append(self, result: ConsolidatedResult) -> None:
        item: dict[str, Any] = {
            "PK": request_pk(result.request_id),
            "SK": RESULT_SK,
            "task_id": result.task_id,
            "domain": result.domain,
            "termination": result.termination.value,
            "final_tier": result.final_tier.name if result.final_tier else "",
            "degraded": result.degraded,
            "result": result.model_dump_json(),
        }
        try:
            self._table.put_item(
                Item=item,
                ConditionExpression="attribute_not_exists(PK)",
            )
        except ClientError as exc:
            if exc.response.get("Error", {}).get("Code") == "ConditionalCheckFailedException":
                raise AuditLogError(
                    f"Result for request {result.request_id!r} already recorded"
                ) from exc
            raise AuditLogError(f"DynamoDB append failed for {result.request_id!r}: {exc}") from exc

    def get(self, request_id: str) -> Optional[ConsolidatedResult]:
        try:
            resp = self._table.get_item(Key={"PK": request_pk(request_id), "SK": RESULT_SK})
        except ClientError as exc:
            raise AuditLogError(f"DynamoDB read failed for {request_id!r}: {exc}") from exc
        item = resp.get("Item")
        if not item:
            return None
        return ConsolidatedResult.model_validate_json(item["result"])
