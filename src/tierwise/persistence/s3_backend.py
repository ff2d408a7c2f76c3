"""S3 audit log backend implementing IAuditLog.

Each consolidated result is archived as one JSON object at
``<prefix><request_id>.json``.
"""

from __future__ import annotations

from typing import Optional

import boto3
from botocore.exceptions import ClientError

from tierwise.core.exceptions import AuditLogError
from tierwise.models.consultation import ConsolidatedResult


class S3AuditLog:
    """IAuditLog backed by an S3 bucket."""

    def __init__(
        self,
        bucket: str,
        prefix: str = "consultations/",
        region: str = "us-east-1",
        endpoint_url: str | None = None,
    ) -> None:
        self._bucket = bucket
        self._prefix = prefix
        kwargs: dict = {"region_name": region}
        if endpoint_url:
            kwargs["endpoint_url"] = endpoint_url
        self._client = boto3.client("s3", **kwargs)

    def key_for(self, request_id: str) -> str:
        return f"{self._prefix}{request_id}.json"

    def append(self, result: ConsolidatedResult) -> None:
        key = self.key_for(result.request_id)
        try:
            self._client.put_object(
                Bucket=self._bucket,
                Key=key,
                Body=result.model_dump_json().encode("utf-8"),
                ContentType="application/json",
                Metadata={
                    "termination": result.termination.value,
                    "domain": result.domain,
                },
            )
        except ClientError as exc:
            raise AuditLogError(f"S3 append failed for {key!r}: {exc}") from exc

    def get(self, request_id: str) -> Optional[ConsolidatedResult]:
        key = self.key_for(request_id)
        try:
            resp = self._client.get_object(Bucket=self._bucket, Key=key)
        except ClientError as exc:
            if exc.response.get("Error", {}).get("Code") in ("NoSuchKey", "404"):
                return None
            raise AuditLogError(f"S3 read failed for {key!r}: {exc}") from exc
        return ConsolidatedResult.model_validate_json(resp["Body"].read())

    def list_request_ids(self) -> list[str]:
        try:
            ids: list[str] = []
            paginator = self._client.get_paginator("list_objects_v2")
            for page in paginator.paginate(Bucket=self._bucket, Prefix=self._prefix):
                for obj in page.get("Contents", []):
                    name = obj["Key"][len(self._prefix):]
                    if name.endswith(".json"):
                        ids.append(name[: -len(".json")])
            return ids
        except ClientError as exc:
            raise AuditLogError(f"S3 list failed for prefix={self._prefix!r}: {exc}") from exc
