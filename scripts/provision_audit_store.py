"""Provision the consultation audit stores and validate a specialist catalog.

Usage:
    python scripts/provision_audit_store.py --endpoint-url http://localhost:4566
    python scripts/provision_audit_store.py --catalog ./my_catalog.json --skip-aws
"""

from __future__ import annotations

import argparse
from typing import Any

import boto3
from botocore.exceptions import ClientError

from tierwise.core.exceptions import ConfigError
from tierwise.specialists.catalog import build_registry, load_catalog

DEFAULT_TABLE = "tierwise-consultation-audit"
DEFAULT_BUCKET = "tierwise-consultations"


def create_audit_table(ddb: Any, table_name: str = DEFAULT_TABLE, suffix: str = "") -> bool:
    """Create the audit table. Returns False if it already exists."""
    client = ddb.meta.client
    full_name = f"{table_name}{suffix}"
    existing = client.list_tables().get("TableNames", [])
    if full_name in existing:
        print(f"  Table {full_name} already exists, skipping")
        return False
    client.create_table(
        TableName=full_name,
        KeySchema=[
            {"AttributeName": "PK", "KeyType": "HASH"},
            {"AttributeName": "SK", "KeyType": "RANGE"},
        ],
        AttributeDefinitions=[
            {"AttributeName": "PK", "AttributeType": "S"},
            {"AttributeName": "SK", "AttributeType": "S"},
        ],
        BillingMode="PAY_PER_REQUEST",
    )
    print(f"  Created table {full_name}")
    return True


def create_archive_bucket(s3: Any, bucket: str = DEFAULT_BUCKET, region: str = "us-east-1") -> bool:
    """Create the S3 archive bucket. Returns False if it already exists."""
    try:
        s3.head_bucket(Bucket=bucket)
        print(f"  Bucket {bucket} already exists, skipping")
        return False
    except ClientError as exc:
        if exc.response.get("Error", {}).get("Code") not in ("404", "NoSuchBucket"):
            raise

    kwargs: dict[str, Any] = {"Bucket": bucket}
    if region != "us-east-1":
        kwargs["CreateBucketConfiguration"] = {"LocationConstraint": region}
    s3.create_bucket(**kwargs)
    print(f"  Created bucket {bucket}")
    return True


def validate_catalog(path: str | None = None) -> int:
    """Load a catalog and build its registry. Returns the specialist count."""
    catalog = load_catalog(path)
    registry = build_registry(catalog)
    for desc in registry.descriptors():
        targets = ", ".join(f"{c.condition}->{c.target_label}" for c in desc.handoff_criteria) or "-"
        print(f"  {desc.domain:<14} {desc.tier.name:<7} {desc.id:<28} {targets}")
    return len(registry)


def main() -> None:
    parser = argparse.ArgumentParser(description="Provision Tierwise audit stores")
    parser.add_argument("--endpoint-url", default=None, help="AWS endpoint (e.g. http://localhost:4566)")
    parser.add_argument("--table-name", default=DEFAULT_TABLE, help="DynamoDB audit table name")
    parser.add_argument("--table-suffix", default="", help="Table name suffix (e.g. -dev)")
    parser.add_argument("--bucket", default=DEFAULT_BUCKET, help="S3 archive bucket")
    parser.add_argument("--region", default="us-east-1", help="AWS region")
    parser.add_argument("--catalog", default=None, help="Catalog JSON to validate (default: packaged)")
    parser.add_argument("--skip-aws", action="store_true", help="Only validate the catalog")
    args = parser.parse_args()

    print("Validating catalog...")
    try:
        count = validate_catalog(args.catalog)
    except ConfigError as exc:
        parser.exit(1, f"Catalog invalid: {exc}\n")
    print(f"  {count} specialists OK")

    if args.skip_aws:
        print("Done!")
        return

    kwargs: dict[str, Any] = {"region_name": args.region}
    if args.endpoint_url:
        kwargs["endpoint_url"] = args.endpoint_url

    print("Creating audit table...")
    create_audit_table(boto3.resource("dynamodb", **kwargs), args.table_name, args.table_suffix)

    print("Creating archive bucket...")
    create_archive_bucket(boto3.client("s3", **kwargs), args.bucket, args.region)

    print("Done!")


if __name__ == "__main__":
    main()
