"""Unit tests for S3AuditLog using moto."""

from __future__ import annotations

import json

import boto3
import pytest
from moto import mock_aws

from tierwise.core.exceptions import AuditLogError
from tierwise.persistence.s3_backend import S3AuditLog
from tests.fakes import make_result

BUCKET = "test-consultations"


@pytest.fixture
def s3():
    with mock_aws():
        client = boto3.client("s3", region_name="us-east-1")
        client.create_bucket(Bucket=BUCKET)
        yield client


@pytest.fixture
def audit_log(s3):
    return S3AuditLog(bucket=BUCKET, region="us-east-1")


class TestAppend:
    def test_writes_json_object_under_prefix(self, audit_log, s3, result):
        audit_log.append(result)
        obj = s3.get_object(Bucket=BUCKET, Key="consultations/req-1.json")
        body = json.loads(obj["Body"].read())
        assert body["request_id"] == "req-1"
        assert obj["ContentType"] == "application/json"

    def test_sets_metadata(self, audit_log, s3, result):
        audit_log.append(result)
        head = s3.head_object(Bucket=BUCKET, Key=audit_log.key_for("req-1"))
        assert head["Metadata"] == {"termination": "no-handoff", "domain": "security"}

    def test_missing_bucket_raises_audit_error(self, s3, result):
        with pytest.raises(AuditLogError):
            S3AuditLog(bucket="no-such-bucket", region="us-east-1").append(result)


class TestGet:
    def test_round_trips_result(self, audit_log, result):
        audit_log.append(result)
        loaded = audit_log.get("req-1")
        assert loaded.request_id == "req-1"
        assert loaded.chain[0].specialist_id == "security-generalist"
        assert loaded.overall_confidence == 0.75

    def test_missing_key_returns_none(self, audit_log):
        assert audit_log.get("never-written") is None

    def test_missing_bucket_raises_audit_error(self, s3):
        with pytest.raises(AuditLogError):
            S3AuditLog(bucket="no-such-bucket", region="us-east-1").get("req-1")


class TestListRequestIds:
    def test_lists_ids_under_prefix(self, audit_log, s3):
        audit_log.append(make_result("a"))
        audit_log.append(make_result("b"))
        s3.put_object(Bucket=BUCKET, Key="other/c.json", Body=b"{}")
        assert sorted(audit_log.list_request_ids()) == ["a", "b"]

    def test_custom_prefix(self, s3):
        log = S3AuditLog(bucket=BUCKET, prefix="archive/2026/", region="us-east-1")
        log.append(make_result("x"))
        assert log.key_for("x") == "archive/2026/x.json"
        assert log.list_request_ids() == ["x"]

    def test_handles_pagination(self, audit_log, s3):
        for i in range(1050):
            s3.put_object(Bucket=BUCKET, Key=f"consultations/{i:04d}.json", Body=b"{}")
        assert len(audit_log.list_request_ids()) == 1050
