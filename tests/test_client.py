"""Tests for the meter lifecycle operations."""

import json

import pytest

from boundary_meter.meters.client import MeterClient
from boundary_meter.meters.exceptions import FailureKind, MeterNotFound
from boundary_meter.meters.models import Action, PlatformMetadata
from boundary_meter.meters.requests import auth_encode


SEARCH = ("GET", "/org1/meters")


def with_meter(fake_api, meter_id="42"):
    fake_api.add(*SEARCH, json=[{"id": meter_id, "name": "host-a"}])


class TestCreateMeter:
    """Tests for create_meter."""

    def test_single_post_with_name(self, fake_api, client):
        """Test the create request shape."""
        fake_api.add("POST", "/org1/meters", status_code=201)

        result = client.create_meter("host-a")

        assert result.ok is True
        assert len(fake_api.requests) == 1
        sent = fake_api.requests[0]
        assert sent.method == "POST"
        assert str(sent.url) == "https://api.example.com/org1/meters"
        assert json.loads(sent.content) == {"name": "host-a"}
        assert sent.headers["Authorization"] == f"Basic {auth_encode('test-api-key')}"
        assert sent.headers["Content-Type"] == "application/json"

    def test_failure_is_returned_not_raised(self, fake_api, client):
        fake_api.add("POST", "/org1/meters", status_code=500)

        result = client.create_meter("host-a")

        assert result.ok is False
        assert result.kind == FailureKind.TRANSPORT_FAILURE
        assert result.status_code == 500


class TestMeterExists:
    """Tests for meter_exists."""

    def test_empty_list_is_false(self, fake_api, client):
        fake_api.add(*SEARCH, json=[])

        result = client.meter_exists("host-a")

        assert result.ok is True
        assert result.value is False

    def test_non_empty_list_is_true(self, fake_api, client):
        with_meter(fake_api)

        result = client.meter_exists("host-a")

        assert result.ok is True
        assert result.value is True

    def test_searches_by_name(self, fake_api, client):
        fake_api.add(*SEARCH, json=[])

        client.meter_exists("host-a")

        assert str(fake_api.requests[0].url) == "https://api.example.com/org1/meters?name=host-a"

    def test_failed_request_is_not_false(self, fake_api, client):
        """Test that a missing response is a failure, not absence."""
        fake_api.add(*SEARCH, status_code=503)

        result = client.meter_exists("host-a")

        assert result.ok is False
        assert result.value is None
        assert result.kind == FailureKind.TRANSPORT_FAILURE

    def test_404_is_not_found_failure(self, client):
        result = client.meter_exists("host-a")

        assert result.ok is False
        assert result.kind == FailureKind.NOT_FOUND

    def test_non_json_body_is_malformed(self, fake_api, client):
        fake_api.add(*SEARCH, content=b"<html>oops</html>")

        result = client.meter_exists("host-a")

        assert result.kind == FailureKind.MALFORMED_RESPONSE

    def test_non_list_body_is_malformed(self, fake_api, client):
        fake_api.add(*SEARCH, json={"id": "42"})

        result = client.meter_exists("host-a")

        assert result.kind == FailureKind.MALFORMED_RESPONSE


class TestGetMeterId:
    """Tests for get_meter_id."""

    def test_returns_first_id(self, fake_api, client):
        fake_api.add(*SEARCH, json=[{"id": "42"}, {"id": "43"}])

        result = client.get_meter_id("host-a")

        assert result.ok is True
        assert result.value == "42"

    def test_numeric_id_is_returned_as_string(self, fake_api, client):
        fake_api.add(*SEARCH, json=[{"id": 42}])

        assert client.get_meter_id("host-a").value == "42"

    def test_empty_list_is_not_found(self, fake_api, client):
        fake_api.add(*SEARCH, json=[])

        result = client.get_meter_id("host-a")

        assert result.ok is False
        assert result.kind == FailureKind.NOT_FOUND
        with pytest.raises(MeterNotFound):
            result.unwrap()

    def test_entry_without_id_is_malformed(self, fake_api, client):
        fake_api.add(*SEARCH, json=[{"name": "host-a"}])

        result = client.get_meter_id("host-a")

        assert result.kind == FailureKind.MALFORMED_RESPONSE

    def test_failed_request(self, fake_api, client):
        fake_api.add(*SEARCH, status_code=500)

        result = client.get_meter_id("host-a")

        assert result.kind == FailureKind.TRANSPORT_FAILURE


class TestResolveUrl:
    """Tests for resolve_url."""

    def test_search_needs_no_lookup(self, fake_api, client):
        result = client.resolve_url("host-a", Action.SEARCH)

        assert result.value == "https://api.example.com/org1/meters?name=host-a"
        assert fake_api.requests == []

    def test_delete_resolves_id_first(self, fake_api, client):
        with_meter(fake_api)

        result = client.resolve_url("host-a", Action.DELETE)

        assert result.value == "https://api.example.com/org1/meters/42"
        assert len(fake_api.requests) == 1

    def test_lookup_failure_is_returned(self, fake_api, client):
        fake_api.add(*SEARCH, json=[])

        result = client.resolve_url("host-a", Action.TAGS)

        assert result.kind == FailureKind.NOT_FOUND


class TestDeleteAndDetail:
    """Tests for delete_meter and get_meter."""

    def test_delete_resolves_then_deletes(self, fake_api, client):
        with_meter(fake_api)
        fake_api.add("DELETE", "/org1/meters/42", status_code=204)

        result = client.delete_meter("host-a")

        assert result.ok is True
        assert [r.method for r in fake_api.requests] == ["GET", "DELETE"]
        assert str(fake_api.requests[1].url) == "https://api.example.com/org1/meters/42"

    def test_delete_404_is_logged_no_op(self, fake_api, client):
        with_meter(fake_api)

        result = client.delete_meter("host-a")

        assert result.ok is False
        assert result.status_code == 404

    def test_delete_unknown_meter_sends_no_delete(self, fake_api, client):
        fake_api.add(*SEARCH, json=[])

        result = client.delete_meter("host-a")

        assert result.kind == FailureKind.NOT_FOUND
        assert fake_api.sent("DELETE") == []

    def test_get_meter(self, fake_api, client):
        with_meter(fake_api)
        fake_api.add("GET", "/org1/meters/42", json={"id": "42", "name": "host-a"})

        result = client.get_meter("host-a")

        assert result.value == {"id": "42", "name": "host-a"}


class TestTags:
    """Tests for tagging operations."""

    def test_apply_tag_single_put(self, fake_api, client):
        with_meter(fake_api)
        fake_api.add("PUT", "/org1/meters/42/tags/production")

        result = client.apply_tag("host-a", "production")

        assert result.ok is True
        puts = fake_api.sent("PUT")
        assert len(puts) == 1
        assert str(puts[0].url).endswith("/tags/production")
        assert puts[0].content == b""

    def test_apply_tag_resolves_every_time(self, fake_api, client):
        with_meter(fake_api)
        fake_api.add("PUT", "/org1/meters/42/tags/a")
        fake_api.add("PUT", "/org1/meters/42/tags/b")

        client.apply_tags("host-a", ["a", "b"])

        assert [r.method for r in fake_api.requests] == ["GET", "PUT", "GET", "PUT"]

    def test_apply_tags_continues_after_failure(self, fake_api, client):
        with_meter(fake_api)
        fake_api.add("PUT", "/org1/meters/42/tags/b")

        results = client.apply_tags("host-a", ["a", "b"])

        assert [r.ok for r in results] == [False, True]

    def test_apply_cloud_tags_order(self, fake_api, client):
        """Test groups, then zone, then instance type."""
        with_meter(fake_api)
        for tag in ("web", "db", "us-east-1a", "m1.small"):
            fake_api.add("PUT", f"/org1/meters/42/tags/{tag}")
        metadata = PlatformMetadata.from_attributes(
            {
                "ec2": {
                    "security_groups": ["web", "db"],
                    "placement_availability_zone": "us-east-1a",
                    "instance_type": "m1.small",
                }
            }
        )

        results = client.apply_cloud_tags("host-a", metadata)

        assert len(results) == 4
        assert [r.value for r in results] == ["web", "db", "us-east-1a", "m1.small"]
        puts = fake_api.sent("PUT")
        assert [p.url.path.rsplit("/", 1)[1] for p in puts] == [
            "web",
            "db",
            "us-east-1a",
            "m1.small",
        ]

    def test_apply_cloud_tags_without_metadata(self, fake_api, client):
        assert client.apply_cloud_tags("host-a", PlatformMetadata()) == []
        assert fake_api.requests == []

    def test_apply_meter_tags_empty(self, fake_api, client):
        assert client.apply_meter_tags("host-a", []) == []
        assert fake_api.requests == []


class TestAnnotations:
    """Tests for annotation operations."""

    def test_create_annotation_body(self, fake_api, client, frozen_now):
        """Test that start and end time are the same frozen instant."""
        fake_api.add(
            "POST",
            "/org1/annotations",
            status_code=201,
            headers={"Location": "https://api.example.com/org1/annotations/7"},
        )

        result = client.create_annotation("deploy", "v1.2", ["web"])

        assert result.ok is True
        assert result.value == "https://api.example.com/org1/annotations/7"
        body = json.loads(fake_api.requests[0].content)
        assert body == {
            "type": "deploy",
            "subtype": "v1.2",
            "start_time": body["start_time"],
            "end_time": body["start_time"],
            "tags": ["web"],
        }
        assert body["start_time"].startswith(frozen_now.strftime("%Y-%m-%dT%H:%M:%S"))

    def test_create_annotation_is_deterministic(self, fake_api, client):
        fake_api.add("POST", "/org1/annotations", status_code=201)

        client.create_annotation("deploy", "v1.2")
        client.create_annotation("deploy", "v1.2")

        first, second = fake_api.requests
        assert first.content == second.content
        assert json.loads(first.content)["tags"] == []

    def test_create_annotation_failure(self, client):
        result = client.create_annotation("deploy", "v1.2")

        assert result.ok is False

    def test_opsworks_lifecycle_annotation(self, fake_api, client):
        fake_api.add("POST", "/org1/annotations", status_code=201)
        metadata = PlatformMetadata.from_attributes(
            {
                "fqdn": "host-a.example.com",
                "opsworks": {
                    "activity": "deploy",
                    "stack": {"name": "shop"},
                    "instance": {"layers": ["rails-app"]},
                    "applications": [{"name": "store", "application_type": "rails"}],
                },
            }
        )

        result = client.annotate_opsworks_lifecycle_event(metadata)

        assert result.ok is True
        body = json.loads(fake_api.requests[0].content)
        assert body["type"] == "OpsWorks Life Cycle Event on host-a.example.com"
        assert body["subtype"] == "deploy"
        assert body["tags"] == ["opsworks", "ec2", "shop", "rails-app", "store", "rails"]

    def test_no_activity_no_annotation(self, fake_api, client):
        metadata = PlatformMetadata.from_attributes({"opsworks": {"stack": {"name": "shop"}}})

        assert client.annotate(metadata) is None
        assert fake_api.requests == []


class TestFromSettings:
    """Tests for building a client from settings."""

    def test_from_settings(self, test_settings):
        client = MeterClient.from_settings(test_settings)

        assert client.endpoint.base_url == "https://api.example.com/org1"
        client.close()
