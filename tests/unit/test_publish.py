import json

import boto3
import botocore.session
import pytest
from botocore.exceptions import ClientError
from botocore.stub import Stubber

from product_fanout.publish import TEST_MESSAGE, publish_test_message, topic_arn

TOPIC_ARN = "arn:aws:sns:eu-west-2:123456789012:new_product_topic"


@pytest.fixture
def sns():
    client = botocore.session.get_session().create_client(
        "sns",
        region_name="eu-west-2",
        aws_access_key_id="testing",
        aws_secret_access_key="testing",
    )
    with Stubber(client) as stubber:
        yield client, stubber


def test_test_message_is_hello_world():
    assert TEST_MESSAGE["ProductID"] == "hello_world"


def test_publish_test_message(sns):
    client, stubber = sns
    stubber.add_response(
        "publish",
        {"MessageId": "abc-123"},
        {"TopicArn": TOPIC_ARN, "Message": json.dumps(TEST_MESSAGE)},
    )

    assert publish_test_message(client, TOPIC_ARN) == "abc-123"
    stubber.assert_no_pending_responses()


def test_publish_custom_message(sns):
    client, stubber = sns
    message = {"ProductName": "no id"}
    stubber.add_response(
        "publish",
        {"MessageId": "def-456"},
        {"TopicArn": TOPIC_ARN, "Message": json.dumps(message)},
    )

    assert publish_test_message(client, TOPIC_ARN, message=message) == "def-456"
    assert TEST_MESSAGE["ProductID"] == "hello_world"


def test_publish_error_propagates(sns):
    client, stubber = sns
    stubber.add_client_error("publish", service_error_code="NotFound", http_status_code=404)

    with pytest.raises(ClientError) as excinfo:
        publish_test_message(client, TOPIC_ARN)

    assert excinfo.value.response["Error"]["Code"] == "NotFound"


def test_topic_arn_from_session():
    session = boto3.Session(
        region_name="eu-west-2",
        aws_access_key_id="testing",
        aws_secret_access_key="testing",
    )
    sts = session.client("sts")

    class StubbedSession:
        region_name = session.region_name

        def client(self, service_name):
            assert service_name == "sts"
            return sts

    with Stubber(sts) as stubber:
        stubber.add_response(
            "get_caller_identity",
            {"Account": "123456789012", "Arn": "arn:aws:iam::123456789012:user/me", "UserId": "AIDEXAMPLE"},
            {},
        )
        assert topic_arn(StubbedSession()) == TOPIC_ARN
