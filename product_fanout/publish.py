import json
from typing import Optional

from product_fanout.settings import NEW_PRODUCT_TOPIC_NAME

# the message we publish by hand to check the fan-out end to end
TEST_MESSAGE = {
    "ProductID": "hello_world",
    "ProductName": "Hello World",
    "Price": 0,
}


def topic_arn(session, topic_name: str = NEW_PRODUCT_TOPIC_NAME) -> str:
    "Build a topic's arn from the session's region and the caller's account."
    account = session.client("sts").get_caller_identity()["Account"]
    return f"arn:aws:sns:{session.region_name}:{account}:{topic_name}"


def publish_test_message(sns, topic_arn: str, message: Optional[dict] = None) -> str:
    if message is None:
        message = TEST_MESSAGE
    response = sns.publish(TopicArn=topic_arn, Message=json.dumps(message))
    return response["MessageId"]
