"""
Handlers for the queues subscribed to `new_product_topic`.

This file is the whole of the lambda code asset, so it only imports the standard library.
Each queue message body is an sns notification envelope, the product itself is in its `Message`.

A malformed message raises, failing the whole batch.
That counts as a lambda error, which is what the errors alarms watch.
"""

import json
import logging
import os

logger = logging.getLogger()
logger.setLevel(os.environ.get("LOG_LEVEL", "INFO").upper())


def products(event):
    for record in event["Records"]:
        body = json.loads(record["body"])
        if isinstance(body, dict) and body.get("Type") == "Notification":
            if body.get("Message") is None:
                raise ValueError(f"Message {record['messageId']} is a notification without a Message")
            body = json.loads(body["Message"])
        if not isinstance(body, dict):
            raise ValueError(f"Message {record['messageId']} is not a json object")
        if "ProductID" not in body:
            raise ValueError(f"Message {record['messageId']} has no ProductID")
        yield body


def _consume(event, action):
    consumer = os.environ.get("CONSUMER", "unknown")
    product_ids = []
    for product in products(event):
        logger.info("%s: %s product %s", consumer, action, product["ProductID"])
        product_ids.append(product["ProductID"])
    return product_ids


def marketing_handler(event, context):
    return {"announced": _consume(event, "announcing")}


def inventory_handler(event, context):
    return {"registered": _consume(event, "registering")}


def analytics_handler(event, context):
    return {"recorded": _consume(event, "recording")}
