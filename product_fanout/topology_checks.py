"""
Checks on the wiring of a synthesized cloudformation template.

The fan-out only works if every piece is joined up:

- every queue is subscribed to the new product topic
- every queue has exactly one event source mapping
- every function has exactly one errors alarm
- every alarm notifies the alerts topic, and only that

These are checked on the template rather than the cdk constructs,
so they hold whatever constructs produced the resources.
"""

from product_fanout.settings import ALERTS_TOPIC_NAME, NEW_PRODUCT_TOPIC_NAME


class TopologyError(Exception):
    def __init__(self, violations):
        self.violations = list(violations)
        super().__init__("Topology violations:\n" + "\n".join(f"- {v}" for v in self.violations))


def resources_of_type(template: dict, resource_type: str) -> dict:
    return {
        logical_id: resource
        for logical_id, resource in template.get("Resources", {}).items()
        if resource.get("Type") == resource_type
    }


def find_topic(template: dict, topic_name: str):
    "Get the logical id of the topic with this name, or None."
    for logical_id, topic in resources_of_type(template, "AWS::SNS::Topic").items():
        if topic.get("Properties", {}).get("TopicName") == topic_name:
            return logical_id
    return None


def _arn_of(logical_id: str) -> dict:
    return {"Fn::GetAtt": [logical_id, "Arn"]}


def _alarmed_function(alarm: dict):
    properties = alarm.get("Properties", {})
    if properties.get("Namespace") != "AWS/Lambda" or properties.get("MetricName") != "Errors":
        return None
    for dimension in properties.get("Dimensions", []):
        if dimension.get("Name") == "FunctionName":
            value = dimension.get("Value")
            if isinstance(value, dict) and "Ref" in value:
                return value["Ref"]
    return None


def find_violations(
    template: dict,
    new_product_topic_name: str = NEW_PRODUCT_TOPIC_NAME,
    alerts_topic_name: str = ALERTS_TOPIC_NAME,
) -> list:
    violations = []

    new_product_topic = find_topic(template, new_product_topic_name)
    if new_product_topic is None:
        violations.append(f"no topic named {new_product_topic_name}")
    alerts_topic = find_topic(template, alerts_topic_name)
    if alerts_topic is None:
        violations.append(f"no topic named {alerts_topic_name}")

    queues = resources_of_type(template, "AWS::SQS::Queue")
    subscriptions = resources_of_type(template, "AWS::SNS::Subscription").values()
    mappings = resources_of_type(template, "AWS::Lambda::EventSourceMapping").values()

    for queue_id in queues:
        subscribed = any(
            subscription.get("Properties", {}).get("Protocol") == "sqs"
            and subscription.get("Properties", {}).get("TopicArn") == {"Ref": new_product_topic}
            and subscription.get("Properties", {}).get("Endpoint") == _arn_of(queue_id)
            for subscription in subscriptions
        )
        if new_product_topic is not None and not subscribed:
            violations.append(f"queue {queue_id} is not subscribed to {new_product_topic_name}")

        mapping_count = sum(
            1 for mapping in mappings if mapping.get("Properties", {}).get("EventSourceArn") == _arn_of(queue_id)
        )
        if mapping_count != 1:
            violations.append(f"queue {queue_id} has {mapping_count} event source mappings, expected 1")

    alarms = resources_of_type(template, "AWS::CloudWatch::Alarm")
    alarmed = [_alarmed_function(alarm) for alarm in alarms.values()]

    for function_id in resources_of_type(template, "AWS::Lambda::Function"):
        alarm_count = alarmed.count(function_id)
        if alarm_count != 1:
            violations.append(f"function {function_id} has {alarm_count} errors alarms, expected 1")

    if alerts_topic is not None:
        for alarm_id, alarm in alarms.items():
            actions = alarm.get("Properties", {}).get("AlarmActions", [])
            if actions != [{"Ref": alerts_topic}]:
                violations.append(f"alarm {alarm_id} does not notify {alerts_topic_name} alone: {actions}")

    return violations


def validate_topology(
    template: dict,
    new_product_topic_name: str = NEW_PRODUCT_TOPIC_NAME,
    alerts_topic_name: str = ALERTS_TOPIC_NAME,
) -> None:
    violations = find_violations(template, new_product_topic_name, alerts_topic_name)
    if violations:
        raise TopologyError(violations)
