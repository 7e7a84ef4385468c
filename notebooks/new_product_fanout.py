import marimo

__generated_with = "0.18.1"
app = marimo.App(width="medium")


@app.cell(hide_code=True)
def _():
    import marimo as mo
    return (mo,)


@app.cell(hide_code=True)
def _(mo):
    mo.md(r"""
    # New Product Fan-out

    When a product is added, we publish it to `new_product_topic`.
    Marketing, inventory and analytics each want to hear about it.
    Does one publish reach all three?
    And if a consumer blows up, do we find out?
    """)
    return


@app.cell(hide_code=True)
def _(mo):
    mo.md(r"""
    ## Stack

    - two topics: `new_product_topic` and `alerts_topic`
    - a queue per consumer, subscribed to `new_product_topic`
    - a function per consumer, polling its queue in batches of up to 5
    - an alarm per function, publishing to `alerts_topic` when the function errors at least once in 5 minutes
    """)
    return


@app.cell(hide_code=True)
def _(mo):
    mo.mermaid(
        """
    graph LR
        Z:::hidden -->|publishing| A[new_product_topic]
        A -->|delivers to| B[marketing_queue]
        A -->|delivers to| C[inventory_queue]
        A -->|delivers to| D[analytics_queue]
        B -->|polled by| E[marketing λ]
        C -->|polled by| F[inventory λ]
        D -->|polled by| G[analytics λ]
        E -->|errors trigger| H[alarm]
        F -->|errors trigger| I[alarm]
        G -->|errors trigger| J[alarm]
        H -->|publishes to| K[alerts_topic]
        I -->|publishes to| K
        J -->|publishes to| K
    """
    )
    return


@app.cell(hide_code=True)
def _(mo):
    mo.md(r"""
    ## Investigation
    """)
    return


@app.cell
def _():
    from datetime import datetime, timezone

    import boto3

    from product_fanout.publish import TEST_MESSAGE, publish_test_message, topic_arn

    session = boto3.Session()
    sns = session.client("sns")
    cloudwatch = session.client("cloudwatch")
    return (
        TEST_MESSAGE,
        cloudwatch,
        datetime,
        publish_test_message,
        session,
        sns,
        timezone,
        topic_arn,
    )


@app.cell
def _(session, topic_arn):
    new_product_topic_arn = topic_arn(session)
    new_product_topic_arn
    return (new_product_topic_arn,)


@app.cell
def _(TEST_MESSAGE):
    TEST_MESSAGE
    return


@app.cell
def _(datetime, new_product_topic_arn, publish_test_message, sns, timezone):
    start_time = datetime.now(timezone.utc)
    message_id = publish_test_message(sns, new_product_topic_arn)
    message_id
    return (start_time,)


@app.cell(hide_code=True)
def _(mo):
    mo.md(r"""
    Metrics take a while to show up.
    We'll wait a bit then check each function.
    """)
    return


@app.cell
def _():
    import time

    time.sleep(3 * 60)
    return


@app.cell
def _():
    from product_fanout.settings import FanoutSettings

    # the consumers the stack deploys by default
    consumers = FanoutSettings().consumers
    return (consumers,)


@app.cell
def _(cloudwatch, datetime, start_time, timezone):
    def lambda_metric_sum(function_name, metric_name):
        datapoints = cloudwatch.get_metric_statistics(
            MetricName=metric_name,
            Namespace="AWS/Lambda",
            Dimensions=[{"Name": "FunctionName", "Value": function_name}],
            StartTime=start_time,
            EndTime=datetime.now(timezone.utc),
            Statistics=["Sum"],
            Period=60,
        )["Datapoints"]
        return sum(datapoint["Sum"] for datapoint in datapoints)
    return (lambda_metric_sum,)


@app.cell
def _(consumers, lambda_metric_sum):
    {
        consumer: {
            "invocations": lambda_metric_sum(f"{consumer}_lambda", "Invocations"),
            "errors": lambda_metric_sum(f"{consumer}_lambda", "Errors"),
        }
        for consumer in consumers
    }
    return


@app.cell(hide_code=True)
def _(mo):
    mo.md(r"""
    One invocation each, no errors.
    The single publish reached every queue, and every function picked it up.
    """)
    return


@app.cell(hide_code=True)
def _(mo):
    mo.md(r"""
    ### Breaking a consumer

    A message without a `ProductID` makes the handlers raise.
    The message goes back to each queue and is retried until it expires,
    so every function errors and every alarm should fire.
    """)
    return


@app.cell
def _(datetime, new_product_topic_arn, publish_test_message, sns, timezone):
    bad_message_time = datetime.now(timezone.utc)
    publish_test_message(sns, new_product_topic_arn, message={"ProductName": "no id"})
    return (bad_message_time,)


@app.cell
def _():
    import time as _time

    _time.sleep(6 * 60)
    return


@app.cell
def _(cloudwatch, consumers):
    {
        alarm["AlarmName"]: alarm["StateValue"]
        for alarm in cloudwatch.describe_alarms(
            AlarmNames=[f"{consumer}_lambda_errors" for consumer in consumers]
        )["MetricAlarms"]
    }
    return


@app.cell
def _(bad_message_time, cloudwatch, consumers, datetime, timezone):
    cloudwatch.describe_alarm_history(
        AlarmName=f"{consumers[0]}_lambda_errors",
        HistoryItemType="Action",
        StartDate=bad_message_time,
        EndDate=datetime.now(timezone.utc),
    )["AlarmHistoryItems"]
    return


@app.cell(hide_code=True)
def _(mo):
    mo.md(r"""
    All three alarms go to `ALARM` and the history shows a successful publish to `alerts_topic`.

    The bad message keeps failing until the queue's retention period runs out,
    so purge the queues before moving on.
    """)
    return


@app.cell
def _(consumers, session):
    sqs = session.client("sqs")
    for consumer in consumers:
        sqs.purge_queue(QueueUrl=sqs.get_queue_url(QueueName=f"{consumer}_queue")["QueueUrl"])
    return


if __name__ == "__main__":
    app.run()
