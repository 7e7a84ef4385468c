from pathlib import Path
from typing import Optional

from aws_cdk import CfnOutput, Duration, RemovalPolicy, Stack
from aws_cdk import aws_cloudwatch as cloudwatch
from aws_cdk import aws_cloudwatch_actions as cloudwatch_actions
from aws_cdk import aws_iam as iam
from aws_cdk import aws_lambda as lambda_
from aws_cdk import aws_lambda_event_sources as event_sources
from aws_cdk import aws_logs as logs
from aws_cdk import aws_sns as sns
from aws_cdk import aws_sns_subscriptions as subscriptions
from aws_cdk import aws_sqs as sqs
from constructs import Construct

from product_fanout.settings import ALERTS_TOPIC_NAME, NEW_PRODUCT_TOPIC_NAME, FanoutSettings

CONSUMERS_CODE_DIR = Path(__file__).parent / "consumers"

FUNCTION_TIMEOUT = Duration.seconds(30)
# at least 6x the function timeout
QUEUE_VISIBILITY_TIMEOUT = Duration.seconds(180)


class ProductFanoutStack(Stack):
    def __init__(
        self,
        scope: Construct,
        construct_id: str,
        settings: Optional[FanoutSettings] = None,
        **kwargs,
    ) -> None:
        super().__init__(scope, construct_id, **kwargs)

        self.settings = settings or FanoutSettings()

        self.alerts_topic = sns.Topic(
            self,
            "AlertsTopic",
            topic_name=ALERTS_TOPIC_NAME,
        )
        self.alerts_topic.apply_removal_policy(policy=RemovalPolicy.DESTROY)
        if self.settings.alert_email:
            self.alerts_topic.add_subscription(subscriptions.EmailSubscription(self.settings.alert_email))

        self.new_product_topic = sns.Topic(
            self,
            "NewProductTopic",
            topic_name=NEW_PRODUCT_TOPIC_NAME,
        )
        self.new_product_topic.apply_removal_policy(policy=RemovalPolicy.DESTROY)

        # all consumers share one role
        # each sqs event source adds consume permissions for its own queue to the role's default policy
        self.consumer_role = iam.Role(
            self,
            "ConsumerRole",
            assumed_by=iam.ServicePrincipal("lambda.amazonaws.com"),
            managed_policies=[
                iam.ManagedPolicy.from_aws_managed_policy_name("service-role/AWSLambdaBasicExecutionRole"),
            ],
        )

        self.queues = {}
        self.functions = {}
        self.alarms = {}
        for consumer in self.settings.consumers:
            self._add_consumer(consumer)

        CfnOutput(self, "NewProductTopicArn", value=self.new_product_topic.topic_arn)
        CfnOutput(self, "AlertsTopicArn", value=self.alerts_topic.topic_arn)

    def _add_consumer(self, consumer: str) -> None:
        prefix = consumer.title()
        function_name = f"{consumer}_lambda"

        queue = sqs.Queue(
            self,
            f"{prefix}Queue",
            queue_name=f"{consumer}_queue",
            visibility_timeout=QUEUE_VISIBILITY_TIMEOUT,
            removal_policy=RemovalPolicy.DESTROY,
        )

        # this adds the subscription, and a queue policy allowing the topic to send to the queue
        self.new_product_topic.add_subscription(subscriptions.SqsSubscription(queue))

        # we set up the log group separately so we can configure the removal policy
        log_group = logs.LogGroup(
            self,
            f"{prefix}LogGroup",
            log_group_name=f"/aws/lambda/{function_name}",
            removal_policy=RemovalPolicy.DESTROY,
            retention=logs.RetentionDays.ONE_WEEK,
        )

        function = lambda_.Function(
            self,
            f"{prefix}Lambda",
            function_name=function_name,
            runtime=lambda_.Runtime.PYTHON_3_13,
            handler=f"consumers.{consumer}_handler",
            code=lambda_.Code.from_asset(str(CONSUMERS_CODE_DIR), exclude=["__pycache__"]),
            role=self.consumer_role,
            timeout=FUNCTION_TIMEOUT,
            log_group=log_group,
            environment={"CONSUMER": consumer},
        )

        function.add_event_source(
            event_sources.SqsEventSource(
                queue,
                batch_size=self.settings.batch_size,
                enabled=True,
            )
        )

        errors_alarm = cloudwatch.Alarm(
            self,
            f"{prefix}LambdaErrorsAlarm",
            alarm_name=f"{function_name}_errors",
            metric=function.metric_errors(
                period=Duration.minutes(self.settings.alarm_period_minutes),
                statistic="Sum",
            ),
            comparison_operator=cloudwatch.ComparisonOperator.GREATER_THAN_OR_EQUAL_TO_THRESHOLD,
            threshold=self.settings.error_threshold,
            evaluation_periods=1,
            treat_missing_data=cloudwatch.TreatMissingData.NOT_BREACHING,
        )
        errors_alarm.add_alarm_action(cloudwatch_actions.SnsAction(self.alerts_topic))

        self.queues[consumer] = queue
        self.functions[consumer] = function
        self.alarms[consumer] = errors_alarm
