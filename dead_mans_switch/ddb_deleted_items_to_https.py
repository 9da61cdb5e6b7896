import os
from urllib.parse import urlparse

from aws_cdk import (
    Duration,
    RemovalPolicy,
    Token,
    aws_dynamodb as dynamodb,
    aws_iam as iam,
    aws_lambda as lambda_,
    aws_lambda_event_sources as lambda_event_sources,
    aws_logs as logs,
    aws_sns as sns,
)
from constructs import Construct

from dead_mans_switch import constants

LAMBDA_ASSET_PATH = os.path.join(os.path.dirname(os.path.dirname(os.path.abspath(__file__))), "lambda")


class DDBDeletedItemsToHttps(Construct):
    """
    Items that reach their TTL in the DynamoDB table are delivered to a Lambda
    function that publishes them to an SNS topic. SNS delivers each message to
    the HTTPS endpoint given as ``notification_url``.
    """

    def __init__(
        self,
        scope: Construct,
        construct_id: str,
        *,
        notification_url: str,
        table_name: str = constants.TABLE_NAME,
        function_name: str = constants.FUNCTION_NAME,
        only_removals: bool = True,
        retry_attempts: int = constants.STREAM_RETRY_ATTEMPTS,
        batch_size: int = constants.STREAM_BATCH_SIZE,
        log_level: str = constants.LOG_LEVEL,
    ) -> None:
        super().__init__(scope, construct_id)

        validate_notification_url(notification_url)

        self.table = dynamodb.Table(
            self, "SlackThreadsTable",
            table_name=table_name,
            partition_key=dynamodb.Attribute(
                name=constants.PARTITION_KEY,
                type=dynamodb.AttributeType.STRING
            ),
            sort_key=dynamodb.Attribute(
                name=constants.SORT_KEY,
                type=dynamodb.AttributeType.STRING
            ),
            billing_mode=dynamodb.BillingMode.PAY_PER_REQUEST,
            encryption=dynamodb.TableEncryption.DEFAULT,
            stream=dynamodb.StreamViewType.KEYS_ONLY,
            time_to_live_attribute=constants.TTL_ATTRIBUTE,
        )

        # DynamoDB Streams only deliver to Lambda and Kinesis, so a function
        # bridges the stream to the topic
        self.topic = sns.Topic(self, "SlackThreads")

        self.subscription = sns.Subscription(
            self, "Subscription",
            topic=self.topic,
            endpoint=notification_url,
            protocol=sns.SubscriptionProtocol.HTTPS,
        )

        forward_event_names = ["REMOVE"] if only_removals else ["INSERT", "MODIFY", "REMOVE"]

        log_group = logs.LogGroup(
            self, "ProcessorLogGroup",
            log_group_name=f"/aws/lambda/{function_name}",
            retention=logs.RetentionDays.ONE_WEEK,
            removal_policy=RemovalPolicy.DESTROY,
        )

        self.function = lambda_.Function(
            self, function_name,
            function_name=function_name,
            description="Process DynamoDB records deleted from the SlackThreads table",
            runtime=lambda_.Runtime.PYTHON_3_12,
            handler="lambda_function.lambda_handler",
            code=lambda_.Code.from_asset(LAMBDA_ASSET_PATH),
            timeout=Duration.seconds(constants.FUNCTION_TIMEOUT_SECONDS),
            environment={
                "SNS_TOPIC_ARN": self.topic.topic_arn,
                "FORWARD_EVENT_NAMES": ",".join(forward_event_names),
                "LOG_LEVEL": log_level,
            },
            log_group=log_group,
        )

        filters = None
        if only_removals:
            filters = [
                lambda_.FilterCriteria.filter({
                    "eventName": lambda_.FilterRule.is_equal("REMOVE")
                })
            ]

        self.function.add_event_source(
            lambda_event_sources.DynamoEventSource(
                self.table,
                starting_position=lambda_.StartingPosition.LATEST,
                batch_size=batch_size,
                retry_attempts=retry_attempts,
                filters=filters,
            )
        )

        # Publishing to the one topic is the only SNS capability the function gets
        publish_policy = iam.Policy(
            self, "SnsPublishPolicy",
            statements=[
                iam.PolicyStatement(
                    effect=iam.Effect.ALLOW,
                    actions=["sns:Publish"],
                    resources=[self.topic.topic_arn],
                )
            ],
        )
        self.function.role.attach_inline_policy(publish_policy)


def validate_notification_url(notification_url: str) -> None:
    if Token.is_unresolved(notification_url):
        return
    parsed = urlparse(notification_url or "")
    if parsed.scheme != "https":
        raise ValueError(f"notification_url must be an HTTPS URL, got {notification_url!r}")
    if not parsed.netloc.strip():
        raise ValueError(f"notification_url is missing a host, got {notification_url!r}")
