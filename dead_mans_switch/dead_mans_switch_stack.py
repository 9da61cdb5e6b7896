from typing import Any, Dict, Optional

from aws_cdk import (
    CfnOutput,
    Stack,
)
from constructs import Construct

from dead_mans_switch.ddb_deleted_items_to_https import DDBDeletedItemsToHttps
from dead_mans_switch.growthbook import Growthbook

GROWTHBOOK_KEYS = (
    "hosted_zone_name",
    "hosted_zone_id",
    "growthbook_host",
    "email_host",
    "email_port",
    "email_from_address",
)


def growthbook_settings_from_context(context: Optional[Dict[str, Any]]) -> Dict[str, str]:
    """
    Pick the Growthbook keyword arguments out of CDK context.

    Values are stringified (container environment values must be strings,
    context may hold email_port as a JSON number). Empty values are dropped.
    """
    context = context or {}
    return {
        key: str(context[key])
        for key in GROWTHBOOK_KEYS
        if context.get(key) not in (None, "")
    }


class DeadMansSwitchStack(Stack):

    def __init__(
        self,
        scope: Construct,
        construct_id: str,
        *,
        notification_url: str,
        growthbook_settings: Optional[Dict[str, Any]] = None,
        **kwargs
    ) -> None:
        super().__init__(scope, construct_id, **kwargs)

        self.dead_mans_switch = DDBDeletedItemsToHttps(
            self, "DDBDeletedItemsToHTTPS",
            notification_url=notification_url,
        )

        self.growthbook = None
        if growthbook_settings:
            self.growthbook = Growthbook(self, "Growthbook", **growthbook_settings)

        CfnOutput(self, "TableName",
            value=self.dead_mans_switch.table.table_name,
            description="DynamoDB table whose expired items trigger notifications"
        )

        CfnOutput(self, "TopicArn",
            value=self.dead_mans_switch.topic.topic_arn,
            description="SNS topic delivering expiry notifications"
        )

        CfnOutput(self, "ProcessorFunctionName",
            value=self.dead_mans_switch.function.function_name,
            description="Lambda function forwarding stream records to SNS"
        )
