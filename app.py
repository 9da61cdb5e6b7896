#!/usr/bin/env python3
import os

import aws_cdk as cdk

from dead_mans_switch.dead_mans_switch_stack import DeadMansSwitchStack, growthbook_settings_from_context


app = cdk.App()

notification_url = app.node.try_get_context("notification_url") or os.getenv("NOTIFICATION_URL")
if not notification_url:
    raise ValueError("notification_url must be set in cdk.json context or NOTIFICATION_URL")

# Growthbook is deployed only when its settings are present
growthbook_settings = growthbook_settings_from_context(app.node.try_get_context("growthbook"))

DeadMansSwitchStack(app, "DynamoDBDeadMansSwitchStack",
    notification_url=notification_url,
    growthbook_settings=growthbook_settings or None,
    env=cdk.Environment(
        account=os.getenv('CDK_DEFAULT_ACCOUNT'),
        region=os.getenv('CDK_DEFAULT_REGION', 'us-east-1')
    ),
    description="DynamoDB TTL expiry notifications delivered over HTTPS"
)

cdk.Tags.of(app).add("Project", "dynamodb-dead-mans-switch")
cdk.Tags.of(app).add("ManagedBy", "CDK")

app.synth()
