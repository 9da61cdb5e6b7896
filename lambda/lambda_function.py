import base64
import json
import logging
import os
from decimal import Decimal
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence

import boto3
from boto3.dynamodb.types import Binary, TypeDeserializer
from botocore.exceptions import BotoCoreError, ClientError

logger = logging.getLogger()
logger.setLevel(os.getenv('LOG_LEVEL', 'INFO'))

sns = boto3.client('sns')
deserializer = TypeDeserializer()

SNS_TOPIC_ARN = os.getenv('SNS_TOPIC_ARN')
FORWARD_EVENT_NAMES = tuple(
    name.strip()
    for name in os.getenv('FORWARD_EVENT_NAMES', 'REMOVE').split(',')
    if name.strip()
)

TTL_PRINCIPAL = 'dynamodb.amazonaws.com'


class DeadMansSwitchError(Exception):
    """Base class for processor errors."""


class ConfigurationError(DeadMansSwitchError):
    """The function was deployed without the configuration it needs."""


class MalformedRecordError(DeadMansSwitchError):
    """A stream record is missing the keys of the removed item."""


class PublishError(DeadMansSwitchError):
    """Publishing a notification to SNS failed."""


def lambda_handler(event: Dict[str, Any], context: Any) -> Dict[str, Any]:
    """
    Forward a batch of DynamoDB stream records to the SNS topic
    """
    records = event.get('Records') or []
    request_id = getattr(context, 'aws_request_id', None)
    logger.info(f"Received batch of {len(records)} stream records (request {request_id})")

    message_ids = process_records(
        records,
        topic_arn=SNS_TOPIC_ARN,
        publish=sns.publish,
        event_names=FORWARD_EVENT_NAMES,
    )

    return {
        'statusCode': 200,
        'body': json.dumps({
            'published': len(message_ids),
            'skipped': len(records) - len(message_ids),
            'message_ids': message_ids,
        })
    }


def process_records(
    records: Iterable[Dict[str, Any]],
    topic_arn: Optional[str],
    publish: Callable[..., Dict[str, Any]],
    event_names: Sequence[str] = ('REMOVE',),
) -> List[str]:
    """
    Publish one SNS message per forwarded record, in delivery order.

    Records whose eventName is not in ``event_names`` are skipped. The first
    failed publish aborts the batch so the event source mapping can retry it;
    records already published will be published again on retry.
    """
    if not topic_arn:
        raise ConfigurationError("SNS_TOPIC_ARN is not configured")

    message_ids = []
    for record in records:
        event_name = record.get('eventName')
        if event_name not in event_names:
            logger.info(f"Skipping {event_name} event {record.get('eventID')}")
            continue

        request = build_publish_request(record, topic_arn)
        try:
            response = publish(**request)
        except (ClientError, BotoCoreError) as e:
            logger.error(f"Failed to publish event {record.get('eventID')}: {str(e)}")
            raise PublishError(f"Failed to publish event {record.get('eventID')}") from e

        message_id = response.get('MessageId')
        logger.info(f"Published event {record.get('eventID')} as message {message_id}")
        message_ids.append(message_id)

    return message_ids


def build_publish_request(record: Dict[str, Any], topic_arn: str) -> Dict[str, Any]:
    """
    Build the keyword arguments of the sns.publish call for one record
    """
    event_name = record.get('eventName', 'UNKNOWN')
    message = {
        'keys': deserialize_keys(record),
        'eventName': event_name,
        'eventID': record.get('eventID'),
        'ttlExpired': is_ttl_expiry(record),
    }

    return {
        'TopicArn': topic_arn,
        'Message': json.dumps(message, sort_keys=True, default=_json_default),
        'MessageAttributes': {
            'eventName': {
                'DataType': 'String',
                'StringValue': event_name,
            }
        },
    }


def deserialize_keys(record: Dict[str, Any]) -> Dict[str, Any]:
    keys = (record.get('dynamodb') or {}).get('Keys')
    if not keys:
        raise MalformedRecordError(f"Stream record {record.get('eventID')} has no keys")
    return {name: deserializer.deserialize(value) for name, value in keys.items()}


def is_ttl_expiry(record: Dict[str, Any]) -> bool:
    # TTL deletions are attributed to the DynamoDB service principal
    identity = record.get('userIdentity') or {}
    return (
        record.get('eventName') == 'REMOVE'
        and identity.get('type') == 'Service'
        and identity.get('principalId') == TTL_PRINCIPAL
    )


def _json_default(value: Any) -> Any:
    if isinstance(value, Decimal):
        return int(value) if value == value.to_integral_value() else float(value)
    if isinstance(value, Binary):
        return base64.b64encode(value.value).decode('ascii')
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")
