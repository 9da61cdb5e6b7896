"""
Defaults for the dead man's switch constructs
"""

# Expiring record table
TABLE_NAME = "SlackThreadsTTL"
PARTITION_KEY = "id"
SORT_KEY = "channel"
TTL_ATTRIBUTE = "ttl"

# Stream processor
FUNCTION_NAME = "SlackThreadsDynamoDeadMansSwitch"
FUNCTION_TIMEOUT_SECONDS = 30
STREAM_BATCH_SIZE = 10
STREAM_RETRY_ATTEMPTS = 3
LOG_LEVEL = "INFO"

# Growthbook service
GROWTHBOOK_IMAGE = "growthbook/growthbook:latest"
GROWTHBOOK_UI_PORT = 3000
GROWTHBOOK_API_PORT = 3100
MONGO_SECRET_NAME = "prod/mongo"
EMAIL_SECRET_NAME = "prod/email"
