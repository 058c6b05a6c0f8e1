# Path of the Dynatrace events endpoint, relative to the tenant URL
EVENTS_API_PATH = '/api/v1/events'

# `source` sent to Dynatrace when the caller did not set one
DEFAULT_SOURCE = 'Dynatrace AWS Lambda'

# `source` defaulted for events raised from a CodePipeline job
CODEPIPELINE_SOURCE = 'AWS CodePipeline'

# Dynatrace answers HTTP 400 with this in `error.message` when no monitored
# entity matches the attach rules
NO_MATCHING_ENTITIES_MARKER = 'No MEIdentifier do match'

# Name of the monspec file inside a CodePipeline input artifact (zip)
MONSPEC_FILE_NAME = 'monspec.json'

# CodePipeline action provider whose deployments enrich the event
CODEDEPLOY_PROVIDER = 'CodeDeploy'

# Notification status (CodeDeploy via SNS) that is logged by the handler
DEPLOYMENT_CREATED_STATUS = 'CREATED'

# Default HTTP timeout (seconds) for calls to the Dynatrace API
DEFAULT_TIMEOUT_S = 10.0

# Environment variables
ENV_API_TOKEN = 'DT_API_TOKEN'
ENV_TENANT_URL = 'DT_TENANT_URL'
# Optional SSM (SecureString) parameter holding the API token
ENV_API_TOKEN_PARAM = 'DT_API_TOKEN_PARAM'
ENV_APP = 'DTPUSH_APP'
ENV_ENV = 'DTPUSH_ENV'
ENV_QUIET_LEVEL = 'DTPUSH_QUIET_LEVEL'
ENV_LOG_LEVEL = 'DTPUSH_LOG_LEVEL'
ENV_TIMEOUT = 'DTPUSH_TIMEOUT'
ENV_CA_BUNDLE = 'DTPUSH_CA_BUNDLE'
