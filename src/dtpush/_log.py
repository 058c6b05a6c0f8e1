from logging import WARNING, getLogger

LOG = getLogger('dtpush')

# boto3 chatty stack, plus the HTTP layer underneath it
THIRD_PARTY_LOGGERS = (
    'botocore',
    'botocore.hooks',
    'botocore.endpoint',
    'botocore.auth',
    'botocore.credentials',
    'boto3',
    'urllib3',
    's3transfer',
)


def quiet_third_party_logs(level: int = WARNING) -> None:
    for name in THIRD_PARTY_LOGGERS:
        getLogger(name).setLevel(level)
