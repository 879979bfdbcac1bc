import os
from typing import Final

# - Providers -
CONSENSUS_CLIENT_URI: Final = os.getenv('CONSENSUS_CLIENT_URI', 'http://localhost:3500').split(',')

# - HTTP variables -
HTTP_REQUEST_TIMEOUT_CONSENSUS: Final = int(os.getenv('HTTP_REQUEST_TIMEOUT_CONSENSUS', 2 * 60))
HTTP_REQUEST_RETRY_COUNT_CONSENSUS: Final = int(os.getenv('HTTP_REQUEST_RETRY_COUNT_CONSENSUS', 5))
HTTP_REQUEST_SLEEP_BEFORE_RETRY_IN_SECONDS_CONSENSUS: Final = int(
    os.getenv('HTTP_REQUEST_SLEEP_BEFORE_RETRY_IN_SECONDS_CONSENSUS', 5)
)

# - App specific -
# Whole command deadline. Can be overridden with --timeout.
MAX_RUN_LIFETIME_IN_SECONDS: Final = int(os.getenv('MAX_RUN_LIFETIME_IN_SECONDS', 120))
# Threads used to prefetch blocks. 1 means strictly sequential requests.
MAX_CONCURRENCY: Final = max(1, min(32, int(os.getenv('MAX_CONCURRENCY', 1))))

LOG_LEVEL: Final = os.getenv('LOG_LEVEL', 'INFO').upper()

# - Metrics -
PROMETHEUS_PORT: Final = int(os.getenv('PROMETHEUS_PORT', 0)) or None
PROMETHEUS_PREFIX: Final = os.getenv('PROMETHEUS_PREFIX', 'validator_perf')


def check_uri_required_variables():
    required_uris = {
        'CONSENSUS_CLIENT_URI': CONSENSUS_CLIENT_URI,
    }
    return [name for name, uri in required_uris.items() if '' in uri]


def raise_from_errors(errors):
    if errors:
        raise ValueError("The following variables are required: " + ", ".join(errors))


# All non-private env variables to the logs in main
PUBLIC_ENV_VARS = {
    key: str(value)
    for key, value in {
        'CONSENSUS_CLIENT_URI_COUNT': len(CONSENSUS_CLIENT_URI),
        'HTTP_REQUEST_TIMEOUT_CONSENSUS': HTTP_REQUEST_TIMEOUT_CONSENSUS,
        'HTTP_REQUEST_RETRY_COUNT_CONSENSUS': HTTP_REQUEST_RETRY_COUNT_CONSENSUS,
        'HTTP_REQUEST_SLEEP_BEFORE_RETRY_IN_SECONDS_CONSENSUS': HTTP_REQUEST_SLEEP_BEFORE_RETRY_IN_SECONDS_CONSENSUS,
        'MAX_RUN_LIFETIME_IN_SECONDS': MAX_RUN_LIFETIME_IN_SECONDS,
        'MAX_CONCURRENCY': MAX_CONCURRENCY,
        'LOG_LEVEL': LOG_LEVEL,
        'PROMETHEUS_PORT': PROMETHEUS_PORT,
        'PROMETHEUS_PREFIX': PROMETHEUS_PREFIX,
    }.items()
}
