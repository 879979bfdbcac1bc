from enum import Enum

from prometheus_client import Gauge, Histogram, Info
from prometheus_client.utils import INF

from validator_perf.variables import PROMETHEUS_PREFIX


class Status(Enum):
    SUCCESS = 'success'
    FAILURE = 'failure'


ENV_VARIABLES_INFO = Info(
    'env_variables',
    'Env variables for the app',
    namespace=PROMETHEUS_PREFIX,
)

GENESIS_TIME = Gauge(
    'genesis_time',
    'Genesis time',
    namespace=PROMETHEUS_PREFIX,
)

FUNCTIONS_DURATION = Histogram(
    'functions_duration',
    'Duration of report tasks',
    ['name', 'status'],
    namespace=PROMETHEUS_PREFIX,
    buckets=(.1, .5, 1.0, 2.5, 5.0, 7.5, 10.0, 20.0, 30.0, 60.0, 120.0, 180.0, 240.0, 300.0, 600.0, INF),
)

requests_buckets = (.01, .05, .1, .25, .5, .75, 1.0, 2.5, 5.0, 7.5, 10.0, 20.0, 30.0, 40.0, 50.0, 60.0, 120.0, INF)

CL_REQUESTS_DURATION = Histogram(
    'cl_requests_duration',
    'Duration of requests to CL API',
    ['endpoint', 'code', 'domain'],
    namespace=PROMETHEUS_PREFIX,
    buckets=requests_buckets,
)
