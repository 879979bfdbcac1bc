import pytest
from prometheus_client import REGISTRY

from validator_perf.metrics.prometheus.duration_meter import duration_meter

pytestmark = pytest.mark.unit

METRIC = 'validator_perf_functions_duration_count'


def _count(name: str, status: str) -> float:
    return REGISTRY.get_sample_value(METRIC, {'name': f'{__name__}.{name}', 'status': status}) or 0


@duration_meter()
def succeeds(value):
    return value * 2


@duration_meter()
def fails():
    raise ValueError('boom')


def test_duration_meter_success():
    before = _count('succeeds', 'success')

    assert succeeds(21) == 42
    assert _count('succeeds', 'success') == before + 1


def test_duration_meter_failure_reraises():
    before = _count('fails', 'failure')

    with pytest.raises(ValueError, match='boom'):
        fails()

    assert _count('fails', 'failure') == before + 1
