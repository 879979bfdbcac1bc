from unittest.mock import Mock

import pytest

from validator_perf.exceptions import EpochParseError, ParseError
from validator_perf.utils.epoch import EpochReferenceResolver, resolve_epoch

pytestmark = pytest.mark.unit


@pytest.mark.parametrize(
    ('descriptor', 'current', 'expected'),
    [
        ('', 7, 7),
        ('current', 7, 7),
        ('head', 7, 7),
        ('-0', 7, 7),
        ('last', 7, 6),
        ('last', 0, 0),
        ('0', 7, 0),
        ('5', 7, 5),
        ('+5', 7, 5),
        ('100', 7, 100),
        ('-1', 5, 4),
        ('-5', 5, 0),
        ('-10', 5, 0),
    ],
)
def test_resolve_epoch(descriptor, current, expected):
    assert resolve_epoch(descriptor, current) == expected


@pytest.mark.parametrize('descriptor', ['yesterday', '1.5', '0x10', '--1', '1 ', 'Last'])
def test_resolve_epoch_unparseable(descriptor):
    with pytest.raises(EpochParseError, match='Failed to parse epoch') as error:
        resolve_epoch(descriptor, 10)

    assert repr(descriptor) in str(error.value)
    assert isinstance(error.value, ParseError)


def test_resolver_uses_current_epoch():
    chain_time = Mock(get_current_epoch=Mock(return_value=12))
    resolver = EpochReferenceResolver(chain_time)

    assert resolver.resolve('current') == 12
    assert resolver.resolve('last') == 11
    assert resolver.resolve('-2') == 10
    assert resolver.resolve('3') == 3
