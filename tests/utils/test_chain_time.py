from unittest.mock import Mock

import pytest

from validator_perf.exceptions import ConfigurationError, MissingSpecConstant
from validator_perf.providers.consensus.types import GenesisResponse
from validator_perf.utils.chain_time import ChainConfig, ChainTimeCalculator, chain_config_from_provider

GENESIS_TIME = 1_606_824_023

pytestmark = pytest.mark.unit


@pytest.fixture()
def chain_config() -> ChainConfig:
    return ChainConfig(
        slots_per_epoch=32,
        seconds_per_slot=12,
        genesis_time=GENESIS_TIME,
        epochs_per_sync_committee_period=256,
    )


@pytest.fixture()
def chain_time(chain_config) -> ChainTimeCalculator:
    return ChainTimeCalculator(chain_config, clock=lambda: GENESIS_TIME + 12 * 100 + 5)


def provider(spec: dict, genesis_time: int = GENESIS_TIME) -> Mock:
    return Mock(
        get_genesis=Mock(return_value=GenesisResponse(genesis_time=genesis_time)),
        get_config_spec=Mock(return_value=spec),
    )


def test_from_provider_reads_string_constants():
    calculator = ChainTimeCalculator.from_provider(provider({
        'SLOTS_PER_EPOCH': '32',
        'SECONDS_PER_SLOT': '12',
        'EPOCHS_PER_SYNC_COMMITTEE_PERIOD': '256',
        'DEPOSIT_CHAIN_ID': '1',
    }))

    assert calculator.genesis_time == GENESIS_TIME
    assert calculator.slots_per_epoch == 32
    assert calculator.seconds_per_slot == 12
    assert calculator.chain_config.epochs_per_sync_committee_period == 256


def test_sync_committee_period_is_optional():
    config = chain_config_from_provider(provider({'SLOTS_PER_EPOCH': '32', 'SECONDS_PER_SLOT': '12'}))
    assert config.epochs_per_sync_committee_period is None


@pytest.mark.parametrize(
    'spec',
    [
        {'SECONDS_PER_SLOT': '12'},
        {'SLOTS_PER_EPOCH': '32'},
        {'SLOTS_PER_EPOCH': 'thirty two', 'SECONDS_PER_SLOT': '12'},
        {'SLOTS_PER_EPOCH': '32', 'SECONDS_PER_SLOT': '0'},
        {'SLOTS_PER_EPOCH': '32', 'SECONDS_PER_SLOT': None},
    ],
)
def test_missing_or_malformed_constants(spec):
    with pytest.raises(ConfigurationError):
        chain_config_from_provider(provider(spec))


def test_provider_failure_is_configuration_error():
    failing = Mock(get_genesis=Mock(side_effect=ConnectionError('refused')))
    with pytest.raises(ConfigurationError, match='genesis'):
        chain_config_from_provider(failing)

    failing = provider({})
    failing.get_config_spec.side_effect = ConnectionError('refused')
    with pytest.raises(ConfigurationError, match='spec'):
        chain_config_from_provider(failing)


def test_slot_epoch_conversions(chain_time):
    assert chain_time.get_epoch_first_slot(0) == 0
    assert chain_time.get_epoch_first_slot(3) == 96
    assert chain_time.get_epoch_last_slot(0) == 31
    assert chain_time.get_epoch_last_slot(3) == 127
    assert chain_time.get_epoch_by_slot(0) == 0
    assert chain_time.get_epoch_by_slot(31) == 0
    assert chain_time.get_epoch_by_slot(32) == 1


def test_timestamp_conversions(chain_time):
    assert chain_time.get_slot_start_timestamp(0) == GENESIS_TIME
    assert chain_time.get_slot_start_timestamp(10) == GENESIS_TIME + 120
    assert chain_time.get_epoch_start_timestamp(2) == GENESIS_TIME + 64 * 12

    assert chain_time.get_slot_by_timestamp(GENESIS_TIME) == 0
    assert chain_time.get_slot_by_timestamp(GENESIS_TIME + 11) == 0
    assert chain_time.get_slot_by_timestamp(GENESIS_TIME + 12) == 1
    assert chain_time.get_slot_by_timestamp(GENESIS_TIME - 1000) == 0
    assert chain_time.get_epoch_by_timestamp(GENESIS_TIME + 32 * 12) == 1


@pytest.mark.parametrize('timestamp', [GENESIS_TIME, GENESIS_TIME + 1, GENESIS_TIME + 11.5, GENESIS_TIME + 12 * 12345 + 7])
def test_timestamp_within_its_slot(chain_time, timestamp):
    slot = chain_time.get_slot_by_timestamp(timestamp)
    assert chain_time.get_slot_start_timestamp(slot) <= timestamp < chain_time.get_slot_start_timestamp(slot + 1)


@pytest.mark.parametrize('slot', [0, 1, 31, 32, 33, 1000, 2**20])
def test_slot_within_its_epoch(chain_time, slot):
    epoch = chain_time.get_epoch_by_slot(slot)
    assert chain_time.get_epoch_first_slot(epoch) <= slot <= chain_time.get_epoch_last_slot(epoch)


def test_current_slot_and_epoch(chain_time):
    assert chain_time.get_current_slot() == 100
    assert chain_time.get_current_epoch() == 3


def test_current_slot_before_genesis(chain_config):
    calculator = ChainTimeCalculator(chain_config, clock=lambda: GENESIS_TIME - 3600)
    assert calculator.get_current_slot() == 0
    assert calculator.get_current_epoch() == 0


def test_sync_committee_period(chain_time):
    assert chain_time.get_sync_committee_period_by_epoch(255) == 0
    assert chain_time.get_sync_committee_period_by_epoch(256) == 1
    assert chain_time.get_sync_committee_period_by_slot(256 * 32) == 1
    assert chain_time.get_current_sync_committee_period() == 0


def test_sync_committee_period_without_constant(chain_config):
    calculator = ChainTimeCalculator(
        ChainConfig(slots_per_epoch=32, seconds_per_slot=12, genesis_time=GENESIS_TIME),
    )
    with pytest.raises(MissingSpecConstant):
        calculator.get_sync_committee_period_by_epoch(1)
    with pytest.raises(MissingSpecConstant):
        calculator.get_current_sync_committee_period()
