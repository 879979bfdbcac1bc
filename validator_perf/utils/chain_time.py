import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, Protocol

from validator_perf.exceptions import ConfigurationError, MissingSpecConstant
from validator_perf.types import EpochNumber, SlotNumber, SyncCommitteePeriod

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ChainConfig:
    slots_per_epoch: int
    seconds_per_slot: int
    genesis_time: int
    # Absent on pre-Altair chains
    epochs_per_sync_committee_period: int | None = None


class GenesisAndSpecProvider(Protocol):
    def get_genesis(self) -> Any: ...

    def get_config_spec(self) -> dict[str, Any]: ...


def _spec_int(spec: dict[str, Any], name: str, required: bool = True) -> int | None:
    if name not in spec:
        if required:
            raise ConfigurationError(f'{name} not found in spec')
        return None
    try:
        value = int(spec[name])
    except (TypeError, ValueError) as error:
        raise ConfigurationError(f'{name} of unexpected type: {spec[name]!r}') from error
    if value <= 0:
        raise ConfigurationError(f'{name} should be positive, got {value}')
    return value


def chain_config_from_provider(provider: GenesisAndSpecProvider) -> ChainConfig:
    """Fetch genesis time and spec constants once and build the chain config from them"""
    try:
        genesis = provider.get_genesis()
    except Exception as error:
        raise ConfigurationError('Failed to obtain genesis time') from error
    logger.debug({'msg': 'Genesis time fetched.', 'genesis_time': genesis.genesis_time})

    try:
        spec = provider.get_config_spec()
    except Exception as error:
        raise ConfigurationError('Failed to obtain spec') from error

    return ChainConfig(
        slots_per_epoch=_spec_int(spec, 'SLOTS_PER_EPOCH'),  # type: ignore[arg-type]
        seconds_per_slot=_spec_int(spec, 'SECONDS_PER_SLOT'),  # type: ignore[arg-type]
        genesis_time=int(genesis.genesis_time),
        epochs_per_sync_committee_period=_spec_int(spec, 'EPOCHS_PER_SYNC_COMMITTEE_PERIOD', required=False),
    )


class ChainTimeCalculator:
    """
    Converts between wall-clock time, slots, epochs and sync committee periods.

    All conversions are pure except the `get_current_*` ones, which read the clock.
    Timestamps before genesis map to slot 0.
    """
    chain_config: ChainConfig

    def __init__(self, chain_config: ChainConfig, clock: Callable[[], float] = time.time):
        self.chain_config = chain_config
        self._clock = clock

    @classmethod
    def from_provider(cls, provider: GenesisAndSpecProvider, clock: Callable[[], float] = time.time):
        return cls(chain_config_from_provider(provider), clock)

    @property
    def genesis_time(self) -> int:
        return self.chain_config.genesis_time

    @property
    def slots_per_epoch(self) -> int:
        return self.chain_config.slots_per_epoch

    @property
    def seconds_per_slot(self) -> int:
        return self.chain_config.seconds_per_slot

    def get_slot_start_timestamp(self, slot: SlotNumber) -> int:
        return self.chain_config.genesis_time + slot * self.chain_config.seconds_per_slot

    def get_epoch_start_timestamp(self, epoch: EpochNumber) -> int:
        return self.get_slot_start_timestamp(self.get_epoch_first_slot(epoch))

    def get_epoch_first_slot(self, epoch: EpochNumber) -> SlotNumber:
        return SlotNumber(epoch * self.chain_config.slots_per_epoch)

    def get_epoch_last_slot(self, epoch: EpochNumber) -> SlotNumber:
        return SlotNumber((epoch + 1) * self.chain_config.slots_per_epoch - 1)

    def get_epoch_by_slot(self, slot: SlotNumber) -> EpochNumber:
        return EpochNumber(slot // self.chain_config.slots_per_epoch)

    def get_slot_by_timestamp(self, timestamp: float) -> SlotNumber:
        if timestamp < self.chain_config.genesis_time:
            return SlotNumber(0)
        return SlotNumber(int((timestamp - self.chain_config.genesis_time) // self.chain_config.seconds_per_slot))

    def get_epoch_by_timestamp(self, timestamp: float) -> EpochNumber:
        return self.get_epoch_by_slot(self.get_slot_by_timestamp(timestamp))

    def get_current_slot(self) -> SlotNumber:
        return self.get_slot_by_timestamp(self._clock())

    def get_current_epoch(self) -> EpochNumber:
        return self.get_epoch_by_slot(self.get_current_slot())

    def get_sync_committee_period_by_epoch(self, epoch: EpochNumber) -> SyncCommitteePeriod:
        period = self.chain_config.epochs_per_sync_committee_period
        if not period:
            raise MissingSpecConstant('EPOCHS_PER_SYNC_COMMITTEE_PERIOD is not provided by the chain spec')
        return SyncCommitteePeriod(epoch // period)

    def get_sync_committee_period_by_slot(self, slot: SlotNumber) -> SyncCommitteePeriod:
        return self.get_sync_committee_period_by_epoch(self.get_epoch_by_slot(slot))

    def get_current_sync_committee_period(self) -> SyncCommitteePeriod:
        return self.get_sync_committee_period_by_epoch(self.get_current_epoch())
