import logging
from typing import Protocol

from validator_perf.exceptions import InvariantViolation
from validator_perf.metrics.prometheus.performance import HEADER_CACHE_LOOKUPS
from validator_perf.providers.consensus.types import AttestationData, BlockHeaderResponseData
from validator_perf.types import BlockRoot, SlotNumber
from validator_perf.utils.chain_time import ChainTimeCalculator
from validator_perf.utils.hexstr import same_hex

logger = logging.getLogger(__name__)


class BlockHeaderProvider(Protocol):
    def get_block_header(self, state_id: SlotNumber) -> BlockHeaderResponseData | None: ...


class CanonicalHeaderCache:
    """
    Lazily filled mapping slot -> block header.

    None is cached as well and means there is no block at exactly that slot.
    Lives for one summary run only, so a reorg between runs is never served from the cache.
    """

    def __init__(self, cc: BlockHeaderProvider):
        self.cc = cc
        self._headers: dict[SlotNumber, BlockHeaderResponseData | None] = {}

    def fetch(self, slot: SlotNumber) -> BlockHeaderResponseData | None:
        if slot in self._headers:
            HEADER_CACHE_LOOKUPS.labels('hit').inc()
            return self._headers[slot]

        HEADER_CACHE_LOOKUPS.labels('miss').inc()
        header = self.cc.get_block_header(slot)
        self._headers[slot] = header
        return header

    def __len__(self) -> int:
        return len(self._headers)

    def find_canonical_root(self, slot: SlotNumber) -> BlockRoot:
        """Root of the canonical block at the slot, or of the closest canonical block before it"""
        current = slot
        while current >= 0:
            header = self.fetch(SlotNumber(current))
            if header is not None and header.canonical:
                return header.root
            current -= 1

        raise InvariantViolation(f'No canonical block header found at or before slot {slot}')


def is_head_correct(headers: CanonicalHeaderCache, data: AttestationData) -> bool:
    return same_hex(headers.find_canonical_root(data.slot), data.beacon_block_root)


def is_target_correct(
    headers: CanonicalHeaderCache,
    chain_time: ChainTimeCalculator,
    data: AttestationData,
) -> bool:
    target_slot = chain_time.get_epoch_first_slot(data.target.epoch)
    return same_hex(headers.find_canonical_root(target_slot), data.target.root)
