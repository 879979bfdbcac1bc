from enum import StrEnum
from typing import NewType

from eth_typing import HexStr


class Command(StrEnum):
    PING = 'ping'
    INFO = 'info'
    VALIDATOR = 'validator'


EpochNumber = NewType('EpochNumber', int)
SlotNumber = NewType('SlotNumber', int)
SyncCommitteePeriod = NewType('SyncCommitteePeriod', int)

BlockRoot = NewType('BlockRoot', HexStr)
StateRoot = NewType('StateRoot', HexStr)

# "head", "genesis", "finalized", "justified", <slot>, <hex encoded stateRoot with 0x prefix>
StateId = NewType('StateId', str)

Gwei = NewType('Gwei', int)

ValidatorIndex = NewType('ValidatorIndex', int)
CommitteeIndex = NewType('CommitteeIndex', int)
