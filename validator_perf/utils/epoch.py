import re

from validator_perf.exceptions import EpochParseError
from validator_perf.types import EpochNumber
from validator_perf.utils.chain_time import ChainTimeCalculator

CURRENT_EPOCH_ALIASES = ('', 'current', 'head', '-0')
PREVIOUS_EPOCH_ALIAS = 'last'

EPOCH_LITERAL = re.compile(r'[+-]?[0-9]+')


def resolve_epoch(descriptor: str, current_epoch: EpochNumber) -> EpochNumber:
    """
    Turn an epoch descriptor into an epoch number.

    "", "current", "head", "-0" - current epoch
    "last"                      - previous epoch, never below 0
    "N" (N >= 0)                - absolute epoch N, so "0" is genesis epoch, not "0 epochs ago"
    "-N"                        - N epochs before the current one, never below 0
    """
    if descriptor in CURRENT_EPOCH_ALIASES:
        return current_epoch

    if descriptor == PREVIOUS_EPOCH_ALIAS:
        return EpochNumber(max(current_epoch - 1, 0))

    if not EPOCH_LITERAL.fullmatch(descriptor):
        raise EpochParseError(f'Failed to parse epoch: {descriptor!r}')

    value = int(descriptor)
    if value >= 0:
        return EpochNumber(value)

    if -value > current_epoch:
        return EpochNumber(0)

    return EpochNumber(current_epoch + value)


class EpochReferenceResolver:
    chain_time: ChainTimeCalculator

    def __init__(self, chain_time: ChainTimeCalculator):
        self.chain_time = chain_time

    def resolve(self, descriptor: str) -> EpochNumber:
        return resolve_epoch(descriptor, self.chain_time.get_current_epoch())
