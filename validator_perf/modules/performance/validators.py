import logging
from typing import Iterable, Sequence

from hexbytes import HexBytes

from validator_perf.constants import BLS_PUBLIC_KEY_SIZE
from validator_perf.exceptions import PublicKeyLengthError, UnknownValidator, ValidatorSelectorError
from validator_perf.providers.consensus.client import ChainQueryService
from validator_perf.providers.consensus.types import Validator
from validator_perf.types import SlotNumber, StateId, ValidatorIndex
from validator_perf.utils.range import sequence
from validator_perf.utils.hexstr import hex_str_to_bytes

logger = logging.getLogger(__name__)


def parse_index(value: str) -> ValidatorIndex:
    if not value.isdecimal():
        raise ValidatorSelectorError(f'Invalid validator index: {value!r}')
    return ValidatorIndex(int(value))


def parse_range(value: str) -> list[ValidatorIndex]:
    """"A-B" to [A, A+1, ..., B], both ends included"""
    bounds = value.split('-')
    if len(bounds) != 2:
        raise ValidatorSelectorError(f'Invalid range: {value!r}')

    try:
        low, high = parse_index(bounds[0]), parse_index(bounds[1])
    except ValidatorSelectorError as error:
        raise ValidatorSelectorError(f'Invalid range: {value!r}') from error

    if low > high:
        raise ValidatorSelectorError(f'Invalid range: {value!r}, start is greater than end')

    return [ValidatorIndex(i) for i in sequence(low, high)]


def parse_selectors(selectors: Iterable[str]) -> list[ValidatorIndex]:
    """Expand indices and ranges into a sorted list of unique indices"""
    indices: set[ValidatorIndex] = set()
    for selector in selectors:
        selector = selector.strip()
        if '-' in selector:
            indices.update(parse_range(selector))
        else:
            indices.add(parse_index(selector))
    return sorted(indices)


def parse_pubkey(value: str) -> HexBytes:
    try:
        pubkey = hex_str_to_bytes(value)
    except ValueError as error:
        raise PublicKeyLengthError(f'Invalid public key: {value!r}') from error

    if len(pubkey) != BLS_PUBLIC_KEY_SIZE:
        raise PublicKeyLengthError(
            f'Bad public key length for {value!r}: expected {BLS_PUBLIC_KEY_SIZE} bytes, got {len(pubkey)}'
        )
    return HexBytes(pubkey)


class ValidatorSelector:
    """Resolves validator selectors into validator records as of the given state"""

    def __init__(self, cc: ChainQueryService):
        self.cc = cc

    def select(self, selectors: Sequence[str], state_id: StateId | SlotNumber) -> list[Validator]:
        """
        Selectors are validator indices ("42") or inclusive ranges ("10-20").
        All of them are fetched with one request. Result is sorted by index and has no duplicates.
        """
        indices = parse_selectors(selectors)
        logger.info({'msg': f'Fetch {len(indices)} validators.', 'state_id': state_id})

        validators = {v.index: v for v in self.cc.get_validators(state_id, indices=indices)}
        if not validators:
            raise UnknownValidator(f'No validators found for {list(selectors)} at state {state_id}')

        if missing := len(indices) - len(validators):
            logger.warning({'msg': f'{missing} selected validators are not known at state {state_id}.'})

        return [validators[index] for index in sorted(validators)]

    def select_one(self, selector: str, state_id: StateId | SlotNumber) -> Validator:
        """Selector is a validator index or a 0x-prefixed public key"""
        selector = selector.strip()
        validator_id: ValidatorIndex | str
        if selector.isdecimal():
            validator_id = parse_index(selector)
        else:
            validator_id = parse_pubkey(selector).to_0x_hex()

        validator = self.cc.get_validator(state_id, validator_id)
        if validator is None:
            raise UnknownValidator(f'Unknown validator: {selector!r}')

        return validator
