from dataclasses import asdict, dataclass, field
from typing import Any

from validator_perf.providers.consensus.types import AttestationData, Validator
from validator_perf.types import CommitteeIndex, EpochNumber, SlotNumber, ValidatorIndex


@dataclass(frozen=True)
class ValidatorFault:
    validator_index: ValidatorIndex
    attestation_data: AttestationData
    # Slots between the duty slot and the slot of the block that included the vote
    inclusion_delay: int


@dataclass(frozen=True)
class NonParticipatingValidator:
    validator_index: ValidatorIndex
    slot: SlotNumber
    committee_index: CommitteeIndex


@dataclass(frozen=True)
class SlotAttestations:
    expected: int = 0
    included: int = 0
    correct_head: int = 0
    timely_head: int = 0
    correct_target: int = 0
    timely_target: int = 0
    timely_source: int = 0


@dataclass(frozen=True)
class SlotStats:
    slot: SlotNumber
    attestations: SlotAttestations = field(default_factory=SlotAttestations)


@dataclass(frozen=True)
class EpochProposal:
    slot: SlotNumber
    proposer: ValidatorIndex
    block: bool


@dataclass(frozen=True)
class EpochSummary:
    """Performance of the selected validators in one epoch"""
    epoch: EpochNumber
    first_slot: SlotNumber
    last_slot: SlotNumber
    validators: tuple[Validator, ...]
    active_validators: int
    participating_validators: int
    proposals: tuple[EpochProposal, ...]
    non_participating_validators: tuple[NonParticipatingValidator, ...]
    incorrect_head_validators: tuple[ValidatorFault, ...]
    untimely_head_validators: tuple[ValidatorFault, ...]
    untimely_source_validators: tuple[ValidatorFault, ...]
    incorrect_target_validators: tuple[ValidatorFault, ...]
    untimely_target_validators: tuple[ValidatorFault, ...]
    slots: tuple[SlotStats, ...]

    def validator(self, index: ValidatorIndex) -> Validator | None:
        return next((v for v in self.validators if v.index == index), None)

    def to_dict(self) -> dict[str, Any]:
        return {
            'epoch': self.epoch,
            'first_slot': self.first_slot,
            'last_slot': self.last_slot,
            'active_validators': self.active_validators,
            'participating_validators': self.participating_validators,
            'non_participating_validators': [asdict(v) for v in self.non_participating_validators],
            'incorrect_head_validators': [asdict(f) for f in self.incorrect_head_validators],
            'untimely_head_validators': [asdict(f) for f in self.untimely_head_validators],
            'untimely_source_validators': [asdict(f) for f in self.untimely_source_validators],
            'incorrect_target_validators': [asdict(f) for f in self.incorrect_target_validators],
            'untimely_target_validators': [asdict(f) for f in self.untimely_target_validators],
            'slots': [asdict(s) for s in self.slots],
        }
