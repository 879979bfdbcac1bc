from dataclasses import dataclass, field
from typing import Protocol

from hexbytes import HexBytes

from validator_perf.types import (
    BlockRoot,
    CommitteeIndex,
    EpochNumber,
    Gwei,
    SlotNumber,
    StateRoot,
    ValidatorIndex,
)
from validator_perf.utils.dataclass import FromResponse, Nested
from validator_perf.utils.hexstr import hex_str_to_bytes


@dataclass
class GenesisResponse(Nested, FromResponse):
    # https://ethereum.github.io/beacon-APIs/#/Beacon/getGenesis
    genesis_time: int
    genesis_validators_root: str = ''
    genesis_fork_version: str = ''


@dataclass
class BlockHeaderMessage(Nested, FromResponse):
    slot: SlotNumber
    proposer_index: ValidatorIndex
    parent_root: BlockRoot
    state_root: StateRoot
    body_root: str


@dataclass
class BlockHeader(Nested, FromResponse):
    message: BlockHeaderMessage
    signature: str


@dataclass
class BlockHeaderResponseData(Nested, FromResponse):
    # https://ethereum.github.io/beacon-APIs/#/Beacon/getBlockHeader
    root: BlockRoot
    canonical: bool
    header: BlockHeader

    @property
    def slot(self) -> SlotNumber:
        return self.header.message.slot


@dataclass
class Checkpoint(Nested, FromResponse):
    epoch: EpochNumber
    root: BlockRoot


@dataclass
class AttestationData(Nested, FromResponse):
    slot: SlotNumber
    index: CommitteeIndex
    beacon_block_root: BlockRoot
    source: Checkpoint
    target: Checkpoint


@dataclass
class BlockAttestationResponse(Nested, FromResponse):
    aggregation_bits: str
    data: AttestationData
    # Electra: https://github.com/ethereum/consensus-specs/blob/dev/specs/electra/beacon-chain.md#attestation
    committee_bits: str = ''


class BlockAttestation(Protocol):
    aggregation_bits: str
    committee_bits: str
    data: AttestationData


@dataclass
class BeaconBlock(Nested, FromResponse):
    """Only the parts of https://ethereum.github.io/beacon-APIs/#/Beacon/getBlockV2 the reports need"""
    slot: SlotNumber
    proposer_index: ValidatorIndex
    attestations: list[BlockAttestationResponse] = field(default_factory=list)


@dataclass
class ValidatorState(Nested, FromResponse):
    pubkey: str
    withdrawal_credentials: str
    effective_balance: Gwei
    slashed: bool
    activation_eligibility_epoch: EpochNumber
    activation_epoch: EpochNumber
    exit_epoch: EpochNumber
    withdrawable_epoch: EpochNumber


@dataclass
class Validator(Nested, FromResponse):
    # https://ethereum.github.io/beacon-APIs/#/Beacon/getStateValidators
    index: ValidatorIndex
    balance: Gwei
    validator: ValidatorState
    status: str = ''

    @property
    def pubkey(self) -> HexBytes:
        return HexBytes(hex_str_to_bytes(self.validator.pubkey))

    def is_active(self, epoch: EpochNumber) -> bool:
        """
        Spec: https://github.com/ethereum/consensus-specs/blob/dev/specs/phase0/beacon-chain.md#is_active_validator
        """
        return self.validator.activation_epoch <= epoch < self.validator.exit_epoch


@dataclass
class ProposerDuties(Nested, FromResponse):
    # https://ethereum.github.io/beacon-APIs/#/Validator/getProposerDuties
    pubkey: str
    validator_index: ValidatorIndex
    slot: SlotNumber


@dataclass
class AttesterDuty(Nested, FromResponse):
    # https://ethereum.github.io/beacon-APIs/#/Validator/getAttesterDuties
    pubkey: str
    validator_index: ValidatorIndex
    committee_index: CommitteeIndex
    committee_length: int
    committees_at_slot: int
    validator_committee_index: int
    slot: SlotNumber


@dataclass
class SlotAttestationCommittee(Nested, FromResponse):
    # https://ethereum.github.io/beacon-APIs/#/Beacon/getEpochCommittees
    index: CommitteeIndex
    slot: SlotNumber
    validators: list[ValidatorIndex]


@dataclass
class NodeVersion(FromResponse):
    version: str


@dataclass
class NodeSyncing(Nested, FromResponse):
    # https://ethereum.github.io/beacon-APIs/#/Node/getSyncingStatus
    head_slot: SlotNumber
    sync_distance: int
    is_syncing: bool
    is_optimistic: bool = False
    el_offline: bool = False


@dataclass
class Fork(Nested, FromResponse):
    # https://ethereum.github.io/beacon-APIs/#/Beacon/getStateFork
    previous_version: str
    current_version: str
    epoch: EpochNumber


@dataclass
class NodePeer(FromResponse):
    # https://ethereum.github.io/beacon-APIs/#/Node/getPeers
    peer_id: str
    state: str
    direction: str
    last_seen_p2p_address: str = ''
    enr: str | None = None
