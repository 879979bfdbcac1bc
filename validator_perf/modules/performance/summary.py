import logging
from collections import Counter, defaultdict
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Iterator, Sequence

from validator_perf import variables
from validator_perf.constants import (
    ATTESTATION_INCLUSION_EPOCHS,
    MIN_ATTESTATION_INCLUSION_DELAY,
    TIMELY_HEAD_MAX_INCLUSION_DELAY,
    TIMELY_SOURCE_MAX_INCLUSION_DELAY,
    TIMELY_TARGET_MAX_INCLUSION_DELAY,
)
from validator_perf.exceptions import EpochParseError, InvariantViolation, ParseError
from validator_perf.metrics.prometheus.duration_meter import duration_meter
from validator_perf.metrics.prometheus.performance import (
    PERFORMANCE_SUMMARY_EPOCH,
    PERFORMANCE_SUMMARY_FAULTS,
    PERFORMANCE_SUMMARY_VALIDATORS,
)
from validator_perf.modules.performance.headers import CanonicalHeaderCache, is_head_correct, is_target_correct
from validator_perf.modules.performance.types import (
    EpochProposal,
    EpochSummary,
    NonParticipatingValidator,
    SlotAttestations,
    SlotStats,
    ValidatorFault,
)
from validator_perf.modules.performance.validators import ValidatorSelector
from validator_perf.providers.consensus.client import ChainQueryService, ensure_capabilities
from validator_perf.providers.consensus.types import (
    AttesterDuty,
    BeaconBlock,
    BlockAttestation,
    Validator,
)
from validator_perf.types import CommitteeIndex, EpochNumber, SlotNumber, StateId, ValidatorIndex
from validator_perf.utils.bits import get_set_indices, hex_bitlist_to_list, hex_bitvector_to_list
from validator_perf.utils.chain_time import ChainTimeCalculator
from validator_perf.utils.epoch import EpochReferenceResolver
from validator_perf.utils.range import chunked_sequence, sequence
from validator_perf.utils.timeit import timeit

logger = logging.getLogger(__name__)

type DutiesBySlot = dict[SlotNumber, dict[CommitteeIndex, list[AttesterDuty]]]


@dataclass
class EpochState:
    """Accumulator for a single epoch. Updated on the calling thread only."""
    epoch: EpochNumber
    first_slot: SlotNumber
    headers: CanonicalHeaderCache
    active_indices: list[ValidatorIndex] = field(default_factory=list)
    duties_by_slot: DutiesBySlot = field(default_factory=dict)
    duties_by_validator: dict[ValidatorIndex, AttesterDuty] = field(default_factory=dict)
    committee_sizes: dict[tuple[SlotNumber, CommitteeIndex], int] = field(default_factory=dict)
    committees_fetched: bool = False
    votes: set[ValidatorIndex] = field(default_factory=set)
    counters: dict[SlotNumber, Counter] = field(default_factory=lambda: defaultdict(Counter))
    incorrect_head: list[ValidatorFault] = field(default_factory=list)
    untimely_head: list[ValidatorFault] = field(default_factory=list)
    untimely_source: list[ValidatorFault] = field(default_factory=list)
    incorrect_target: list[ValidatorFault] = field(default_factory=list)
    untimely_target: list[ValidatorFault] = field(default_factory=list)

    def all_voted(self) -> bool:
        return len(self.votes) == len(self.active_indices)


class EpochPerformanceSummarizer:
    """
    Reconciles validator duties of an epoch with what the chain actually has.

    Proposals are checked against blocks at the duty slots. Attestation votes are looked up in
    blocks of the inclusion window, first vote of a validator wins, and every vote is judged for
    head, source and target correctness and timeliness.
    """

    def __init__(
        self,
        cc: ChainQueryService,
        chain_time: ChainTimeCalculator | None = None,
        max_concurrency: int = variables.MAX_CONCURRENCY,
    ):
        self.cc = ensure_capabilities(cc)
        self.chain_time = chain_time or ChainTimeCalculator.from_provider(self.cc)
        self.epoch_resolver = EpochReferenceResolver(self.chain_time)
        self.selector = ValidatorSelector(self.cc)
        self.max_concurrency = max_concurrency

    @duration_meter()
    def summarize(
        self,
        selectors: Sequence[str],
        state_id: StateId | None = None,
        epoch: str = '',
    ) -> EpochSummary:
        """
        Build the summary of the epoch described by `epoch` ("last", "-3", "1024", ...).
        Validators are resolved at `state_id`, at the first slot of the epoch when omitted.
        """
        return self.summarize_epoch(selectors, state_id, self.epoch_resolver.resolve(epoch))

    @duration_meter()
    def summarize_range(
        self,
        selectors: Sequence[str],
        state_id: StateId | None = None,
        start: str | None = None,
        end: str | None = None,
        num_epochs: str | None = None,
    ) -> list[EpochSummary]:
        """One summary per epoch of [start, end], both ends included"""
        start_epoch, end_epoch = self.resolve_range(start, end, num_epochs)
        logger.info({'msg': 'Summarize epochs range.', 'start_epoch': start_epoch, 'end_epoch': end_epoch})
        return [
            self.summarize_epoch(selectors, state_id, EpochNumber(epoch))
            for epoch in sequence(start_epoch, end_epoch)
        ]

    def resolve_range(
        self,
        start: str | None,
        end: str | None,
        num_epochs: str | None,
    ) -> tuple[EpochNumber, EpochNumber]:
        given = [value is not None for value in (start, end, num_epochs)]
        if not any(given):
            raise ParseError('At least one of start, end or number of epochs must be specified')
        if all(given):
            raise ParseError('Start, end and number of epochs can not be specified together')

        count = self._parse_num_epochs(num_epochs) if num_epochs is not None else None

        if start is not None and count is not None:
            start_epoch = self.epoch_resolver.resolve(start)
            end_epoch = EpochNumber(start_epoch + count)
        elif count is not None:
            end_epoch = self.epoch_resolver.resolve(end if end is not None else 'current')
            start_epoch = EpochNumber(max(end_epoch - count, 0))
        elif start is not None and end is not None:
            start_epoch = self.epoch_resolver.resolve(start)
            end_epoch = self.epoch_resolver.resolve(end)
        else:
            start_epoch = end_epoch = self.epoch_resolver.resolve(start if start is not None else end)  # type: ignore[arg-type]

        if start_epoch > end_epoch:
            raise ParseError(f'Start epoch {start_epoch} is greater than end epoch {end_epoch}')

        return start_epoch, end_epoch

    @staticmethod
    def _parse_num_epochs(value: str) -> int:
        if not value.isdecimal():
            raise EpochParseError(f'Failed to parse number of epochs: {value!r}')
        return int(value)

    @timeit(lambda args, duration: logger.info({'msg': f'Epoch {args.epoch} summarized in {duration:.2f} seconds'}))
    def summarize_epoch(
        self,
        selectors: Sequence[str],
        state_id: StateId | None,
        epoch: EpochNumber,
    ) -> EpochSummary:
        first_slot = self.chain_time.get_epoch_first_slot(epoch)
        last_slot = self.chain_time.get_epoch_last_slot(epoch)
        logger.info({'msg': f'Summarize epoch {epoch}.', 'first_slot': first_slot, 'last_slot': last_slot})

        validators = self.selector.select(selectors, state_id if state_id is not None else first_slot)
        validators_by_index = {v.index: v for v in validators}

        state = EpochState(epoch=epoch, first_slot=first_slot, headers=CanonicalHeaderCache(self.cc))

        executor = ThreadPoolExecutor(max_workers=self.max_concurrency) if self.max_concurrency > 1 else None
        completed = False
        try:
            proposals = self._process_proposer_duties(epoch, validators_by_index, executor)
            state.active_indices = [v.index for v in validators if v.is_active(epoch)]
            self._prepare_attester_duties(epoch, state)
            self._scan_inclusion_window(state, executor)
            completed = True
        finally:
            if executor is not None:
                # On failure or deadline workers still blocked in a request are abandoned
                executor.shutdown(wait=completed, cancel_futures=True)

        summary = self._build_summary(state, last_slot, validators, proposals)
        self._report_metrics(summary)
        return summary

    @timeit(lambda args, duration: logger.info({'msg': f'Proposer duties for epoch {args.epoch} processed in {duration:.2f} seconds'}))
    def _process_proposer_duties(
        self,
        epoch: EpochNumber,
        validators_by_index: dict[ValidatorIndex, Validator],
        executor: ThreadPoolExecutor | None,
    ) -> list[EpochProposal]:
        current_slot = self.chain_time.get_current_slot()
        duties = [
            duty for duty in self.cc.get_proposer_duties(epoch)
            if duty.validator_index in validators_by_index and duty.slot <= current_slot
        ]

        proposals = []
        blocks = self._fetch_blocks([duty.slot for duty in duties], executor)
        for duty, block in zip(duties, blocks):
            if block is None:
                logger.info({'msg': f'Validator {duty.validator_index} missed proposal at slot {duty.slot}.'})
            proposals.append(EpochProposal(slot=duty.slot, proposer=duty.validator_index, block=block is not None))

        return proposals

    @timeit(lambda args, duration: logger.info({'msg': f'Attester duties for epoch {args.epoch} prepared in {duration:.2f} seconds'}))
    def _prepare_attester_duties(self, epoch: EpochNumber, state: EpochState) -> None:
        for duty in self.cc.get_attester_duties(epoch, state.active_indices):
            state.duties_by_validator[duty.validator_index] = duty
            state.duties_by_slot.setdefault(duty.slot, {}).setdefault(duty.committee_index, []).append(duty)
            state.committee_sizes[(duty.slot, duty.committee_index)] = duty.committee_length
            state.counters[duty.slot]['expected'] += 1

    @timeit(lambda args, duration: logger.info({'msg': f'Votes for epoch {args.state.epoch} collected in {duration:.2f} seconds'}))
    def _scan_inclusion_window(self, state: EpochState, executor: ThreadPoolExecutor | None) -> None:
        # Votes for the epoch can be included from the second slot of the epoch
        # up to the first slot of the next-but-one epoch.
        first = SlotNumber(state.first_slot + 1)
        last = SlotNumber(min(
            self.chain_time.get_epoch_first_slot(EpochNumber(state.epoch + ATTESTATION_INCLUSION_EPOCHS)),
            self.chain_time.get_current_slot(),
        ))
        if last < first or not state.active_indices:
            return

        for slots in chunked_sequence(first, last, self.max_concurrency):
            for block in self._fetch_blocks(slots, executor):
                if block is not None:
                    self._process_block(block, state)
                if state.all_voted():
                    logger.info({'msg': f'All {len(state.votes)} active validators voted. Stop scanning blocks.'})
                    return

    def _fetch_blocks(
        self,
        slots: list[SlotNumber],
        executor: ThreadPoolExecutor | None,
    ) -> list[BeaconBlock | None]:
        if executor is None:
            return [self.cc.get_block(slot) for slot in slots]
        # map keeps the order of slots
        return list(executor.map(self.cc.get_block, slots))

    def _process_block(self, block: BeaconBlock, state: EpochState) -> None:
        for attestation in block.attestations:
            data = attestation.data
            slot_duties = state.duties_by_slot.get(data.slot)
            if not slot_duties:
                continue

            inclusion_delay = block.slot - data.slot
            if inclusion_delay < MIN_ATTESTATION_INCLUSION_DELAY:
                logger.warning({'msg': f'Attestation for slot {data.slot} included at slot {block.slot}, too early. Ignored.'})
                continue

            for committee_index, bits in self._committees_bits(attestation, state):
                for duty in slot_duties.get(committee_index, []):
                    if duty.validator_committee_index >= len(bits) or not bits[duty.validator_committee_index]:
                        continue
                    if duty.validator_index in state.votes:
                        continue
                    self._record_vote(state, attestation, duty, inclusion_delay)

            if state.all_voted():
                return

    def _committees_bits(self, attestation: BlockAttestation, state: EpochState) -> Iterator[tuple[CommitteeIndex, list[bool]]]:
        """Pairs of committee index and the aggregation bits of this committee"""
        try:
            aggregation_bits = hex_bitlist_to_list(attestation.aggregation_bits)
            committee_bits = hex_bitvector_to_list(attestation.committee_bits) if attestation.committee_bits else []
        except ValueError as error:
            raise InvariantViolation(
                f'Malformed attestation for slot {attestation.data.slot} in block data: {error}'
            ) from error

        if not committee_bits:
            yield attestation.data.index, aggregation_bits
            return

        # Electra: bits of all the committees set in committee_bits are concatenated
        committee_indices = [CommitteeIndex(i) for i in get_set_indices(committee_bits)]
        if len(committee_indices) == 1:
            yield committee_indices[0], aggregation_bits
            return

        offset = 0
        for committee_index in committee_indices:
            size = self._committee_size(state, attestation.data.slot, committee_index)
            yield committee_index, aggregation_bits[offset:offset + size]
            offset += size
        if offset != len(aggregation_bits):
            raise InvariantViolation(
                f'Aggregation bits of attestation for slot {attestation.data.slot} do not match committees sizes'
            )

    def _committee_size(self, state: EpochState, slot: SlotNumber, committee_index: CommitteeIndex) -> int:
        key = (slot, committee_index)
        if key not in state.committee_sizes and not state.committees_fetched:
            self._fetch_committees(state)
        if key not in state.committee_sizes:
            raise InvariantViolation(f'Committee {committee_index} at slot {slot} is unknown')
        return state.committee_sizes[key]

    def _fetch_committees(self, state: EpochState) -> None:
        for committee in self.cc.get_attestation_committees(state.first_slot, state.epoch):
            state.committee_sizes[(committee.slot, committee.index)] = len(committee.validators)
        state.committees_fetched = True

    def _record_vote(
        self,
        state: EpochState,
        attestation: BlockAttestation,
        duty: AttesterDuty,
        inclusion_delay: int,
    ) -> None:
        data = attestation.data
        state.votes.add(duty.validator_index)

        counters = state.counters[data.slot]
        counters['included'] += 1
        fault = ValidatorFault(validator_index=duty.validator_index, attestation_data=data, inclusion_delay=inclusion_delay)

        if is_head_correct(state.headers, data):
            counters['correct_head'] += 1
            if inclusion_delay == TIMELY_HEAD_MAX_INCLUSION_DELAY:
                counters['timely_head'] += 1
            else:
                state.untimely_head.append(fault)
        else:
            state.incorrect_head.append(fault)
            if inclusion_delay > TIMELY_HEAD_MAX_INCLUSION_DELAY:
                state.untimely_head.append(fault)

        if inclusion_delay <= TIMELY_SOURCE_MAX_INCLUSION_DELAY:
            counters['timely_source'] += 1
        else:
            state.untimely_source.append(fault)

        if is_target_correct(state.headers, self.chain_time, data):
            counters['correct_target'] += 1
            if inclusion_delay <= TIMELY_TARGET_MAX_INCLUSION_DELAY:
                counters['timely_target'] += 1
            else:
                state.untimely_target.append(fault)
        else:
            state.incorrect_target.append(fault)
            if inclusion_delay > TIMELY_TARGET_MAX_INCLUSION_DELAY:
                state.untimely_target.append(fault)

    @staticmethod
    def _build_summary(
        state: EpochState,
        last_slot: SlotNumber,
        validators: list[Validator],
        proposals: list[EpochProposal],
    ) -> EpochSummary:
        non_participating = sorted(
            (
                NonParticipatingValidator(
                    validator_index=index,
                    slot=state.duties_by_validator[index].slot,
                    committee_index=state.duties_by_validator[index].committee_index,
                )
                for index in state.active_indices
                if index not in state.votes and index in state.duties_by_validator
            ),
            key=lambda v: (v.slot, v.committee_index, v.validator_index),
        )

        slots = tuple(
            SlotStats(slot=slot, attestations=SlotAttestations(**state.counters.get(slot, {})))
            for slot in sequence(state.first_slot, last_slot)
        )

        return EpochSummary(
            epoch=state.epoch,
            first_slot=state.first_slot,
            last_slot=last_slot,
            validators=tuple(validators),
            active_validators=len(state.active_indices),
            participating_validators=len(state.votes),
            proposals=tuple(proposals),
            non_participating_validators=tuple(non_participating),
            incorrect_head_validators=tuple(state.incorrect_head),
            untimely_head_validators=tuple(state.untimely_head),
            untimely_source_validators=tuple(state.untimely_source),
            incorrect_target_validators=tuple(state.incorrect_target),
            untimely_target_validators=tuple(state.untimely_target),
            slots=slots,
        )

    @staticmethod
    def _report_metrics(summary: EpochSummary) -> None:
        PERFORMANCE_SUMMARY_EPOCH.set(summary.epoch)
        PERFORMANCE_SUMMARY_VALIDATORS.labels('active').set(summary.active_validators)
        PERFORMANCE_SUMMARY_VALIDATORS.labels('participating').set(summary.participating_validators)
        PERFORMANCE_SUMMARY_VALIDATORS.labels('non_participating').set(len(summary.non_participating_validators))
        PERFORMANCE_SUMMARY_FAULTS.labels('incorrect_head').set(len(summary.incorrect_head_validators))
        PERFORMANCE_SUMMARY_FAULTS.labels('untimely_head').set(len(summary.untimely_head_validators))
        PERFORMANCE_SUMMARY_FAULTS.labels('untimely_source').set(len(summary.untimely_source_validators))
        PERFORMANCE_SUMMARY_FAULTS.labels('incorrect_target').set(len(summary.incorrect_target_validators))
        PERFORMANCE_SUMMARY_FAULTS.labels('untimely_target').set(len(summary.untimely_target_validators))
