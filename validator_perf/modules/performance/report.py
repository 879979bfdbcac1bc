import json
from typing import Iterable

from validator_perf.modules.performance.types import EpochSummary, ValidatorFault

INDENT = '  '


def _fault_line(fault: ValidatorFault, with_delay: bool) -> str:
    data = fault.attestation_data
    line = f'{fault.validator_index} (slot {data.slot}, committee {data.index}'
    if with_delay:
        line += f', inclusion distance {fault.inclusion_delay}'
    return line + ')'


def _section(title: str, lines: list[str]) -> list[str]:
    if not lines:
        return []
    return [f'{INDENT}{title}:'] + [f'{INDENT * 2}{line}' for line in lines]


def render_text(summary: EpochSummary) -> str:
    """Human-readable summary. Empty sections are omitted."""
    proposers = []
    for proposal in summary.proposals:
        validator = summary.validator(proposal.proposer)
        line = validator.pubkey.to_0x_hex() if validator else str(proposal.proposer)
        if not proposal.block:
            line += ' (missed)'
        proposers.append(line)

    non_participating = [
        f'{v.validator_index} (slot {v.slot}, committee {v.committee_index})'
        for v in summary.non_participating_validators
    ]

    lines = [f'Epoch {summary.epoch}:']
    lines += _section('Proposer validators', proposers)
    lines += _section('Non-participating validators', non_participating)
    lines += _section('Incorrect head validators', [_fault_line(f, False) for f in summary.incorrect_head_validators])
    lines += _section('Untimely head validators', [_fault_line(f, True) for f in summary.untimely_head_validators])
    lines += _section('Untimely source validators', [_fault_line(f, True) for f in summary.untimely_source_validators])
    lines += _section('Incorrect target validators', [_fault_line(f, False) for f in summary.incorrect_target_validators])
    lines += _section('Untimely target validators', [_fault_line(f, True) for f in summary.untimely_target_validators])
    return '\n'.join(lines)


def render_json(summaries: Iterable[EpochSummary]) -> str:
    summaries = list(summaries)
    if len(summaries) == 1:
        return json.dumps(summaries[0].to_dict(), indent=2)
    return json.dumps([s.to_dict() for s in summaries], indent=2)
