import logging
from datetime import datetime, timezone
from urllib.parse import urlparse

from validator_perf.constants import FAR_FUTURE_EPOCH
from validator_perf.exceptions import MissingSpecConstant
from validator_perf.providers.consensus.client import ConsensusClient
from validator_perf.providers.consensus.types import Validator
from validator_perf.providers.http_provider import NotOkResponse
from validator_perf.types import Gwei
from validator_perf.utils.chain_time import ChainTimeCalculator

logger = logging.getLogger(__name__)

GWEI_PER_ETH = 10**9


def ping(cc: ConsensusClient) -> tuple[list[str], bool]:
    """
    Ask every configured node for its version and sync status.
    Returns report lines and whether all the nodes responded.
    """
    lines = []
    all_alive = True

    for provider_index, host in enumerate(cc.get_all_providers()):
        domain = urlparse(host).netloc
        try:
            version = cc.get_node_version_with_provider(provider_index)
            syncing = cc.get_syncing_with_provider(provider_index)
        except NotOkResponse as error:
            logger.error({'msg': f'Node {domain} is not reachable.', 'error': str(error)})
            lines.append(f'{domain}: unreachable ({error.status})')
            all_alive = False
            continue

        logger.info({'msg': f'Node {domain} responded.', 'version': version.version, 'head_slot': syncing.head_slot})
        lines.append(
            f'{domain}: {version.version}, head slot {syncing.head_slot}, '
            f'sync distance {syncing.sync_distance}, synced: {not syncing.is_syncing}'
        )

    return lines, all_alive


def info(cc: ConsensusClient, chain_time: ChainTimeCalculator) -> list[str]:
    genesis = cc.get_genesis()
    fork = cc.get_fork()
    genesis_at = datetime.fromtimestamp(genesis.genesis_time, tz=timezone.utc)

    lines = [
        f'Genesis time: {genesis_at.isoformat()} ({genesis.genesis_time})',
        f'Genesis validators root: {genesis.genesis_validators_root}',
        f'Genesis fork version: {genesis.genesis_fork_version}',
        f'Current fork version: {fork.current_version} (since epoch {fork.epoch})',
        f'Previous fork version: {fork.previous_version}',
        f'Seconds per slot: {chain_time.seconds_per_slot}',
        f'Slots per epoch: {chain_time.slots_per_epoch}',
        f'Current slot: {chain_time.get_current_slot()}',
        f'Current epoch: {chain_time.get_current_epoch()}',
    ]

    try:
        period = chain_time.get_current_sync_committee_period()
    except MissingSpecConstant:
        logger.info({'msg': 'Chain has no sync committees.'})
    else:
        lines.append(f'Current sync committee period: {period}')

    return lines


def peers(cc: ConsensusClient) -> list[str]:
    """Connected peers of the node, then how many of them dialed in and how many were dialed"""
    connected = cc.get_node_peers('connected')
    inbound = sum(1 for peer in connected if peer.direction == 'inbound')

    lines = [
        f'Peer {peer.peer_id}: {peer.last_seen_p2p_address or "unknown address"}, {peer.state}, {peer.direction}'
        for peer in connected
    ]
    lines += [
        f'Inbound peers: {inbound}',
        f'Outbound peers: {len(connected) - inbound}',
        f'Total connected peers: {len(connected)}',
    ]
    return lines


def _to_eth(amount: Gwei) -> str:
    return f'{amount / GWEI_PER_ETH:.9f}'.rstrip('0').rstrip('.')


def _epoch(value: int) -> str:
    return 'never' if value == FAR_FUTURE_EPOCH else str(value)


def validator_info(validator: Validator) -> list[str]:
    state = validator.validator
    return [
        f'Validator index: {validator.index}',
        f'Public key: {validator.pubkey.to_0x_hex()}',
        f'Status: {validator.status}',
        f'Balance: {_to_eth(validator.balance)} ETH',
        f'Effective balance: {_to_eth(state.effective_balance)} ETH',
        f'Activation eligibility epoch: {_epoch(state.activation_eligibility_epoch)}',
        f'Activation epoch: {_epoch(state.activation_epoch)}',
        f'Exit epoch: {_epoch(state.exit_epoch)}',
        f'Withdrawable epoch: {_epoch(state.withdrawable_epoch)}',
        f'Slashed: {state.slashed}',
        f'Withdrawal credentials: {state.withdrawal_credentials}',
    ]
