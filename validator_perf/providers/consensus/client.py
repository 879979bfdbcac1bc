import logging
from http import HTTPStatus
from typing import Any, Literal, Protocol, Sequence, cast

from validator_perf.exceptions import ConfigurationError
from validator_perf.metrics.prometheus.basic import CL_REQUESTS_DURATION
from validator_perf.providers.consensus.types import (
    AttesterDuty,
    BeaconBlock,
    BlockAttestationResponse,
    BlockHeaderResponseData,
    Fork,
    GenesisResponse,
    NodePeer,
    NodeSyncing,
    NodeVersion,
    ProposerDuties,
    SlotAttestationCommittee,
    Validator,
)
from validator_perf.providers.http_provider import (
    HTTPProvider,
    NotOkResponse,
    data_is_dict,
    data_is_list,
)
from validator_perf.types import EpochNumber, SlotNumber, StateId, ValidatorIndex
from validator_perf.utils.dataclass import list_of_dataclasses

logger = logging.getLogger(__name__)

LiteralState = Literal['head', 'genesis', 'finalized', 'justified']


class ConsensusClientError(NotOkResponse):
    pass


class ConsensusClient(HTTPProvider):
    """
    API specifications can be found here
    https://ethereum.github.io/beacon-APIs/

    state_id
    State identifier. Can be one of: "head" (canonical head in node's view), "genesis", "finalized", "justified", <slot>, <hex encoded stateRoot with 0x prefix>.

    Methods that ask for a particular block or header return None if there is no block at the slot.
    """

    PROVIDER_EXCEPTION = ConsensusClientError
    PROMETHEUS_HISTOGRAM = CL_REQUESTS_DURATION

    API_GET_BLOCK_HEADER = 'eth/v1/beacon/headers/{}'
    API_GET_BLOCK_DETAILS = 'eth/v2/beacon/blocks/{}'
    API_GET_ATTESTATION_COMMITTEES = 'eth/v1/beacon/states/{}/committees'
    API_GET_PROPOSER_DUTIES = 'eth/v1/validator/duties/proposer/{}'
    API_POST_ATTESTER_DUTIES = 'eth/v1/validator/duties/attester/{}'
    API_GET_SPEC = 'eth/v1/config/spec'
    API_GET_GENESIS = 'eth/v1/beacon/genesis'
    API_GET_VALIDATOR = 'eth/v1/beacon/states/{}/validators/{}'
    API_VALIDATORS = 'eth/v1/beacon/states/{}/validators'
    API_GET_NODE_VERSION = 'eth/v1/node/version'
    API_GET_NODE_SYNCING = 'eth/v1/node/syncing'
    API_GET_NODE_PEERS = 'eth/v1/node/peers'
    API_GET_FORK = 'eth/v1/beacon/states/{}/fork'

    def get_config_spec(self) -> dict[str, Any]:
        """Spec: https://ethereum.github.io/beacon-APIs/#/Config/getSpec"""
        data, _ = self._get(self.API_GET_SPEC, retval_validator=data_is_dict)
        return data

    def get_genesis(self) -> GenesisResponse:
        """
        Spec: https://ethereum.github.io/beacon-APIs/#/Beacon/getGenesis
        """
        data, _ = self._get(self.API_GET_GENESIS, retval_validator=data_is_dict)
        return GenesisResponse.from_response(**data)

    def get_block_header(self, state_id: SlotNumber | LiteralState) -> BlockHeaderResponseData | None:
        """Spec: https://ethereum.github.io/beacon-APIs/#/Beacon/getBlockHeader"""
        try:
            data, _ = self._get(
                self.API_GET_BLOCK_HEADER,
                path_params=(state_id,),
                force_raise=self.__raise_last_missed_slot_error,
                retval_validator=data_is_dict,
            )
        except NotOkResponse as error:
            if error.status == HTTPStatus.NOT_FOUND:
                logger.debug({'msg': f'No block header at slot {state_id}.'})
                return None
            raise
        return BlockHeaderResponseData.from_response(**data)

    def get_block(self, state_id: SlotNumber | LiteralState) -> BeaconBlock | None:
        """Spec: https://ethereum.github.io/beacon-APIs/#/Beacon/getBlockV2"""
        try:
            data, _ = self._get(
                self.API_GET_BLOCK_DETAILS,
                path_params=(state_id,),
                force_raise=self.__raise_last_missed_slot_error,
                retval_validator=data_is_dict,
            )
        except NotOkResponse as error:
            if error.status == HTTPStatus.NOT_FOUND:
                logger.debug({'msg': f'No block at slot {state_id}.'})
                return None
            raise

        message = data["message"]
        return BeaconBlock.from_response(
            slot=message["slot"],
            proposer_index=message["proposer_index"],
            attestations=[
                BlockAttestationResponse.from_response(**att)
                for att in message["body"]["attestations"]
            ],
        )

    def get_validators(
        self,
        state_id: StateId | SlotNumber,
        indices: Sequence[ValidatorIndex] = (),
        pubkeys: Sequence[str] = (),
    ) -> list[Validator]:
        """
        Spec: https://ethereum.github.io/beacon-APIs/#/Beacon/postStateValidators

        Nodes that do not support POST yet are asked with GET and the `id` query param.
        """
        ids = [str(i) for i in indices] + list(pubkeys)
        if not ids:
            return []

        try:
            data, _ = self._post(
                self.API_VALIDATORS,
                path_params=(state_id,),
                body={'ids': ids},
                force_raise=self.__raise_on_method_not_allowed,
                retval_validator=data_is_list,
            )
        except NotOkResponse as error:
            if error.status != HTTPStatus.METHOD_NOT_ALLOWED:
                raise
            data = self._get_validators_with_query(state_id, ids)

        return [Validator.from_response(**v) for v in data]

    def _get_validators_with_query(self, state_id: StateId | SlotNumber, ids: list[str]) -> list[dict]:
        """Spec: https://ethereum.github.io/beacon-APIs/#/Beacon/getStateValidators"""
        data, _ = self._get(
            self.API_VALIDATORS,
            path_params=(state_id,),
            query_params={'id': ','.join(ids)},
            retval_validator=data_is_list,
        )
        return data

    def get_validator(self, state_id: StateId | SlotNumber, validator_id: ValidatorIndex | str) -> Validator | None:
        """Spec: https://ethereum.github.io/beacon-APIs/#/Beacon/getStateValidator"""
        try:
            data, _ = self._get(
                self.API_GET_VALIDATOR,
                path_params=(state_id, validator_id),
                force_raise=self.__raise_last_missed_slot_error,
                retval_validator=data_is_dict,
            )
        except NotOkResponse as error:
            if error.status == HTTPStatus.NOT_FOUND:
                return None
            raise
        return Validator.from_response(**data)

    @list_of_dataclasses(ProposerDuties.from_response)
    def get_proposer_duties(self, epoch: EpochNumber) -> list[ProposerDuties]:
        """Spec: https://ethereum.github.io/beacon-APIs/#/Validator/getProposerDuties"""
        data, _ = self._get(
            self.API_GET_PROPOSER_DUTIES,
            path_params=(epoch,),
            retval_validator=data_is_list,
        )
        return data

    def get_attester_duties(self, epoch: EpochNumber, indices: Sequence[ValidatorIndex]) -> list[AttesterDuty]:
        """Spec: https://ethereum.github.io/beacon-APIs/#/Validator/getAttesterDuties"""
        if not indices:
            return []

        data, _ = self._post(
            self.API_POST_ATTESTER_DUTIES,
            path_params=(epoch,),
            body=[str(i) for i in indices],
            retval_validator=data_is_list,
        )
        return [AttesterDuty.from_response(**duty) for duty in data]

    @list_of_dataclasses(SlotAttestationCommittee.from_response)
    def get_attestation_committees(
        self,
        state_id: StateId | SlotNumber,
        epoch: EpochNumber | None = None,
    ) -> list[SlotAttestationCommittee]:
        """Spec: https://ethereum.github.io/beacon-APIs/#/Beacon/getEpochCommittees"""
        data, _ = self._get(
            self.API_GET_ATTESTATION_COMMITTEES,
            path_params=(state_id,),
            query_params={'epoch': epoch},
            retval_validator=data_is_list,
        )
        return cast(list[SlotAttestationCommittee], data)

    def get_node_version_with_provider(self, provider_index: int) -> NodeVersion:
        """Spec: https://ethereum.github.io/beacon-APIs/#/Node/getNodeVersion"""
        data, _ = self._get_without_fallbacks(
            self.hosts[provider_index],
            self.API_GET_NODE_VERSION,
            retval_validator=data_is_dict,
        )
        return NodeVersion.from_response(**data)

    def get_syncing_with_provider(self, provider_index: int) -> NodeSyncing:
        """Spec: https://ethereum.github.io/beacon-APIs/#/Node/getSyncingStatus"""
        data, _ = self._get_without_fallbacks(
            self.hosts[provider_index],
            self.API_GET_NODE_SYNCING,
            retval_validator=data_is_dict,
        )
        return NodeSyncing.from_response(**data)

    def get_fork(self, state_id: StateId | SlotNumber = StateId('head')) -> Fork:
        """Spec: https://ethereum.github.io/beacon-APIs/#/Beacon/getStateFork"""
        data, _ = self._get(
            self.API_GET_FORK,
            path_params=(state_id,),
            retval_validator=data_is_dict,
        )
        return Fork.from_response(**data)

    @list_of_dataclasses(NodePeer.from_response)
    def get_node_peers(self, state: str = 'connected') -> list[NodePeer]:
        """Spec: https://ethereum.github.io/beacon-APIs/#/Node/getPeers"""
        data, _ = self._get(
            self.API_GET_NODE_PEERS,
            query_params={'state': state},
            retval_validator=data_is_list,
        )
        return cast(list[NodePeer], data)

    def __raise_last_missed_slot_error(self, errors: list[Exception]) -> Exception | None:
        """
        Prioritize NotOkResponse before other exceptions (ConnectionError, TimeoutError).
        If status is 404 slot is missed and this should be handled correctly.
        """
        if len(errors) == len(self.hosts):
            for error in errors:
                if isinstance(error, NotOkResponse) and error.status == HTTPStatus.NOT_FOUND:
                    return error

        return None

    def __raise_on_method_not_allowed(self, errors: list[Exception]) -> Exception | None:
        last_error = errors[-1]
        if isinstance(last_error, NotOkResponse) and last_error.status == HTTPStatus.METHOD_NOT_ALLOWED:
            return last_error
        return None

    def _get_chain_identity_with_provider(self, provider_index: int) -> str:
        data, _ = self._get_without_fallbacks(
            self.hosts[provider_index],
            self.API_GET_GENESIS,
            retval_validator=data_is_dict,
        )
        return GenesisResponse.from_response(**data).genesis_validators_root


class ChainQueryService(Protocol):
    """Everything the performance summary reads from the chain"""

    def get_genesis(self) -> GenesisResponse: ...

    def get_config_spec(self) -> dict[str, Any]: ...

    def get_validators(
        self,
        state_id: StateId | SlotNumber,
        indices: Sequence[ValidatorIndex] = (),
        pubkeys: Sequence[str] = (),
    ) -> list[Validator]: ...

    def get_validator(self, state_id: StateId | SlotNumber, validator_id: ValidatorIndex | str) -> Validator | None: ...

    def get_proposer_duties(self, epoch: EpochNumber) -> list[ProposerDuties]: ...

    def get_attester_duties(self, epoch: EpochNumber, indices: Sequence[ValidatorIndex]) -> list[AttesterDuty]: ...

    def get_block(self, state_id: SlotNumber) -> BeaconBlock | None: ...

    def get_block_header(self, state_id: SlotNumber) -> BlockHeaderResponseData | None: ...

    def get_attestation_committees(
        self,
        state_id: StateId | SlotNumber,
        epoch: EpochNumber | None = None,
    ) -> list[SlotAttestationCommittee]: ...


REQUIRED_CAPABILITIES = (
    'get_genesis',
    'get_config_spec',
    'get_validators',
    'get_validator',
    'get_proposer_duties',
    'get_attester_duties',
    'get_block',
    'get_block_header',
    'get_attestation_committees',
)


def ensure_capabilities(client: object) -> ChainQueryService:
    for name in REQUIRED_CAPABILITIES:
        if not callable(getattr(client, name, None)):
            raise ConfigurationError(f'{client.__class__.__name__} does not provide {name}')
    return cast(ChainQueryService, client)
