import argparse
import logging
import sys
import traceback
from typing import Sequence

from prometheus_client import start_http_server
from requests.exceptions import ConnectionError as RequestsConnectionError
from timeout_decorator import TimeoutError as DecoratorTimeoutError
from timeout_decorator import timeout

from validator_perf import variables
from validator_perf.exceptions import ConfigurationError, InvariantViolation, ParseError, UnknownValidator
from validator_perf.metrics.logging import set_log_level
from validator_perf.metrics.prometheus.basic import ENV_VARIABLES_INFO, GENESIS_TIME
from validator_perf.modules import node
from validator_perf.modules.performance.report import render_json, render_text
from validator_perf.modules.performance.summary import EpochPerformanceSummarizer
from validator_perf.modules.performance.validators import ValidatorSelector
from validator_perf.providers.consensus.client import ConsensusClient
from validator_perf.providers.consistency import InconsistentProviders, NotHealthyProvider
from validator_perf.providers.http_provider import NotOkResponse
from validator_perf.types import Command, StateId
from validator_perf.utils.chain_time import ChainTimeCalculator

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_BAD_INPUT = 2


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog='validator-perf', description='Beacon chain node and validator diagnostics')
    parser.add_argument('--debug', action='store_true', help='Log on DEBUG level')
    parser.add_argument(
        '--timeout',
        type=int,
        default=variables.MAX_RUN_LIFETIME_IN_SECONDS,
        help='Abort the command after this number of seconds',
    )

    commands = parser.add_subparsers(dest='command', required=True)
    commands.add_parser(Command.PING, help='Check the configured beacon nodes respond')
    info = commands.add_parser(Command.INFO, help='Show genesis, fork, chain spec and current chain time')
    info.add_argument('--peers', action='store_true', help='Also list peers connected to the node')

    validator = commands.add_parser(Command.VALIDATOR, help='Validator commands')
    validator_commands = validator.add_subparsers(dest='validator_command', required=True)

    validator_info = validator_commands.add_parser('info', help='Show a single validator')
    validator_info.add_argument('validator', help='Validator index or 0x-prefixed public key')
    validator_info.add_argument('--state-id', default='head', help='Chain state to look the validator up at')

    perf = validator_commands.add_parser('perf', help='Summarize validators performance in epochs')
    perf.add_argument(
        '--validators',
        action='append',
        required=True,
        help='Validator indices or ranges, e.g. 1-10,42. Can be repeated',
    )
    perf.add_argument('--state-id', default=None, help='Chain state to resolve validators at. First slot of the epoch by default')
    perf.add_argument('--epoch', default=None, help='"current", "last", absolute epoch or negative offset. Default: "last"')
    perf.add_argument('--start', default=None, help='First epoch of a range')
    perf.add_argument('--end', default=None, help='Last epoch of a range')
    perf.add_argument('--num-epochs', default=None, help='Number of epochs after start or before end')
    perf.add_argument('--json', action='store_true', help='Print the summary as JSON')

    return parser


def split_selectors(values: Sequence[str]) -> list[str]:
    return [item.strip() for value in values for item in value.split(',') if item.strip()]


def run_command(cc: ConsensusClient, args: argparse.Namespace) -> int:
    if args.command == Command.PING:
        lines, all_alive = node.ping(cc)
        print('\n'.join(lines))
        return EXIT_OK if all_alive else EXIT_FAILURE

    if len(cc.get_all_providers()) > 1:
        logger.info({'msg': 'Check configured providers follow the same chain.'})
        cc.check_providers_consistency()

    chain_time = ChainTimeCalculator.from_provider(cc)
    GENESIS_TIME.set(chain_time.genesis_time)

    if args.command == Command.INFO:
        lines = node.info(cc, chain_time)
        if args.peers:
            lines += node.peers(cc)
        print('\n'.join(lines))
        return EXIT_OK

    if args.validator_command == 'info':
        validator = ValidatorSelector(cc).select_one(args.validator, StateId(args.state_id))
        print('\n'.join(node.validator_info(validator)))
        return EXIT_OK

    summarizer = EpochPerformanceSummarizer(cc, chain_time)
    selectors = split_selectors(args.validators)
    state_id = StateId(args.state_id) if args.state_id is not None else None

    if any(value is not None for value in (args.start, args.end, args.num_epochs)):
        if args.epoch is not None:
            raise ParseError('--epoch can not be combined with --start, --end or --num-epochs')
        summaries = summarizer.summarize_range(selectors, state_id, args.start, args.end, args.num_epochs)
    else:
        summaries = [summarizer.summarize(selectors, state_id, args.epoch if args.epoch is not None else 'last')]

    if args.json:
        print(render_json(summaries))
    else:
        print('\n\n'.join(render_text(summary) for summary in summaries))
    return EXIT_OK


def execute(cc: ConsensusClient, args: argparse.Namespace) -> int:
    """Run the command within the deadline. Nothing is printed if it fails."""
    # pylint: disable=too-many-return-statements
    try:
        return timeout(args.timeout)(run_command)(cc, args)
    except DecoratorTimeoutError as error:
        logger.error({'msg': f'Command did not finish in {args.timeout} seconds.', 'error': str(error)})
        return _failure(error)
    except ParseError as error:
        logger.error({'msg': 'Bad input.', 'error': str(error)})
        print(f'Error: {error}', file=sys.stderr)
        return EXIT_BAD_INPUT
    except UnknownValidator as error:
        logger.error({'msg': 'Unknown validator.', 'error': str(error)})
        return _failure(error)
    except ConfigurationError as error:
        logger.error({'msg': 'Chain configuration is unusable.', 'error': str(error)})
        return _failure(error)
    except (NotHealthyProvider, InconsistentProviders) as error:
        logger.error({'msg': 'Providers check failed.', 'error': str(error)})
        return _failure(error)
    except InvariantViolation as error:
        logger.error({'msg': 'Inconsistent response from consensus layer node.', 'error': str(error)})
        return _failure(error)
    except RequestsConnectionError as error:
        logger.error({'msg': 'Connection error.', 'error': str(error)})
        return _failure(error)
    except NotOkResponse as error:
        logger.error({'msg': ''.join(traceback.format_exception(error))})
        return _failure(error)


def _failure(error: Exception) -> int:
    print(f'Error: {str(error) or repr(error)}', file=sys.stderr)
    return EXIT_FAILURE


def main(argv: Sequence[str] | None = None) -> int:
    args = build_parser().parse_args(argv)

    set_log_level(args.debug)

    errors = variables.check_uri_required_variables()
    variables.raise_from_errors(errors)

    logger.info({
        'msg': 'Validator performance tool startup.',
        'variables': {
            'command': args.command,
            **variables.PUBLIC_ENV_VARS,
        },
    })
    ENV_VARIABLES_INFO.info(variables.PUBLIC_ENV_VARS)

    if variables.PROMETHEUS_PORT:
        logger.info({'msg': f'Start http server with prometheus metrics on port {variables.PROMETHEUS_PORT}'})
        start_http_server(variables.PROMETHEUS_PORT)

    logger.info({'msg': 'Initialize consensus client.'})
    cc = ConsensusClient(
        variables.CONSENSUS_CLIENT_URI,
        variables.HTTP_REQUEST_TIMEOUT_CONSENSUS,
        variables.HTTP_REQUEST_RETRY_COUNT_CONSENSUS,
        variables.HTTP_REQUEST_SLEEP_BEFORE_RETRY_IN_SECONDS_CONSENSUS,
    )

    return execute(cc, args)


if __name__ == '__main__':
    sys.exit(main())
