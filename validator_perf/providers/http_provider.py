import logging
from abc import ABC
from http import HTTPStatus
from typing import Any, Callable, NoReturn, Protocol, Sequence
from urllib.parse import urljoin, urlparse

from prometheus_client import Histogram
from requests import JSONDecodeError, Response, Session
from requests.adapters import HTTPAdapter
from urllib3 import Retry

from validator_perf.providers.consistency import ProviderConsistencyModule

logger = logging.getLogger(__name__)


class NoHostsProvided(Exception):
    pass


class NotOkResponse(Exception):
    status: int
    text: str

    def __init__(self, *args, status: int, text: str):
        self.status = status
        self.text = text
        super().__init__(*args)


class ReturnValueValidator(Protocol):
    def __call__(self, data: Any, meta: dict, *, endpoint: str) -> None | NoReturn: ...


def data_is_any(data: Any, meta: dict, *, endpoint: str):
    pass


def data_is_dict(data: Any, meta: dict, *, endpoint: str):
    if not isinstance(data, dict):
        raise ValueError(f"Expected mapping response from {endpoint}")


def data_is_list(data: Any, meta: dict, *, endpoint: str):
    if not isinstance(data, list):
        raise ValueError(f"Expected list response from {endpoint}")


class HTTPProvider(ProviderConsistencyModule, ABC):
    """
    Base HTTP Provider with metrics and retry strategy integrated inside.
    """

    PROMETHEUS_HISTOGRAM: Histogram
    request_timeout: int

    PROVIDER_EXCEPTION = NotOkResponse

    def __init__(
        self,
        hosts: list[str],
        request_timeout: int,
        retry_total: int,
        retry_backoff_factor: int,
    ):
        if not hosts:
            raise NoHostsProvided(f"No hosts provided for {self.__class__.__name__}")

        self.hosts = hosts
        self.request_timeout = request_timeout
        self.retry_count = retry_total
        self.backoff_factor = retry_backoff_factor

        retry_strategy = Retry(
            total=self.retry_count,
            status_forcelist=[418, 429, 500, 502, 503, 504],
            backoff_factor=self.backoff_factor,
            # POST is used for read-only batched queries only
            allowed_methods=frozenset({'GET', 'POST'}),
        )

        adapter = HTTPAdapter(max_retries=retry_strategy)
        self.session = Session()
        self.session.mount("https://", adapter)
        self.session.mount("http://", adapter)

    @staticmethod
    def _urljoin(host, url):
        if not host.endswith('/'):
            host += '/'
        return urljoin(host, url)

    def _get(
        self,
        endpoint: str,
        path_params: Sequence[str | int] | None = None,
        query_params: dict | None = None,
        force_raise: Callable[..., Exception | None] = lambda _: None,
        retval_validator: ReturnValueValidator = data_is_any,
    ) -> tuple[Any, dict]:
        """
        Get request with fallbacks
        Returns (data, meta) or raises exception

        force_raise - function that returns an Exception if it should be thrown immediately.
        Sometimes NotOk response from first provider is the response that we are expecting.
        """
        return self._with_fallbacks(
            lambda host: self._get_without_fallbacks(
                host,
                endpoint,
                path_params,
                query_params,
                retval_validator=retval_validator,
            ),
            force_raise,
        )

    def _post(
        self,
        endpoint: str,
        path_params: Sequence[str | int] | None = None,
        body: Any = None,
        force_raise: Callable[..., Exception | None] = lambda _: None,
        retval_validator: ReturnValueValidator = data_is_any,
    ) -> tuple[Any, dict]:
        """
        Post request with JSON body and fallbacks. Used for read-only queries with long parameter lists.
        Returns (data, meta) or raises exception
        """
        return self._with_fallbacks(
            lambda host: self._post_without_fallbacks(
                host,
                endpoint,
                path_params,
                body,
                retval_validator=retval_validator,
            ),
            force_raise,
        )

    def _with_fallbacks(
        self,
        request: Callable[[str], tuple[Any, dict]],
        force_raise: Callable[..., Exception | None],
    ) -> tuple[Any, dict]:
        errors: list[Exception] = []

        for host in self.hosts:
            try:
                return request(host)
            except Exception as e:  # pylint: disable=W0703
                errors.append(e)

                # Check if exception should be raised immediately
                if to_force_raise := force_raise(errors):
                    raise to_force_raise from e

                logger.warning(
                    {
                        'msg': f'[{self.__class__.__name__}] Host [{urlparse(host).netloc}] responded with error',
                        'error': str(e),
                        'provider': urlparse(host).netloc,
                    }
                )

        # Raise error from last provider.
        raise errors[-1]

    def _get_without_fallbacks(
        self,
        host: str,
        endpoint: str,
        path_params: Sequence[str | int] | None = None,
        query_params: dict | None = None,
        retval_validator: ReturnValueValidator = data_is_any,
    ) -> tuple[Any, dict]:
        """
        Simple get request without fallbacks
        Returns (data, meta) or raises an exception
        """
        return self._request_without_fallbacks(
            'GET',
            host,
            endpoint,
            path_params,
            retval_validator,
            params=query_params,
        )

    def _post_without_fallbacks(
        self,
        host: str,
        endpoint: str,
        path_params: Sequence[str | int] | None = None,
        body: Any = None,
        retval_validator: ReturnValueValidator = data_is_any,
    ) -> tuple[Any, dict]:
        return self._request_without_fallbacks(
            'POST',
            host,
            endpoint,
            path_params,
            retval_validator,
            json=body,
        )

    def _request_without_fallbacks(
        self,
        method: str,
        host: str,
        endpoint: str,
        path_params: Sequence[str | int] | None,
        retval_validator: ReturnValueValidator,
        **request_kwargs,
    ) -> tuple[Any, dict]:
        complete_endpoint = endpoint.format(*path_params) if path_params else endpoint

        with self.PROMETHEUS_HISTOGRAM.time() as t:
            try:
                response: Response = self.session.request(
                    method,
                    self._urljoin(host, complete_endpoint),
                    timeout=self.request_timeout,
                    **request_kwargs,
                )
            except Exception as error:
                logger.error({'msg': str(error)})
                t.labels(
                    endpoint=endpoint,
                    code=0,
                    domain=urlparse(host).netloc,
                )
                raise self.PROVIDER_EXCEPTION(status=0, text='Response error.') from error

            t.labels(
                endpoint=endpoint,
                code=response.status_code,
                domain=urlparse(host).netloc,
            )

            if response.status_code != HTTPStatus.OK:
                response_fail_msg = (
                    f'Response from {complete_endpoint} [{response.status_code}]'
                    f' with text: "{str(response.text)}" returned.'
                )
                logger.debug({'msg': response_fail_msg})
                raise self.PROVIDER_EXCEPTION(response_fail_msg, status=response.status_code, text=response.text)

            try:
                json_response = response.json()
            except JSONDecodeError as error:
                response_fail_msg = (
                    f'Failed to decode JSON response from {complete_endpoint} with text: "{str(response.text)}"'
                )
                logger.debug({'msg': response_fail_msg})
                raise self.PROVIDER_EXCEPTION(status=0, text='JSON decode error.') from error

        try:
            data = json_response["data"]
            del json_response["data"]
            meta = json_response
        except (KeyError, TypeError):
            data = json_response
            meta = {}

        retval_validator(data, meta, endpoint=endpoint)
        return data, meta

    def get_all_providers(self) -> list[str]:
        return self.hosts

    def _get_chain_identity_with_provider(self, provider_index: int) -> str:
        raise NotImplementedError("_get_chain_identity_with_provider should be implemented")
