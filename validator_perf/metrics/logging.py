import dataclasses
import json
import logging
from typing import Mapping, Iterator, Any

from validator_perf import variables


def to_loggable(data: Any) -> Any:
    """
    Make a log message field JSON friendly: bytes become 0x-prefixed hex, dataclasses become dicts
    and sets become sorted lists. Iterators are not consumed, their repr is logged instead.
    Anything else JSON can not encode is logged as str() by the formatter.
    """
    if isinstance(data, bytes):
        return '0x' + data.hex()
    if dataclasses.is_dataclass(data) and not isinstance(data, type):
        return to_loggable(dataclasses.asdict(data))
    if isinstance(data, Mapping):
        return {key: to_loggable(value) for key, value in data.items()}
    if isinstance(data, Iterator):
        return repr(data)
    if isinstance(data, (set, frozenset)):
        return sorted(to_loggable(item) for item in data)
    if isinstance(data, (list, tuple)):
        return type(data)(to_loggable(item) for item in data)
    return data


class JsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        message = record.msg if isinstance(record.msg, dict) else {'msg': record.getMessage()}

        message = to_loggable(message)

        if 'value' in message:
            message['value'] = str(message['value'])

        if exc_info := getattr(record, 'exc_info', None):
            message['exc'] = self.formatException(exc_info)

        return json.dumps(
            {
                'timestamp': int(record.created),
                'name': record.name,
                'levelname': record.levelname,
                'funcName': record.funcName,
                'lineno': record.lineno,
                'module': record.module,
                'pathname': record.pathname,
                **message,
            },
            default=str,
        )


def set_log_level(debug: bool) -> None:
    logging.getLogger().setLevel(logging.DEBUG if debug else variables.LOG_LEVEL)


# stderr, so the report printed to stdout stays parseable
handler = logging.StreamHandler()
handler.setFormatter(JsonFormatter())

logging.basicConfig(
    level=variables.LOG_LEVEL,
    handlers=[handler],
)
