import functools
from dataclasses import dataclass, fields, is_dataclass
from types import GenericAlias
from typing import Callable, Self, Sequence, TypeVar


class DecodeToDataclassException(Exception):
    pass


@dataclass
class Nested:
    """
    Base class for dataclasses that converts all inner dicts into dataclasses
    Also works with lists of dataclasses
    """
    def __post_init__(self):
        for field in fields(self):
            if isinstance(field.type, GenericAlias):
                field_type = field.type.__args__[0]
                if is_dataclass(field_type):
                    factory = self.__get_dataclass_factory(field_type)
                    setattr(self, field.name,
                            field.type.__origin__(map(
                                lambda x: factory(**x) if not is_dataclass(x) else x,
                                getattr(self, field.name))))
            elif is_dataclass(field.type) and not is_dataclass(getattr(self, field.name)):
                factory = self.__get_dataclass_factory(field.type)
                setattr(self, field.name, factory(**getattr(self, field.name)))

    @staticmethod
    def __get_dataclass_factory(field_type):
        if issubclass(field_type, FromResponse):
            return field_type.from_response
        return field_type


T = TypeVar('T')


def _is_int_type(field_type) -> bool:
    # NewType('SlotNumber', int) and friends
    while hasattr(field_type, '__supertype__'):
        field_type = field_type.__supertype__
    return field_type is int


def _to_int(value):
    return int(value) if isinstance(value, str) else value


@dataclass
class FromResponse:
    """
    Class for extending dataclass with custom from_response method, ignored extra fields

    Beacon API encodes all integers as decimal strings, so fields annotated with int
    (or NewType over int) and lists of them are converted on the way in.
    """

    @classmethod
    def from_response(cls, **kwargs) -> Self:
        values = {}
        for field in fields(cls):
            if field.name not in kwargs:
                continue
            value = kwargs[field.name]
            if _is_int_type(field.type):
                value = _to_int(value)
            elif isinstance(field.type, GenericAlias) and _is_int_type(field.type.__args__[0]) and value is not None:
                value = field.type.__origin__(map(_to_int, value))
            values[field.name] = value
        return cls(**values)


def list_of_dataclasses(
    _dataclass_factory: Callable[..., T]
) -> Callable[[Callable[..., Sequence]], Callable[..., list[T]]]:
    """Decorator to transform list of dicts from func response to list of dataclasses"""
    def decorator(func: Callable[..., Sequence]) -> Callable[..., list[T]]:
        @functools.wraps(func)
        def wrapper_decorator(*args, **kwargs):
            list_of_elements = func(*args, **kwargs)

            if isinstance(list_of_elements, list) and not list_of_elements:
                return []

            if isinstance(list_of_elements, list) and all(isinstance(x, dict) for x in list_of_elements):
                return list(map(lambda x: _dataclass_factory(**x), list_of_elements))

            raise DecodeToDataclassException(f'Type {type(list_of_elements)} is not supported.')
        return wrapper_decorator

    return decorator
