from dataclasses import MISSING, fields, is_dataclass
from typing import Any, Generic, TypeGuard, TypeVar, get_type_hints

from hexbytes import HexBytes
from polyfactory import BaseFactory
from polyfactory.field_meta import FieldMeta, Null

T = TypeVar("T")


class Web3DataclassFactory(Generic[T], BaseFactory[T]):
    """Dataclass base factory. Strings are random 0x-prefixed 32 bytes hex as most of them are roots."""

    __is_base_factory__ = True

    @classmethod
    def is_supported_type(cls, value: Any) -> TypeGuard[type[T]]:
        return bool(is_dataclass(value))

    @classmethod
    def get_model_fields(cls) -> list["FieldMeta"]:
        fields_meta: list["FieldMeta"] = []

        model_type_hints = get_type_hints(cls.__model__, include_extras=True)

        for field in fields(cls.__model__):  # type: ignore[arg-type]
            if not field.init:
                continue

            if field.default_factory and field.default_factory is not MISSING:
                default_value = field.default_factory()
            elif field.default is not MISSING:
                default_value = field.default
            else:
                default_value = Null

            fields_meta.append(
                FieldMeta.from_type(
                    annotation=model_type_hints[field.name],
                    name=field.name,
                    default=default_value,
                    random=cls.__random__,
                ),
            )

        return fields_meta

    @classmethod
    def get_provider_map(cls):
        return {
            **super().get_provider_map(),
            **cls.get_web3_provider_map(),
        }

    @classmethod
    def get_web3_provider_map(cls):
        faker = cls.__faker__

        return {
            str: lambda: HexBytes(faker.binary(length=32)).to_0x_hex(),
            int: lambda: faker.pyint(max_value=2**20),
        }
