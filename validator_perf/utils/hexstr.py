HEX_PREFIX = '0x'


def hex_str_to_bytes(hex_str: str) -> bytes:
    """
    Decode a hex string as the beacon API and users write it, with or without the 0x prefix.
    Raises ValueError on an odd number of digits or a non-hex digit.
    """
    digits = hex_str[len(HEX_PREFIX):] if hex_str[:len(HEX_PREFIX)].lower() == HEX_PREFIX else hex_str
    if len(digits) % 2:
        raise ValueError(f'Odd number of hex digits in {hex_str!r}')
    return bytes.fromhex(digits)


def same_hex(left: str, right: str) -> bool:
    """Roots and keys are equal regardless of the digits case"""
    return left.lower() == right.lower()
