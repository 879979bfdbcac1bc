class ConfigurationError(Exception):
    """Chain or client setup is unusable. Raised at construction time, never retried."""


class MissingSpecConstant(ConfigurationError):
    pass


class ParseError(ValueError):
    """User input could not be parsed. The message always contains the offending input."""


class EpochParseError(ParseError):
    pass


class ValidatorSelectorError(ParseError):
    pass


class PublicKeyLengthError(ParseError):
    pass


class UnknownValidator(Exception):
    pass


class InvariantViolation(Exception):
    """Upstream data contradicts itself, e.g. there is no canonical block down to genesis."""
