"""Domain-specific exceptions."""


class ServiceError(Exception):
    pass


class DataIntegrityError(ServiceError):
    """Stored entitlement periods overlap or are ambiguous."""


class InvalidWindow(ServiceError, ValueError):
    pass


class PeriodArithmeticError(ServiceError, ArithmeticError):
    pass


class DownstreamError(ServiceError):
    """A persistence or messaging collaborator failed."""


class TariffNotFound(ServiceError):
    pass


class InvalidGrant(ServiceError, ValueError):
    """Month count or payment of a grant is out of range."""
