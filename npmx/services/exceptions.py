"""Domain-specific exceptions."""


class ServiceError(Exception):
    pass


class RegistryError(ServiceError):
    """Raised when the package registry lookup fails."""


class CollectionNotFound(ServiceError):
    pass
