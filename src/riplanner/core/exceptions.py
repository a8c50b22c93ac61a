"""Custom exceptions for reservation-planner"""


class RIPlannerError(Exception):
    """Base exception for all reservation-planner errors"""
    pass


class ConfigurationError(RIPlannerError):
    """Raised when configuration is invalid. Always fatal, raised before any stage runs"""
    pass


class ValidationError(RIPlannerError):
    """Raised when input data (CSV rows, provider payloads) cannot be parsed"""
    pass


class DataCollectionError(RIPlannerError):
    """Raised when a collaborator (commitments, inventory, lifecycle) is unavailable"""
    pass


class PurchaseError(RIPlannerError):
    """Raised when a single purchase fails"""
    pass


class ProviderError(RIPlannerError):
    """Base exception for provider-specific errors"""
    def __init__(self, provider: str, message: str):
        self.provider = provider
        super().__init__(f"[{provider}] {message}")


class AWSError(ProviderError):
    """AWS-specific errors"""
    def __init__(self, message: str):
        super().__init__("AWS", message)
