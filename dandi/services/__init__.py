"""Dandi services layer."""

from dandi.services.api_key import ApiKeyService
from dandi.services.gate import AccessGate, AdmissionResult, AdmissionStatus
from dandi.services.metering import UsageMeter, create_usage_incrementer

__all__ = [
    "AccessGate",
    "AdmissionResult",
    "AdmissionStatus",
    "ApiKeyService",
    "UsageMeter",
    "create_usage_incrementer",
]
