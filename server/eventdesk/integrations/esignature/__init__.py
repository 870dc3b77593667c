"""
E-signature integration modules

Provides adapters for e-signature platforms behind one interface.
"""

from .assinafy_adapter import AssinafyAdapter
from .base import (
    ESignatureFactory,
    ESignatureProvider,
    ESignatureType,
    ProviderRejected,
    ProviderUnavailable,
    SignatureError,
    UploadedDocument,
)

ESignatureFactory.register_provider(ESignatureType.ASSINAFY, AssinafyAdapter)

__all__ = [
    "AssinafyAdapter",
    "ESignatureFactory",
    "ESignatureProvider",
    "ESignatureType",
    "ProviderRejected",
    "ProviderUnavailable",
    "SignatureError",
    "UploadedDocument",
]
