"""
Field-level encryption for Doc Facade.

This package provides the AES-GCM field cipher, key providers and the
store/load interceptor that encrypts marked entity fields.
"""

from .cipher import CipherEnvelope, FieldCipher
from .interceptor import FieldEncryptionInterceptor, LegacyPlaintextPolicy
from .keys import ConfigKeyProvider, KeyProvider, KeyRing, StaticKeyProvider, generate_key

__all__ = [
    "CipherEnvelope",
    "ConfigKeyProvider",
    "FieldCipher",
    "FieldEncryptionInterceptor",
    "KeyProvider",
    "KeyRing",
    "LegacyPlaintextPolicy",
    "StaticKeyProvider",
    "generate_key",
]
