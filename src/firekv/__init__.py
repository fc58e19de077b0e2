from .exceptions import AuthenticationError, CodecError, FireKVError, RemoteHTTPError
from .auth import ServiceAccountCredentials
from .store import FireStore, FirestoreSettings, Operator, decode, encode, get_firestore_settings, hash_string

__all__ = [
    # Errors
    "FireKVError",
    "AuthenticationError",
    "RemoteHTTPError",
    "CodecError",
    # Store
    "FireStore",
    "FirestoreSettings",
    "get_firestore_settings",
    "Operator",
    "ServiceAccountCredentials",
    # Codec
    "encode",
    "decode",
    "hash_string",
]
