from .client import CLEANUP_MAX_AGE, TIMESTAMP_FIELD, FireStore, Operator, iso_timestamp
from .codec import UNSET, decode, encode
from .hashing import data_hash, hash_string
from .settings import FirestoreSettings, get_firestore_settings

__all__ = [
    "FireStore",
    "Operator",
    "FirestoreSettings",
    "get_firestore_settings",
    "encode",
    "decode",
    "UNSET",
    "hash_string",
    "data_hash",
    "iso_timestamp",
    "CLEANUP_MAX_AGE",
    "TIMESTAMP_FIELD",
]
