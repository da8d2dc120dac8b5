from .base import CardRepository, IdentityProvider, RequestRepository, StaticIdentityProvider
from .sql import SqlCardRepository, SqlRequestRepository
from .firestore import FirestoreCardRepository, FirestoreClient, FirestoreRequestRepository

__all__ = [
    "CardRepository",
    "RequestRepository",
    "IdentityProvider",
    "StaticIdentityProvider",
    "SqlCardRepository",
    "SqlRequestRepository",
    "FirestoreClient",
    "FirestoreCardRepository",
    "FirestoreRequestRepository",
]
