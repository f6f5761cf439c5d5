"""Token records and the SQLAlchemy tables backing the document store."""
from models.api_token import ApiToken, TokenStatus
from models.base import Base
from models.documents import ApiTokenDocument

__all__ = [
    "ApiToken",
    "ApiTokenDocument",
    "Base",
    "TokenStatus",
]
