from .credentials import JWT_BEARER_GRANT, ServiceAccountCredentials

__all__ = ["ServiceAccountCredentials", "JWT_BEARER_GRANT"]
