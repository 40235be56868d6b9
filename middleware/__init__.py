from middleware.logging_middleware import LoggingMiddleware
from middleware.accounts_middleware import AccountsMiddleware

__all__ = ['LoggingMiddleware', 'AccountsMiddleware']
