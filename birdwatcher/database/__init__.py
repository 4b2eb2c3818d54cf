"""Database connection management."""
from .pool import create_pool, close_pool, mask_password

__all__ = [
    'create_pool',
    'close_pool',
    'mask_password',
]
