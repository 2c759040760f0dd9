"""
Resource clients, one per catalog entity.

Each module declares the static query and mutation descriptors for its
entity and a client class binding them to the sync layer.
"""

from .blog import BlogClient
from .category import CategoryClient
from .customer import CustomerClient
from .material import MaterialClient
from .order import OrderClient
from .product import ProductClient
from .review import ReviewClient

__all__ = [
    "BlogClient",
    "CategoryClient",
    "CustomerClient",
    "MaterialClient",
    "OrderClient",
    "ProductClient",
    "ReviewClient",
]
