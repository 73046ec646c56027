from .client import InflowClient
from .reader import CatalogReader
