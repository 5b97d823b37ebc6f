from .base import Base
from .network_log import NetworkLog, SCHEMA_VERSION

__all__ = ['Base', 'NetworkLog', 'SCHEMA_VERSION']
