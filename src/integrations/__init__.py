"""
Integration modules for external task systems
"""

from .ticktick import TickTickAPIError, TickTickClient, TickTickIntegration
from .tickticksync import TickTickSyncIntegration

__all__ = ['TickTickAPIError', 'TickTickClient', 'TickTickIntegration', 'TickTickSyncIntegration']
