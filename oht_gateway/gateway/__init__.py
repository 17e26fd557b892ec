"""
Gateway Module

This module provides the OneHourTranslation gateway and its components.
"""

from oht_gateway.gateway.errors import ErrorKind, GatewayError
from oht_gateway.gateway.facade import Gateway

__all__ = ['ErrorKind', 'GatewayError', 'Gateway']
