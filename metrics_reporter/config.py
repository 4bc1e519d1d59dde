"""
Configuration settings for the N9E metrics reporter.
"""
import os
import socket
from typing import Optional

# Collector configuration
SERVER_URL = os.getenv('N9E_SERVER_URL', 'http://127.0.0.1/api/collector/push?nid=1')
BATCH_SIZE = int(os.getenv('N9E_BATCH_SIZE', '100'))

# HTTP client configuration
REQUEST_TIMEOUT = float(os.getenv('N9E_REQUEST_TIMEOUT', '30'))  # seconds

# Reporter configuration
TAGS = os.getenv('N9E_TAGS', '')
PREFIX = os.getenv('N9E_PREFIX', None)
RATE_UNIT = os.getenv('N9E_RATE_UNIT', 'SECONDS')
DURATION_UNIT = os.getenv('N9E_DURATION_UNIT', 'MILLISECONDS')
REPORT_INTERVAL = int(os.getenv('N9E_REPORT_INTERVAL', '60'))  # seconds

# Logging configuration
LOG_LEVEL = os.getenv('LOG_LEVEL', 'INFO')


def build_tags(service: str, region: Optional[str] = None, instance: Optional[str] = None) -> str:
    """
    Build an N9E tag string such as "service=judge,region=bj,instance=host1".

    Args:
        service (str): Name of the reporting service
        region (str, optional): Region the service runs in
        instance (str, optional): Instance name. Defaults to the hostname.

    Returns:
        str: Comma separated key=value pairs
    """
    pairs = [('service', service), ('region', region), ('instance', instance or socket.gethostname())]
    return ','.join(f"{key}={value}" for key, value in pairs if value)
