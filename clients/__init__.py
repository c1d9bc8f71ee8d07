"""Garmin Connect clients: SSO login, token exchange, cache and upload."""

from .garmin_client import GarminClient, SessionState, UploadResult
from .token_store import TokenStore

__all__ = ['GarminClient', 'SessionState', 'UploadResult', 'TokenStore']
