"""OAuth token handling for plugin executions"""

from .oauth_token_cache import OAuthTokenCache, get_oauth_token_cache, register_provider

__all__ = ["OAuthTokenCache", "get_oauth_token_cache", "register_provider"]
