"""
Supabase client construction.

The same client serves the identity provider and the document store so that
rows are read and written with the signed-in user's session.
"""

from supabase import Client, create_client

from .config import Config
from .errors import ConfigurationError
from .logger import get_logger

logger = get_logger(__name__)


def create_supabase_client(config: Config) -> Client:
    """
    Create a Supabase client from configuration.
    
    Raises:
        ConfigurationError: If URL/key are missing or the client cannot be built
    """
    if not config.supabase_url or not config.supabase_anon_key:
        raise ConfigurationError("Supabase not configured (SUPABASE_URL or SUPABASE_ANON_KEY missing)")
    
    try:
        client = create_client(config.supabase_url, config.supabase_anon_key)
    except Exception as e:
        raise ConfigurationError(f"Failed to initialize Supabase: {e}")
    
    logger.info("Supabase client initialized successfully")
    return client
