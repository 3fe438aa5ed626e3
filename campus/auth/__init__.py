from .helpers import decode_access_token

__all__ = ["decode_access_token"]
