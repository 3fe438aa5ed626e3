from .helpers import (
    serialize_mongo_doc,
    success_response,
    parse_object_id,
    as_lookup_id,
)
from .logger import Logger

__all__ = [
    "serialize_mongo_doc",
    "success_response",
    "parse_object_id",
    "as_lookup_id",
    "Logger",
]
