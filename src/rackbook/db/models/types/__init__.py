from .json_type import JSON, JSONList
from .utcdatetime import UTCDateTime

__all__ = ['JSON', 'JSONList', 'UTCDateTime']
