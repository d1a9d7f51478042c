"""
Serialization Utilities

This module provides utilities for turning domain objects into plain
dictionaries and JSON, with handling of datetime and Enum values.
"""

import json
import datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Type, TypeVar
from dataclasses import is_dataclass, fields

T = TypeVar('T', bound='SerializableMixin')


def serialize(obj: Any, exclude_none: bool = False) -> Any:
    """
    Serialize an object to plain Python data.

    Args:
        obj: The object to serialize
        exclude_none: Whether to drop None values from mappings

    Returns:
        JSON-compatible representation of the object
    """
    if obj is None or isinstance(obj, (str, int, float, bool)):
        return obj

    if isinstance(obj, (datetime.datetime, datetime.date)):
        return obj.isoformat()

    if isinstance(obj, Enum):
        return obj.value

    if isinstance(obj, (list, tuple)):
        return [serialize(item, exclude_none) for item in obj]

    if isinstance(obj, dict):
        return {
            str(key): serialize(value, exclude_none)
            for key, value in obj.items()
            if not (exclude_none and value is None)
        }

    if hasattr(obj, 'to_dict') and callable(getattr(obj, 'to_dict')):
        return serialize(obj.to_dict(), exclude_none)

    if is_dataclass(obj):
        return {
            f.name: serialize(getattr(obj, f.name), exclude_none)
            for f in fields(obj)
            if not (exclude_none and getattr(obj, f.name) is None)
        }

    return str(obj)


def to_json(obj: Any, pretty: bool = False, exclude_none: bool = False) -> str:
    """
    Serialize an object to a JSON string.

    Args:
        obj: The object to serialize
        pretty: Whether to format the JSON with indentation
        exclude_none: Whether to exclude None values

    Returns:
        JSON string representation
    """
    indent = 2 if pretty else None
    return json.dumps(serialize(obj, exclude_none), indent=indent, ensure_ascii=False)


def utcnow() -> datetime.datetime:
    """Current time as an aware UTC datetime"""
    return datetime.datetime.now(datetime.timezone.utc)


def parse_datetime(value: Any) -> Optional[datetime.datetime]:
    """
    Parse an ISO string into an aware datetime.

    Naive values are taken to be UTC; None passes through.
    """
    if value is None:
        return None
    if not isinstance(value, datetime.datetime):
        value = datetime.datetime.fromisoformat(value)
    if value.tzinfo is None:
        value = value.replace(tzinfo=datetime.timezone.utc)
    return value


class SerializableMixin:
    """
    Mixin that provides serialization capabilities to a class.

    Classes using this mixin must define:
    1. __serializable_fields__ - list of field names to include in serialization
    2. __optional_fields__ - list of field names that are optional during deserialization
    """

    __serializable_fields__: List[str] = []
    __optional_fields__: List[str] = []

    def to_dict(self) -> Dict[str, Any]:
        """Convert the object to a dictionary."""
        result = {}
        for name in self.__serializable_fields__:
            if hasattr(self, name):
                # Nested serializables go through serialize(), which calls to_dict
                result[name] = serialize(getattr(self, name))
        return result

    def to_json(self, pretty: bool = False) -> str:
        """Convert the object to a JSON string."""
        return to_json(self.to_dict(), pretty)

    @classmethod
    def from_dict(cls: Type[T], data: Dict[str, Any]) -> T:
        """Create an instance from a dictionary."""
        init_kwargs = {}
        for name in cls.__serializable_fields__:
            if name in data:
                init_kwargs[name] = data[name]
            elif name not in cls.__optional_fields__:
                raise ValueError(f"Missing required field: {name}")

        return cls(**init_kwargs)

    @classmethod
    def from_json(cls: Type[T], json_str: str) -> T:
        """Create an instance from a JSON string."""
        return cls.from_dict(json.loads(json_str))
