from __future__ import annotations

from sqlalchemy import types
from sqlalchemy.ext.mutable import MutableDict
from sqlalchemy.ext.mutable import MutableList
from sqlalchemy.dialects.postgresql import JSONB


from typing import Any
from typing import TYPE_CHECKING
if TYPE_CHECKING:
    from sqlalchemy.engine import Dialect
    from sqlalchemy.types import TypeEngine

    _Base = types.TypeDecorator[dict[str, Any]]
    _ListBase = types.TypeDecorator[list[Any]]
else:
    _Base = _ListBase = types.TypeDecorator


class JSON(_Base):
    """ A JSON type that coerces None's to empty dictionaries.

    That is, this column cannot be `'null'::jsonb`. It could still be `NULL`
    though, if it's nullable and never explicitly set. But on the Python end
    you should always see a dictionary.

    On Postgres the value is stored as JSONB, other databases use their
    generic JSON type.

    """

    impl = types.JSON
    cache_ok = True

    def load_dialect_impl(self, dialect: Dialect) -> TypeEngine[Any]:
        if dialect.name == 'postgresql':
            return dialect.type_descriptor(JSONB())
        return dialect.type_descriptor(types.JSON())

    def process_bind_param(  # type:ignore[override]
        self,
        value: dict[str, Any] | None,
        dialect: Dialect
    ) -> dict[str, Any]:

        return {} if value is None else value

    def process_result_value(
        self,
        value: dict[str, Any] | None,
        dialect: Dialect
    ) -> dict[str, Any]:

        return {} if value is None else value


class JSONList(_ListBase):
    """ Same as :class:`JSON`, but for lists, like the racks of a session.

    """

    impl = types.JSON
    cache_ok = True

    def load_dialect_impl(self, dialect: Dialect) -> TypeEngine[Any]:
        if dialect.name == 'postgresql':
            return dialect.type_descriptor(JSONB())
        return dialect.type_descriptor(types.JSON())

    def process_bind_param(  # type:ignore[override]
        self,
        value: list[Any] | None,
        dialect: Dialect
    ) -> list[Any]:

        return [] if value is None else list(value)

    def process_result_value(
        self,
        value: list[Any] | None,
        dialect: Dialect
    ) -> list[Any]:

        return [] if value is None else value


MutableDict.associate_with(JSON)  # type:ignore[no-untyped-call]
MutableList.associate_with(JSONList)  # type:ignore[no-untyped-call]
