"""Column helpers shared by the ORM models."""

import enum
from typing import Type

from sqlalchemy import Enum as SAEnum


def enum_column(enum_cls: Type[enum.Enum]) -> SAEnum:
    """
    VARCHAR-backed enum column that stores member values ("ACTIVE"), not names.

    native_enum=False keeps the schema portable between PostgreSQL and the
    SQLite database used by the tests; adding a member never needs an
    ALTER TYPE migration.
    """
    return SAEnum(
        enum_cls,
        native_enum=False,
        length=40,
        values_callable=lambda members: [m.value for m in members],
        validate_strings=True,
    )
