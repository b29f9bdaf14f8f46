"""Column type helpers shared by the ORM models"""

from sqlalchemy import Enum as SQLEnum


def value_enum(enum_cls, name: str) -> SQLEnum:
    """Store the enum's value ("ready_for_pickup"), not its member name, in a plain string column"""
    return SQLEnum(
        enum_cls,
        name=name,
        native_enum=False,
        length=32,
        values_callable=lambda members: [m.value for m in members],
        validate_strings=True,
    )
