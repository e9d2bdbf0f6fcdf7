"""
Declarative base shared by every ORM model.
"""

from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    # models annotate plain Python types next to Column() assignments
    __allow_unmapped__ = True
