"""
ORM 基类（SQLAlchemy 2.0 声明式）
"""
from sqlalchemy import Numeric
from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    pass


# 所有金额列：两位小数，读回为 Decimal
Money = Numeric(precision=15, scale=2)

metadata = Base.metadata
