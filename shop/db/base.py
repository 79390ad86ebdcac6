from sqlalchemy import BigInteger, Integer
from sqlalchemy.orm import declarative_base

Base = declarative_base()

# SQLite 只有 INTEGER PRIMARY KEY 才会自增，测试环境下降级为 Integer
BigIntPK = BigInteger().with_variant(Integer(), "sqlite")
