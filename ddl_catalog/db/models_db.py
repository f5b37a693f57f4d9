from sqlalchemy import Column, Integer, BigInteger, String, Text, JSON, ForeignKey, UniqueConstraint
from sqlalchemy.orm import declarative_base

Base = declarative_base()

class DatabaseModel(Base):
    __tablename__ = "catalog_databases"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False, unique=True)
    location = Column(String, nullable=False)
    properties = Column(JSON, nullable=True)

class EntryModel(Base):
    __tablename__ = "catalog_entries"

    id = Column(Integer, primary_key=True, index=True)
    databaseId = Column(Integer, ForeignKey("catalog_databases.id"), nullable=False)
    name = Column(String, nullable=False)
    kind = Column(String, nullable=False) # "table" | "view"
    tableType = Column(String, nullable=True) # "managed" | "external", tables only
    location = Column(String, nullable=True)
    viewText = Column(Text, nullable=True)
    properties = Column(JSON, nullable=False, default=dict)
    createdAtMs = Column(BigInteger, nullable=False)
    lastDdlTimeMs = Column(BigInteger, nullable=False)

    __table_args__ = (UniqueConstraint('databaseId', 'name', name='_database_entry_uc'),)
