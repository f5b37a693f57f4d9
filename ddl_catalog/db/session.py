from sqlalchemy.ext.asyncio import create_async_engine, AsyncEngine, AsyncSession
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

def isInMemoryUrl(databaseUrl: str) -> bool:
    return databaseUrl.startswith("sqlite") and (databaseUrl.endswith("://") or ":memory:" in databaseUrl)

def createEngine(databaseUrl: str, echo: bool = False) -> AsyncEngine:
    if isInMemoryUrl(databaseUrl):
        # one shared connection, otherwise every session sees its own empty database
        return create_async_engine(
            databaseUrl,
            echo=echo,
            poolclass=StaticPool,
            connect_args={"check_same_thread": False}
        )
    return create_async_engine(databaseUrl, echo=echo) # Set echo=True for SQL logging

def createSessionFactory(engine: AsyncEngine) -> sessionmaker:
    return sessionmaker(
        autocommit=False,
        autoflush=False,
        expire_on_commit=False,
        bind=engine,
        class_=AsyncSession
    )
