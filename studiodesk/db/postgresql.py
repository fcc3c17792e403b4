from sqlalchemy import MetaData
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession
from sqlalchemy.orm import DeclarativeBase

from studiodesk.core.settings import DATABASE_URL, DB_ECHO

engine = create_async_engine(
    DATABASE_URL,
    echo=DB_ECHO,
)

SessionLocal = async_sessionmaker(engine, expire_on_commit=False, class_=AsyncSession)


class Base(DeclarativeBase):
    metadata = MetaData(schema="studio")


async def get_db() -> AsyncSession:
    async with SessionLocal() as session:
        yield session
