"""Shared fixtures: SQLAlchemy models on a file-backed SQLite database, audit tables, policy, listener."""

from decimal import Decimal
from types import SimpleNamespace
from typing import List, Optional

import pytest
from sqlalchemy import BigInteger, Column, ForeignKey, MetaData, Numeric, String, Table, create_engine, select
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship, sessionmaker

from entity_audit.config.settings import EntityAuditSettings
from entity_audit.governance.audit_policy import ConfiguredAuditPolicy
from entity_audit.infrastructure.database.listener import AuditListener
from entity_audit.infrastructure.database.reader import AuditReader
from entity_audit.infrastructure.database.schema import audit_table, provision_audit_tables


class Base(DeclarativeBase):
    pass


book_tags = Table(
    "book_tags",
    Base.metadata,
    Column("book_id", ForeignKey("books.id"), primary_key=True),
    Column("tag_id", ForeignKey("tags.id"), primary_key=True),
)


class Author(Base):
    __tablename__ = "authors"

    id: Mapped[int] = mapped_column(primary_key=True)
    name: Mapped[str] = mapped_column(String(100))
    age: Mapped[Optional[int]]


class Tag(Base):
    __tablename__ = "tags"

    id: Mapped[int] = mapped_column(primary_key=True)
    label: Mapped[str] = mapped_column(String(50))


class Book(Base):
    __tablename__ = "books"

    id: Mapped[int] = mapped_column(primary_key=True)
    title: Mapped[str] = mapped_column(String(200))
    price: Mapped[Decimal] = mapped_column(Numeric(10, 2))
    print_run: Mapped[Optional[int]] = mapped_column(BigInteger)
    author_id: Mapped[Optional[int]] = mapped_column(ForeignKey("authors.id"))
    author: Mapped[Optional[Author]] = relationship()
    tags: Mapped[List[Tag]] = relationship(secondary=book_tags)

    def __str__(self) -> str:
        return self.title


class Profile(Base):
    """Identity through a foreign entity: the author's id."""

    __tablename__ = "profiles"
    __audit_identity__ = "author"

    author_id: Mapped[int] = mapped_column(ForeignKey("authors.id"), primary_key=True)
    bio: Mapped[str] = mapped_column(String(200))
    author: Mapped[Author] = relationship()


class Publisher(Base):
    """Mapped but not audited."""

    __tablename__ = "publishers"

    id: Mapped[int] = mapped_column(primary_key=True)
    name: Mapped[str] = mapped_column(String(100))


AUDITED = ("Author", "Tag", "Book", "Profile")


@pytest.fixture
def models():
    return SimpleNamespace(
        Base=Base,
        Author=Author,
        Tag=Tag,
        Book=Book,
        Profile=Profile,
        Publisher=Publisher,
        book_tags=book_tags,
    )


@pytest.fixture
def policy():
    return ConfiguredAuditPolicy(
        {name: EntityAuditSettings() for name in AUDITED},
        actor_provider=lambda: "tester",
    )


@pytest.fixture
def db_path(tmp_path):
    return tmp_path / "library.db"


@pytest.fixture
def engine(db_path, policy):
    engine = create_engine(f"sqlite:///{db_path}")
    Base.metadata.create_all(engine)
    audit_metadata = MetaData()
    provision_audit_tables(Base.registry, policy, audit_metadata)
    audit_metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def listener(policy):
    return AuditListener(policy)


@pytest.fixture
def session_factory(engine, listener):
    factory = sessionmaker(bind=engine, expire_on_commit=False)
    listener.register(factory)
    yield factory
    listener.unregister(factory)


@pytest.fixture
def audit_rows(engine):
    """Reader of an audit table: ``audit_rows("authors_audit")`` -> rows ordered by id."""
    metadata = MetaData()

    def _rows(name: str):
        table = audit_table(name, metadata)
        with engine.connect() as connection:
            return connection.execute(select(table).order_by(table.c.id)).mappings().all()

    return _rows


@pytest.fixture
def author_history(session_factory, models):
    """authors_audit rows 1..3: INS Ann (object 1), UPD Ann -> Bea (object 1), INS Cid (object 2)."""
    with session_factory() as session:
        ann = models.Author(name="Ann")
        session.add(ann)
        session.commit()
        ann.name = "Bea"
        session.commit()
        session.add(models.Author(name="Cid"))
        session.commit()


@pytest.fixture
async def reader(db_path, engine, policy):
    async_engine = create_async_engine(f"sqlite+aiosqlite:///{db_path}")
    factory = async_sessionmaker(async_engine, expire_on_commit=False)
    yield AuditReader.for_registry(factory, policy, Base.registry)
    await async_engine.dispose()
