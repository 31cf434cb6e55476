"""
Engine construction and the msdb job catalog model.

Uses SQLAlchemy with the pyodbc dialect to reach SQL Server Agent's
catalog in msdb.
"""

from typing import Optional

from sqlalchemy import Column, DateTime, Integer, String, create_engine
from sqlalchemy.engine import URL, Engine
from sqlalchemy.orm import Session, declarative_base

from .env import Settings
from .schema import Credential, InstanceRef

MSDB_SCHEMA = "msdb.dbo"

Base = declarative_base()


class AgentJob(Base):
    """Row of msdb.dbo.sysjobs."""

    __tablename__ = "sysjobs"
    __table_args__ = {"schema": MSDB_SCHEMA}

    job_id = Column(String(36), primary_key=True)  # uniqueidentifier
    name = Column(String(128), nullable=False)
    enabled = Column(Integer, nullable=False, default=1)
    description = Column(String(512))
    date_created = Column(DateTime)
    date_modified = Column(DateTime)

    def __repr__(self) -> str:
        return f"<AgentJob {self.name!r} ({self.job_id})>"


def build_url(
    instance: InstanceRef,
    credential: Optional[Credential] = None,
    settings: Optional[Settings] = None,
) -> URL:
    """
    Build the mssql+pyodbc URL for an instance.

    Args:
        instance: Target instance
        credential: SQL login; integrated authentication when None
        settings: Driver, timeout and TLS settings

    Returns:
        SQLAlchemy URL with msdb as the database
    """
    settings = settings or Settings()
    query = {
        "driver": settings.odbc_driver,
        "TrustServerCertificate": "yes" if settings.trust_server_certificate else "no",
    }
    if credential is None:
        query["Trusted_Connection"] = "yes"

    return URL.create(
        "mssql+pyodbc",
        username=credential.username if credential else None,
        password=credential.password if credential else None,
        host=instance.server,
        port=instance.port,
        database="msdb",
        query=query,
    )


def get_engine(
    instance: InstanceRef,
    credential: Optional[Credential] = None,
    settings: Optional[Settings] = None,
) -> Engine:
    """
    Create an engine for one instance.

    A single pooled connection is enough since instances are processed
    one at a time.
    """
    settings = settings or Settings()
    return create_engine(
        build_url(instance, credential, settings),
        echo=False,
        pool_size=1,
        max_overflow=0,
        connect_args={"timeout": settings.connect_timeout},
    )


def get_session(bind) -> Session:
    """
    Get database session.

    Args:
        bind: Engine or Connection

    Returns:
        SQLAlchemy session
    """
    return Session(bind=bind)
