"""
Database Models using SQLAlchemy.

These define the database schema used by the SQL workflow store.
They are NOT related to:
- API schemas (see workflow_api.schemas.api_schemas)
- The workflow graph model itself (see workflow_api.domain.graph), which
  is stored as a JSON document in the ``graph`` column
"""
from sqlalchemy import Column, DateTime, Integer, JSON, String, Text
from sqlalchemy.orm import declarative_base
import datetime
import uuid

Base = declarative_base()

def generate_uuid():
    return str(uuid.uuid4())

class WorkflowRecord(Base):
    __tablename__ = "workflows"

    id = Column(String, primary_key=True, default=generate_uuid)
    name = Column(String, nullable=False)
    description = Column(Text, default="")
    graph = Column(JSON, nullable=False, default=dict)
    # Optimistic-concurrency token, bumped by every accepted graph save
    version = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime, default=datetime.datetime.now)
    updated_at = Column(DateTime, default=datetime.datetime.now)
