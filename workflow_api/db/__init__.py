from workflow_api.db.models import Base
from workflow_api.db.database import engine, SessionLocal
from workflow_api.db.init_db import create_tables, drop_all_tables

def init_db():
    """Initialize the database - create the tables if needed."""
    create_tables()
