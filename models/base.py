from sqlalchemy.orm import declarative_base

# Tables are unqualified and resolve through the connection search_path
# (DB_SEARCH_PATH, ``etl`` first).
Base = declarative_base()
