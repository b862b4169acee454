# Models package for Pydantic schemas
