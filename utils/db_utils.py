"""
Dialect-aware upsert helpers
"""
from sqlalchemy.dialects import postgresql, sqlite

_INSERT_BY_DIALECT = {
    'postgresql': postgresql.insert,
    'sqlite': sqlite.insert,
}


def upsert_insert(db, model):
    """
    INSERT construct supporting ON CONFLICT for the bound database.
    Only PostgreSQL and SQLite are supported.
    """
    dialect = db.session.get_bind().dialect.name
    try:
        insert = _INSERT_BY_DIALECT[dialect]
    except KeyError:
        raise NotImplementedError(f"Natural-key upsert is not supported on {dialect}") from None
    return insert(model)


def chunks(data, chunk_size):
    """Utility function to chunk data into batches"""
    for i in range(0, len(data), chunk_size):
        yield data[i:i + chunk_size]
