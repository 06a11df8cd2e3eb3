import pytest
from sqlalchemy import create_engine, text

from heed_orders.db.migration_check import assert_schema_current, current_revision, head_revision


def test_head_revision_is_the_initial_schema():
    assert head_revision() == "20261018_0001"


def test_unmigrated_database_has_no_revision():
    engine = create_engine("sqlite+pysqlite:///:memory:")

    assert current_revision(engine) is None
    with pytest.raises(RuntimeError, match="alembic upgrade head"):
        assert_schema_current(engine)


def test_stamped_database_is_current():
    engine = create_engine("sqlite+pysqlite:///:memory:")
    with engine.begin() as connection:
        connection.execute(text("CREATE TABLE alembic_version (version_num VARCHAR(32) NOT NULL)"))
        connection.execute(text("INSERT INTO alembic_version VALUES ('20261018_0001')"))

    assert current_revision(engine) == "20261018_0001"
    assert_schema_current(engine)
