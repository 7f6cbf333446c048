import mongomock
import pytest

import database


@pytest.fixture
def mockdb():
    """Connect the shared handle to an in-memory mongomock server"""
    db = database.connect(name="cars_test", client=mongomock.MongoClient())
    yield db
    database.disconnect()
