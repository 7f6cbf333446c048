import logging

import mongomock
import pytest
from pymongo.errors import PyMongoError

import database
import seed
from schemas import Car


@pytest.mark.unit
def test_run(mockdb, caplog):
    caplog.set_level(logging.INFO, logger="seed")
    database.create_document("cars", Car(make="Old", model="T"))

    tesla = seed.run()

    assert isinstance(tesla, Car)
    assert (tesla.make, tesla.model, tesla.color, tesla.year) == ("Tesla", "X", "beige", 2014)

    docs = database.get_documents("cars")
    assert sorted(d["make"] for d in docs) == ["Porsche", "Tesla"]

    messages = [r.getMessage() for r in caplog.records]
    assert "Finished creating cars: 2" in messages
    assert "Updated! 2014 Tesla X (beige)" in messages


@pytest.mark.unit
def test_first_error_stops_the_chain(mockdb, monkeypatch, caplog):
    def broken(*args, **kwargs):
        raise PyMongoError("insert failed")

    fetched = []
    monkeypatch.setattr(database, "create_documents", broken)
    monkeypatch.setattr(database, "get_documents", lambda *a, **kw: fetched.append(a) or [])

    result = seed.run()

    assert isinstance(result, PyMongoError)
    assert fetched == []
    assert any(r.getMessage() == "ERROR: insert failed" for r in caplog.records)


@pytest.mark.unit
def test_missing_tesla_is_an_error(mockdb):
    result = seed.run(cars=[Car(make="Porsche", model="911")])
    assert isinstance(result, LookupError)


@pytest.mark.unit
def test_main_closes_connection(monkeypatch):
    client = mongomock.MongoClient()
    real_connect = database.connect
    monkeypatch.setattr(database, "connect", lambda: real_connect(client=client))

    assert seed.main() == 0
    assert not database.is_connected()
    assert client["cars"]["cars"].count_documents({}) == 2


@pytest.mark.unit
def test_main_connection_failure(monkeypatch):
    def unreachable():
        raise PyMongoError("no servers")

    monkeypatch.setattr(database, "connect", unreachable)
    assert seed.main() == 1
    assert not database.is_connected()
