"""
Seed the cars collection and walk through the basic CRUD calls:

    remove old cars -> create two cars -> fetch all -> fetch the Teslas -> update the Tesla

Each step runs only after the previous one finished. The first failure is
logged and the remaining steps are skipped. The connection is always closed.

Run with:  python seed.py
"""

import logging
import os
import sys

from pydantic import ValidationError
from pymongo.errors import PyMongoError

import database
from schemas import Car

_log = logging.getLogger(__name__)

THE_CARS = [
    Car(make="Tesla", model="S", color="black", year=2014),
    Car(make="Porsche", model="911", color="silver", year=2011),
]

TESLA_UPDATES = {"model": "X", "color": "beige"}


def handle_error(err):
    _log.error(f"ERROR: {err}")
    return err


def finish():
    database.disconnect()
    _log.info("All Done!")


def print_cars(docs):
    for doc in docs:
        car = Car.from_document(doc)
        _log.info(f"  {car.id}: {car.describe()}")


def run(cars=THE_CARS):
    """Run the demo against the current connection.

    Returns:
        The updated Tesla as a Car, or the error that stopped the chain.
    """
    try:
        _log.info("Removing any old cars...")
        database.delete_documents(Car.collection, {})

        _log.info("Creating some cars...")
        saved = database.create_documents(Car.collection, cars)
        _log.info(f"Finished creating cars: {len(saved)}")

        _log.info("Fetching all cars...")
        print_cars(database.get_documents(Car.collection))

        _log.info("Fetching all of the Teslas")
        print_cars(database.get_documents(Car.collection, {"make": "Tesla"}))

        _log.info("Updating the Tesla...")
        updated = database.find_one_and_update(Car.collection, {"make": "Tesla"}, TESLA_UPDATES)
        if updated is None:
            raise LookupError("No Tesla to update")
        tesla = Car.from_document(updated)
        _log.info(f"Updated! {tesla.describe()}")
        return tesla
    except (PyMongoError, ValidationError, LookupError) as err:
        return handle_error(err)


def main() -> int:
    logging.basicConfig(
        level=os.getenv("LOG_LEVEL", "INFO"),
        format="%(message)s",
    )
    try:
        database.connect()
    except PyMongoError as err:
        handle_error(err)
        return 1
    try:
        result = run()
    finally:
        finish()
    return 1 if isinstance(result, Exception) else 0


if __name__ == "__main__":
    sys.exit(main())
