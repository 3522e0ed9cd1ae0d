# assessment_engine/db/deps.py
from typing import Generator

from fastapi import Depends, Request
from sqlalchemy.orm import Session

from assessment_engine.db.session import Database
from assessment_engine.services.events import EventSink
from assessment_engine.services.membership import MembershipChecker


def get_database(request: Request) -> Database:
    return request.app.state.database


def get_db(request: Request) -> Generator[Session, None, None]:
    db = get_database(request).session()  # one session per request
    try:
        yield db
    finally:
        db.close()


def get_event_sink(request: Request) -> EventSink:
    return request.app.state.event_sink


def get_membership(request: Request, db: Session = Depends(get_db)) -> MembershipChecker:
    # the factory receives the request session so roster lookups share it
    return request.app.state.membership_factory(db)
