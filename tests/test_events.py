from __future__ import annotations

import pytest
from sqlmodel import Session, SQLModel, create_engine, select

from hrms.domain.models import EventEnvelope, EventRecord, Notification, NotificationPayload
from hrms.infra import notifications
from hrms.infra.events import EventBus
from hrms.infra.notifications import NotificationService, notify_safely


def test_event_bus_publish_and_subscribe() -> None:
    engine = create_engine("sqlite:///:memory:")
    SQLModel.metadata.create_all(engine)

    bus = EventBus()
    seen: list[str] = []

    def handler(event: EventEnvelope) -> None:
        seen.append(event.event_id)

    event = EventEnvelope(
        event_type="employee.hired",
        organization_id="org-a",
        payload={"employment_id": "emp-1"},
    )
    bus.subscribe("employee.hired", handler)

    with Session(engine) as session:
        bus.publish(event, session=session)
        session.commit()

    with Session(engine) as session:
        stored = session.exec(select(EventRecord)).all()

    assert len(stored) == 1
    assert stored[0].event_id == event.event_id
    assert stored[0].organization_id == "org-a"
    assert seen == [event.event_id]


def test_wildcard_subscriber_and_unsubscribe() -> None:
    engine = create_engine("sqlite:///:memory:")
    SQLModel.metadata.create_all(engine)
    bus = EventBus()
    seen: list[str] = []

    def handler(event: EventEnvelope) -> None:
        seen.append(event.event_type)

    bus.subscribe("*", handler)
    with Session(engine) as session:
        bus.publish_dict("employee.terminated", "org-a", {}, session=session)
        bus.unsubscribe("*", handler)
        bus.publish_dict("employee.updated", "org-a", {}, session=session)
        session.commit()

    assert seen == ["employee.terminated"]


def test_notification_service_stores_row(monkeypatch: pytest.MonkeyPatch) -> None:
    engine = create_engine("sqlite:///:memory:")
    SQLModel.metadata.create_all(engine)
    monkeypatch.setattr(notifications, "engine", engine)

    NotificationService().send(
        "user-1",
        NotificationPayload(title="Welcome aboard", message="hi", organization_id="org-a"),
    )

    with Session(engine) as session:
        rows = session.exec(select(Notification)).all()
    assert [(row.user_id, row.title, row.organization_id) for row in rows] == [
        ("user-1", "Welcome aboard", "org-a")
    ]


def test_notify_safely_swallows_delivery_failure() -> None:
    class BrokenNotifier:
        def send(self, user_id: str, payload: NotificationPayload) -> None:
            raise RuntimeError("smtp down")

    notify_safely(BrokenNotifier(), "user-1", NotificationPayload(title="t", message="m"))
