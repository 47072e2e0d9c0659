import pytest
from sqlalchemy import String, create_engine
from sqlalchemy.orm import DeclarativeBase, Mapped, Session, mapped_column

from aiskit.ids import ulid
from aiskit.repository.base_model import BaseModel


class _Base(DeclarativeBase):
    pass


class Widget(BaseModel, _Base):
    __tablename__ = "widgets"

    name: Mapped[str] = mapped_column(String(100), default="")


@pytest.fixture
def session():
    engine = create_engine("sqlite://")
    _Base.metadata.create_all(engine)
    with Session(engine) as s:
        yield s
    engine.dispose()


def test_insert_generates_ulid(session):
    widget = Widget(name="a")
    session.add(widget)
    session.commit()
    assert isinstance(widget.id, ulid.ULID)
    assert not ulid.is_zero(widget.id)
    assert ulid.parse(str(widget.id)) == widget.id
    assert len(str(widget.id)) == 26


def test_preset_id_is_kept(session):
    preset = ulid.generate()
    session.add(Widget(id=preset, name="b"))
    session.commit()
    session.expunge_all()
    loaded = session.get(Widget, preset)
    assert loaded.id == preset
    assert loaded.name == "b"


def test_zero_id_is_replaced(session):
    widget = Widget(id=ulid.zero(), name="c")
    session.add(widget)
    session.commit()
    assert not ulid.is_zero(widget.id)


def test_defaults_on_insert(session):
    widget = Widget(name="d")
    session.add(widget)
    session.commit()
    assert widget.deleted == 0
    assert widget.create_time is not None
    assert widget.update_time >= widget.create_time
    assert not ulid.is_zero(widget.id)


def test_update_time_advances(session):
    widget = Widget(name="e")
    session.add(widget)
    session.commit()
    original_id = widget.id
    before = widget.update_time
    widget.name = "f"
    session.commit()
    assert widget.update_time >= before
    assert widget.name == "f"
    assert ulid.compare(widget.id, original_id) == 0


def test_ids_are_unique(session):
    widgets = [Widget(name=str(n)) for n in range(5)]
    session.add_all(widgets)
    session.commit()
    assert len({ulid.to_uuid(w.id) for w in widgets}) == len(widgets)