# tests/test_views_service.py
import threading
from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import create_engine
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import sessionmaker

from webweaver.database import Base
from webweaver.models.page_view import PageView
from webweaver.services import views_service
from webweaver.services.views_service import (
    count_unique_views,
    get_view_details,
    is_duplicate_view_error,
    list_all_view_counts,
    record_view,
)

BASE_TIME = datetime(2026, 5, 10, 8, 0, 0)


def _views_for(db, session_id, url):
    return db.query(PageView).filter(
        PageView.session_id == session_id, PageView.url == url
    ).count()


def test_first_view_is_recorded(db):
    result = record_view(db, "sesion-a-0000000", "/inicio")

    assert result.recorded is True
    assert count_unique_views(db, "/inicio") == 1


def test_repeated_views_are_idempotent(db):
    """N vistas de la misma sesión dejan una sola fila y suman como máximo 1."""
    results = [record_view(db, "sesion-a-0000000", "/inicio") for _ in range(5)]

    assert [r.recorded for r in results] == [True, False, False, False, False]
    assert _views_for(db, "sesion-a-0000000", "/inicio") == 1
    assert count_unique_views(db, "/inicio") == 1


def test_duplicate_keeps_original_timestamp(db):
    record_view(db, "sesion-a-0000000", "/inicio", viewed_at=BASE_TIME)
    record_view(db, "sesion-a-0000000", "/inicio", viewed_at=BASE_TIME + timedelta(hours=1))

    details = get_view_details(db, "/inicio")
    assert details.recent_views[0].viewed_at == BASE_TIME.replace(tzinfo=timezone.utc)


def test_different_sessions_count_separately(db):
    assert record_view(db, "sesion-1-0000000", "/blog").recorded is True
    assert record_view(db, "sesion-2-0000000", "/blog").recorded is True

    assert count_unique_views(db, "/blog") == 2


def test_same_session_different_urls(db):
    record_view(db, "sesion-1-0000000", "/a")
    record_view(db, "sesion-1-0000000", "/b")

    assert count_unique_views(db, "/a") == 1
    assert count_unique_views(db, "/b") == 1


def test_urls_are_normalized_on_write_and_read(db):
    record_view(db, "sesion-1-0000000", "  /contacto  ")

    assert record_view(db, "sesion-1-0000000", "/contacto").recorded is False
    assert count_unique_views(db, " /contacto") == 1


def test_list_all_view_counts_orders_by_views_desc(db):
    """A con 3, B con 5 y C con 1 -> [B:5, A:3, C:1]."""
    for url, total in (("/a", 3), ("/b", 5), ("/c", 1)):
        for i in range(total):
            record_view(db, f"sesion-{url}-{i}", url)

    counts = list_all_view_counts(db)

    assert [(c.url, c.unique_views) for c in counts] == [("/b", 5), ("/a", 3), ("/c", 1)]


def test_list_all_view_counts_breaks_ties_by_url(db):
    for url in ("/zeta", "/alfa", "/medio"):
        record_view(db, "sesion-unica-000", url)

    assert [c.url for c in list_all_view_counts(db)] == ["/alfa", "/medio", "/zeta"]


def test_list_all_view_counts_empty(db):
    assert list_all_view_counts(db) == []


def test_recent_views_window_is_ten_newest_first(db):
    """15 sesiones en momentos distintos -> 10 vistas recientes, la más nueva primero."""
    session_ids = [f"{i:02d}sesion-recent" for i in range(15)]
    for i, session_id in enumerate(session_ids):
        record_view(db, session_id, "/x", viewed_at=BASE_TIME + timedelta(minutes=i))

    details = get_view_details(db, "/x")

    assert details.unique_views == 15
    assert len(details.recent_views) == 10
    times = [v.viewed_at for v in details.recent_views]
    assert times == sorted(times, reverse=True)
    assert details.recent_views[0].session_id_masked == session_ids[14][:8] + "..."
    assert details.recent_views[-1].session_id_masked == session_ids[5][:8] + "..."


def test_recent_views_returns_all_when_fewer_than_limit(db):
    for i in range(3):
        record_view(db, f"sesion-{i}-0000000", "/pocas", viewed_at=BASE_TIME + timedelta(seconds=i))

    assert len(get_view_details(db, "/pocas").recent_views) == 3


def test_recent_views_limit_from_settings(db, monkeypatch):
    monkeypatch.setenv("RECENT_VIEWS_LIMIT", "2")
    for i in range(4):
        record_view(db, f"sesion-{i}-0000000", "/lim", viewed_at=BASE_TIME + timedelta(seconds=i))

    assert len(get_view_details(db, "/lim").recent_views) == 2


def test_session_ids_are_masked(db):
    """Solo se exponen los primeros 8 caracteres seguidos de '...'."""
    session_id = "0123456789abcdef0123456789abcdef"
    record_view(db, session_id, "/privado")

    masked = get_view_details(db, "/privado").recent_views[0].session_id_masked

    assert masked == "01234567..."
    assert session_id not in masked


def test_details_of_never_visited_url(db):
    details = get_view_details(db, "/never-visited")

    assert details.url == "/never-visited"
    assert details.unique_views == 0
    assert details.recent_views == []


def test_fallback_insert_swallows_only_duplicates(db, monkeypatch):
    """Sin ON CONFLICT se usa INSERT + IntegrityError acotado a (url, session_id)."""
    monkeypatch.setattr(views_service, "_conflict_free_insert", lambda db, values: None)

    assert record_view(db, "sesion-f-0000000", "/fallback").recorded is True
    assert record_view(db, "sesion-f-0000000", "/fallback").recorded is False
    assert count_unique_views(db, "/fallback") == 1


def test_fallback_insert_propagates_other_integrity_errors(db, monkeypatch):
    monkeypatch.setattr(views_service, "_conflict_free_insert", lambda db, values: None)

    with pytest.raises(IntegrityError):
        record_view(db, None, "/sin-sesion")


def test_on_conflict_insert_propagates_other_integrity_errors(db):
    """ON CONFLICT solo cubre la unicidad; un NOT NULL sigue siendo un error."""
    with pytest.raises(IntegrityError):
        record_view(db, None, "/sin-sesion")

    assert count_unique_views(db, "/sin-sesion") == 0


def test_is_duplicate_view_error_detects_dedup_constraint(db):
    db.add(PageView(url="/dup", session_id="sesion-d-0000000", viewed_at=BASE_TIME))
    db.commit()

    db.add(PageView(url="/dup", session_id="sesion-d-0000000", viewed_at=BASE_TIME))
    with pytest.raises(IntegrityError) as exc_info:
        db.commit()
    db.rollback()

    assert is_duplicate_view_error(exc_info.value) is True


def test_is_duplicate_view_error_ignores_not_null(db):
    db.add(PageView(url="/nulo", session_id=None, viewed_at=BASE_TIME))
    with pytest.raises(IntegrityError) as exc_info:
        db.commit()
    db.rollback()

    assert is_duplicate_view_error(exc_info.value) is False


def test_concurrent_first_views_of_same_session_record_once(tmp_path):
    """
    Dos conexiones independientes registran a la vez la primera vista del mismo
    (session_id, url): la restricción única deja una sola fila y un solo recorded=True.
    """
    engine = create_engine(
        f"sqlite:///{tmp_path / 'carrera.db'}",
        connect_args={"check_same_thread": False, "timeout": 30},
    )
    Base.metadata.create_all(bind=engine)
    factory = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    barrier = threading.Barrier(2)
    results = []
    errors = []

    def visit():
        session = factory()
        try:
            barrier.wait()
            results.append(record_view(session, "sesion-carrera-00", "/carrera").recorded)
        except Exception as e:  # se revisa en el hilo principal
            errors.append(e)
        finally:
            session.close()

    threads = [threading.Thread(target=visit) for _ in range(2)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join(timeout=60)

    try:
        assert errors == []
        assert sorted(results) == [False, True]

        check = factory()
        try:
            assert _views_for(check, "sesion-carrera-00", "/carrera") == 1
        finally:
            check.close()
    finally:
        engine.dispose()
