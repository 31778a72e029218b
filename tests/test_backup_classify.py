from datetime import datetime, timedelta

from backup.classify import classify_items, rank_items
from backup.scan import backup_id_for, parse_artifact_name
from backup.types import RetentionConfig


def _hourly(count, *, start=datetime(2024, 3, 14, 23, 0, 0), suffix=".tar.xz"):
    items = {}
    for index in range(count):
        name = backup_id_for(start - timedelta(hours=index)) + suffix
        items[name] = parse_artifact_name(name, long_term_day=1)
    return items


def _flags(items):
    return {name: (item.is_current, item.do_not_delete, item.force_delete) for name, item in items.items()}


def test_max_backups_force_deletes_oldest_items():
    items = _hourly(35)
    newest = max(items.values(), key=lambda item: item.timestamp)
    config = RetentionConfig(min_backups=3, max_backups=30, current_id=newest.id)

    classify_items(items, config)

    ranked = rank_items(items.values())
    assert [item.force_delete for item in ranked] == [False] * 30 + [True] * 5
    assert [item.do_not_delete for item in ranked] == [True] * 3 + [False] * 32
    assert ranked[0].is_current is True
    assert sum(item.is_current for item in ranked) == 1


def test_unlimited_max_backups_never_forces():
    items = _hourly(40)

    classify_items(items, RetentionConfig(min_backups=2, max_backups=0))

    assert not any(item.force_delete for item in items.values())


def test_current_item_is_never_force_deleted():
    items = _hourly(5)
    oldest = min(items.values(), key=lambda item: item.timestamp)

    classify_items(items, RetentionConfig(min_backups=1, max_backups=2, current_id=oldest.id))

    assert oldest.is_current is True
    assert oldest.force_delete is False
    assert sum(item.force_delete for item in items.values()) == 2


def test_ranking_is_global_across_tiers():
    items = _hourly(3, start=datetime(2024, 3, 1, 5, 0, 0))
    items.update(_hourly(3, start=datetime(2024, 2, 29, 5, 0, 0)))

    classify_items(items, RetentionConfig(min_backups=2, max_backups=4))

    protected = sorted(item.id for item in items.values() if item.do_not_delete)
    assert protected == ["2024-03-01_04-00-00", "2024-03-01_05-00-00"]
    assert all(item.long_term_period == "202403" for item in items.values() if item.created.day == 1)
    assert sum(item.force_delete for item in items.values()) == 2


def test_classification_is_idempotent():
    items = _hourly(12)
    config = RetentionConfig(min_backups=3, max_backups=8, current_id="2024-03-14_23-00-00")

    first = _flags(classify_items(items, config))
    second = _flags(classify_items(items, config))

    assert first == second


def test_equal_timestamps_rank_deterministically():
    names = ["2024-03-10_03-00-00", "2024-03-10_03-00-00.tar.gz"]
    forward = [parse_artifact_name(name, long_term_day=1) for name in names]
    backward = [parse_artifact_name(name, long_term_day=1) for name in reversed(names)]

    assert [item.name for item in rank_items(forward)] == [item.name for item in rank_items(backward)]
