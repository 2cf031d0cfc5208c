from datetime import datetime, timezone

from timeline import group_by_month, month_label

NOW = datetime(2024, 3, 15, 12, 0)


def test_empty_input():
    assert group_by_month([], NOW) == ([], [])


def test_labels_relative_to_reference():
    items = [
        {'id': 1, 'date': '2024-03-01'},
        {'id': 2, 'date': '2024-02-20'},
        {'id': 3, 'date': '2023-03-10'},
    ]
    groups, skipped = group_by_month(items, NOW)
    assert [g['label'] for g in groups] == ['This Month', 'Last Month', 'March 2023']
    assert [g['month_key'] for g in groups] == ['2024-03', '2024-02', '2023-03']
    assert skipped == []


def test_last_month_rolls_over_the_year():
    january = datetime(2024, 1, 5)
    assert month_label(2023, 12, january) == 'Last Month'
    assert month_label(2024, 1, january) == 'This Month'
    assert month_label(2022, 12, january) == 'December 2022'


def test_groups_and_items_sorted_newest_first():
    items = [
        {'id': 'a', 'date': '2023-11-02'},
        {'id': 'b', 'date': '2024-01-15'},
        {'id': 'c', 'date': '2023-11-28'},
        {'id': 'd', 'date': '2024-01-03'},
        {'id': 'e', 'date': '2023-11-15'},
    ]
    groups, _ = group_by_month(items, NOW)
    assert [g['month_key'] for g in groups] == ['2024-01', '2023-11']
    assert [i['id'] for i in groups[0]['items']] == ['b', 'd']
    assert [i['id'] for i in groups[1]['items']] == ['c', 'e', 'a']


def test_same_date_keeps_input_order():
    items = [{'id': n, 'date': '2024-03-10'} for n in range(5)]
    groups, _ = group_by_month(items, NOW)
    assert [i['id'] for i in groups[0]['items']] == [0, 1, 2, 3, 4]


def test_every_item_lands_in_exactly_one_group():
    items = [{'id': n, 'date': f'2023-{(n % 12) + 1:02d}-{(n % 27) + 1:02d}'} for n in range(40)]
    groups, skipped = group_by_month(items, NOW)
    seen = [i['id'] for g in groups for i in g['items']]
    assert sorted(seen) == list(range(40))
    assert skipped == []


def test_unparsable_dates_are_reported_not_grouped():
    bad = [{'id': 'x', 'date': 'someday'}, {'id': 'y', 'date': None}, {'id': 'z', 'date': '2024-02-30'}]
    good = {'id': 'ok', 'date': '2024-03-02'}
    groups, skipped = group_by_month(bad[:2] + [good] + bad[2:], NOW)
    assert [i['id'] for g in groups for i in g['items']] == ['ok']
    assert [i['id'] for i in skipped] == ['x', 'y', 'z']


def test_date_only_strings_never_shift_month():
    groups, _ = group_by_month([{'date': '2024-03-01'}, {'date': '2024-02-29'}], NOW)
    assert [g['month_key'] for g in groups] == ['2024-03', '2024-02']


def test_timestamps_order_within_a_day():
    items = [
        {'id': 'morning', 'date': '2024-03-10T08:00:00'},
        {'id': 'evening', 'date': '2024-03-10T19:00:00'},
        {'id': 'day', 'date': '2024-03-10'},
    ]
    groups, _ = group_by_month(items, NOW)
    assert [i['id'] for i in groups[0]['items']] == ['evening', 'morning', 'day']


def test_objects_with_date_achieved():
    class Record:
        def __init__(self, date_achieved):
            self.date_achieved = date_achieved

    records = [Record('2024-02-01'), Record('2024-03-09')]
    groups, _ = group_by_month(records, NOW)
    assert groups[0]['items'] == [records[1]]
    assert groups[1]['items'] == [records[0]]


def test_dicts_fall_back_to_date_achieved():
    items = [{'date': None, 'date_achieved': '2024-03-02'}, {'date_achieved': '2024-02-10'}]
    groups, skipped = group_by_month(items, NOW)
    assert skipped == []
    assert [g['month_key'] for g in groups] == ['2024-03', '2024-02']
    assert groups[0]['items'] == [items[0]]


def test_aware_reference_now():
    reference = datetime(2024, 3, 15, 12, 0, tzinfo=timezone.utc)
    groups, _ = group_by_month([{'date': '2023-06-01'}], reference)
    assert groups[0]['label'] == 'June 2023'


def test_defaults_to_current_time():
    today = datetime.now()
    groups, _ = group_by_month([{'date': today.date().isoformat()}])
    assert groups[0]['label'] == 'This Month'
