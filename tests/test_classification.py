from types import SimpleNamespace

import pytest

from timekeeping.classification import UNRANKED, ClassificationRanks, group_and_sort_by_employee


def line(employee_id, classification, hours, work_type="Regular"):
    return SimpleNamespace(
        employee_id=employee_id,
        project_id="P",
        classification=classification,
        hours_worked=hours,
        work_type=work_type,
    )


@pytest.mark.parametrize(
    "classification, rank",
    [
        ("SUPERVISOR", 1),
        ("project manager", 2),
        ("General-Foreman", 3),
        ("foreman", 4),
        ("  Journeyman ", 5),
        ("apprentice", 6),
        ("Laborer", UNRANKED),
        ("", UNRANKED),
        (None, UNRANKED),
    ],
)
def test_default_rank_lookup(classification, rank):
    assert ClassificationRanks().rank(classification) == rank


def test_rank_table_is_read_only():
    ranks = ClassificationRanks()

    with pytest.raises(TypeError):
        ranks.table["FOREMAN"] = 0


def test_custom_table_and_default():
    ranks = ClassificationRanks({"Lineman": 1}, default=50)

    assert ranks.rank("LINEMAN") == 1
    assert ranks.rank("Foreman") == 50


def test_groups_sorted_by_rank_with_subtotals():
    entries = [
        line("app", "Apprentice", 8),
        line("sup", "Supervisor", 6),
        line("app", "Apprentice", 2, "Overtime"),
        line("jou", "Journeyman", 4),
    ]

    groups = group_and_sort_by_employee(entries, ClassificationRanks())

    assert [group.employee_id for group in groups] == ["sup", "jou", "app"]
    assert groups[2].subtotal.total_hours == 10
    assert groups[2].subtotal.overtime_hours == 2
    assert [entry.hours_worked for entry in groups[2].entries] == [8, 2]


def test_equal_ranks_keep_first_seen_order():
    entries = [
        line("b", "Foreman", 1),
        line("x", "Welder", 1),
        line("a", "foreman", 1),
        line("y", None, 1),
    ]

    groups = group_and_sort_by_employee(entries)

    assert [group.employee_id for group in groups] == ["b", "a", "x", "y"]
    assert groups[0].classification == "Foreman"
