from __future__ import annotations

from issuemirror import properties as props
from issuemirror.diffing import MAX_DIFF_VALUE, compute_diff, needs_write
from issuemirror.models import MirrorRecord


def _record(**values):
    return MirrorRecord(record_id="page-1", external_id="https://x/1", properties=values)


def test_missing_field_on_existing_forces_write():
    existing = _record(**{"Task name": props.title("A")})
    target = {"Task name": props.title("A"), "Status": props.status("Done")}
    assert needs_write(existing, target) is True


def test_multi_select_comparison_ignores_order():
    existing = _record(Labels=props.MultiSelectValue(("bug", "urgent")))
    target = {"Labels": props.multi_select(["urgent", "bug"])}
    assert needs_write(existing, target) is False


def test_people_and_relation_compare_as_sets_of_ids():
    existing = _record(
        Assignee=props.PeopleValue(("u2", "u1")), Project=props.RelationValue(("p1",))
    )
    target = {"Assignee": props.people(["u1", "u2"]), "Project": props.relation(["p1"])}
    assert needs_write(existing, target) is False


def test_fields_absent_from_target_are_ignored():
    existing = _record(**{"Task name": props.title("A"), "Estimate hrs": props.number(5)})
    assert needs_write(existing, {"Task name": props.title("A")}) is False


def test_number_canonical_ignores_float_integral_form():
    existing = _record(Estimate=props.NumberValue(7))
    assert needs_write(existing, {"Estimate": props.number(7.0)}) is False
    assert needs_write(existing, {"Estimate": props.number(7.5)}) is True


def test_empty_text_matches_absent_runs():
    existing = _record(Description=props.RichTextValue(()))
    assert needs_write(existing, {"Description": props.text("")}) is False


def test_formula_key_compares_to_text():
    existing = _record(Key=props.FormulaValue("WID"))
    assert needs_write(existing, {"Key": props.text("WID")}) is False


def test_compute_diff_reports_changed_fields_only():
    existing = _record(**{"Task name": props.title("Old"), "Status": props.status("Done")})
    target = {
        "Task name": props.title("New"),
        "Status": props.status("Done"),
        "Assignee": props.people(["u1"]),
    }
    assert compute_diff(existing, target) == {
        "Task name": {"from": "Old", "to": "New"},
        "Assignee": {"from": None, "to": "u1"},
    }


def test_compute_diff_truncates_long_values():
    long_body = "x" * (MAX_DIFF_VALUE + 50)
    diff = compute_diff({}, {"Description": props.text(long_body)})
    assert diff["Description"]["to"] == "x" * MAX_DIFF_VALUE + "..."
