from __future__ import annotations

import pytest

from actions.mock_interview_templates import (
    add_template_item,
    create_template,
    get_template,
    list_templates,
    list_templates_for_role,
    remove_template,
    remove_template_item,
    update_template,
    update_template_item,
)
from actions.mock_interviews import complete_mock_interview, create_mock_interview, get_mock_interview
from utils import ApiError


ITEMS = [
    {"category": "technical", "criterion": "Medication dosage"},
    {"category": "communication", "criterion": "Explains clinical steps clearly"},
    {"category": "technical", "criterion": "Sterile technique", "order": 5},
]


@pytest.fixture()
def nurse_template(seeded, run):
    return run(create_template, role_name="Staff Nurse", name="ICU screening", description="Ward basics", items=ITEMS)


def test_create_and_get_orders_items_by_category(nurse_template, run):
    assert nurse_template["isActive"] is True
    assert len(nurse_template["items"]) == 3

    detail = run(get_template, template_id=nurse_template["id"])
    assert [(i["category"], i["criterion"]) for i in detail["items"]] == [
        ("communication", "Explains clinical steps clearly"),
        ("technical", "Medication dosage"),
        ("technical", "Sterile technique"),
    ]


def test_duplicate_template_name_for_role_conflicts(nurse_template, run):
    with pytest.raises(ApiError) as exc:
        run(create_template, role_name="staff nurse", name="ICU Screening")
    assert exc.value.code == "CONFLICT"

    other = run(create_template, role_name="Lab Tech", name="ICU screening")
    assert other["roleName"] == "Lab Tech"


def test_duplicate_criterion_in_payload_is_rejected(seeded, run):
    with pytest.raises(ApiError) as exc:
        run(
            create_template,
            role_name="Staff Nurse",
            name="Dup",
            items=[{"category": "technical", "criterion": "Dosage"}, {"category": "technical", "criterion": "Dosage"}],
        )
    assert exc.value.code == "BAD_REQUEST"
    assert run(list_templates)["pagination"]["total"] == 0


def test_template_requires_role_and_name(seeded, run):
    with pytest.raises(ApiError) as exc:
        run(create_template, role_name="", name="Empty")
    assert exc.value.message == "Missing roleName"


def test_list_filters_and_role_lookup_skip_inactive(nurse_template, run):
    run(create_template, role_name="Staff Nurse", name="Retired form", is_active=False)
    run(create_template, role_name="Lab Tech", name="Bench skills")

    assert run(list_templates, filters={"roleName": "staff nurse"})["pagination"]["total"] == 2
    assert run(list_templates, filters={"isActive": "false"})["items"][0]["name"] == "Retired form"

    active = run(list_templates_for_role, role_name="STAFF NURSE")
    assert [t["name"] for t in active] == ["ICU screening"]
    assert len(active[0]["items"]) == 3


def test_update_template_checks_name_clash(nurse_template, run):
    run(create_template, role_name="Staff Nurse", name="Ward round")

    with pytest.raises(ApiError) as exc:
        run(update_template, template_id=nurse_template["id"], data={"name": "Ward round"})
    assert exc.value.code == "CONFLICT"

    out = run(update_template, template_id=nurse_template["id"], data={"description": "Updated", "isActive": False})
    assert out["description"] == "Updated"
    assert out["isActive"] is False


def test_item_crud(nurse_template, run):
    tid = nurse_template["id"]

    added = run(add_template_item, template_id=tid, category="technical", criterion="Vital signs")
    assert added["order"] == 6

    with pytest.raises(ApiError) as exc:
        run(add_template_item, template_id=tid, category="technical", criterion="Vital signs")
    assert exc.value.code == "CONFLICT"

    moved = run(update_template_item, template_id=tid, item_id=added["id"], data={"category": "monitoring", "order": 0})
    assert (moved["category"], moved["order"]) == ("monitoring", 0)

    assert run(remove_template_item, template_id=tid, item_id=added["id"]) == {"id": added["id"], "deleted": True}
    with pytest.raises(ApiError) as exc:
        run(remove_template_item, template_id=tid, item_id=added["id"])
    assert exc.value.code == "NOT_FOUND"
    assert exc.value.message == f"Template item with ID {added['id']} not found in this template"


def test_item_from_another_template_is_not_found(nurse_template, run):
    other = run(create_template, role_name="Lab Tech", name="Bench skills", items=[{"category": "lab", "criterion": "Pipetting"}])
    with pytest.raises(ApiError) as exc:
        run(update_template_item, template_id=nurse_template["id"], item_id=other["items"][0]["id"], data={"order": 2})
    assert exc.value.code == "NOT_FOUND"


def test_schedule_with_template_links_checklist(seeded, nurse_template, run, admin):
    cp_id = seeded["candidateProjectId"]
    mi = run(
        create_mock_interview,
        candidate_project_id=cp_id,
        coordinator_id="USR-COORD",
        template_id=nurse_template["id"],
        auth=admin,
    )
    assert mi["templateId"] == nurse_template["id"]

    item = nurse_template["items"][0]
    run(
        complete_mock_interview,
        mock_interview_id=mi["id"],
        decision="approved",
        checklist_items=[{"templateItemId": item["id"], "category": item["category"], "criterion": item["criterion"], "passed": True}],
        auth=admin,
    )
    detail = run(get_mock_interview, mock_interview_id=mi["id"])
    assert detail["checklistItems"][0]["templateItemId"] == item["id"]

    with pytest.raises(ApiError) as exc:
        run(remove_template, template_id=nurse_template["id"])
    assert exc.value.code == "CONFLICT"


def test_schedule_rejects_unknown_or_mismatched_template(seeded, run, admin):
    cp_id = seeded["candidateProjectId"]
    with pytest.raises(ApiError) as exc:
        run(create_mock_interview, candidate_project_id=cp_id, coordinator_id="USR-COORD", template_id="missing", auth=admin)
    assert exc.value.code == "NOT_FOUND"
    assert exc.value.message == "Template with ID missing not found"

    lab = run(create_template, role_name="Lab Tech", name="Bench skills")
    with pytest.raises(ApiError) as exc:
        run(create_mock_interview, candidate_project_id=cp_id, coordinator_id="USR-COORD", template_id=lab["id"], auth=admin)
    assert exc.value.code == "BAD_REQUEST"
    assert exc.value.message == "Template role does not match candidate role"


def test_unused_template_is_removed_with_items(nurse_template, run):
    assert run(remove_template, template_id=nurse_template["id"]) == {"id": nurse_template["id"], "deleted": True}
    with pytest.raises(ApiError) as exc:
        run(get_template, template_id=nurse_template["id"])
    assert exc.value.code == "NOT_FOUND"


def test_templates_over_http(app_client, seeded):
    _app, client = app_client
    res = client.post(
        "/api/v1/mock-interview-templates",
        json={"roleName": "Staff Nurse", "name": "ICU screening", "items": ITEMS},
    )
    assert res.status_code == 201
    tid = res.get_json()["data"]["id"]

    res = client.get("/api/v1/mock-interview-templates/by-role/Staff%20Nurse")
    assert [t["id"] for t in res.get_json()["data"]] == [tid]

    res = client.post(f"/api/v1/mock-interview-templates/{tid}/items", json={"category": "technical", "criterion": "Medication dosage"})
    assert res.status_code == 409

    res = client.post(
        "/api/v1/mock-interviews",
        json={"candidateProjectId": seeded["candidateProjectId"], "coordinatorId": "USR-COORD", "templateId": tid},
    )
    assert res.status_code == 201
    assert res.get_json()["data"]["templateId"] == tid
