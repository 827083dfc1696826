from __future__ import annotations

import logging
from typing import Any

from sqlalchemy import delete, func, select

from models import MockInterview, MockInterviewTemplate, MockInterviewTemplateItem
from utils import ApiError, iso_utc_now, new_uuid, pagination, parse_page


_log = logging.getLogger("workflow.mock_interview_templates")

_TEMPLATE_FIELDS = ("roleName", "name", "description", "isActive")
_ITEM_FIELDS = ("category", "criterion", "order")


def _required(value: Any, field: str) -> str:
    s = str(value or "").strip()
    if not s:
        raise ApiError("BAD_REQUEST", f"Missing {field}")
    return s


def _clean_order(value: Any, default: int) -> int:
    if value in (None, ""):
        return default
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ApiError("BAD_REQUEST", "Invalid order")


def _as_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in {"1", "true", "yes"}
    return bool(value)


def _get_template(db, template_id: str) -> MockInterviewTemplate:
    tid = str(template_id or "").strip()
    template = db.get(MockInterviewTemplate, tid) if tid else None
    if template is None:
        raise ApiError("NOT_FOUND", f"Template with ID {tid} not found")
    return template


def _get_item(db, template: MockInterviewTemplate, item_id: str) -> MockInterviewTemplateItem:
    iid = str(item_id or "").strip()
    item = db.get(MockInterviewTemplateItem, iid) if iid else None
    if item is None or item.templateId != template.id:
        raise ApiError("NOT_FOUND", f"Template item with ID {iid} not found in this template")
    return item


def _ensure_unique_name(db, *, role_name: str, name: str, exclude_id: str | None = None) -> None:
    q = select(MockInterviewTemplate.id).where(
        func.lower(MockInterviewTemplate.roleName) == role_name.lower(),
        func.lower(MockInterviewTemplate.name) == name.lower(),
    )
    if exclude_id:
        q = q.where(MockInterviewTemplate.id != exclude_id)
    if db.execute(q).first():
        raise ApiError("CONFLICT", f"Template with name '{name}' already exists for role '{role_name}'")


def _ensure_unique_criterion(db, *, template_id: str, category: str, criterion: str, exclude_id: str | None = None) -> None:
    q = select(MockInterviewTemplateItem.id).where(
        MockInterviewTemplateItem.templateId == template_id,
        MockInterviewTemplateItem.category == category,
        MockInterviewTemplateItem.criterion == criterion,
    )
    if exclude_id:
        q = q.where(MockInterviewTemplateItem.id != exclude_id)
    if db.execute(q).first():
        raise ApiError("CONFLICT", f"Criterion '{criterion}' already exists in category '{category}'")


def _template_items(db, template_id: str) -> list[MockInterviewTemplateItem]:
    return (
        db.execute(
            select(MockInterviewTemplateItem)
            .where(MockInterviewTemplateItem.templateId == template_id)
            .order_by(
                MockInterviewTemplateItem.category.asc(),
                MockInterviewTemplateItem.order.asc(),
                MockInterviewTemplateItem.id.asc(),
            )
        )
        .scalars()
        .all()
    )


def create_template(
    db,
    *,
    role_name: str,
    name: str,
    description: str = "",
    is_active: Any = True,
    items: list[dict[str, Any]] | None = None,
) -> dict[str, Any]:
    role = _required(role_name, "roleName")
    title = _required(name, "name")
    _ensure_unique_name(db, role_name=role, name=title)

    now = iso_utc_now()
    template = MockInterviewTemplate(
        id=new_uuid(),
        roleName=role,
        name=title,
        description=str(description or ""),
        isActive=_as_bool(is_active),
        createdAt=now,
        updatedAt=now,
    )

    rows = []
    seen: set[tuple[str, str]] = set()
    for idx, it in enumerate(items or []):
        if not isinstance(it, dict):
            raise ApiError("BAD_REQUEST", "Invalid template item")
        category = _required(it.get("category"), "category")
        criterion = _required(it.get("criterion"), "criterion")
        if (category, criterion) in seen:
            raise ApiError("BAD_REQUEST", f"Duplicate criterion '{criterion}' in category '{category}'")
        seen.add((category, criterion))
        rows.append(
            MockInterviewTemplateItem(
                id=new_uuid(),
                templateId=template.id,
                category=category,
                criterion=criterion,
                order=_clean_order(it.get("order"), idx),
                createdAt=now,
                updatedAt=now,
            )
        )

    db.add(template)
    db.add_all(rows)
    db.flush()
    _log.info("mock interview template %s created role=%s items=%d", template.id, role, len(rows))
    return serialize_template(template, rows)


def list_templates(db, *, filters: dict[str, Any] | None = None, page: Any = 1, limit: Any = 10) -> dict[str, Any]:
    f = filters or {}
    p, n = parse_page(page, limit)

    q = select(MockInterviewTemplate)
    if f.get("roleName"):
        q = q.where(func.lower(MockInterviewTemplate.roleName) == str(f["roleName"]).strip().lower())
    if f.get("isActive") not in (None, ""):
        q = q.where(MockInterviewTemplate.isActive.is_(_as_bool(f["isActive"])))

    total = db.execute(select(func.count()).select_from(q.subquery())).scalar_one()
    rows = (
        db.execute(
            q.order_by(MockInterviewTemplate.roleName.asc(), MockInterviewTemplate.name.asc())
            .offset((p - 1) * n)
            .limit(n)
        )
        .scalars()
        .all()
    )
    return {"items": [serialize_template(t) for t in rows], "pagination": pagination(p, n, int(total or 0))}


def get_template(db, *, template_id: str) -> dict[str, Any]:
    template = _get_template(db, template_id)
    return serialize_template(template, _template_items(db, template.id))


def list_templates_for_role(db, *, role_name: str) -> list[dict[str, Any]]:
    """Active templates for a role designation, compared case-insensitively."""
    role = _required(role_name, "roleName")
    rows = (
        db.execute(
            select(MockInterviewTemplate)
            .where(func.lower(MockInterviewTemplate.roleName) == role.lower())
            .where(MockInterviewTemplate.isActive.is_(True))
            .order_by(MockInterviewTemplate.name.asc())
        )
        .scalars()
        .all()
    )
    return [serialize_template(t, _template_items(db, t.id)) for t in rows]


def update_template(db, *, template_id: str, data: dict[str, Any]) -> dict[str, Any]:
    template = _get_template(db, template_id)
    changes = {k: data[k] for k in _TEMPLATE_FIELDS if k in (data or {})}
    if not changes:
        raise ApiError("BAD_REQUEST", "Nothing to update")

    role = _required(changes["roleName"], "roleName") if "roleName" in changes else template.roleName
    title = _required(changes["name"], "name") if "name" in changes else template.name
    if role != template.roleName or title != template.name:
        _ensure_unique_name(db, role_name=role, name=title, exclude_id=template.id)

    template.roleName = role
    template.name = title
    if "description" in changes:
        template.description = str(changes["description"] or "")
    if "isActive" in changes:
        template.isActive = _as_bool(changes["isActive"])
    template.updatedAt = iso_utc_now()
    return serialize_template(template, _template_items(db, template.id))


def remove_template(db, *, template_id: str) -> dict[str, Any]:
    template = _get_template(db, template_id)
    in_use = db.execute(select(MockInterview.id).where(MockInterview.templateId == template.id)).first()
    if in_use:
        raise ApiError("CONFLICT", "Template is used by existing mock interviews. Deactivate it instead")
    db.execute(delete(MockInterviewTemplateItem).where(MockInterviewTemplateItem.templateId == template.id))
    db.delete(template)
    _log.info("mock interview template %s removed", template.id)
    return {"id": template.id, "deleted": True}


def add_template_item(
    db,
    *,
    template_id: str,
    category: str,
    criterion: str,
    order: Any = None,
) -> dict[str, Any]:
    template = _get_template(db, template_id)
    cat = _required(category, "category")
    crit = _required(criterion, "criterion")
    _ensure_unique_criterion(db, template_id=template.id, category=cat, criterion=crit)

    if order in (None, ""):
        last = db.execute(
            select(func.max(MockInterviewTemplateItem.order))
            .where(MockInterviewTemplateItem.templateId == template.id)
            .where(MockInterviewTemplateItem.category == cat)
        ).scalar()
        position = 0 if last is None else int(last) + 1
    else:
        position = _clean_order(order, 0)

    now = iso_utc_now()
    item = MockInterviewTemplateItem(
        id=new_uuid(),
        templateId=template.id,
        category=cat,
        criterion=crit,
        order=position,
        createdAt=now,
        updatedAt=now,
    )
    db.add(item)
    template.updatedAt = now
    db.flush()
    return serialize_template_item(item)


def update_template_item(db, *, template_id: str, item_id: str, data: dict[str, Any]) -> dict[str, Any]:
    template = _get_template(db, template_id)
    item = _get_item(db, template, item_id)
    changes = {k: data[k] for k in _ITEM_FIELDS if k in (data or {})}
    if not changes:
        raise ApiError("BAD_REQUEST", "Nothing to update")

    cat = _required(changes["category"], "category") if "category" in changes else item.category
    crit = _required(changes["criterion"], "criterion") if "criterion" in changes else item.criterion
    if cat != item.category or crit != item.criterion:
        _ensure_unique_criterion(db, template_id=template.id, category=cat, criterion=crit, exclude_id=item.id)

    item.category = cat
    item.criterion = crit
    if "order" in changes:
        item.order = _clean_order(changes["order"], item.order)
    item.updatedAt = iso_utc_now()
    return serialize_template_item(item)


def remove_template_item(db, *, template_id: str, item_id: str) -> dict[str, Any]:
    template = _get_template(db, template_id)
    item = _get_item(db, template, item_id)
    db.delete(item)
    template.updatedAt = iso_utc_now()
    return {"id": item.id, "deleted": True}


def serialize_template_item(item: MockInterviewTemplateItem) -> dict[str, Any]:
    return {
        "id": item.id,
        "templateId": item.templateId,
        "category": item.category,
        "criterion": item.criterion,
        "order": item.order,
    }


def serialize_template(
    template: MockInterviewTemplate, items: list[MockInterviewTemplateItem] | None = None
) -> dict[str, Any]:
    out = {
        "id": template.id,
        "roleName": template.roleName,
        "name": template.name,
        "description": template.description,
        "isActive": bool(template.isActive),
        "createdAt": template.createdAt,
        "updatedAt": template.updatedAt,
    }
    if items is not None:
        out["items"] = [serialize_template_item(i) for i in items]
    return out
