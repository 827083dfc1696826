from __future__ import annotations

from typing import Any, Callable

from flask import Blueprint, current_app, jsonify, request

from actions import (
    candidate_projects,
    documents,
    mock_interview_templates,
    mock_interviews,
    recruiter_assignment,
    training,
)
from actions.status_core import latest_transition_into, list_status_history
from actions.statuses import list_statuses
from db import session_scope
from services import identity
from utils import AuthContext, ok

workflow_bp = Blueprint("workflow", __name__)


def _auth() -> AuthContext:
    cfg = current_app.config["CFG"]
    uid = str(request.headers.get("X-User-Id") or "").strip() or cfg.SYSTEM_USER_ID
    return AuthContext(valid=True, userId=uid, email="", role="", expiresAt="")


def _body() -> dict[str, Any]:
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else {}


def _run(fn: Callable[..., Any], *, message: str = "", status: int = 200, **kwargs):
    with session_scope() as db:
        out = fn(db, **kwargs)
    body, _ = ok(out, message)
    return jsonify(body), status


# --- catalog / assignments ---


@workflow_bp.get("/statuses")
def statuses_list():
    return _run(lambda db: list_statuses(db))


@workflow_bp.get("/roles/<role_name>/users")
def role_users_list(role_name: str):
    return _run(
        lambda db: [
            {"userId": u.userId, "fullName": u.fullName, "email": u.email}
            for u in identity.list_users_with_role(db, role_name)
        ]
    )


@workflow_bp.post("/candidate-projects")
def candidate_project_nominate():
    b = _body()
    return _run(
        candidate_projects.nominate_candidate,
        message="Candidate assigned to project successfully",
        status=201,
        candidate_id=b.get("candidateId"),
        project_id=b.get("projectId"),
        role_needed_id=b.get("roleNeededId"),
        recruiter_id=b.get("recruiterId"),
        notes=b.get("notes") or "",
        auth=_auth(),
    )


@workflow_bp.get("/candidate-projects/<cp_id>")
def candidate_project_get(cp_id: str):
    return _run(candidate_projects.get_assignment_detail, candidate_project_id=cp_id)


@workflow_bp.post("/candidate-projects/<cp_id>/status")
def candidate_project_status_update(cp_id: str):
    b = _body()
    return _run(
        candidate_projects.update_status,
        message="Status updated successfully",
        candidate_project_id=cp_id,
        sub_status_name=b.get("subStatusName"),
        reason=b.get("reason") or "",
        notes=b.get("notes") or "",
        auth=_auth(),
    )


@workflow_bp.post("/candidate-projects/<cp_id>/send-to-mock-interview")
def candidate_project_send_to_mock(cp_id: str):
    b = _body()
    return _run(
        candidate_projects.send_to_mock_interview,
        message="Candidate sent for mock interview",
        candidate_project_id=cp_id,
        notes=b.get("notes") or "",
        auth=_auth(),
    )


@workflow_bp.get("/candidate-projects/<cp_id>/history")
def candidate_project_history(cp_id: str):
    return _run(
        list_status_history,
        candidate_project_id=cp_id,
        page=request.args.get("page"),
        limit=request.args.get("limit"),
    )


@workflow_bp.get("/candidate-projects/<cp_id>/history/latest/<sub_status_name>")
def candidate_project_history_latest(cp_id: str, sub_status_name: str):
    return _run(latest_transition_into, candidate_project_id=cp_id, sub_status_name=sub_status_name)


@workflow_bp.get("/candidate-projects/<cp_id>/interview-history")
def candidate_project_interview_history(cp_id: str):
    return _run(
        mock_interviews.list_interview_history,
        candidate_project_id=cp_id,
        interview_type=request.args.get("interviewType") or None,
        page=request.args.get("page"),
        limit=request.args.get("limit"),
    )


# --- documents ---


@workflow_bp.get("/candidate-projects/<cp_id>/documents/summary")
def documents_summary(cp_id: str):
    return _run(documents.get_document_summary, candidate_project_id=cp_id)


@workflow_bp.post("/candidate-projects/<cp_id>/documents")
def documents_upload(cp_id: str):
    b = _body()
    return _run(
        documents.upload_document,
        message="Document uploaded successfully",
        status=201,
        candidate_project_id=cp_id,
        doc_type=b.get("docType"),
        file=b,
        replace=bool(b.get("replace")),
        auth=_auth(),
    )


@workflow_bp.post("/candidate-projects/<cp_id>/documents/<doc_id>/verify")
def documents_verify(cp_id: str, doc_id: str):
    b = _body()
    return _run(
        documents.verify_document,
        message="Document verification updated",
        document_id=doc_id,
        candidate_project_id=cp_id,
        status=b.get("status"),
        notes=b.get("notes") or "",
        rejection_reason=b.get("rejectionReason"),
        auth=_auth(),
    )


@workflow_bp.post("/candidate-projects/<cp_id>/documents/<doc_id>/request-resubmission")
def documents_request_resubmission(cp_id: str, doc_id: str):
    b = _body()
    return _run(
        documents.request_resubmission,
        message="Re-submission requested",
        document_id=doc_id,
        candidate_project_id=cp_id,
        reason=b.get("reason") or "",
        auth=_auth(),
    )


@workflow_bp.post("/candidate-projects/<cp_id>/documents/<doc_id>/reupload")
def documents_reupload(cp_id: str, doc_id: str):
    return _run(
        documents.reupload_document,
        message="Document re-uploaded successfully",
        document_id=doc_id,
        candidate_project_id=cp_id,
        file=_body(),
        auth=_auth(),
    )


@workflow_bp.post("/candidate-projects/<cp_id>/documents/<doc_id>/link")
def documents_link(cp_id: str, doc_id: str):
    return _run(
        documents.link_document,
        message="Document linked to project",
        status=201,
        document_id=doc_id,
        candidate_project_id=cp_id,
        auth=_auth(),
    )


@workflow_bp.get("/candidate-projects/<cp_id>/documents/<doc_id>/history")
def documents_history(cp_id: str, doc_id: str):
    return _run(documents.list_verification_history, document_id=doc_id, candidate_project_id=cp_id)


@workflow_bp.post("/candidate-projects/<cp_id>/documents/complete-verification")
def documents_complete_verification(cp_id: str):
    b = _body()
    return _run(
        documents.complete_verification,
        message="Document verification completed",
        candidate_project_id=cp_id,
        notes=b.get("notes") or "",
        auth=_auth(),
    )


@workflow_bp.post("/candidate-projects/<cp_id>/documents/reject-verification")
def documents_reject_verification(cp_id: str):
    b = _body()
    return _run(
        documents.reject_verification,
        message="Document verification rejected",
        candidate_project_id=cp_id,
        reason=b.get("reason") or "",
        auth=_auth(),
    )


# --- mock interviews ---


@workflow_bp.post("/mock-interviews")
def mock_interview_create():
    b = _body()
    return _run(
        mock_interviews.create_mock_interview,
        message="Mock interview scheduled successfully",
        status=201,
        candidate_project_id=b.get("candidateProjectId"),
        coordinator_id=b.get("coordinatorId"),
        scheduled_time=b.get("scheduledTime"),
        duration=b.get("duration", 60),
        meeting_link=b.get("meetingLink") or "",
        mode=b.get("mode") or "video",
        template_id=b.get("templateId"),
        auth=_auth(),
    )


@workflow_bp.get("/mock-interviews")
def mock_interview_list():
    return _run(
        mock_interviews.list_mock_interviews,
        filters=request.args.to_dict(),
        page=request.args.get("page"),
        limit=request.args.get("limit"),
    )


@workflow_bp.get("/mock-interviews/<mi_id>")
def mock_interview_get(mi_id: str):
    return _run(mock_interviews.get_mock_interview, mock_interview_id=mi_id)


@workflow_bp.patch("/mock-interviews/<mi_id>")
def mock_interview_update(mi_id: str):
    return _run(
        mock_interviews.update_mock_interview,
        message="Mock interview updated successfully",
        mock_interview_id=mi_id,
        data=_body(),
        auth=_auth(),
    )


@workflow_bp.post("/mock-interviews/<mi_id>/complete")
def mock_interview_complete(mi_id: str):
    b = _body()
    return _run(
        mock_interviews.complete_mock_interview,
        message="Mock interview completed successfully",
        mock_interview_id=mi_id,
        decision=b.get("decision"),
        checklist_items=b.get("checklistItems") or [],
        overall_rating=b.get("overallRating"),
        remarks=b.get("remarks") or "",
        strengths=b.get("strengths") or "",
        areas_of_improvement=b.get("areasOfImprovement") or "",
        auth=_auth(),
    )


@workflow_bp.delete("/mock-interviews/<mi_id>")
def mock_interview_delete(mi_id: str):
    return _run(
        mock_interviews.remove_mock_interview,
        message="Mock interview deleted successfully",
        mock_interview_id=mi_id,
        auth=_auth(),
    )


@workflow_bp.get("/mock-interviews/coordinators/<coordinator_id>/stats")
def mock_interview_coordinator_stats(coordinator_id: str):
    return _run(mock_interviews.get_coordinator_stats, coordinator_id=coordinator_id)


# --- mock interview templates ---


@workflow_bp.post("/mock-interview-templates")
def mock_interview_template_create():
    b = _body()
    return _run(
        mock_interview_templates.create_template,
        message="Template created successfully",
        status=201,
        role_name=b.get("roleName"),
        name=b.get("name"),
        description=b.get("description") or "",
        is_active=b.get("isActive", True),
        items=b.get("items") or [],
    )


@workflow_bp.get("/mock-interview-templates")
def mock_interview_template_list():
    return _run(
        mock_interview_templates.list_templates,
        filters=request.args.to_dict(),
        page=request.args.get("page"),
        limit=request.args.get("limit"),
    )


@workflow_bp.get("/mock-interview-templates/by-role/<role_name>")
def mock_interview_template_by_role(role_name: str):
    return _run(mock_interview_templates.list_templates_for_role, role_name=role_name)


@workflow_bp.get("/mock-interview-templates/<template_id>")
def mock_interview_template_get(template_id: str):
    return _run(mock_interview_templates.get_template, template_id=template_id)


@workflow_bp.patch("/mock-interview-templates/<template_id>")
def mock_interview_template_update(template_id: str):
    return _run(
        mock_interview_templates.update_template,
        message="Template updated successfully",
        template_id=template_id,
        data=_body(),
    )


@workflow_bp.delete("/mock-interview-templates/<template_id>")
def mock_interview_template_delete(template_id: str):
    return _run(
        mock_interview_templates.remove_template,
        message="Template deleted successfully",
        template_id=template_id,
    )


@workflow_bp.post("/mock-interview-templates/<template_id>/items")
def mock_interview_template_item_add(template_id: str):
    b = _body()
    return _run(
        mock_interview_templates.add_template_item,
        message="Template item added successfully",
        status=201,
        template_id=template_id,
        category=b.get("category"),
        criterion=b.get("criterion"),
        order=b.get("order"),
    )


@workflow_bp.patch("/mock-interview-templates/<template_id>/items/<item_id>")
def mock_interview_template_item_update(template_id: str, item_id: str):
    return _run(
        mock_interview_templates.update_template_item,
        message="Template item updated successfully",
        template_id=template_id,
        item_id=item_id,
        data=_body(),
    )


@workflow_bp.delete("/mock-interview-templates/<template_id>/items/<item_id>")
def mock_interview_template_item_delete(template_id: str, item_id: str):
    return _run(
        mock_interview_templates.remove_template_item,
        message="Template item deleted successfully",
        template_id=template_id,
        item_id=item_id,
    )


# --- training ---


@workflow_bp.post("/training-assignments")
def training_create():
    b = _body()
    auth = _auth()
    return _run(
        training.create_training_assignment,
        message="Training assigned successfully",
        status=201,
        candidate_project_id=b.get("candidateProjectId"),
        assigned_by=b.get("assignedBy") or auth.userId,
        screening_id=b.get("screeningId"),
        training_type=b.get("trainingType"),
        focus_areas=b.get("focusAreas"),
        priority=b.get("priority") or "medium",
        target_completion_date=b.get("targetCompletionDate"),
        notes=b.get("notes") or "",
        auth=auth,
    )


@workflow_bp.get("/training-assignments")
def training_list():
    return _run(
        training.list_training_assignments,
        filters=request.args.to_dict(),
        page=request.args.get("page"),
        limit=request.args.get("limit"),
    )


@workflow_bp.get("/training-assignments/basic")
def training_list_basic():
    return _run(training.list_basic_trainings, page=request.args.get("page"), limit=request.args.get("limit"))


@workflow_bp.get("/training-assignments/<ta_id>")
def training_get(ta_id: str):
    return _run(training.get_training_assignment, training_id=ta_id)


@workflow_bp.patch("/training-assignments/<ta_id>")
def training_update(ta_id: str):
    return _run(training.update_training_assignment, message="Training updated", training_id=ta_id, data=_body())


@workflow_bp.delete("/training-assignments/<ta_id>")
def training_delete(ta_id: str):
    return _run(training.remove_training_assignment, message="Training deleted", training_id=ta_id)


@workflow_bp.post("/training-assignments/<ta_id>/start")
def training_start(ta_id: str):
    b = _body()
    return _run(training.start_training, message="Training started", training_id=ta_id, notes=b.get("notes") or "", auth=_auth())


@workflow_bp.post("/training-assignments/<ta_id>/complete")
def training_complete(ta_id: str):
    b = _body()
    return _run(
        training.complete_training,
        message="Training completed",
        training_id=ta_id,
        overall_performance=b.get("overallPerformance"),
        improvement_notes=b.get("improvementNotes") or "",
        auth=_auth(),
    )


@workflow_bp.post("/training-assignments/<ta_id>/ready-for-reassessment")
def training_ready_for_reassessment(ta_id: str):
    b = _body()
    return _run(
        training.mark_ready_for_reassessment,
        message="Candidate marked ready for reassessment",
        training_id=ta_id,
        notes=b.get("notes") or "",
        auth=_auth(),
    )


@workflow_bp.post("/training-assignments/<ta_id>/sessions")
def training_session_create(ta_id: str):
    b = _body()
    return _run(
        training.create_session,
        message="Training session created",
        status=201,
        training_id=ta_id,
        session_date=b.get("sessionDate"),
        session_type=b.get("sessionType") or "video",
        duration=b.get("duration", 60),
        topics_covered=b.get("topicsCovered"),
        planned_activities=b.get("plannedActivities") or "",
        trainer=b.get("trainer"),
        notes=b.get("notes") or "",
    )


@workflow_bp.patch("/training-sessions/<session_id>")
def training_session_update(session_id: str):
    return _run(training.update_session, message="Training session updated", session_id=session_id, data=_body())


@workflow_bp.post("/training-sessions/<session_id>/complete")
def training_session_complete(session_id: str):
    b = _body()
    return _run(
        training.complete_session,
        message="Training session completed",
        session_id=session_id,
        performance_rating=b.get("performanceRating"),
        feedback=b.get("feedback") or "",
    )


@workflow_bp.delete("/training-sessions/<session_id>")
def training_session_delete(session_id: str):
    return _run(training.remove_session, message="Training session deleted", session_id=session_id)


@workflow_bp.get("/candidate-projects/<cp_id>/training-history")
def training_history(cp_id: str):
    return _run(
        training.get_training_history,
        candidate_project_id=cp_id,
        page=request.args.get("page"),
        limit=request.args.get("limit"),
    )


# --- recruiter / CRE ---


@workflow_bp.post("/candidates/<candidate_id>/recruiter-assignment")
def recruiter_assign(candidate_id: str):
    b = _body()
    auth = _auth()
    return _run(
        recruiter_assignment.assign_recruiter,
        message="Recruiter assigned",
        status=201,
        candidate_id=candidate_id,
        created_by=b.get("createdBy") or auth.userId,
        reason=b.get("reason"),
    )


@workflow_bp.post("/candidates/<candidate_id>/cre-assignment")
def cre_assign(candidate_id: str):
    b = _body()
    auth = _auth()
    return _run(
        recruiter_assignment.assign_cre,
        message="CRE assigned",
        status=201,
        candidate_id=candidate_id,
        assigned_by=b.get("assignedBy") or auth.userId,
        reason=b.get("reason"),
        system_user_id=current_app.config["CFG"].SYSTEM_USER_ID,
    )


@workflow_bp.get("/candidates/<candidate_id>/recruiter-assignment")
def recruiter_active(candidate_id: str):
    return _run(recruiter_assignment.get_active_assignment, candidate_id=candidate_id)


@workflow_bp.get("/candidates/<candidate_id>/recruiter-assignment/history")
def recruiter_history(candidate_id: str):
    return _run(recruiter_assignment.list_assignment_history, candidate_id=candidate_id)


@workflow_bp.get("/rnr/statistics")
def rnr_statistics():
    cfg = current_app.config["CFG"]
    return _run(recruiter_assignment.get_rnr_statistics, threshold_days=cfg.RNR_CRE_THRESHOLD_DAYS)


@workflow_bp.post("/rnr/sweep")
def rnr_sweep():
    cfg = current_app.config["CFG"]
    out = recruiter_assignment.run_rnr_cre_sweep(
        threshold_days=cfg.RNR_CRE_THRESHOLD_DAYS,
        system_user_id=cfg.SYSTEM_USER_ID,
    )
    body, _ = ok(out, "RNR sweep completed")
    return jsonify(body), 200
