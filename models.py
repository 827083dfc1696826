from __future__ import annotations

from sqlalchemy import Boolean, Column, Index, Integer, String, Text, UniqueConstraint, text

from db import Base


class User(Base):
    __tablename__ = "users"

    userId = Column(String, primary_key=True)
    email = Column(String, nullable=False, default="", index=True)
    fullName = Column(Text, nullable=False, default="")
    status = Column(String, nullable=False, default="ACTIVE", index=True)
    createdAt = Column(Text, nullable=False, default="")
    updatedAt = Column(Text, nullable=False, default="")


class UserRole(Base):
    __tablename__ = "user_roles"
    __table_args__ = (UniqueConstraint("userId", "roleName", name="uq_user_roles_user_role"),)

    id = Column(Integer, primary_key=True, autoincrement=True)
    userId = Column(String, nullable=False, index=True)
    roleName = Column(String, nullable=False, index=True)  # Recruiter, CRE, Interview Coordinator
    createdAt = Column(Text, nullable=False, default="")


class Candidate(Base):
    __tablename__ = "candidates"

    candidateId = Column(String, primary_key=True)
    firstName = Column(Text, nullable=False, default="")
    lastName = Column(Text, nullable=False, default="")
    email = Column(Text, nullable=False, default="")
    mobile = Column(String, nullable=False, default="")
    # Contact status (e.g. "rnr" = ring no response); independent of project workflow status.
    status = Column(String, nullable=False, default="", index=True)
    createdBy = Column(String, nullable=False, default="")
    createdAt = Column(Text, nullable=False, default="")
    updatedAt = Column(Text, nullable=False, default="", index=True)


class Project(Base):
    __tablename__ = "projects"

    projectId = Column(String, primary_key=True)
    title = Column(Text, nullable=False, default="")
    status = Column(String, nullable=False, default="active")
    createdAt = Column(Text, nullable=False, default="")
    updatedAt = Column(Text, nullable=False, default="")


class RoleNeeded(Base):
    __tablename__ = "roles_needed"

    roleNeededId = Column(String, primary_key=True)
    projectId = Column(String, nullable=False, index=True)
    designation = Column(Text, nullable=False, default="")
    quantity = Column(Integer, nullable=False, default=1)
    createdAt = Column(Text, nullable=False, default="")


class DocumentRequirement(Base):
    __tablename__ = "document_requirements"
    __table_args__ = (UniqueConstraint("projectId", "docType", name="uq_document_requirements_project_type"),)

    id = Column(Integer, primary_key=True, autoincrement=True)
    projectId = Column(String, nullable=False, index=True)
    docType = Column(String, nullable=False)
    mandatory = Column(Boolean, nullable=False, default=True)
    description = Column(Text, nullable=False, default="")
    isDeleted = Column(Boolean, nullable=False, default=False)


class MainStatus(Base):
    __tablename__ = "main_statuses"
    __table_args__ = (UniqueConstraint("name", name="uq_main_statuses_name"),)

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String, nullable=False)
    label = Column(Text, nullable=False, default="")
    order = Column(Integer, nullable=False, default=0)
    color = Column(String, nullable=False, default="")
    icon = Column(String, nullable=False, default="")


class SubStatus(Base):
    __tablename__ = "sub_statuses"
    __table_args__ = (UniqueConstraint("name", name="uq_sub_statuses_name"),)

    id = Column(Integer, primary_key=True, autoincrement=True)
    mainStatusId = Column(Integer, nullable=False, index=True)
    name = Column(String, nullable=False)
    label = Column(Text, nullable=False, default="")
    order = Column(Integer, nullable=False, default=0)
    color = Column(String, nullable=False, default="")
    icon = Column(String, nullable=False, default="")


class CandidateProject(Base):
    """A candidate's engagement with one project role; carries the current workflow status."""

    __tablename__ = "candidate_projects"
    __table_args__ = (
        UniqueConstraint("candidateId", "projectId", "roleNeededId", name="uq_candidate_projects_triple"),
    )

    id = Column(String, primary_key=True)
    candidateId = Column(String, nullable=False, index=True)
    projectId = Column(String, nullable=False, index=True)
    roleNeededId = Column(String, nullable=False, index=True)
    recruiterId = Column(String, nullable=True, index=True)
    mainStatusId = Column(Integer, nullable=True, index=True)
    subStatusId = Column(Integer, nullable=True, index=True)
    notes = Column(Text, nullable=False, default="")
    assignedAt = Column(Text, nullable=False, default="")
    createdAt = Column(Text, nullable=False, default="")
    updatedAt = Column(Text, nullable=False, default="")


class CandidateProjectStatusHistory(Base):
    __tablename__ = "candidate_project_status_history"

    id = Column(Integer, primary_key=True, autoincrement=True)
    candidateProjectId = Column(String, nullable=False, index=True)
    mainStatusId = Column(Integer, nullable=True)
    subStatusId = Column(Integer, nullable=True, index=True)
    # Labels as they were at change time; the catalog may be relabelled later.
    mainStatusSnapshot = Column(Text, nullable=False, default="")
    subStatusSnapshot = Column(Text, nullable=False, default="")
    changedById = Column(String, nullable=True)
    changedByName = Column(Text, nullable=False, default="")
    reason = Column(Text, nullable=False, default="")
    notes = Column(Text, nullable=False, default="")
    statusChangedAt = Column(Text, nullable=False, default="", index=True)


class Document(Base):
    __tablename__ = "documents"

    id = Column(String, primary_key=True)
    candidateId = Column(String, nullable=False, index=True)
    docType = Column(String, nullable=False, index=True)
    fileName = Column(Text, nullable=False, default="")
    fileUrl = Column(Text, nullable=False, default="")
    fileSize = Column(Integer, nullable=True)
    mimeType = Column(String, nullable=False, default="")
    documentNumber = Column(Text, nullable=False, default="")
    expiryDate = Column(Text, nullable=True)
    status = Column(String, nullable=False, default="pending", index=True)
    uploadedBy = Column(String, nullable=False, default="")
    verifiedBy = Column(String, nullable=True)
    verifiedAt = Column(Text, nullable=True)
    rejectedBy = Column(String, nullable=True)
    rejectedAt = Column(Text, nullable=True)
    rejectionReason = Column(Text, nullable=True)
    notes = Column(Text, nullable=False, default="")
    isDeleted = Column(Boolean, nullable=False, default=False, index=True)
    deletedAt = Column(Text, nullable=True)
    createdAt = Column(Text, nullable=False, default="")
    updatedAt = Column(Text, nullable=False, default="")


class DocumentVerification(Base):
    __tablename__ = "candidate_project_document_verifications"
    __table_args__ = (
        UniqueConstraint("candidateProjectId", "documentId", name="uq_doc_verifications_project_document"),
    )

    id = Column(String, primary_key=True)
    candidateProjectId = Column(String, nullable=False, index=True)
    documentId = Column(String, nullable=False, index=True)
    status = Column(String, nullable=False, default="pending", index=True)
    notes = Column(Text, nullable=False, default="")
    rejectionReason = Column(Text, nullable=True)
    resubmissionRequested = Column(Boolean, nullable=False, default=False)
    isDeleted = Column(Boolean, nullable=False, default=False, index=True)
    deletedAt = Column(Text, nullable=True)
    createdAt = Column(Text, nullable=False, default="")
    updatedAt = Column(Text, nullable=False, default="")


class DocumentVerificationHistory(Base):
    __tablename__ = "document_verification_history"

    id = Column(Integer, primary_key=True, autoincrement=True)
    verificationId = Column(String, nullable=False, index=True)
    action = Column(String, nullable=False, default="")
    performedBy = Column(String, nullable=True)
    performedByName = Column(Text, nullable=False, default="")
    notes = Column(Text, nullable=False, default="")
    reason = Column(Text, nullable=False, default="")
    performedAt = Column(Text, nullable=False, default="", index=True)


class MockInterviewTemplate(Base):
    __tablename__ = "mock_interview_templates"
    __table_args__ = (UniqueConstraint("roleName", "name", name="uq_mock_template_role_name"),)

    id = Column(String, primary_key=True)
    roleName = Column(String, nullable=False, index=True)
    name = Column(String, nullable=False)
    description = Column(Text, nullable=False, default="")
    isActive = Column(Boolean, nullable=False, default=True)
    createdAt = Column(Text, nullable=False, default="")
    updatedAt = Column(Text, nullable=False, default="")


class MockInterviewTemplateItem(Base):
    __tablename__ = "mock_interview_template_items"
    __table_args__ = (
        UniqueConstraint("templateId", "category", "criterion", name="uq_mock_template_item_criterion"),
    )

    id = Column(String, primary_key=True)
    templateId = Column(String, nullable=False, index=True)
    category = Column(String, nullable=False, default="")
    criterion = Column(Text, nullable=False, default="")
    order = Column(Integer, nullable=False, default=0)
    createdAt = Column(Text, nullable=False, default="")
    updatedAt = Column(Text, nullable=False, default="")


class MockInterview(Base):
    """Also referred to as a screening once a trainer is attached."""

    __tablename__ = "mock_interviews"

    id = Column(String, primary_key=True)
    candidateProjectId = Column(String, nullable=False, index=True)
    coordinatorId = Column(String, nullable=False, index=True)
    templateId = Column(String, nullable=True, index=True)
    scheduledTime = Column(Text, nullable=True)
    duration = Column(Integer, nullable=False, default=60)
    meetingLink = Column(Text, nullable=False, default="")
    mode = Column(String, nullable=False, default="video")
    conductedAt = Column(Text, nullable=True)
    decision = Column(String, nullable=True, index=True)  # approved | needs_training | rejected
    overallRating = Column(Integer, nullable=True)
    remarks = Column(Text, nullable=False, default="")
    strengths = Column(Text, nullable=False, default="")
    areasOfImprovement = Column(Text, nullable=False, default="")
    isAssignedTrainer = Column(Boolean, nullable=False, default=False)
    createdAt = Column(Text, nullable=False, default="")
    updatedAt = Column(Text, nullable=False, default="")


class MockInterviewChecklistItem(Base):
    __tablename__ = "mock_interview_checklist_items"

    id = Column(Integer, primary_key=True, autoincrement=True)
    mockInterviewId = Column(String, nullable=False, index=True)
    templateItemId = Column(String, nullable=True)
    category = Column(String, nullable=False, default="")
    criterion = Column(Text, nullable=False, default="")
    passed = Column(Boolean, nullable=False, default=False)
    rating = Column(Integer, nullable=True)
    notes = Column(Text, nullable=False, default="")


class InterviewStatusHistory(Base):
    """Coordination-side ledger for mock interviews and training, separate from assignment history."""

    __tablename__ = "interview_status_history"

    id = Column(Integer, primary_key=True, autoincrement=True)
    interviewType = Column(String, nullable=False, index=True)  # mock | training
    interviewId = Column(String, nullable=True, index=True)
    candidateProjectId = Column(String, nullable=False, index=True)
    previousStatus = Column(String, nullable=True)
    status = Column(String, nullable=False, default="")
    statusSnapshot = Column(Text, nullable=False, default="")
    statusAt = Column(Text, nullable=False, default="", index=True)
    changedById = Column(String, nullable=True)
    changedByName = Column(Text, nullable=False, default="")
    reason = Column(Text, nullable=False, default="")


class TrainingAssignment(Base):
    __tablename__ = "training_assignments"

    id = Column(String, primary_key=True)
    candidateProjectId = Column(String, nullable=False, index=True)
    screeningId = Column(String, nullable=True, index=True)
    assignedBy = Column(String, nullable=False, default="")
    trainingType = Column(String, nullable=False, default="basic")
    focusAreasJson = Column(Text, nullable=False, default="[]")
    priority = Column(String, nullable=False, default="medium")
    targetCompletionDate = Column(Text, nullable=True)
    status = Column(String, nullable=False, default="assigned", index=True)
    startedAt = Column(Text, nullable=True)
    completedAt = Column(Text, nullable=True)
    overallPerformance = Column(String, nullable=True)
    notes = Column(Text, nullable=False, default="")
    improvementNotes = Column(Text, nullable=False, default="")
    createdAt = Column(Text, nullable=False, default="")
    updatedAt = Column(Text, nullable=False, default="")


class TrainingSession(Base):
    __tablename__ = "training_sessions"

    id = Column(String, primary_key=True)
    trainingAssignmentId = Column(String, nullable=False, index=True)
    sessionDate = Column(Text, nullable=False, default="")
    sessionType = Column(String, nullable=False, default="video")
    duration = Column(Integer, nullable=False, default=60)
    topicsCoveredJson = Column(Text, nullable=False, default="[]")
    plannedActivities = Column(Text, nullable=False, default="")
    trainer = Column(String, nullable=True)
    completedAt = Column(Text, nullable=True)
    performanceRating = Column(String, nullable=True)
    notes = Column(Text, nullable=False, default="")
    feedback = Column(Text, nullable=False, default="")
    createdAt = Column(Text, nullable=False, default="")
    updatedAt = Column(Text, nullable=False, default="")


class RecruiterAssignment(Base):
    __tablename__ = "candidate_recruiter_assignments"

    id = Column(String, primary_key=True)
    candidateId = Column(String, nullable=False, index=True)
    recruiterId = Column(String, nullable=False, index=True)
    assignedBy = Column(String, nullable=False, default="")
    assignedAt = Column(Text, nullable=False, default="")
    isActive = Column(Boolean, nullable=False, default=True, index=True)
    unassignedAt = Column(Text, nullable=True)
    unassignedBy = Column(String, nullable=True)
    reason = Column(Text, nullable=False, default="")


# At most one active owner per candidate; the application deactivates before inserting.
Index(
    "uq_candidate_recruiter_assignments_active",
    RecruiterAssignment.candidateId,
    unique=True,
    sqlite_where=text('"isActive" = 1'),
    postgresql_where=text('"isActive"'),
)


class OutboxEvent(Base):
    __tablename__ = "outbox_events"

    id = Column(String, primary_key=True)
    type = Column(String, nullable=False, index=True)
    payloadJson = Column(Text, nullable=False, default="{}")
    processed = Column(Boolean, nullable=False, default=False, index=True)
    attempts = Column(Integer, nullable=False, default=0)
    lastError = Column(Text, nullable=False, default="")
    createdAt = Column(Text, nullable=False, default="", index=True)
    processedAt = Column(Text, nullable=True)
