# This project was developed with assistance from AI tools.
"""Document workflow request/response schemas."""

import enum
from datetime import datetime

from docflow_db.enums import ApprovalStatus, DocumentApprovalStatus, DocumentStatus
from pydantic import AliasChoices, BaseModel, ConfigDict, Field, model_validator

# ---------------------------------------------------------------------------
# Requests
# ---------------------------------------------------------------------------


class ApprovalAssignment(BaseModel):
    """One approver assigned to one level (1 reviewer, 2 approver, 3 acknowledger)."""

    approver_id: str
    level: int


class DocumentSubmissionRequest(BaseModel):
    """Create a document and its approval chain."""

    title: str = Field(min_length=1, max_length=255)
    description: str | None = None
    category_code: str = Field(
        default="DOC",
        min_length=1,
        max_length=20,
        description="Document type code; first segment of the document number.",
    )
    department_code: str | None = Field(default=None, max_length=20)
    approvers: list[ApprovalAssignment] = Field(default_factory=list)
    reviewer_ids: list[str] = Field(
        default_factory=list, validation_alias=AliasChoices("reviewer_ids", "reviewerIds"),
    )
    approver_ids: list[str] = Field(
        default_factory=list, validation_alias=AliasChoices("approver_ids", "approverIds"),
    )
    acknowledged_ids: list[str] = Field(
        default_factory=list,
        validation_alias=AliasChoices("acknowledged_ids", "acknowledgedIds"),
    )
    signature: str | None = Field(
        default=None,
        description="Prepared-by signature image. Falls back to the profile signature.",
    )
    is_draft: bool = False

    @model_validator(mode="after")
    def _merge_level_lists(self) -> "DocumentSubmissionRequest":
        """Fold the per-level id lists into ``approvers`` (levels 1, 2, 3)."""
        for level, ids in ((1, self.reviewer_ids), (2, self.approver_ids), (3, self.acknowledged_ids)):
            self.approvers.extend(ApprovalAssignment(approver_id=i, level=level) for i in ids)
        self.reviewer_ids, self.approver_ids, self.acknowledged_ids = [], [], []
        return self


class ResubmitRequest(BaseModel):
    signature: str | None = None


class SignRequest(BaseModel):
    approval_id: int
    signature_image: str = Field(
        min_length=1,
        description='Base64 signature image, or "use-profile" for the saved profile signature.',
    )


class ConfirmApprovalRequest(BaseModel):
    approval_id: int


class RejectRequest(BaseModel):
    approval_id: int
    reason: str = Field(min_length=1)


class RevisionRequestBody(BaseModel):
    approval_id: int
    reason: str


class ValidationAction(str, enum.Enum):
    APPROVE = "APPROVE"
    REJECT = "REJECT"


class ValidateRequest(BaseModel):
    """Admin decision on a document waiting for validation."""

    action: ValidationAction
    comments: str | None = None


# ---------------------------------------------------------------------------
# Responses
# ---------------------------------------------------------------------------


class ApprovalResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    level: int
    approver_id: str
    status: ApprovalStatus
    signature_image: str | None = None
    signed_at: datetime | None = None
    confirmed_at: datetime | None = None
    approved_at: datetime | None = None
    rejected_at: datetime | None = None
    comments: str | None = None
    revision_cycle: int
    created_at: datetime | None = None


class DocumentResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    document_number: str
    title: str
    description: str | None = None
    status: DocumentStatus
    approval_status: DocumentApprovalStatus
    revision_cycle: int
    created_by_id: str
    owner_id: str
    prepared_by_signed_at: datetime | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


class DocumentWorkflowResponse(BaseModel):
    """A document with its active approval records in signing order."""

    document: DocumentResponse
    approvals: list[ApprovalResponse]


class ApproverInfo(BaseModel):
    id: str
    name: str


class SignedApproval(BaseModel):
    id: int
    level: int
    status: ApprovalStatus
    signed_at: datetime | None = None
    approver: ApproverInfo


class SignApprovalResponse(BaseModel):
    approval: SignedApproval
    document_status: DocumentStatus
    requires_approval_confirmation: bool = True


class ConfirmedApproval(BaseModel):
    id: int
    level: int
    status: ApprovalStatus
    confirmed_at: datetime | None = None
    approver: ApproverInfo


class ConfirmApprovalResponse(BaseModel):
    approval: ConfirmedApproval
    document_status: DocumentStatus
    approval_status: DocumentApprovalStatus


class RevisionRequestItem(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int | None = None
    reason: str
    approval_level: int
    revision_cycle: int
    created_at: datetime | None = None


class RequestRevisionResponse(BaseModel):
    revision_request: RevisionRequestItem
    document_status: DocumentStatus
    revision_cycle: int
