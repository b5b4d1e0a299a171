# This project was developed with assistance from AI tools.
"""Document approval workflow endpoints.

Routes stay thin: they resolve the caller, the session and the notification
dispatcher, call one orchestrator function and shape the response. Workflow
errors propagate to the RFC 7807 handlers in ``main``.
"""

from docflow_db import get_db
from docflow_db.enums import UserRole
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from ..middleware.auth import CurrentUser, require_roles
from ..schemas.workflow import (
    ApprovalResponse,
    ApproverInfo,
    ConfirmApprovalRequest,
    ConfirmApprovalResponse,
    ConfirmedApproval,
    DocumentResponse,
    DocumentSubmissionRequest,
    DocumentWorkflowResponse,
    RejectRequest,
    RequestRevisionResponse,
    ResubmitRequest,
    RevisionRequestBody,
    RevisionRequestItem,
    SignApprovalResponse,
    SignedApproval,
    SignRequest,
    ValidateRequest,
)
from ..services import workflow
from ..services.notifications import NotificationDispatcher, get_notification_dispatcher

router = APIRouter()


def _workflow_response(result: workflow.WorkflowResult) -> DocumentWorkflowResponse:
    return DocumentWorkflowResponse(
        document=DocumentResponse.model_validate(result.document),
        approvals=[ApprovalResponse.model_validate(a) for a in result.approvals],
    )


@router.post(
    "/submission",
    response_model=DocumentWorkflowResponse,
    status_code=status.HTTP_201_CREATED,
)
async def submit_document(
    body: DocumentSubmissionRequest,
    user: CurrentUser,
    session: AsyncSession = Depends(get_db),
    dispatcher: NotificationDispatcher = Depends(get_notification_dispatcher),
) -> DocumentWorkflowResponse:
    """Create a document and its reviewer/approver/acknowledger chain."""
    result = await workflow.submit_document(session, user, body, dispatcher)
    return _workflow_response(result)


@router.post("/{document_id}/resubmit", response_model=DocumentWorkflowResponse)
async def resubmit_document(
    document_id: int,
    user: CurrentUser,
    body: ResubmitRequest | None = None,
    session: AsyncSession = Depends(get_db),
    dispatcher: NotificationDispatcher = Depends(get_notification_dispatcher),
) -> DocumentWorkflowResponse:
    """Send a draft or revised document into review."""
    signature = body.signature if body else None
    result = await workflow.resubmit_document(
        session, user, document_id, dispatcher, signature=signature,
    )
    return _workflow_response(result)


@router.get("/{document_id}/workflow", response_model=DocumentWorkflowResponse)
async def get_document_workflow(
    document_id: int,
    user: CurrentUser,
    session: AsyncSession = Depends(get_db),
) -> DocumentWorkflowResponse:
    """Document status plus its active approval records in signing order."""
    result = await workflow.get_document_workflow(session, user, document_id)
    if result is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Document not found",
        )
    return _workflow_response(result)


@router.post("/{document_id}/sign", response_model=SignApprovalResponse)
async def sign_document(
    document_id: int,
    body: SignRequest,
    user: CurrentUser,
    session: AsyncSession = Depends(get_db),
    dispatcher: NotificationDispatcher = Depends(get_notification_dispatcher),
) -> SignApprovalResponse:
    """Attach the caller's signature. Confirmation is a separate step."""
    result = await workflow.sign_approval(
        session, user, document_id, body.approval_id, body.signature_image, dispatcher,
    )
    approval = result.approval
    return SignApprovalResponse(
        approval=SignedApproval(
            id=approval.id,
            level=approval.level,
            status=approval.status,
            signed_at=approval.signed_at,
            approver=ApproverInfo(id=user.user_id, name=user.name),
        ),
        document_status=result.document.status,
    )


@router.post("/{document_id}/confirm-approve", response_model=ConfirmApprovalResponse)
async def confirm_approve(
    document_id: int,
    body: ConfirmApprovalRequest,
    user: CurrentUser,
    session: AsyncSession = Depends(get_db),
    dispatcher: NotificationDispatcher = Depends(get_notification_dispatcher),
) -> ConfirmApprovalResponse:
    """Confirm a signed approval and advance the document."""
    result = await workflow.confirm_approval(
        session, user, document_id, body.approval_id, dispatcher,
    )
    approval = result.approval
    return ConfirmApprovalResponse(
        approval=ConfirmedApproval(
            id=approval.id,
            level=approval.level,
            status=approval.status,
            confirmed_at=approval.confirmed_at,
            approver=ApproverInfo(id=user.user_id, name=user.name),
        ),
        document_status=result.document.status,
        approval_status=result.document.approval_status,
    )


@router.post("/{document_id}/reject", response_model=DocumentWorkflowResponse)
async def reject_document(
    document_id: int,
    body: RejectRequest,
    user: CurrentUser,
    session: AsyncSession = Depends(get_db),
    dispatcher: NotificationDispatcher = Depends(get_notification_dispatcher),
) -> DocumentWorkflowResponse:
    result = await workflow.reject_approval(
        session, user, document_id, body.approval_id, body.reason, dispatcher,
    )
    return _workflow_response(result)


@router.post("/{document_id}/request-revision", response_model=RequestRevisionResponse)
async def request_revision(
    document_id: int,
    body: RevisionRequestBody,
    user: CurrentUser,
    session: AsyncSession = Depends(get_db),
    dispatcher: NotificationDispatcher = Depends(get_notification_dispatcher),
) -> RequestRevisionResponse:
    """Send the document back to its requester; every signature is reset."""
    result = await workflow.request_revision(
        session, user, document_id, body.approval_id, body.reason, dispatcher,
    )
    return RequestRevisionResponse(
        revision_request=RevisionRequestItem.model_validate(result.revision_request),
        document_status=result.document.status,
        revision_cycle=result.document.revision_cycle,
    )


@router.post(
    "/{document_id}/validate",
    response_model=DocumentWorkflowResponse,
    dependencies=[Depends(require_roles(UserRole.ADMIN))],
)
async def validate_document(
    document_id: int,
    body: ValidateRequest,
    user: CurrentUser,
    session: AsyncSession = Depends(get_db),
    dispatcher: NotificationDispatcher = Depends(get_notification_dispatcher),
) -> DocumentWorkflowResponse:
    """Admin approval or rejection of a fully signed document."""
    result = await workflow.validate_document(
        session, user, document_id, body.action, dispatcher, comments=body.comments,
    )
    return _workflow_response(result)
