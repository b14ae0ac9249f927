"""POST /v1/ussd - carrier USSD gateway callback"""

import logging
from fastapi import APIRouter, BackgroundTasks, Depends
from fastapi.responses import PlainTextResponse
from sqlalchemy.orm import Session

from cashpoint_gateway.api.v1.schemas import UssdRequest
from cashpoint_gateway.api.dependencies import get_audit_client, get_navigator
from cashpoint_gateway.domain.ussd import UssdReply, redact_pins, tokenize
from cashpoint_gateway.infrastructure.clients.audit import AuditClient
from cashpoint_gateway.infrastructure.database.session import get_db
from cashpoint_gateway.infrastructure.observability.logging import log_ussd_interaction
from cashpoint_gateway.infrastructure.observability.metrics import ussd_request_counter
from cashpoint_gateway.services.ussd_navigator import UssdNavigator

router = APIRouter()

FALLBACK = UssdReply.end("Service temporarily unavailable. Please try again later.")


@router.post("/ussd", response_class=PlainTextResponse)
async def handle_ussd(
    body: UssdRequest,
    background_tasks: BackgroundTasks,
    navigator: UssdNavigator = Depends(get_navigator),
    audit: AuditClient = Depends(get_audit_client),
    db: Session = Depends(get_db),
):
    """
    One hop of a USSD session.

    Returns:
        text/plain starting with CON (gateway keeps the session open) or END
    """
    flow_name = "unknown"
    try:
        flow, reply = await navigator.handle(body.service_code, body.text, body.phone_number)
        flow_name = flow.value
    except Exception as e:
        db.rollback()
        logging.error(f"USSD error: {e}", extra={"session_id": body.session_id})
        reply = FALLBACK

    rendered = reply.render()
    ussd_request_counter.labels(flow=flow_name, session="con" if reply.continue_session else "end").inc()
    log_ussd_interaction(
        body.session_id, body.service_code, flow_name, len(tokenize(body.text)), reply.continue_session
    )
    background_tasks.add_task(
        audit.log_event,
        f"ussd-{body.phone_number}",
        "ussd_interaction",
        {
            "sessionId": body.session_id,
            "serviceCode": body.service_code,
            "text": redact_pins(body.text),
            "phoneNumber": body.phone_number,
            "response": rendered[:100],
        },
    )
    return PlainTextResponse(rendered)
