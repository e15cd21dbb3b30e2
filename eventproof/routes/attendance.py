from flask import Blueprint
from flask_jwt_extended import jwt_required
from eventproof.codec import normalize_address
from eventproof.errors import AbortCode, ProtocolError
from eventproof.routes import current_wallet, field, json_body, now_ms, ok
from eventproof.services import attendance_service, event_service

attendance_bp = Blueprint('attendance', __name__)


@attendance_bp.route('/check-in', methods=['POST'])
@jwt_required()
def check_in():
    """
    Verify a scanned pass and check the holder in (organizer only)
    ---
    tags:
      - Attendance
    security:
      - Bearer: []
    parameters:
      - in: body
        name: body
        required: true
        schema:
          type: object
          required:
            - payload
          properties:
            payload:
              description: Scanned QR content, as a JSON string or object
    responses:
      200:
        description: Checked in; returns the MINT_POA capability
      400:
        description: Malformed payload
      403:
        description: Not the organizer, or the pass does not verify
      409:
        description: Wallet is not in the REGISTERED state
    """
    data = json_body()
    payload = data.get('payload')
    if not isinstance(payload, (str, dict)):
        raise ProtocolError(AbortCode.INVALID_PAYLOAD, "Missing field: payload")
    record, capability = attendance_service.check_in(current_wallet(), payload, now_ms())
    return ok({'attendance': record.to_dict(), 'capability': capability.to_dict()})


@attendance_bp.route('/check-out', methods=['POST'])
@jwt_required()
def check_out():
    """
    Check an attendee out (organizer only)
    ---
    tags:
      - Attendance
    security:
      - Bearer: []
    parameters:
      - in: body
        name: body
        required: true
        schema:
          type: object
          required:
            - event_id
            - wallet
          properties:
            event_id:
              type: string
            wallet:
              type: string
    responses:
      200:
        description: Checked out; returns the MINT_COMPLETION capability
      409:
        description: Wallet is not checked in
    """
    data = json_body()
    record, capability = attendance_service.check_out(
        current_wallet(),
        normalize_address(field(data, 'event_id', str)),
        normalize_address(field(data, 'wallet', str)),
        now_ms(),
    )
    return ok({'attendance': record.to_dict(), 'capability': capability.to_dict()})


@attendance_bp.route('/<address:event_id>/<address:wallet>', methods=['GET'])
def get_attendance(event_id, wallet):
    event_service.require_event(event_id)
    record = attendance_service.get_record(event_id, wallet)
    if not record:
        raise ProtocolError(AbortCode.NOT_REGISTERED, "Wallet is not registered for this event")
    data = record.to_dict()
    data['duration_ms'] = attendance_service.duration_ms(record)
    return ok(data)


@attendance_bp.route('/capabilities/<address:capability_id>/discard', methods=['POST'])
@jwt_required()
def discard_capability(capability_id):
    capability = attendance_service.discard_capability(current_wallet(), capability_id, now_ms())
    return ok(capability.to_dict())
