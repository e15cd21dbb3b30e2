from flask import Blueprint, request
from flask_jwt_extended import jwt_required
from eventproof.codec import normalize_address
from eventproof.errors import AbortCode, ProtocolError
from eventproof.routes import current_wallet, field, json_body, now_ms, ok
from eventproof.services import attendance_service, event_service, identity_service, ledger_service

organizers_bp = Blueprint('organizers', __name__)
events_bp = Blueprint('events', __name__)


@organizers_bp.route('', methods=['POST'])
@jwt_required()
def create_profile():
    """
    Create the caller's organizer profile
    ---
    tags:
      - Organizers
    security:
      - Bearer: []
    parameters:
      - in: body
        name: body
        required: true
        schema:
          type: object
          required:
            - name
          properties:
            name:
              type: string
            bio:
              type: string
    responses:
      201:
        description: Profile created
      409:
        description: Profile already exists
    """
    data = json_body()
    profile = event_service.create_organizer_profile(
        current_wallet(), field(data, 'name', str), field(data, 'bio', str, ''), now_ms(),
    )
    return ok(profile.to_dict(), 201)


@organizers_bp.route('/<address:profile_id>', methods=['GET'])
def get_profile(profile_id):
    """
    Organizer profile and reputation
    ---
    tags:
      - Organizers
    parameters:
      - name: profile_id
        in: path
        type: string
        required: true
    responses:
      200:
        description: Profile
      404:
        description: Profile not found
    """
    profile = event_service.get_profile(profile_id)
    if not profile:
        raise ProtocolError(AbortCode.PROFILE_NOT_FOUND, f"Profile {profile_id} not found")
    return ok(profile.to_dict())


@events_bp.route('', methods=['POST'])
@jwt_required()
def create_event():
    """
    Create an event with its sponsor KPI thresholds
    ---
    tags:
      - Events
    security:
      - Bearer: []
    parameters:
      - in: body
        name: body
        required: true
        schema:
          type: object
          required:
            - profile_id
            - name
            - start_time
            - end_time
            - capacity
          properties:
            profile_id:
              type: string
            name:
              type: string
            description:
              type: string
            location:
              type: string
            metadata_uri:
              type: string
            start_time:
              type: integer
              description: milliseconds
            end_time:
              type: integer
              description: milliseconds
            capacity:
              type: integer
            min_attendees:
              type: integer
            min_completion_rate:
              type: integer
              description: percent, 0-100
            min_avg_rating:
              type: integer
              description: stars * 100
    responses:
      201:
        description: Event created
      400:
        description: Invalid capacity or timestamps
      403:
        description: Profile belongs to another address
    """
    data = json_body()
    event = event_service.create_event(
        current_wallet(),
        normalize_address(field(data, 'profile_id', str)),
        field(data, 'name', str),
        field(data, 'start_time'),
        field(data, 'end_time'),
        field(data, 'capacity'),
        now_ms(),
        description=field(data, 'description', str, ''),
        location=field(data, 'location', str, ''),
        metadata_uri=field(data, 'metadata_uri', str, ''),
        min_attendees=field(data, 'min_attendees', int, 0),
        min_completion_rate=field(data, 'min_completion_rate', int, 0),
        min_avg_rating=field(data, 'min_avg_rating', int, 0),
    )
    return ok(event.to_dict(), 201)


@events_bp.route('/<address:event_id>', methods=['GET'])
def get_event(event_id):
    """
    Get a single event
    ---
    tags:
      - Events
    parameters:
      - name: event_id
        in: path
        type: string
        required: true
    responses:
      200:
        description: Event details
      404:
        description: Event not found
    """
    event = event_service.require_event(event_id)
    return ok(event.to_dict())


@events_bp.route('/<address:event_id>/activate', methods=['POST'])
@jwt_required()
def activate_event(event_id):
    event = event_service.activate_event(current_wallet(), event_id, now_ms())
    return ok(event.to_dict())


@events_bp.route('/<address:event_id>/complete', methods=['POST'])
@jwt_required()
def complete_event(event_id):
    event = event_service.complete_event(current_wallet(), event_id, now_ms())
    return ok(event.to_dict())


@events_bp.route('/<address:event_id>/register', methods=['POST'])
@jwt_required()
def register(event_id):
    """
    Register the caller and issue their attendance pass
    ---
    tags:
      - Passes
    security:
      - Bearer: []
    parameters:
      - name: event_id
        in: path
        type: string
        required: true
    responses:
      201:
        description: Registered; returns the compact QR payload
      409:
        description: Already registered or event not active
    """
    now = now_ms()
    registration = attendance_service.register_for_event(current_wallet(), event_id, now)
    return ok({
        'registration': registration.to_dict(),
        'payload': identity_service.payload_for(registration, now),
    }, 201)


@events_bp.route('/<address:event_id>/pass', methods=['GET'])
@jwt_required()
def get_pass(event_id):
    """
    QR payload for the caller's current pass
    ---
    tags:
      - Passes
    security:
      - Bearer: []
    parameters:
      - name: event_id
        in: path
        type: string
        required: true
      - name: format
        in: query
        type: string
        enum: [compact, legacy]
        default: compact
    responses:
      200:
        description: Pass payload
      404:
        description: Not registered
    """
    registration = identity_service.get_registration(event_id, current_wallet())
    if not registration:
        raise ProtocolError(AbortCode.NOT_REGISTERED, "Wallet is not registered for this event")
    legacy = request.args.get('format') == 'legacy'
    return ok(identity_service.payload_for(registration, now_ms(), legacy=legacy))


@events_bp.route('/<address:event_id>/pass', methods=['POST'])
@jwt_required()
def rotate_pass(event_id):
    """
    Issue a fresh pass; the previous QR stops verifying
    ---
    tags:
      - Passes
    security:
      - Bearer: []
    parameters:
      - name: event_id
        in: path
        type: string
        required: true
    responses:
      200:
        description: New pass payload
      409:
        description: Pass already used for check-in
    """
    now = now_ms()
    registration = attendance_service.generate_new_pass(current_wallet(), event_id, now)
    return ok(identity_service.payload_for(registration, now))


@events_bp.route('/<address:event_id>/attendance', methods=['GET'])
def attendance_summary(event_id):
    event_service.require_event(event_id)
    return ok(attendance_service.attendance_counts(event_id))


@events_bp.route('/<address:event_id>/audit', methods=['GET'])
def audit_trail(event_id):
    event_service.require_event(event_id)
    return ok([entry.to_dict() for entry in ledger_service.audit_trail(event_id)])
