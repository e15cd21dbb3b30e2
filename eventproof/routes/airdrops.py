from flask import Blueprint
from flask_jwt_extended import jwt_required
from eventproof.codec import normalize_address
from eventproof.errors import AbortCode, ProtocolError
from eventproof.routes import current_wallet, field, json_body, now_ms, ok
from eventproof.services import airdrop_service, event_service

airdrops_bp = Blueprint('airdrops', __name__)


@airdrops_bp.route('', methods=['POST'])
@jwt_required()
def create_airdrop():
    """
    Fund an airdrop pool for an event (organizer only)
    ---
    tags:
      - Airdrops
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
            - name
            - pool
            - distribution_type
            - validity_days
          properties:
            event_id:
              type: string
            name:
              type: string
            description:
              type: string
            pool:
              type: integer
            distribution_type:
              type: integer
              description: 0 equal, 1 weighted by duration, 2 completion bonus
            validity_days:
              type: integer
            require_attendance:
              type: boolean
              default: true
            require_completion:
              type: boolean
            min_duration_ms:
              type: integer
            require_rating_submitted:
              type: boolean
    responses:
      201:
        description: Airdrop created
      400:
        description: Invalid pool, validity or distribution
      403:
        description: Caller is not the organizer
    """
    data = json_body()
    airdrop = airdrop_service.create_airdrop(
        current_wallet(),
        normalize_address(field(data, 'event_id', str)),
        field(data, 'name', str),
        field(data, 'pool'),
        field(data, 'distribution_type'),
        field(data, 'validity_days'),
        now_ms(),
        description=field(data, 'description', str, ''),
        require_attendance=field(data, 'require_attendance', bool, True),
        require_completion=field(data, 'require_completion', bool, False),
        min_duration_ms=field(data, 'min_duration_ms', int, 0),
        require_rating_submitted=field(data, 'require_rating_submitted', bool, False),
    )
    return ok(airdrop.to_dict(), 201)


@airdrops_bp.route('/<address:airdrop_id>', methods=['GET'])
def get_airdrop(airdrop_id):
    return ok(airdrop_service.get_airdrop_details(airdrop_id))


@airdrops_bp.route('/event/<address:event_id>', methods=['GET'])
def list_for_event(event_id):
    event_service.require_event(event_id)
    return ok([airdrop.to_dict() for airdrop in airdrop_service.airdrops_for_event(event_id)])


@airdrops_bp.route('/<address:airdrop_id>/claim', methods=['POST'])
@jwt_required()
def claim(airdrop_id):
    """
    Claim the caller's share of an airdrop
    ---
    tags:
      - Airdrops
    security:
      - Bearer: []
    parameters:
      - name: airdrop_id
        in: path
        type: string
        required: true
    responses:
      200:
        description: Claim paid
      402:
        description: Pool exhausted
      403:
        description: Caller does not meet the eligibility criteria
      409:
        description: Already claimed, or airdrop inactive
      410:
        description: Airdrop expired
    """
    claim_row = airdrop_service.claim(current_wallet(), airdrop_id, now_ms())
    return ok(claim_row.to_dict())


@airdrops_bp.route('/<address:airdrop_id>/distribute', methods=['POST'])
@jwt_required()
def distribute(airdrop_id):
    """
    Push payouts to a list of recipients (organizer only)
    ---
    tags:
      - Airdrops
    security:
      - Bearer: []
    parameters:
      - name: airdrop_id
        in: path
        type: string
        required: true
      - in: body
        name: body
        required: true
        schema:
          type: object
          required:
            - recipients
          properties:
            recipients:
              type: array
              items:
                type: string
    responses:
      200:
        description: Paid and skipped recipients
    """
    data = json_body()
    recipients = field(data, 'recipients', list)
    if not all(isinstance(r, str) for r in recipients):
        raise ProtocolError(AbortCode.INVALID_PAYLOAD, "recipients must be addresses")
    return ok(airdrop_service.batch_distribute(current_wallet(), airdrop_id, recipients, now_ms()))


@airdrops_bp.route('/<address:airdrop_id>/withdraw', methods=['POST'])
@jwt_required()
def withdraw(airdrop_id):
    amount = airdrop_service.withdraw_unclaimed(current_wallet(), airdrop_id, now_ms())
    return ok({'airdrop_id': airdrop_id, 'withdrawn': amount})


@airdrops_bp.route('/<address:airdrop_id>/claims/<address:wallet>', methods=['GET'])
def claim_status(airdrop_id, wallet):
    return ok(airdrop_service.get_claim_status(airdrop_id, wallet))


@airdrops_bp.route('/<address:airdrop_id>/eligibility/<address:wallet>', methods=['GET'])
def eligibility(airdrop_id, wallet):
    airdrop = airdrop_service.require_airdrop(airdrop_id)
    eligible, reason = airdrop_service.check_eligibility(
        airdrop.event_id, wallet, airdrop.criteria(),
    )
    return ok({'eligible': eligible, 'reason': reason})
