from flask import Blueprint
from flask_jwt_extended import jwt_required
from eventproof.routes import current_wallet, field, json_body, now_ms, ok
from eventproof.services import escrow_service, ledger_service

escrows_bp = Blueprint('escrows', __name__)


@escrows_bp.route('/stats', methods=['GET'])
def global_stats():
    return ok(escrow_service.get_global_stats())


@escrows_bp.route('/<address:event_id>/fund', methods=['POST'])
@jwt_required()
def fund(event_id):
    """
    Create or top up the sponsor escrow for an event
    ---
    tags:
      - Escrows
    security:
      - Bearer: []
    parameters:
      - name: event_id
        in: path
        type: string
        required: true
      - in: body
        name: body
        required: true
        schema:
          type: object
          required:
            - amount
          properties:
            amount:
              type: integer
    responses:
      200:
        description: Escrow balance after the deposit
      400:
        description: Invalid amount
      403:
        description: Escrow belongs to another sponsor
      409:
        description: Escrow already settled or event already settled
    """
    data = json_body()
    escrow = escrow_service.fund_escrow(current_wallet(), event_id, field(data, 'amount'), now_ms())
    return ok(escrow.to_dict())


@escrows_bp.route('/<address:event_id>/settle', methods=['POST'])
@jwt_required()
def settle(event_id):
    """
    Settle the escrow against the event's KPIs
    ---
    tags:
      - Escrows
    security:
      - Bearer: []
    parameters:
      - name: event_id
        in: path
        type: string
        required: true
    responses:
      200:
        description: Settlement result
      409:
        description: Event not completed, or escrow already settled
    """
    escrow = escrow_service.settle_escrow(current_wallet(), event_id, now_ms())
    return ok(escrow.settlement_dict())


@escrows_bp.route('/<address:event_id>/emergency-withdraw', methods=['POST'])
@jwt_required()
def emergency_withdraw(event_id):
    """
    Return an unsettled escrow to its sponsor after the grace period
    ---
    tags:
      - Escrows
    security:
      - Bearer: []
    parameters:
      - name: event_id
        in: path
        type: string
        required: true
    responses:
      200:
        description: Escrow closed and refunded
      400:
        description: Grace period has not elapsed
      403:
        description: Caller is neither sponsor nor operator
    """
    escrow = escrow_service.emergency_withdraw(current_wallet(), event_id, now_ms())
    return ok(escrow.to_dict())


@escrows_bp.route('/<address:event_id>', methods=['GET'])
def get_escrow(event_id):
    return ok(escrow_service.get_escrow_details(event_id))


@escrows_bp.route('/<address:event_id>/settlement', methods=['GET'])
def get_settlement(event_id):
    return ok(escrow_service.get_settlement_result(event_id))


@escrows_bp.route('/<address:event_id>/transfers', methods=['GET'])
def transfers(event_id):
    """
    Fund movements recorded against an event's escrow
    ---
    tags:
      - Escrows
    parameters:
      - name: event_id
        in: path
        type: string
        required: true
    responses:
      200:
        description: Deposits, release, refund and emergency refund, oldest first
      404:
        description: No escrow for this event
    """
    escrow_service.require_escrow(event_id)
    return ok([transfer.to_dict() for transfer in ledger_service.transfers_for(event_id)])
