from flask import Blueprint
from flask_jwt_extended import jwt_required
from eventproof.routes import current_wallet, field, json_body, now_ms, ok
from eventproof.services import event_service, rating_service

ratings_bp = Blueprint('ratings', __name__)


@ratings_bp.route('/<address:event_id>', methods=['POST'])
@jwt_required()
def submit_rating(event_id):
    """
    Rate an attended event
    ---
    tags:
      - Ratings
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
            - rating
          properties:
            rating:
              type: integer
              description: stars * 100, 100-500
    responses:
      201:
        description: Rating recorded
      400:
        description: Rating out of range
      403:
        description: Caller never checked in
      409:
        description: Already rated
    """
    data = json_body()
    entry = rating_service.submit_rating(current_wallet(), event_id, field(data, 'rating'), now_ms())
    return ok(entry.to_dict(), 201)


@ratings_bp.route('/<address:event_id>', methods=['GET'])
def rating_summary(event_id):
    event_service.require_event(event_id)
    return ok({
        'event_id': event_id,
        'average_rating': rating_service.average_rating(event_id),
        'count': rating_service.rating_count(event_id),
    })
