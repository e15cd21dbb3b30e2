from flask import Blueprint
from flask_jwt_extended import jwt_required
from eventproof.codec import normalize_address
from eventproof.routes import current_wallet, field, json_body, now_ms, ok
from eventproof.services import nft_service

nfts_bp = Blueprint('nfts', __name__)


@nfts_bp.route('/poa', methods=['POST'])
@jwt_required()
def mint_poa():
    """
    Mint a proof-of-attendance NFT by spending a MINT_POA capability
    ---
    tags:
      - NFTs
    security:
      - Bearer: []
    parameters:
      - in: body
        name: body
        required: true
        schema:
          type: object
          required:
            - capability_id
          properties:
            capability_id:
              type: string
    responses:
      201:
        description: Minted
      403:
        description: Capability unknown, foreign or already spent
    """
    data = json_body()
    capability_id = normalize_address(field(data, 'capability_id', str))
    nft = nft_service.mint_poa(current_wallet(), capability_id, now_ms())
    return ok(nft.to_dict(), 201)


@nfts_bp.route('/completion', methods=['POST'])
@jwt_required()
def mint_completion():
    data = json_body()
    capability_id = normalize_address(field(data, 'capability_id', str))
    nft = nft_service.mint_completion(current_wallet(), capability_id, now_ms())
    return ok(nft.to_dict(), 201)


@nfts_bp.route('/owner/<address:owner>', methods=['GET'])
def list_owned(owner):
    return ok([nft.to_dict() for nft in nft_service.nfts_of(owner)])
